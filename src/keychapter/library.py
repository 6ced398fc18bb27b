"""Walk a source tree and chapterize every video into a mirrored destination tree."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from keychapter.config import Settings
from keychapter.conform.pipeline import chapterize
from keychapter.errors import DestinationError
from keychapter.models import PipelineResult

logger = logging.getLogger(__name__)


@dataclass
class LibrarySummary:
    """Counts for one library run."""

    processed: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    failed: list[PipelineResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def discover_videos(source_dir: Path, extensions: Iterable[str]) -> Iterator[Path]:
    """Yield video files under *source_dir* (recursive, sorted, case-insensitive suffix match)."""
    wanted = {ext.lower() for ext in extensions}
    for path in sorted(source_dir.rglob("*")):
        if path.is_file() and path.suffix.lower() in wanted:
            yield path


def destination_for(source_path: Path, source_dir: Path, dest_dir: Path) -> Path:
    """Map *source_path* to the same relative location under *dest_dir*."""
    return dest_dir / source_path.relative_to(source_dir)


def copy_timestamps(source: Path, destination: Path) -> None:
    """Give *destination* the access and modification times of *source*."""
    stat = source.stat()
    os.utime(destination, ns=(stat.st_atime_ns, stat.st_mtime_ns))


def process_library(
    source_dir: Path,
    dest_dir: Path,
    settings: Settings,
    on_result: Optional[Callable[[Path, Optional[PipelineResult]], None]] = None,
) -> LibrarySummary:
    """Chapterize every video under *source_dir* into *dest_dir*.

    Files whose destination already exists are skipped.  A failed file is
    logged and recorded in the summary; the walk continues with the next one.

    Parameters
    ----------
    on_result:
        Optional callable invoked once per file with the source path and the
        :class:`PipelineResult` (``None`` for skipped files).  Used by the CLI
        to advance a progress display.
    """
    source_dir = source_dir.resolve()
    dest_dir = dest_dir.resolve()
    summary = LibrarySummary()

    for source_path in discover_videos(source_dir, settings.extensions):
        dest_path = destination_for(source_path, source_dir, dest_dir)
        if dest_path.exists():
            logger.warning("%s exists, skipping", dest_path)
            summary.skipped.append(source_path)
            if on_result is not None:
                on_result(source_path, None)
            continue

        logger.info("%s -> %s", source_path, dest_path)
        result = _process_file(source_path, dest_path, settings)
        if result.ok:
            summary.processed.append(source_path)
        else:
            logger.error("%s", result.error)
            summary.failed.append(result)
        if on_result is not None:
            on_result(source_path, result)

    return summary


def _process_file(source_path: Path, dest_path: Path, settings: Settings) -> PipelineResult:
    try:
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        result = chapterize(source_path, dest_path, settings)
        if result.ok:
            copy_timestamps(source_path, dest_path)
    except OSError as exc:
        return PipelineResult(
            source=source_path,
            destination=dest_path,
            error=DestinationError(dest_path, f"{exc.__class__.__name__}: {exc}"),
        )
    return result
