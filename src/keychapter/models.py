from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from keychapter.errors import KeychapterError


@dataclass(frozen=True)
class KeyframeRecord:
    """A single keyframe reported by ffprobe.

    Also used for boundary frames once the boundary filter has selected it.
    """

    timestamp: int       # whole seconds (pts_time, TIMEBASE=1/1)
    byte_position: int   # pkt_pos in the source container


@dataclass(frozen=True)
class ChapterDefinition:
    """One chapter of the output document."""

    start_time: int
    end_time: int
    title: str


@dataclass
class PipelineResult:
    """Terminal outcome of chapterizing one file."""

    source: Path
    destination: Path
    document: str | None = None
    chapters: list[ChapterDefinition] = field(default_factory=list)
    error: KeychapterError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
