"""FFMETADATA chapter document generation.

ffmpeg reads chapters from a metadata file (here: stdin) of the form::

    ;FFMETADATA1
    [CHAPTER]
    TIMEBASE=1/1
    START=0
    END=180
    title=Chapter 1
    [CHAPTER]
    TIMEBASE=1/1
    START=180
    END=362
    title=Chapter 2

Timestamps are whole seconds, hence ``TIMEBASE=1/1``.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from keychapter.errors import EmptyKeyframeStream, InsufficientBoundaries
from keychapter.models import ChapterDefinition, KeyframeRecord

HEADER = ";FFMETADATA1\n"
TIMEBASE = "1/1"


def build_chapters(boundaries: Iterable[KeyframeRecord]) -> Iterator[ChapterDefinition]:
    """Fold boundary frames into chapters, yielding each as soon as it closes.

    A chapter's end is only known once the next boundary arrives, so the
    first boundary yields nothing; it anchors chapter 1 at ``0``.  Every
    later boundary closes exactly one chapter, giving ``N - 1`` chapters for
    ``N`` boundaries.

    Raises
    ------
    EmptyKeyframeStream
        If *boundaries* was empty.
    InsufficientBoundaries
        If only one boundary arrived.
    """
    seen = 0
    previous: KeyframeRecord | None = None
    for frame in boundaries:
        seen += 1
        if seen == 1:
            continue
        start = previous.timestamp if previous is not None else 0
        yield ChapterDefinition(
            start_time=start,
            end_time=frame.timestamp,
            title=f"Chapter {seen - 1}",
        )
        previous = frame

    if seen == 0:
        raise EmptyKeyframeStream()
    if seen == 1:
        raise InsufficientBoundaries(seen)


def format_chapter(chapter: ChapterDefinition) -> str:
    return (
        "[CHAPTER]\n"
        f"TIMEBASE={TIMEBASE}\n"
        f"START={chapter.start_time}\n"
        f"END={chapter.end_time}\n"
        f"title={chapter.title}\n"
    )


def render_document(
    boundaries: Iterable[KeyframeRecord],
    collected: list[ChapterDefinition] | None = None,
) -> Iterator[str]:
    """Yield the chapter document piece by piece: header, then one block per chapter.

    Chapters are appended to *collected*, when given, as they are rendered.
    """
    yield HEADER
    for chapter in build_chapters(boundaries):
        if collected is not None:
            collected.append(chapter)
        yield format_chapter(chapter)
