"""Select chapter-start keyframes from the full keyframe stream."""

from __future__ import annotations

from typing import Iterable, Iterator

from keychapter.models import KeyframeRecord


def select_boundaries(records: Iterable[KeyframeRecord], min_spacing: int) -> Iterator[KeyframeRecord]:
    """Yield the keyframes that start a chapter.

    The first keyframe always starts a chapter.  After that a keyframe is
    kept only when it is more than *min_spacing* seconds after the previous
    boundary.  When the stream ends, the last keyframe seen is emitted as a
    final boundary even if it is closer than *min_spacing*, so the tail of
    the video is always covered.  A final keyframe with the same timestamp
    as the previous boundary is not emitted (it would close a zero-length
    chapter).

    Parameters
    ----------
    records:
        Keyframes in presentation order.
    min_spacing:
        Minimum distance in seconds between consecutive boundaries.

    Raises
    ------
    ValueError
        If *min_spacing* is negative.
    """
    if min_spacing < 0:
        raise ValueError(f"min_spacing must be >= 0, got {min_spacing}")

    reference: KeyframeRecord | None = None
    last_seen: KeyframeRecord | None = None
    for record in records:
        last_seen = record
        if reference is None or record.timestamp - reference.timestamp > min_spacing:
            reference = record
            yield record

    if (
        reference is not None
        and last_seen is not reference
        and last_seen.timestamp > reference.timestamp
    ):
        yield last_seen
