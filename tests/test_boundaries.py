"""Unit tests for keychapter.ingestion.boundaries."""

from __future__ import annotations

import pytest

from keychapter.ingestion.boundaries import select_boundaries
from keychapter.models import KeyframeRecord


def _records(*timestamps: int) -> list[KeyframeRecord]:
    return [KeyframeRecord(timestamp=t, byte_position=i * 1000) for i, t in enumerate(timestamps)]


def _times(records) -> list[int]:
    return [r.timestamp for r in records]


class TestSelectBoundaries:
    def test_reference_example(self) -> None:
        """[0, 50, 200, 260, 500] at spacing 180 → [0, 200, 500]."""
        result = select_boundaries(_records(0, 50, 200, 260, 500), 180)
        assert _times(result) == [0, 200, 500]

    def test_first_record_always_emitted(self) -> None:
        """The first keyframe starts chapter one regardless of its timestamp."""
        assert _times(select_boundaries(_records(42), 180)) == [42]

    def test_spacing_is_strict(self) -> None:
        """A keyframe exactly min_spacing after the reference is not a boundary."""
        assert _times(select_boundaries(_records(0, 180, 181), 180)) == [0, 181]

    def test_spacing_measured_from_last_boundary(self) -> None:
        """Dropped keyframes do not move the reference point."""
        result = select_boundaries(_records(0, 100, 170, 190, 300, 380), 180)
        assert _times(result) == [0, 190, 380]

    def test_empty_input(self) -> None:
        """No keyframes → no boundaries."""
        assert list(select_boundaries([], 180)) == []

    def test_negative_spacing_rejected(self) -> None:
        with pytest.raises(ValueError):
            list(select_boundaries(_records(0, 1), -1))

    def test_zero_spacing_keeps_every_distinct_timestamp(self) -> None:
        """min_spacing=0 keeps every strictly later keyframe."""
        assert _times(select_boundaries(_records(0, 1, 1, 2), 0)) == [0, 1, 2]


class TestFlush:
    def test_short_tail_emitted(self) -> None:
        """The last keyframe is flushed even when closer than min_spacing."""
        assert _times(select_boundaries(_records(0, 200, 210), 180)) == [0, 200, 210]

    def test_last_already_boundary_not_duplicated(self) -> None:
        """If the last keyframe was itself a boundary it is not emitted twice."""
        assert _times(select_boundaries(_records(0, 50, 200), 180)) == [0, 200]

    def test_flushed_record_is_the_last_one_seen(self) -> None:
        """The flushed boundary is the final record, not an earlier dropped one."""
        records = _records(0, 10, 20, 30)
        result = list(select_boundaries(records, 180))
        assert result[-1] is records[-1]

    def test_zero_length_tail_dropped(self) -> None:
        """A final keyframe with the same timestamp as the last boundary is not emitted."""
        assert _times(select_boundaries(_records(0, 200, 200), 180)) == [0, 200]

    def test_never_drops_tail_property(self) -> None:
        """For assorted streams the last boundary always carries the last timestamp."""
        streams = [
            (0, 5),
            (0, 181, 362, 400),
            (3, 90, 185, 186, 187),
            tuple(range(0, 1000, 7)),
        ]
        for timestamps in streams:
            result = _times(select_boundaries(_records(*timestamps), 180))
            assert result[-1] == timestamps[-1], timestamps
            assert result == sorted(set(result)), timestamps


class TestLaziness:
    def test_boundaries_stream_before_input_ends(self) -> None:
        """Boundaries are yielded as soon as they are known, not after the whole stream."""

        def _source():
            yield KeyframeRecord(timestamp=0, byte_position=0)
            yield KeyframeRecord(timestamp=500, byte_position=1)
            raise AssertionError("filter read past the second boundary")

        gen = select_boundaries(_source(), 180)
        assert next(gen).timestamp == 0
        assert next(gen).timestamp == 500
