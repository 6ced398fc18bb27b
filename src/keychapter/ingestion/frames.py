"""Incremental parser for ffprobe ``-show_frames`` output.

ffprobe's default writer prints one block per frame::

    [FRAME]
    key_frame=1
    pts_time=12.345000
    pkt_pos=48213
    ...
    [/FRAME]

Output arrives from a pipe in arbitrary chunks, so :class:`FrameScanner`
works line by line and only ever buffers the unfinished trailing line plus
the recognised fields of the block currently open.  Everything else is
dropped as soon as its line is complete.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator

from keychapter.errors import MalformedRecord
from keychapter.models import KeyframeRecord

BLOCK_START = "[FRAME]"
BLOCK_END = "[/FRAME]"

# A single ffprobe line is never anywhere near this long.
MAX_LINE_LENGTH = 64 * 1024

_DECIMAL = re.compile(r"\d+(?:\.\d*)?")


class FrameScanner:
    """Turns chunks of ffprobe text into :class:`KeyframeRecord` objects.

    Feed chunks with :meth:`feed`; each call returns the keyframes whose
    ``[/FRAME]`` line completed inside that chunk.  Non-keyframe blocks are
    dropped silently.  :meth:`close` discards whatever is left over.
    """

    def __init__(
        self,
        timestamp_field: str = "pts_time",
        position_field: str = "pkt_pos",
        flag_field: str = "key_frame",
    ) -> None:
        self.timestamp_field = timestamp_field
        self.position_field = position_field
        self.flag_field = flag_field
        self._wanted = frozenset({timestamp_field, position_field, flag_field})
        self._pending = ""
        self._block: dict[str, str] | None = None

    def feed(self, chunk: str) -> list[KeyframeRecord]:
        if not chunk:
            return []
        text = self._pending + chunk
        lines = text.split("\n")
        self._pending = lines.pop()
        if len(self._pending) > MAX_LINE_LENGTH:
            raise MalformedRecord(
                f"line exceeds {MAX_LINE_LENGTH} characters without a newline",
                self._pending,
            )

        records: list[KeyframeRecord] = []
        for line in lines:
            record = self._consume_line(line.rstrip("\r"))
            if record is not None:
                records.append(record)
        return records

    def close(self) -> None:
        """End of stream: drop any unterminated line or unclosed block."""
        self._pending = ""
        self._block = None

    def _consume_line(self, line: str) -> KeyframeRecord | None:
        stripped = line.strip()
        if stripped == BLOCK_START:
            self._block = {}
            return None
        if self._block is None:
            return None
        if stripped == BLOCK_END:
            block, self._block = self._block, None
            return self._finish_block(block)

        key, sep, value = stripped.partition("=")
        if sep and key in self._wanted:
            block = self._block
            block[key] = value.strip()
        return None

    def _finish_block(self, block: dict[str, str]) -> KeyframeRecord | None:
        if block.get(self.flag_field) != "1":
            return None
        return KeyframeRecord(
            timestamp=self._parse_int(block, self.timestamp_field),
            byte_position=self._parse_int(block, self.position_field),
        )

    @staticmethod
    def _parse_int(block: dict[str, str], name: str) -> int:
        raw = block.get(name)
        if raw is None:
            raise MalformedRecord(f"keyframe block has no {name} field")
        if not _DECIMAL.fullmatch(raw):
            raise MalformedRecord(
                f"{name} is not a non-negative number: {raw!r}",
                f"{name}={raw}",
            )
        # pts_time is fractional seconds; chapters use whole seconds
        return int(raw.split(".", 1)[0])


def parse_keyframes(chunks: Iterable[str], scanner: FrameScanner | None = None) -> Iterator[KeyframeRecord]:
    """Lazily yield keyframes from an iterable of text chunks.

    Parameters
    ----------
    chunks:
        Decoded ffprobe output in any chunking.  A record may be split across
        chunks or several records may share one.
    scanner:
        Optional preconfigured :class:`FrameScanner` (e.g. for different
        field names).

    Raises
    ------
    MalformedRecord
        If a keyframe block's timestamp or position is not numeric.
    """
    scanner = scanner if scanner is not None else FrameScanner()
    for chunk in chunks:
        yield from scanner.feed(chunk)
    scanner.close()
