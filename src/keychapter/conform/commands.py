"""Argument lists for the two external FFmpeg processes."""

from __future__ import annotations

from pathlib import Path

from keychapter.config import Settings


def build_probe_cmd(source: Path, settings: Settings) -> list[str]:
    """ffprobe invocation that prints one ``[FRAME]`` block per keyframe of the first video stream."""
    return [
        settings.ffprobe_bin,
        "-v", "error",
        "-select_streams", "v:0",
        "-skip_frame", "nokey",
        "-show_frames",
        "-show_entries", "frame=key_frame,pts_time,pkt_pos",
        str(source),
    ]


def build_mux_cmd(source: Path, destination: Path, settings: Settings) -> list[str]:
    """ffmpeg invocation that copies *source* with chapters read from stdin.

    ``-n`` makes ffmpeg fail instead of prompting (on the stdin we are
    writing the document to) when *destination* already exists.
    """
    return [
        settings.ffmpeg_bin,
        "-hide_banner",
        "-n",
        "-i", str(source),
        "-f", "ffmetadata",
        "-i", "-",
        "-map", "0",
        "-map_chapters", "1",
        "-codec", "copy",
        str(destination),
    ]
