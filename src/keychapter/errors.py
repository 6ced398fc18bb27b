from pathlib import Path


class KeychapterError(Exception):
    """Base class for all keychapter errors."""


class MalformedRecord(KeychapterError):
    def __init__(self, detail: str, line: str | None = None) -> None:
        message = (
            f"ffprobe emitted a frame record that could not be parsed.\n"
            f"  Cause: {detail}\n"
            f"  Check: Does the installed ffprobe print key_frame, pts_time and pkt_pos for each frame?"
        )
        if line is not None:
            message += f"\n  Line: {line[:200]!r}"
        super().__init__(message)
        self.detail = detail
        self.line = line


class EmptyKeyframeStream(KeychapterError):
    def __init__(self, source: Path | None = None) -> None:
        name = f"'{source.name}'" if source is not None else "the input"
        super().__init__(
            f"No keyframes found in {name}.\n"
            f"  Cause: ffprobe reported zero keyframes for the first video stream.\n"
            f"  Check: Does the file contain a video stream?"
        )
        self.source = source


class InsufficientBoundaries(KeychapterError):
    def __init__(self, count: int, source: Path | None = None) -> None:
        name = f"'{source.name}'" if source is not None else "the input"
        super().__init__(
            f"Cannot build chapters for {name}.\n"
            f"  Cause: only {count} chapter boundary found, at least 2 are needed.\n"
            f"  Check: Is the video shorter than the chapter length?"
        )
        self.count = count
        self.source = source


class UpstreamProcessFailed(KeychapterError):
    def __init__(self, source: Path, returncode: int | None, detail: str) -> None:
        super().__init__(
            f"ffprobe failed while reading frames from '{source.name}'.\n"
            f"  Cause: {detail}\n"
            f"  Check: Is FFmpeg installed and in PATH? Is '{source.name}' a valid MKV/MP4 file?\n"
            f"  Tip: Run `ffprobe '{source}' -v error -show_streams` to verify the file is readable."
        )
        self.source = source
        self.returncode = returncode
        self.detail = detail


class DownstreamProcessFailed(KeychapterError):
    def __init__(self, destination: Path, returncode: int | None, stderr: str) -> None:
        super().__init__(
            f"ffmpeg could not write chapters to '{destination.name}'.\n"
            f"  Cause: exit status {returncode}\n"
            f"  Check: Is the destination writable and not already present?\n"
            f"  ffmpeg stderr:\n{stderr.rstrip()}"
        )
        self.destination = destination
        self.returncode = returncode
        self.stderr = stderr


class ConfigError(KeychapterError):
    def __init__(self, name: str, value: object, detail: str) -> None:
        super().__init__(
            f"Invalid setting {name}={value!r}.\n"
            f"  Cause: {detail}"
        )
        self.name = name
        self.value = value
        self.detail = detail


class DestinationError(KeychapterError):
    def __init__(self, destination: Path, detail: str) -> None:
        super().__init__(
            f"Could not prepare or finish '{destination.name}'.\n"
            f"  Cause: {detail}\n"
            f"  Check: Is '{destination.parent}' writable?"
        )
        self.destination = destination
        self.detail = detail
