"""Streaming ffprobe -> chapter document -> ffmpeg pipeline.

:func:`chapterize` runs both FFmpeg tools at once: ffprobe's stdout is
parsed as it arrives, boundary frames are selected, and each chapter block is
written into ffmpeg's stdin as soon as it closes.  ffmpeg only starts writing
the destination once its stdin reaches EOF, so closing stdin is the commit
point; on any failure ffmpeg is killed before that happens.

Both processes are always reaped before :func:`chapterize` returns.
"""

from __future__ import annotations

import codecs
import contextlib
import logging
import subprocess
import threading
from pathlib import Path
from typing import IO, Callable, Iterator, Sequence

from keychapter.config import Settings, load_settings
from keychapter.conform.commands import build_mux_cmd, build_probe_cmd
from keychapter.errors import (
    DownstreamProcessFailed,
    EmptyKeyframeStream,
    InsufficientBoundaries,
    KeychapterError,
    UpstreamProcessFailed,
)
from keychapter.ingestion.boundaries import select_boundaries
from keychapter.ingestion.frames import parse_keyframes
from keychapter.metadata.ffmetadata import render_document
from keychapter.models import ChapterDefinition, PipelineResult

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

# Seconds between SIGTERM and SIGKILL when stopping a process.
STOP_GRACE_S = 5.0


def chapterize(
    source: Path,
    destination: Path,
    settings: Settings | None = None,
    probe_cmd: Sequence[str] | None = None,
    mux_cmd: Sequence[str] | None = None,
) -> PipelineResult:
    """Copy *source* to *destination* with evenly spaced chapters added.

    Parameters
    ----------
    source:
        Video file to read keyframes from.
    destination:
        Output path.  Must not exist; ffmpeg refuses to overwrite it.
    settings:
        Chapter spacing, tool paths and timeout.  Loaded from the
        environment when omitted.
    probe_cmd, mux_cmd:
        Full argument lists replacing the default ffprobe/ffmpeg
        invocations.

    Returns
    -------
    PipelineResult
        ``document`` and ``chapters`` on success, ``error`` on failure.
        Errors are returned, not raised.  A destination created by a failed
        run is deleted.
    """
    source = Path(source)
    destination = Path(destination)
    settings = settings if settings is not None else load_settings()
    probe_cmd = list(probe_cmd) if probe_cmd is not None else build_probe_cmd(source, settings)
    mux_cmd = list(mux_cmd) if mux_cmd is not None else build_mux_cmd(source, destination, settings)

    result = PipelineResult(source=source, destination=destination)
    existed = destination.exists()

    logger.info("Calculating chapters for %s", source)
    try:
        result.document = _run_pipeline(source, destination, probe_cmd, mux_cmd, settings, result.chapters)
    except KeychapterError as exc:
        result.error = exc
        logger.error("Chapterizing %s failed: %s", source.name, exc.__class__.__name__)
        logger.debug("%s", exc)
        if not existed:
            _remove_partial(destination)
        return result

    logger.info("Wrote %d chapters to %s", len(result.chapters), destination)
    return result


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

class _StreamDrain(threading.Thread):
    """Reads a pipe to EOF in the background so the child never blocks on it."""

    def __init__(self, stream: IO[bytes], name: str) -> None:
        super().__init__(name=name, daemon=True)
        self._stream = stream
        self._chunks: list[bytes] = []

    def run(self) -> None:
        try:
            for chunk in iter(lambda: self._stream.read(READ_CHUNK_SIZE), b""):
                self._chunks.append(chunk)
        except (OSError, ValueError):
            # pipe closed underneath us while the process was being killed
            pass
        finally:
            self._stream.close()

    def text(self) -> str:
        self.join()
        return b"".join(self._chunks).decode("utf-8", errors="replace")


def _decoded_chunks(stream: IO[bytes]) -> Iterator[str]:
    """Yield UTF-8 text from *stream* as it arrives, never splitting a character."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = stream.read1(READ_CHUNK_SIZE)  # type: ignore[attr-defined]
        if not data:
            break
        yield decoder.decode(data)
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


def _run_pipeline(
    source: Path,
    destination: Path,
    probe_cmd: list[str],
    mux_cmd: list[str],
    settings: Settings,
    chapters: list[ChapterDefinition],
) -> str:
    logger.debug("ffprobe: %s", " ".join(probe_cmd))
    try:
        prober = subprocess.Popen(probe_cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as exc:
        raise UpstreamProcessFailed(source, None, _launch_failure(probe_cmd, exc)) from exc

    logger.debug("ffmpeg: %s", " ".join(mux_cmd))
    try:
        muxer = subprocess.Popen(
            mux_cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        _stop_process(prober)
        prober.stderr.close()
        raise DownstreamProcessFailed(destination, None, _launch_failure(mux_cmd, exc)) from exc

    probe_stderr = _StreamDrain(prober.stderr, "ffprobe-stderr")
    mux_stderr = _StreamDrain(muxer.stderr, "ffmpeg-stderr")
    committed = threading.Event()
    watchdog = threading.Thread(
        target=_watch_muxer, args=(muxer, prober, committed), name="ffmpeg-watchdog", daemon=True
    )
    probe_stderr.start()
    mux_stderr.start()
    watchdog.start()

    try:
        return _stream_document(
            source, destination, prober, muxer, probe_stderr, mux_stderr, settings, chapters, committed
        )
    finally:
        # No-ops on the success path; on failure this unblocks and reaps both.
        _stop_process(prober)
        _stop_process(muxer)
        watchdog.join()
        probe_stderr.join()
        mux_stderr.join()


def _launch_failure(cmd: list[str], exc: OSError) -> str:
    if isinstance(exc, FileNotFoundError):
        return f"{cmd[0]} not found — is FFmpeg installed and in PATH?"
    return f"{cmd[0]} could not be started: {exc.strerror or exc}"


def _watch_muxer(muxer: subprocess.Popen, prober: subprocess.Popen, committed: threading.Event) -> None:
    """Stop ffprobe if ffmpeg exits before the document is complete.

    Without this a dead ffmpeg goes unnoticed until the next chapter block is
    written, which may be a long way into a large file.
    """
    muxer.wait()
    if not committed.is_set() and prober.poll() is None:
        logger.debug("ffmpeg exited early (status %s), stopping ffprobe", muxer.returncode)
        prober.terminate()


def _stream_document(
    source: Path,
    destination: Path,
    prober: subprocess.Popen,
    muxer: subprocess.Popen,
    probe_stderr: _StreamDrain,
    mux_stderr: _StreamDrain,
    settings: Settings,
    chapters: list[ChapterDefinition],
    committed: threading.Event,
) -> str:
    timeout = settings.process_timeout

    def upstream_failed(rc: int | None) -> UpstreamProcessFailed:
        detail = probe_stderr.text().strip() or f"exit status {rc}"
        return UpstreamProcessFailed(source, rc, detail)

    def upstream_timed_out() -> UpstreamProcessFailed:
        return UpstreamProcessFailed(source, None, f"ffprobe did not exit within {timeout}s")

    def downstream_failed(rc: int | None) -> DownstreamProcessFailed:
        return DownstreamProcessFailed(destination, rc, mux_stderr.text())

    records = parse_keyframes(_decoded_chunks(prober.stdout))
    boundaries = select_boundaries(records, settings.min_spacing)
    pieces: list[str] = []
    try:
        for piece in render_document(boundaries, chapters):
            pieces.append(piece)
            muxer.stdin.write(piece.encode("utf-8"))
            muxer.stdin.flush()
    except BrokenPipeError:
        # ffmpeg went away mid-document
        _stop_process(prober)
        rc = _wait(muxer, timeout, lambda: downstream_failed(None))
        raise downstream_failed(rc) from None
    except (EmptyKeyframeStream, InsufficientBoundaries) as exc:
        # ffmpeg cannot finish before stdin closes, so any exit here is a failure
        if muxer.poll() is not None:
            raise downstream_failed(muxer.returncode) from exc
        # ffprobe's stdout hit EOF; a crash there is the real cause
        rc = _wait(prober, timeout, upstream_timed_out)
        if rc != 0:
            raise upstream_failed(rc) from exc
        if isinstance(exc, InsufficientBoundaries):
            raise InsufficientBoundaries(exc.count, source) from None
        raise EmptyKeyframeStream(source) from None

    if muxer.poll() is not None:
        raise downstream_failed(muxer.returncode)

    # stdout is at EOF, so ffprobe has exited or is about to
    rc = _wait(prober, timeout, upstream_timed_out)
    if rc != 0:
        raise upstream_failed(rc)

    committed.set()
    with contextlib.suppress(BrokenPipeError):
        muxer.stdin.close()
    rc = _wait(muxer, timeout, lambda: downstream_failed(None))
    if rc != 0:
        raise downstream_failed(rc)

    logger.debug("%s: %d chapters, %d document pieces", source.name, len(chapters), len(pieces))
    return "".join(pieces)


def _wait(
    process: subprocess.Popen,
    timeout: float | None,
    on_timeout: Callable[[], KeychapterError],
) -> int:
    """Wait for *process*; kill it and raise ``on_timeout()`` if *timeout* expires."""
    try:
        return process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("%s did not exit within %ss, killing it", process.args[0], timeout)
        _stop_process(process)
        raise on_timeout() from None


def _stop_process(process: subprocess.Popen) -> None:
    """Terminate *process* if still running (SIGTERM → SIGKILL on timeout) and close its pipes."""
    if process.poll() is None:
        process.terminate()
        try:
            process.wait(timeout=STOP_GRACE_S)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    for stream in (process.stdin, process.stdout):
        if stream is not None:
            with contextlib.suppress(BrokenPipeError):
                stream.close()


def _remove_partial(path: Path) -> None:
    """Delete *path* if it exists, silently ignoring any OS errors."""
    try:
        path.unlink()
    except OSError:
        pass
