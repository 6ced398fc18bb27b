"""keychapter CLI entry point.

``keychapter library SOURCE_DIR DEST_DIR`` mirrors a tree of MKV/MP4 files
into DEST_DIR with chapters added every CHAPTER_LENGTH seconds (at keyframes).
``keychapter file SOURCE DEST`` does the same for a single file.

Settings come from the environment or a ``.env`` file in the working
directory; command-line options win.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.text import Text

from keychapter.config import Settings, load_settings
from keychapter.conform.pipeline import chapterize
from keychapter.errors import DestinationError, KeychapterError
from keychapter.library import copy_timestamps, process_library
from keychapter.models import PipelineResult

app = typer.Typer(
    name="keychapter",
    help="Add evenly spaced, keyframe-aligned chapters to videos without re-encoding.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

ChapterLength = Annotated[
    Optional[int],
    typer.Option(
        "--chapter-length", "-l",
        help="Minimum seconds between chapter starts (default: CHAPTER_LENGTH or 180).",
    ),
]
Verbose = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]


def _setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("keychapter")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.handlers.clear()
    handler = RichHandler(console=err_console, show_time=True, show_path=False, markup=False)
    handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(handler)
    logger.propagate = False


def _settings(chapter_length: Optional[int]) -> Settings:
    load_dotenv()
    try:
        return load_settings(min_spacing=chapter_length)
    except KeychapterError as e:
        err_console.print(Panel(Text(str(e)), title="[red]Configuration Error[/red]", border_style="red"))
        raise typer.Exit(1)


def _input_error(message: str) -> typer.Exit:
    err_console.print(Panel(message, title="[red]Input Error[/red]", border_style="red"))
    return typer.Exit(1)


@app.command()
def library(
    source_dir: Annotated[Path, typer.Argument(resolve_path=True, help="Directory to scan for videos.")],
    dest_dir: Annotated[Path, typer.Argument(resolve_path=True, help="Directory to write chaptered copies to.")],
    chapter_length: ChapterLength = None,
    verbose: Verbose = False,
) -> None:
    """Chapterize every MKV/MP4 under SOURCE_DIR into a mirrored DEST_DIR."""
    _setup_logging(verbose)
    if not source_dir.is_dir():
        raise _input_error(
            f"Source directory not found: [bold]{source_dir}[/bold]\n"
            f"Check that the path is correct and is a directory."
        )
    settings = _settings(chapter_length)
    dest_dir.mkdir(parents=True, exist_ok=True)

    console.print(
        f"\n[bold cyan]keychapter[/bold cyan] — [dim]{source_dir}[/dim] -> [dim]{dest_dir}[/dim]"
        f"  every [bold]{settings.min_spacing}s[/bold]\n"
    )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Scanning...", total=None)

        def _on_result(path: Path, result: Optional[PipelineResult]) -> None:
            if result is None:
                progress.console.print(f"[yellow]Skipped:[/] {path.name} (destination exists)")
            elif result.ok:
                progress.console.print(f"[green]Done:[/] {path.name} ({len(result.chapters)} chapters)")
            else:
                progress.console.print(f"[red]Failed:[/] {path.name}")
            progress.update(task, description=f"Last: {path.name}")

        summary = process_library(source_dir, dest_dir, settings, on_result=_on_result)

    failed_lines = "".join(
        f"\n    [red]{r.source.name}[/red]: {r.error.__class__.__name__}" for r in summary.failed
    )
    console.print(Panel(
        f"  Processed: {len(summary.processed)}\n"
        f"  Skipped:   {len(summary.skipped)}\n"
        f"  Failed:    {len(summary.failed)}"
        + failed_lines,
        title="[green]Library Complete[/green]" if summary.ok else "[red]Library Complete With Errors[/red]",
        border_style="green" if summary.ok else "red",
    ))
    if not summary.ok:
        raise typer.Exit(1)


@app.command()
def file(
    source: Annotated[Path, typer.Argument(resolve_path=True, help="Input video file.")],
    dest: Annotated[Path, typer.Argument(resolve_path=True, help="Output video file (must not exist).")],
    chapter_length: ChapterLength = None,
    verbose: Verbose = False,
) -> None:
    """Chapterize a single file."""
    _setup_logging(verbose)
    if not source.is_file():
        raise _input_error(
            f"File not found: [bold]{source}[/bold]\n"
            f"Check that the path is correct and the file is accessible."
        )
    if dest.exists():
        raise _input_error(f"Destination already exists: [bold]{dest}[/bold]")
    settings = _settings(chapter_length)
    dest.parent.mkdir(parents=True, exist_ok=True)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Chapterizing {source.name}...", total=None)
        result = chapterize(source, dest, settings)

    if not result.ok:
        # ffmpeg stderr contains [tags] that must not be read as markup
        err_console.print(Panel(Text(str(result.error)), title="[red]Pipeline Error[/red]", border_style="red"))
        raise typer.Exit(1)

    try:
        copy_timestamps(source, dest)
    except OSError as e:
        error = DestinationError(dest, str(e))
        err_console.print(Panel(Text(str(error)), title="[red]Pipeline Error[/red]", border_style="red"))
        raise typer.Exit(1)
    console.print(Panel(
        f"[bold green]Chapters written[/bold green]\n\n"
        f"  Output:   [dim]{dest}[/dim]\n"
        f"  Chapters: {len(result.chapters)}",
        title="[green]Done[/green]",
        border_style="green",
    ))


if __name__ == "__main__":
    app()
