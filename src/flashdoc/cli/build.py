"""Build command: run the pipeline and write pages."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ..core import BuildResult, DocBuilder
from ..diagnostics import DiagnosticsReport
from ..exceptions import FlashdocError, Severity
from ..logging_config import setup_logging
from . import app
from ._common import console, resolve_config
from .progress import BuildProgress
from .sink import JsonPageSink

_SEVERITY_STYLE = {
    Severity.ERROR: "red",
    Severity.WARNING: "yellow",
    Severity.INFO: "dim",
}


@app.command()
def build(
    files: Optional[list[str]] = typer.Argument(
        None,
        help="Source files or glob patterns (default: 'files' from flashdoc.toml)",
    ),
    path: Optional[Path] = typer.Option(
        None,
        "-C",
        "--path",
        help="Project root (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "-o",
        "--output",
        help="Directory to write page documents to",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "-w",
        "--workers",
        help="Parallel parse jobs (default: auto-detect)",
        min=1,
        max=64,
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore and do not fill the cache"),
    strict: bool = typer.Option(False, "--strict", help="Fail files with syntax errors"),
    clean: bool = typer.Option(False, "--clean", help="Empty the output directory first"),
    show_all: bool = typer.Option(
        False, "--all-diagnostics", help="List every diagnostic, not just warnings and errors"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors"),
):
    """
    Build documentation pages for a C++ project.

    [bold cyan]Examples:[/bold cyan]

      flashdoc build "include/**/*.hpp"

      flashdoc build -C path/to/project -o site/data

      flashdoc build --no-cache --strict
    """
    logger = setup_logging(verbose=verbose, quiet=quiet)

    try:
        settings = resolve_config(
            config=config,
            root=path,
            files=files,
            output=output,
            no_cache=no_cache,
            workers=workers,
            strict=strict,
            verbose=verbose,
            quiet=quiet,
        )
        sources = settings.resolve_sources()
        progress = BuildProgress(len(sources))

        with DocBuilder(settings, reporter=progress) as builder:
            try:
                if quiet:
                    result = builder.build(sources)
                else:
                    with progress:
                        result = builder.build(sources)
            except KeyboardInterrupt:
                builder.cancel()
                raise

        output_dir = Path(settings.output_dir)
        if not output_dir.is_absolute():
            output_dir = settings.root_path / output_dir
        written = JsonPageSink(output_dir).write(result.pages, result.nav, clean=clean)

    except FlashdocError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except KeyboardInterrupt:
        logger.info("Build interrupted by user")
        console.print("\n[yellow]Build interrupted[/yellow]")
        raise typer.Exit(130)

    if not quiet:
        _print_summary(result, progress, written, output_dir)
        _print_diagnostics(result.diagnostics, show_all)


def _print_summary(result: BuildResult, progress: BuildProgress, written: int, output_dir: Path):
    table = Table(title="Build summary", show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column(justify="right")
    table.add_row("Files", str(len(result.summary.jobs)))
    table.add_row("Parsed", str(progress.parsed))
    table.add_row("From cache", f"[green]{progress.cached}[/green]")
    failed = len(result.summary.failed)
    table.add_row("Failed", f"[red]{failed}[/red]" if failed else "0")
    table.add_row("Entities", str(len(result.model)))
    table.add_row("Pages", str(written))
    table.add_row("Output", f"[blue]{output_dir}[/blue]")
    console.print()
    console.print(table)


def _print_diagnostics(report: DiagnosticsReport, show_all: bool) -> None:
    shown = [d for d in report.all() if show_all or d.severity is not Severity.INFO]
    counts = {name: n for name, n in report.counts().items() if n}
    if counts:
        summary = ", ".join(f"{n} {name.replace('_', ' ')}" for name, n in counts.items())
        console.print(f"\n[bold]Diagnostics:[/bold] {summary}")
    if not shown:
        return

    table = Table(show_lines=False)
    table.add_column("Code", style="bold")
    table.add_column("Where")
    table.add_column("Message")
    for diagnostic in shown:
        style = _SEVERITY_STYLE[diagnostic.severity]
        table.add_row(
            f"[{style}]{diagnostic.code.value}[/{style}]",
            diagnostic.entity_id or diagnostic.path or "",
            diagnostic.message,
        )
    console.print(table)
