"""CLI entry point: registers all subcommands."""

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="flashdoc",
    help="flashdoc - C++ API documentation generator",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback(invoke_without_command=True)
def _callback(
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    if version:
        console.print(f"[bold cyan]flashdoc[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


# Import subcommands to register them
from .build import build as _build  # noqa: F401, E402
from .cache import cache_clear as _cache_clear  # noqa: F401, E402


def main() -> None:
    app()
