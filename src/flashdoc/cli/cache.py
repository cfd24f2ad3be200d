"""Cache management commands."""

from pathlib import Path
from typing import Optional

import typer

from ..cache import DocCache
from ..exceptions import FlashdocError
from . import app
from ._common import console, resolve_config


@app.command()
def cache_clear(
    path: Optional[Path] = typer.Option(
        None,
        "-C",
        "--path",
        help="Project root (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    config: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Configuration file (TOML)", exists=True, dir_okay=False
    ),
):
    """Clear the parse cache."""
    try:
        settings = resolve_config(config=config, root=path)
    except FlashdocError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not settings.cache_enabled:
        console.print("[yellow]Cache is disabled[/yellow]")
        raise typer.Exit(0)

    cache_dir = Path(settings.cache_dir)
    if not cache_dir.is_absolute():
        cache_dir = settings.root_path / cache_dir
    if not cache_dir.exists():
        console.print("[yellow]No cache to clear[/yellow]")
        raise typer.Exit(0)

    cache = DocCache.open(str(cache_dir))
    try:
        cache.clear()
    finally:
        cache.close()
    console.print("[green]Cache cleared successfully[/green]")
