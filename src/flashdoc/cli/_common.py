"""Shared CLI helpers."""

from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import ProjectConfig, load_config

console = Console()


def resolve_config(
    config: Optional[Path] = None,
    root: Optional[Path] = None,
    files: Optional[list[str]] = None,
    output: Optional[Path] = None,
    no_cache: bool = False,
    workers: Optional[int] = None,
    strict: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> ProjectConfig:
    """Build the project config from CLI options."""
    overrides = {}
    if files:
        overrides["files"] = files
    if output is not None:
        overrides["output_dir"] = str(output)
    if no_cache:
        overrides["cache_enabled"] = False
    if workers is not None:
        overrides["concurrency"] = workers
    if strict:
        overrides["strict"] = True
    return load_config(config_file=config, root=root, verbose=verbose, quiet=quiet, **overrides)
