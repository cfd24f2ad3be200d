"""Configuration loading and management for flashdoc.

This module provides configuration discovery and validation. Configuration
sources are merged in priority order:
    1. Defaults (defined in ProjectConfig)
    2. Project config (<root>/flashdoc.toml)
    3. Explicit config file
    4. Environment variables (FLASHDOC_* prefix)
    5. Overrides (passed as kwargs, typically from the CLI)

Example:
    >>> config = load_config(files=["include/**/*.hpp"], concurrency=4)
    >>> config.concurrency
    4
"""

from __future__ import annotations

import hashlib
import json
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, Union, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError, InvalidPathError
from .scanning.models import CompileArgs

Standard = Literal["c++11", "c++14", "c++17", "c++20", "c++23"]
Verbosity = Literal["quiet", "normal", "verbose"]

STANDARDS: tuple[str, ...] = ("c++11", "c++14", "c++17", "c++20", "c++23")

CONFIG_FILE_NAME = "flashdoc.toml"

# Bumped whenever the SourceUnit layout changes so old cache entries miss.
CACHE_SCHEMA_VERSION = 1

_DEFAULT_CONCURRENCY = min(os.cpu_count() or 4, 8)


@dataclass(frozen=True)
class ExternalLib:
    """Link rule for symbols that live outside the documented project.

    ``url`` may contain ``{name}`` (the full qualified name) and ``{path}``
    (the qualified name with ``::`` replaced by ``/``).
    """

    pattern: str
    url: str

    def matches(self, qualified_name: str) -> bool:
        return qualified_name == self.pattern or qualified_name.startswith(self.pattern + "::")

    def format(self, qualified_name: str) -> str:
        return self.url.format(name=qualified_name, path=qualified_name.replace("::", "/"))


DEFAULT_EXTERNAL_LIBS: tuple[ExternalLib, ...] = (
    ExternalLib("std", "https://en.cppreference.com/mwiki/index.php?search={name}"),
)


@dataclass(frozen=True)
class EntityFilter:
    """Regex filter over entities.

    ``patterns_full`` are searched in the qualified name (``ns::Foo::bar``),
    ``patterns_name`` in the bare name (``bar``). An entity matches when
    any pattern does.
    """

    patterns_full: tuple[str, ...] = ()
    patterns_name: tuple[str, ...] = ()
    _compiled: tuple[tuple[re.Pattern[str], ...], tuple[re.Pattern[str], ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        compiled = []
        for key in ("patterns_full", "patterns_name"):
            patterns = []
            for pattern in getattr(self, key):
                try:
                    patterns.append(re.compile(pattern))
                except re.error as e:
                    raise InvalidConfigError(key, pattern, f"invalid regex: {e}")
            compiled.append(tuple(patterns))
        object.__setattr__(self, "_compiled", tuple(compiled))

    def matches(self, qualified_name: str, name: str) -> bool:
        full, bare = self._compiled
        return any(p.search(qualified_name) for p in full) or any(p.search(name) for p in bare)


@dataclass(frozen=True)
class ProjectConfig:
    """Configuration for one documentation build.

    Attributes:
        Project:
            project_name: Name shown in page descriptions
            version: Project version string
            repository: Project repository URL, shown on every page
            tree: URL prefix for browsing sources; enables "view source" links
            root: Directory that relative paths are resolved against

        Inputs:
            files: Source files or glob patterns (relative to root)
            exclude: Glob patterns removed from the expanded file list
            include_paths: Include directories (fingerprint + include paths on pages)
            defines: Object-like macro definitions applied before parsing
            standard: C++ language standard

        Performance:
            concurrency: Maximum number of parse jobs running at once
            timeout_seconds: Budget for a single parse job

        Caching:
            cache_enabled: Enable the content-addressed parse cache
            cache_dir: Directory for cache storage

        Behavior:
            strict: Fail a file on any syntax error instead of recovering
            external_libs: Link rules for symbols outside the project
            ignore: Entities that get no page
            include: Entities kept even when an ignore pattern matches

        Output:
            output_dir: Directory the page sink writes to
            verbosity: Logging verbosity level
    """

    project_name: str = "Project"
    version: str = "0.0.0"
    repository: Optional[str] = None
    tree: Optional[str] = None
    root: str = "."

    files: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    include_paths: list[str] = field(default_factory=list)
    defines: dict[str, str] = field(default_factory=dict)
    standard: Standard = "c++17"

    concurrency: int = _DEFAULT_CONCURRENCY
    timeout_seconds: float = 30.0

    cache_enabled: bool = True
    cache_dir: str = ".flashdoc-cache"

    strict: bool = False
    external_libs: tuple[ExternalLib, ...] = DEFAULT_EXTERNAL_LIBS
    ignore: Optional[EntityFilter] = None
    include: Optional[EntityFilter] = None

    output_dir: str = "docs"
    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.standard not in STANDARDS:
            raise InvalidConfigError(
                "standard", self.standard, f"expected one of {', '.join(STANDARDS)}"
            )
        if self.concurrency < 1:
            raise InvalidConfigError("concurrency", self.concurrency, "must be at least 1")
        if self.timeout_seconds <= 0:
            raise InvalidConfigError("timeout_seconds", self.timeout_seconds, "must be positive")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "expected quiet/normal/verbose")
        for name, value in self.defines.items():
            if not name.isidentifier():
                raise InvalidConfigError("defines", name, "macro names must be identifiers")
            if "\n" in str(value):
                raise InvalidConfigError("defines", name, "macro values must be single-line")

    @property
    def root_path(self) -> Path:
        return Path(self.root)

    def compile_args(self) -> CompileArgs:
        """Arguments handed to the parsing backend for every file."""
        return CompileArgs(
            include_paths=tuple(self.include_paths),
            defines=tuple(sorted((k, str(v)) for k, v in self.defines.items())),
            standard=self.standard,
            strict=self.strict,
        )

    def fingerprint(self) -> str:
        """Hash of everything that changes how a file parses.

        Include path order is significant; define order is not.
        """
        payload = {
            "schema": CACHE_SCHEMA_VERSION,
            "include_paths": list(self.include_paths),
            "defines": sorted((k, str(v)) for k, v in self.defines.items()),
            "standard": self.standard,
            "strict": self.strict,
        }
        config_str = json.dumps(payload, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    def resolve_sources(self) -> list[Path]:
        """Expand ``files`` and ``exclude`` into a sorted list of paths.

        Raises:
            InvalidPathError: If a literal (non-glob) entry does not exist
            InvalidConfigError: If nothing matched at all
        """
        root = self.root_path
        if not root.is_dir():
            raise InvalidPathError(root, "root is not a directory")

        excluded: set[Path] = set()
        for pattern in self.exclude:
            excluded.update(p.resolve() for p in root.glob(pattern))

        found: dict[Path, None] = {}
        for entry in self.files:
            if _is_glob(entry):
                if Path(entry).is_absolute():
                    raise InvalidConfigError("files", entry, "glob patterns must be relative")
                matches = sorted(p for p in root.glob(entry) if p.is_file())
            else:
                path = Path(entry) if Path(entry).is_absolute() else root / entry
                if not path.is_file():
                    raise InvalidPathError(path, "source file does not exist")
                matches = [path]
            for path in matches:
                if path.resolve() not in excluded:
                    found[path] = None

        if not found:
            raise InvalidConfigError("files", self.files, "no source files matched")
        return sorted(found)


def _is_glob(entry: str) -> bool:
    return any(ch in entry for ch in "*?[")


def load_config(
    config_file: Optional[Path] = None, root: Optional[Path] = None, **overrides: Any
) -> ProjectConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        root: Project root; defaults to the config file's directory or cwd
        **overrides: Direct overrides (typically from CLI flags)

    Returns:
        Validated ProjectConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict[str, Any] = {}

    if root is None:
        root = config_file.parent if config_file is not None else Path.cwd()

    project_config = root / CONFIG_FILE_NAME
    if project_config.exists() and project_config != config_file:
        merged.update(_read_config_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise InvalidPathError(config_file, "config file not found")
        merged.update(_read_config_file(config_file))

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update({k: v for k, v in overrides.items() if v is not None})
    merged.setdefault("root", str(root))

    libs = merged.pop("external_libs", None)
    if libs is not None:
        merged["external_libs"] = _parse_external_libs(libs)
    for key in ("ignore", "include"):
        if merged.get(key) is not None:
            merged[key] = _parse_filter(key, merged[key])

    try:
        return ProjectConfig(**merged)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")

    # [project] name/version map onto flat fields
    project = raw.pop("project", None)
    if isinstance(project, dict):
        if "name" in project:
            raw["project_name"] = project["name"]
        for key in ("version", "repository", "tree"):
            if key in project:
                raw[key] = project[key]
    return raw


def _parse_external_libs(libs: Any) -> tuple[ExternalLib, ...]:
    if isinstance(libs, tuple) and all(isinstance(lib, ExternalLib) for lib in libs):
        return libs
    if not isinstance(libs, list):
        raise InvalidConfigError("external_libs", libs, "expected a list of tables")
    parsed = []
    for lib in libs:
        if isinstance(lib, ExternalLib):
            parsed.append(lib)
            continue
        try:
            parsed.append(ExternalLib(pattern=lib["pattern"], url=lib["url"]))
        except (KeyError, TypeError):
            raise InvalidConfigError("external_libs", lib, "entries need 'pattern' and 'url'")
    return tuple(parsed)


def _parse_filter(key: str, value: Any) -> EntityFilter:
    if isinstance(value, EntityFilter):
        return value
    if not isinstance(value, dict):
        raise InvalidConfigError(key, value, "expected a table of patterns_full/patterns_name")
    unknown = set(value) - {"patterns_full", "patterns_name"}
    if unknown:
        raise InvalidConfigError(key, sorted(unknown), "unknown filter keys")
    patterns = {}
    for name in ("patterns_full", "patterns_name"):
        entries = value.get(name, [])
        if not isinstance(entries, list) or not all(isinstance(p, str) for p in entries):
            raise InvalidConfigError(key, entries, f"{name} must be a list of strings")
        patterns[name] = tuple(entries)
    return EntityFilter(**patterns)


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from FLASHDOC_* environment variables.

    Supported environment variables:
        FLASHDOC_CONCURRENCY: int
        FLASHDOC_TIMEOUT_SECONDS: float
        FLASHDOC_CACHE_ENABLED: bool (true/false/1/0)
        FLASHDOC_CACHE_DIR: str
        FLASHDOC_STANDARD: c++11/c++14/c++17/c++20/c++23
        FLASHDOC_STRICT: bool
        FLASHDOC_OUTPUT_DIR: str
        FLASHDOC_REPOSITORY: str
        FLASHDOC_TREE: str
        FLASHDOC_VERBOSITY: quiet/normal/verbose

    Returns:
        Dict of field_name -> parsed_value for any FLASHDOC_* vars found.
    """
    type_hints = get_type_hints(ProjectConfig)

    result: dict[str, Any] = {}

    for field_name in ProjectConfig.__dataclass_fields__:
        env_key = f"FLASHDOC_{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
            if parsed is not None:
                result[field_name] = parsed
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type.

    Returns None for types that cannot be expressed as a single string
    (lists, dicts, tuples).

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    if origin is Union:
        args = [a for a in type_hint.__args__ if a is not type(None)]
        return _parse_env_value(value, args[0]) if len(args) == 1 else None

    if origin in (list, dict, tuple) or type_hint in (list, dict, tuple):
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None
