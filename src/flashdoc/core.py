"""Main pipeline orchestrator for flashdoc.

One build runs the stages strictly in order:

    sources -> BuildScheduler (cache-checked parse + adapt, concurrent)
            -> EntityModel.freeze (merge across units)
            -> ReferenceResolver (whole-graph pass)
            -> PageRenderer (pages + navigation)

The resolver only ever sees a model built after every parse job has
terminated. Each build starts from an empty model, so a file that fails
in this run contributes nothing; unchanged files are served from the
cache without touching the parsing backend.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .build import BuildScheduler, BuildSummary, ProgressReporter
from .build.scheduler import ParsingBackend
from .cache import DocCache
from .config import ProjectConfig
from .diagnostics import DiagnosticsReport
from .logging_config import get_logger
from .model import EntityModel, FrozenModel
from .render import NavItem, Page, PageRenderer
from .resolve import CrossReferenceIndex, ReferenceResolver, unresolved_diagnostics
from .scanning import TreeSitterBackend

logger = get_logger(__name__)


@dataclass(frozen=True)
class BuildResult:
    """Everything one build produced."""

    model: FrozenModel
    index: CrossReferenceIndex
    pages: tuple[Page, ...]
    nav: NavItem
    diagnostics: DiagnosticsReport
    summary: BuildSummary

    def page(self, entity_id: str) -> Optional[Page]:
        for page in self.pages:
            if page.id == entity_id:
                return page
        return None


class DocBuilder:
    """Runs the documentation pipeline for one project configuration.

    The cache is opened lazily from ``config.cache_dir`` unless one is
    passed in; a builder-owned cache is closed by ``close()``.
    """

    def __init__(
        self,
        config: ProjectConfig,
        backend: Optional[ParsingBackend] = None,
        cache: Optional[DocCache] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.config = config
        self.backend = backend
        self.cache = cache
        self.reporter = reporter
        self.cancel_event = threading.Event()
        self._owns_cache = cache is None

    def __enter__(self) -> "DocBuilder":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def cancel(self) -> None:
        self.cancel_event.set()

    def close(self) -> None:
        if self._owns_cache and self.cache is not None:
            self.cache.close()
            self.cache = None

    def _cache_dir(self) -> Path:
        cache_dir = Path(self.config.cache_dir)
        return cache_dir if cache_dir.is_absolute() else self.config.root_path / cache_dir

    def build(self, paths: Optional[Sequence[Path | str]] = None) -> BuildResult:
        """
        Run one full build.

        Args:
            paths: Source files; defaults to the config's expanded file globs

        Returns:
            BuildResult with the frozen model, references, pages and diagnostics

        Raises:
            ConfigurationError: If the file list cannot be resolved
            BackendUnavailableError: If the parsing backend cannot be loaded
        """
        config = self.config
        sources = list(paths) if paths is not None else config.resolve_sources()
        logger.info(f"Building docs for {config.project_name}: {len(sources)} files")

        if self.backend is None:
            self.backend = TreeSitterBackend()
        if self.cache is None:
            self.cache = DocCache.open(str(self._cache_dir()), enabled=config.cache_enabled)
        self.cache.reset_stats()

        scheduler = BuildScheduler(
            backend=self.backend,
            compile_args=config.compile_args(),
            fingerprint=config.fingerprint(),
            concurrency=config.concurrency,
            timeout_seconds=config.timeout_seconds,
            cache=self.cache,
            reporter=self.reporter,
            cancel_event=self.cancel_event,
        )
        model = EntityModel()
        summary = scheduler.run(sources, model)

        # Every job is terminal from here on.
        frozen = model.freeze()
        resolver = ReferenceResolver(
            frozen, external_libs=config.external_libs, max_workers=config.concurrency
        )
        index = resolver.resolve()

        renderer = PageRenderer(
            frozen,
            index,
            project_name=config.project_name,
            include_dirs=[self._include_dir(p) for p in config.include_paths],
            root=config.root_path,
            repository=config.repository,
            tree=config.tree,
            ignore=config.ignore,
            include=config.include,
        )
        pages = tuple(renderer.render_all())
        nav = renderer.nav_tree()

        diagnostics = DiagnosticsReport.collect(
            summary.diagnostics,
            frozen.diagnostics,
            index.diagnostics,
            unresolved_diagnostics(index, frozen),
            self.cache.diagnostics(),
        )
        logger.info(
            f"Built {len(pages)} pages from {len(frozen)} entities "
            f"({len(diagnostics)} diagnostics)"
        )
        return BuildResult(frozen, index, pages, nav, diagnostics, summary)

    def _include_dir(self, entry: str) -> Path:
        path = Path(entry)
        return path if path.is_absolute() else self.config.root_path / path
