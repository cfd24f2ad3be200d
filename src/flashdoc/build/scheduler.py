"""BuildScheduler: runs one parse job per source file on a bounded pool.

Each job reads the file, consults the cache and, on a miss, runs the
native backend and the AST adapter. Completed SourceUnits are merged into
the EntityModel by the calling thread. ``run`` returns only after every
job is DONE or FAILED, which is the barrier the resolver waits for.

Timeouts are enforced by the calling thread: a job running longer than
``timeout_seconds`` is marked FAILED and abandoned. Its worker thread may
keep running, but its result is discarded and never cached.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from ..cache import DocCache, FileKey
from ..exceptions import Diagnostic, ErrorCode, JobTimeoutError, ParseError, Severity
from ..logging_config import get_logger
from ..model.store import EntityModel
from ..scanning.adapter import EntityAdapter
from ..scanning.models import CompileArgs, SourceUnit, TranslationUnit
from ..scanning.treesitter_parser import hash_content
from .jobs import Job, JobEvent, JobState, ProgressReporter

logger = get_logger(__name__)

CANCELLED = "cancelled"


class ParsingBackend(Protocol):
    def parse_translation_unit(self, path: Path, args: CompileArgs) -> TranslationUnit: ...


class UnitAdapter(Protocol):
    def adapt(self, tu: TranslationUnit, fingerprint: str) -> SourceUnit: ...


@dataclass(frozen=True)
class BuildSummary:
    """Outcome of one scheduler run."""

    jobs: tuple[Job, ...]
    backend_invocations: int
    diagnostics: tuple[Diagnostic, ...]

    @property
    def done(self) -> list[Job]:
        return [j for j in self.jobs if j.state is JobState.DONE]

    @property
    def failed(self) -> list[Job]:
        return [j for j in self.jobs if j.state is JobState.FAILED]

    @property
    def cancelled(self) -> list[Job]:
        return [j for j in self.failed if j.error == CANCELLED]

    @property
    def cache_hits(self) -> int:
        return sum(1 for j in self.jobs if j.from_cache and j.state is JobState.DONE)


class BuildScheduler:
    """Bounded, cache-aware parse job runner."""

    def __init__(
        self,
        backend: ParsingBackend,
        compile_args: CompileArgs,
        fingerprint: str,
        concurrency: int = 4,
        timeout_seconds: float = 30.0,
        cache: Optional[DocCache] = None,
        adapter: Optional[UnitAdapter] = None,
        reporter: Optional[ProgressReporter] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.backend = backend
        self.compile_args = compile_args
        self.fingerprint = fingerprint
        self.concurrency = concurrency
        self.timeout_seconds = timeout_seconds
        self.cache = cache
        self.adapter = adapter or EntityAdapter()
        self.reporter = reporter
        self.cancel_event = cancel_event or threading.Event()

        self._lock = threading.Lock()
        self._abandoned: set[int] = set()
        self.backend_invocations = 0
        self.diagnostics: list[Diagnostic] = []

    def cancel(self) -> None:
        """Stop starting new jobs; running jobs finish or time out."""
        self.cancel_event.set()

    # ── Run ──────────────────────────────────────────────────────

    def run(self, paths: Sequence[Path | str], model: EntityModel) -> BuildSummary:
        jobs = [Job(id=i, path=str(p)) for i, p in enumerate(paths)]
        if not jobs:
            return BuildSummary((), 0, ())

        poll = min(0.05, self.timeout_seconds / 10)
        executor = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="flashdoc-parse")
        try:
            futures: dict[Future, Job] = {executor.submit(self._run_job, job): job for job in jobs}
            pending = set(futures)

            while pending:
                done, pending = wait(pending, timeout=poll, return_when=FIRST_COMPLETED)
                for future in done:
                    self._finish(futures[future], future, model)

                now = time.monotonic()
                for future in list(pending):
                    job = futures[future]
                    started = job.started_at
                    if started is not None and now - started > self.timeout_seconds:
                        pending.discard(future)
                        with self._lock:
                            self._abandoned.add(job.id)
                        error = JobTimeoutError(Path(job.path), self.timeout_seconds)
                        self._fail(job, ErrorCode.FD600, f"{error.message} after {self.timeout_seconds:g}s")
                    elif self.cancel_event.is_set() and future.cancel():
                        pending.discard(future)
                        self._fail(job, ErrorCode.FD601, CANCELLED)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        summary = BuildSummary(tuple(jobs), self.backend_invocations, tuple(self.diagnostics))
        logger.info(
            f"Build finished: {len(summary.done)} done ({summary.cache_hits} cached), "
            f"{len(summary.failed)} failed"
        )
        return summary

    # ── Worker side ──────────────────────────────────────────────

    def _run_job(self, job: Job) -> Optional[SourceUnit]:
        if self.cancel_event.is_set():
            return None
        job.started_at = time.monotonic()
        path = Path(job.path)

        try:
            raw = path.read_bytes()
        except OSError as e:
            raise ParseError(path, f"cannot read file: {e.strerror or e}")

        key = FileKey(job.path, hash_content(raw), self.fingerprint)
        if self.cache is not None:
            cached = self.cache.lookup(key)
            if cached is not None:
                job.from_cache = True
                self._transition(job, JobState.CACHE_HIT)
                return cached.unit

        if not self._transition(job, JobState.PARSING):
            return None
        with self._lock:
            self.backend_invocations += 1

        tu = self.backend.parse_translation_unit(path, self.compile_args)
        unit = self.adapter.adapt(tu, self.fingerprint)

        with self._lock:
            abandoned = job.id in self._abandoned
        if self.cache is not None and not abandoned:
            self.cache.store(FileKey(job.path, unit.content_hash, self.fingerprint), unit)
        return unit

    # ── Calling-thread side ──────────────────────────────────────

    def _finish(self, job: Job, future: Future, model: EntityModel) -> None:
        try:
            unit = future.result()
        except ParseError as e:
            code = ErrorCode.FD100 if e.reason.startswith("cannot read") else ErrorCode.FD101
            self._fail(job, code, e.reason)
            return
        except Exception as e:
            logger.debug(f"Job for {job.path} raised", exc_info=True)
            self._fail(job, ErrorCode.FD602, f"{type(e).__name__}: {e}")
            return

        if unit is None:
            self._fail(job, ErrorCode.FD601, CANCELLED)
            return

        job.unit = unit
        if self._transition(job, JobState.DONE):
            model.add_unit(unit)

    def _fail(self, job: Job, code: ErrorCode, reason: str) -> None:
        if not self._transition(job, JobState.FAILED, reason):
            return
        job.error = reason
        job.error_code = code
        job.unit = None
        severity = Severity.INFO if code is ErrorCode.FD601 else Severity.ERROR
        diagnostic = Diagnostic(code, reason, path=job.path, severity=severity)
        with self._lock:
            self.diagnostics.append(diagnostic)
        if severity is Severity.ERROR:
            logger.warning(str(diagnostic))
        else:
            logger.info(str(diagnostic))

    def _transition(self, job: Job, new: JobState, reason: Optional[str] = None) -> bool:
        with self._lock:
            if not job.can_move_to(new):
                return False
            previous = job.state
            job.state = new
        self._emit(JobEvent(job.id, job.path, previous, new, reason))
        return True

    def _emit(self, event: JobEvent) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter(event)
        except Exception as e:
            logger.warning(f"Progress reporter failed on {event.path}: {e}")
