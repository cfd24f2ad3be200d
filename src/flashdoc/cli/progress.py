"""Progress display for the build command."""

from __future__ import annotations

import threading
from pathlib import Path

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from ..build import JobEvent, JobState


class BuildProgress:
    """Rich progress bar driven by scheduler job events.

    Used as the scheduler's ProgressReporter: ``__call__`` is invoked from
    worker threads and only advances the bar.
    """

    def __init__(self, total: int, console: Console | None = None):
        self.console = console or Console(stderr=True)
        self.total = total
        self._lock = threading.Lock()
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.cached = 0
        self.parsed = 0
        self.failed = 0

    def __enter__(self) -> BuildProgress:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def start(self) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40, complete_style="cyan", finished_style="green"),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._progress.start()
        self._task_id = self._progress.add_task("Parsing", total=self.total)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    def __call__(self, event: JobEvent) -> None:
        if not event.new.is_terminal:
            return
        with self._lock:
            if event.new is JobState.FAILED:
                self.failed += 1
            elif event.previous is JobState.CACHE_HIT:
                self.cached += 1
            else:
                self.parsed += 1
        if self._progress is not None and self._task_id is not None:
            self._progress.update(
                self._task_id, advance=1, description=f"Parsing {Path(event.path).name}"
            )
