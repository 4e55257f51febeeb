# -*- coding: utf-8 -*-
"""
Progress rendering for translation jobs.

The orchestrator pushes TranslationProgress events to an observer;
ProgressReporter is an observer that renders them:
- Terminal (with rich progress bars)
- Headless environments (with plain status lines)
"""

import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from sheettrans.core.models import TranslationProgress

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Render TranslationProgress events.

    Usage:
        with ProgressReporter() as progress:
            await orchestrator.translate(..., on_progress=progress)
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        use_rich: Optional[bool] = None
    ):
        self.console = console or Console()
        if use_rich is None:
            use_rich = sys.stdout.isatty()
        self.use_rich = use_rich
        self.events: List[TranslationProgress] = []

        self._progress: Optional[Progress] = None
        self._task_id = None

    def __call__(self, event: TranslationProgress) -> None:
        if self.events and event.current_chunk < self.events[-1].current_chunk:
            logger.warning(
                f"Progress went backwards: {self.events[-1].current_chunk} -> {event.current_chunk}"
            )
        self.events.append(event)

        if self.use_rich:
            self._render_rich(event)
        else:
            self.console.print(
                f"[{event.current_chunk}/{event.total_chunks}] {event.current_step}",
                highlight=False
            )

    @property
    def last(self) -> Optional[TranslationProgress]:
        return self.events[-1] if self.events else None

    def start(self):
        """Start progress tracking."""
        if self.use_rich and self._progress is None:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(bar_width=40),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=self.console,
            )
            self._progress.start()

    def finish(self):
        """Finish progress tracking."""
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._task_id = None

    def _render_rich(self, event: TranslationProgress):
        if self._progress is None:
            self.start()
        if self._task_id is None:
            self._task_id = self._progress.add_task(event.current_step, total=event.total_chunks)
        self._progress.update(
            self._task_id,
            completed=event.current_chunk,
            total=event.total_chunks,
            description=event.current_step
        )

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
        return False
