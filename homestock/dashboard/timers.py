"""Named, cancellable timers on top of APScheduler."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


class Timers:
    """Interval and one-shot timers keyed by name.

    Uses APScheduler's AsyncIOScheduler so every callback runs on the event
    loop thread. Scheduling a name that is already in use replaces the old
    job, so a name never has more than one pending job.
    """

    def __init__(self, scheduler=None) -> None:
        """Initialize with an optional pre-built scheduler.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.date import DateTrigger
            from apscheduler.triggers.interval import IntervalTrigger
        except ImportError:
            raise ImportError("apscheduler is required: pip install apscheduler")

        self._scheduler = scheduler or AsyncIOScheduler()
        self._IntervalTrigger = IntervalTrigger
        self._DateTrigger = DateTrigger
        self._running = False

    def start(self) -> None:
        """Start firing jobs. Must be called with a running event loop."""
        if not self._running:
            self._scheduler.start()
            self._running = True
            logger.info("Timers started")

    def shutdown(self) -> None:
        """Cancel every job and stop the scheduler."""
        self._scheduler.remove_all_jobs()
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Timers stopped")

    @property
    def running(self) -> bool:
        return self._running

    def every(self, name: str, seconds: float, func: Callable) -> None:
        """Run ``func`` every ``seconds``, first firing one period from now."""
        self.cancel(name)
        self._scheduler.add_job(
            _as_coroutine(func),
            trigger=self._IntervalTrigger(seconds=seconds),
            id=name,
            name=name,
            coalesce=True,
            max_instances=1,
        )

    def once(self, name: str, delay: float, func: Callable) -> None:
        """Run ``func`` once after ``delay`` seconds."""
        self.cancel(name)
        run_at = datetime.now(timezone.utc) + timedelta(seconds=max(0.0, delay))
        self._scheduler.add_job(
            _as_coroutine(func),
            trigger=self._DateTrigger(run_date=run_at),
            id=name,
            name=name,
            misfire_grace_time=None,
        )

    def cancel(self, name: str) -> None:
        if self._scheduler.get_job(name) is not None:
            self._scheduler.remove_job(name)

    def active(self, name: str) -> bool:
        return self._scheduler.get_job(name) is not None

    def names(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]


def _as_coroutine(func: Callable) -> Callable:
    """Wrap ``func`` so APScheduler runs it on the loop, not in a thread."""

    async def run():
        result = func()
        if inspect.isawaitable(result):
            await result

    run.__name__ = getattr(func, "__name__", "timer")
    return run
