"""Periodic rotation of the displayed item and its progress indicator."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping, Sequence

from .config import clamp_interval
from .models import Item, RotationState
from .selector import sample_items, select

logger = logging.getLogger(__name__)

ROTATION_TIMER = "rotation"
PROGRESS_TIMER = "progress"
PROGRESS_PERIOD = 0.1  # seconds


class RotationScheduler:
    """Re-selects items on a timer while signed in with items loaded.

    Two timers run while active: the rotation tick every
    ``rotation_interval`` seconds and the progress tick every 100 ms.
    Both stop as soon as the session ends or the collection empties.
    """

    def __init__(
        self,
        timers,
        session_active: Callable[[], bool],
        rotation_interval: int = 60,
        table_rows: int = 10,
        weights: Mapping[str, int] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._timers = timers
        self._session_active = session_active
        self._interval = clamp_interval(rotation_interval)
        self.table_rows = table_rows
        self.weights: Mapping[str, int] = dict(weights or {})
        self._rng = rng or random.Random()
        self._items: list[Item] = []
        self._state = RotationState()
        self._running = False
        # Callbacks from an earlier activation compare against this and bail
        self._generation = 0

    @property
    def state(self) -> RotationState:
        return self._state

    @property
    def items(self) -> list[Item]:
        return list(self._items)

    @property
    def rotation_interval(self) -> int:
        return self._interval

    @property
    def running(self) -> bool:
        return self._running

    @property
    def progress_increment(self) -> float:
        return 100 / (self._interval * 10)

    def set_items(self, items: Sequence[Item]) -> None:
        """Replace the collection and re-run the initial selection."""
        self._items = list(items)
        logger.info("Rotation collection: %d items", len(self._items))
        if self._should_run():
            self._activate()
        else:
            self._deactivate()

    def refresh(self) -> None:
        """Re-check the active precondition after a session change."""
        if self._should_run():
            if not self._running:
                self._activate()
        else:
            self._deactivate()

    def set_interval(self, seconds: int) -> None:
        """Change the rotation period, restarting both timers if running."""
        interval = clamp_interval(seconds)
        if interval == self._interval:
            return
        self._interval = interval
        if self._running:
            self._generation += 1
            self._state.progress = 0.0
            self._start_timers()
            logger.info("Rotation interval changed to %d s", interval)

    def replace_item(self, item: Item) -> None:
        """Swap in an updated copy of an item with the same row index."""
        self._items = [item if i.row_index == item.row_index else i for i in self._items]
        state = self._state
        if state.current_item is not None and state.current_item.row_index == item.row_index:
            state.current_item = item
        state.sampled_items = [
            item if i.row_index == item.row_index else i for i in state.sampled_items
        ]

    def stop(self) -> None:
        """Cancel both timers. The collection is kept."""
        self._deactivate()

    def _should_run(self) -> bool:
        return bool(self._items) and self._session_active()

    def _activate(self) -> None:
        self._generation += 1
        self._select()
        self._start_timers()
        self._running = True

    def _deactivate(self) -> None:
        self._generation += 1
        self._timers.cancel(ROTATION_TIMER)
        self._timers.cancel(PROGRESS_TIMER)
        if self._running:
            logger.info("Rotation stopped")
        self._running = False
        if not self._items:
            self._state = RotationState()

    def _start_timers(self) -> None:
        generation = self._generation
        self._timers.every(ROTATION_TIMER, self._interval, lambda: self._on_rotate(generation))
        self._timers.every(PROGRESS_TIMER, PROGRESS_PERIOD, lambda: self._on_progress(generation))
        logger.info("Rotation every %d s", self._interval)

    def _select(self) -> None:
        self._state.current_item = select(self._items, self.weights, self._rng)
        self._state.sampled_items = sample_items(
            self._items, self.weights, self.table_rows, self._rng
        )
        self._state.progress = 0.0
        logger.debug("Showing %s", self._state.current_item.name)

    def _on_rotate(self, generation: int) -> None:
        if generation != self._generation or not self._should_run():
            return
        self._select()

    def _on_progress(self, generation: int) -> None:
        if generation != self._generation or not self._should_run():
            return
        progress = self._state.progress + self.progress_increment
        self._state.progress = 0.0 if progress >= 100 else progress
