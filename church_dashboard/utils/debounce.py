"""Cancellable timers and a trailing-edge debouncer for async actions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass, field
from typing import Any, Protocol

from church_dashboard.core.logging import get_logger

logger = get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Minimal `call_later` surface, satisfied by an asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class LoopScheduler:
    """Schedules on the running asyncio loop (wall-clock timers)."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback, *args)


@dataclass
class ManualTimer:
    when: float
    callback: Callable[..., Any]
    args: tuple[Any, ...] = field(default_factory=tuple)
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fake clock: timers only fire when `advance()` moves time past them."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualTimer:
        timer = ManualTimer(when=self.now + delay, callback=callback, args=args)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every timer that came due.

        Returns:
            Number of callbacks fired.
        """
        self.now += seconds
        due = sorted(
            (t for t in self._timers if not t.cancelled and t.when <= self.now),
            key=lambda t: t.when,
        )
        self._timers = [t for t in self._timers if not t.cancelled and t.when > self.now]
        for timer in due:
            timer.callback(*timer.args)
        return len(due)

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)


class Debouncer:
    """Coalesces rapid `schedule()` calls per key; only the trailing call runs."""

    def __init__(self, delay: float, scheduler: Scheduler | None = None) -> None:
        self.delay = delay
        self.scheduler = scheduler or LoopScheduler()
        self._handles: dict[Hashable, TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, key: Hashable, action: Callable[[], Awaitable[None]]) -> None:
        self.cancel(key)
        self._handles[key] = self.scheduler.call_later(self.delay, self._fire, key, action)

    def cancel(self, key: Hashable) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._handles

    async def drain(self) -> None:
        """Wait for every action that has already fired."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self, key: Hashable, action: Callable[[], Awaitable[None]]) -> None:
        self._handles.pop(key, None)
        task = asyncio.ensure_future(action())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Debounced action failed: {error}", exc_info=error)
