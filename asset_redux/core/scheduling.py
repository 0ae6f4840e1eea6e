"""
Scheduling primitives for the refresh coordinator and asynchronous decodes.

The engine never assumes a specific event loop. Hosts either drive a
:class:`FrameScheduler` from their own update loop (``tick(dt)`` once per
frame) or hand the engine an :class:`AsyncioScheduler`.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections import deque
from concurrent.futures import Executor, Future
from typing import Any, Callable, Deque, List, Optional, Protocol, Tuple, TypeVar

from .logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class ScheduledHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle: ...

    def call_soon(self, callback: Callable[[], None]) -> ScheduledHandle: ...

    def submit(
        self, work: Callable[[], T], on_done: Callable[[Optional[T]], None]
    ) -> None: ...


def _run_work(work: Callable[[], T]) -> Optional[T]:
    try:
        return work()
    except Exception as exc:
        log.error(f"[Scheduler] Background work failed: {exc}")
        return None


def _run_callback(callback: Callable[..., None], *args: Any) -> None:
    try:
        callback(*args)
    except Exception:
        log.exception("[Scheduler] Callback raised")


class _Timer:
    __slots__ = ("due", "seq", "callback", "cancelled")

    def __init__(self, due: float, seq: int, callback: Callable[[], None]):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "_Timer") -> bool:
        return (self.due, self.seq) < (other.due, other.seq)


class FrameScheduler:
    """Scheduler driven by explicit ``tick(dt)`` calls from the host loop."""

    def __init__(self, executor: Optional[Executor] = None):
        self.now = 0.0
        self._executor = executor
        self._seq = itertools.count()
        self._timers: List[_Timer] = []
        self._soon: Deque[_Timer] = deque()
        self._futures: List[Tuple[Future, Callable[[Any], None]]] = []
        self._completions: Deque[Tuple[Callable[[Any], None], Any]] = deque()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(self.now + max(0.0, delay), next(self._seq), callback)
        heapq.heappush(self._timers, timer)
        return timer

    def call_soon(self, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(self.now, next(self._seq), callback)
        self._soon.append(timer)
        return timer

    def submit(
        self, work: Callable[[], T], on_done: Callable[[Optional[T]], None]
    ) -> None:
        if self._executor is None:
            self._completions.append((on_done, _run_work(work)))
        else:
            self._futures.append((self._executor.submit(_run_work, work), on_done))

    def tick(self, dt: float = 0.0) -> None:
        """Advance the clock and run everything that became due.

        Work scheduled by callbacks during this tick runs on a later tick.
        """
        self.now += dt

        completions = list(self._completions)
        self._completions.clear()
        still_running = []
        for future, on_done in self._futures:
            if future.done():
                completions.append((on_done, future.result()))
            else:
                still_running.append((future, on_done))
        self._futures = still_running

        batch = list(self._soon)
        self._soon.clear()

        due: List[_Timer] = []
        while self._timers and self._timers[0].due <= self.now:
            due.append(heapq.heappop(self._timers))
        for timer in due:
            if not timer.cancelled:
                _run_callback(timer.callback)

        for timer in batch:
            if not timer.cancelled:
                _run_callback(timer.callback)

        for on_done, result in completions:
            _run_callback(on_done, result)

    def run_until_idle(self, step: float = 0.0, max_ticks: int = 10_000) -> int:
        """Tick until nothing is queued. Returns the number of ticks taken."""
        ticks = 0
        while self.has_pending() and ticks < max_ticks:
            if not self._soon and not self._completions and not self._futures:
                live = [t for t in self._timers if not t.cancelled]
                if live:
                    self.tick(max(step, min(t.due for t in live) - self.now))
                    ticks += 1
                    continue
            self.tick(step)
            ticks += 1
        return ticks

    def has_pending(self) -> bool:
        return bool(
            any(not t.cancelled for t in self._timers)
            or any(not t.cancelled for t in self._soon)
            or self._futures
            or self._completions
        )


class AsyncioScheduler:
    """Adapter over an asyncio event loop; completions run on the loop thread."""

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        executor: Optional[Executor] = None,
    ):
        self._loop = loop or asyncio.get_running_loop()
        self._executor = executor

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)

    def call_soon(self, callback: Callable[[], None]) -> asyncio.Handle:
        return self._loop.call_soon(callback)

    def submit(
        self, work: Callable[[], T], on_done: Callable[[Optional[T]], None]
    ) -> None:
        future = self._loop.run_in_executor(self._executor, _run_work, work)

        def _deliver(fut: "asyncio.Future[Optional[T]]") -> None:
            _run_callback(on_done, None if fut.cancelled() else fut.result())

        future.add_done_callback(_deliver)
