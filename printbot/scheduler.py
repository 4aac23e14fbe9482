"""Timer primitives used for retry delays, deferred removal and sweeps.

Components never call asyncio.sleep or loop.call_later directly; they go
through a Scheduler so tests can drive virtual time.
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Set

logger = logging.getLogger("printbot.scheduler")

Callback = Callable[[], Any]


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...


class Scheduler(ABC):

    @abstractmethod
    def now(self) -> float:
        """Wall-clock seconds."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Run callback (sync or async) once after delay."""

    @abstractmethod
    def every(self, interval: float, callback: Callback) -> TimerHandle:
        """Run callback (sync or async) repeatedly every interval."""

    @abstractmethod
    def close(self) -> None:
        """Cancel every pending timer."""


class _LoopTimer(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class _TaskTimer(TimerHandle):
    def __init__(self, task: asyncio.Task):
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio loop and time.time()."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._timers: Set[TimerHandle] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        timer: Optional[TimerHandle] = None

        def _fire():
            self._timers.discard(timer)
            self._run(callback)

        timer = _LoopTimer(self.loop.call_later(delay, _fire))
        self._timers.add(timer)
        return timer

    def every(self, interval: float, callback: Callback) -> TimerHandle:
        async def _tick():
            while True:
                await asyncio.sleep(interval)
                try:
                    result = callback()
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("Periodic task %s failed", getattr(callback, "__name__", callback))

        timer = _TaskTimer(self.loop.create_task(_tick()))
        self._timers.add(timer)
        return timer

    def close(self) -> None:
        for timer in list(self._timers):
            timer.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()

    def _run(self, callback: Callback) -> None:
        try:
            result = callback()
        except Exception:
            logger.exception("Timer callback %s failed", getattr(callback, "__name__", callback))
            return
        if inspect.isawaitable(result):
            task = self.loop.create_task(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
