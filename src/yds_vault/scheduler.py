"""Timer ownership for polling, delayed actions and retries.

Every interval and delayed callback in the client is created through a
``Scheduler`` so that closing the owning session cancels all of them.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import backoff

from .logger import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


@dataclass(frozen=True)
class RetryPolicy:
    """Constant-interval retry policy.

    Attributes:
        max_tries: Total attempts, including the first one
        interval: Seconds to wait between attempts
    """

    max_tries: int = 1
    interval: float = 0.0

    def __post_init__(self) -> None:
        if self.max_tries < 1:
            raise ValueError(f"max_tries must be at least 1, got {self.max_tries}")
        if self.interval < 0:
            raise ValueError(f"interval must be non-negative, got {self.interval}")

    def retrying(
        self,
        exceptions: type[Exception] | tuple[type[Exception], ...],
        *,
        on_backoff: Callable[[dict[str, Any]], None] | None = None,
    ) -> Callable[[F], F]:
        """Decorator retrying an async callable on ``exceptions`` under this policy."""
        handlers = [on_backoff] if on_backoff is not None else []
        return backoff.on_exception(
            backoff.constant,
            exceptions,
            max_tries=self.max_tries,
            interval=self.interval,
            jitter=None,
            on_backoff=handlers,
            logger=None,
        )


class Subscription:
    """Handle for a scheduled timer; ``cancel()`` releases it."""

    def __init__(self, name: str, task: asyncio.Task) -> None:
        self.name = name
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    def __repr__(self) -> str:
        return f"Subscription({self.name!r}, active={self.active})"


async def _invoke(fn: Callable[..., Any], *args: Any) -> None:
    result = fn(*args)
    if inspect.isawaitable(result):
        await result


class Scheduler:
    """Owns every interval and delayed callback of one session.

    Callbacks may be plain functions or coroutine functions. A callback that
    raises is logged and, for intervals, the interval keeps running.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def _spawn(self, name: str, coro: Awaitable[None]) -> Subscription:
        if self._closed:
            raise RuntimeError("Scheduler is closed")
        task = asyncio.get_running_loop().create_task(coro, name=name)  # type: ignore[arg-type]
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return Subscription(name, task)

    def every(
        self,
        interval: float,
        fn: Callable[..., Any],
        *args: Any,
        name: str | None = None,
        immediate: bool = True,
    ) -> Subscription:
        """Run ``fn`` every ``interval`` seconds until cancelled."""
        label = name or getattr(fn, "__name__", "interval")

        async def _loop() -> None:
            if not immediate:
                await asyncio.sleep(interval)
            while True:
                try:
                    await _invoke(fn, *args)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Interval callback '%s' failed", label)
                await asyncio.sleep(interval)

        return self._spawn(label, _loop())

    def call_later(
        self,
        delay: float,
        fn: Callable[..., Any],
        *args: Any,
        name: str | None = None,
    ) -> Subscription:
        """Run ``fn`` once after ``delay`` seconds unless cancelled first."""
        label = name or getattr(fn, "__name__", "delayed")

        async def _delayed() -> None:
            await asyncio.sleep(delay)
            try:
                await _invoke(fn, *args)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Delayed callback '%s' failed", label)

        return self._spawn(label, _delayed())

    async def close(self) -> None:
        """Cancel every outstanding timer and wait for them to unwind."""
        self._closed = True
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def __aenter__(self) -> "Scheduler":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
