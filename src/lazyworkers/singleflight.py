"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Per-key deduplication of concurrent asynchronous operations.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, Generic, TypeVar

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Avoid "Task exception was never retrieved" when every waiter was cancelled.
    if not task.cancelled():
        task.exception()


class SingleFlight(Generic[K, T]):
    """
    Share one in-flight execution per key among all concurrent callers.

    The first caller for a key starts the operation; callers arriving while it
    is pending join it and observe the same value or the same exception. The
    pending record is dropped inside the shared task before it settles, so a
    caller that resumes with the outcome can immediately start a fresh
    attempt for the same key.
    """

    def __init__(self) -> None:
        self._tasks: dict[K, asyncio.Task[T]] = {}

    async def run(
        self,
        key: K,
        operation: Callable[[], Awaitable[T]],
        *,
        on_first: Callable[[], None] | None = None,
        on_not_first: Callable[[], None] | None = None,
    ) -> T:
        """
        Run `operation` for `key`, or join the execution already pending.

        Args:
            key: Identity used to deduplicate concurrent calls.
            operation: Zero-argument callable returning an awaitable.
            on_first: Invoked synchronously when this call starts a new execution.
            on_not_first: Invoked synchronously when this call joins a pending one.

        Cancelling one caller never cancels the shared execution.
        """
        existing = self._tasks.get(key)
        if existing is not None:
            if on_not_first is not None:
                on_not_first()
            return await asyncio.shield(existing)

        if on_first is not None:
            on_first()
        task: asyncio.Task[T] = asyncio.create_task(self._execute(key, operation))
        self._tasks[key] = task
        # Also covers tasks cancelled before their coroutine ever ran.
        task.add_done_callback(lambda done: self._forget(key, done))
        task.add_done_callback(_consume_exception)
        return await asyncio.shield(task)

    def pending(self, key: K) -> bool:
        """Whether an execution is currently in flight for `key`."""
        return key in self._tasks

    @property
    def pending_count(self) -> int:
        """Number of keys with an in-flight execution."""
        return len(self._tasks)

    async def _execute(self, key: K, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        finally:
            self._forget(key, asyncio.current_task())

    def _forget(self, key: K, task: asyncio.Task[Any] | None) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
