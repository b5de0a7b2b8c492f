"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Get-or-launch dispatcher: maps a request key to the route of a running worker.
"""

from __future__ import annotations

import asyncio
import itertools
import logging

from .errors import InvalidKeyError, LaunchTimeoutError
from .metrics import DispatcherMetrics, NoOpDispatcherMetrics
from .registry import WorkerEntry, WorkerRegistry
from .singleflight import SingleFlight
from .types import RouteAllocator, WorkerLauncher

logger = logging.getLogger("lazyworkers.dispatcher")


class Dispatcher:
    """
    Resolve request keys to worker routes, launching workers on first use.

    At most one launch is in flight per key. Concurrent first-use callers all
    join that launch and see the same route or the same exception. A failed
    launch leaves the key absent so the next call starts from scratch.
    """

    def __init__(
        self,
        *,
        allocator: RouteAllocator,
        launcher: WorkerLauncher,
        registry: WorkerRegistry | None = None,
        single_flight: SingleFlight[str, str] | None = None,
        metrics: DispatcherMetrics | None = None,
        launch_timeout_s: float | None = None,
    ) -> None:
        if launch_timeout_s is not None and launch_timeout_s <= 0:
            raise ValueError("launch_timeout_s must be > 0")
        self._allocator = allocator
        self._launcher = launcher
        self._registry = registry if registry is not None else WorkerRegistry()
        self._single_flight: SingleFlight[str, str] = (
            single_flight if single_flight is not None else SingleFlight()
        )
        self._metrics: DispatcherMetrics = (
            metrics if metrics is not None else NoOpDispatcherMetrics()
        )
        self._launch_timeout_s = launch_timeout_s
        self._request_numbers = itertools.count()

    @property
    def registry(self) -> WorkerRegistry:
        return self._registry

    @property
    def single_flight(self) -> SingleFlight[str, str]:
        return self._single_flight

    @property
    def launcher(self) -> WorkerLauncher:
        return self._launcher

    async def resolve(self, key: str) -> str:
        """
        Return the route of the worker serving `key`, launching one if needed.

        Raises:
            InvalidKeyError: If `key` is empty.
            Exception: Whatever the route allocator or launcher raised, or
                `LaunchTimeoutError` when a launch timeout is configured.
        """
        if not isinstance(key, str) or not key.strip():
            raise InvalidKeyError("key must be a non-empty string")

        request_number = next(self._request_numbers)
        entry = self._registry.get(key)
        if entry is not None:
            logger.debug("[%d %s] worker exists", request_number, key)
            self._registry.touch(key)
            self._metrics.incr("dispatcher_hits_total")
            return entry.route

        self._metrics.incr("dispatcher_misses_total")
        try:
            return await self._single_flight.run(
                key,
                lambda: self._launch_with_timeout(key, request_number),
                on_first=lambda: logger.debug(
                    "[%d %s] worker does not exist", request_number, key
                ),
                on_not_first=lambda: self._joined(key, request_number),
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("[%d %s] error starting worker: %s", request_number, key, exc)
            raise

    def _joined(self, key: str, request_number: int) -> None:
        logger.debug("[%d %s] request already running; waiting", request_number, key)
        self._metrics.incr("dispatcher_joined_total")

    async def _launch_with_timeout(self, key: str, request_number: int) -> str:
        if self._launch_timeout_s is None:
            return await self._launch(key, request_number)
        try:
            return await asyncio.wait_for(
                self._launch(key, request_number), timeout=self._launch_timeout_s
            )
        except asyncio.TimeoutError as exc:
            self._metrics.incr("dispatcher_launch_failures_total", tags={"reason": "timeout"})
            raise LaunchTimeoutError(key, self._launch_timeout_s) from exc

    async def _launch(self, key: str, request_number: int) -> str:
        try:
            route = await self._allocator.allocate_route()
            logger.info("[%d %s] starting worker for route %s", request_number, key, route)
            handle = await self._launcher.launch(key, route)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._metrics.incr("dispatcher_launch_failures_total", tags={"reason": "error"})
            raise
        logger.info("[%d %s] started %s", request_number, key, handle.worker_id)
        self._metrics.incr("dispatcher_launches_total")

        now = self._registry.now()
        self._registry.put(
            key,
            WorkerEntry(
                key=key,
                handle=handle,
                route=route,
                last_access_s=now,
                created_at_s=now,
            ),
        )
        return route
