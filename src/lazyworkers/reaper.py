"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Idle reaper: periodic sweep that evicts and terminates stale workers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .metrics import DispatcherMetrics, NoOpDispatcherMetrics
from .registry import WorkerEntry, WorkerRegistry
from .types import WorkerLauncher

logger = logging.getLogger("lazyworkers.reaper")


@dataclass(frozen=True, slots=True)
class IdleReaperConfig:
    """
    Configuration for the idle reaper.

    Attributes:
        idle_threshold_s: Inactivity after which a worker is reclaimed.
        sweep_interval_s: Seconds between sweeps; ``None`` uses the threshold.
        shutdown_timeout_s: Grace period for outstanding terminations on shutdown.
    """

    idle_threshold_s: float = 300.0
    sweep_interval_s: float | None = None
    shutdown_timeout_s: float = 30.0

    @property
    def effective_sweep_interval_s(self) -> float:
        if self.sweep_interval_s is None:
            return self.idle_threshold_s
        return self.sweep_interval_s


class IdleReaper:
    """
    Reclaim workers whose last access is older than the idle threshold.

    Entries are removed from the registry before termination is requested.
    Termination runs as a detached task; failures are logged and never
    retried, and the entry is not restored.
    """

    def __init__(
        self,
        registry: WorkerRegistry,
        launcher: WorkerLauncher,
        *,
        config: IdleReaperConfig | None = None,
        metrics: DispatcherMetrics | None = None,
    ) -> None:
        self._config = config if config is not None else IdleReaperConfig()
        if self._config.idle_threshold_s <= 0:
            raise ValueError("idle_threshold_s must be > 0")
        if self._config.effective_sweep_interval_s <= 0:
            raise ValueError("sweep_interval_s must be > 0")
        if self._config.shutdown_timeout_s < 0:
            raise ValueError("shutdown_timeout_s must be >= 0")
        self._registry = registry
        self._launcher = launcher
        self._metrics: DispatcherMetrics = (
            metrics if metrics is not None else NoOpDispatcherMetrics()
        )
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._terminations: set[asyncio.Task[None]] = set()

    @property
    def config(self) -> IdleReaperConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        """Whether the sweep loop is active."""
        return self._running

    @property
    def pending_terminations(self) -> int:
        """Number of termination calls still in flight."""
        return len(self._terminations)

    def sweep(self) -> list[WorkerEntry]:
        """
        Evict every idle entry and fire its termination.

        Runs without suspending; terminations proceed in the background.
        Must be called from within a running event loop.
        """
        logger.debug("checking for old workers")
        now = self._registry.now()
        reaped: list[WorkerEntry] = []
        for key, entry in self._registry.entries():
            if entry.idle_for(now) <= self._config.idle_threshold_s:
                continue
            logger.info(
                "killing %s (key=%s, idle %.1fs)",
                entry.handle.worker_id,
                key,
                entry.idle_for(now),
            )
            self._registry.remove(key)
            self._metrics.incr("reaper_evictions_total")
            self._spawn_termination(entry)
            reaped.append(entry)
        return reaped

    def _spawn_termination(self, entry: WorkerEntry) -> None:
        task = asyncio.create_task(self._terminate(entry))
        self._terminations.add(task)
        task.add_done_callback(self._terminations.discard)

    async def _terminate(self, entry: WorkerEntry) -> None:
        try:
            await self._launcher.terminate(entry.handle)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            self._metrics.incr("reaper_terminate_failures_total")
            logger.exception(
                "error killing worker %s (key=%s)", entry.handle.worker_id, entry.key
            )
            return
        self._metrics.incr("reaper_terminations_total")
        logger.info("killed %s (key=%s)", entry.handle.worker_id, entry.key)

    async def start(self) -> None:
        """Start the sweep loop in the background."""
        if self._running:
            raise RuntimeError("IdleReaper is already running")
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "IdleReaper started (idle_threshold=%.1fs, interval=%.1fs)",
            self._config.idle_threshold_s,
            self._config.effective_sweep_interval_s,
        )

    async def shutdown(self) -> None:
        """
        Stop the sweep loop.

        Waits for outstanding terminations up to ``shutdown_timeout_s`` and
        cancels whatever is still running after that.
        """
        self._running = False

        if self._task and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

        if self._terminations:
            logger.info("Waiting for %d terminations...", len(self._terminations))
            _, pending = await asyncio.wait(
                set(self._terminations),
                timeout=self._config.shutdown_timeout_s,
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        logger.info("IdleReaper shut down")

    async def _loop(self) -> None:
        """Main sweep loop."""
        interval = self._config.effective_sweep_interval_s
        while self._running:
            try:
                await asyncio.sleep(interval)
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception:  # noqa: BLE001
                logger.exception("IdleReaper sweep failed")
