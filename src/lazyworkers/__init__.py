"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Launch-on-demand dispatcher for per-key ephemeral workers.

Maps a request key to the route of a running worker, launching the worker on
first use (at most one launch in flight per key) and reaping it once idle.

Quick start::

    from lazyworkers import Dispatcher, IdleReaper, IdleReaperConfig

    dispatcher = Dispatcher(allocator=my_allocator, launcher=my_launcher)
    reaper = IdleReaper(
        dispatcher.registry,
        dispatcher.launcher,
        config=IdleReaperConfig(idle_threshold_s=300),
    )
    await reaper.start()

    route = await dispatcher.resolve("doc-A")
"""

from .containers import (
    CommandResult,
    DockerWorkerLauncher,
    UUIDRouteAllocator,
    container_name_for,
    run_command,
)
from .dispatcher import Dispatcher
from .errors import (
    ContainerCommandError,
    InvalidKeyError,
    LaunchTimeoutError,
    LazyWorkersError,
)
from .metrics import DispatcherMetrics, NoOpDispatcherMetrics, PrometheusDispatcherMetrics
from .reaper import IdleReaper, IdleReaperConfig
from .registry import WorkerEntry, WorkerRegistry
from .settings import DispatcherSettings
from .singleflight import SingleFlight
from .types import RouteAllocator, WorkerHandle, WorkerLauncher

__all__ = [
    "SingleFlight",
    "WorkerEntry",
    "WorkerRegistry",
    "WorkerHandle",
    "RouteAllocator",
    "WorkerLauncher",
    "Dispatcher",
    "IdleReaper",
    "IdleReaperConfig",
    "DispatcherSettings",
    "DispatcherMetrics",
    "NoOpDispatcherMetrics",
    "PrometheusDispatcherMetrics",
    "LazyWorkersError",
    "InvalidKeyError",
    "LaunchTimeoutError",
    "ContainerCommandError",
    "CommandResult",
    "DockerWorkerLauncher",
    "UUIDRouteAllocator",
    "container_name_for",
    "run_command",
]


# Lazy import for the HTTP host
def __getattr__(name: str):
    """Lazily expose the HTTP host, which requires FastAPI."""
    if name in ("DispatcherService", "create_app"):
        from . import server

        return getattr(server, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
