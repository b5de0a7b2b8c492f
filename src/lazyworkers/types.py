"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Worker handle type and the collaborator protocols the dispatcher consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class WorkerHandle:
    """
    Opaque reference to a running worker.

    Attributes:
        worker_id: Identifier sufficient to terminate the worker later
            (for containers, the container name).
        metadata: Launcher-specific extras such as image or container id.
    """

    worker_id: str
    metadata: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class RouteAllocator(Protocol):
    """Allocates the routing target a new worker is bound to."""

    async def allocate_route(self) -> str:
        """Return a fresh, globally unique route."""
        ...


@runtime_checkable
class WorkerLauncher(Protocol):
    """Starts and stops workers on behalf of the dispatcher."""

    async def launch(self, key: str, route: str) -> WorkerHandle:
        """Start a worker for `key` bound to `route` and return its handle."""
        ...

    async def terminate(self, handle: WorkerHandle) -> None:
        """Stop and clean up one worker. Raise on failure."""
        ...
