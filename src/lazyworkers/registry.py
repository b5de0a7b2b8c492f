"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

In-memory registry of active workers keyed by request identity.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from .types import WorkerHandle


@dataclass(slots=True)
class WorkerEntry:
    """
    One active worker.

    Attributes:
        key: Request identity the worker serves.
        handle: Reference used to terminate the worker.
        route: Value returned to clients to reach the worker.
        last_access_s: Clock reading of the latest creation or lookup.
        created_at_s: Clock reading when the worker was registered.
    """

    key: str
    handle: WorkerHandle
    route: str
    last_access_s: float
    created_at_s: float

    def idle_for(self, now_s: float) -> float:
        """Seconds since the last access, as seen at `now_s`."""
        return now_s - self.last_access_s


class WorkerRegistry:
    """
    Authoritative key -> WorkerEntry mapping.

    No method suspends, so every operation is atomic with respect to other
    coroutines on the same event loop. Entries are lost on process restart.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, WorkerEntry] = {}

    def now(self) -> float:
        """Current reading of the registry clock."""
        return self._clock()

    def get(self, key: str) -> WorkerEntry | None:
        return self._entries.get(key)

    def put(self, key: str, entry: WorkerEntry) -> None:
        """Insert or replace the entry for `key`."""
        self._entries[key] = entry

    def touch(self, key: str) -> None:
        """Refresh recency for `key`; no-op when absent."""
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.last_access_s = max(entry.last_access_s, self._clock())

    def remove(self, key: str) -> WorkerEntry | None:
        return self._entries.pop(key, None)

    def entries(self) -> list[tuple[str, WorkerEntry]]:
        """Snapshot of current entries, safe to iterate while mutating."""
        return list(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
