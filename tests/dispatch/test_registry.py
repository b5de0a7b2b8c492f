from __future__ import annotations

from lazyworkers import WorkerEntry, WorkerHandle, WorkerRegistry


class _Clock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _entry(key: str, *, at: float = 0.0) -> WorkerEntry:
    return WorkerEntry(
        key=key,
        handle=WorkerHandle(worker_id=f"w-{key}"),
        route=f"route-{key}",
        last_access_s=at,
        created_at_s=at,
    )


def test_put_get_remove():
    registry = WorkerRegistry()
    entry = _entry("doc-A")

    assert registry.get("doc-A") is None
    registry.put("doc-A", entry)
    assert registry.get("doc-A") is entry
    assert "doc-A" in registry
    assert len(registry) == 1

    assert registry.remove("doc-A") is entry
    assert registry.remove("doc-A") is None
    assert len(registry) == 0


def test_put_replaces_existing_entry():
    registry = WorkerRegistry()
    registry.put("doc-A", _entry("doc-A"))
    replacement = _entry("doc-A", at=5.0)
    registry.put("doc-A", replacement)

    assert registry.get("doc-A") is replacement
    assert len(registry) == 1


def test_touch_advances_recency_and_never_goes_backwards():
    clock = _Clock(10.0)
    registry = WorkerRegistry(clock=clock)
    registry.put("doc-A", _entry("doc-A", at=10.0))

    clock.now = 25.0
    registry.touch("doc-A")
    assert registry.get("doc-A").last_access_s == 25.0

    clock.now = 20.0
    registry.touch("doc-A")
    assert registry.get("doc-A").last_access_s == 25.0


def test_touch_missing_key_is_noop():
    registry = WorkerRegistry()
    registry.touch("missing")
    assert registry.get("missing") is None


def test_entries_snapshot_survives_mutation():
    registry = WorkerRegistry()
    for key in ("a", "b", "c"):
        registry.put(key, _entry(key))

    seen = []
    for key, _ in registry.entries():
        seen.append(key)
        registry.remove(key)
        registry.put(f"{key}-new", _entry(f"{key}-new"))

    assert seen == ["a", "b", "c"]
    assert sorted(k for k, _ in registry.entries()) == ["a-new", "b-new", "c-new"]


def test_idle_for_uses_last_access():
    entry = _entry("doc-A", at=100.0)
    assert entry.idle_for(400.5) == 300.5
