"""
in_process_workers.py: Dispatcher without docker.

Launches "workers" as asyncio tasks so the single-flight and idle-reaping
behaviour can be watched locally.

Usage:
    python examples/in_process_workers.py
"""

import asyncio
import logging

from lazyworkers import (
    Dispatcher,
    IdleReaper,
    IdleReaperConfig,
    UUIDRouteAllocator,
    WorkerHandle,
)


class TaskLauncher:
    """Run each worker as a sleeping asyncio task."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}

    async def launch(self, key: str, route: str) -> WorkerHandle:
        await asyncio.sleep(0.2)  # startup cost
        self._tasks[route] = asyncio.create_task(asyncio.sleep(3600))
        return WorkerHandle(worker_id=route, metadata={"key": key})

    async def terminate(self, handle: WorkerHandle) -> None:
        self._tasks.pop(handle.worker_id).cancel()


async def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    launcher = TaskLauncher()
    dispatcher = Dispatcher(allocator=UUIDRouteAllocator(prefix="mem:"), launcher=launcher)
    reaper = IdleReaper(
        dispatcher.registry,
        launcher,
        config=IdleReaperConfig(idle_threshold_s=1.0, sweep_interval_s=0.5),
    )
    await reaper.start()

    routes = await asyncio.gather(*(dispatcher.resolve("doc-B") for _ in range(3)))
    print("concurrent routes:", routes)

    await asyncio.sleep(2.0)
    print("after idle:", await dispatcher.resolve("doc-B"))

    await reaper.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
