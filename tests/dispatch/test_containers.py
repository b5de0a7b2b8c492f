from __future__ import annotations

import asyncio
import shlex
from collections.abc import Sequence

import pytest

from lazyworkers import (
    CommandResult,
    ContainerCommandError,
    DockerWorkerLauncher,
    UUIDRouteAllocator,
    WorkerHandle,
    container_name_for,
)


def run_async(coro):
    return asyncio.run(coro)


class _FakeRunner:
    def __init__(self, results: list[CommandResult] | None = None) -> None:
        self.calls: list[list[str]] = []
        self.results = list(results or [])

    async def __call__(self, argv: Sequence[str]) -> CommandResult:
        self.calls.append(list(argv))
        if self.results:
            return self.results.pop(0)
        return CommandResult(returncode=0, stdout="", stderr="")


def test_container_name_is_stable_and_docker_safe():
    name = container_name_for("automerge:4NMNnkMhL8jXrdJ9jamS58PAVdXu")
    assert name == container_name_for("automerge:4NMNnkMhL8jXrdJ9jamS58PAVdXu")
    assert name.startswith("lpub-worker-automerge-4nmnnkmhl8jxrdj9jams58pavdxu-")
    assert all(ch.isalnum() or ch in "-_." for ch in name)


def test_container_name_distinguishes_keys_with_same_slug():
    assert container_name_for("Doc A") != container_name_for("doc-a")


def test_container_name_falls_back_to_digest():
    name = container_name_for("///", prefix="w-")
    assert name.startswith("w-")
    assert len(name) == len("w-") + 10


def test_launch_runs_detached_container():
    async def scenario() -> None:
        runner = _FakeRunner([CommandResult(returncode=0, stdout="abc123\n", stderr="")])
        launcher = DockerWorkerLauncher(image="example/worker:latest", runner=runner)

        handle = await launcher.launch("doc-A", "automerge:r1")

        name = container_name_for("doc-A")
        assert handle == WorkerHandle(
            worker_id=name,
            metadata={"image": "example/worker:latest", "container_id": "abc123"},
        )
        assert runner.calls == [
            [
                "docker",
                "run",
                "--name",
                name,
                "-d",
                "example/worker:latest",
                "sh",
                "-c",
                "node lib/index.js doc-A automerge:r1 > index.log 2>&1",
            ]
        ]

    run_async(scenario())


def test_worker_command_quotes_untrusted_key():
    launcher = DockerWorkerLauncher(image="img", command_template="run {key} {route}")
    command = launcher.render_command("x; rm -rf /", "r1")
    assert shlex.split(command) == ["run", "x; rm -rf /", "r1"]


def test_terminate_kills_then_removes():
    async def scenario() -> None:
        runner = _FakeRunner()
        launcher = DockerWorkerLauncher(image="img", docker_bin="podman", runner=runner)

        await launcher.terminate(WorkerHandle(worker_id="lpub-worker-doc-A"))

        assert runner.calls == [
            ["podman", "kill", "lpub-worker-doc-A"],
            ["podman", "rm", "lpub-worker-doc-A"],
        ]

    run_async(scenario())


def test_non_zero_exit_raises_command_error():
    async def scenario() -> None:
        runner = _FakeRunner(
            [CommandResult(returncode=125, stdout="", stderr="Conflict. name in use\n")]
        )
        launcher = DockerWorkerLauncher(image="img", runner=runner)

        with pytest.raises(ContainerCommandError) as info:
            await launcher.launch("doc-A", "r1")

        assert info.value.returncode == 125
        assert info.value.argv[:2] == ("docker", "run")
        assert "Conflict" in str(info.value)

    run_async(scenario())


def test_failed_kill_skips_remove():
    async def scenario() -> None:
        runner = _FakeRunner([CommandResult(returncode=1, stdout="", stderr="No such container")])
        launcher = DockerWorkerLauncher(image="img", runner=runner)

        with pytest.raises(ContainerCommandError):
            await launcher.terminate(WorkerHandle(worker_id="gone"))
        assert runner.calls == [["docker", "kill", "gone"]]

    run_async(scenario())


def test_empty_image_rejected():
    with pytest.raises(ValueError, match="image"):
        DockerWorkerLauncher(image="  ")


def test_uuid_route_allocator_returns_unique_prefixed_routes():
    async def scenario() -> list[str]:
        allocator = UUIDRouteAllocator(prefix="automerge:")
        return [await allocator.allocate_route() for _ in range(3)]

    routes = run_async(scenario())
    assert len(set(routes)) == 3
    assert all(route.startswith("automerge:") for route in routes)
