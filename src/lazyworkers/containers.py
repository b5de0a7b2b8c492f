"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Docker-backed worker launcher and route allocator collaborators.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import shlex
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from .errors import ContainerCommandError
from .settings import DEFAULT_WORKER_COMMAND
from .types import WorkerHandle

logger = logging.getLogger("lazyworkers.containers")

_SLUG_INVALID = re.compile(r"[^a-z0-9_.-]+")
_SLUG_MAX_CHARS = 40


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Exit status and decoded output of one CLI invocation."""

    returncode: int
    stdout: str
    stderr: str


CommandRunner = Callable[[Sequence[str]], Awaitable[CommandResult]]


async def run_command(argv: Sequence[str]) -> CommandResult:
    """Run `argv` without a shell and capture its output."""
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


def container_name_for(key: str, *, prefix: str = "lpub-worker-") -> str:
    """
    Derive a stable, docker-safe container name for `key`.

    The readable slug is truncated; a short digest keeps distinct keys apart.
    """
    slug = _SLUG_INVALID.sub("-", key.lower()).strip("-.")[:_SLUG_MAX_CHARS]
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:10]
    if not slug:
        return f"{prefix}{digest}"
    return f"{prefix}{slug}-{digest}"


class UUIDRouteAllocator:
    """Allocate routes as prefixed random UUIDs."""

    def __init__(self, *, prefix: str = "") -> None:
        self._prefix = prefix

    async def allocate_route(self) -> str:
        return f"{self._prefix}{uuid.uuid4().hex}"


class DockerWorkerLauncher:
    """
    Run one detached container per key through the docker CLI.

    The worker command is rendered from `command_template` with shell-quoted
    ``{key}`` and ``{route}`` placeholders and executed via ``sh -c``.
    """

    def __init__(
        self,
        *,
        image: str,
        command_template: str = DEFAULT_WORKER_COMMAND,
        name_prefix: str = "lpub-worker-",
        docker_bin: str = "docker",
        runner: CommandRunner | None = None,
    ) -> None:
        if not image.strip():
            raise ValueError("image must be non-empty")
        self._image = image
        self._command_template = command_template
        self._name_prefix = name_prefix
        self._docker_bin = docker_bin
        self._runner: CommandRunner = runner if runner is not None else run_command

    def render_command(self, key: str, route: str) -> str:
        return self._command_template.format(
            key=shlex.quote(key), route=shlex.quote(route)
        )

    async def launch(self, key: str, route: str) -> WorkerHandle:
        name = container_name_for(key, prefix=self._name_prefix)
        argv = [
            self._docker_bin,
            "run",
            "--name",
            name,
            "-d",
            self._image,
            "sh",
            "-c",
            self.render_command(key, route),
        ]
        logger.debug("starting %s", name)
        result = await self._check(argv)
        return WorkerHandle(
            worker_id=name,
            metadata={"image": self._image, "container_id": result.stdout.strip()},
        )

    async def terminate(self, handle: WorkerHandle) -> None:
        await self._check([self._docker_bin, "kill", handle.worker_id])
        await self._check([self._docker_bin, "rm", handle.worker_id])

    async def _check(self, argv: Sequence[str]) -> CommandResult:
        result = await self._runner(argv)
        if result.returncode != 0:
            raise ContainerCommandError(argv, result.returncode, result.stderr)
        return result
