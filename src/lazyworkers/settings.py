"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Dispatcher service settings and explicit environment loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_WORKER_COMMAND = "node lib/index.js {key} {route} > index.log 2>&1"


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def _env_float(name: str, default: float | None) -> float | None:
    raw = _env_first(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = _env_first(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class DispatcherSettings:
    """Explicit settings used by the dispatcher service and its collaborators."""

    idle_threshold_s: float = 300.0
    sweep_interval_s: float | None = None
    launch_timeout_s: float | None = None
    shutdown_timeout_s: float = 30.0

    docker_image: str = "joshuahhh/lp-per-doc-server"
    docker_bin: str = "docker"
    worker_command: str = DEFAULT_WORKER_COMMAND
    container_prefix: str = "lpub-worker-"
    route_prefix: str = "automerge:"

    host: str = "0.0.0.0"
    port: int = 8088
    cors_origins: tuple[str, ...] = ("*",)
    metrics_backend: str = "none"

    def __post_init__(self) -> None:
        if self.idle_threshold_s <= 0:
            raise ValueError("idle_threshold_s must be > 0")
        if self.sweep_interval_s is not None and self.sweep_interval_s <= 0:
            raise ValueError("sweep_interval_s must be > 0")
        if self.launch_timeout_s is not None and self.launch_timeout_s <= 0:
            raise ValueError("launch_timeout_s must be > 0")
        if not 0 < self.port < 65536:
            raise ValueError("port must be between 1 and 65535")
        if self.metrics_backend not in ("none", "prometheus"):
            raise ValueError(f"Unknown metrics backend: {self.metrics_backend}")

    @staticmethod
    def from_env() -> "DispatcherSettings":
        """Load settings from `LAZYWORKERS_*` environment variables."""
        idle_threshold_s = _env_float("LAZYWORKERS_IDLE_THRESHOLD_S", 300.0)
        origins = _env_first("LAZYWORKERS_CORS_ORIGINS", default="*") or "*"
        return DispatcherSettings(
            idle_threshold_s=idle_threshold_s,  # type: ignore[arg-type]
            sweep_interval_s=_env_float("LAZYWORKERS_SWEEP_INTERVAL_S", None),
            launch_timeout_s=_env_float("LAZYWORKERS_LAUNCH_TIMEOUT_S", None),
            shutdown_timeout_s=_env_float("LAZYWORKERS_SHUTDOWN_TIMEOUT_S", 30.0),  # type: ignore[arg-type]
            docker_image=_env_first(
                "LAZYWORKERS_DOCKER_IMAGE", default="joshuahhh/lp-per-doc-server"
            )
            or "joshuahhh/lp-per-doc-server",
            docker_bin=_env_first("LAZYWORKERS_DOCKER_BIN", default="docker") or "docker",
            worker_command=_env_first(
                "LAZYWORKERS_WORKER_COMMAND", default=DEFAULT_WORKER_COMMAND
            )
            or DEFAULT_WORKER_COMMAND,
            container_prefix=_env_first(
                "LAZYWORKERS_CONTAINER_PREFIX", default="lpub-worker-"
            )
            or "lpub-worker-",
            route_prefix=os.getenv("LAZYWORKERS_ROUTE_PREFIX", "automerge:"),
            host=_env_first("LAZYWORKERS_HOST", default="0.0.0.0") or "0.0.0.0",
            port=_env_int("LAZYWORKERS_PORT", 8088),
            cors_origins=tuple(
                item.strip() for item in origins.split(",") if item.strip()
            ),
            metrics_backend=(
                _env_first("LAZYWORKERS_METRICS", default="none") or "none"
            ).lower(),
        )
