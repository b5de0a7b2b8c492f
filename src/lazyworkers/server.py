"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

FastAPI host exposing the dispatcher over HTTP.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from .containers import DockerWorkerLauncher, UUIDRouteAllocator
from .dispatcher import Dispatcher
from .errors import InvalidKeyError, LaunchTimeoutError
from .metrics import DispatcherMetrics, NoOpDispatcherMetrics, PrometheusDispatcherMetrics
from .reaper import IdleReaper, IdleReaperConfig
from .registry import WorkerRegistry
from .settings import DispatcherSettings
from .types import RouteAllocator, WorkerLauncher

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger("lazyworkers.server")


class DispatcherService:
    """Own one dispatcher and its idle reaper for the lifetime of a server."""

    def __init__(
        self,
        settings: DispatcherSettings | None = None,
        *,
        allocator: RouteAllocator | None = None,
        launcher: WorkerLauncher | None = None,
        metrics: DispatcherMetrics | None = None,
        registry: WorkerRegistry | None = None,
    ) -> None:
        self.settings = settings if settings is not None else DispatcherSettings()
        if metrics is None:
            if self.settings.metrics_backend == "prometheus":
                metrics = PrometheusDispatcherMetrics()
            else:
                metrics = NoOpDispatcherMetrics()
        self.metrics = metrics

        if launcher is None:
            launcher = DockerWorkerLauncher(
                image=self.settings.docker_image,
                command_template=self.settings.worker_command,
                name_prefix=self.settings.container_prefix,
                docker_bin=self.settings.docker_bin,
            )
        if registry is None:
            registry = WorkerRegistry()
        self.dispatcher = Dispatcher(
            allocator=(
                allocator
                if allocator is not None
                else UUIDRouteAllocator(prefix=self.settings.route_prefix)
            ),
            launcher=launcher,
            registry=registry,
            metrics=metrics,
            launch_timeout_s=self.settings.launch_timeout_s,
        )
        self.reaper = IdleReaper(
            self.dispatcher.registry,
            launcher,
            config=IdleReaperConfig(
                idle_threshold_s=self.settings.idle_threshold_s,
                sweep_interval_s=self.settings.sweep_interval_s,
                shutdown_timeout_s=self.settings.shutdown_timeout_s,
            ),
            metrics=metrics,
        )

    async def start(self) -> None:
        await self.reaper.start()

    async def shutdown(self) -> None:
        await self.reaper.shutdown()

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "workers": len(self.dispatcher.registry),
            "pending_launches": self.dispatcher.single_flight.pending_count,
            "reaper_running": self.reaper.is_running,
        }


def create_app(service: DispatcherService | None = None) -> FastAPI:
    """Create and return FastAPI app serving `GET /build/{key}`."""
    try:
        from fastapi import FastAPI, HTTPException
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import PlainTextResponse
    except ImportError:
        raise ImportError(
            "FastAPI is required for the dispatcher server. "
            "Install it with: pip install fastapi uvicorn"
        )

    if service is None:
        service = DispatcherService(DispatcherSettings.from_env())

    @asynccontextmanager
    async def lifespan(app: Any):
        _ = app
        await service.start()
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(
        title="lazyworkers",
        description="Launch-on-demand worker dispatcher",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(service.settings.cors_origins),
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    if service.settings.metrics_backend == "prometheus":
        from prometheus_client import make_asgi_app

        app.mount("/metrics", make_asgi_app())

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return service.health()

    @app.get("/build/{key}", response_class=PlainTextResponse)
    async def build(key: str) -> str:
        try:
            return await service.dispatcher.resolve(key)
        except InvalidKeyError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except LaunchTimeoutError as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc
        except Exception as exc:
            raise HTTPException(
                status_code=502, detail=f"Failed to start worker: {exc}"
            ) from exc

    return app


def run(settings: DispatcherSettings | None = None, **kwargs: Any) -> None:
    """
    Start the dispatcher server using uvicorn.

    Args:
        settings: Service settings; loaded from the environment when omitted.
        **kwargs: Additional arguments passed to ``uvicorn.run()``.
    """
    try:
        import uvicorn
    except ImportError:
        raise ImportError(
            "uvicorn is required to run the dispatcher server. "
            "Install it with: pip install uvicorn"
        )

    if settings is None:
        settings = DispatcherSettings.from_env()
    app = create_app(DispatcherService(settings))
    logger.info("lazyworkers listening at http://%s:%d", settings.host, settings.port)
    uvicorn.run(
        app,
        host=kwargs.pop("host", settings.host),
        port=kwargs.pop("port", settings.port),
        **kwargs,
    )
