"""
API Gateway (FastAPI).

Функции:
- /health
- /metrics
- POST /monitor: ожидание результата анализа по участнику встречи
- POST /webhook: события Zoom RTMS (rtms_started / rtms_stopped)

Архитектурно:
- /monitor регистрирует ожидающий запрос и ждёт settlement
- вебхук rtms_started запускает join-and-collect в фоне
- окно захвата завершается вызовом API анализа и ответом на /monitor
"""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.api_gateway.routers.monitor import router as monitor_router
from apps.api_gateway.routers.webhook import router as webhook_router
from meeting_monitor.common.config import get_settings
from meeting_monitor.common.logging import get_project_logger, setup_logging
from meeting_monitor.common.metrics import setup_metrics_endpoint
from meeting_monitor.contracts.http_api import HealthResponse
from meeting_monitor.services.runtime import MonitorRuntime, build_runtime

log = get_project_logger()


def _parse_origins(raw: str) -> list[str]:
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    return origins or ["*"]


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def _cors_origins() -> list[str]:
    settings = get_settings()
    allow_origins = _parse_origins(settings.cors_allowed_origins)
    if _is_prod_env(settings.app_env) and "*" in allow_origins:
        raise RuntimeError("CORS wildcard '*' запрещён в APP_ENV=prod")
    return allow_origins


def _create_app(runtime: MonitorRuntime | None = None) -> FastAPI:
    app = FastAPI(title="Meeting Monitor Relay", version="0.1.0")
    app.state.runtime = runtime or build_runtime()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_metrics_endpoint(app, registry_sizes=app.state.runtime.coordinator.sizes)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        pending, active = app.state.runtime.coordinator.sizes()
        return HealthResponse(ok=True, pending=pending, active=active)

    @app.on_event("startup")
    async def startup_log() -> None:
        settings = get_settings()
        log.info(
            "meeting_monitor_started",
            extra={
                "payload": {
                    "port": settings.api_port,
                    "transport": app.state.runtime.transport.provider,
                    "capture_window_sec": app.state.runtime.capture.capture_window_sec,
                    "wait_timeout_sec": app.state.runtime.gateway.wait_timeout_sec,
                }
            },
        )

    @app.on_event("shutdown")
    async def shutdown_background() -> None:
        await app.state.runtime.dispatcher.aclose()

    app.include_router(monitor_router)
    app.include_router(webhook_router)

    return app


setup_logging()

app = _create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
