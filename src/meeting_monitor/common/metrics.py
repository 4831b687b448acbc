"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics
- Счётчики исходов мониторинга, вебхуков и буферизованных кадров
- Текущие размеры реестров (pending / active)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# =============================================================================
# СЧЁТЧИКИ И МЕТРИКИ
# =============================================================================

REQUESTS_TOTAL = Counter(
    "monitor_http_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "monitor_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000),
)

MONITOR_REQUESTS_TOTAL = Counter(
    "monitor_requests_total",
    "Исходы запросов мониторинга",
    ["result"],  # ok|timeout|failed|conflict|invalid
)

WEBHOOK_EVENTS_TOTAL = Counter(
    "monitor_webhook_events_total",
    "Входящие события вебхука",
    ["event", "handled"],
)

FRAMES_BUFFERED_TOTAL = Counter(
    "monitor_frames_buffered_total",
    "Кадры, добавленные в буфер целевого участника",
    ["kind"],
)

FRAMES_DISCARDED_TOTAL = Counter(
    "monitor_frames_discarded_total",
    "Кадры, отброшенные фильтром участника",
    ["kind"],
)

ANALYSIS_CALL_LATENCY_MS = Histogram(
    "monitor_analysis_call_latency_ms",
    "Задержка вызова внешнего API анализа (мс)",
    ["result"],
    buckets=(50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000),
)

PENDING_REQUESTS = Gauge(
    "monitor_pending_requests",
    "Текущее количество ожидающих запросов мониторинга",
)

ACTIVE_SESSIONS = Gauge(
    "monitor_active_sessions",
    "Текущее количество активных медиа-сессий",
)


def record_monitor_result(result: str) -> None:
    MONITOR_REQUESTS_TOTAL.labels(result=result).inc()


def record_webhook_event(event: str, *, handled: bool) -> None:
    WEBHOOK_EVENTS_TOTAL.labels(event=event or "unknown", handled=str(bool(handled)).lower()).inc()


def record_frame(kind: str, *, buffered: bool) -> None:
    if buffered:
        FRAMES_BUFFERED_TOTAL.labels(kind=kind).inc()
    else:
        FRAMES_DISCARDED_TOTAL.labels(kind=kind).inc()


@contextmanager
def track_analysis_latency() -> Iterator[None]:
    started = time.perf_counter()
    result = "ok"
    try:
        yield
    except Exception:
        result = "error"
        raise
    finally:
        ANALYSIS_CALL_LATENCY_MS.labels(result=result).observe(
            (time.perf_counter() - started) * 1000
        )


def refresh_registry_metrics(*, pending: int, active: int) -> None:
    PENDING_REQUESTS.set(pending)
    ACTIVE_SESSIONS.set(active)


def setup_metrics_endpoint(app: FastAPI, *, registry_sizes: Callable[[], tuple[int, int]]) -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        route = request.url.path
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        status_code = str(response.status_code)

        REQUESTS_TOTAL.labels(
            service="meeting-monitor",
            route=route,
            method=method,
            status=status_code,
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(
            service="meeting-monitor",
            route=route,
            method=method,
        ).observe(elapsed_ms)
        return response

    @app.get("/metrics")
    def metrics() -> Response:
        pending, active = registry_sizes()
        refresh_registry_metrics(pending=pending, active=active)
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
