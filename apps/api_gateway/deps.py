"""
FastAPI Depends.

Сюда выносим доступ к runtime мониторинга (app.state.runtime):
координатор, gateway и диспетчер вебхуков живут в одном экземпляре на приложение.
"""

from __future__ import annotations

from fastapi import Request

from meeting_monitor.services.monitor_gateway import MonitorGateway
from meeting_monitor.services.runtime import MonitorRuntime
from meeting_monitor.services.webhook_dispatcher import WebhookDispatcher


def get_runtime(request: Request) -> MonitorRuntime:
    return request.app.state.runtime


def get_monitor_gateway(request: Request) -> MonitorGateway:
    return get_runtime(request).gateway


def get_webhook_dispatcher(request: Request) -> WebhookDispatcher:
    return get_runtime(request).dispatcher
