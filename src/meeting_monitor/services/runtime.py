"""
Сборка компонентов мониторинга.

Содержит:
- выбор провайдера медиа-транспорта (zoom_rtms/mock)
- один MonitorCoordinator, внедрённый во все сервисы
"""

from __future__ import annotations

from dataclasses import dataclass

from meeting_monitor.common.config import get_settings
from meeting_monitor.common.errors import ErrCode, ProviderError
from meeting_monitor.connectors.base import MediaTransport
from meeting_monitor.connectors.zoom_rtms.adapter import ZoomRtmsTransport
from meeting_monitor.connectors.zoom_rtms.mock import MockRtmsTransport
from meeting_monitor.services.analysis_client import AnalysisApiClient
from meeting_monitor.services.capture_service import CaptureService
from meeting_monitor.services.coordinator import MonitorCoordinator
from meeting_monitor.services.monitor_gateway import MonitorGateway
from meeting_monitor.services.webhook_dispatcher import WebhookDispatcher


def resolve_transport(provider: str | None = None) -> MediaTransport:
    name = (provider or get_settings().media_transport_provider or "mock").strip().lower()
    if name == "zoom_rtms":
        return ZoomRtmsTransport()
    if name == "mock":
        return MockRtmsTransport()
    raise ProviderError(
        ErrCode.TRANSPORT_PROVIDER_ERROR,
        f"Неизвестный provider: {name}",
        details={"allowed": "zoom_rtms,mock"},
    )


@dataclass
class MonitorRuntime:
    coordinator: MonitorCoordinator
    transport: MediaTransport
    capture: CaptureService
    dispatcher: WebhookDispatcher
    gateway: MonitorGateway


def build_runtime(
    *,
    transport: MediaTransport | None = None,
    analysis_client: AnalysisApiClient | None = None,
    capture_window_sec: float | None = None,
    wait_timeout_sec: float | None = None,
) -> MonitorRuntime:
    coordinator = MonitorCoordinator()
    transport = transport or resolve_transport()
    capture = CaptureService(
        coordinator=coordinator,
        transport=transport,
        analysis_client=analysis_client or AnalysisApiClient(),
        capture_window_sec=capture_window_sec,
    )
    dispatcher = WebhookDispatcher(coordinator=coordinator, transport=transport, capture=capture)
    gateway = MonitorGateway(coordinator=coordinator, wait_timeout_sec=wait_timeout_sec)
    return MonitorRuntime(
        coordinator=coordinator,
        transport=transport,
        capture=capture,
        dispatcher=dispatcher,
        gateway=gateway,
    )
