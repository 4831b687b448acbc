"""
Диспетчер событий вебхука Zoom.

- meeting.rtms_started: если встреча наблюдается, запускаем join-and-collect в фоне
- meeting.rtms_stopped: если есть ActiveSession, leave + удаление записи
- endpoint.url_validation: ответ на проверку URL (HMAC-SHA256)
- остальные события: подтверждаем без действий

Ошибки обработки не выходят наружу: отправитель вебхука не должен ретраить
то, что он не может исправить.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
from typing import Any

from meeting_monitor.common.config import get_settings
from meeting_monitor.common.logging import get_project_logger
from meeting_monitor.common.metrics import record_webhook_event
from meeting_monitor.connectors.base import MediaTransport
from meeting_monitor.domain.enums import WebhookEvent
from meeting_monitor.services.capture_service import CaptureService
from meeting_monitor.services.coordinator import MonitorCoordinator, PendingMonitorRequest

log = get_project_logger()

ACK: dict[str, Any] = {"status": "ok"}


def url_validation_response(plain_token: str, secret_token: str) -> dict[str, str]:
    encrypted = hmac.new(
        secret_token.encode("utf-8"),
        plain_token.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return {"plainToken": plain_token, "encryptedToken": encrypted}


class WebhookDispatcher:
    def __init__(
        self,
        *,
        coordinator: MonitorCoordinator,
        transport: MediaTransport,
        capture: CaptureService,
        webhook_secret_token: str | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.transport = transport
        self.capture = capture
        self.webhook_secret_token = webhook_secret_token
        self._tasks: set[asyncio.Task] = set()

    @property
    def background_tasks(self) -> frozenset[asyncio.Task]:
        return frozenset(self._tasks)

    async def handle_event(self, event: str | None, payload: dict[str, Any] | None) -> dict[str, Any]:
        payload = payload or {}
        log.info("webhook_event_received", extra={"payload": {"event": event}})

        if event == WebhookEvent.rtms_started.value:
            handled = self._on_rtms_started(payload)
        elif event == WebhookEvent.rtms_stopped.value:
            handled = await self._on_rtms_stopped(payload)
        elif event == WebhookEvent.url_validation.value:
            response = self._on_url_validation(payload)
            record_webhook_event(event, handled=response is not None)
            return response or dict(ACK)
        else:
            handled = False

        record_webhook_event(event or "unknown", handled=handled)
        return dict(ACK)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------
    def _on_rtms_started(self, payload: dict[str, Any]) -> bool:
        meeting_uuid = str(payload.get("meeting_uuid") or "")
        if not meeting_uuid or not self.coordinator.has_pending(meeting_uuid):
            log.info(
                "rtms_started_unmonitored",
                extra={"payload": {"meeting_uuid": meeting_uuid or None}},
            )
            return False
        # Повтор события для уже захватываемой встречи: claim вернёт None
        req = self.capture.claim(meeting_uuid)
        if req is None:
            return False

        rtms_stream_id = str(payload.get("rtms_stream_id") or "")
        server_urls = payload.get("server_urls") or ""
        log.info(
            "rtms_started_monitored",
            extra={"payload": {"meeting_uuid": meeting_uuid, "rtms_stream_id": rtms_stream_id}},
        )
        task = asyncio.create_task(self._run_capture(req, rtms_stream_id, server_urls))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run_capture(self, req: PendingMonitorRequest, rtms_stream_id: str, server_urls: Any) -> None:
        try:
            await self.capture.collect(req, rtms_stream_id, server_urls)
        except Exception as e:
            # Запрос мониторинга уже получил reject внутри capture
            log.error(
                "capture_sequence_failed",
                extra={"payload": {"meeting_uuid": req.meeting_uuid, "error": str(e)[:200]}},
            )

    async def _on_rtms_stopped(self, payload: dict[str, Any]) -> bool:
        meeting_uuid = str(payload.get("meeting_uuid") or "")
        log.info("rtms_stopped", extra={"payload": {"meeting_uuid": meeting_uuid or None}})
        active = self.coordinator.remove_active(meeting_uuid) if meeting_uuid else None
        if active is None:
            return False
        try:
            await self.transport.leave(active.session)
            log.info("rtms_stopped_cleaned_up", extra={"payload": {"meeting_uuid": meeting_uuid}})
        except Exception as e:
            log.warning(
                "rtms_stopped_leave_failed",
                extra={"payload": {"meeting_uuid": meeting_uuid, "error": str(e)[:200]}},
            )
        return True

    def _on_url_validation(self, payload: dict[str, Any]) -> dict[str, str] | None:
        plain_token = str(payload.get("plainToken") or "")
        secret = self.webhook_secret_token or get_settings().zoom_webhook_secret_token
        if not plain_token or not secret:
            log.warning(
                "url_validation_unconfigured",
                extra={"payload": {"has_token": bool(plain_token), "has_secret": bool(secret)}},
            )
            return None
        return url_validation_response(plain_token, secret)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
