"""
Gateway запросов мониторинга (/monitor).

Регистрирует ожидающий запрос, взводит таймаут ожидания вебхука
и приостанавливает вызывающего до settlement:
- успех -> ответ API анализа как есть
- ошибка -> исключение AppError
- таймаут -> MonitorTimeoutError, запрос удаляется из реестра
"""

from __future__ import annotations

import asyncio
from typing import Any

from meeting_monitor.common.config import get_settings
from meeting_monitor.common.errors import (
    AppError,
    ConflictError,
    MonitorTimeoutError,
    ValidationError,
)
from meeting_monitor.common.logging import get_project_logger
from meeting_monitor.common.metrics import record_monitor_result
from meeting_monitor.domain.enums import MonitorOutcome
from meeting_monitor.services.coordinator import MonitorCoordinator, PendingMonitorRequest

log = get_project_logger()


class MonitorGateway:
    def __init__(
        self,
        *,
        coordinator: MonitorCoordinator,
        wait_timeout_sec: float | None = None,
    ) -> None:
        self.coordinator = coordinator
        timeout = wait_timeout_sec if wait_timeout_sec is not None else get_settings().monitor_wait_timeout_sec
        self.wait_timeout_sec = max(0.0, float(timeout))

    async def monitor(self, meeting_uuid: str | None, user_id: str | None) -> Any:
        meeting_uuid = (meeting_uuid or "").strip()
        user_id = (user_id or "").strip()
        if not meeting_uuid or not user_id:
            record_monitor_result(MonitorOutcome.invalid.value)
            raise ValidationError("meetingUuid и userId обязательны")

        try:
            req = self.coordinator.register(meeting_uuid, user_id)
        except ConflictError:
            record_monitor_result(MonitorOutcome.conflict.value)
            raise

        loop = asyncio.get_running_loop()
        req.timeout_handle = loop.call_later(self.wait_timeout_sec, self._expire, req)
        log.info(
            "monitor_registered",
            extra={
                "payload": {
                    "meeting_uuid": meeting_uuid,
                    "user_id": user_id,
                    "wait_timeout_sec": self.wait_timeout_sec,
                }
            },
        )

        try:
            result = await req.future
        except MonitorTimeoutError:
            record_monitor_result(MonitorOutcome.timeout.value)
            raise
        except AppError as e:
            record_monitor_result(MonitorOutcome.failed.value)
            log.warning(
                "monitor_failed",
                extra={"payload": {"meeting_uuid": meeting_uuid, "code": e.code, "error": e.message}},
            )
            raise

        record_monitor_result(MonitorOutcome.ok.value)
        log.info("monitor_completed", extra={"payload": {"meeting_uuid": meeting_uuid}})
        return result

    def _expire(self, req: PendingMonitorRequest) -> None:
        rejected = req.reject(
            MonitorTimeoutError(
                f"Таймаут ожидания meeting.rtms_started для встречи {req.meeting_uuid}: "
                "no session-started signal received",
                details={"meeting_uuid": req.meeting_uuid, "wait_timeout_sec": self.wait_timeout_sec},
            )
        )
        removed = self.coordinator.remove_pending(req.meeting_uuid, expected=req)
        if rejected or removed is not None:
            log.warning(
                "monitor_wait_timeout",
                extra={"payload": {"meeting_uuid": req.meeting_uuid}},
            )
