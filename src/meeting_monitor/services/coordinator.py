"""
Координатор мониторинга: два реестра, ключ = meeting_uuid.

Содержит:
- PendingMonitorRequest: ожидающий запрос /monitor (буферы кадров + settlement)
- ActiveSession: живая медиа-подписка
- протокол "удалить если есть, иначе no-op" для гонки двух таймаутов

Все мутации выполняются в потоке event loop, блокировки не нужны.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from meeting_monitor.common.errors import ConflictError
from meeting_monitor.common.time import utc_now
from meeting_monitor.connectors.base import TransportSession


@dataclass
class PendingMonitorRequest:
    meeting_uuid: str
    user_id: str
    future: asyncio.Future
    audio: list[bytes] = field(default_factory=list)
    video: list[bytes] = field(default_factory=list)
    capture_started: bool = False
    timeout_handle: asyncio.TimerHandle | None = None
    created_at: datetime = field(default_factory=utc_now)

    def resolve(self, payload: Any) -> bool:
        """
        Успешное завершение. Возвращает False, если запрос уже завершён.
        """
        self._cancel_timeout()
        if self.future.done():
            return False
        self.future.set_result(payload)
        return True

    def reject(self, error: BaseException) -> bool:
        self._cancel_timeout()
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True

    def _cancel_timeout(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


@dataclass
class ActiveSession:
    meeting_uuid: str
    rtms_stream_id: str
    server_urls: str | list[str]
    session: TransportSession
    joined_at: datetime = field(default_factory=utc_now)


class MonitorCoordinator:
    """
    Единственный источник истины "наблюдается ли встреча".
    Внедряется во все компоненты вместо глобальных словарей.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingMonitorRequest] = {}
        self._active: dict[str, ActiveSession] = {}

    # -------------------------------------------------------------------------
    # Pending requests
    # -------------------------------------------------------------------------
    def register(self, meeting_uuid: str, user_id: str) -> PendingMonitorRequest:
        if meeting_uuid in self._pending:
            raise ConflictError(
                f"Мониторинг встречи {meeting_uuid} уже активен",
                details={"meeting_uuid": meeting_uuid},
            )
        loop = asyncio.get_running_loop()
        req = PendingMonitorRequest(
            meeting_uuid=meeting_uuid,
            user_id=user_id,
            future=loop.create_future(),
        )
        self._pending[meeting_uuid] = req
        return req

    def get_pending(self, meeting_uuid: str) -> PendingMonitorRequest | None:
        return self._pending.get(meeting_uuid)

    def has_pending(self, meeting_uuid: str) -> bool:
        return meeting_uuid in self._pending

    def remove_pending(
        self,
        meeting_uuid: str,
        *,
        expected: PendingMonitorRequest | None = None,
    ) -> PendingMonitorRequest | None:
        """
        Удаляет запрос, если он есть. expected защищает от удаления
        более нового запроса с тем же meeting_uuid.
        """
        current = self._pending.get(meeting_uuid)
        if current is None:
            return None
        if expected is not None and current is not expected:
            return None
        del self._pending[meeting_uuid]
        return current

    # -------------------------------------------------------------------------
    # Active sessions
    # -------------------------------------------------------------------------
    def add_active(self, active: ActiveSession) -> None:
        """
        Одна живая подписка на встречу: существующую запись не перезаписываем,
        иначе её handle уже никто не закроет.
        """
        if active.meeting_uuid in self._active:
            raise ConflictError(
                f"Медиа-подписка встречи {active.meeting_uuid} уже активна",
                details={"meeting_uuid": active.meeting_uuid},
            )
        self._active[active.meeting_uuid] = active

    def get_active(self, meeting_uuid: str) -> ActiveSession | None:
        return self._active.get(meeting_uuid)

    def remove_active(
        self,
        meeting_uuid: str,
        *,
        expected: ActiveSession | None = None,
    ) -> ActiveSession | None:
        current = self._active.get(meeting_uuid)
        if current is None:
            return None
        if expected is not None and current is not expected:
            return None
        del self._active[meeting_uuid]
        return current

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    def sizes(self) -> tuple[int, int]:
        return len(self._pending), len(self._active)
