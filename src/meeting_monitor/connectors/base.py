"""
Базовые интерфейсы медиа-транспорта (интеграция с платформой встреч).

Назначение:
- стандартизировать адаптеры к RTMS-подобным потокам
- отделить "как подключаемся" от "что делаем с кадрами"

join() возвращает handle сессии, leave() принимает его явно:
несколько встреч могут быть подключены в одном процессе одновременно.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class JoinParams:
    """
    Параметры подключения из события meeting.rtms_started.
    """

    meeting_uuid: str
    rtms_stream_id: str
    server_urls: str | list[str]


@dataclass(frozen=True)
class FrameMetadata:
    user_id: str
    user_name: str = ""


@dataclass(frozen=True)
class MediaFrame:
    data: bytes
    size: int
    timestamp: int
    metadata: FrameMetadata


FrameCallback = Callable[[MediaFrame], None]


@dataclass
class TransportSession:
    """
    Handle живой медиа-подписки. native хранит объект SDK.
    """

    meeting_uuid: str
    provider: str
    native: Any = None
    extra: dict[str, Any] = field(default_factory=dict)


class MediaTransport(Protocol):
    """
    Контракт медиа-транспорта.

    Колбэки вызываются в потоке event loop и должны быть неблокирующими.
    """

    provider: str

    async def join(
        self,
        params: JoinParams,
        *,
        on_audio: FrameCallback,
        on_video: FrameCallback,
    ) -> TransportSession:
        """Подключиться к потоку встречи и подписаться на кадры."""
        ...

    async def leave(self, session: TransportSession) -> None:
        """Отписаться и отключиться от конкретной сессии."""
        ...
