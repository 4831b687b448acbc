"""
Доменные перечисления (enum).

Используются во всей системе:
- события вебхука платформы встреч
- типы медиа-кадров
- исходы запроса мониторинга
"""

from __future__ import annotations

import enum


class WebhookEvent(str, enum.Enum):
    """
    События вебхука Zoom, на которые реагирует сервис.
    """

    rtms_started = "meeting.rtms_started"
    rtms_stopped = "meeting.rtms_stopped"
    url_validation = "endpoint.url_validation"


class MediaKind(str, enum.Enum):
    audio = "audio"
    video = "video"


class MonitorOutcome(str, enum.Enum):
    """
    Исход запроса мониторинга (для метрик и логов).
    """

    ok = "ok"
    timeout = "timeout"
    failed = "failed"
    conflict = "conflict"
    invalid = "invalid"
