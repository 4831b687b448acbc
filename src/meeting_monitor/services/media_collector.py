"""
Сборщик медиа-кадров.

Колбэки вызываются транспортом в произвольные моменты относительно таймеров:
только добавить кадр в буфер или отбросить, никакой блокирующей работы.
Кадры других участников никогда не попадают в буфер.
Сборщик привязан к одному запросу: после его завершения кадры отбрасываются.
"""

from __future__ import annotations

from meeting_monitor.common.logging import get_media_logger
from meeting_monitor.common.metrics import record_frame
from meeting_monitor.connectors.base import MediaFrame
from meeting_monitor.domain.enums import MediaKind
from meeting_monitor.services.coordinator import MonitorCoordinator, PendingMonitorRequest

log = get_media_logger()


class MediaCollector:
    def __init__(self, coordinator: MonitorCoordinator, req: PendingMonitorRequest) -> None:
        self.coordinator = coordinator
        self.req = req
        self.meeting_uuid = req.meeting_uuid

    def on_audio(self, frame: MediaFrame) -> None:
        self._collect(MediaKind.audio, frame)

    def on_video(self, frame: MediaFrame) -> None:
        self._collect(MediaKind.video, frame)

    def _collect(self, kind: MediaKind, frame: MediaFrame) -> bool:
        # Более новый запрос с тем же meeting_uuid чужой для этой подписки
        req = self.req
        current = self.coordinator.get_pending(self.meeting_uuid)
        if current is not req or frame.metadata.user_id != req.user_id:
            record_frame(kind.value, buffered=False)
            return False

        buffer = req.audio if kind == MediaKind.audio else req.video
        buffer.append(frame.data)
        record_frame(kind.value, buffered=True)
        log.debug(
            "frame_buffered",
            extra={
                "payload": {
                    "meeting_uuid": self.meeting_uuid,
                    "kind": kind.value,
                    "user_id": frame.metadata.user_id,
                    "user_name": frame.metadata.user_name,
                    "bytes": len(frame.data),
                }
            },
        )
        return True
