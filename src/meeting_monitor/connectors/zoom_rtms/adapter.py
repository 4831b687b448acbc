"""
Адаптер Zoom RTMS (пакет `rtms`, optional extra `zoom`).

Назначение:
- подключение к медиа-потоку встречи по данным из meeting.rtms_started
- отдельный rtms.Client на каждую встречу (handle вместо process-wide leave)
- join/leave блокирующие, выполняются в отдельном потоке (asyncio.to_thread)
- poll SDK из asyncio-задачи, поэтому колбэки кадров приходят в поток event loop
"""

from __future__ import annotations

import asyncio
from typing import Any

from meeting_monitor.common.config import get_settings
from meeting_monitor.common.errors import ErrCode, ProviderError
from meeting_monitor.common.logging import get_project_logger
from meeting_monitor.connectors.base import (
    FrameCallback,
    FrameMetadata,
    JoinParams,
    MediaFrame,
    MediaTransport,
    TransportSession,
)

log = get_project_logger()


def _load_sdk() -> Any:
    try:
        import rtms

        return rtms
    except ImportError as e:
        raise ProviderError(
            ErrCode.TRANSPORT_PROVIDER_ERROR,
            "Пакет rtms не установлен (pip install meeting-monitor-relay[zoom])",
        ) from e


def _to_frame(data: Any, size: Any, timestamp: Any, metadata: Any) -> MediaFrame:
    payload = bytes(data or b"")
    return MediaFrame(
        data=payload,
        size=int(size) if size is not None else len(payload),
        timestamp=int(timestamp or 0),
        metadata=FrameMetadata(
            user_id=str(getattr(metadata, "userId", "") or ""),
            user_name=str(getattr(metadata, "userName", "") or ""),
        ),
    )


class ZoomRtmsTransport(MediaTransport):
    provider = "zoom_rtms"

    def __init__(
        self,
        *,
        client_id: str | None = None,
        client_secret: str | None = None,
        poll_interval_ms: int | None = None,
    ) -> None:
        s = get_settings()
        self.client_id = (client_id or s.zoom_client_id or "").strip()
        self.client_secret = (client_secret or s.zoom_client_secret or "").strip()
        interval_ms = poll_interval_ms if poll_interval_ms is not None else s.rtms_poll_interval_ms
        self.poll_interval_sec = max(1, int(interval_ms)) / 1000.0

    async def join(
        self,
        params: JoinParams,
        *,
        on_audio: FrameCallback,
        on_video: FrameCallback,
    ) -> TransportSession:
        sdk = _load_sdk()
        client = sdk.Client()

        def _audio(data, size, timestamp, metadata) -> None:
            on_audio(_to_frame(data, size, timestamp, metadata))

        def _video(data, size, timestamp, metadata) -> None:
            on_video(_to_frame(data, size, timestamp, metadata))

        client.onAudioData(_audio)
        client.onVideoData(_video)

        join_kwargs: dict[str, Any] = {
            "meeting_uuid": params.meeting_uuid,
            "rtms_stream_id": params.rtms_stream_id,
            "server_urls": params.server_urls,
        }
        if self.client_id and self.client_secret:
            join_kwargs["client"] = self.client_id
            join_kwargs["secret"] = self.client_secret

        try:
            await asyncio.to_thread(client.join, **join_kwargs)
        except Exception as e:
            raise ProviderError(
                ErrCode.TRANSPORT_PROVIDER_ERROR,
                "Ошибка подключения к RTMS",
                details={"meeting_uuid": params.meeting_uuid, "err": str(e)[:200]},
            ) from e

        poller = asyncio.create_task(self._poll(client, params.meeting_uuid))
        log.info("rtms_join_ok", extra={"payload": {"meeting_uuid": params.meeting_uuid}})
        return TransportSession(
            meeting_uuid=params.meeting_uuid,
            provider=self.provider,
            native=client,
            extra={"poller": poller},
        )

    async def _poll(self, client: Any, meeting_uuid: str) -> None:
        while True:
            try:
                client.poll()
            except Exception as e:
                log.warning(
                    "rtms_poll_failed",
                    extra={"payload": {"meeting_uuid": meeting_uuid, "error": str(e)[:200]}},
                )
                return
            await asyncio.sleep(self.poll_interval_sec)

    async def leave(self, session: TransportSession) -> None:
        poller = session.extra.pop("poller", None)
        if poller is not None:
            poller.cancel()
        if session.native is None:
            return
        try:
            await asyncio.to_thread(session.native.leave)
        except Exception as e:
            raise ProviderError(
                ErrCode.TRANSPORT_PROVIDER_ERROR,
                "Ошибка отключения от RTMS",
                details={"meeting_uuid": session.meeting_uuid, "err": str(e)[:200]},
            ) from e
        log.info("rtms_leave_ok", extra={"payload": {"meeting_uuid": session.meeting_uuid}})
