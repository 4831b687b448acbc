"""
Mock-транспорт RTMS для dev/тестов.

Назначение:
- позволить гонять сценарий мониторинга без реальной платформы встреч
- тесты "подают" кадры в живую сессию через push_audio/push_video
"""

from __future__ import annotations

from dataclasses import dataclass

from meeting_monitor.common.errors import ErrCode, ProviderError
from meeting_monitor.connectors.base import (
    FrameCallback,
    FrameMetadata,
    JoinParams,
    MediaFrame,
    MediaTransport,
    TransportSession,
)


@dataclass
class _MockSubscription:
    on_audio: FrameCallback
    on_video: FrameCallback


class MockRtmsTransport(MediaTransport):
    provider = "mock"

    def __init__(self, *, fail_join: bool = False, fail_leave: bool = False) -> None:
        self.fail_join = fail_join
        self.fail_leave = fail_leave
        self.joins: list[JoinParams] = []
        self.leaves: list[str] = []
        self._live: dict[str, _MockSubscription] = {}

    async def join(
        self,
        params: JoinParams,
        *,
        on_audio: FrameCallback,
        on_video: FrameCallback,
    ) -> TransportSession:
        self.joins.append(params)
        if self.fail_join:
            raise ProviderError(
                ErrCode.TRANSPORT_PROVIDER_ERROR,
                "mock join failed",
                details={"meeting_uuid": params.meeting_uuid},
            )
        self._live[params.meeting_uuid] = _MockSubscription(on_audio=on_audio, on_video=on_video)
        return TransportSession(meeting_uuid=params.meeting_uuid, provider=self.provider)

    async def leave(self, session: TransportSession) -> None:
        self.leaves.append(session.meeting_uuid)
        self._live.pop(session.meeting_uuid, None)
        if self.fail_leave:
            raise ProviderError(ErrCode.TRANSPORT_PROVIDER_ERROR, "mock leave failed")

    def is_live(self, meeting_uuid: str) -> bool:
        return meeting_uuid in self._live

    def push_audio(self, meeting_uuid: str, data: bytes, *, user_id: str, user_name: str = "") -> bool:
        sub = self._live.get(meeting_uuid)
        if sub is None:
            return False
        sub.on_audio(_frame(data, user_id=user_id, user_name=user_name))
        return True

    def push_video(self, meeting_uuid: str, data: bytes, *, user_id: str, user_name: str = "") -> bool:
        sub = self._live.get(meeting_uuid)
        if sub is None:
            return False
        sub.on_video(_frame(data, user_id=user_id, user_name=user_name))
        return True


def _frame(data: bytes, *, user_id: str, user_name: str) -> MediaFrame:
    return MediaFrame(
        data=data,
        size=len(data),
        timestamp=0,
        metadata=FrameMetadata(user_id=user_id, user_name=user_name),
    )
