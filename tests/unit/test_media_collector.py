from __future__ import annotations

import asyncio

from meeting_monitor.connectors.base import FrameMetadata, MediaFrame
from meeting_monitor.services.coordinator import MonitorCoordinator
from meeting_monitor.services.media_collector import MediaCollector


def _frame(data: bytes, user_id: str) -> MediaFrame:
    return MediaFrame(
        data=data,
        size=len(data),
        timestamp=1,
        metadata=FrameMetadata(user_id=user_id, user_name=f"name-{user_id}"),
    )


def test_only_target_participant_frames_are_buffered() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        req = coord.register("m1", "u1")
        collector = MediaCollector(coord, req)

        collector.on_audio(_frame(b"a1", "u1"))
        collector.on_audio(_frame(b"x1", "u2"))
        collector.on_video(_frame(b"v1", "u1"))
        collector.on_video(_frame(b"x2", "u3"))
        collector.on_audio(_frame(b"a2", "u1"))
        return req

    req = asyncio.run(scenario())
    assert req.audio == [b"a1", b"a2"]
    assert req.video == [b"v1"]


def test_frames_discarded_when_request_is_gone() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        req = coord.register("m1", "u1")
        coord.remove_pending("m1")
        MediaCollector(coord, req).on_audio(_frame(b"a1", "u1"))
        return req

    req = asyncio.run(scenario())
    assert req.audio == []


def test_collector_is_scoped_to_its_meeting() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        m1 = coord.register("m1", "u1")
        m2 = coord.register("m2", "u1")
        MediaCollector(coord, m2).on_video(_frame(b"v", "u1"))
        return m1, m2

    m1, m2 = asyncio.run(scenario())
    assert m1.video == []
    assert m2.video == [b"v"]


def test_old_collector_stays_out_of_newer_request_for_same_meeting() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        first = coord.register("m1", "u1")
        old_collector = MediaCollector(coord, first)

        # Первый запрос истёк, клиент повторил /monitor для той же встречи
        coord.remove_pending("m1", expected=first)
        second = coord.register("m1", "u1")

        old_collector.on_audio(_frame(b"from-old-session", "u1"))
        MediaCollector(coord, second).on_audio(_frame(b"fresh", "u1"))
        return first, second

    first, second = asyncio.run(scenario())
    assert first.audio == []
    assert second.audio == [b"fresh"]
