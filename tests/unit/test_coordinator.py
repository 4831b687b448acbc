from __future__ import annotations

import asyncio

import pytest

from meeting_monitor.common.errors import ConflictError, MonitorTimeoutError
from meeting_monitor.connectors.base import TransportSession
from meeting_monitor.services.coordinator import ActiveSession, MonitorCoordinator


def test_second_registration_conflicts_without_mutation() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        first = coord.register("m1", "u1")
        first.audio.append(b"a1")
        first.video.append(b"v1")

        with pytest.raises(ConflictError):
            coord.register("m1", "u2")

        current = coord.get_pending("m1")
        assert current is first
        assert current.user_id == "u1"
        assert current.audio == [b"a1"]
        assert current.video == [b"v1"]

    asyncio.run(scenario())


def test_remove_pending_is_idempotent() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        req = coord.register("m1", "u1")
        assert coord.remove_pending("m1", expected=req) is req
        assert coord.remove_pending("m1", expected=req) is None
        assert coord.remove_pending("m1") is None
        assert coord.has_pending("m1") is False

    asyncio.run(scenario())


def test_remove_pending_ignores_newer_request_with_same_id() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        old = coord.register("m1", "u1")
        coord.remove_pending("m1", expected=old)
        newer = coord.register("m1", "u2")

        # Запоздавшая очистка старого запроса не трогает новый
        assert coord.remove_pending("m1", expected=old) is None
        assert coord.get_pending("m1") is newer

    asyncio.run(scenario())


def test_settlement_happens_once() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        req = coord.register("m1", "u1")
        assert req.resolve({"ok": True}) is True
        assert req.reject(MonitorTimeoutError("late")) is False
        assert req.resolve({"ok": False}) is False
        return await req.future

    assert asyncio.run(scenario()) == {"ok": True}


def test_settlement_cancels_timeout_handle() -> None:
    async def scenario():
        coord = MonitorCoordinator()
        req = coord.register("m1", "u1")
        fired: list[str] = []
        req.timeout_handle = asyncio.get_running_loop().call_later(0.01, fired.append, "timeout")
        req.resolve("done")
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(scenario()) == []


def test_active_session_registry() -> None:
    coord = MonitorCoordinator()
    active = ActiveSession(
        meeting_uuid="m1",
        rtms_stream_id="s1",
        server_urls="wss://x",
        session=TransportSession(meeting_uuid="m1", provider="mock"),
    )
    coord.add_active(active)
    assert coord.sizes() == (0, 1)
    assert coord.remove_active("m1", expected=active) is active
    assert coord.remove_active("m1") is None
    assert coord.sizes() == (0, 0)


def test_add_active_does_not_overwrite_live_session() -> None:
    coord = MonitorCoordinator()
    first = ActiveSession(
        meeting_uuid="m1",
        rtms_stream_id="s1",
        server_urls="wss://x",
        session=TransportSession(meeting_uuid="m1", provider="mock"),
    )
    second = ActiveSession(
        meeting_uuid="m1",
        rtms_stream_id="s2",
        server_urls="wss://y",
        session=TransportSession(meeting_uuid="m1", provider="mock"),
    )
    coord.add_active(first)
    with pytest.raises(ConflictError):
        coord.add_active(second)
    assert coord.get_active("m1") is first
