from __future__ import annotations

import asyncio
import base64

import httpx

from apps.api_gateway.main import _create_app
from meeting_monitor.common.errors import ErrCode
from meeting_monitor.connectors.zoom_rtms.mock import MockRtmsTransport
from meeting_monitor.services.runtime import build_runtime


class _RecordingAnalysisClient:
    def __init__(self, response: dict) -> None:
        self.response = response
        self.calls: list[dict] = []

    def submit(self, payload: dict):
        self.calls.append(payload)
        return self.response


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


async def _wait_until(predicate, *, attempts: int = 400, delay: float = 0.005) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(delay)
    raise AssertionError("condition not reached")


def test_monitor_webhook_capture_roundtrip() -> None:
    transport = MockRtmsTransport()
    analysis = _RecordingAnalysisClient({"deepfake": False, "confidence": 0.91})
    runtime = build_runtime(
        transport=transport,
        analysis_client=analysis,
        capture_window_sec=0.2,
        wait_timeout_sec=5,
    )
    app = _create_app(runtime=runtime)

    async def scenario():
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            monitor = asyncio.create_task(
                client.post("/monitor", json={"meetingUuid": "m1", "userId": "u1"})
            )
            await _wait_until(lambda: runtime.coordinator.has_pending("m1"))

            hook = await client.post(
                "/webhook",
                json={
                    "event": "meeting.rtms_started",
                    "payload": {
                        "meeting_uuid": "m1",
                        "rtms_stream_id": "s1",
                        "server_urls": "wss://x",
                    },
                },
            )
            assert hook.json() == {"status": "ok"}

            await _wait_until(lambda: transport.is_live("m1"))
            transport.push_audio("m1", b"frame-1", user_id="u1", user_name="Alice")
            transport.push_audio("m1", b"other", user_id="u2", user_name="Bob")
            transport.push_audio("m1", b"frame-2", user_id="u1", user_name="Alice")

            resp = await monitor

            # Повторный rtms_stopped после завершения безопасен
            stopped = await client.post(
                "/webhook", json={"event": "meeting.rtms_stopped", "payload": {"meeting_uuid": "m1"}}
            )
            return resp, stopped

    resp, stopped = asyncio.run(scenario())

    assert resp.status_code == 200
    assert resp.json() == {"deepfake": False, "confidence": 0.91}
    assert stopped.json() == {"status": "ok"}
    assert analysis.calls == [
        {
            "meetingUuid": "m1",
            "userId": "u1",
            "audio": [_b64(b"frame-1"), _b64(b"frame-2")],
            "video": [],
        }
    ]
    assert transport.leaves == ["m1"]
    assert runtime.coordinator.sizes() == (0, 0)


def test_duplicate_monitor_request_conflicts_over_http() -> None:
    runtime = build_runtime(
        transport=MockRtmsTransport(),
        analysis_client=_RecordingAnalysisClient({}),
        wait_timeout_sec=0.3,
    )
    app = _create_app(runtime=runtime)

    async def scenario():
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            first = asyncio.create_task(
                client.post("/monitor", json={"meetingUuid": "m1", "userId": "u1"})
            )
            await _wait_until(lambda: runtime.coordinator.has_pending("m1"))
            second = await client.post("/monitor", json={"meetingUuid": "m1", "userId": "u9"})
            return await first, second

    first, second = asyncio.run(scenario())

    assert second.status_code == 409
    assert second.json()["error"] == "already active"
    assert first.status_code == 500
    assert first.json()["error"] == ErrCode.TIMEOUT
    assert runtime.coordinator.sizes() == (0, 0)


def test_wait_timeout_racing_capture_discards_late_result() -> None:
    transport = MockRtmsTransport()
    analysis = _RecordingAnalysisClient({"late": True})
    runtime = build_runtime(
        transport=transport,
        analysis_client=analysis,
        capture_window_sec=0.3,
        wait_timeout_sec=0.1,
    )

    async def scenario():
        monitor = asyncio.create_task(runtime.gateway.monitor("m1", "u1"))
        await asyncio.sleep(0)
        await runtime.dispatcher.handle_event(
            "meeting.rtms_started",
            {"meeting_uuid": "m1", "rtms_stream_id": "s1", "server_urls": "wss://x"},
        )
        await _wait_until(lambda: transport.is_live("m1"))
        transport.push_audio("m1", b"early", user_id="u1")

        outcome = await asyncio.gather(monitor, return_exceptions=True)
        # Кадры после таймаута уже некуда складывать
        transport.push_audio("m1", b"after-timeout", user_id="u1")
        await asyncio.gather(*runtime.dispatcher.background_tasks)
        return outcome[0]

    outcome = asyncio.run(scenario())

    assert getattr(outcome, "code", None) == ErrCode.TIMEOUT
    # Capture доработал до конца, но результат отброшен
    assert analysis.calls == [{"meetingUuid": "m1", "userId": "u1", "audio": [], "video": []}]
    assert transport.leaves == ["m1"]
    assert runtime.coordinator.sizes() == (0, 0)
