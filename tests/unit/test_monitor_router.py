from __future__ import annotations

from fastapi.testclient import TestClient

from apps.api_gateway.deps import get_monitor_gateway, get_webhook_dispatcher
from apps.api_gateway.main import _create_app
from meeting_monitor.common.errors import (
    ConfigError,
    ConflictError,
    ErrCode,
    MonitorTimeoutError,
    ProviderError,
    ValidationError,
)
from meeting_monitor.connectors.zoom_rtms.mock import MockRtmsTransport
from meeting_monitor.services.runtime import build_runtime


class _FakeGateway:
    def __init__(self, *, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    async def monitor(self, meeting_uuid, user_id):
        self.calls.append((meeting_uuid, user_id))
        if self.error is not None:
            raise self.error
        return self.result


class _ExplodingDispatcher:
    async def handle_event(self, event, payload):
        raise RuntimeError("internal failure")


def _client_with_gateway(gateway) -> TestClient:
    runtime = build_runtime(transport=MockRtmsTransport(), capture_window_sec=0.01, wait_timeout_sec=0.05)
    app = _create_app(runtime=runtime)
    app.dependency_overrides[get_monitor_gateway] = lambda: gateway
    return TestClient(app)


def test_monitor_returns_payload_verbatim() -> None:
    gateway = _FakeGateway(result={"isDeepfake": False, "score": 0.03})
    app_client = _client_with_gateway(gateway)

    resp = app_client.post("/monitor", json={"meetingUuid": "m1", "userId": "u1"})
    assert resp.status_code == 200
    assert resp.json() == {"isDeepfake": False, "score": 0.03}
    assert gateway.calls == [("m1", "u1")]


def test_missing_fields_is_400() -> None:
    client = _client_with_gateway(_FakeGateway(error=ValidationError("missing")))
    resp = client.post("/monitor", json={"meetingUuid": "m1"})
    assert resp.status_code == 400
    assert resp.json()["status"] == "error"
    assert resp.json()["error"] == "missing fields"


def test_conflict_is_409() -> None:
    client = _client_with_gateway(_FakeGateway(error=ConflictError("busy")))
    resp = client.post("/monitor", json={"meetingUuid": "m1", "userId": "u1"})
    assert resp.status_code == 409
    assert resp.json()["error"] == "already active"


def test_timeout_and_downstream_failures_are_500() -> None:
    for err, code in [
        (MonitorTimeoutError("no session-started signal received"), ErrCode.TIMEOUT),
        (ProviderError(ErrCode.ANALYSIS_PROVIDER_ERROR, "api down"), ErrCode.ANALYSIS_PROVIDER_ERROR),
        (ConfigError("EXTERNAL_API_URL не настроен"), ErrCode.CONFIG),
    ]:
        client = _client_with_gateway(_FakeGateway(error=err))
        resp = client.post("/monitor", json={"meetingUuid": "m1", "userId": "u1"})
        assert resp.status_code == 500
        assert resp.json()["error"] == code
        assert resp.json()["message"] == err.message


def test_real_gateway_rejects_bad_body_with_400() -> None:
    runtime = build_runtime(transport=MockRtmsTransport(), capture_window_sec=0.01, wait_timeout_sec=0.05)
    client = TestClient(_create_app(runtime=runtime))

    assert client.post("/monitor", content=b"not json").status_code == 400
    assert client.post("/monitor", json={"meetingUuid": 123, "userId": "u1"}).status_code == 400
    assert client.post("/monitor", json=["m1", "u1"]).status_code == 400


def test_real_gateway_times_out_with_500() -> None:
    runtime = build_runtime(transport=MockRtmsTransport(), capture_window_sec=0.01, wait_timeout_sec=0.05)
    client = TestClient(_create_app(runtime=runtime))

    resp = client.post("/monitor", json={"meetingUuid": "m1", "userId": "u1"})
    assert resp.status_code == 500
    assert resp.json()["error"] == ErrCode.TIMEOUT
    assert runtime.coordinator.sizes() == (0, 0)


def test_webhook_acknowledges_even_on_internal_error() -> None:
    runtime = build_runtime(transport=MockRtmsTransport())
    app = _create_app(runtime=runtime)
    app.dependency_overrides[get_webhook_dispatcher] = lambda: _ExplodingDispatcher()
    client = TestClient(app)

    resp = client.post("/webhook", json={"event": "meeting.rtms_started", "payload": {}})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_webhook_parse_error_reports_error() -> None:
    runtime = build_runtime(transport=MockRtmsTransport())
    client = TestClient(_create_app(runtime=runtime))

    resp = client.post("/webhook", content=b"{broken")
    assert resp.status_code == 500
    assert resp.json()["status"] == "error"
    assert resp.json()["message"]


def test_health_reports_registry_sizes() -> None:
    runtime = build_runtime(transport=MockRtmsTransport())
    client = TestClient(_create_app(runtime=runtime))

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "pending": 0, "active": 0}
