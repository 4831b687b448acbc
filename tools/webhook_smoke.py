"""
Smoke-проверка запущенного сервиса.

Сценарий:
- POST /monitor (в отдельном потоке, ответ держится до конца окна захвата)
- POST /webhook meeting.rtms_started для той же встречи
- ожидание ответа /monitor и вывод результата

Имеет смысл с MEDIA_TRANSPORT_PROVIDER=mock и настроенным EXTERNAL_API_URL.
"""

from __future__ import annotations

import argparse
import json
import threading
import time
import uuid

import requests


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", default="http://127.0.0.1:8080")
    parser.add_argument("--meeting-uuid", default=None)
    parser.add_argument("--user-id", default="smoke-user")
    parser.add_argument("--timeout-sec", type=float, default=90.0)
    args = parser.parse_args()

    base_url = args.base_url.rstrip("/")
    meeting_uuid = args.meeting_uuid or f"smoke-{uuid.uuid4().hex[:8]}"
    result: dict = {}

    def _monitor() -> None:
        try:
            resp = requests.post(
                f"{base_url}/monitor",
                json={"meetingUuid": meeting_uuid, "userId": args.user_id},
                timeout=args.timeout_sec,
            )
            result["status"] = resp.status_code
            result["body"] = resp.json()
        except requests.RequestException as e:
            result["error"] = str(e)

    worker = threading.Thread(target=_monitor, daemon=True)
    worker.start()
    time.sleep(0.5)

    hook = requests.post(
        f"{base_url}/webhook",
        json={
            "event": "meeting.rtms_started",
            "payload": {
                "meeting_uuid": meeting_uuid,
                "rtms_stream_id": f"stream-{meeting_uuid}",
                "server_urls": "wss://mock.invalid",
            },
        },
        timeout=10,
    )
    print(f"webhook: {hook.status_code} {hook.text}")

    worker.join(args.timeout_sec)
    print(json.dumps({"meeting_uuid": meeting_uuid, **result}, ensure_ascii=False, indent=2))
    return 0 if result.get("status") == 200 else 1


if __name__ == "__main__":
    raise SystemExit(main())
