"""
Клиент внешнего API анализа.

Назначение:
- упаковка буферов (base64) в тело запроса
- один POST на окно захвата, ответ возвращается как есть
"""

from __future__ import annotations

import base64
from collections.abc import Sequence
from typing import Any

import requests

from meeting_monitor.common.config import get_settings
from meeting_monitor.common.errors import ConfigError, ErrCode, ProviderError
from meeting_monitor.common.logging import get_project_logger
from meeting_monitor.common.metrics import track_analysis_latency

log = get_project_logger()


def encode_frames(frames: Sequence[bytes]) -> list[str]:
    try:
        return [base64.b64encode(bytes(f)).decode("ascii") for f in frames]
    except (TypeError, ValueError) as e:
        raise ProviderError(
            ErrCode.ENCODING_ERROR,
            "Не удалось закодировать медиа-кадры",
            details={"err": str(e)[:200]},
        ) from e


def build_analysis_payload(
    *,
    meeting_uuid: str,
    user_id: str,
    audio: Sequence[bytes],
    video: Sequence[bytes],
) -> dict[str, Any]:
    return {
        "meetingUuid": meeting_uuid,
        "userId": user_id,
        "audio": encode_frames(audio),
        "video": encode_frames(video),
    }


class AnalysisApiClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_token: str | None = None,
        timeout_sec: int | None = None,
    ) -> None:
        s = get_settings()
        self.base_url = (base_url or "").strip() or None
        self.api_token = (api_token or s.external_api_token or "").strip()
        self.timeout_sec = int(timeout_sec if timeout_sec is not None else s.external_api_timeout_sec)

    def _resolve_url(self) -> str:
        # EXTERNAL_API_URL читается в момент вызова, а не при старте
        url = self.base_url or (get_settings().external_api_url or "").strip()
        if not url:
            raise ConfigError("EXTERNAL_API_URL не настроен")
        return url

    def submit(self, payload: dict[str, Any]) -> Any:
        url = self._resolve_url()
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        log.info(
            "analysis_api_submit",
            extra={
                "payload": {
                    "meeting_uuid": payload.get("meetingUuid"),
                    "audio_chunks": len(payload.get("audio") or []),
                    "video_chunks": len(payload.get("video") or []),
                }
            },
        )
        try:
            with track_analysis_latency():
                resp = requests.post(url, json=payload, headers=headers, timeout=self.timeout_sec)
                resp.raise_for_status()
        except requests.RequestException as e:
            raise ProviderError(
                ErrCode.ANALYSIS_PROVIDER_ERROR,
                "Ошибка обращения к API анализа",
                details={"err": str(e)[:200]},
            ) from e

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return resp.text
