"""
Централизованная конфигурация сервиса (ENV / .env).

Важно:
- настройки читаются из .env и переменных окружения
- типизированные значения через pydantic-settings
- EXTERNAL_API_URL проверяется лениво (по завершении окна захвата), не на старте
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Runtime
    # -------------------------------------------------------------------------
    app_env: str = Field(default="dev", alias="APP_ENV")
    service_name: str = Field(default="meeting-monitor", alias="SERVICE_NAME")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8080, alias="PORT")
    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")

    # -------------------------------------------------------------------------
    # Monitoring / capture
    # -------------------------------------------------------------------------
    monitor_wait_timeout_sec: float = Field(default=60.0, alias="MONITOR_WAIT_TIMEOUT_SEC")
    capture_window_sec: float = Field(default=10.0, alias="CAPTURE_WINDOW_SEC")

    # -------------------------------------------------------------------------
    # External analysis API
    # -------------------------------------------------------------------------
    external_api_url: str | None = Field(default=None, alias="EXTERNAL_API_URL")
    external_api_token: str | None = Field(default=None, alias="EXTERNAL_API_TOKEN")
    external_api_timeout_sec: int = Field(default=30, alias="EXTERNAL_API_TIMEOUT_SEC")

    # -------------------------------------------------------------------------
    # Media transport (Zoom RTMS)
    # -------------------------------------------------------------------------
    media_transport_provider: str = Field(
        default="mock", alias="MEDIA_TRANSPORT_PROVIDER"
    )  # zoom_rtms|mock
    zoom_client_id: str | None = Field(default=None, alias="ZOOM_CLIENT_ID")
    zoom_client_secret: str | None = Field(default=None, alias="ZOOM_CLIENT_SECRET")
    zoom_webhook_secret_token: str | None = Field(default=None, alias="ZOOM_WEBHOOK_SECRET_TOKEN")
    rtms_poll_interval_ms: int = Field(default=10, alias="RTMS_POLL_INTERVAL_MS")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")  # json|text

    def model_post_init(self, __context) -> None:
        _apply_file_overrides(self)


def _apply_file_overrides(settings: Settings) -> None:
    """
    Поддержка секретов из файлов: ZOOM_CLIENT_SECRET_FILE=/run/secrets/...
    """
    alias_to_field = {}
    for name, field in type(settings).model_fields.items():
        alias = field.alias or name
        alias_to_field[str(alias)] = name
        alias_to_field[str(name)] = name

    for key, path in os.environ.items():
        if not key.endswith("_FILE"):
            continue
        base = key[: -len("_FILE")]
        target = alias_to_field.get(base)
        if not target:
            continue
        file_path = (path or "").strip()
        if not file_path:
            continue
        try:
            raw = Path(file_path).read_text(encoding="utf-8")
        except Exception as e:
            logging.getLogger("meeting-monitor").error(
                "config_file_read_failed",
                extra={"payload": {"env_key": key, "path": file_path, "error": str(e)[:200]}},
            )
            raise RuntimeError(f"Failed to read {key} from {file_path}") from e
        setattr(settings, target, (raw or "").strip())


_SETTINGS = Settings()


def get_settings() -> Settings:
    return _SETTINGS
