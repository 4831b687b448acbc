"""
HTTP API контракты (Pydantic-модели).

Назначение:
- валидация входа /monitor и /webhook
- стабильные структуры ошибок для клиентов
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ЗАПРОСЫ
# =============================================================================
class MonitorRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Обязательность проверяет gateway: пустые поля -> 400, а не 422
    meeting_uuid: str | None = Field(default=None, alias="meetingUuid")
    user_id: str | None = Field(default=None, alias="userId")


class WebhookRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str | None = None
    payload: dict[str, Any] | None = None


# =============================================================================
# ОТВЕТЫ
# =============================================================================
class ErrorResponse(BaseModel):
    status: str = "error"
    error: str
    message: str


class HealthResponse(BaseModel):
    ok: bool = True
    pending: int = 0
    active: int = 0
