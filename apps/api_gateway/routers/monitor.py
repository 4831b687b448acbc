"""
HTTP роут запроса мониторинга.

- POST /monitor  {meetingUuid, userId}

Ответ держится открытым до результата API анализа,
ошибки отдаются как {status, error, message}.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from apps.api_gateway.deps import get_monitor_gateway
from meeting_monitor.common.errors import AppError, ErrCode
from meeting_monitor.common.logging import get_project_logger
from meeting_monitor.contracts.http_api import ErrorResponse, MonitorRequest
from meeting_monitor.services.monitor_gateway import MonitorGateway

log = get_project_logger()

router = APIRouter()

_ERROR_LABELS = {
    ErrCode.VALIDATION: "missing fields",
    ErrCode.CONFLICT: "already active",
}

_ERROR_STATUS = {
    ErrCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrCode.CONFLICT: status.HTTP_409_CONFLICT,
}


def error_response(e: AppError) -> JSONResponse:
    body = ErrorResponse(error=_ERROR_LABELS.get(e.code, e.code), message=e.message)
    return JSONResponse(
        status_code=_ERROR_STATUS.get(e.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=body.model_dump(),
    )


async def _parse_monitor_request(request: Request) -> MonitorRequest:
    try:
        body: Any = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    try:
        return MonitorRequest.model_validate(body)
    except PydanticValidationError:
        return MonitorRequest()


@router.post("/monitor")
async def monitor(
    request: Request,
    gateway: MonitorGateway = Depends(get_monitor_gateway),
) -> JSONResponse:
    req = await _parse_monitor_request(request)
    try:
        result = await gateway.monitor(req.meeting_uuid, req.user_id)
    except AppError as e:
        log.info(
            "monitor_http_error",
            extra={"payload": {"meeting_uuid": req.meeting_uuid, "code": e.code}},
        )
        return error_response(e)
    return JSONResponse(status_code=status.HTTP_200_OK, content=result)
