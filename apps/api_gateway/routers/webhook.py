"""
HTTP роут вебхука Zoom.

- POST /webhook  {event, payload}

Всегда {status: "ok"}, кроме ошибки разбора самого запроса.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from apps.api_gateway.deps import get_webhook_dispatcher
from meeting_monitor.common.logging import get_project_logger
from meeting_monitor.contracts.http_api import WebhookRequest
from meeting_monitor.services.webhook_dispatcher import ACK, WebhookDispatcher

log = get_project_logger()

router = APIRouter()


@router.post("/webhook")
async def webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> JSONResponse:
    try:
        body = WebhookRequest.model_validate(await request.json())
    except Exception as e:
        log.error("webhook_parse_failed", extra={"payload": {"error": str(e)[:200]}})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": str(e)[:200]},
        )

    try:
        response = await dispatcher.handle_event(body.event, body.payload)
    except Exception as e:
        log.error(
            "webhook_handling_failed",
            extra={"payload": {"event": body.event, "error": str(e)[:200]}},
        )
        response = dict(ACK)
    return JSONResponse(status_code=status.HTTP_200_OK, content=response)
