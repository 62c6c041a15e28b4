"""Route definitions for gatekeeper service."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from notion_relay.gatekeeper.errors import WebhookError
from notion_relay.gatekeeper.models import ErrorResponse, HandshakeResponse, NotificationResponse
from notion_relay.gatekeeper.webhook_handlers import handle_notion_webhook

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Request body could not be read"},
    401: {"model": ErrorResponse, "description": "Missing, malformed or invalid signature"},
    500: {"model": ErrorResponse, "description": "Secret not configured or publish failed"},
}


@router.post(
    "/webhooks/notion",
    response_model=HandshakeResponse | NotificationResponse,
    responses=ERROR_RESPONSES,
)
async def notion_webhook(request: Request):
    """Process a Notion webhook: verification handshake or event notification."""
    return await handle_notion_webhook(request)


async def webhook_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a WebhookError as `{"error", "code"}` with its mapped status."""
    if not isinstance(exc, WebhookError):
        raise exc
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())
