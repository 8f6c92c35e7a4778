"""Xero webhook endpoint.

The signature covers the raw body, so the body is read as bytes and only
parsed after it has been verified. Responses are plain text.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse

from api.state import AppState, get_state
from core.errors import AccrualServiceError

router = APIRouter()


@router.post("/webhooks/xero", response_class=PlainTextResponse)
async def xero_webhook(
    request: Request,
    x_xero_signature: Optional[str] = Header(None),
    state: AppState = Depends(get_state),
):
    """Receive a webhook delivery.

    Answers 401 on a bad signature with nothing processed, 200 "ok" when
    every event was reconciled or ignored, and 500 with the first failure's
    message otherwise.
    """
    raw_body = await request.body()
    try:
        outcome = await state.webhooks.handle(x_xero_signature, raw_body)
    except AccrualServiceError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)

    if not outcome.ok:
        return PlainTextResponse(outcome.failures[0]["error"] or "error", status_code=500)
    return "ok"
