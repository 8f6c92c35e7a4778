"""Xero connection routes.

Implements:
- GET /connect - Redirects the administrator to Xero consent
- GET /callback - Handles the OAuth callback
- GET /api/auth/status - Connection status
- POST /api/auth/disconnect - Drop the stored connection
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse, RedirectResponse
from pydantic import BaseModel

from api.state import AppState, get_state
from core.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class AuthStatusResponse(BaseModel):
    """OAuth connection status."""
    connected: bool
    tenant_id: Optional[str] = None
    tenant_name: Optional[str] = None
    expires_at: Optional[str] = None
    scopes: List[str] = []


class DisconnectResponse(BaseModel):
    """Response after disconnect."""
    success: bool
    message: str


# =============================================================================
# Routes
# =============================================================================

@router.get("/connect")
async def connect(state: AppState = Depends(get_state)):
    """Start the Xero OAuth flow and redirect to the consent page."""
    if not state.config.xero_client_id:
        raise HTTPException(
            status_code=500,
            detail="XERO_CLIENT_ID not configured. Set environment variable."
        )

    auth_url, _ = state.oauth.start_auth_flow()
    return RedirectResponse(url=auth_url, status_code=302)


@router.get("/callback", response_class=PlainTextResponse)
async def callback(
    code: Optional[str] = Query(None),
    oauth_state: Optional[str] = Query(None, alias="state"),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    state: AppState = Depends(get_state),
) -> str:
    """OAuth callback endpoint.

    Xero redirects here after the administrator grants access.
    """
    await state.oauth.complete_auth_flow(oauth_state, code, error, error_description)
    tenant_id = await state.oauth.resolve_tenant()
    state.activity.ok(f"Connected to Xero tenant {tenant_id}")
    return "Connected to Xero. You can close this tab."


@router.get("/api/auth/status", response_model=AuthStatusResponse)
async def auth_status(state: AppState = Depends(get_state)) -> AuthStatusResponse:
    return AuthStatusResponse(**state.oauth.status())


@router.post("/api/auth/disconnect", response_model=DisconnectResponse)
async def disconnect(state: AppState = Depends(get_state)) -> DisconnectResponse:
    """Remove stored tokens. The administrator must connect again."""
    success = await state.oauth.disconnect()
    if success:
        state.activity.ok("Disconnected from Xero")
    return DisconnectResponse(
        success=success,
        message="Disconnected from Xero" if success else "Not connected",
    )
