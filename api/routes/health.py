"""Health check endpoints."""

from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from api.state import AppState, get_state
from core import __version__


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Xero Media Accrual Plug-in is running."


@router.get("/health", response_model=HealthResponse)
async def health_check(state: AppState = Depends(get_state)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow().isoformat(),
        version=__version__,
        services={
            "api": "up",
            "xero": "connected" if state.oauth.is_connected else "not_connected",
            "webhooks": "configured" if state.config.webhook_key else "not_configured",
        }
    )
