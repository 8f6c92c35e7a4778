"""Settings, activity and reference data endpoints."""

import json
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request

from api.state import AppState, get_state
from core.errors import ValidationError
from core.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/settings")
async def get_settings(state: AppState = Depends(get_state)) -> Dict[str, Any]:
    return state.settings.current.to_api()


@router.post("/api/settings")
async def update_settings(request: Request, state: AppState = Depends(get_state)) -> Dict[str, Any]:
    """Merge the posted keys into the runtime settings.

    Recognized keys: revenueCode, costCode, accrualCode, salesTaxName,
    autoApproveBills. Empty values leave a setting unchanged.
    """
    try:
        changes = json.loads(await request.body() or b"{}")
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(changes, dict):
        raise ValidationError("Request body must be a JSON object")

    settings = state.settings.update(changes)
    message = f"Settings updated: {settings.describe()}"
    state.activity.ok(message)
    logger.info(message)
    return {"ok": True, "settings": settings.to_api()}


@router.get("/api/settings/check")
async def check_settings(state: AppState = Depends(get_state)) -> Dict[str, bool]:
    """Report whether each configured code and the tax name exist in Xero."""
    tenant_id = await state.oauth.resolve_tenant()
    return await state.resolver.check_settings(tenant_id, state.settings.current)


@router.get("/api/reference-data")
async def reference_data(state: AppState = Depends(get_state)) -> Dict[str, Any]:
    """Tax rates, accounts and tracking categories of the connected tenant."""
    tenant_id = await state.oauth.resolve_tenant()
    return await state.resolver.reference_data(tenant_id)


@router.get("/api/logs")
async def activity_log(state: AppState = Depends(get_state)) -> List[Dict[str, Any]]:
    """The most recent activity, newest first."""
    return state.activity.recent()


@router.get("/metrics")
async def metrics(state: AppState = Depends(get_state)) -> Dict[str, Any]:
    summary = state.metrics.get_summary()
    summary["ledger"] = state.ledger.snapshot()
    return summary
