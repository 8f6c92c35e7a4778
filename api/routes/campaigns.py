"""Campaign onboarding endpoint."""

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from api.state import AppState, get_state
from core.errors import ValidationError

router = APIRouter()


@router.post("/campaigns")
async def create_campaign(request: Request, state: AppState = Depends(get_state)) -> Dict[str, Any]:
    """Invoice a sold campaign and accrue its expected cost.

    **Body:**
    - clientContactId or clientContactName (one required)
    - campaignRef, saleNet, expectedCostNet (required)
    - dueDate, description, salesTaxName (optional)

    The body is validated by the onboarding layer so a missing field answers
    400 with {"error": ...}.
    """
    try:
        payload = json.loads(await request.body() or b"{}")
    except ValueError:
        raise ValidationError("Request body must be valid JSON")

    result = await state.onboarding.create_campaign(payload)
    return result.to_api()
