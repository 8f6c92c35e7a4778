"""Campaign accruals: onboarding, bill reconciliation and variance journals."""

from accruals.models import (
    BillEvent,
    BillState,
    CampaignRequest,
    CampaignResult,
    DeliveryOutcome,
    IgnoreReason,
    ReconcileResult,
    VarianceDirection,
    WebhookDelivery,
)
from accruals.onboarding import CampaignOnboarding
from accruals.reconciler import WebhookReconciler
from accruals.resolver import ReferenceResolver
from accruals.webhooks import WebhookHandler

__all__ = [
    "BillEvent",
    "BillState",
    "CampaignRequest",
    "CampaignResult",
    "DeliveryOutcome",
    "IgnoreReason",
    "ReconcileResult",
    "VarianceDirection",
    "WebhookDelivery",
    "CampaignOnboarding",
    "WebhookReconciler",
    "ReferenceResolver",
    "WebhookHandler",
]
