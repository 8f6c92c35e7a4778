"""Webhook delivery handling.

A delivery is authenticated as a whole before anything in it is parsed.
After that every event is reconciled on its own: one failing bill is
logged and recorded, and the rest of the batch still runs.
"""

import json
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from accruals.models import BillEvent, DeliveryOutcome, WebhookDelivery
from accruals.reconciler import WebhookReconciler
from core.errors import AuthenticationError, ValidationError
from core.observability.activity import ActivityFeed
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics
from core.security.signature import verify_webhook_signature

logger = get_logger(__name__)


class WebhookHandler:
    """Verifies, parses and fans out webhook deliveries."""

    def __init__(
        self,
        reconciler: WebhookReconciler,
        session,
        webhook_key: Optional[str],
        activity: Optional[ActivityFeed] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.reconciler = reconciler
        self.session = session
        self.webhook_key = webhook_key
        self.activity = activity or ActivityFeed()
        self.metrics = metrics or get_metrics()

    async def handle(self, signature: Optional[str], raw_body: bytes) -> DeliveryOutcome:
        """Process one delivery.

        Args:
            signature: Value of the x-xero-signature header
            raw_body: Request body exactly as received

        Raises:
            AuthenticationError: Bad signature (nothing processed) or no tenant
            ValidationError: Authenticated body is not a valid delivery
        """
        if not verify_webhook_signature(signature, raw_body, self.webhook_key):
            self.metrics.record_webhook_rejected()
            logger.warning("Rejected webhook delivery with invalid signature")
            raise AuthenticationError("Invalid signature")

        delivery = self.parse(raw_body)
        self.metrics.record_webhook_accepted()

        # Intent-to-receive validation deliveries carry no events
        if not delivery.events:
            return DeliveryOutcome()

        tenant_id = await self.session.resolve_tenant()

        outcome = DeliveryOutcome()
        for event in delivery.events:
            await self._process(tenant_id, event, outcome)

        if outcome.failures:
            logger.warning(f"{len(outcome.failures)} of {len(delivery.events)} events failed")
        return outcome

    @staticmethod
    def parse(raw_body: bytes) -> WebhookDelivery:
        try:
            return WebhookDelivery.model_validate(json.loads(raw_body or b"{}"))
        except (ValueError, PydanticValidationError) as e:
            raise ValidationError(f"Invalid webhook payload: {e}")

    async def _process(self, tenant_id: str, event: BillEvent, outcome: DeliveryOutcome) -> None:
        with with_correlation(event_id=event.resource_id):
            try:
                outcome.results.append(await self.reconciler.reconcile_event(tenant_id, event))
            except Exception as e:
                message = getattr(e, "message", None) or str(e) or type(e).__name__
                self.metrics.record_event_failed()
                self.activity.err(f"Webhook error: {message}")
                logger.exception(f"Failed to reconcile {event.resource_id}: {message}")
                outcome.failures.append({"resourceId": event.resource_id, "error": message})
