"""Bill reconciliation.

Drives one supplier bill through its lifecycle per inbound event:

    UNRELATED (filtered out, terminal)
    PENDING -> RECODED -> RECONCILED

1. Filter: invoice-type event, purchase bill, DRAFT or SUBMITTED status
2. Campaign binding: the bill's Reference field names the campaign
3. Recode: every line moves to the accrual control account, tax kept
4. Auto-approve: AUTHORISED immediately after recoding, when enabled
5. Variance: net bill less the baseline, rounded to the cent
6. Variance journal: posted unless the variance is zero

In ORIGINAL mode the baseline is the campaign's full accrued total and the
ledger is never written. In REMAINING mode the baseline is what is left of
the accrual after earlier bills, and this bill's net is recorded against it.
"""

import time
from datetime import date
from typing import Callable, Optional

from accruals.models import (
    BillEvent,
    BillState,
    IgnoreReason,
    ReconcileResult,
)
from accruals.variance import (
    build_variance_journal,
    compute_variance,
    net_bill,
    recode_lines,
    utc_today,
    variance_direction,
)
from connectors.accounting_base import AccountingConnector, InvoiceStatus
from core.config import ReconcileMode, SettingsStore
from core.ledger import AccrualLedger
from core.observability.activity import ActivityFeed
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics

logger = get_logger(__name__)


class WebhookReconciler:
    """Recodes supplier bills to the accrual account and posts variances."""

    def __init__(
        self,
        connector: AccountingConnector,
        ledger: AccrualLedger,
        settings: SettingsStore,
        mode: ReconcileMode = ReconcileMode.ORIGINAL,
        activity: Optional[ActivityFeed] = None,
        metrics: Optional[MetricsCollector] = None,
        today: Callable[[], date] = utc_today,
    ):
        self.connector = connector
        self.ledger = ledger
        self.settings = settings
        self.mode = ReconcileMode(mode)
        self.activity = activity or ActivityFeed()
        self.metrics = metrics or get_metrics()
        self.today = today

    async def reconcile_event(self, tenant_id: str, event: BillEvent) -> ReconcileResult:
        """Reconcile the bill one event points at.

        Ignored events make no provider writes. Provider errors propagate
        to the caller with whatever was already written left in place.
        """
        with with_correlation(
            tenant_id=tenant_id,
            invoice_id=event.resource_id,
            operation="reconcile_bill",
        ):
            started = time.monotonic()
            result = await self._reconcile(tenant_id, event)
            if result.ignored:
                self.metrics.record_event_ignored(result.ignore_reason.value)
                logger.debug(f"Ignored event for {event.resource_id}: {result.ignore_reason.value}")
            else:
                self.metrics.record_processing_time("reconcile_bill", (time.monotonic() - started) * 1000)
            return result

    async def _reconcile(self, tenant_id: str, event: BillEvent) -> ReconcileResult:
        result = ReconcileResult(resource_id=event.resource_id)

        if not event.is_invoice or not event.resource_id:
            return self._ignore(result, IgnoreReason.NOT_INVOICE)

        bill = await self.connector.get_invoice(tenant_id, event.resource_id)
        if bill is None:
            return self._ignore(result, IgnoreReason.NOT_FOUND)
        result.invoice_number = bill.number

        if not bill.is_purchase:
            return self._ignore(result, IgnoreReason.NOT_PURCHASE)
        if not bill.is_editable:
            return self._ignore(result, IgnoreReason.NOT_EDITABLE)

        campaign_ref = (bill.reference or "").strip()
        if not campaign_ref:
            return self._ignore(result, IgnoreReason.NO_REFERENCE)

        # One settings snapshot for the whole bill
        settings = self.settings.current
        result.state = BillState.PENDING
        result.campaign_ref = campaign_ref

        with with_correlation(campaign_ref=campaign_ref):
            recoded = recode_lines(bill.line_items, settings.accrual_code)
            await self.connector.update_invoice_lines(tenant_id, bill.id, recoded)
            result.state = BillState.RECODED
            self.metrics.record_event_recoded()
            logger.info(f"Bill {bill.display_id} recoded to {settings.accrual_code}")

            if settings.auto_approve_bills:
                await self.connector.update_invoice_status(tenant_id, bill.id, InvoiceStatus.AUTHORISED)
                result.approved = True
                logger.info(f"Bill {bill.display_id} approved")

            net = net_bill(recoded)
            result.net_bill = net

            if self.mode == ReconcileMode.REMAINING:
                baseline = await self.ledger.consume_remaining(campaign_ref, net)
            else:
                baseline = self.ledger.accrued(campaign_ref)
            result.baseline = baseline

            variance = compute_variance(net, baseline)
            result.variance = variance
            result.direction = variance_direction(variance)

            journal = build_variance_journal(campaign_ref, variance, settings, self.today())
            if journal is not None:
                try:
                    created = await self.connector.create_manual_journal(tenant_id, journal)
                except Exception:
                    if self.mode == ReconcileMode.REMAINING:
                        await self.ledger.release_bill(campaign_ref, net)
                    raise
                result.journal_id = created.id

            result.state = BillState.RECONCILED
            self.metrics.record_variance(result.direction.value)

        message = f"Bill {bill.display_id} recoded to accrual; variance £{variance:.2f} for {campaign_ref}"
        self.activity.ok(message)
        logger.info(message)
        return result

    def _ignore(self, result: ReconcileResult, reason: IgnoreReason) -> ReconcileResult:
        result.state = BillState.UNRELATED
        result.ignore_reason = reason
        return result
