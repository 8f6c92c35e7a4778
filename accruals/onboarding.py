"""Campaign onboarding.

When a campaign is sold:
1. Resolve or create the client contact
2. Resolve the sales tax rate by name (none applied when there is no match)
3. Create the sales invoice for the sale amount, already AUTHORISED
4. Post the accrual journal for the expected cost (no tax)
5. Add the expected cost to the campaign's ledger entry

Steps run in that order and stop at the first failure. Nothing already
written to the provider is rolled back.
"""

import time
from datetime import date
from typing import Any, Callable, Optional

from accruals.models import CampaignRequest, CampaignResult
from accruals.resolver import ReferenceResolver
from accruals.variance import build_accrual_journal, utc_today
from connectors.accounting_base import (
    AccountingConnector,
    InvoicePayload,
    InvoiceStatus,
    InvoiceType,
    LineItem,
)
from core.config import Settings, SettingsStore
from core.errors import AccrualServiceError
from core.ledger import AccrualLedger
from core.observability.activity import ActivityFeed
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics

logger = get_logger(__name__)


class CampaignOnboarding:
    """Creates the sales invoice and accrual for a sold campaign."""

    def __init__(
        self,
        connector: AccountingConnector,
        session,
        ledger: AccrualLedger,
        settings: SettingsStore,
        activity: Optional[ActivityFeed] = None,
        metrics: Optional[MetricsCollector] = None,
        today: Callable[[], date] = utc_today,
    ):
        """
        Args:
            connector: Accounting provider connector
            session: Object whose async resolve_tenant() returns the current tenant
            ledger: Accrual ledger updated after the journal posts
            settings: Runtime settings; one snapshot is read per campaign
        """
        self.connector = connector
        self.session = session
        self.ledger = ledger
        self.settings = settings
        self.resolver = ReferenceResolver(connector)
        self.activity = activity or ActivityFeed()
        self.metrics = metrics or get_metrics()
        self.today = today

    async def create_campaign(self, payload: Any) -> CampaignResult:
        """Invoice the client and accrue the expected cost.

        Args:
            payload: A CampaignRequest or the raw JSON body

        Raises:
            ValidationError: Required fields missing or malformed
            AuthenticationError: No tenant connected
            ExternalServiceError: A provider call failed
        """
        started = time.monotonic()
        try:
            request = payload if isinstance(payload, CampaignRequest) else CampaignRequest.from_payload(payload)
            with with_correlation(campaign_ref=request.campaign_ref, operation="create_campaign"):
                result = await self._create(request, self.settings.current)
        except Exception as e:
            message = e.message if isinstance(e, AccrualServiceError) else str(e)
            self.metrics.record_campaign_failed()
            self.activity.err(f"Create campaign failed: {message}")
            logger.error(f"Create campaign failed: {message}")
            raise

        self.metrics.record_campaign_created()
        self.metrics.record_processing_time("create_campaign", (time.monotonic() - started) * 1000)
        self.activity.ok(result.message)
        logger.info(result.message)
        return result

    async def _create(self, request: CampaignRequest, settings: Settings) -> CampaignResult:
        tenant_id = await self.session.resolve_tenant()
        on = self.today()

        contact_id = await self._ensure_contact(tenant_id, request)

        line = LineItem(
            description=request.description or f"Media campaign {request.campaign_ref}",
            quantity=1,
            unit_amount=request.sale_net,
            account_code=settings.revenue_code,
        )
        tax_name = request.sales_tax_name or settings.sales_tax_name
        if tax_name:
            tax = await self.resolver.find_tax_rate_by_name(tenant_id, tax_name)
            if tax and tax.tax_type:
                line.tax_type = tax.tax_type
            else:
                logger.warning(f'No tax rate named "{tax_name}"; invoicing without tax')

        invoice = await self.connector.create_invoice(
            tenant_id,
            InvoicePayload(
                type=InvoiceType.SALE,
                contact_id=contact_id,
                invoice_date=on,
                due_date=request.due_date,
                status=InvoiceStatus.AUTHORISED,
                reference=request.campaign_ref,
                line_items=[line],
            ),
        )

        journal = await self.connector.create_manual_journal(
            tenant_id,
            build_accrual_journal(request.campaign_ref, request.expected_cost_net, settings, on),
        )

        total = await self.ledger.accrue(request.campaign_ref, request.expected_cost_net)
        logger.info(f"Accrued total for {request.campaign_ref} is now {total}")

        return CampaignResult(
            invoice_number=invoice.number,
            invoice_id=invoice.id,
            campaign_ref=request.campaign_ref,
            accrued=request.expected_cost_net,
            journal_id=journal.id,
            message=(
                f"Created invoice {invoice.number or ''} and accrued "
                f"£{request.expected_cost_net:.2f} for {request.campaign_ref}"
            ),
        )

    async def _ensure_contact(self, tenant_id: str, request: CampaignRequest) -> str:
        if request.client_contact_id:
            return request.client_contact_id

        existing = await self.connector.find_contacts_by_name(tenant_id, request.client_contact_name)
        if existing:
            logger.info(f"Using existing contact {existing[0].name} ({existing[0].id})")
            return existing[0].id

        contact = await self.connector.create_contact(tenant_id, request.client_contact_name)
        return contact.id
