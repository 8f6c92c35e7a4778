"""Xero Connector Implementation.

Implements the AccountingConnector interface for the Xero Accounting API.

All public methods return NORMALIZED types (ContactRef, InvoiceDocument,
etc.) - Xero-specific models stay inside this package.
"""

from typing import Any, Dict, List, Optional

from connectors.accounting_base import (
    AccountingConnector,
    AccountRef,
    ConnectorConfig,
    ContactRef,
    CreatedJournalRef,
    InvoiceDocument,
    InvoicePayload,
    InvoiceStatus,
    LineItem,
    ManualJournalPayload,
    TaxRateRef,
    TrackingCategoryRef,
    TrackingOptionRef,
    register_connector,
)
from connectors.xero.xero_client import (
    RetryConfig,
    XeroApiClient,
    XeroApiConfig,
    XeroApiError,
    XeroNotFoundError,
)
from connectors.xero.xero_models import (
    XeroAccount,
    XeroContact,
    XeroInvoice,
    XeroManualJournal,
    XeroTaxRate,
    XeroTrackingCategory,
    XeroTrackingOption,
    invoice_to_xero,
    journal_to_xero,
    line_item_to_xero,
)
from core.errors import ValidationError
from core.observability.logging import get_logger

logger = get_logger(__name__)


def _first(response: Dict[str, Any], key: str) -> Dict[str, Any]:
    items = response.get(key) or []
    if not items:
        raise XeroApiError(f"Xero returned no {key} in response")
    return items[0]


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


@register_connector("xero")
class XeroConnector(AccountingConnector):
    """Xero implementation of AccountingConnector.
    
    Usage:
        connector = XeroConnector(ConnectorConfig(connector_type="xero"), auth_provider=oauth)
        bill = await connector.get_invoice(tenant_id, invoice_id)
    """
    
    def __init__(
        self,
        config: ConnectorConfig,
        auth_provider=None,
        client: Optional[XeroApiClient] = None,
    ):
        super().__init__(config)
        if client is None:
            api_config = XeroApiConfig(
                retry_config=RetryConfig(max_retries=config.max_retries),
                timeout_seconds=config.timeout_seconds,
            )
            if config.base_url:
                api_config.base_url = config.base_url
            client = XeroApiClient(auth_provider, api_config)
        self.client = client
    
    async def close(self) -> None:
        await self.client.close()
    
    # =========================================================================
    # Contacts
    # =========================================================================
    
    async def find_contacts_by_name(self, tenant_id: str, name: str) -> List[ContactRef]:
        response = await self.client.get(
            tenant_id,
            "Contacts",
            params={"where": f'Name=="{_quote(name)}"'},
        )
        return [XeroContact(**c).to_ref() for c in response.get("Contacts", [])]
    
    async def create_contact(self, tenant_id: str, name: str) -> ContactRef:
        response = await self.client.put(tenant_id, "Contacts", {"Contacts": [{"Name": name}]})
        contact = XeroContact(**_first(response, "Contacts")).to_ref()
        logger.info(f"Created Xero contact {contact.name} ({contact.id})")
        return contact
    
    # =========================================================================
    # Reference data
    # =========================================================================
    
    async def list_tax_rates(self, tenant_id: str) -> List[TaxRateRef]:
        response = await self.client.get(tenant_id, "TaxRates")
        return [XeroTaxRate(**r).to_ref() for r in response.get("TaxRates", [])]
    
    async def list_accounts(self, tenant_id: str) -> List[AccountRef]:
        response = await self.client.get(tenant_id, "Accounts")
        return [XeroAccount(**a).to_ref() for a in response.get("Accounts", [])]
    
    async def list_tracking_categories(self, tenant_id: str) -> List[TrackingCategoryRef]:
        response = await self.client.get(tenant_id, "TrackingCategories")
        return [
            XeroTrackingCategory(**c).to_ref()
            for c in response.get("TrackingCategories", [])
        ]
    
    async def create_tracking_option(
        self,
        tenant_id: str,
        category_id: str,
        name: str,
    ) -> TrackingOptionRef:
        response = await self.client.put(
            tenant_id,
            f"TrackingCategories/{category_id}/Options",
            {"Options": [{"Name": name}]},
        )
        return XeroTrackingOption(**_first(response, "Options")).to_ref()
    
    # =========================================================================
    # Invoices and bills
    # =========================================================================
    
    async def create_invoice(self, tenant_id: str, payload: InvoicePayload) -> InvoiceDocument:
        response = await self.client.put(
            tenant_id,
            "Invoices",
            {"Invoices": [invoice_to_xero(payload)]},
        )
        document = XeroInvoice(**_first(response, "Invoices")).to_document()
        logger.info(
            f"Created {payload.type.value} invoice {document.display_id} "
            f"for {payload.total_amount} ({payload.status.value})"
        )
        return document
    
    async def get_invoice(self, tenant_id: str, invoice_id: str) -> Optional[InvoiceDocument]:
        try:
            response = await self.client.get(tenant_id, f"Invoices/{invoice_id}")
        except XeroNotFoundError:
            return None
        
        invoices = response.get("Invoices") or []
        if not invoices:
            return None
        return XeroInvoice(**invoices[0]).to_document()
    
    async def update_invoice_lines(
        self,
        tenant_id: str,
        invoice_id: str,
        line_items: List[LineItem],
    ) -> InvoiceDocument:
        response = await self.client.post(
            tenant_id,
            f"Invoices/{invoice_id}",
            {"Invoices": [{"LineItems": [line_item_to_xero(li) for li in line_items]}]},
        )
        return XeroInvoice(**_first(response, "Invoices")).to_document()
    
    async def update_invoice_status(
        self,
        tenant_id: str,
        invoice_id: str,
        status: InvoiceStatus,
    ) -> InvoiceDocument:
        response = await self.client.post(
            tenant_id,
            f"Invoices/{invoice_id}",
            {"Invoices": [{"Status": status.value}]},
        )
        return XeroInvoice(**_first(response, "Invoices")).to_document()
    
    # =========================================================================
    # Journals
    # =========================================================================
    
    async def create_manual_journal(
        self,
        tenant_id: str,
        journal: ManualJournalPayload,
    ) -> CreatedJournalRef:
        if not journal.is_balanced:
            raise ValidationError(f"Journal '{journal.narration}' does not balance")
        
        response = await self.client.put(
            tenant_id,
            "ManualJournals",
            {"ManualJournals": [journal_to_xero(journal)]},
        )
        created = XeroManualJournal(**_first(response, "ManualJournals"))
        logger.info(f"Posted manual journal '{journal.narration}' ({created.ManualJournalID})")
        return CreatedJournalRef(
            id=created.ManualJournalID,
            narration=created.Narration,
            status=created.Status,
        )
