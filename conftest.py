"""Shared test fixtures: an in-memory accounting connector and session."""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from connectors.accounting_base import (
    AccountingConnector,
    AccountRef,
    ConnectorConfig,
    ContactRef,
    CreatedJournalRef,
    InvoiceDocument,
    InvoicePayload,
    InvoiceStatus,
    InvoiceType,
    LineItem,
    ManualJournalPayload,
    TaxRateRef,
    TrackingCategoryRef,
    TrackingOptionRef,
)
from core.config import Settings, SettingsStore
from core.errors import AuthenticationError, ExternalServiceError
from core.ledger import AccrualLedger
from core.observability.activity import ActivityFeed
from core.observability.metrics import MetricsCollector

TENANT = "tenant-1"
TODAY = date(2025, 9, 30)


class FakeConnector(AccountingConnector):
    """In-memory accounting provider.

    Every mutating call is appended to `writes`. Set `fail_on` to a method
    name to make that call raise ExternalServiceError. Creates yield to the
    event loop once, like a real network call.
    """

    def __init__(self):
        super().__init__(ConnectorConfig(connector_type="fake"))
        self.contacts: List[ContactRef] = []
        self.tax_rates: List[TaxRateRef] = [
            TaxRateRef(name="20% (VAT on Income)", tax_type="OUTPUT2", rate=Decimal("20")),
            TaxRateRef(name="20% (VAT on Expenses)", tax_type="INPUT2", rate=Decimal("20")),
        ]
        self.accounts: List[AccountRef] = [
            AccountRef(id="a-400", code="400", name="Media Sales"),
            AccountRef(id="a-500", code="500", name="Media Costs"),
            AccountRef(id="a-850", code="850", name="Accrued Media Costs"),
        ]
        self.tracking: List[TrackingCategoryRef] = [
            TrackingCategoryRef(
                id="tc-1",
                name="Campaign",
                options=[TrackingOptionRef(id="to-1", name="SEPT-PAID-SOCIAL")],
            ),
        ]
        self.invoices: Dict[str, InvoiceDocument] = {}
        self.journals: List[ManualJournalPayload] = []
        self.writes: List[tuple] = []
        self.fail_on: Optional[str] = None

    def _maybe_fail(self, method: str):
        if self.fail_on == method:
            raise ExternalServiceError(f"Xero rejected {method}", status_code=400)

    # Contacts

    async def find_contacts_by_name(self, tenant_id, name):
        self._maybe_fail("find_contacts_by_name")
        return [c for c in self.contacts if c.name == name]

    async def create_contact(self, tenant_id, name):
        await asyncio.sleep(0)
        self._maybe_fail("create_contact")
        contact = ContactRef(id=f"c-{len(self.contacts) + 1}", name=name)
        self.contacts.append(contact)
        self.writes.append(("create_contact", name))
        return contact

    # Reference data

    async def list_tax_rates(self, tenant_id):
        self._maybe_fail("list_tax_rates")
        return list(self.tax_rates)

    async def list_accounts(self, tenant_id):
        return list(self.accounts)

    async def list_tracking_categories(self, tenant_id):
        return list(self.tracking)

    async def create_tracking_option(self, tenant_id, category_id, name):
        option = TrackingOptionRef(id=f"to-{name}", name=name)
        self.writes.append(("create_tracking_option", category_id, name))
        return option

    # Invoices

    async def create_invoice(self, tenant_id, payload: InvoicePayload):
        await asyncio.sleep(0)
        self._maybe_fail("create_invoice")
        n = len(self.invoices) + 1
        document = InvoiceDocument(
            id=f"inv-{n}",
            number=f"INV-{n:04d}",
            type=payload.type,
            status=payload.status,
            reference=payload.reference,
            contact_id=payload.contact_id,
            invoice_date=payload.invoice_date,
            due_date=payload.due_date,
            line_items=[li.model_copy() for li in payload.line_items],
        )
        self.invoices[document.id] = document
        self.writes.append(("create_invoice", document.id))
        return document.model_copy(deep=True)

    async def get_invoice(self, tenant_id, invoice_id):
        self._maybe_fail("get_invoice")
        document = self.invoices.get(invoice_id)
        return document.model_copy(deep=True) if document else None

    async def update_invoice_lines(self, tenant_id, invoice_id, line_items):
        self._maybe_fail("update_invoice_lines")
        document = self.invoices[invoice_id]
        document.line_items = [li.model_copy() for li in line_items]
        self.writes.append(("update_invoice_lines", invoice_id))
        return document.model_copy(deep=True)

    async def update_invoice_status(self, tenant_id, invoice_id, status):
        self._maybe_fail("update_invoice_status")
        document = self.invoices[invoice_id]
        document.status = status
        self.writes.append(("update_invoice_status", invoice_id, status))
        return document.model_copy(deep=True)

    # Journals

    async def create_manual_journal(self, tenant_id, journal: ManualJournalPayload):
        await asyncio.sleep(0)
        self._maybe_fail("create_manual_journal")
        assert journal.is_balanced
        self.journals.append(journal)
        self.writes.append(("create_manual_journal", journal.narration))
        return CreatedJournalRef(id=f"mj-{len(self.journals)}", narration=journal.narration, status="POSTED")

    # Helpers

    def add_bill(
        self,
        bill_id: str,
        reference: Optional[str],
        lines: List[LineItem],
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        type: InvoiceType = InvoiceType.PURCHASE,
    ) -> InvoiceDocument:
        document = InvoiceDocument(
            id=bill_id,
            number=f"BILL-{bill_id}",
            type=type,
            status=status,
            reference=reference,
            contact_id="supplier-1",
            line_items=lines,
        )
        self.invoices[bill_id] = document
        return document


class FakeSession:
    """Stands in for the OAuth provider's tenant resolution."""

    def __init__(self, tenant_id: Optional[str] = TENANT):
        self.tenant_id = tenant_id

    async def resolve_tenant(self) -> str:
        if not self.tenant_id:
            raise AuthenticationError("Connect to Xero first at /connect")
        return self.tenant_id


def media_line(unit_amount, quantity="1", account_code="500", tax_type="INPUT2", description="Paid social"):
    return LineItem(
        description=description,
        quantity=Decimal(quantity) if quantity is not None else None,
        unit_amount=Decimal(unit_amount) if unit_amount is not None else None,
        account_code=account_code,
        tax_type=tax_type,
        line_item_id="li-1",
    )


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def ledger():
    return AccrualLedger()


@pytest.fixture
def settings_store():
    return SettingsStore(Settings())


@pytest.fixture
def activity():
    return ActivityFeed()


@pytest.fixture
def metrics():
    return MetricsCollector()
