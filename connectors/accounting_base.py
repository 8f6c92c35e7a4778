"""Abstract Accounting Connector Interface.

This module defines the interface that accounting-provider connectors
implement. It is intentionally provider-agnostic - no Xero specifics here.

Connectors implement this interface to:
1. Look up contacts, tax rates, accounts and tracking categories
2. Create sales invoices and fetch/update supplier bills
3. Post balanced manual journals

Key Design Principles:
- All methods return NORMALIZED objects (ContactRef, InvoiceDocument, etc.)
- The accruals domain and API routes depend ONLY on this interface
- Every call is scoped to a tenant (the connected organisation)
- Failures raise ExternalServiceError (or a subclass); connectors do not
  swallow provider errors
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class InvoiceType(str, Enum):
    """Direction of an invoice document."""
    SALE = "ACCREC"      # Accounts receivable: we bill a client
    PURCHASE = "ACCPAY"  # Accounts payable: a supplier bills us


class InvoiceStatus(str, Enum):
    """Lifecycle status of an invoice document."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"      # Awaiting approval
    AUTHORISED = "AUTHORISED"    # Final, posted to the ledger
    PAID = "PAID"
    VOIDED = "VOIDED"
    DELETED = "DELETED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "InvoiceStatus":
        try:
            return cls(str(value or "").upper())
        except ValueError:
            return cls.UNKNOWN


# Statuses in which a bill's lines may still be rewritten
EDITABLE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SUBMITTED})


class LineAmountType(str, Enum):
    EXCLUSIVE = "Exclusive"
    INCLUSIVE = "Inclusive"
    NO_TAX = "NoTax"


# =============================================================================
# Normalized Reference Models (Provider-Agnostic)
# =============================================================================

class ContactRef(BaseModel):
    """Normalized contact (client or supplier) reference."""
    id: str = Field(..., description="Provider contact ID")
    name: str = Field(default="")

    class Config:
        frozen = True


class TaxRateRef(BaseModel):
    """Normalized tax rate.

    `tax_type` is the identifier applied to invoice lines; `name` is the
    human-readable label administrators configure.
    """
    name: str
    tax_type: str
    rate: Optional[Decimal] = None
    status: Optional[str] = None

    class Config:
        frozen = True


class AccountRef(BaseModel):
    """Normalized chart-of-accounts entry."""
    id: str
    code: str = Field(default="", description="Account code used on lines and journals")
    name: str = Field(default="")
    type: Optional[str] = None
    status: Optional[str] = None

    class Config:
        frozen = True


class TrackingOptionRef(BaseModel):
    id: str
    name: str
    status: Optional[str] = None


class TrackingCategoryRef(BaseModel):
    id: str
    name: str
    status: Optional[str] = None
    options: List[TrackingOptionRef] = Field(default_factory=list)


# =============================================================================
# Document Models
# =============================================================================

class LineItem(BaseModel):
    """A single invoice line."""
    description: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_amount: Optional[Decimal] = None
    account_code: Optional[str] = None
    tax_type: Optional[str] = None
    line_item_id: Optional[str] = None

    @property
    def net_amount(self) -> Decimal:
        """unit amount x quantity; a missing amount is 0 and a missing quantity is 1."""
        unit = self.unit_amount if self.unit_amount is not None else Decimal("0")
        qty = self.quantity if self.quantity is not None else Decimal("1")
        return unit * qty


class InvoiceDocument(BaseModel):
    """Normalized invoice or bill as read back from the provider."""
    id: str
    number: Optional[str] = None
    type: Optional[InvoiceType] = None
    status: InvoiceStatus = InvoiceStatus.UNKNOWN
    reference: Optional[str] = None
    contact_id: Optional[str] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    line_items: List[LineItem] = Field(default_factory=list)

    @property
    def is_purchase(self) -> bool:
        return self.type == InvoiceType.PURCHASE

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    @property
    def display_id(self) -> str:
        return self.number or self.id


class InvoicePayload(BaseModel):
    """Input for create_invoice()."""
    type: InvoiceType
    contact_id: str
    invoice_date: date
    due_date: Optional[date] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    reference: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.net_amount for line in self.line_items), Decimal("0"))


class JournalLine(BaseModel):
    """Manual journal line. Positive amounts debit, negative amounts credit."""
    account_code: str
    line_amount: Decimal
    description: Optional[str] = None


class ManualJournalPayload(BaseModel):
    """Input for create_manual_journal()."""
    narration: str
    journal_date: date
    line_amount_types: LineAmountType = LineAmountType.EXCLUSIVE
    lines: List[JournalLine] = Field(default_factory=list)

    @property
    def is_balanced(self) -> bool:
        return sum((line.line_amount for line in self.lines), Decimal("0")) == 0


class CreatedJournalRef(BaseModel):
    id: Optional[str] = None
    narration: Optional[str] = None
    status: Optional[str] = None


# =============================================================================
# Connector Interface
# =============================================================================

@dataclass
class ConnectorConfig:
    """Configuration for an accounting connector."""
    connector_type: str
    base_url: Optional[str] = None
    timeout_seconds: int = 30
    max_retries: int = 0
    extra: Optional[Dict[str, Any]] = None


class AccountingConnector(ABC):
    """Abstract base class for accounting-provider connectors.

    Implementations translate between the normalized models above and the
    provider's wire format. Every operation takes the tenant it acts on.
    """

    def __init__(self, config: ConnectorConfig):
        self.config = config

    async def close(self) -> None:
        """Release any network resources."""
        return None

    # -------------------------------------------------------------------------
    # Contacts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def find_contacts_by_name(self, tenant_id: str, name: str) -> List[ContactRef]:
        """Contacts whose name matches exactly."""

    @abstractmethod
    async def create_contact(self, tenant_id: str, name: str) -> ContactRef:
        """Create a contact."""

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_tax_rates(self, tenant_id: str) -> List[TaxRateRef]:
        """All tax rates configured for the tenant."""

    @abstractmethod
    async def list_accounts(self, tenant_id: str) -> List[AccountRef]:
        """The tenant's chart of accounts."""

    @abstractmethod
    async def list_tracking_categories(self, tenant_id: str) -> List[TrackingCategoryRef]:
        """Tracking categories with their options."""

    @abstractmethod
    async def create_tracking_option(
        self,
        tenant_id: str,
        category_id: str,
        name: str,
    ) -> TrackingOptionRef:
        """Add an option to a tracking category."""

    # -------------------------------------------------------------------------
    # Invoices and bills
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_invoice(self, tenant_id: str, payload: InvoicePayload) -> InvoiceDocument:
        """Create an invoice (sale) or bill (purchase)."""

    @abstractmethod
    async def get_invoice(self, tenant_id: str, invoice_id: str) -> Optional[InvoiceDocument]:
        """Fetch a document by ID, or None when it does not exist."""

    @abstractmethod
    async def update_invoice_lines(
        self,
        tenant_id: str,
        invoice_id: str,
        line_items: List[LineItem],
    ) -> InvoiceDocument:
        """Replace a document's line items."""

    @abstractmethod
    async def update_invoice_status(
        self,
        tenant_id: str,
        invoice_id: str,
        status: InvoiceStatus,
    ) -> InvoiceDocument:
        """Move a document to a new status."""

    # -------------------------------------------------------------------------
    # Journals
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_manual_journal(
        self,
        tenant_id: str,
        journal: ManualJournalPayload,
    ) -> CreatedJournalRef:
        """Post a balanced manual journal."""

    def get_connector_name(self) -> str:
        return self.config.connector_type


# =============================================================================
# Connector Factory
# =============================================================================

_connector_registry: Dict[str, type] = {}


def register_connector(connector_type: str):
    """Decorator to register a connector implementation."""
    def decorator(cls):
        _connector_registry[connector_type] = cls
        return cls
    return decorator


def create_connector(config: ConnectorConfig, **kwargs) -> AccountingConnector:
    """Create a connector instance from configuration.

    Raises:
        ValueError: If connector_type is not registered
    """
    connector_type = config.connector_type.lower()

    if connector_type not in _connector_registry:
        available = list(_connector_registry.keys())
        raise ValueError(
            f"Unknown connector type: {connector_type}. "
            f"Available: {available}"
        )

    return _connector_registry[connector_type](config, **kwargs)


def list_available_connectors() -> List[str]:
    """List all registered connector types."""
    return list(_connector_registry.keys())
