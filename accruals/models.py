"""Request, event and result models for the accruals domain."""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field

from core.errors import ValidationError

REQUIRED_CAMPAIGN_FIELDS = (
    "Required: campaignRef, saleNet, expectedCostNet, clientContactId or clientContactName"
)


def _parse_amount(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    return amount


def _parse_date(name: str, value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be a YYYY-MM-DD date, got {value!r}")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# Campaign Onboarding
# =============================================================================

class CampaignRequest(BaseModel):
    """A sold campaign: invoice the client and accrue the expected cost."""
    client_contact_id: Optional[str] = Field(None, alias="clientContactId")
    client_contact_name: Optional[str] = Field(None, alias="clientContactName")
    campaign_ref: str = Field(..., alias="campaignRef")
    sale_net: Decimal = Field(..., alias="saleNet")
    expected_cost_net: Decimal = Field(..., alias="expectedCostNet")
    due_date: Optional[date] = Field(None, alias="dueDate")
    description: Optional[str] = None
    sales_tax_name: Optional[str] = Field(None, alias="salesTaxName")

    class Config:
        populate_by_name = True

    @classmethod
    def from_payload(cls, payload: Any) -> "CampaignRequest":
        """Validate a raw JSON body.

        Raises:
            ValidationError: A required field is missing or a value is malformed
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        campaign_ref = _text(payload.get("campaignRef"))
        contact_id = _text(payload.get("clientContactId"))
        contact_name = _text(payload.get("clientContactName"))
        sale_net = payload.get("saleNet")
        expected_cost_net = payload.get("expectedCostNet")

        if (
            not campaign_ref
            or sale_net is None
            or expected_cost_net is None
            or (not contact_id and not contact_name)
        ):
            raise ValidationError(REQUIRED_CAMPAIGN_FIELDS)

        return cls(
            client_contact_id=contact_id,
            client_contact_name=contact_name,
            campaign_ref=campaign_ref,
            sale_net=_parse_amount("saleNet", sale_net),
            expected_cost_net=_parse_amount("expectedCostNet", expected_cost_net),
            due_date=_parse_date("dueDate", payload.get("dueDate")),
            description=_text(payload.get("description")),
            sales_tax_name=_text(payload.get("salesTaxName")),
        )


class CampaignResult(BaseModel):
    """Outcome of a campaign creation."""
    ok: bool = True
    invoice_number: Optional[str] = Field(None, alias="invoiceNumber")
    invoice_id: Optional[str] = Field(None, alias="invoiceId")
    campaign_ref: str = Field(..., alias="campaignRef")
    accrued: Decimal
    journal_id: Optional[str] = Field(None, alias="journalId")
    message: str = ""

    class Config:
        populate_by_name = True

    def to_api(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["accrued"] = float(self.accrued)
        return data


# =============================================================================
# Webhook Events
# =============================================================================

class BillEvent(BaseModel):
    """One event in a webhook delivery.

    Only the resource type and ID drive reconciliation; the full document is
    fetched from the provider.
    """
    resource_type: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("resourceType", "eventCategory", "resource_type"),
    )
    resource_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("resourceId", "resource_id"),
    )
    event_type: Optional[str] = Field(None, validation_alias=AliasChoices("eventType", "event_type"))
    tenant_id: Optional[str] = Field(None, validation_alias=AliasChoices("tenantId", "tenant_id"))
    event_date_utc: Optional[str] = Field(None, validation_alias=AliasChoices("eventDateUtc", "event_date_utc"))

    @property
    def is_invoice(self) -> bool:
        return (self.resource_type or "").upper() == "INVOICE"


class WebhookDelivery(BaseModel):
    """A signed webhook body: a batch of events."""
    events: List[BillEvent] = Field(default_factory=list)
    first_event_sequence: Optional[int] = Field(None, validation_alias=AliasChoices("firstEventSequence", "first_event_sequence"))
    last_event_sequence: Optional[int] = Field(None, validation_alias=AliasChoices("lastEventSequence", "last_event_sequence"))
    entropy: Optional[str] = None


# =============================================================================
# Reconciliation Results
# =============================================================================

class BillState(str, Enum):
    """Where one bill event ended up."""
    UNRELATED = "UNRELATED"    # Filtered out, nothing touched
    PENDING = "PENDING"        # Editable purchase bill bound to a campaign
    RECODED = "RECODED"        # Lines rewritten to the accrual account
    RECONCILED = "RECONCILED"  # Variance posted or recognised as zero


class IgnoreReason(str, Enum):
    NOT_INVOICE = "not_invoice"
    NOT_FOUND = "not_found"
    NOT_PURCHASE = "not_purchase"
    NOT_EDITABLE = "not_editable"
    NO_REFERENCE = "no_reference"


class VarianceDirection(str, Enum):
    ADDITIONAL = "additional"  # Bill exceeds accrual: recognise more cost
    RELEASE = "release"        # Accrual overstated: release the excess
    ZERO = "zero"


class ReconcileResult(BaseModel):
    """What reconciling one bill event did."""
    resource_id: Optional[str] = None
    state: BillState = BillState.UNRELATED
    ignore_reason: Optional[IgnoreReason] = None
    invoice_number: Optional[str] = None
    campaign_ref: Optional[str] = None
    net_bill: Optional[Decimal] = None
    baseline: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    direction: Optional[VarianceDirection] = None
    approved: bool = False
    journal_id: Optional[str] = None

    @property
    def ignored(self) -> bool:
        return self.state == BillState.UNRELATED


class DeliveryOutcome(BaseModel):
    """Per-event results of one webhook delivery."""
    results: List[ReconcileResult] = Field(default_factory=list)
    failures: List[Dict[str, Optional[str]]] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
