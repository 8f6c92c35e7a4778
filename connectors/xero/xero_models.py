"""Xero data models.

These are Xero-specific models that map to the Xero Accounting API schema
(PascalCase JSON). They are separate from the normalized models in
connectors/accounting_base.py; each model converts to its normalized
counterpart with to_ref()/to_document().
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from connectors.accounting_base import (
    AccountRef,
    ContactRef,
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


_MS_DATE = re.compile(r"/Date\((-?\d+)([+-]\d{4})?\)/")


def parse_xero_date(raw: Optional[str]) -> Optional[date]:
    """Parse a Xero date.

    Xero returns either "/Date(1234567890000+0000)/" or an ISO string
    such as "2025-09-30T00:00:00".
    """
    if not raw:
        return None
    match = _MS_DATE.match(raw)
    if match:
        millis = int(match.group(1))
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).date()
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def money(value: Optional[Decimal]) -> Optional[float]:
    """Decimal -> JSON number for request bodies."""
    if value is None:
        return None
    return float(value)


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Xero API Models
# =============================================================================

class XeroBaseModel(BaseModel):
    """Base model for Xero API entities."""
    
    class Config:
        populate_by_name = True


class XeroContact(XeroBaseModel):
    """Maps to: /Contacts"""
    ContactID: Optional[str] = None
    Name: Optional[str] = None
    ContactStatus: Optional[str] = None
    EmailAddress: Optional[str] = None
    
    def to_ref(self) -> ContactRef:
        return ContactRef(id=self.ContactID or "", name=self.Name or "")


class XeroTaxRate(XeroBaseModel):
    """Maps to: /TaxRates"""
    Name: Optional[str] = None
    TaxType: Optional[str] = None
    Status: Optional[str] = None
    EffectiveRate: Optional[Decimal] = None
    
    def to_ref(self) -> TaxRateRef:
        return TaxRateRef(
            name=self.Name or "",
            tax_type=self.TaxType or "",
            rate=self.EffectiveRate,
            status=self.Status,
        )


class XeroAccount(XeroBaseModel):
    """Maps to: /Accounts"""
    AccountID: Optional[str] = None
    Code: Optional[str] = None
    Name: Optional[str] = None
    Type: Optional[str] = None
    Status: Optional[str] = None
    
    def to_ref(self) -> AccountRef:
        return AccountRef(
            id=self.AccountID or "",
            code=self.Code or "",
            name=self.Name or "",
            type=self.Type,
            status=self.Status,
        )


class XeroTrackingOption(XeroBaseModel):
    TrackingOptionID: Optional[str] = None
    Name: Optional[str] = None
    Status: Optional[str] = None
    
    def to_ref(self) -> TrackingOptionRef:
        return TrackingOptionRef(
            id=self.TrackingOptionID or "",
            name=self.Name or "",
            status=self.Status,
        )


class XeroTrackingCategory(XeroBaseModel):
    """Maps to: /TrackingCategories"""
    TrackingCategoryID: Optional[str] = None
    Name: Optional[str] = None
    Status: Optional[str] = None
    Options: List[XeroTrackingOption] = Field(default_factory=list)
    
    def to_ref(self) -> TrackingCategoryRef:
        return TrackingCategoryRef(
            id=self.TrackingCategoryID or "",
            name=self.Name or "",
            status=self.Status,
            options=[o.to_ref() for o in self.Options],
        )


class XeroLineItem(XeroBaseModel):
    LineItemID: Optional[str] = None
    Description: Optional[str] = None
    Quantity: Optional[Decimal] = None
    UnitAmount: Optional[Decimal] = None
    AccountCode: Optional[str] = None
    TaxType: Optional[str] = None
    LineAmount: Optional[Decimal] = None
    
    def to_line(self) -> LineItem:
        return LineItem(
            description=self.Description,
            quantity=self.Quantity,
            unit_amount=self.UnitAmount,
            account_code=self.AccountCode,
            tax_type=self.TaxType,
            line_item_id=self.LineItemID,
        )


class XeroInvoice(XeroBaseModel):
    """Maps to: /Invoices (both ACCREC invoices and ACCPAY bills)"""
    InvoiceID: Optional[str] = None
    InvoiceNumber: Optional[str] = None
    Type: Optional[str] = None
    Status: Optional[str] = None
    Reference: Optional[str] = None
    Contact: Optional[XeroContact] = None
    Date: Optional[str] = None
    DueDate: Optional[str] = None
    LineAmountTypes: Optional[str] = None
    LineItems: List[XeroLineItem] = Field(default_factory=list)
    SubTotal: Optional[Decimal] = None
    Total: Optional[Decimal] = None
    
    def to_document(self) -> InvoiceDocument:
        try:
            invoice_type = InvoiceType(self.Type) if self.Type else None
        except ValueError:
            invoice_type = None
        
        return InvoiceDocument(
            id=self.InvoiceID or "",
            number=self.InvoiceNumber,
            type=invoice_type,
            status=InvoiceStatus.parse(self.Status),
            reference=self.Reference,
            contact_id=self.Contact.ContactID if self.Contact else None,
            invoice_date=parse_xero_date(self.Date),
            due_date=parse_xero_date(self.DueDate),
            line_items=[li.to_line() for li in self.LineItems],
        )


class XeroManualJournal(XeroBaseModel):
    """Maps to: /ManualJournals"""
    ManualJournalID: Optional[str] = None
    Narration: Optional[str] = None
    Status: Optional[str] = None


# =============================================================================
# Request Body Builders
# =============================================================================

def line_item_to_xero(line: LineItem) -> Dict[str, Any]:
    """Line item body; a missing tax type is omitted so Xero applies none."""
    return _compact({
        "Description": line.description,
        "Quantity": money(line.quantity),
        "UnitAmount": money(line.unit_amount),
        "AccountCode": line.account_code,
        "TaxType": line.tax_type,
    })


def invoice_to_xero(payload: InvoicePayload) -> Dict[str, Any]:
    return _compact({
        "Type": payload.type.value,
        "Contact": {"ContactID": payload.contact_id},
        "Date": payload.invoice_date.isoformat(),
        "DueDate": payload.due_date.isoformat() if payload.due_date else None,
        "Status": payload.status.value,
        "Reference": payload.reference,
        "LineItems": [line_item_to_xero(li) for li in payload.line_items],
    })


def journal_to_xero(journal: ManualJournalPayload) -> Dict[str, Any]:
    return {
        "Narration": journal.narration,
        "Date": journal.journal_date.isoformat(),
        "LineAmountTypes": journal.line_amount_types.value,
        "JournalLines": [
            _compact({
                "AccountCode": line.account_code,
                "LineAmount": money(line.line_amount),
                "Description": line.description,
            })
            for line in journal.lines
        ],
    }
