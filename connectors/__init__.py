"""Accounting Connectors - Pluggable accounting-provider integrations.

This package contains the abstract connector interface and concrete
implementations for specific providers (Xero).

The accruals domain depends ONLY on AccountingConnector and the normalized
types below; no Xero-specific types leak through the interface.

To add a new provider:
1. Create a new folder (e.g., quickbooks/)
2. Implement AccountingConnector
3. Register using @register_connector decorator
"""

from connectors.accounting_base import (
    # Core interface
    AccountingConnector,
    ConnectorConfig,
    
    # Enums
    InvoiceType,
    InvoiceStatus,
    LineAmountType,
    EDITABLE_STATUSES,
    
    # Normalized reference types
    ContactRef,
    TaxRateRef,
    AccountRef,
    TrackingCategoryRef,
    TrackingOptionRef,
    
    # Document types
    LineItem,
    InvoiceDocument,
    InvoicePayload,
    JournalLine,
    ManualJournalPayload,
    CreatedJournalRef,
    
    # Factory functions
    create_connector,
    register_connector,
    list_available_connectors,
)

__all__ = [
    "AccountingConnector",
    "ConnectorConfig",
    "InvoiceType",
    "InvoiceStatus",
    "LineAmountType",
    "EDITABLE_STATUSES",
    "ContactRef",
    "TaxRateRef",
    "AccountRef",
    "TrackingCategoryRef",
    "TrackingOptionRef",
    "LineItem",
    "InvoiceDocument",
    "InvoicePayload",
    "JournalLine",
    "ManualJournalPayload",
    "CreatedJournalRef",
    "create_connector",
    "register_connector",
    "list_available_connectors",
]
