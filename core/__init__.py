"""Core module - provider-neutral plumbing for the accruals service.

This module contains errors, configuration, the accrual ledger, webhook
signature verification, token security and observability. It is
intentionally provider-agnostic.

Accounting-provider specifics (Xero, etc.) belong in /connectors/.
"""

__version__ = "1.0.0"
