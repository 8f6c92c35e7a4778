"""Tax rate, account and tracking lookups by human-readable name or code.

Read-through: every call performs a fresh provider lookup, nothing is
cached. A missing match is not an error; callers decide what to do.
"""

from typing import Any, Dict, Optional

from connectors.accounting_base import (
    AccountingConnector,
    AccountRef,
    TaxRateRef,
    TrackingOptionRef,
)
from core.config import Settings


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").lower() == (b or "").lower()


class ReferenceResolver:
    """Looks up provider identifiers for configured names and codes."""

    def __init__(self, connector: AccountingConnector):
        self.connector = connector

    async def find_tax_rate_by_name(self, tenant_id: str, name: Optional[str]) -> Optional[TaxRateRef]:
        """Tax rate whose name matches case-insensitively, or None."""
        if not name:
            return None
        for rate in await self.connector.list_tax_rates(tenant_id):
            if _same(rate.name, name):
                return rate
        return None

    async def find_account_by_code(self, tenant_id: str, code: Optional[str]) -> Optional[AccountRef]:
        if not code:
            return None
        for account in await self.connector.list_accounts(tenant_id):
            if _same(account.code, code):
                return account
        return None

    async def find_tracking_option(
        self,
        tenant_id: str,
        category_name: str,
        option_name: str,
    ) -> Optional[TrackingOptionRef]:
        for category in await self.connector.list_tracking_categories(tenant_id):
            if not _same(category.name, category_name):
                continue
            for option in category.options:
                if _same(option.name, option_name):
                    return option
        return None

    async def reference_data(self, tenant_id: str) -> Dict[str, Any]:
        """Tax rates, accounts and tracking categories for administrators."""
        tax_rates = await self.connector.list_tax_rates(tenant_id)
        accounts = await self.connector.list_accounts(tenant_id)
        categories = await self.connector.list_tracking_categories(tenant_id)
        return {
            "taxRates": [r.model_dump(mode="json") for r in tax_rates],
            "accounts": [a.model_dump(mode="json") for a in accounts],
            "trackingCategories": [c.model_dump(mode="json") for c in categories],
        }

    async def check_settings(self, tenant_id: str, settings: Settings) -> Dict[str, bool]:
        """Whether each configured code and the sales tax name exist."""
        accounts = await self.connector.list_accounts(tenant_id)
        codes = {(a.code or "").lower() for a in accounts}
        tax_rate = await self.find_tax_rate_by_name(tenant_id, settings.sales_tax_name)
        return {
            "revenueCode": settings.revenue_code.lower() in codes,
            "costCode": settings.cost_code.lower() in codes,
            "accrualCode": settings.accrual_code.lower() in codes,
            "salesTaxName": tax_rate is not None,
        }
