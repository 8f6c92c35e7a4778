"""
Reference lookups: tax rates by name, accounts by code, tracking options,
and the settings check.
"""

import pytest

from accruals.resolver import ReferenceResolver
from connectors.accounting_base import AccountRef
from core.config import Settings
from core.errors import ExternalServiceError

from conftest import TENANT


@pytest.fixture
def resolver(connector):
    return ReferenceResolver(connector)


class TestTaxRates:

    @pytest.mark.asyncio
    async def test_case_insensitive_match(self, resolver):
        rate = await resolver.find_tax_rate_by_name(TENANT, "20% (vat on income)")
        assert rate.tax_type == "OUTPUT2"

    @pytest.mark.asyncio
    async def test_padded_name_does_not_match(self, resolver):
        assert await resolver.find_tax_rate_by_name(TENANT, "  20% (vat on income)  ") is None

    @pytest.mark.asyncio
    async def test_missing_or_blank_name(self, resolver):
        assert await resolver.find_tax_rate_by_name(TENANT, "Zero Rated") is None
        assert await resolver.find_tax_rate_by_name(TENANT, "") is None
        assert await resolver.find_tax_rate_by_name(TENANT, None) is None

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self, resolver, connector):
        connector.fail_on = "list_tax_rates"
        with pytest.raises(ExternalServiceError):
            await resolver.find_tax_rate_by_name(TENANT, "20% (VAT on Income)")


class TestAccounts:

    @pytest.mark.asyncio
    async def test_match_by_code(self, resolver):
        account = await resolver.find_account_by_code(TENANT, "850")
        assert account.id == "a-850"
        assert account.name == "Accrued Media Costs"

    @pytest.mark.asyncio
    async def test_code_match_ignores_case(self, resolver, connector):
        connector.accounts[0] = AccountRef(id="a-400", code="MEDIA-400", name="Media Sales")
        account = await resolver.find_account_by_code(TENANT, "media-400")
        assert account.id == "a-400"

    @pytest.mark.asyncio
    async def test_unknown_code(self, resolver):
        assert await resolver.find_account_by_code(TENANT, "999") is None
        assert await resolver.find_account_by_code(TENANT, None) is None


class TestTrackingOptions:

    @pytest.mark.asyncio
    async def test_match_within_category(self, resolver):
        option = await resolver.find_tracking_option(TENANT, "campaign", "sept-paid-social")
        assert option.id == "to-1"

    @pytest.mark.asyncio
    async def test_wrong_category_or_option(self, resolver):
        assert await resolver.find_tracking_option(TENANT, "Region", "SEPT-PAID-SOCIAL") is None
        assert await resolver.find_tracking_option(TENANT, "Campaign", "OCT-RADIO") is None


class TestReferenceData:

    @pytest.mark.asyncio
    async def test_lists_everything(self, resolver):
        data = await resolver.reference_data(TENANT)
        assert [r["tax_type"] for r in data["taxRates"]] == ["OUTPUT2", "INPUT2"]
        assert [a["code"] for a in data["accounts"]] == ["400", "500", "850"]
        assert data["trackingCategories"][0]["options"][0]["name"] == "SEPT-PAID-SOCIAL"


class TestCheckSettings:

    @pytest.mark.asyncio
    async def test_defaults_all_present(self, resolver):
        assert await resolver.check_settings(TENANT, Settings()) == {
            "revenueCode": True,
            "costCode": True,
            "accrualCode": True,
            "salesTaxName": True,
        }

    @pytest.mark.asyncio
    async def test_missing_code_and_tax_name(self, resolver):
        settings = Settings(accrual_code="2100", sales_tax_name="No VAT")

        assert await resolver.check_settings(TENANT, settings) == {
            "revenueCode": True,
            "costCode": True,
            "accrualCode": False,
            "salesTaxName": False,
        }
