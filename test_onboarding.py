"""
Campaign onboarding: invoice the client, accrue the expected cost.
"""

import asyncio
from decimal import Decimal

import pytest

from accruals.models import CampaignRequest
from accruals.onboarding import CampaignOnboarding
from connectors.accounting_base import ContactRef, InvoiceStatus, InvoiceType
from core.errors import AuthenticationError, ExternalServiceError, ValidationError

from conftest import TODAY, FakeSession


def campaign(**overrides):
    payload = {
        "clientContactName": "Acme Retail",
        "campaignRef": "SEPT-PAID-SOCIAL",
        "saleNet": 10000,
        "expectedCostNet": 8000,
        "dueDate": "2025-10-31",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def onboarding(connector, session, ledger, settings_store, activity, metrics):
    return CampaignOnboarding(
        connector,
        session,
        ledger,
        settings_store,
        activity=activity,
        metrics=metrics,
        today=lambda: TODAY,
    )


class TestCreateCampaign:

    @pytest.mark.asyncio
    async def test_invoice_journal_and_ledger(self, onboarding, connector, ledger):
        result = await onboarding.create_campaign(campaign())

        invoice = connector.invoices[result.invoice_id]
        assert invoice.type == InvoiceType.SALE
        assert invoice.status == InvoiceStatus.AUTHORISED
        assert invoice.reference == "SEPT-PAID-SOCIAL"
        assert invoice.invoice_date == TODAY
        assert str(invoice.due_date) == "2025-10-31"
        [line] = invoice.line_items
        assert line.description == "Media campaign SEPT-PAID-SOCIAL"
        assert line.quantity == 1
        assert line.unit_amount == Decimal("10000")
        assert line.account_code == "400"
        assert line.tax_type == "OUTPUT2"

        [journal] = connector.journals
        assert journal.narration == "Accrue expected media cost for SEPT-PAID-SOCIAL"
        assert [(l.account_code, l.line_amount) for l in journal.lines] == [
            ("500", Decimal("8000")),
            ("850", Decimal("-8000")),
        ]

        assert ledger.accrued("SEPT-PAID-SOCIAL") == Decimal("8000")
        assert result.ok
        assert result.campaign_ref == "SEPT-PAID-SOCIAL"
        assert result.accrued == Decimal("8000")
        assert result.journal_id == "mj-1"

    @pytest.mark.asyncio
    async def test_result_message_and_api_shape(self, onboarding, activity, metrics):
        result = await onboarding.create_campaign(campaign())

        assert result.message == "Created invoice INV-0001 and accrued £8000.00 for SEPT-PAID-SOCIAL"
        data = result.to_api()
        assert data["invoiceNumber"] == "INV-0001"
        assert data["invoiceId"] == "inv-1"
        assert data["campaignRef"] == "SEPT-PAID-SOCIAL"
        assert data["accrued"] == 8000.0
        assert activity.recent()[0] == {"kind": "ok", "msg": result.message, "ts": activity.recent()[0]["ts"]}
        assert metrics.get_summary()["campaigns"]["created"] == 1

    @pytest.mark.asyncio
    async def test_order_of_external_writes(self, onboarding, connector):
        await onboarding.create_campaign(campaign())
        assert [w[0] for w in connector.writes] == [
            "create_contact",
            "create_invoice",
            "create_manual_journal",
        ]

    @pytest.mark.asyncio
    async def test_repeated_campaigns_accumulate(self, onboarding, ledger):
        await onboarding.create_campaign(campaign(expectedCostNet=8000))
        await onboarding.create_campaign(campaign(expectedCostNet="1500.25"))
        assert ledger.accrued("SEPT-PAID-SOCIAL") == Decimal("9500.25")

    @pytest.mark.asyncio
    async def test_concurrent_campaigns_for_one_reference(self, onboarding, connector, ledger):
        costs = [Decimal(c) for c in ("8000", "1500.25", "99.75", "400", "0.01", "1200")]

        results = await asyncio.gather(*(
            onboarding.create_campaign(campaign(expectedCostNet=str(c))) for c in costs
        ))

        assert len(connector.journals) == len(costs)
        assert len({r.invoice_id for r in results}) == len(costs)
        assert ledger.accrued("SEPT-PAID-SOCIAL") == sum(costs)


class TestContacts:

    @pytest.mark.asyncio
    async def test_contact_id_is_used_directly(self, onboarding, connector):
        result = await onboarding.create_campaign(
            campaign(clientContactId="c-existing", clientContactName=None)
        )
        assert connector.invoices[result.invoice_id].contact_id == "c-existing"
        assert "create_contact" not in [w[0] for w in connector.writes]

    @pytest.mark.asyncio
    async def test_existing_contact_is_reused_by_name(self, onboarding, connector):
        connector.contacts.append(ContactRef(id="c-acme", name="Acme Retail"))

        result = await onboarding.create_campaign(campaign())

        assert connector.invoices[result.invoice_id].contact_id == "c-acme"
        assert "create_contact" not in [w[0] for w in connector.writes]

    @pytest.mark.asyncio
    async def test_unknown_contact_is_created(self, onboarding, connector):
        result = await onboarding.create_campaign(campaign(clientContactName="New Client Ltd"))
        assert connector.contacts[-1].name == "New Client Ltd"
        assert connector.invoices[result.invoice_id].contact_id == connector.contacts[-1].id


class TestTax:

    @pytest.mark.asyncio
    async def test_override_tax_name(self, onboarding, connector):
        result = await onboarding.create_campaign(campaign(salesTaxName="20% (vat on EXPENSES)"))
        assert connector.invoices[result.invoice_id].line_items[0].tax_type == "INPUT2"

    @pytest.mark.asyncio
    async def test_unknown_tax_name_invoices_without_tax(self, onboarding, connector):
        result = await onboarding.create_campaign(campaign(salesTaxName="Zero Rated Nowhere"))
        assert connector.invoices[result.invoice_id].line_items[0].tax_type is None
        assert len(connector.journals) == 1

    @pytest.mark.asyncio
    async def test_configured_tax_name_is_read_per_call(self, onboarding, connector, settings_store):
        settings_store.update({"salesTaxName": "20% (VAT on Expenses)"})
        result = await onboarding.create_campaign(campaign())
        assert connector.invoices[result.invoice_id].line_items[0].tax_type == "INPUT2"


class TestValidation:

    @pytest.mark.parametrize("missing", ["campaignRef", "saleNet", "expectedCostNet"])
    @pytest.mark.asyncio
    async def test_missing_required_field(self, onboarding, connector, ledger, missing):
        payload = campaign()
        del payload[missing]

        with pytest.raises(ValidationError) as exc:
            await onboarding.create_campaign(payload)

        assert "Required" in exc.value.message
        assert connector.writes == []
        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_contact_id_or_name_required(self, onboarding, connector):
        with pytest.raises(ValidationError):
            await onboarding.create_campaign(campaign(clientContactName="  "))
        assert connector.writes == []

    @pytest.mark.asyncio
    async def test_non_numeric_amount(self, onboarding):
        with pytest.raises(ValidationError):
            await onboarding.create_campaign(campaign(saleNet="lots"))

    def test_zero_sale_is_allowed(self):
        request = CampaignRequest.from_payload(campaign(saleNet=0))
        assert request.sale_net == Decimal("0")

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self, onboarding, activity, metrics):
        with pytest.raises(ValidationError):
            await onboarding.create_campaign({})
        assert activity.recent()[0]["kind"] == "err"
        assert activity.recent()[0]["msg"].startswith("Create campaign failed: Required")
        assert metrics.get_summary()["campaigns"]["failed"] == 1


class TestFailures:

    @pytest.mark.asyncio
    async def test_no_tenant(self, connector, ledger, settings_store):
        onboarding = CampaignOnboarding(connector, FakeSession(tenant_id=None), ledger, settings_store)
        with pytest.raises(AuthenticationError):
            await onboarding.create_campaign(campaign())
        assert connector.writes == []

    @pytest.mark.asyncio
    async def test_invoice_failure_stops_before_journal(self, onboarding, connector, ledger):
        connector.fail_on = "create_invoice"

        with pytest.raises(ExternalServiceError) as exc:
            await onboarding.create_campaign(campaign())

        assert exc.value.message == "Xero rejected create_invoice"
        assert connector.journals == []
        assert ledger.accrued("SEPT-PAID-SOCIAL") == Decimal("0")

    @pytest.mark.asyncio
    async def test_journal_failure_leaves_invoice_in_place(self, onboarding, connector, ledger):
        connector.fail_on = "create_manual_journal"

        with pytest.raises(ExternalServiceError):
            await onboarding.create_campaign(campaign())

        # No compensating rollback of the committed invoice
        assert len(connector.invoices) == 1
        assert ledger.accrued("SEPT-PAID-SOCIAL") == Decimal("0")

    @pytest.mark.asyncio
    async def test_tax_lookup_failure_aborts(self, onboarding, connector):
        connector.fail_on = "list_tax_rates"
        with pytest.raises(ExternalServiceError):
            await onboarding.create_campaign(campaign())
        assert connector.invoices == {}
