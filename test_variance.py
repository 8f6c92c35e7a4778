"""
Variance arithmetic and journal construction.

Sign convention: variance = net bill - accrued baseline.
Positive debits cost and credits accrual; negative does the reverse.
"""

from datetime import date
from decimal import Decimal

import pytest

from accruals.models import VarianceDirection
from accruals.reconciler import WebhookReconciler
from accruals.variance import (
    build_accrual_journal,
    build_variance_journal,
    compute_variance,
    net_bill,
    recode_lines,
    utc_today,
    variance_direction,
)
from connectors.accounting_base import LineAmountType, LineItem
from core.config import Settings

ON = date(2025, 9, 30)


@pytest.fixture
def settings():
    return Settings()


class TestNetBill:

    def test_sums_unit_amount_times_quantity(self):
        lines = [
            LineItem(unit_amount=Decimal("4000"), quantity=Decimal("2")),
            LineItem(unit_amount=Decimal("500"), quantity=Decimal("1")),
        ]
        assert net_bill(lines) == Decimal("8500")

    def test_missing_amount_is_zero_and_missing_quantity_is_one(self):
        lines = [
            LineItem(unit_amount=None, quantity=Decimal("3")),
            LineItem(unit_amount=Decimal("120.50"), quantity=None),
        ]
        assert net_bill(lines) == Decimal("120.50")

    def test_no_lines(self):
        assert net_bill([]) == Decimal("0")


class TestComputeVariance:

    def test_bill_over_accrual_is_positive(self):
        assert compute_variance(Decimal("8500"), Decimal("8000")) == Decimal("500.00")

    def test_bill_under_accrual_is_negative(self):
        assert compute_variance(Decimal("7500"), Decimal("8000")) == Decimal("-500.00")

    def test_sub_cent_difference_rounds_to_zero(self):
        variance = compute_variance(Decimal("8000.004"), Decimal("8000"))
        assert variance == Decimal("0.00")
        assert variance_direction(variance) == VarianceDirection.ZERO

    def test_half_cent_rounds_up(self):
        assert compute_variance(Decimal("100.005"), Decimal("0")) == Decimal("100.01")

    def test_no_accrual_means_whole_bill_is_variance(self):
        assert compute_variance(Decimal("1234.56"), Decimal("0")) == Decimal("1234.56")


class TestVarianceJournal:

    def test_positive_variance_debits_cost_credits_accrual(self, settings):
        journal = build_variance_journal("SEPT-PAID-SOCIAL", Decimal("500.00"), settings, ON)

        assert journal.narration == "Accrual variance for SEPT-PAID-SOCIAL"
        assert journal.line_amount_types == LineAmountType.EXCLUSIVE
        assert [(l.account_code, l.line_amount) for l in journal.lines] == [
            ("500", Decimal("500.00")),
            ("850", Decimal("-500.00")),
        ]
        assert all(l.description == "Accrual variance SEPT-PAID-SOCIAL" for l in journal.lines)
        assert journal.is_balanced

    def test_negative_variance_debits_accrual_credits_cost(self, settings):
        journal = build_variance_journal("SEPT-PAID-SOCIAL", Decimal("-500.00"), settings, ON)

        assert [(l.account_code, l.line_amount) for l in journal.lines] == [
            ("850", Decimal("500.00")),
            ("500", Decimal("-500.00")),
        ]
        assert all(l.description == "Accrual release SEPT-PAID-SOCIAL" for l in journal.lines)
        assert journal.is_balanced

    def test_zero_variance_has_no_journal(self, settings):
        assert build_variance_journal("REF", Decimal("0.00"), settings, ON) is None

    def test_uses_configured_codes(self):
        settings = Settings(cost_code="5100", accrual_code="2150")
        journal = build_variance_journal("REF", Decimal("10"), settings, ON)
        assert [l.account_code for l in journal.lines] == ["5100", "2150"]


class TestAccrualJournal:

    def test_debits_cost_credits_accrual(self, settings):
        journal = build_accrual_journal("SEPT-PAID-SOCIAL", Decimal("8000"), settings, ON)

        assert journal.narration == "Accrue expected media cost for SEPT-PAID-SOCIAL"
        assert journal.journal_date == ON
        assert [(l.account_code, l.line_amount) for l in journal.lines] == [
            ("500", Decimal("8000")),
            ("850", Decimal("-8000")),
        ]
        assert journal.is_balanced


class TestRecodeLines:

    def test_moves_lines_to_accrual_and_keeps_the_rest(self):
        original = LineItem(
            description="Paid social",
            quantity=Decimal("2"),
            unit_amount=Decimal("4250"),
            account_code="500",
            tax_type="INPUT2",
            line_item_id="li-1",
        )

        recoded = recode_lines([original], "850")

        assert len(recoded) == 1
        line = recoded[0]
        assert line.account_code == "850"
        assert line.description == "Paid social"
        assert line.quantity == Decimal("2")
        assert line.unit_amount == Decimal("4250")
        assert line.tax_type == "INPUT2"
        assert original.account_code == "500"


class TestJournalDate:

    def test_utc_today_is_a_date(self):
        assert isinstance(utc_today(), date)

    def test_default_date_source(self, connector, ledger, settings_store):
        reconciler = WebhookReconciler(connector, ledger, settings_store)
        assert reconciler.today is utc_today
