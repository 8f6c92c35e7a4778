"""Accrual and variance arithmetic.

Pure functions: no provider calls, no ledger access.

Sign convention: variance = net bill - accrued baseline.
- positive: the bill exceeds the accrual; debit cost, credit accrual
- negative: the accrual overstated the cost; debit accrual, credit cost
- zero (after rounding to 0.01): nothing to post
Journals carry no tax. VAT is recovered once, on the bill itself.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from accruals.models import VarianceDirection
from connectors.accounting_base import (
    JournalLine,
    LineAmountType,
    LineItem,
    ManualJournalPayload,
)
from core.config import Settings

CENT = Decimal("0.01")


def utc_today() -> date:
    return datetime.utcnow().date()


def net_bill(lines: Iterable[LineItem]) -> Decimal:
    """Sum of unit amount x quantity over a bill's lines."""
    return sum((line.net_amount for line in lines), Decimal("0"))


def compute_variance(net: Decimal, accrued: Decimal) -> Decimal:
    """Net bill less the accrued baseline, rounded to the cent."""
    return (net - accrued).quantize(CENT, rounding=ROUND_HALF_UP)


def variance_direction(variance: Decimal) -> VarianceDirection:
    if variance > 0:
        return VarianceDirection.ADDITIONAL
    if variance < 0:
        return VarianceDirection.RELEASE
    return VarianceDirection.ZERO


def recode_lines(lines: Iterable[LineItem], accrual_code: str) -> List[LineItem]:
    """Point every line at the accrual account.

    Description, quantity, unit amount and tax type are preserved.
    """
    return [
        LineItem(
            description=line.description,
            quantity=line.quantity,
            unit_amount=line.unit_amount,
            account_code=accrual_code,
            tax_type=line.tax_type,
        )
        for line in lines
    ]


def build_accrual_journal(
    campaign_ref: str,
    amount: Decimal,
    settings: Settings,
    on: date,
) -> ManualJournalPayload:
    """Debit cost, credit accrual control for the expected cost."""
    description = f"Accrued cost {campaign_ref}"
    return ManualJournalPayload(
        narration=f"Accrue expected media cost for {campaign_ref}",
        journal_date=on,
        line_amount_types=LineAmountType.EXCLUSIVE,
        lines=[
            JournalLine(account_code=settings.cost_code, line_amount=amount, description=description),
            JournalLine(account_code=settings.accrual_code, line_amount=-amount, description=description),
        ],
    )


def build_variance_journal(
    campaign_ref: str,
    variance: Decimal,
    settings: Settings,
    on: date,
) -> Optional[ManualJournalPayload]:
    """Journal for a variance, or None when it is zero."""
    direction = variance_direction(variance)
    if direction == VarianceDirection.ZERO:
        return None

    amount = abs(variance)
    if direction == VarianceDirection.ADDITIONAL:
        description = f"Accrual variance {campaign_ref}"
        debit, credit = settings.cost_code, settings.accrual_code
    else:
        description = f"Accrual release {campaign_ref}"
        debit, credit = settings.accrual_code, settings.cost_code

    return ManualJournalPayload(
        narration=f"Accrual variance for {campaign_ref}",
        journal_date=on,
        line_amount_types=LineAmountType.EXCLUSIVE,
        lines=[
            JournalLine(account_code=debit, line_amount=amount, description=description),
            JournalLine(account_code=credit, line_amount=-amount, description=description),
        ],
    )
