"""In-memory accrual ledger.

Maps campaign reference -> cumulative accrued cost. Entries live for the
lifetime of the process only; nothing is persisted.

The increment is a read-modify-write guarded by an asyncio.Lock, so two
campaign creations for the same reference interleaving around their
provider calls cannot lose an update.
"""

import asyncio
from decimal import Decimal
from typing import Dict, Optional


def to_decimal(value) -> Optional[Decimal]:
    """Convert value to Decimal."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class AccrualLedger:
    """Accrued and billed totals per campaign reference."""

    def __init__(self):
        self._accrued: Dict[str, Decimal] = {}
        self._billed: Dict[str, Decimal] = {}
        self._lock = asyncio.Lock()

    async def accrue(self, campaign_ref: str, amount) -> Decimal:
        """Add an expected cost to a campaign's accrued total.

        Returns:
            The new accrued total
        """
        amount = to_decimal(amount)
        async with self._lock:
            total = self._accrued.get(campaign_ref, Decimal("0")) + amount
            self._accrued[campaign_ref] = total
            return total

    def accrued(self, campaign_ref: str) -> Decimal:
        """Accrued total for a reference (zero when never accrued)."""
        return self._accrued.get(campaign_ref, Decimal("0"))

    def billed(self, campaign_ref: str) -> Decimal:
        """Net billed total recorded against a reference."""
        return self._billed.get(campaign_ref, Decimal("0"))

    def remaining(self, campaign_ref: str) -> Decimal:
        return self.accrued(campaign_ref) - self.billed(campaign_ref)

    async def consume_remaining(self, campaign_ref: str, net_bill) -> Decimal:
        """Return the remaining accrual and record a bill against it.

        The read and the billed-total update happen under one lock hold.

        Returns:
            The remaining accrual before this bill was recorded
        """
        net_bill = to_decimal(net_bill)
        async with self._lock:
            baseline = self.remaining(campaign_ref)
            self._billed[campaign_ref] = self.billed(campaign_ref) + net_bill
            return baseline

    async def release_bill(self, campaign_ref: str, net_bill) -> None:
        """Undo a bill recorded by consume_remaining whose journal failed."""
        net_bill = to_decimal(net_bill)
        async with self._lock:
            self._billed[campaign_ref] = self.billed(campaign_ref) - net_bill

    def snapshot(self) -> Dict[str, Dict[str, str]]:
        return {
            ref: {
                "accrued": str(total),
                "billed": str(self.billed(ref)),
            }
            for ref, total in self._accrued.items()
        }

    def __contains__(self, campaign_ref: str) -> bool:
        return campaign_ref in self._accrued

    def __len__(self) -> int:
        return len(self._accrued)
