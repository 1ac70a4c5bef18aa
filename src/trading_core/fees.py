"""Fee schedules: trade notional -> transaction cost."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class FeeSchedule:
    """Flat fee per trade plus a proportional rate on notional.

    Paper trading uses the zero schedule; real-money trading charges
    $0.99 + 0.1% of notional.
    """

    flat: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")

    def __call__(self, total_amount: Decimal) -> Decimal:
        if self.is_free:
            return Decimal("0")
        return self.flat + self.rate * total_amount

    @property
    def is_free(self) -> bool:
        return not self.flat and not self.rate


NO_FEES = FeeSchedule()
REAL_MONEY_FEES = FeeSchedule(flat=Decimal("0.99"), rate=Decimal("0.001"))
