"""
Transaction log: append-only, newest first.

record() is the only way in. There is no update or delete; entries are
frozen dataclasses, so recorded trades cannot change after the fact.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from trading_core.contracts import Side, Transaction


class TransactionLog:
    def __init__(self, entries: Iterable[Transaction] = ()) -> None:
        self._entries: list[Transaction] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(
        self,
        *,
        symbol: str,
        side: Side,
        shares: int,
        price: Decimal,
        total_amount: Decimal,
        fees: Decimal,
        company_name: str = "",
        now: datetime | None = None,
    ) -> Transaction:
        """Assign id and timestamp, prepend, and return the new entry."""
        tx = Transaction(
            id=f"txn_{uuid.uuid4().hex}",
            symbol=symbol,
            side=side,
            shares=shares,
            price=price,
            total_amount=total_amount,
            fees=fees,
            timestamp=now or datetime.now(timezone.utc),
            company_name=company_name,
        )
        self._entries.insert(0, tx)
        return tx

    def entries(self, symbol: str | None = None, limit: int | None = None) -> list[Transaction]:
        """Newest first, optionally filtered by symbol and capped at *limit*."""
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        out = [t for t in self._entries if symbol is None or t.symbol == symbol]
        return out[:limit] if limit is not None else out
