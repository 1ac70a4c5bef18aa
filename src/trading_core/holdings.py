"""
Holding store: per-account symbol -> position, with average-cost accounting.

apply_buy and apply_sell are the only mutators. Each replaces the whole
Holding (shares and average_price together) or raises before changing anything.

Weighted average cost on buy:
    avg = (old_shares * old_avg + shares * price) / (old_shares + shares)

Sells never move the average; the remaining shares keep the prior cost basis.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Mapping

from trading_core.contracts import Holding, Side, Transaction
from trading_core.errors import InsufficientShares


def _now() -> datetime:
    return datetime.now(timezone.utc)


def weighted_average(old_shares: int, old_avg: Decimal, shares: int, price: Decimal) -> Decimal:
    """Quantity-weighted mean cost after adding *shares* at *price*."""
    return (old_shares * old_avg + shares * price) / (old_shares + shares)


class HoldingStore:
    """In-memory view of one account's holdings, keyed by symbol."""

    def __init__(self, holdings: Iterable[Holding] = ()) -> None:
        self._holdings: dict[str, Holding] = {h.symbol: h for h in holdings}

    def __len__(self) -> int:
        return len(self._holdings)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._holdings

    def get(self, symbol: str) -> Holding | None:
        return self._holdings.get(symbol)

    def all(self) -> list[Holding]:
        """Holdings in the order they were opened."""
        return list(self._holdings.values())

    def as_mapping(self) -> Mapping[str, Holding]:
        return dict(self._holdings)

    def apply_buy(
        self,
        symbol: str,
        shares: int,
        price: Decimal,
        *,
        company_name: str = "",
        now: datetime | None = None,
    ) -> Holding:
        ts = now or _now()
        existing = self._holdings.get(symbol)
        if existing is None:
            holding = Holding(
                symbol=symbol,
                shares=shares,
                average_price=price,
                company_name=company_name or symbol,
                created_at=ts,
                updated_at=ts,
            )
        else:
            holding = replace(
                existing,
                shares=existing.shares + shares,
                average_price=weighted_average(existing.shares, existing.average_price, shares, price),
                updated_at=ts,
            )
        self._holdings[symbol] = holding
        return holding

    def apply_sell(self, symbol: str, shares: int, *, now: datetime | None = None) -> Holding | None:
        """Reduce or close a position. Returns the remaining holding, or None when closed."""
        existing = self._holdings.get(symbol)
        available = existing.shares if existing else 0
        if shares > available:
            raise InsufficientShares(symbol, shares, available)
        if shares == available:
            del self._holdings[symbol]
            return None
        holding = replace(existing, shares=existing.shares - shares, updated_at=now or _now())
        self._holdings[symbol] = holding
        return holding


def replay_holdings(transactions: Iterable[Transaction]) -> HoldingStore:
    """Rebuild holdings from a transaction log given newest first."""
    store = HoldingStore()
    for tx in reversed(list(transactions)):
        if tx.side is Side.BUY:
            store.apply_buy(tx.symbol, tx.shares, tx.price, company_name=tx.company_name, now=tx.timestamp)
        else:
            store.apply_sell(tx.symbol, tx.shares, now=tx.timestamp)
    return store
