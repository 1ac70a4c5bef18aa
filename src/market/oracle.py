"""
Price oracle: symbol -> current quote. Read-only and deterministic per catalog.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from config.ledger_config import StockConfig
from trading_core.contracts import Quote


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


class PriceOracle(Protocol):
    """Protocol for price sources. Implement per provider."""

    def get_price(self, symbol: str) -> Quote | None:
        """Return the current quote, or None for an unknown symbol."""
        ...


class CatalogPriceOracle:
    """Fixed catalog of quotes, usually loaded from the ledger config."""

    def __init__(self, quotes: Iterable[Quote]) -> None:
        self._quotes: dict[str, Quote] = {normalize_symbol(q.symbol): q for q in quotes}

    @classmethod
    def from_config(cls, catalog: Iterable[StockConfig]) -> CatalogPriceOracle:
        return cls(
            Quote(
                symbol=s.symbol,
                company_name=s.company_name,
                current_price=s.current_price,
                change=s.change,
                change_percent=s.change_percent,
                volume=s.volume,
                market_cap=s.market_cap,
            )
            for s in catalog
        )

    def get_price(self, symbol: str) -> Quote | None:
        return self._quotes.get(normalize_symbol(symbol))

    def list_stocks(self) -> list[Quote]:
        return list(self._quotes.values())

    def search(self, query: str) -> list[Quote]:
        """Case-insensitive substring match on symbol or company name."""
        term = query.strip().lower()
        return [
            q for q in self._quotes.values()
            if term in q.symbol.lower() or term in q.company_name.lower()
        ]
