"""Per-user watchlist of symbols, shown with live quotes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from market.oracle import PriceOracle, normalize_symbol
from storage.kv_store import KeyValueStore
from storage.repository import WATCHLIST, AccountRepository
from trading_core.contracts import Quote

logger = logging.getLogger("papertrade.watchlist")


@dataclass(frozen=True)
class WatchlistItem:
    symbol: str
    added_at: datetime | None
    quote: Quote | None


class Watchlist:
    """Watchlist stored under its own namespace; independent of account type."""

    def __init__(self, store: KeyValueStore, oracle: PriceOracle) -> None:
        self._repo = AccountRepository(store, "watchlist")
        self._oracle = oracle

    def _entries(self, user_id: str) -> list[dict]:
        return self._repo.load_document(user_id, WATCHLIST) or []

    def list(self, user_id: str) -> list[WatchlistItem]:
        items = []
        for entry in self._entries(user_id):
            added = entry.get("added_at")
            items.append(
                WatchlistItem(
                    symbol=entry["symbol"],
                    added_at=datetime.fromisoformat(added) if added else None,
                    quote=self._oracle.get_price(entry["symbol"]),
                )
            )
        return items

    def add(self, user_id: str, symbol: str) -> bool:
        """Add a known symbol. False if unknown or already watched."""
        symbol = normalize_symbol(symbol)
        if self._oracle.get_price(symbol) is None:
            return False
        entries = self._entries(user_id)
        if any(e["symbol"] == symbol for e in entries):
            return False
        entries.append({"symbol": symbol, "added_at": datetime.now(timezone.utc).isoformat()})
        self._repo.save_document(user_id, WATCHLIST, entries)
        logger.info("Watchlist %s: added %s", user_id, symbol)
        return True

    def remove(self, user_id: str, symbol: str) -> bool:
        """Remove a symbol. False if it was not on the list."""
        symbol = normalize_symbol(symbol)
        entries = self._entries(user_id)
        kept = [e for e in entries if e["symbol"] != symbol]
        if len(kept) == len(entries):
            return False
        self._repo.save_document(user_id, WATCHLIST, kept)
        logger.info("Watchlist %s: removed %s", user_id, symbol)
        return True
