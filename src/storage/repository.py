"""
Account repository: the only code that reads or writes ledger state.

Each resource is one JSON document under a deterministic key built from
(namespace, user_id, resource). Decimals are stored as strings and
timestamps as ISO-8601 UTC.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from storage.kv_store import KeyValueStore
from trading_core.contracts import Holding, Portfolio, Side, Transaction

PORTFOLIO = "portfolio"
HOLDINGS = "holdings"
TRANSACTIONS = "transactions"
WATCHLIST = "watchlist"
SUBSCRIPTION = "subscription"


def storage_key(namespace: str, user_id: str, resource: str) -> str:
    return f"{namespace}:{user_id}:{resource}"


def _ts(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts else None


# ---------------------------------------------------------------------------
# Document <-> dataclass
# ---------------------------------------------------------------------------


def portfolio_to_doc(p: Portfolio) -> dict[str, Any]:
    return {
        "cash_balance": str(p.cash_balance),
        "initial_cash": str(p.initial_cash),
        "total_deposits": str(p.total_deposits),
        "created_at": _iso(p.created_at),
        "updated_at": _iso(p.updated_at),
    }


def portfolio_from_doc(doc: dict[str, Any]) -> Portfolio:
    return Portfolio(
        cash_balance=Decimal(doc["cash_balance"]),
        initial_cash=Decimal(doc["initial_cash"]),
        total_deposits=Decimal(doc.get("total_deposits", "0")),
        created_at=_ts(doc.get("created_at")),
        updated_at=_ts(doc.get("updated_at")),
    )


def holding_to_doc(h: Holding) -> dict[str, Any]:
    return {
        "symbol": h.symbol,
        "company_name": h.company_name,
        "shares": h.shares,
        "average_price": str(h.average_price),
        "created_at": _iso(h.created_at),
        "updated_at": _iso(h.updated_at),
    }


def holding_from_doc(doc: dict[str, Any]) -> Holding:
    return Holding(
        symbol=doc["symbol"],
        company_name=doc.get("company_name", ""),
        shares=int(doc["shares"]),
        average_price=Decimal(doc["average_price"]),
        created_at=_ts(doc.get("created_at")),
        updated_at=_ts(doc.get("updated_at")),
    )


def transaction_to_doc(t: Transaction) -> dict[str, Any]:
    return {
        "id": t.id,
        "symbol": t.symbol,
        "company_name": t.company_name,
        "side": t.side.value,
        "shares": t.shares,
        "price": str(t.price),
        "total_amount": str(t.total_amount),
        "fees": str(t.fees),
        "timestamp": _iso(t.timestamp),
    }


def transaction_from_doc(doc: dict[str, Any]) -> Transaction:
    return Transaction(
        id=doc["id"],
        symbol=doc["symbol"],
        company_name=doc.get("company_name", ""),
        side=Side(doc["side"]),
        shares=int(doc["shares"]),
        price=Decimal(doc["price"]),
        total_amount=Decimal(doc["total_amount"]),
        fees=Decimal(doc.get("fees", "0")),
        timestamp=_ts(doc["timestamp"]),
    )


def _encode(doc: Any) -> bytes:
    return json.dumps(doc, sort_keys=True).encode("utf-8")


def _decode(raw: bytes | None) -> Any:
    if raw is None:
        return None
    return json.loads(raw.decode("utf-8"))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountRepository:
    """Typed access to one namespace (account type) of a key-value store."""

    def __init__(self, store: KeyValueStore, namespace: str) -> None:
        self._store = store
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def _key(self, user_id: str, resource: str) -> str:
        return storage_key(self._namespace, user_id, resource)

    def load_document(self, user_id: str, resource: str) -> Any:
        return _decode(self._store.get(self._key(user_id, resource)))

    def save_document(self, user_id: str, resource: str, doc: Any) -> None:
        self._store.put(self._key(user_id, resource), _encode(doc))

    def load_portfolio(self, user_id: str) -> Portfolio | None:
        doc = self.load_document(user_id, PORTFOLIO)
        return portfolio_from_doc(doc) if doc is not None else None

    def load_holdings(self, user_id: str) -> list[Holding]:
        return [holding_from_doc(d) for d in self.load_document(user_id, HOLDINGS) or []]

    def load_transactions(self, user_id: str) -> list[Transaction]:
        """Newest first."""
        return [transaction_from_doc(d) for d in self.load_document(user_id, TRANSACTIONS) or []]

    def commit(
        self,
        user_id: str,
        *,
        portfolio: Portfolio | None = None,
        holdings: Iterable[Holding] | None = None,
        transactions: Iterable[Transaction] | None = None,
    ) -> None:
        """Write the given resources in a single put_many so they land together."""
        items: dict[str, bytes] = {}
        if portfolio is not None:
            items[self._key(user_id, PORTFOLIO)] = _encode(portfolio_to_doc(portfolio))
        if holdings is not None:
            items[self._key(user_id, HOLDINGS)] = _encode([holding_to_doc(h) for h in holdings])
        if transactions is not None:
            items[self._key(user_id, TRANSACTIONS)] = _encode([transaction_to_doc(t) for t in transactions])
        if items:
            self._store.put_many(items)
