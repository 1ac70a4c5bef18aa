"""Pytest fixtures: in-memory store, controllable price oracle, ledgers for both account types."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from execution.ledger import PAPER, REAL_MONEY, AccountLedger
from storage.kv_store import InMemoryKVStore
from storage.repository import AccountRepository
from trading_core.contracts import Quote


class SettableOracle:
    """Price oracle whose prices tests can move between orders."""

    def __init__(self, prices: dict[str, str]) -> None:
        self._prices = {s: Decimal(p) for s, p in prices.items()}

    def set_price(self, symbol: str, price: str) -> None:
        self._prices[symbol] = Decimal(price)

    def get_price(self, symbol: str) -> Quote | None:
        symbol = symbol.upper()
        if symbol not in self._prices:
            return None
        return Quote(symbol=symbol, company_name=f"{symbol} Corp.", current_price=self._prices[symbol])


class StubGate:
    def __init__(self, allowed: bool = True) -> None:
        self.allowed = allowed
        self.calls: list[str] = []

    def is_trading_allowed(self, user_id: str) -> bool:
        self.calls.append(user_id)
        return self.allowed


class TickingClock:
    """Returns strictly increasing UTC timestamps, one second apart."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 2, 17, 14, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


@pytest.fixture
def user() -> str:
    return "alice"


@pytest.fixture
def store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture
def oracle() -> SettableOracle:
    return SettableOracle({"AAPL": "160", "MSFT": "100", "TSLA": "250"})


@pytest.fixture
def gate() -> StubGate:
    return StubGate(allowed=True)


@pytest.fixture
def events() -> list[tuple[str, dict]]:
    return []


@pytest.fixture
def paper(store: InMemoryKVStore, oracle: SettableOracle, events: list) -> AccountLedger:
    return AccountLedger(
        PAPER,
        AccountRepository(store, "paper"),
        oracle,
        on_event=lambda kind, payload: events.append((kind, payload)),
        clock=TickingClock(),
    )


@pytest.fixture
def real(store: InMemoryKVStore, oracle: SettableOracle, gate: StubGate, events: list) -> AccountLedger:
    return AccountLedger(
        REAL_MONEY,
        AccountRepository(store, "real"),
        oracle,
        eligibility=gate,
        on_event=lambda kind, payload: events.append((kind, payload)),
        clock=TickingClock(),
    )
