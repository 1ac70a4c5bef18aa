"""
Account ledger: validates orders and applies cash, holding and log updates as one unit.

One AccountLedger serves one account type (paper or real-money); the
difference between the two lives entirely in the AccountProfile (fee
schedule, starting cash, eligibility requirement, deposits).

Single writer per account: trade execution and deposits for a given user run
under a per-user lock, so reads of cash and holdings are never interleaved
with another order's writes. All validation happens before any state is
built; the new state is then written with one repository commit.
"""

from __future__ import annotations

import logging
import numbers
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterator, Protocol

from config.ledger_config import AccountConfig
from execution.transaction_log import TransactionLog
from market.oracle import PriceOracle, normalize_symbol
from storage.repository import AccountRepository
from trading_core.contracts import (
    Holding,
    Portfolio,
    PortfolioSnapshot,
    PositionView,
    Side,
    TradeFailure,
    TradeResult,
    Transaction,
)
from trading_core.errors import DepositsNotAllowed, InvalidAmount
from trading_core.fees import NO_FEES, REAL_MONEY_FEES, FeeSchedule
from trading_core.holdings import HoldingStore, replay_holdings

logger = logging.getLogger("papertrade.ledger")

EventCallback = Callable[[str, dict[str, Any]], None]


class EligibilityGate(Protocol):
    """External check for whether a user may trade this account type."""

    def is_trading_allowed(self, user_id: str) -> bool:
        ...


@dataclass(frozen=True)
class AccountProfile:
    """Funding and eligibility rules for one account type."""

    name: str
    initial_cash: Decimal
    fee_schedule: FeeSchedule = NO_FEES
    requires_eligibility: bool = False
    allows_deposits: bool = False
    label: str = ""

    @classmethod
    def from_config(cls, cfg: AccountConfig) -> AccountProfile:
        return cls(
            name=cfg.name,
            initial_cash=cfg.initial_cash,
            fee_schedule=FeeSchedule(flat=cfg.fee_flat, rate=cfg.fee_rate),
            requires_eligibility=cfg.requires_eligibility,
            allows_deposits=cfg.allows_deposits,
            label=cfg.label,
        )


PAPER = AccountProfile(name="paper", initial_cash=Decimal("100000"))
REAL_MONEY = AccountProfile(
    name="real",
    initial_cash=Decimal("0"),
    fee_schedule=REAL_MONEY_FEES,
    requires_eligibility=True,
    allows_deposits=True,
)


@dataclass(frozen=True)
class AuditReport:
    """Stored state compared against a replay of the transaction log."""

    user_id: str
    transactions: int
    expected_cash: Decimal
    actual_cash: Decimal
    mismatches: tuple[str, ...] = ()

    @property
    def consistent(self) -> bool:
        return not self.mismatches


def _is_whole_positive(shares: Any) -> bool:
    return isinstance(shares, numbers.Integral) and not isinstance(shares, bool) and shares > 0


class AccountLedger:
    """
    Orchestrates orders for one account type.

    Parameters
    ----------
    profile:
        Account rules (starting cash, fees, eligibility, deposits).
    repository:
        Storage seam for this account type's documents.
    oracle:
        Price source; every order fills at the oracle's current price.
    eligibility:
        Required when the profile requires eligibility.
    on_event:
        Optional callback receiving ("trade" | "rejection" | "deposit", payload).
    """

    def __init__(
        self,
        profile: AccountProfile,
        repository: AccountRepository,
        oracle: PriceOracle,
        *,
        eligibility: EligibilityGate | None = None,
        on_event: EventCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if profile.requires_eligibility and eligibility is None:
            raise ValueError(f"Account type {profile.name!r} requires an eligibility gate")
        self._profile = profile
        self._repo = repository
        self._oracle = oracle
        self._eligibility = eligibility
        self._on_event = on_event
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # One lock per user id seen by this process; grows with the user count.
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def profile(self) -> AccountProfile:
        return self._profile

    @contextmanager
    def _account_lock(self, user_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(user_id, threading.Lock())
        with lock:
            yield

    def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._on_event is not None:
            self._on_event(event_type, {"account": self._profile.name, **payload})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_or_init_portfolio(self, user_id: str) -> Portfolio:
        portfolio = self._repo.load_portfolio(user_id)
        if portfolio is not None:
            return portfolio
        now = self._clock()
        portfolio = Portfolio(
            cash_balance=self._profile.initial_cash,
            initial_cash=self._profile.initial_cash,
            created_at=now,
            updated_at=now,
        )
        self._repo.commit(user_id, portfolio=portfolio)
        logger.info("Opened %s account for %s with %s cash", self._profile.name, user_id, portfolio.cash_balance)
        return portfolio

    def get_portfolio(self, user_id: str) -> Portfolio:
        """Account record; created with the profile's starting cash on first access."""
        with self._account_lock(user_id):
            return self._load_or_init_portfolio(user_id)

    def get_holdings(self, user_id: str) -> list[Holding]:
        return self._repo.load_holdings(user_id)

    def get_transactions(self, user_id: str, *, symbol: str | None = None, limit: int | None = None) -> list[Transaction]:
        """Executed trades, newest first."""
        log = TransactionLog(self._repo.load_transactions(user_id))
        return log.entries(symbol=normalize_symbol(symbol) if symbol else None, limit=limit)

    def _mark_price(self, holding: Holding) -> Decimal:
        quote = self._oracle.get_price(holding.symbol)
        # Delisted symbols are marked at cost.
        return quote.current_price if quote else holding.average_price

    def get_positions(self, user_id: str) -> list[PositionView]:
        """Holdings valued at current prices. Gain/loss is derived here, never stored."""
        return self._value_positions(self.get_holdings(user_id))

    def _value_positions(self, holdings: list[Holding]) -> list[PositionView]:
        views = []
        for h in holdings:
            price = self._mark_price(h)
            market_value = h.shares * price
            gain = market_value - h.cost_basis
            pct = gain / h.cost_basis * 100 if h.cost_basis else Decimal("0")
            views.append(
                PositionView(
                    holding=h,
                    current_price=price,
                    market_value=market_value,
                    gain_loss=gain,
                    gain_loss_percent=pct,
                )
            )
        return views

    def get_portfolio_snapshot(self, user_id: str) -> PortfolioSnapshot:
        # Cash and holdings come from the same committed state.
        with self._account_lock(user_id):
            portfolio = self._load_or_init_portfolio(user_id)
            holdings = self._repo.load_holdings(user_id)
        invested = sum((p.market_value for p in self._value_positions(holdings)), Decimal("0"))
        total_value = portfolio.cash_balance + invested
        gain = total_value - portfolio.funding
        pct = gain / portfolio.funding * 100 if portfolio.funding else Decimal("0")
        return PortfolioSnapshot(
            cash_balance=portfolio.cash_balance,
            total_value=total_value,
            total_gain_loss=gain,
            total_gain_loss_percent=pct,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _reject(self, user_id: str, symbol: str, side: Side, shares: Any, reason: TradeFailure) -> TradeResult:
        logger.info("Rejected %s %s %s for %s: %s", side.value, shares, symbol, user_id, reason.value)
        self._emit(
            "rejection",
            {"user_id": user_id, "symbol": symbol, "side": side.value, "shares": shares, "reason": reason.value},
        )
        return TradeResult.fail(reason)

    def execute_trade(self, user_id: str, symbol: str, shares: int, side: Side | str) -> TradeResult:
        """Fill a market order at the oracle price.

        Business rejections come back as a failed TradeResult and leave state
        untouched. Storage errors propagate.
        """
        side = side if isinstance(side, Side) else Side(side.strip().lower())
        symbol = normalize_symbol(symbol)

        if self._profile.requires_eligibility and not self._eligibility.is_trading_allowed(user_id):
            return self._reject(user_id, symbol, side, shares, TradeFailure.NOT_ELIGIBLE)
        if not _is_whole_positive(shares):
            return self._reject(user_id, symbol, side, shares, TradeFailure.INVALID_QUANTITY)
        shares = int(shares)
        quote = self._oracle.get_price(symbol)
        if quote is None:
            return self._reject(user_id, symbol, side, shares, TradeFailure.SYMBOL_NOT_FOUND)

        price = quote.current_price
        total_amount = shares * price
        fees = self._profile.fee_schedule(total_amount)

        with self._account_lock(user_id):
            portfolio = self._load_or_init_portfolio(user_id)
            holdings = HoldingStore(self._repo.load_holdings(user_id))
            log = TransactionLog(self._repo.load_transactions(user_id))
            now = self._clock()

            if side is Side.BUY:
                required = total_amount + fees
                if portfolio.cash_balance < required:
                    return self._reject(user_id, symbol, side, shares, TradeFailure.INSUFFICIENT_FUNDS)
                cash = portfolio.cash_balance - required
                holdings.apply_buy(symbol, shares, price, company_name=quote.company_name, now=now)
            else:
                held = holdings.get(symbol)
                if held is None or held.shares < shares:
                    return self._reject(user_id, symbol, side, shares, TradeFailure.INSUFFICIENT_SHARES)
                cash = portfolio.cash_balance + total_amount - fees
                holdings.apply_sell(symbol, shares, now=now)

            tx = log.record(
                symbol=symbol,
                side=side,
                shares=shares,
                price=price,
                total_amount=total_amount,
                fees=fees,
                company_name=quote.company_name,
                now=now,
            )
            self._repo.commit(
                user_id,
                portfolio=replace(portfolio, cash_balance=cash, updated_at=now),
                holdings=holdings.all(),
                transactions=log.entries(),
            )

        logger.info(
            "%s %s %s %d @ %s (fees %s), cash now %s",
            self._profile.name, user_id, side.value, shares, price, fees, cash,
        )
        self._emit(
            "trade",
            {
                "user_id": user_id,
                "transaction_id": tx.id,
                "symbol": symbol,
                "side": side.value,
                "shares": shares,
                "price": str(price),
                "total_amount": str(total_amount),
                "fees": str(fees),
                "cash_balance": str(cash),
            },
        )
        return TradeResult.ok(tx)

    def add_funds(self, user_id: str, amount: Decimal | int | str) -> Portfolio:
        """Credit a deposit. Only for account types that accept deposits."""
        if not self._profile.allows_deposits:
            raise DepositsNotAllowed(f"{self._profile.name} accounts do not accept deposits")
        try:
            value = Decimal(str(amount))
        except InvalidOperation as exc:
            raise InvalidAmount(f"Not a valid amount: {amount!r}") from exc
        if not value.is_finite() or value <= 0:
            raise InvalidAmount(f"Deposit must be greater than zero, got {amount!r}")

        with self._account_lock(user_id):
            portfolio = self._load_or_init_portfolio(user_id)
            updated = replace(
                portfolio,
                cash_balance=portfolio.cash_balance + value,
                total_deposits=portfolio.total_deposits + value,
                updated_at=self._clock(),
            )
            self._repo.commit(user_id, portfolio=updated)

        logger.info("Deposit %s to %s account of %s", value, self._profile.name, user_id)
        self._emit("deposit", {"user_id": user_id, "amount": str(value), "cash_balance": str(updated.cash_balance)})
        return updated

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def audit(self, user_id: str) -> AuditReport:
        """Replay the transaction log and compare with stored holdings and cash."""
        with self._account_lock(user_id):
            portfolio = self._load_or_init_portfolio(user_id)
            transactions = self._repo.load_transactions(user_id)
            holdings = self._repo.load_holdings(user_id)
        replayed = replay_holdings(transactions)
        stored = {h.symbol: h for h in holdings}

        mismatches = []
        for symbol in sorted(set(stored) | set(replayed.as_mapping())):
            s, r = stored.get(symbol), replayed.get(symbol)
            if s is None or r is None:
                mismatches.append(f"{symbol}: stored={s.shares if s else 0} replayed={r.shares if r else 0}")
            elif s.shares != r.shares or s.average_price != r.average_price:
                mismatches.append(
                    f"{symbol}: stored {s.shares}@{s.average_price} replayed {r.shares}@{r.average_price}"
                )

        expected_cash = portfolio.funding
        for tx in transactions:
            expected_cash += -tx.net_amount if tx.side is Side.BUY else tx.net_amount
        if expected_cash != portfolio.cash_balance:
            mismatches.append(f"cash: stored {portfolio.cash_balance} replayed {expected_cash}")

        return AuditReport(
            user_id=user_id,
            transactions=len(transactions),
            expected_cash=expected_cash,
            actual_cash=portfolio.cash_balance,
            mismatches=tuple(mismatches),
        )
