"""
Data contracts for trading-core: Quote, Holding, Transaction, Portfolio, TradeResult.

trading-core consumes quotes and orders and produces holdings and transactions.
No I/O; these are plain dataclasses. Money is Decimal throughout.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Side(str, Enum):
    """Order side. Every order is a market order."""

    BUY = "buy"
    SELL = "sell"


class TradeFailure(str, Enum):
    """Expected business outcomes that reject an order without touching state."""

    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INSUFFICIENT_SHARES = "INSUFFICIENT_SHARES"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    INVALID_QUANTITY = "INVALID_QUANTITY"


FAILURE_MESSAGES: dict[TradeFailure, str] = {
    TradeFailure.SYMBOL_NOT_FOUND: "Stock not found",
    TradeFailure.INSUFFICIENT_FUNDS: "Insufficient funds",
    TradeFailure.INSUFFICIENT_SHARES: "Insufficient shares to sell",
    TradeFailure.NOT_ELIGIBLE: "Real money trading is not enabled. Start a trial or upgrade to premium.",
    TradeFailure.INVALID_QUANTITY: "Share quantity must be a positive whole number",
}


# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Quote:
    """Current market data for one symbol, as supplied by a price oracle."""

    symbol: str
    company_name: str
    current_price: Decimal
    change: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")
    volume: int = 0
    market_cap: int = 0


# ---------------------------------------------------------------------------
# Ledger state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Holding:
    """One open position. Shares are whole and >= 1; removed when they reach 0."""

    symbol: str
    shares: int
    average_price: Decimal
    company_name: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def cost_basis(self) -> Decimal:
        return self.shares * self.average_price


@dataclass(frozen=True)
class Transaction:
    """Executed trade. Immutable once recorded."""

    id: str
    symbol: str
    side: Side
    shares: int
    price: Decimal
    total_amount: Decimal
    fees: Decimal
    timestamp: datetime
    company_name: str = ""

    @property
    def net_amount(self) -> Decimal:
        """Cash moved by this trade: debit for buys, credit for sells."""
        if self.side is Side.BUY:
            return self.total_amount + self.fees
        return self.total_amount - self.fees


@dataclass(frozen=True)
class Portfolio:
    """Persisted account record. Only cash and funding history live here."""

    cash_balance: Decimal
    initial_cash: Decimal
    total_deposits: Decimal = Decimal("0")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def funding(self) -> Decimal:
        """Total money ever put into the account."""
        return self.initial_cash + self.total_deposits


# ---------------------------------------------------------------------------
# Read-side views (derived from live prices, never persisted)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PositionView:
    """Holding valued at the current price."""

    holding: Holding
    current_price: Decimal
    market_value: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal


@dataclass(frozen=True)
class PortfolioSnapshot:
    cash_balance: Decimal
    total_value: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percent: Decimal


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TradeResult:
    """Outcome of an order: a transaction on success, a reason on failure."""

    success: bool
    transaction: Transaction | None = None
    reason: TradeFailure | None = None
    message: str = ""

    @classmethod
    def ok(cls, transaction: Transaction) -> TradeResult:
        if transaction.side is Side.BUY:
            verb, amount = "bought", transaction.total_amount
        else:
            verb, amount = "sold", transaction.net_amount
        message = (
            f"Successfully {verb} {transaction.shares} shares of {transaction.symbol} "
            f"for ${amount:.2f}"
        )
        if transaction.fees:
            message += f" (fees: ${transaction.fees:.2f})"
        return cls(success=True, transaction=transaction, message=message)

    @classmethod
    def fail(cls, reason: TradeFailure) -> TradeResult:
        return cls(success=False, reason=reason, message=FAILURE_MESSAGES[reason])
