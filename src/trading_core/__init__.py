"""
trading-core: pure portfolio accounting rules.

No I/O, no storage, no clock beyond timestamps passed in. Holds the data
contracts, the average-cost holding store, and fee schedules.
"""

from trading_core.contracts import (
    Holding,
    Portfolio,
    PortfolioSnapshot,
    PositionView,
    Quote,
    Side,
    TradeFailure,
    TradeResult,
    Transaction,
)
from trading_core.errors import (
    DepositsNotAllowed,
    InsufficientShares,
    InvalidAmount,
    LedgerError,
    StorageUnavailable,
)
from trading_core.fees import NO_FEES, REAL_MONEY_FEES, FeeSchedule
from trading_core.holdings import HoldingStore, replay_holdings, weighted_average

__all__ = [
    "DepositsNotAllowed",
    "FeeSchedule",
    "Holding",
    "HoldingStore",
    "InsufficientShares",
    "InvalidAmount",
    "LedgerError",
    "NO_FEES",
    "Portfolio",
    "PortfolioSnapshot",
    "PositionView",
    "Quote",
    "REAL_MONEY_FEES",
    "Side",
    "StorageUnavailable",
    "TradeFailure",
    "TradeResult",
    "Transaction",
    "replay_holdings",
    "weighted_average",
]
