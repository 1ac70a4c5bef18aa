"""Exceptions for trading-core. Expected order rejections are results, not exceptions."""


class LedgerError(Exception):
    """Base class for ledger errors."""


class StorageUnavailable(LedgerError):
    """The key-value store could not be read or written. Never retried here."""


class InsufficientShares(LedgerError):
    """A sell asked for more shares than the holding has."""

    def __init__(self, symbol: str, requested: int, available: int) -> None:
        super().__init__(f"Cannot sell {requested} {symbol}: only {available} held")
        self.symbol = symbol
        self.requested = requested
        self.available = available


class InvalidAmount(LedgerError):
    """A deposit amount was zero, negative, or not a number."""


class DepositsNotAllowed(LedgerError):
    """The account type does not accept deposits."""
