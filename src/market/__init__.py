"""
Market: price oracle over a quote catalog, and the per-user watchlist.

Depends on trading_core.contracts for Quote; no dependency from trading_core back to market.
"""

from market.oracle import CatalogPriceOracle, PriceOracle, normalize_symbol
from market.watchlist import Watchlist, WatchlistItem

__all__ = [
    "CatalogPriceOracle",
    "PriceOracle",
    "Watchlist",
    "WatchlistItem",
    "normalize_symbol",
]
