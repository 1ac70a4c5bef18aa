"""
Configuration loaders.

App config:     reads config.yaml, resolves the acting user from the environment.
Ledger config:  reads ledger.default.json (plus overrides), validates against JSON Schema.
"""

from config.ledger_config import (
    AccountConfig,
    LedgerConfig,
    LedgerConfigError,
    StockConfig,
    SubscriptionConfig,
    load_ledger_config,
)
from config.loader import (
    AlertingConfig,
    AppConfig,
    JournalConfig,
    StorageConfig,
    load_config,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "JournalConfig",
    "StorageConfig",
    "load_config",
    # Ledger config (JSON + schema)
    "AccountConfig",
    "LedgerConfig",
    "LedgerConfigError",
    "StockConfig",
    "SubscriptionConfig",
    "load_ledger_config",
]
