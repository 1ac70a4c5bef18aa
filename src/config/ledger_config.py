"""
Ledger config loader: JSON file -> frozen dataclass tree, validated against JSON Schema.

Default values: docs/config/ledger.default.json
Schema:         docs/config/ledger_config.schema.json

Overrides: pass ``override_path`` to a partial JSON file. Only the keys you
want to change need to be present; they are deep-merged on top of the base
config before schema validation. Numbers are parsed as Decimal so prices and
fee rates keep their exact decimal value.

Usage:
    from config.ledger_config import load_ledger_config
    cfg = load_ledger_config()
    cfg.accounts["real"].fee_rate  # -> Decimal("0.001")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

import jsonschema

logger = logging.getLogger("papertrade.config")

# ---------------------------------------------------------------------------
# Project root detection (walk up from this file to find pyproject.toml)
# ---------------------------------------------------------------------------


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    When installed as a package, pyproject.toml won't exist; fall back to CWD.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "docs" / "config" / "ledger.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "ledger_config.schema.json"


# ---------------------------------------------------------------------------
# Frozen dataclass tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountConfig:
    name: str
    label: str
    initial_cash: Decimal
    fee_flat: Decimal
    fee_rate: Decimal
    requires_eligibility: bool
    allows_deposits: bool


@dataclass(frozen=True)
class SubscriptionConfig:
    trial_days: int = 7
    premium_days: int = 30


@dataclass(frozen=True)
class StockConfig:
    symbol: str
    company_name: str
    current_price: Decimal
    change: Decimal = Decimal("0")
    change_percent: Decimal = Decimal("0")
    volume: int = 0
    market_cap: int = 0


@dataclass(frozen=True)
class LedgerConfig:
    """Top-level ledger configuration: account types, subscription terms, price catalog."""
    version: str
    accounts: dict[str, AccountConfig]
    subscription: SubscriptionConfig
    catalog: tuple[StockConfig, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Deep merge for overrides
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into a copy of *base*.

    Dict values merge recursively; anything else in overrides replaces the base value.
    """
    merged = dict(base)
    for key, val in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = _deep_merge(merged[key], val)
        else:
            merged[key] = val
    return merged


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class LedgerConfigError(Exception):
    """Raised when ledger config loading or validation fails."""


def _read_json(path: Path, what: str) -> dict[str, Any]:
    try:
        with open(path) as f:
            return json.load(f, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise LedgerConfigError(f"{what} {path.name} is not valid JSON: {exc}") from exc


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    if not schema_path.exists():
        raise LedgerConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise LedgerConfigError(f"Ledger config validation failed: {exc.message}") from exc


def _dec(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _build_config(data: dict[str, Any]) -> LedgerConfig:
    accounts = {
        name: AccountConfig(
            name=name,
            label=raw.get("label", name),
            initial_cash=_dec(raw["initial_cash"]),
            fee_flat=_dec(raw["fees"]["flat"]),
            fee_rate=_dec(raw["fees"]["rate"]),
            requires_eligibility=raw["requires_eligibility"],
            allows_deposits=raw["allows_deposits"],
        )
        for name, raw in data["accounts"].items()
    }
    catalog = tuple(
        StockConfig(
            symbol=s["symbol"],
            company_name=s["company_name"],
            current_price=_dec(s["current_price"]),
            change=_dec(s.get("change", 0)),
            change_percent=_dec(s.get("change_percent", 0)),
            volume=s.get("volume", 0),
            market_cap=s.get("market_cap", 0),
        )
        for s in data["catalog"]
    )
    return LedgerConfig(
        version=data["version"],
        accounts=accounts,
        subscription=SubscriptionConfig(
            trial_days=data["subscription"]["trial_days"],
            premium_days=data["subscription"]["premium_days"],
        ),
        catalog=catalog,
    )


def load_ledger_config(
    config_path: str | Path | None = None,
    schema_path: str | Path | None = None,
    override_path: str | Path | None = None,
) -> LedgerConfig:
    """Load and validate ledger configuration.

    Parameters
    ----------
    config_path:
        Path to a ledger JSON config. Defaults to ``docs/config/ledger.default.json``.
    schema_path:
        Path to the JSON Schema. Defaults to ``docs/config/ledger_config.schema.json``.
    override_path:
        Optional partial JSON file deep-merged on top of the base config.
        A missing override file is logged and ignored.

    Raises
    ------
    LedgerConfigError
        If the file is missing, unparseable, or fails schema validation.
    """
    cfg_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cfg_path.exists():
        raise LedgerConfigError(f"Ledger config file not found: {cfg_path}")

    data = _read_json(cfg_path, "Ledger config")

    if override_path:
        ov_path = Path(override_path)
        if ov_path.exists():
            data = _deep_merge(data, _read_json(ov_path, "Override config"))
            logger.info("Loaded ledger overrides: %s", ov_path.name)
        else:
            logger.debug("No override config found at %s; using base config", ov_path)

    _validate_schema(data, sch_path)

    return _build_config(data)
