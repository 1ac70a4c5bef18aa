"""
Config loader: YAML file -> frozen dataclass tree.

The acting user id can be overridden from the environment (PAPERTRADE_USER).
Config file holds only non-secret values.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class StorageConfig:
    backend: str = "sqlite"  # "sqlite" | "memory"
    path: str = "data/ledger_state.db"


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class AppConfig:
    user_id: str
    storage: StorageConfig
    journal: JournalConfig
    alerting: AlertingConfig = AlertingConfig()
    ledger_config_path: str = ""
    ledger_override_path: str = ""


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    The user id is resolved in this order:
      - PAPERTRADE_USER environment variable
      - ``user_id`` in the file
      - "demo"
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    s_raw = raw.get("storage") or {}
    s_cfg = StorageConfig(
        backend=str(s_raw.get("backend", "sqlite")),
        path=str(s_raw.get("path", "data/ledger_state.db")),
    )
    if s_cfg.backend not in ("sqlite", "memory"):
        raise ValueError(f"storage.backend must be 'sqlite' or 'memory', got {s_cfg.backend!r}")

    j_raw = raw.get("journal") or {}
    j_cfg = JournalConfig(
        path=j_raw.get("path", "data/journal.jsonl"),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting") or {}
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url") or ""),
    )

    l_raw = raw.get("ledger") or {}

    return AppConfig(
        user_id=os.environ.get("PAPERTRADE_USER") or str(raw.get("user_id", "demo")),
        storage=s_cfg,
        journal=j_cfg,
        alerting=a_cfg,
        ledger_config_path=str(l_raw.get("config_path") or ""),
        ledger_override_path=str(l_raw.get("override_path") or ""),
    )
