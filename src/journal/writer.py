"""
Audit journal: append-only JSON lines. One line per executed trade, rejection, deposit or plan change.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dict__") and not isinstance(obj, type):
        return {k: _serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def trade(self, account: str, user_id: str, transaction_id: str, symbol: str, side: str, shares: int, price: Any, fees: Any, **extra: Any) -> None:
        self._write(
            "trade",
            {"account": account, "user_id": user_id, "transaction_id": transaction_id, "symbol": symbol, "side": side, "shares": shares, "price": price, "fees": fees, **extra},
        )

    def rejection(self, account: str, user_id: str, symbol: str, side: str, reason: str, **extra: Any) -> None:
        self._write("rejection", {"account": account, "user_id": user_id, "symbol": symbol, "side": side, "reason": reason, **extra})

    def deposit(self, account: str, user_id: str, amount: Any, **extra: Any) -> None:
        self._write("deposit", {"account": account, "user_id": user_id, "amount": amount, **extra})

    def subscription(self, user_id: str, plan: str, status: str, **extra: Any) -> None:
        self._write("subscription", {"user_id": user_id, "plan": plan, "status": status, **extra})
