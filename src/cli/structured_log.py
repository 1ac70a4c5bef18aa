"""
Structured JSON event logger.

Emits one JSON object per line to stderr. Events are designed to be
parsed by log aggregators (Grafana Loki, CloudWatch, ELK).

Optional webhook: when configured, alert events (trade_executed,
trade_rejected, funds_added, error) are POSTed to the URL.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("papertrade.events")


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        user_id: str,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
    ) -> None:
        self._user_id = user_id
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._ALERT_EVENTS = {
            "trade_executed",
            "trade_rejected",
            "funds_added",
            "error",
        }

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "user_id": self._user_id,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=str) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in self._ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record, default=str).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=5)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def trade_executed(
        self,
        account: str,
        symbol: str,
        side: str,
        shares: int,
        price: Any,
        fees: Any,
    ) -> dict:
        return self._emit(
            "trade_executed",
            account=account,
            symbol=symbol,
            side=side,
            shares=shares,
            price=str(price),
            fees=str(fees),
        )

    def trade_rejected(self, account: str, symbol: str, reason: str) -> dict:
        return self._emit("trade_rejected", account=account, symbol=symbol, reason=reason)

    def funds_added(self, account: str, amount: Any, cash_balance: Any) -> dict:
        return self._emit(
            "funds_added",
            account=account,
            amount=str(amount),
            cash_balance=str(cash_balance),
        )

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)
