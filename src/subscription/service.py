"""
Subscription plans and the real-money eligibility check.

Plans: free (no real-money trading), trial (time-limited), premium.
An expired trial is downgraded on the next eligibility check. The service
satisfies the ledger's EligibilityGate protocol via is_trading_allowed().
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

from storage.kv_store import KeyValueStore
from storage.repository import SUBSCRIPTION, AccountRepository

logger = logging.getLogger("papertrade.subscription")


class Plan(str, Enum):
    FREE = "free"
    TRIAL = "trial"
    PREMIUM = "premium"


class Status(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Subscription:
    user_id: str
    plan: Plan
    status: Status
    real_money_enabled: bool
    created_at: datetime
    updated_at: datetime
    trial_ends_at: datetime | None = None
    subscription_ends_at: datetime | None = None


def _to_doc(sub: Subscription) -> dict:
    doc = asdict(sub)
    doc["plan"] = sub.plan.value
    doc["status"] = sub.status.value
    for k in ("created_at", "updated_at", "trial_ends_at", "subscription_ends_at"):
        doc[k] = doc[k].isoformat() if doc[k] else None
    return doc


def _from_doc(doc: dict) -> Subscription:
    def ts(v: str | None) -> datetime | None:
        return datetime.fromisoformat(v) if v else None

    return Subscription(
        user_id=doc["user_id"],
        plan=Plan(doc["plan"]),
        status=Status(doc["status"]),
        real_money_enabled=bool(doc["real_money_enabled"]),
        created_at=ts(doc["created_at"]),
        updated_at=ts(doc["updated_at"]),
        trial_ends_at=ts(doc.get("trial_ends_at")),
        subscription_ends_at=ts(doc.get("subscription_ends_at")),
    )


class SubscriptionService:
    """Subscription state per user, persisted in the shared key-value store.

    Parameters
    ----------
    store:
        Key-value backend; subscriptions live under the "subscription" namespace.
    trial_days:
        Length of a trial.
    premium_days:
        Length of one premium billing period.
    clock:
        Returns the current UTC time. Injectable for tests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        trial_days: int = 7,
        premium_days: int = 30,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repo = AccountRepository(store, "subscription")
        self._trial_days = trial_days
        self._premium_days = premium_days
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _save(self, sub: Subscription) -> Subscription:
        self._repo.save_document(sub.user_id, SUBSCRIPTION, _to_doc(sub))
        return sub

    def get_subscription(self, user_id: str) -> Subscription:
        """Return the stored subscription, creating a free one on first access."""
        doc = self._repo.load_document(user_id, SUBSCRIPTION)
        if doc is not None:
            return _from_doc(doc)
        now = self._clock()
        return self._save(
            Subscription(
                user_id=user_id,
                plan=Plan.FREE,
                status=Status.ACTIVE,
                real_money_enabled=False,
                created_at=now,
                updated_at=now,
            )
        )

    def _update(self, user_id: str, **changes) -> Subscription:
        sub = self.get_subscription(user_id)
        return self._save(replace(sub, updated_at=self._clock(), **changes))

    def start_trial(self, user_id: str) -> Subscription:
        ends = self._clock() + timedelta(days=self._trial_days)
        logger.info("Trial started for %s, ends %s", user_id, ends.isoformat())
        return self._update(
            user_id,
            plan=Plan.TRIAL,
            status=Status.ACTIVE,
            trial_ends_at=ends,
            real_money_enabled=True,
        )

    def upgrade_to_premium(self, user_id: str) -> Subscription:
        ends = self._clock() + timedelta(days=self._premium_days)
        logger.info("Premium activated for %s until %s", user_id, ends.isoformat())
        return self._update(
            user_id,
            plan=Plan.PREMIUM,
            status=Status.ACTIVE,
            subscription_ends_at=ends,
            real_money_enabled=True,
        )

    def check_trial_expiry(self, user_id: str) -> bool:
        """Expire a lapsed trial. Returns True if it was expired by this call."""
        sub = self.get_subscription(user_id)
        if sub.plan is not Plan.TRIAL or sub.trial_ends_at is None or sub.status is Status.EXPIRED:
            return False
        if self._clock() <= sub.trial_ends_at:
            return False
        self._update(user_id, status=Status.EXPIRED, real_money_enabled=False)
        logger.info("Trial expired for %s", user_id)
        return True

    def is_trading_allowed(self, user_id: str) -> bool:
        self.check_trial_expiry(user_id)
        sub = self.get_subscription(user_id)
        return sub.real_money_enabled and sub.status is Status.ACTIVE

    def trial_days_remaining(self, user_id: str) -> int:
        sub = self.get_subscription(user_id)
        if sub.plan is not Plan.TRIAL or sub.trial_ends_at is None:
            return 0
        remaining = (sub.trial_ends_at - self._clock()).total_seconds() / 86_400
        return max(0, math.ceil(remaining))
