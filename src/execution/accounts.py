"""Wire one AccountLedger per configured account type over a shared store."""

from __future__ import annotations

from dataclasses import dataclass

from config.ledger_config import LedgerConfig
from execution.ledger import AccountLedger, AccountProfile, EligibilityGate, EventCallback
from market.oracle import CatalogPriceOracle
from storage.kv_store import KeyValueStore
from storage.repository import AccountRepository
from subscription.service import SubscriptionService


@dataclass
class Accounts:
    """Everything a session needs: ledgers by account type plus shared collaborators."""

    ledgers: dict[str, AccountLedger]
    oracle: CatalogPriceOracle
    subscriptions: SubscriptionService

    def __getitem__(self, name: str) -> AccountLedger:
        try:
            return self.ledgers[name]
        except KeyError:
            raise KeyError(f"Unknown account type {name!r}; expected one of {sorted(self.ledgers)}") from None

    @property
    def paper(self) -> AccountLedger:
        return self["paper"]

    @property
    def real(self) -> AccountLedger:
        return self["real"]


def open_accounts(
    cfg: LedgerConfig,
    store: KeyValueStore,
    *,
    on_event: EventCallback | None = None,
    subscriptions: SubscriptionService | None = None,
) -> Accounts:
    oracle = CatalogPriceOracle.from_config(cfg.catalog)
    subs = subscriptions or SubscriptionService(
        store,
        trial_days=cfg.subscription.trial_days,
        premium_days=cfg.subscription.premium_days,
    )
    ledgers = {}
    for name, account_cfg in cfg.accounts.items():
        profile = AccountProfile.from_config(account_cfg)
        gate: EligibilityGate | None = subs if profile.requires_eligibility else None
        ledgers[name] = AccountLedger(
            profile,
            AccountRepository(store, name),
            oracle,
            eligibility=gate,
            on_event=on_event,
        )
    return Accounts(ledgers=ledgers, oracle=oracle, subscriptions=subs)
