"""
Execution: market orders against an account ledger.

Single writer per account, restart-safe through the storage layer. No live capital.
"""

from execution.accounts import Accounts, open_accounts
from execution.ledger import (
    PAPER,
    REAL_MONEY,
    AccountLedger,
    AccountProfile,
    AuditReport,
    EligibilityGate,
)
from execution.transaction_log import TransactionLog

__all__ = [
    "AccountLedger",
    "AccountProfile",
    "Accounts",
    "AuditReport",
    "EligibilityGate",
    "PAPER",
    "REAL_MONEY",
    "TransactionLog",
    "open_accounts",
]
