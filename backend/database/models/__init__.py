# backend/database/models/__init__.py
"""SQLAlchemy models for all database tables."""

from .account import Account, SyncSource
from .email_alerts import EmailAlertDLQ, ProcessedEmail
from .ledger import BalanceUpdate, Transaction

__all__ = [
    "Account",
    "SyncSource",
    "ProcessedEmail",
    "EmailAlertDLQ",
    "Transaction",
    "BalanceUpdate",
]
