"""
Database Layer - Public API

This module provides the public interface for all database operations.
It imports and re-exports functions from domain-specific modules.

Usage:
    from database import get_session, claim_message, get_latest_balance
    # or
    import database

Organization:
    - base.py: Engine, session factory and dialect helpers
    - accounts.py: Account reads and ownership resolution
    - sync_sources.py: Sync source status and checkpointing
    - processed_emails.py: Idempotency ledger
    - ledger.py: Transactions and balance updates
    - email_alert_dlq.py: Dead-letter quarantine
"""

# Core session utilities (always available)
from .base import Base, SessionLocal, conflict_insert, engine, get_session

# Accounts
from .accounts import (
    create_account,
    get_account,
    resolve_owning_account_id,
    set_account_active,
)

# Sync sources
from .sync_sources import (
    advance_sync_checkpoint,
    create_sync_source,
    deactivate_sync_source,
    get_active_sync_sources,
    get_sync_source,
    get_sync_source_row,
    uid_sort_key,
    update_last_synced,
    update_sync_source_status,
)

# Idempotency ledger
from .processed_emails import (
    claim_message,
    get_processed_email,
    get_processed_emails_count,
    get_processed_message_uids,
    is_email_processed,
)

# Transactions and balances
from .ledger import (
    create_balance_update,
    create_transaction,
    get_balance_updates_by_account,
    get_current_balance,
    get_latest_balance,
    get_transactions_by_account,
)

# Dead-letter quarantine
from .email_alert_dlq import (
    create_dlq_entry,
    delete_dlq_entry,
    get_dlq_entries,
    get_dlq_entry,
    get_dlq_message_uids,
    get_dlq_summary,
    has_dlq_entry,
)

__all__ = [
    # Base
    "Base",
    "SessionLocal",
    "conflict_insert",
    "engine",
    "get_session",
    # Accounts
    "create_account",
    "get_account",
    "resolve_owning_account_id",
    "set_account_active",
    # Sync sources
    "advance_sync_checkpoint",
    "create_sync_source",
    "deactivate_sync_source",
    "get_active_sync_sources",
    "get_sync_source",
    "get_sync_source_row",
    "uid_sort_key",
    "update_last_synced",
    "update_sync_source_status",
    # Idempotency ledger
    "claim_message",
    "get_processed_email",
    "get_processed_emails_count",
    "get_processed_message_uids",
    "is_email_processed",
    # Transactions and balances
    "create_balance_update",
    "create_transaction",
    "get_balance_updates_by_account",
    "get_current_balance",
    "get_latest_balance",
    "get_transactions_by_account",
    # Dead-letter quarantine
    "create_dlq_entry",
    "delete_dlq_entry",
    "get_dlq_entries",
    "get_dlq_entry",
    "get_dlq_message_uids",
    "get_dlq_summary",
    "has_dlq_entry",
]
