"""
Email Alert Service - Business Logic

Read and triage operations over the ingestion pipeline's output:
- Dead-letter (DLQ) listing, inspection and deletion
- Latest account balances
- Sync source status

Separates business logic from HTTP routing concerns.
"""

from datetime import datetime
from decimal import Decimal

from database import email_alert_dlq, ledger, sync_sources
from database import accounts as db_accounts
from database.models.email_alerts import DLQ_ERROR_TYPES
from database.models.ledger import BALANCE_TYPES

MAX_PAGE_SIZE = 200

# Never leave the service layer
SENSITIVE_SYNC_SOURCE_FIELDS = ("imap_password_encrypted",)


# ============================================================================
# Helper Functions
# ============================================================================


def serialize_row(row: dict) -> dict:
    """Make a repository dict JSON-safe (Decimal -> str, datetime -> ISO 8601)."""
    result = {}
    for key, value in row.items():
        if isinstance(value, Decimal):
            result[key] = str(value)
        elif isinstance(value, datetime):
            result[key] = value.isoformat()
        else:
            result[key] = value
    return result


def _page(limit: int, offset: int) -> tuple:
    if limit < 1 or offset < 0:
        raise ValueError("limit must be positive and offset non-negative")
    return min(limit, MAX_PAGE_SIZE), offset


# ============================================================================
# Dead-letter queue
# ============================================================================


def list_dlq_entries(
    user_id: str, limit: int = 50, offset: int = 0, error_type: str = None
) -> dict:
    """
    List a user's quarantined emails, newest first.

    Args:
        user_id: Owning user ID
        limit: Page size (capped)
        offset: Page offset
        error_type: Optional DLQ error type filter

    Returns:
        Dict with entries, paging info and per-type counts

    Raises:
        ValueError: If paging or the error type filter is invalid
    """
    if error_type and error_type not in DLQ_ERROR_TYPES:
        raise ValueError(f"Invalid error type: {error_type}")

    limit, offset = _page(limit, offset)
    entries = email_alert_dlq.get_dlq_entries(user_id, limit, offset, error_type)

    return {
        "entries": [serialize_row(entry) for entry in entries],
        "count": len(entries),
        "limit": limit,
        "offset": offset,
        "summary": email_alert_dlq.get_dlq_summary(user_id),
    }


def get_dlq_entry(dlq_id: int, user_id: str) -> dict:
    """
    Get one quarantined email.

    Raises:
        ValueError: If the entry does not exist for this user
    """
    entry = email_alert_dlq.get_dlq_entry(dlq_id, user_id)
    if not entry:
        raise ValueError("DLQ entry not found")
    return serialize_row(entry)


def delete_dlq_entry(dlq_id: int, user_id: str) -> dict:
    """
    Delete a quarantined email after triage.

    Deleting the entry allows the message to be processed again on the next
    delivery.

    Raises:
        ValueError: If the entry does not exist for this user
    """
    if not email_alert_dlq.delete_dlq_entry(dlq_id, user_id):
        raise ValueError("DLQ entry not found")
    return {"success": True, "id": dlq_id}


# ============================================================================
# Balances
# ============================================================================


def get_account_balance(
    account_id: int, user_id: str, balance_type: str = "available_balance"
) -> dict:
    """
    Get the latest reported balance of an account.

    Returns:
        Balance dict; 'balance' is None when no update was ever reported

    Raises:
        ValueError: If the account does not exist for this user or the
            balance type is invalid
    """
    if balance_type not in BALANCE_TYPES:
        raise ValueError(f"Invalid balance type: {balance_type}")

    account = db_accounts.get_account(account_id, user_id)
    if not account:
        raise ValueError("Account not found")

    latest = ledger.get_latest_balance(account_id, user_id, balance_type)

    return {
        "account_id": account_id,
        "balance_type": balance_type,
        "iso_currency_code": account["iso_currency_code"],
        "balance": str(latest["new_balance"]) if latest else None,
        "update_date": latest["update_date"].isoformat() if latest else None,
        "update_source": latest["update_source"] if latest else None,
        "balance_update_id": latest["id"] if latest else None,
    }


# ============================================================================
# Sync sources
# ============================================================================


def get_sync_source_status(sync_source_id: int, user_id: str) -> dict:
    """
    Get a sync source's status view (credentials stripped).

    Raises:
        ValueError: If the sync source does not exist for this user
    """
    source = sync_sources.get_sync_source(sync_source_id, user_id)
    if not source:
        raise ValueError("Sync source not found")

    for field in SENSITIVE_SYNC_SOURCE_FIELDS:
        source.pop(field, None)

    return serialize_row(source)


def deactivate_sync_source(sync_source_id: int, user_id: str) -> dict:
    """
    Stop syncing a source; its history is kept.

    Raises:
        ValueError: If the sync source does not exist for this user
    """
    if not sync_sources.deactivate_sync_source(sync_source_id, user_id):
        raise ValueError("Sync source not found")
    return {"success": True, "id": sync_source_id}
