"""
Sync Sources - Database Operations

Handles mailbox sync source configuration, status transitions and the
last-processed-UID checkpoint.

Modules:
- Creation and lookup (create_sync_source, get_sync_source, get_active_sync_sources)
- Status management (update_sync_source_status, deactivate_sync_source)
- Checkpointing (advance_sync_checkpoint, update_last_synced)
"""

from datetime import UTC, datetime

from sqlalchemy import select

from .base import get_session
from .models.account import SYNC_SOURCE_STATUSES, Account, SyncSource


def uid_sort_key(message_uid: str) -> tuple:
    """
    Sort key for mailbox UIDs.

    IMAP UIDs are integers serialized as text; numeric UIDs sort numerically
    and anything else sorts after them lexically.
    """
    uid = str(message_uid).strip()
    if uid.isdigit():
        return (0, int(uid), "")
    return (1, 0, uid)


def _sync_source_to_dict(source: SyncSource, account: Account) -> dict:
    return {
        "id": source.id,
        "account_id": source.account_id,
        "user_id": account.user_id if account else None,
        "name": source.name,
        "bank": source.bank,
        "account_type": source.account_type,
        "email_address": source.email_address,
        "imap_host": source.imap_host,
        "imap_port": source.imap_port,
        "imap_password_encrypted": source.imap_password_encrypted,
        "imap_folder": source.imap_folder,
        "last_processed_uid": source.last_processed_uid,
        "status": source.status,
        "last_error": source.last_error,
        "last_synced_at": source.last_synced_at,
        "is_active": source.is_active,
        "created_at": source.created_at,
        "updated_at": source.updated_at,
    }


def create_sync_source(
    account_id: int,
    name: str,
    email_address: str,
    imap_host: str,
    imap_password_encrypted: str,
    imap_port: int = 993,
    imap_folder: str = "INBOX",
    bank: str = None,
    account_type: str = None,
) -> int:
    """
    Create a sync source for an account.

    Bank and account type default to the linked account's values.

    Args:
        account_id: Linked account ID
        name: Display name
        email_address: Monitored mailbox address
        imap_host: IMAP server host
        imap_password_encrypted: Encrypted IMAP credential (opaque here)
        imap_port: IMAP server port
        imap_folder: Folder to monitor
        bank: Bank code override
        account_type: Account type override

    Returns:
        Sync source ID

    Raises:
        ValueError: If the account does not exist
    """
    with get_session() as session:
        account = session.get(Account, account_id)
        if not account:
            raise ValueError(f"Account {account_id} not found")

        source = SyncSource(
            account_id=account_id,
            name=name,
            bank=(bank or account.bank or "").lower() or None,
            account_type=(account_type or account.type or "").lower() or None,
            email_address=email_address,
            imap_host=imap_host,
            imap_port=imap_port,
            imap_password_encrypted=imap_password_encrypted,
            imap_folder=imap_folder,
            status="active",
            is_active=True,
        )
        session.add(source)
        session.commit()
        return source.id


def get_sync_source_row(session, sync_source_id: int) -> SyncSource:
    """Get the SyncSource row inside an existing session."""
    return session.get(SyncSource, sync_source_id)


def get_sync_source(sync_source_id: int, user_id: str = None) -> dict:
    """Get a sync source by ID, optionally scoped to the owning user."""
    with get_session() as session:
        row = session.execute(
            select(SyncSource, Account)
            .join(Account, Account.id == SyncSource.account_id)
            .where(SyncSource.id == sync_source_id)
        ).first()

        if not row:
            return None

        source, account = row
        if user_id is not None and account.user_id != user_id:
            return None

        return _sync_source_to_dict(source, account)


def get_active_sync_sources(include_errored: bool = False) -> list:
    """
    Get sync sources eligible for a sync cycle.

    Args:
        include_errored: Also return sources in 'error' status

    Returns:
        List of sync source dicts ordered by ID
    """
    with get_session() as session:
        query = (
            select(SyncSource, Account)
            .join(Account, Account.id == SyncSource.account_id)
            .where(SyncSource.is_active.is_(True))
            .order_by(SyncSource.id)
        )
        if not include_errored:
            query = query.where(SyncSource.status == "active")

        return [
            _sync_source_to_dict(source, account)
            for source, account in session.execute(query).all()
        ]


def update_sync_source_status(
    sync_source_id: int, status: str, error: str = None
) -> bool:
    """Update sync source status; 'active' clears the last error."""
    if status not in SYNC_SOURCE_STATUSES:
        raise ValueError(f"Invalid sync source status: {status}")

    with get_session() as session:
        source = session.get(SyncSource, sync_source_id)

        if not source:
            return False

        source.status = status
        source.last_error = error if status == "error" else None
        session.commit()
        return True


def advance_sync_checkpoint(sync_source_id: int, message_uid: str) -> bool:
    """
    Move last_processed_uid forward to message_uid.

    The checkpoint never moves backwards and only ever holds a numeric UID.

    Returns:
        True if the checkpoint moved
    """
    if not str(message_uid).strip().isdigit():
        return False

    with get_session() as session:
        source = session.get(SyncSource, sync_source_id)

        if not source:
            return False

        current = source.last_processed_uid
        if current is not None and uid_sort_key(message_uid) <= uid_sort_key(current):
            return False

        source.last_processed_uid = str(message_uid)
        session.commit()
        return True


def update_last_synced(sync_source_id: int) -> bool:
    """Stamp last_synced_at after a completed cycle."""
    with get_session() as session:
        source = session.get(SyncSource, sync_source_id)

        if not source:
            return False

        source.last_synced_at = datetime.now(UTC)
        session.commit()
        return True


def deactivate_sync_source(sync_source_id: int, user_id: str) -> bool:
    """Soft-delete a sync source (history and foreign keys are kept)."""
    with get_session() as session:
        row = session.execute(
            select(SyncSource)
            .join(Account, Account.id == SyncSource.account_id)
            .where(SyncSource.id == sync_source_id, Account.user_id == user_id)
        ).scalar_one_or_none()

        if not row:
            return False

        row.is_active = False
        session.commit()
        return True
