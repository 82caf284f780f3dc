"""
Processed Emails - Idempotency Ledger Operations

A message is claimed by inserting (sync_source_id, message_uid). The unique
constraint on that pair is the only concurrency control: a losing insert
returns no row and the caller treats the message as already handled.
"""

from sqlalchemy import func, select

from .base import conflict_insert, get_session
from .models.email_alerts import ProcessedEmail


def claim_message(
    session,
    user_id: str,
    sync_source_id: int,
    message_uid: str,
    content_hash: str = None,
) -> int:
    """
    Insert a ledger row unless one already exists.

    Runs inside the caller's transaction so the ledger row commits together
    with the record derived from the message.

    Args:
        session: Active SQLAlchemy session
        user_id: Owning user ID
        sync_source_id: Sync source ID
        message_uid: Mailbox UID of the message
        content_hash: Optional SHA-256 of the message content

    Returns:
        New ledger row ID, or None if the message was already claimed
    """
    stmt = conflict_insert(session, ProcessedEmail).values(
        user_id=user_id,
        sync_source_id=sync_source_id,
        message_uid=message_uid,
        content_hash=content_hash,
    )
    stmt = stmt.on_conflict_do_nothing(
        index_elements=["sync_source_id", "message_uid"]
    ).returning(ProcessedEmail.id)

    return session.execute(stmt).scalar_one_or_none()


def get_processed_email(session, sync_source_id: int, message_uid: str):
    """Get the ledger row for a message inside an existing session."""
    return session.execute(
        select(ProcessedEmail).where(
            ProcessedEmail.sync_source_id == sync_source_id,
            ProcessedEmail.message_uid == message_uid,
        )
    ).scalar_one_or_none()


def is_email_processed(sync_source_id: int, message_uid: str) -> bool:
    """Check if a message has already been processed."""
    with get_session() as session:
        return get_processed_email(session, sync_source_id, message_uid) is not None


def get_processed_message_uids(sync_source_id: int) -> list:
    """Get all processed message UIDs for a sync source."""
    with get_session() as session:
        return list(
            session.execute(
                select(ProcessedEmail.message_uid).where(
                    ProcessedEmail.sync_source_id == sync_source_id
                )
            ).scalars()
        )


def get_processed_emails_count(sync_source_id: int) -> int:
    """Get the number of processed messages for a sync source."""
    with get_session() as session:
        return session.execute(
            select(func.count(ProcessedEmail.id)).where(
                ProcessedEmail.sync_source_id == sync_source_id
            )
        ).scalar_one()
