"""
Email Alert DLQ - Dead-Letter Quarantine Operations

Additive only: rows are written by the pipeline and removed solely by an
explicit delete from the owning user.
"""

from sqlalchemy import func, select

from .base import conflict_insert, get_session
from .models.email_alerts import DLQ_ERROR_TYPES, EmailAlertDLQ


def _dlq_to_dict(entry: EmailAlertDLQ) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "sync_source_id": entry.sync_source_id,
        "message_uid": entry.message_uid,
        "subject": entry.subject,
        "from_address": entry.from_address,
        "date": entry.date,
        "body_text": entry.body_text,
        "body_html": entry.body_html,
        "error_message": entry.error_message,
        "error_type": entry.error_type,
        "error_stack": entry.error_stack,
        "created_at": entry.created_at,
    }


def create_dlq_entry(
    session,
    user_id: str,
    sync_source_id: int,
    message_uid: str,
    error_type: str,
    error_message: str,
    subject: str = None,
    from_address: str = None,
    date=None,
    body_text: str = None,
    body_html: str = None,
    error_stack: str = None,
) -> int:
    """
    Quarantine a message inside the caller's transaction.

    Args:
        session: Active SQLAlchemy session
        user_id: Owning user ID
        sync_source_id: Sync source ID
        message_uid: Mailbox UID of the message
        error_type: One of DLQ_ERROR_TYPES
        error_message: Human-readable failure description
        subject, from_address, date, body_text, body_html: Message snapshot
        error_stack: Stack trace of the underlying exception, if any

    Returns:
        New DLQ entry ID, or None if the message is already quarantined

    Raises:
        ValueError: If error_type is outside the taxonomy
    """
    if error_type not in DLQ_ERROR_TYPES:
        raise ValueError(f"Invalid DLQ error type: {error_type}")

    stmt = conflict_insert(session, EmailAlertDLQ).values(
        user_id=user_id,
        sync_source_id=sync_source_id,
        message_uid=message_uid,
        subject=subject,
        from_address=from_address,
        date=date,
        body_text=body_text,
        body_html=body_html,
        error_message=error_message,
        error_type=error_type,
        error_stack=error_stack,
    )
    stmt = stmt.on_conflict_do_nothing(
        index_elements=["sync_source_id", "message_uid"]
    ).returning(EmailAlertDLQ.id)

    return session.execute(stmt).scalar_one_or_none()


def has_dlq_entry(session, sync_source_id: int, message_uid: str) -> bool:
    """Check inside an existing session whether a message is quarantined."""
    return (
        session.execute(
            select(EmailAlertDLQ.id).where(
                EmailAlertDLQ.sync_source_id == sync_source_id,
                EmailAlertDLQ.message_uid == message_uid,
            )
        ).first()
        is not None
    )


def get_dlq_message_uids(sync_source_id: int) -> list:
    """Get quarantined message UIDs for a sync source (for sync to skip)."""
    with get_session() as session:
        return list(
            session.execute(
                select(EmailAlertDLQ.message_uid).where(
                    EmailAlertDLQ.sync_source_id == sync_source_id,
                    EmailAlertDLQ.message_uid.is_not(None),
                )
            ).scalars()
        )


def get_dlq_entries(
    user_id: str, limit: int = 50, offset: int = 0, error_type: str = None
) -> list:
    """Get a user's DLQ entries, newest first."""
    with get_session() as session:
        query = select(EmailAlertDLQ).where(EmailAlertDLQ.user_id == user_id)
        if error_type:
            query = query.where(EmailAlertDLQ.error_type == error_type)

        query = (
            query.order_by(EmailAlertDLQ.created_at.desc(), EmailAlertDLQ.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [_dlq_to_dict(entry) for entry in session.execute(query).scalars()]


def get_dlq_entry(dlq_id: int, user_id: str) -> dict:
    """Get a single DLQ entry owned by a user."""
    with get_session() as session:
        entry = session.get(EmailAlertDLQ, dlq_id)

        if not entry or entry.user_id != user_id:
            return None

        return _dlq_to_dict(entry)


def delete_dlq_entry(dlq_id: int, user_id: str) -> bool:
    """Delete a DLQ entry owned by a user (explicit triage action)."""
    with get_session() as session:
        entry = session.get(EmailAlertDLQ, dlq_id)

        if not entry or entry.user_id != user_id:
            return False

        session.delete(entry)
        session.commit()
        return True


def get_dlq_summary(user_id: str) -> dict:
    """Count a user's DLQ entries per error type."""
    with get_session() as session:
        rows = session.execute(
            select(EmailAlertDLQ.error_type, func.count(EmailAlertDLQ.id))
            .where(EmailAlertDLQ.user_id == user_id)
            .group_by(EmailAlertDLQ.error_type)
        ).all()

        summary = {error_type: 0 for error_type in DLQ_ERROR_TYPES}
        summary.update({error_type: count for error_type, count in rows})
        return summary
