"""
Email alert bookkeeping models.

Maps to:
- processed_emails table (idempotency ledger)
- email_alert_dlq table (dead-letter quarantine)
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from database.base import Base

DLQ_ERROR_TYPES = (
    "PARSE_ERROR",
    "NO_PARSER",
    "VALIDATION_ERROR",
    "NO_ACCOUNT",
    "UNSUPPORTED_TYPE",
)


class ProcessedEmail(Base):
    """One row per successfully handled mailbox message (write-once)."""

    __tablename__ = "processed_emails"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    sync_source_id = Column(
        Integer,
        ForeignKey("sync_sources.id", ondelete="CASCADE"),
        nullable=False,
    )
    message_uid = Column(String(64), nullable=False)
    content_hash = Column(String(64), nullable=True)
    processed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("sync_source_id", "message_uid", name="uq_processed_email"),
        Index("idx_processed_emails_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedEmail(id={self.id}, source={self.sync_source_id}, uid={self.message_uid})>"


class EmailAlertDLQ(Base):
    """Quarantined alert that could not be converted into a record."""

    __tablename__ = "email_alert_dlq"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    sync_source_id = Column(
        Integer,
        ForeignKey("sync_sources.id", ondelete="CASCADE"),
        nullable=False,
    )
    message_uid = Column(String(64), nullable=True)
    subject = Column(Text, nullable=True)
    from_address = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=True)
    body_text = Column(Text, nullable=True)
    body_html = Column(Text, nullable=True)
    error_message = Column(Text, nullable=False)
    error_type = Column(String(30), nullable=False)
    error_stack = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "sync_source_id", "message_uid", name="uq_email_alert_dlq_message"
        ),
        Index("idx_dlq_user", "user_id"),
        CheckConstraint(
            "error_type IN ('PARSE_ERROR', 'NO_PARSER', 'VALIDATION_ERROR', "
            "'NO_ACCOUNT', 'UNSUPPORTED_TYPE')",
            name="ck_email_alert_dlq_error_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<EmailAlertDLQ(id={self.id}, uid={self.message_uid}, type={self.error_type})>"
