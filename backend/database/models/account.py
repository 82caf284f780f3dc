"""
Account and mailbox sync source models.

Maps to:
- accounts table
- sync_sources table
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func, true

from database.base import Base

SYNC_SOURCE_STATUSES = ("active", "error")


class Account(Base):
    """Ledger account owned by a user (credit card, chequing, ...)."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    name = Column(String(255), nullable=False)
    bank = Column(String(50), nullable=True)
    type = Column(String(50), nullable=True)
    mask = Column(String(4), nullable=True)
    iso_currency_code = Column(
        String(3), nullable=False, default="CAD", server_default="CAD"
    )
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_account_user", "user_id"),)

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, bank={self.bank}, type={self.type})>"


class SyncSource(Base):
    """Monitored mailbox delivering alerts for one account (encrypted credentials)."""

    __tablename__ = "sync_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    bank = Column(String(50), nullable=True)
    account_type = Column(String(50), nullable=True)
    email_address = Column(String(255), nullable=False)
    imap_host = Column(String(255), nullable=False)
    imap_port = Column(Integer, nullable=False, default=993, server_default="993")
    imap_password_encrypted = Column(Text, nullable=False)  # Opaque, encrypted upstream
    imap_folder = Column(
        String(255), nullable=False, default="INBOX", server_default="INBOX"
    )
    last_processed_uid = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False, default="active", server_default="active")
    last_error = Column(Text, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_sync_source_account", "account_id"),
        Index("idx_sync_source_status", "status"),
        CheckConstraint(
            "status IN ('active', 'error')", name="ck_sync_source_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<SyncSource(id={self.id}, email={self.email_address}, status={self.status})>"
