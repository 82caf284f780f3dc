"""
Financial record models produced from email alerts.

Maps to:
- transactions table
- balance_updates table

Amount sign convention: negative = outflow, positive = inflow.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import false, func

from database.base import Base

BALANCE_TYPES = ("available_balance", "current_balance")


class Transaction(Base):
    """Transaction parsed from a bank alert."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    sync_source_id = Column(
        Integer, ForeignKey("sync_sources.id", ondelete="CASCADE"), nullable=True
    )
    processed_email_id = Column(
        Integer,
        ForeignKey("processed_emails.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    iso_currency_code = Column(
        String(3), nullable=False, default="CAD", server_default="CAD"
    )
    transaction_date = Column(DateTime(timezone=True), nullable=False)
    name = Column(Text, nullable=False)
    merchant_name = Column(Text, nullable=True)
    card_last4 = Column(String(4), nullable=True)
    pending = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_transaction_user", "user_id"),
        Index("idx_transaction_sync_source", "sync_source_id"),
        Index("idx_transaction_account_date", "account_id", "transaction_date"),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, amount={self.amount}, name={self.name})>"


class BalanceUpdate(Base):
    """Point-in-time balance reported by a bank alert."""

    __tablename__ = "balance_updates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    sync_source_id = Column(
        Integer, ForeignKey("sync_sources.id", ondelete="CASCADE"), nullable=True
    )
    processed_email_id = Column(
        Integer,
        ForeignKey("processed_emails.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    balance_type = Column(String(30), nullable=False)
    new_balance = Column(Numeric(12, 2), nullable=False)
    update_source = Column(
        String(30), nullable=False, default="email", server_default="email"
    )
    source_detail = Column(Text, nullable=True)
    update_date = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_balance_update_user", "user_id"),
        # Backs "most recent by type" lookups ordered by (update_date desc, id desc)
        Index(
            "idx_balance_update_latest",
            "account_id",
            "balance_type",
            "update_date",
            "id",
        ),
        CheckConstraint(
            "balance_type IN ('available_balance', 'current_balance')",
            name="ck_balance_update_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<BalanceUpdate(id={self.id}, type={self.balance_type}, balance={self.new_balance})>"
