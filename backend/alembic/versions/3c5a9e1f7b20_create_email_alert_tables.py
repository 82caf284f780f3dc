"""create_email_alert_tables

Revision ID: 3c5a9e1f7b20
Revises:
Create Date: 2026-10-19 09:12:31.418207

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c5a9e1f7b20"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    ]


def upgrade() -> None:
    """Create accounts, sync sources, the idempotency ledger, the DLQ and
    the transaction / balance update tables.

    (sync_source_id, message_uid) is unique in both processed_emails and
    email_alert_dlq: the constraint is what makes concurrent processing of
    the same message safe.
    """
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("bank", sa.String(50), nullable=True),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column("mask", sa.String(4), nullable=True),
        sa.Column(
            "iso_currency_code", sa.String(3), nullable=False, server_default="CAD"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("idx_account_user", "accounts", ["user_id"])

    op.create_table(
        "sync_sources",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("bank", sa.String(50), nullable=True),
        sa.Column("account_type", sa.String(50), nullable=True),
        sa.Column("email_address", sa.String(255), nullable=False),
        sa.Column("imap_host", sa.String(255), nullable=False),
        sa.Column("imap_port", sa.Integer(), nullable=False, server_default="993"),
        sa.Column("imap_password_encrypted", sa.Text(), nullable=False),
        sa.Column(
            "imap_folder", sa.String(255), nullable=False, server_default="INBOX"
        ),
        sa.Column("last_processed_uid", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active', 'error')", name="ck_sync_source_status"),
    )
    op.create_index("idx_sync_source_account", "sync_sources", ["account_id"])
    op.create_index("idx_sync_source_status", "sync_sources", ["status"])

    op.create_table(
        "processed_emails",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column(
            "sync_source_id",
            sa.Integer(),
            sa.ForeignKey("sync_sources.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message_uid", sa.String(64), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=True),
        sa.Column(
            "processed_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.UniqueConstraint(
            "sync_source_id", "message_uid", name="uq_processed_email"
        ),
    )
    op.create_index("idx_processed_emails_user", "processed_emails", ["user_id"])

    op.create_table(
        "email_alert_dlq",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column(
            "sync_source_id",
            sa.Integer(),
            sa.ForeignKey("sync_sources.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message_uid", sa.String(64), nullable=True),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("from_address", sa.Text(), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("body_text", sa.Text(), nullable=True),
        sa.Column("body_html", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column("error_type", sa.String(30), nullable=False),
        sa.Column("error_stack", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.UniqueConstraint(
            "sync_source_id", "message_uid", name="uq_email_alert_dlq_message"
        ),
        sa.CheckConstraint(
            "error_type IN ('PARSE_ERROR', 'NO_PARSER', 'VALIDATION_ERROR', "
            "'NO_ACCOUNT', 'UNSUPPORTED_TYPE')",
            name="ck_email_alert_dlq_error_type",
        ),
    )
    op.create_index("idx_dlq_user", "email_alert_dlq", ["user_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sync_source_id",
            sa.Integer(),
            sa.ForeignKey("sync_sources.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "processed_email_id",
            sa.Integer(),
            sa.ForeignKey("processed_emails.id", ondelete="CASCADE"),
            nullable=True,
            unique=True,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "iso_currency_code", sa.String(3), nullable=False, server_default="CAD"
        ),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("merchant_name", sa.Text(), nullable=True),
        sa.Column("card_last4", sa.String(4), nullable=True),
        sa.Column("pending", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("idx_transaction_user", "transactions", ["user_id"])
    op.create_index("idx_transaction_sync_source", "transactions", ["sync_source_id"])
    op.create_index(
        "idx_transaction_account_date", "transactions", ["account_id", "transaction_date"]
    )

    op.create_table(
        "balance_updates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sync_source_id",
            sa.Integer(),
            sa.ForeignKey("sync_sources.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "processed_email_id",
            sa.Integer(),
            sa.ForeignKey("processed_emails.id", ondelete="CASCADE"),
            nullable=True,
            unique=True,
        ),
        sa.Column("balance_type", sa.String(30), nullable=False),
        sa.Column("new_balance", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "update_source", sa.String(30), nullable=False, server_default="email"
        ),
        sa.Column("source_detail", sa.Text(), nullable=True),
        sa.Column("update_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "balance_type IN ('available_balance', 'current_balance')",
            name="ck_balance_update_type",
        ),
    )
    op.create_index("idx_balance_update_user", "balance_updates", ["user_id"])
    op.create_index(
        "idx_balance_update_latest",
        "balance_updates",
        ["account_id", "balance_type", "update_date", "id"],
    )


def downgrade() -> None:
    """Drop all email alert tables (dependents first)."""
    op.drop_table("balance_updates")
    op.drop_table("transactions")
    op.drop_table("email_alert_dlq")
    op.drop_table("processed_emails")
    op.drop_table("sync_sources")
    op.drop_table("accounts")
