"""Tests for the email alert database operations.

Covers the idempotency ledger, the DLQ, balance reads and sync source
checkpointing against the SQLite test database.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from database import (
    advance_sync_checkpoint,
    claim_message,
    create_account,
    create_balance_update,
    create_dlq_entry,
    create_sync_source,
    create_transaction,
    delete_dlq_entry,
    get_balance_updates_by_account,
    get_dlq_entries,
    get_dlq_entry,
    get_dlq_message_uids,
    get_dlq_summary,
    get_latest_balance,
    get_processed_emails_count,
    get_processed_message_uids,
    get_session,
    get_sync_source,
    get_transactions_by_account,
    is_email_processed,
    uid_sort_key,
    update_sync_source_status,
)


def _dlq(source, uid, error_type="NO_PARSER"):
    with get_session() as session:
        dlq_id = create_dlq_entry(
            session,
            user_id=source["user_id"],
            sync_source_id=source["sync_source_id"],
            message_uid=uid,
            error_type=error_type,
            error_message=f"{error_type} for {uid}",
        )
        session.commit()
        return dlq_id


def _balance(source, amount, update_date):
    with get_session() as session:
        update_id = create_balance_update(
            session,
            user_id=source["user_id"],
            account_id=source["account_id"],
            balance_type="available_balance",
            new_balance=Decimal(amount),
            update_date=update_date,
        )
        session.commit()
        return update_id


# ============================================================================
# IDEMPOTENCY LEDGER
# ============================================================================


def test_claim_message_only_once(bmo_source):
    """Test the second claim of a (source, UID) pair returns None."""
    args = (bmo_source["user_id"], bmo_source["sync_source_id"], "42")

    with get_session() as session:
        first = claim_message(session, *args, content_hash="a" * 64)
        session.commit()

    with get_session() as session:
        second = claim_message(session, *args, content_hash="b" * 64)
        session.commit()

    assert first is not None
    assert second is None
    assert is_email_processed(bmo_source["sync_source_id"], "42")
    assert get_processed_message_uids(bmo_source["sync_source_id"]) == ["42"]
    assert get_processed_emails_count(bmo_source["sync_source_id"]) == 1


def test_same_uid_on_different_sources(bmo_source, rbc_source):
    """Test UIDs are only unique within a sync source."""
    with get_session() as session:
        a = claim_message(session, bmo_source["user_id"], bmo_source["sync_source_id"], "1")
        b = claim_message(session, rbc_source["user_id"], rbc_source["sync_source_id"], "1")
        session.commit()

    assert a is not None and b is not None and a != b


# ============================================================================
# DEAD-LETTER QUEUE
# ============================================================================


def test_dlq_entry_unique_per_message(bmo_source):
    assert _dlq(bmo_source, "1") is not None
    assert _dlq(bmo_source, "1", error_type="PARSE_ERROR") is None
    assert get_dlq_message_uids(bmo_source["sync_source_id"]) == ["1"]


def test_dlq_rejects_unknown_error_type(bmo_source):
    with pytest.raises(ValueError, match="Invalid DLQ error type"):
        _dlq(bmo_source, "1", error_type="TIMEOUT")


def test_dlq_listing_newest_first_and_filtered(bmo_source, user_id):
    first = _dlq(bmo_source, "1", "NO_PARSER")
    second = _dlq(bmo_source, "2", "PARSE_ERROR")
    third = _dlq(bmo_source, "3", "NO_PARSER")

    entries = get_dlq_entries(user_id)
    assert [e["id"] for e in entries] == [third, second, first]

    no_parser = get_dlq_entries(user_id, error_type="NO_PARSER")
    assert [e["id"] for e in no_parser] == [third, first]

    page = get_dlq_entries(user_id, limit=1, offset=1)
    assert [e["id"] for e in page] == [second]


def test_dlq_summary_is_zero_filled(bmo_source, user_id):
    _dlq(bmo_source, "1", "NO_PARSER")
    _dlq(bmo_source, "2", "NO_PARSER")
    _dlq(bmo_source, "3", "VALIDATION_ERROR")

    assert get_dlq_summary(user_id) == {
        "PARSE_ERROR": 0,
        "NO_PARSER": 2,
        "VALIDATION_ERROR": 1,
        "NO_ACCOUNT": 0,
        "UNSUPPORTED_TYPE": 0,
    }


def test_dlq_scoped_to_owner(bmo_source, user_id, other_user_id):
    """Test another user can neither read nor delete an entry."""
    dlq_id = _dlq(bmo_source, "1")

    assert get_dlq_entry(dlq_id, other_user_id) is None
    assert delete_dlq_entry(dlq_id, other_user_id) is False
    assert get_dlq_entries(other_user_id) == []

    assert get_dlq_entry(dlq_id, user_id)["message_uid"] == "1"
    assert delete_dlq_entry(dlq_id, user_id) is True
    assert get_dlq_entry(dlq_id, user_id) is None


# ============================================================================
# TRANSACTIONS AND BALANCES
# ============================================================================


def test_latest_balance_ties_broken_by_id(bmo_source):
    """Test the later insert wins when two updates share an update_date."""
    same_time = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)
    _balance(bmo_source, "100.00", same_time)
    winner = _balance(bmo_source, "90.00", same_time)
    # Inserted last but reported earlier
    _balance(bmo_source, "500.00", datetime(2026, 1, 4, tzinfo=UTC))

    latest = get_latest_balance(bmo_source["account_id"], bmo_source["user_id"])

    assert latest["id"] == winner
    assert latest["new_balance"] == Decimal("90.00")

    history = get_balance_updates_by_account(bmo_source["account_id"], bmo_source["user_id"])
    assert [h["new_balance"] for h in history] == [
        Decimal("90.00"),
        Decimal("100.00"),
        Decimal("500.00"),
    ]


def test_latest_balance_none_without_updates(bmo_source):
    assert get_latest_balance(bmo_source["account_id"], bmo_source["user_id"]) is None
    assert (
        get_latest_balance(bmo_source["account_id"], bmo_source["user_id"], "current_balance")
        is None
    )


def test_balance_type_validated(bmo_source):
    with pytest.raises(ValueError):
        get_latest_balance(bmo_source["account_id"], bmo_source["user_id"], "credit_limit")


def test_transactions_by_account(bmo_source, other_user_id):
    with get_session() as session:
        create_transaction(
            session,
            user_id=bmo_source["user_id"],
            account_id=bmo_source["account_id"],
            amount=Decimal("-4.50"),
            transaction_date=datetime(2026, 1, 3, tzinfo=UTC),
            name="COFFEE",
        )
        create_transaction(
            session,
            user_id=bmo_source["user_id"],
            account_id=bmo_source["account_id"],
            amount=Decimal("-60.00"),
            transaction_date=datetime(2026, 1, 4, tzinfo=UTC),
            name="GROCER",
        )
        session.commit()

    rows = get_transactions_by_account(bmo_source["account_id"], bmo_source["user_id"])

    assert [r["name"] for r in rows] == ["GROCER", "COFFEE"]
    assert rows[0]["pending"] is False
    assert get_transactions_by_account(bmo_source["account_id"], other_user_id) == []


# ============================================================================
# SYNC SOURCES
# ============================================================================


def test_uid_sort_key_orders_numerically():
    uids = ["100", "9", "abc", "10"]

    assert sorted(uids, key=uid_sort_key) == ["9", "10", "100", "abc"]


def test_checkpoint_never_moves_backwards(bmo_source):
    sync_source_id = bmo_source["sync_source_id"]

    assert advance_sync_checkpoint(sync_source_id, "10") is True
    assert advance_sync_checkpoint(sync_source_id, "9") is False
    assert advance_sync_checkpoint(sync_source_id, "10") is False
    assert advance_sync_checkpoint(sync_source_id, "11") is True
    assert get_sync_source(sync_source_id)["last_processed_uid"] == "11"

    assert advance_sync_checkpoint(404, "1") is False


def test_checkpoint_rejects_non_numeric_uids(bmo_source):
    """Test a non-numeric UID never becomes the checkpoint."""
    sync_source_id = bmo_source["sync_source_id"]

    assert advance_sync_checkpoint(sync_source_id, "abc") is False
    assert get_sync_source(sync_source_id)["last_processed_uid"] is None

    assert advance_sync_checkpoint(sync_source_id, "5") is True
    assert advance_sync_checkpoint(sync_source_id, "zzz") is False
    assert get_sync_source(sync_source_id)["last_processed_uid"] == "5"


def test_status_transitions(bmo_source):
    sync_source_id = bmo_source["sync_source_id"]

    update_sync_source_status(sync_source_id, "error", error="MailboxAuthError: denied")
    assert get_sync_source(sync_source_id)["last_error"] == "MailboxAuthError: denied"

    update_sync_source_status(sync_source_id, "active", error="ignored")
    source = get_sync_source(sync_source_id)
    assert source["status"] == "active"
    assert source["last_error"] is None

    with pytest.raises(ValueError):
        update_sync_source_status(sync_source_id, "paused")


def test_sync_source_inherits_account_bank(user_id, other_user_id):
    account_id = create_account(user_id, "Card", bank="BMO", account_type="CreditCard")
    sync_source_id = create_sync_source(
        account_id,
        name="Card alerts",
        email_address="me@example.com",
        imap_host="imap.example.com",
        imap_password_encrypted="secret",
    )

    source = get_sync_source(sync_source_id)
    assert source["bank"] == "bmo"
    assert source["account_type"] == "creditcard"
    assert source["imap_port"] == 993
    assert source["imap_folder"] == "INBOX"
    assert source["user_id"] == user_id

    assert get_sync_source(sync_source_id, user_id=other_user_id) is None


def test_sync_source_requires_account():
    with pytest.raises(ValueError, match="not found"):
        create_sync_source(
            404,
            name="x",
            email_address="me@example.com",
            imap_host="imap.example.com",
            imap_password_encrypted="secret",
        )
