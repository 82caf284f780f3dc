"""Tests for the per-message processor.

Validates the exactly-one-outcome guarantee:
- A handled message yields one record plus one ledger row
- A failed message yields one DLQ row and no ledger row
- Re-delivery of either is a no-op
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from alerts.error_tracking import AlertError, SyncSourceNotFoundError
from alerts.processor import (
    OUTCOME_ALREADY_DEAD_LETTERED,
    OUTCOME_ALREADY_PROCESSED,
    OUTCOME_BALANCE_UPDATED,
    OUTCOME_CONTENT_MISMATCH,
    OUTCOME_DEAD_LETTERED,
    OUTCOME_TRANSACTION_CREATED,
    OUTCOMES,
    EmailAlertProcessor,
)
from config import IngestionConfig
from database import get_current_balance, is_email_processed, set_account_active
from database.models import (
    BalanceUpdate,
    EmailAlertDLQ,
    ProcessedEmail,
    Transaction,
)

RBC_SENDER = "RBC Royal Bank <rbcroyalbankalerts@alerts.rbc.com>"


@pytest.fixture
def processor(config):
    return EmailAlertProcessor(config=config)


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


# ============================================================================
# SUCCESSFUL PROCESSING
# ============================================================================


def test_transaction_created(processor, bmo_source, email_factory, db_session):
    """Test a BMO purchase alert creates one transaction and one ledger row."""
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])

    result = processor.process(email)

    assert result.outcome == OUTCOME_TRANSACTION_CREATED
    assert result.created_record
    assert result.record_id is not None

    txn = db_session.get(Transaction, result.record_id)
    assert txn.amount == Decimal("-12.34")
    assert txn.name == "STRIPE-Z.AI"
    assert txn.merchant_name == "STRIPE-Z.AI"
    assert txn.card_last4 == "5678"
    assert txn.account_id == bmo_source["account_id"]
    assert txn.user_id == bmo_source["user_id"]
    assert txn.sync_source_id == bmo_source["sync_source_id"]
    assert txn.processed_email_id == result.processed_email_id
    assert txn.iso_currency_code == "CAD"

    ledger_row = db_session.get(ProcessedEmail, result.processed_email_id)
    assert ledger_row.message_uid == "1001"
    assert ledger_row.content_hash == email.content_hash()
    assert _count(db_session, EmailAlertDLQ) == 0


def test_redelivery_is_idempotent(processor, bmo_source, email_factory, db_session):
    """Test processing the same message twice creates exactly one record."""
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])

    first = processor.process(email)
    second = processor.process(email)

    assert first.outcome == OUTCOME_TRANSACTION_CREATED
    assert second.outcome == OUTCOME_ALREADY_PROCESSED
    assert second.processed_email_id == first.processed_email_id
    assert _count(db_session, Transaction) == 1
    assert _count(db_session, ProcessedEmail) == 1


def test_balance_updated(processor, bmo_source, email_factory, db_session):
    """Test an available credit alert records the new balance."""
    email = email_factory("bmo_credit.txt", sync_source_id=bmo_source["sync_source_id"])

    result = processor.process(email)

    assert result.outcome == OUTCOME_BALANCE_UPDATED
    update = db_session.get(BalanceUpdate, result.record_id)
    assert update.balance_type == "available_balance"
    assert update.new_balance == Decimal("1234.56")
    assert update.update_source == "email"
    assert update.source_detail == "bmo alerts"
    assert update.processed_email_id == result.processed_email_id

    assert get_current_balance(
        bmo_source["account_id"], bmo_source["user_id"]
    ) == Decimal("1234.56")
    assert _count(db_session, Transaction) == 0


def test_rbc_deposit(processor, rbc_source, email_factory, db_session):
    email = email_factory(
        "rbc_deposit.txt", sender=RBC_SENDER, sync_source_id=rbc_source["sync_source_id"]
    )

    result = processor.process(email)

    assert result.outcome == OUTCOME_TRANSACTION_CREATED
    txn = db_session.get(Transaction, result.record_id)
    assert txn.amount == Decimal("123.45")
    assert txn.name == "RBC Deposit"
    assert txn.transaction_date.date().isoformat() == "2026-01-01"


# ============================================================================
# DEAD-LETTERING
# ============================================================================


def test_unclaimed_email_dead_lettered(processor, bmo_source, email_factory, db_session):
    """Test an unclaimed email gets one DLQ row with the message snapshot."""
    email = email_factory(
        "unknown_bank.txt",
        sender="alerts@otherbank.com",
        subject="Statement ready",
        sync_source_id=bmo_source["sync_source_id"],
    )

    result = processor.process(email)

    assert result.outcome == OUTCOME_DEAD_LETTERED
    assert result.error_type == "NO_PARSER"
    assert not result.created_record

    entry = db_session.get(EmailAlertDLQ, result.dlq_id)
    assert entry.error_type == "NO_PARSER"
    assert entry.message_uid == "1001"
    assert entry.subject == "Statement ready"
    assert entry.from_address == "alerts@otherbank.com"
    assert entry.body_text == email.body_text
    assert entry.user_id == bmo_source["user_id"]

    assert not is_email_processed(bmo_source["sync_source_id"], "1001")


def test_dead_lettered_redelivery_is_skipped(processor, bmo_source, email_factory, db_session):
    """Test a quarantined message is never processed or quarantined again."""
    email = email_factory(
        "unknown_bank.txt",
        sender="alerts@otherbank.com",
        sync_source_id=bmo_source["sync_source_id"],
    )

    processor.process(email)
    second = processor.process(email)

    assert second.outcome == OUTCOME_ALREADY_DEAD_LETTERED
    assert _count(db_session, EmailAlertDLQ) == 1
    assert _count(db_session, ProcessedEmail) == 0


def test_parse_failure_dead_lettered(processor, rbc_source, email_factory):
    email = email_factory(
        "rbc_deposit_missing_date.txt",
        sender=RBC_SENDER,
        sync_source_id=rbc_source["sync_source_id"],
    )

    result = processor.process(email)

    assert result.outcome == OUTCOME_DEAD_LETTERED
    assert result.error_type == "PARSE_ERROR"


def test_payment_alert_unsupported(processor, bmo_source, email_factory):
    email = email_factory("bmo_payment.txt", sync_source_id=bmo_source["sync_source_id"])

    result = processor.process(email)

    assert result.error_type == "UNSUPPORTED_TYPE"


def test_wrong_bank_for_source_is_no_account(processor, bmo_source, email_factory, db_session):
    """Test an RBC alert arriving on a BMO account's mailbox is NO_ACCOUNT."""
    email = email_factory(
        "rbc_deposit.txt", sender=RBC_SENDER, sync_source_id=bmo_source["sync_source_id"]
    )

    result = processor.process(email)

    assert result.outcome == OUTCOME_DEAD_LETTERED
    assert result.error_type == "NO_ACCOUNT"
    assert _count(db_session, Transaction) == 0


def test_inactive_account_is_no_account(processor, bmo_source, email_factory):
    set_account_active(bmo_source["account_id"], False)
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])

    result = processor.process(email)

    assert result.error_type == "NO_ACCOUNT"


def test_validation_failure_dead_lettered(bmo_source, email_factory, db_session):
    """Test an amount above the configured ceiling is quarantined."""
    processor = EmailAlertProcessor(
        config=IngestionConfig(max_transaction_amount=Decimal("10"))
    )
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])

    result = processor.process(email)

    assert result.error_type == "VALIDATION_ERROR"
    entry = db_session.get(EmailAlertDLQ, result.dlq_id)
    assert "maximum" in entry.error_message
    assert entry.error_stack is not None


# ============================================================================
# CONCURRENT ATTEMPTS
# ============================================================================


def test_lost_ledger_claim_creates_nothing(
    processor, bmo_source, email_factory, db_session, monkeypatch
):
    """Test a second attempt that passes the read check loses the unique claim."""
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])
    first = processor.process(email)

    # The other attempt commits between this one's read check and its claim
    monkeypatch.setattr("alerts.processor.get_processed_email", lambda *args: None)
    second = processor.process(email)

    assert first.outcome == OUTCOME_TRANSACTION_CREATED
    assert second.outcome == OUTCOME_ALREADY_PROCESSED
    assert second.record_id is None
    assert _count(db_session, Transaction) == 1
    assert _count(db_session, ProcessedEmail) == 1
    assert _count(db_session, EmailAlertDLQ) == 0


def test_lost_dlq_insert_is_already_dead_lettered(
    processor, bmo_source, email_factory, db_session, monkeypatch
):
    """Test a second quarantine of the same UID keeps the first DLQ row."""
    email = email_factory(
        "unknown_bank.txt",
        sender="alerts@otherbank.com",
        sync_source_id=bmo_source["sync_source_id"],
    )
    first = processor.process(email)

    monkeypatch.setattr("alerts.processor.has_dlq_entry", lambda *args: False)
    second = processor.process(email)

    assert first.outcome == OUTCOME_DEAD_LETTERED
    assert second.outcome == OUTCOME_ALREADY_DEAD_LETTERED
    assert second.dlq_id is None
    assert _count(db_session, EmailAlertDLQ) == 1
    assert _count(db_session, ProcessedEmail) == 0


# ============================================================================
# PAYLOAD REJECTION
# ============================================================================


def test_dead_letter_records_rejected_message(processor, bmo_source, email_factory, db_session):
    """Test a message rejected before dispatch gets one DLQ row."""
    email = email_factory(
        "bmo_transaction.txt", uid="77", sync_source_id=bmo_source["sync_source_id"]
    )
    error = AlertError.from_exception(ValueError("Unrecognized message date: 'soon'"))

    result = processor.dead_letter(email, error)

    assert result.outcome == OUTCOME_DEAD_LETTERED
    assert result.error_type == "VALIDATION_ERROR"
    entry = db_session.get(EmailAlertDLQ, result.dlq_id)
    assert entry.message_uid == "77"
    assert entry.user_id == bmo_source["user_id"]

    assert processor.dead_letter(email, error).outcome == OUTCOME_ALREADY_DEAD_LETTERED
    assert _count(db_session, EmailAlertDLQ) == 1


def test_dead_letter_leaves_processed_message_alone(
    processor, bmo_source, email_factory, db_session
):
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])
    processor.process(email)

    result = processor.dead_letter(email, AlertError.from_exception(ValueError("bad")))

    assert result.outcome == OUTCOME_ALREADY_PROCESSED
    assert _count(db_session, EmailAlertDLQ) == 0


# ============================================================================
# CONTENT HASH VERIFICATION
# ============================================================================


def test_reused_uid_with_new_content_is_flagged(processor, bmo_source, email_factory, db_session):
    """Test a processed UID with different content creates nothing."""
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])
    processor.process(email)

    changed = replace(email, body_text=email.body_text.replace("$12.34", "$99.99"))
    result = processor.process(changed)

    assert result.outcome == OUTCOME_CONTENT_MISMATCH
    assert "different content" in result.error_message
    assert _count(db_session, Transaction) == 1
    assert _count(db_session, EmailAlertDLQ) == 0


def test_content_check_can_be_disabled(bmo_source, email_factory):
    processor = EmailAlertProcessor(config=IngestionConfig(verify_content_hash=False))
    email = email_factory("bmo_transaction.txt", sync_source_id=bmo_source["sync_source_id"])
    processor.process(email)

    result = processor.process(replace(email, body_text="different"))

    assert result.outcome == OUTCOME_ALREADY_PROCESSED


# ============================================================================
# PRECONDITIONS
# ============================================================================


def test_missing_sync_source_raises(processor, email_factory):
    with pytest.raises(SyncSourceNotFoundError):
        processor.process(email_factory("bmo_transaction.txt", sync_source_id=404))


def test_message_without_sync_source_rejected(processor, email_factory):
    with pytest.raises(ValueError):
        processor.process(email_factory("bmo_transaction.txt"))


def test_result_to_dict(processor, bmo_source, email_factory):
    email = email_factory("bmo_credit.txt", sync_source_id=bmo_source["sync_source_id"])

    result = processor.process(email).to_dict()

    assert result["outcome"] == OUTCOME_BALANCE_UPDATED
    assert result["outcome"] in OUTCOMES
    assert result["message_uid"] == "1001"
    assert result["dlq_id"] is None
