"""Tests for the Celery alert processing tasks (run in-process)."""

from conftest import BMO_SENDER, load_email_fixture
from sqlalchemy.exc import OperationalError

from alerts.processor import EmailAlertProcessor
from database import (
    deactivate_sync_source,
    get_dlq_entries,
    get_dlq_message_uids,
    get_processed_message_uids,
    get_transactions_by_account,
)
from tasks.email_alert_tasks import (
    dispatch_email_alert_batches_task,
    process_email_alerts_task,
)


def _payload(uid, fixture="bmo_transaction.txt"):
    return {
        "uid": uid,
        "subject": "BMO Credit Card Alert",
        "from": BMO_SENDER,
        "date": "2026-01-05T14:30:00Z",
        "bodyText": load_email_fixture(fixture),
    }


def test_process_task_runs_sync(bmo_source):
    """Test a batch is normalized, processed and summarized."""
    messages = [_payload("2", "bmo_credit.txt"), _payload("1"), {"subject": "no uid"}]

    result = process_email_alerts_task.apply(
        args=(bmo_source["sync_source_id"], messages)
    ).get()

    assert result["status"] == "completed"
    assert result["invalid_payloads"] == 1
    assert result["fetched"] == 2
    assert result["transactions_created"] == 1
    assert result["balances_updated"] == 1
    assert result["last_processed_uid"] == "2"


def test_process_task_is_idempotent(bmo_source):
    """Test re-running the same batch creates nothing new."""
    args = (bmo_source["sync_source_id"], [_payload("1")])

    process_email_alerts_task.apply(args=args).get()
    second = process_email_alerts_task.apply(args=args).get()

    assert second["fetched"] == 0
    assert len(
        get_transactions_by_account(bmo_source["account_id"], bmo_source["user_id"])
    ) == 1


def test_process_task_unknown_source():
    result = process_email_alerts_task.apply(args=(404, [_payload("1")])).get()

    assert result["status"] == "failed"
    assert result["sync_source_id"] == 404


def test_payload_with_bad_date_is_dead_lettered(bmo_source):
    """Test a payload with a UID but an unparseable date is quarantined, not dropped."""
    sync_source_id = bmo_source["sync_source_id"]
    bad = {**_payload("1"), "date": "not a date"}
    args = (sync_source_id, [bad, _payload("2", "bmo_credit.txt")])

    result = process_email_alerts_task.apply(args=args).get()

    assert result["status"] == "completed"
    assert result["invalid_payloads"] == 0
    assert result["dead_lettered"] == 1
    assert result["dead_letter_types"] == {"VALIDATION_ERROR": 1}
    assert result["balances_updated"] == 1
    assert get_processed_message_uids(sync_source_id) == ["2"]
    assert get_dlq_message_uids(sync_source_id) == ["1"]

    entry = get_dlq_entries(bmo_source["user_id"])[0]
    assert entry["error_type"] == "VALIDATION_ERROR"
    assert "not a date" in entry["error_message"]
    assert entry["body_text"] == bad["bodyText"]
    assert entry["date"] is None

    second = process_email_alerts_task.apply(args=args).get()

    assert second["dead_lettered"] == 0
    assert second["skipped"] == 1
    assert get_dlq_message_uids(sync_source_id) == ["1"]


def test_process_task_retries_database_errors(bmo_source, monkeypatch):
    """Test a transient database error re-runs the batch without duplicates."""
    calls = []
    original = EmailAlertProcessor.process

    def flaky(self, email):
        calls.append(email.message_uid)
        if len(calls) == 1:
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return original(self, email)

    monkeypatch.setattr(EmailAlertProcessor, "process", flaky)
    messages = [_payload("1"), _payload("2", "bmo_credit.txt")]

    result = process_email_alerts_task.apply(
        args=(bmo_source["sync_source_id"], messages)
    ).get()

    assert result["status"] == "completed"
    assert result["transactions_created"] == 1
    assert result["balances_updated"] == 1
    assert calls == ["1", "1", "2"]


def test_process_task_gives_up_after_max_retries(bmo_source, monkeypatch):
    attempts = []

    def broken(self, email):
        attempts.append(email.message_uid)
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(EmailAlertProcessor, "process", broken)

    result = process_email_alerts_task.apply(
        args=(bmo_source["sync_source_id"], [_payload("1")])
    ).get()

    assert result["status"] == "failed"
    assert "disk I/O error" in result["error"]
    assert len(attempts) == process_email_alerts_task.max_retries + 1


def test_dispatch_skips_inactive_sources(celery_eager, bmo_source, rbc_source, user_id):
    """Test batches are only queued for active sources."""
    deactivate_sync_source(rbc_source["sync_source_id"], user_id)
    batches = [
        {"sync_source_id": bmo_source["sync_source_id"], "messages": [_payload("1")]},
        {"sync_source_id": rbc_source["sync_source_id"], "messages": [_payload("1")]},
    ]

    result = dispatch_email_alert_batches_task.apply(args=(batches,)).get()

    assert result["status"] == "queued"
    assert [t["sync_source_id"] for t in result["tasks"]] == [bmo_source["sync_source_id"]]
    assert result["skipped"] == [rbc_source["sync_source_id"]]
    assert len(
        get_transactions_by_account(bmo_source["account_id"], bmo_source["user_id"])
    ) == 1
