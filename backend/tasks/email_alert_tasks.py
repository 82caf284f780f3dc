"""Celery tasks for bank-alert email processing."""

from celery_app import celery_app
from sqlalchemy.exc import SQLAlchemyError

from alerts.email_parsers.base import EmailMessage
from alerts.error_tracking import AlertError, SyncSourceNotFoundError
from alerts.logging_config import get_logger
from alerts.processor import EmailAlertProcessor
from alerts.sync import EmailAlertSyncService, StaticMailFetcher
from database import get_active_sync_sources

logger = get_logger(__name__)


def _payload_snapshot(payload: dict, sync_source_id: int) -> EmailMessage:
    """The payload as a message with its dates dropped, or None without a UID."""
    try:
        return EmailMessage.from_dict(
            {**payload, "date": None, "created_at": None}, sync_source_id=sync_source_id
        )
    except ValueError:
        return None


@celery_app.task(bind=True, time_limit=600, soft_time_limit=540, max_retries=3)
def process_email_alerts_task(self, sync_source_id: int, messages: list):
    """
    Process a batch of fetched alert emails for one sync source.

    A payload that has a UID but cannot be normalized is dead-lettered as a
    VALIDATION_ERROR; a payload without a UID is dropped and counted in
    invalid_payloads. Database errors retry the whole batch.

    Args:
        sync_source_id: Sync source the messages were fetched from
        messages: JSON message payloads (uid, subject, from, date, bodyText, bodyHtml)

    Returns:
        dict: Sync statistics
    """
    log_extra = {"sync_source_id": sync_source_id}
    logger.info(
        f"Task {self.request.id}: processing {len(messages)} messages", extra=log_extra
    )

    emails = []
    rejected = []
    invalid = 0
    for payload in messages:
        try:
            emails.append(EmailMessage.from_dict(payload, sync_source_id=sync_source_id))
        except ValueError as e:
            snapshot = _payload_snapshot(payload, sync_source_id)
            if snapshot is None:
                invalid += 1
                logger.error(f"Invalid message payload: {e}", extra=log_extra)
            else:
                rejected.append((snapshot, AlertError.from_exception(e)))

    processor = EmailAlertProcessor()
    service = EmailAlertSyncService(
        processor=processor,
        fetcher=StaticMailFetcher(emails),
        config=processor.config,
    )

    try:
        rejected_outcomes = [
            processor.dead_letter(snapshot, error) for snapshot, error in rejected
        ]
        result = service.sync_source(sync_source_id)
    except SyncSourceNotFoundError as e:
        return {"status": "failed", "sync_source_id": sync_source_id, "error": str(e)}
    except SQLAlchemyError as e:
        logger.error(f"Database error while processing batch: {e}", extra=log_extra)

        # Retry with exponential backoff
        if self.request.retries < self.max_retries:
            countdown = 2**self.request.retries  # 1, 2, 4 seconds
            logger.info(
                f"Retrying in {countdown}s "
                f"(attempt {self.request.retries + 1}/{self.max_retries})",
                extra=log_extra,
            )
            raise self.retry(exc=e, countdown=countdown)

        return {"status": "failed", "sync_source_id": sync_source_id, "error": str(e)}

    for outcome in rejected_outcomes:
        service.tally(result, outcome)

    return {"status": "completed", "invalid_payloads": invalid, **result.to_dict()}


@celery_app.task(bind=True)
def dispatch_email_alert_batches_task(self, batches: list):
    """
    Fan out fetched batches to one processing task per sync source.

    Batches for sources that are inactive or in error status are not queued.

    Args:
        batches: List of {'sync_source_id': int, 'messages': [...]}

    Returns:
        dict: Queued task IDs and skipped source IDs
    """
    eligible = {source["id"] for source in get_active_sync_sources()}

    queued = []
    skipped = []
    for batch in batches:
        source_id = batch["sync_source_id"]
        if source_id not in eligible:
            logger.warning(
                "Sync source inactive or in error, batch not queued",
                extra={"sync_source_id": source_id},
            )
            skipped.append(source_id)
            continue

        task = process_email_alerts_task.delay(source_id, batch.get("messages", []))
        queued.append({"sync_source_id": source_id, "task_id": task.id})

    return {"status": "queued", "tasks": queued, "skipped": skipped}
