"""
Email Alert Sync Service

Runs sync cycles for mailbox sync sources:
- Fetches messages newer than the source's checkpoint through a MailFetcher
- Processes them one at a time in ascending UID order
- Advances last_processed_uid after each terminal outcome (numeric UIDs only,
  never backwards)
- Flips the source to 'error' on mailbox authentication/connection failures

Per-message failures end in the DLQ and never change the source's status.
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Callable, Iterable, Optional, Protocol

from config import IngestionConfig, load_ingestion_config
from database import (
    advance_sync_checkpoint,
    deactivate_sync_source,
    get_active_sync_sources,
    get_sync_source,
    uid_sort_key,
    update_last_synced,
    update_sync_source_status,
)

from alerts.email_parsers.base import EmailMessage
from alerts.error_tracking import MailboxError, SyncSourceNotFoundError
from alerts.logging_config import get_logger
from alerts.processor import (
    OUTCOME_ALREADY_DEAD_LETTERED,
    OUTCOME_ALREADY_PROCESSED,
    OUTCOME_BALANCE_UPDATED,
    OUTCOME_CONTENT_MISMATCH,
    OUTCOME_DEAD_LETTERED,
    OUTCOME_TRANSACTION_CREATED,
    EmailAlertProcessor,
)

logger = get_logger(__name__)


class MailFetcher(Protocol):
    """Mailbox collaborator that delivers normalized messages.

    Raises MailboxAuthError / MailboxConnectionError on infrastructure failure.
    """

    def fetch_messages(
        self, sync_source: dict, after_uid: Optional[str]
    ) -> Iterable[EmailMessage]: ...


class StaticMailFetcher:
    """Replays a batch of messages that was fetched elsewhere."""

    def __init__(self, messages: Iterable[EmailMessage] = ()):
        self.messages = list(messages)

    def fetch_messages(
        self, sync_source: dict, after_uid: Optional[str]
    ) -> list:
        if after_uid is None:
            return list(self.messages)
        checkpoint = uid_sort_key(after_uid)
        return [m for m in self.messages if uid_sort_key(m.message_uid) > checkpoint]


@dataclass
class SyncResult:
    """Counters for one sync cycle of one source."""

    sync_source_id: int
    fetched: int = 0
    transactions_created: int = 0
    balances_updated: int = 0
    dead_lettered: int = 0
    skipped: int = 0
    content_mismatches: int = 0
    last_processed_uid: Optional[str] = None
    dead_letter_types: dict = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.transactions_created + self.balances_updated

    def to_dict(self) -> dict:
        result = asdict(self)
        result["processed"] = self.processed
        return result


class EmailAlertSyncService:
    """Sync cycles and status transitions for sync sources."""

    def __init__(
        self,
        processor: EmailAlertProcessor = None,
        fetcher: MailFetcher = None,
        config: IngestionConfig = None,
    ):
        self.config = config or load_ingestion_config()
        self.processor = processor or EmailAlertProcessor(config=self.config)
        self.fetcher = fetcher or StaticMailFetcher()

    def sync_source(self, sync_source_id: int) -> SyncResult:
        """
        Run one sync cycle for a source.

        Args:
            sync_source_id: Sync source ID

        Returns:
            SyncResult counters

        Raises:
            SyncSourceNotFoundError: If the source does not exist
            MailboxError: On mailbox failure (source flipped to 'error')
        """
        source = get_sync_source(sync_source_id)
        if source is None:
            raise SyncSourceNotFoundError(sync_source_id)

        result = SyncResult(
            sync_source_id=sync_source_id,
            last_processed_uid=source["last_processed_uid"],
        )
        log_extra = {"sync_source_id": sync_source_id, "bank": source["bank"]}

        if not source["is_active"]:
            logger.info("Sync source is inactive, skipping", extra=log_extra)
            return result

        checkpoint = source["last_processed_uid"]

        try:
            fetched = list(self.fetcher.fetch_messages(source, checkpoint))
        except MailboxError as e:
            self._mark_error(sync_source_id, e)
            raise

        messages = sorted(fetched, key=lambda m: uid_sort_key(m.message_uid))
        if checkpoint is not None:
            messages = [
                m for m in messages if uid_sort_key(m.message_uid) > uid_sort_key(checkpoint)
            ]

        limit = self.config.max_messages_per_sync
        if len(messages) > limit:
            logger.warning(
                f"{len(messages)} new messages exceed the per-sync limit of {limit}; "
                "the rest will be handled next cycle",
                extra=log_extra,
            )
            messages = messages[:limit]

        result.fetched = len(messages)
        logger.info(f"Sync started: {len(messages)} new messages", extra=log_extra)

        for message in messages:
            message = replace(
                message, sync_source_id=sync_source_id, user_id=source["user_id"]
            )
            outcome = self.processor.process(message)
            self.tally(result, outcome)

            if advance_sync_checkpoint(sync_source_id, message.message_uid):
                result.last_processed_uid = message.message_uid

        update_last_synced(sync_source_id)
        logger.info(
            f"Sync completed: {result.processed} records, "
            f"{result.dead_lettered} dead-lettered, {result.skipped} skipped",
            extra=log_extra,
        )
        return result

    def sync_all(self) -> list:
        """
        Sync every active, non-errored source independently.

        Returns:
            List of per-source dicts with 'success' and 'result' or 'error'
        """
        summaries = []
        for source in get_active_sync_sources():
            source_id = source["id"]
            try:
                result = self.sync_source(source_id)
                summaries.append(
                    {"sync_source_id": source_id, "success": True, "result": result.to_dict()}
                )
            except MailboxError as e:
                summaries.append(
                    {"sync_source_id": source_id, "success": False, "error": str(e)}
                )
            except Exception as e:
                logger.error(
                    f"Sync failed: {e}",
                    extra={"sync_source_id": source_id},
                    exc_info=True,
                )
                summaries.append(
                    {"sync_source_id": source_id, "success": False, "error": str(e)}
                )
        return summaries

    def reconnect(self, sync_source_id: int, checker: Callable[[dict], bool]) -> bool:
        """
        Re-check a source's mailbox and update its status.

        Args:
            sync_source_id: Sync source ID
            checker: Callable testing the mailbox connection; returns a bool
                or raises MailboxError

        Returns:
            True if the source is now active
        """
        source = get_sync_source(sync_source_id)
        if source is None:
            raise SyncSourceNotFoundError(sync_source_id)

        try:
            ok = checker(source)
        except MailboxError as e:
            self._mark_error(sync_source_id, e)
            return False

        if not ok:
            self._mark_error(sync_source_id, MailboxError("Connection check failed"))
            return False

        update_sync_source_status(sync_source_id, "active")
        logger.info("Sync source reconnected", extra={"sync_source_id": sync_source_id})
        return True

    def deactivate(self, sync_source_id: int, user_id: str) -> bool:
        """Soft-delete a source; its ledger, DLQ and records are kept."""
        return deactivate_sync_source(sync_source_id, user_id)

    def _mark_error(self, sync_source_id: int, error: MailboxError):
        message = f"{type(error).__name__}: {error}"
        update_sync_source_status(sync_source_id, "error", error=message)
        logger.error(
            f"Mailbox failure, source marked as error: {message}",
            extra={"sync_source_id": sync_source_id},
        )

    @staticmethod
    def tally(result: SyncResult, outcome):
        """Count one processing outcome into the cycle result."""
        if outcome.outcome == OUTCOME_TRANSACTION_CREATED:
            result.transactions_created += 1
        elif outcome.outcome == OUTCOME_BALANCE_UPDATED:
            result.balances_updated += 1
        elif outcome.outcome == OUTCOME_DEAD_LETTERED:
            result.dead_lettered += 1
            result.dead_letter_types[outcome.error_type] = (
                result.dead_letter_types.get(outcome.error_type, 0) + 1
            )
        elif outcome.outcome == OUTCOME_CONTENT_MISMATCH:
            result.content_mismatches += 1
        elif outcome.outcome in (OUTCOME_ALREADY_PROCESSED, OUTCOME_ALREADY_DEAD_LETTERED):
            result.skipped += 1
