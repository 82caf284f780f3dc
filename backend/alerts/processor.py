"""
Email Alert Processor

Turns one EmailMessage into exactly one terminal outcome:
- a Transaction or BalanceUpdate plus its idempotency ledger row, or
- a dead-letter (DLQ) row describing why it could not be converted.

The ledger row and the record derived from the message are written in the
same session and commit together. A message already in the ledger or the DLQ
is never handled again. Database errors roll back and propagate.
"""

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Optional

from config import IngestionConfig, load_ingestion_config
from database import (
    claim_message,
    create_balance_update,
    create_dlq_entry,
    create_transaction,
    get_processed_email,
    get_session,
    get_sync_source_row,
    has_dlq_entry,
    resolve_owning_account_id,
)
from database.models import Account

from alerts.dispatcher import DispatchFailure, ParserRegistry, build_default_registry
from alerts.email_parsers.base import RESULT_TRANSACTION, EmailMessage
from alerts.error_tracking import (
    AlertError,
    ContentHashMismatchError,
    SyncSourceNotFoundError,
)
from alerts.logging_config import get_logger

logger = get_logger(__name__)

OUTCOME_TRANSACTION_CREATED = "transaction_created"
OUTCOME_BALANCE_UPDATED = "balance_updated"
OUTCOME_DEAD_LETTERED = "dead_lettered"
OUTCOME_ALREADY_PROCESSED = "already_processed"
OUTCOME_ALREADY_DEAD_LETTERED = "already_dead_lettered"
OUTCOME_CONTENT_MISMATCH = "content_mismatch"

OUTCOMES = (
    OUTCOME_TRANSACTION_CREATED,
    OUTCOME_BALANCE_UPDATED,
    OUTCOME_DEAD_LETTERED,
    OUTCOME_ALREADY_PROCESSED,
    OUTCOME_ALREADY_DEAD_LETTERED,
    OUTCOME_CONTENT_MISMATCH,
)


@dataclass(frozen=True)
class ProcessResult:
    """Terminal outcome for one message."""

    outcome: str
    sync_source_id: int
    message_uid: str
    record_id: Optional[int] = None
    processed_email_id: Optional[int] = None
    dlq_id: Optional[int] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def created_record(self) -> bool:
        return self.outcome in (OUTCOME_TRANSACTION_CREATED, OUTCOME_BALANCE_UPDATED)

    def to_dict(self) -> dict:
        return asdict(self)


class EmailAlertProcessor:
    """Idempotent per-message pipeline."""

    def __init__(
        self, registry: ParserRegistry = None, config: IngestionConfig = None
    ):
        self.config = config or load_ingestion_config()
        self.registry = registry or build_default_registry(self.config)

    def process(self, email: EmailMessage) -> ProcessResult:
        """
        Process a single email.

        Args:
            email: Message with sync_source_id set

        Returns:
            ProcessResult describing the terminal outcome

        Raises:
            SyncSourceNotFoundError: If the sync source does not exist
            SQLAlchemyError: On persistence failure (after rollback)
        """
        if email.sync_source_id is None:
            raise ValueError(f"Email {email.message_uid} has no sync_source_id")

        sync_source_id = email.sync_source_id
        uid = email.message_uid
        log_extra = {"sync_source_id": sync_source_id, "message_uid": uid}
        content_hash = email.content_hash()

        with get_session() as session:
            source = get_sync_source_row(session, sync_source_id)
            if source is None:
                raise SyncSourceNotFoundError(sync_source_id)

            account = session.get(Account, source.account_id)
            user_id = account.user_id

            existing = get_processed_email(session, sync_source_id, uid)
            if existing is not None:
                if (
                    self.config.verify_content_hash
                    and existing.content_hash
                    and existing.content_hash != content_hash
                ):
                    error = ContentHashMismatchError(
                        sync_source_id, uid, existing.content_hash, content_hash
                    )
                    logger.error(str(error), extra=log_extra)
                    return ProcessResult(
                        OUTCOME_CONTENT_MISMATCH,
                        sync_source_id,
                        uid,
                        processed_email_id=existing.id,
                        error_message=str(error),
                    )

                logger.debug("Email already processed, skipping", extra=log_extra)
                return ProcessResult(
                    OUTCOME_ALREADY_PROCESSED,
                    sync_source_id,
                    uid,
                    processed_email_id=existing.id,
                )

            if has_dlq_entry(session, sync_source_id, uid):
                logger.debug("Email already dead-lettered, skipping", extra=log_extra)
                return ProcessResult(OUTCOME_ALREADY_DEAD_LETTERED, sync_source_id, uid)

            outcome = self.registry.dispatch(
                email,
                account_resolver=lambda parser: resolve_owning_account_id(
                    session, source, parser.bank, parser.account_type
                ),
                config=self.config,
            )

            if isinstance(outcome, DispatchFailure):
                return self._dead_letter(
                    session, email, user_id, outcome.to_alert_error()
                )

            processed_email_id = claim_message(
                session, user_id, sync_source_id, uid, content_hash
            )
            if processed_email_id is None:
                # Lost the claim to a concurrent attempt
                session.rollback()
                logger.info("Email claimed concurrently, skipping", extra=log_extra)
                return ProcessResult(OUTCOME_ALREADY_PROCESSED, sync_source_id, uid)

            log_extra["bank"] = outcome.parser.bank
            data = outcome.result.data

            if outcome.result.type == RESULT_TRANSACTION:
                record_id = create_transaction(
                    session,
                    user_id=user_id,
                    account_id=outcome.account_id,
                    sync_source_id=sync_source_id,
                    processed_email_id=processed_email_id,
                    amount=data.amount,
                    transaction_date=data.date,
                    name=data.merchant or "Unknown Merchant",
                    merchant_name=data.merchant or None,
                    card_last4=data.card_last4,
                    pending=data.pending,
                    iso_currency_code=account.iso_currency_code
                    or self.config.default_currency,
                )
                session.commit()
                logger.info(
                    f"Created transaction: {data.merchant} {abs(data.amount):.2f}",
                    extra=log_extra,
                )
                return ProcessResult(
                    OUTCOME_TRANSACTION_CREATED,
                    sync_source_id,
                    uid,
                    record_id=record_id,
                    processed_email_id=processed_email_id,
                )

            record_id = create_balance_update(
                session,
                user_id=user_id,
                account_id=outcome.account_id,
                sync_source_id=sync_source_id,
                processed_email_id=processed_email_id,
                balance_type="available_balance",
                new_balance=data.available_credit,
                update_date=email.date or datetime.now(UTC),
                update_source="email",
                source_detail=source.name.lower(),
            )
            session.commit()
            logger.info(
                f"Updated available credit: {data.available_credit:.2f}",
                extra=log_extra,
            )
            return ProcessResult(
                OUTCOME_BALANCE_UPDATED,
                sync_source_id,
                uid,
                record_id=record_id,
                processed_email_id=processed_email_id,
            )

    def dead_letter(self, email: EmailMessage, error: AlertError) -> ProcessResult:
        """
        Quarantine a message that failed before it could be dispatched.

        Used for delivered payloads that could not be normalized into a
        message. A UID already in the ledger or the DLQ is left alone.

        Raises:
            SyncSourceNotFoundError: If the sync source does not exist
        """
        sync_source_id = email.sync_source_id
        uid = email.message_uid

        with get_session() as session:
            source = get_sync_source_row(session, sync_source_id)
            if source is None:
                raise SyncSourceNotFoundError(sync_source_id)

            if get_processed_email(session, sync_source_id, uid) is not None:
                return ProcessResult(OUTCOME_ALREADY_PROCESSED, sync_source_id, uid)

            if has_dlq_entry(session, sync_source_id, uid):
                return ProcessResult(OUTCOME_ALREADY_DEAD_LETTERED, sync_source_id, uid)

            user_id = session.get(Account, source.account_id).user_id
            return self._dead_letter(session, email, user_id, error)

    def _dead_letter(
        self, session, email: EmailMessage, user_id: str, error: AlertError
    ) -> ProcessResult:
        error.log(sync_source_id=email.sync_source_id, message_uid=email.message_uid)

        dlq_id = create_dlq_entry(
            session,
            user_id=user_id,
            sync_source_id=email.sync_source_id,
            message_uid=email.message_uid,
            subject=email.subject,
            from_address=email.from_address,
            date=email.date,
            body_text=email.body_text,
            body_html=email.body_html,
            **error.to_dlq_fields(),
        )
        session.commit()

        if dlq_id is None:
            return ProcessResult(
                OUTCOME_ALREADY_DEAD_LETTERED, email.sync_source_id, email.message_uid
            )

        return ProcessResult(
            OUTCOME_DEAD_LETTERED,
            email.sync_source_id,
            email.message_uid,
            dlq_id=dlq_id,
            error_type=error.error_type.value,
            error_message=error.message,
        )
