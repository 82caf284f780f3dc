"""Structured error tracking with automatic classification.

This module provides error tracking for the email alert pipeline with:
- The dead-letter taxonomy (DLQErrorType) for per-message failures
- AlertError objects that log themselves and map onto DLQ rows
- Infrastructure exceptions raised by mailbox collaborators

Per-message failures are terminal and recorded in the DLQ; they never
propagate. Infrastructure failures (MailboxError subclasses) propagate and
flip the owning sync source to 'error'.

Usage:
    from alerts.error_tracking import AlertError, DLQErrorType

    try:
        result = parser.parse(email)
    except Exception as e:
        error = AlertError.from_exception(e, context={"bank": parser.bank})
        error.log(sync_source_id=email.sync_source_id, message_uid=email.message_uid)
"""

import traceback
from enum import Enum
from typing import Any

from alerts.logging_config import get_logger

logger = get_logger(__name__)


class DLQErrorType(Enum):
    """Why a message was quarantined."""

    PARSE_ERROR = "PARSE_ERROR"  # Parser claimed the email but could not extract
    NO_PARSER = "NO_PARSER"  # No registered parser claimed the email
    VALIDATION_ERROR = "VALIDATION_ERROR"  # Extracted value failed domain checks
    NO_ACCOUNT = "NO_ACCOUNT"  # No active owning account for the parser's bank/type
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"  # Recognized alert with no handling path


class AlertError:
    """Structured per-message failure.

    Attributes:
        error_type: DLQ taxonomy entry
        message: Human-readable error message
        exception: Original exception (if any)
        context: Additional context (bank, parser, field, ...)
        stack_trace: Full stack trace string
    """

    def __init__(
        self,
        error_type: DLQErrorType,
        message: str,
        exception: Exception | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.error_type = error_type
        self.message = message
        self.exception = exception
        self.context = context or {}
        self.stack_trace = None

        if exception:
            self.stack_trace = "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            )

    def __repr__(self) -> str:
        return f"<AlertError({self.error_type.value}: {self.message})>"

    def log(
        self, sync_source_id: int | None = None, message_uid: str | None = None
    ) -> None:
        """Log the failure with structured context.

        Args:
            sync_source_id: Sync source ID (optional)
            message_uid: Mailbox UID (optional)
        """
        logger.warning(
            f"[{self.error_type.value}] {self.message}",
            extra={
                "sync_source_id": sync_source_id,
                "message_uid": message_uid,
                "bank": self.context.get("bank"),
            },
            exc_info=self.exception,
        )

    def to_dlq_fields(self) -> dict:
        """Fields of the DLQ row describing this failure."""
        return {
            "error_type": self.error_type.value,
            "error_message": self.message,
            "error_stack": self.stack_trace,
        }

    @classmethod
    def from_exception(
        cls,
        exception: Exception,
        context: dict[str, Any] | None = None,
    ) -> "AlertError":
        """Auto-classify a failure raised while parsing or validating.

        Validation failures (ValueError, ValidationError) map to
        VALIDATION_ERROR; anything else a parser raises is a PARSE_ERROR.

        Args:
            exception: Exception object to classify
            context: Additional context dict

        Returns:
            AlertError instance with auto-classified type
        """
        exception_name = type(exception).__name__

        if isinstance(exception, ValueError) or exception_name == "ValidationError":
            error_type = DLQErrorType.VALIDATION_ERROR
        else:
            error_type = DLQErrorType.PARSE_ERROR

        return cls(
            error_type=error_type,
            message=str(exception) or exception_name,
            exception=exception,
            context=context,
        )


class MailboxError(Exception):
    """Infrastructure failure talking to a monitored mailbox."""


class MailboxAuthError(MailboxError):
    """Mailbox rejected the stored credentials."""


class MailboxConnectionError(MailboxError):
    """Mailbox could not be reached."""


class SyncSourceNotFoundError(LookupError):
    """Referenced sync source does not exist."""

    def __init__(self, sync_source_id: int):
        self.sync_source_id = sync_source_id
        super().__init__(f"Sync source {sync_source_id} not found")


class ContentHashMismatchError(Exception):
    """A processed UID reappeared with different content (mailbox UID reuse)."""

    def __init__(
        self, sync_source_id: int, message_uid: str, stored_hash: str, new_hash: str
    ):
        self.sync_source_id = sync_source_id
        self.message_uid = message_uid
        self.stored_hash = stored_hash
        self.new_hash = new_hash
        super().__init__(
            f"Message {message_uid} on sync source {sync_source_id} was already "
            f"processed with different content ({stored_hash[:12]} != {new_hash[:12]})"
        )
