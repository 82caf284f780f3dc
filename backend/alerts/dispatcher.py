"""
Parser Dispatcher

Routes an email to the first registered parser that claims it and turns the
outcome into either a Dispatched record or a DispatchFailure carrying its
DLQ error type.

Dispatch checks, in order:
1. No parser claims the email                      -> NO_PARSER
2. The claiming parser's alert kind has no handler -> UNSUPPORTED_TYPE
3. parse() returns None or raises                  -> PARSE_ERROR
4. The result type has no handler                  -> UNSUPPORTED_TYPE
5. The parsed value fails validation               -> VALIDATION_ERROR
6. No active owning account resolves               -> NO_ACCOUNT

Usage:
    from alerts.dispatcher import build_default_registry

    registry = build_default_registry()
    outcome = registry.dispatch(email, account_resolver=resolve)
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from config import IngestionConfig

from alerts.email_parsers import default_parsers
from alerts.email_parsers.base import (
    RESULT_CREDIT_UPDATE,
    RESULT_TRANSACTION,
    EmailAlertParser,
    EmailMessage,
    ParseResult,
)
from alerts.error_tracking import AlertError, DLQErrorType
from alerts.logging_config import get_logger
from alerts.validators import validate_parse_result

logger = get_logger(__name__)

HANDLED_ALERT_KINDS = ("transactions", "balance")
HANDLED_RESULT_TYPES = (RESULT_TRANSACTION, RESULT_CREDIT_UPDATE)

# Resolves the owning account ID for the claiming parser, or None
AccountResolver = Callable[[EmailAlertParser], Optional[int]]


@dataclass(frozen=True)
class Dispatched:
    """Email parsed, validated and attributed to an account."""

    parser: EmailAlertParser
    result: ParseResult
    account_id: Optional[int] = None


@dataclass(frozen=True)
class DispatchFailure:
    """Terminal per-message failure."""

    error_type: DLQErrorType
    message: str
    parser: Optional[EmailAlertParser] = None
    exception: Optional[Exception] = None

    def to_alert_error(self) -> AlertError:
        context: dict[str, Any] = {}
        if self.parser is not None:
            context = {
                "bank": self.parser.bank,
                "account_type": self.parser.account_type,
                "alert_kind": self.parser.alert_kind,
            }
        return AlertError(
            error_type=self.error_type,
            message=self.message,
            exception=self.exception,
            context=context,
        )


class ParserRegistry:
    """
    Ordered collection of parsers.

    Registration order is dispatch order: the first parser whose can_parse()
    returns True handles the email.
    """

    def __init__(self, parsers=None, config: IngestionConfig = None):
        self._parsers: list = []
        self.config = config or IngestionConfig()
        for parser in parsers or []:
            self.register(parser)

    @property
    def parsers(self) -> tuple:
        return tuple(self._parsers)

    def register(self, parser: EmailAlertParser) -> None:
        """Append a parser (lowest priority so far)."""
        if not isinstance(parser, EmailAlertParser):
            raise TypeError(f"{parser!r} does not implement the parser contract")
        self._parsers.append(parser)

    def find_parser(self, email: EmailMessage) -> Optional[EmailAlertParser]:
        """Get the first parser that claims the email."""
        for parser in self._parsers:
            if parser.can_parse(email):
                return parser
        return None

    def get_parser_for(
        self, bank: str, account_type: str, alert_kind: str
    ) -> Optional[EmailAlertParser]:
        """Direct lookup by bank, account type and alert kind."""
        for parser in self._parsers:
            if (
                parser.bank == bank.lower()
                and parser.account_type == account_type.lower()
                and parser.alert_kind == alert_kind.lower()
            ):
                return parser
        return None

    def available_banks(self) -> list:
        """Banks with at least one parser, in registration order."""
        return list(dict.fromkeys(parser.bank for parser in self._parsers))

    def available_types_for_bank(self, bank: str) -> list:
        return list(
            dict.fromkeys(
                parser.account_type
                for parser in self._parsers
                if parser.bank == bank.lower()
            )
        )

    def available_bank_types(self) -> list:
        """All bank/account-type combinations, e.g. [{'bank': 'bmo', 'types': ['creditcard']}]."""
        return [
            {"bank": bank, "types": self.available_types_for_bank(bank)}
            for bank in self.available_banks()
        ]

    def dispatch(
        self,
        email: EmailMessage,
        account_resolver: AccountResolver = None,
        config: IngestionConfig = None,
    ):
        """
        Parse, validate and attribute an email.

        Args:
            email: Normalized email message
            account_resolver: Optional callable resolving the owning account
            config: Overrides the registry's ingestion config

        Returns:
            Dispatched on success, DispatchFailure otherwise (never raises for
            per-message failures)
        """
        config = config or self.config
        log_extra = {
            "sync_source_id": email.sync_source_id,
            "message_uid": email.message_uid,
        }

        try:
            parser = self.find_parser(email)
        except Exception as e:
            return DispatchFailure(
                DLQErrorType.PARSE_ERROR,
                f"Parser claim check failed: {e}",
                exception=e,
            )

        if parser is None:
            return DispatchFailure(
                DLQErrorType.NO_PARSER,
                f"No parser available for email from {email.from_address or 'unknown sender'}",
            )

        log_extra["bank"] = parser.bank
        label = f"{parser.bank}:{parser.account_type}:{parser.alert_kind}"
        logger.debug(f"Email claimed by {label}", extra=log_extra)

        if parser.alert_kind not in HANDLED_ALERT_KINDS:
            return DispatchFailure(
                DLQErrorType.UNSUPPORTED_TYPE,
                f"Unhandled alert kind: {parser.alert_kind}",
                parser=parser,
            )

        try:
            result = parser.parse(email)
        except Exception as e:
            return DispatchFailure(
                DLQErrorType.PARSE_ERROR,
                f"Parser {label} raised: {e}",
                parser=parser,
                exception=e,
            )

        if result is None:
            return DispatchFailure(
                DLQErrorType.PARSE_ERROR,
                f"Parser failed for {parser.bank}:{parser.account_type}",
                parser=parser,
            )

        if result.type not in HANDLED_RESULT_TYPES:
            return DispatchFailure(
                DLQErrorType.UNSUPPORTED_TYPE,
                f"Unhandled email type: {result.type}",
                parser=parser,
            )

        try:
            validate_parse_result(result, config)
        except Exception as e:
            error = AlertError.from_exception(e)
            return DispatchFailure(error.error_type, error.message, parser=parser, exception=e)

        account_id = None
        if account_resolver is not None:
            account_id = account_resolver(parser)
            if account_id is None:
                return DispatchFailure(
                    DLQErrorType.NO_ACCOUNT,
                    f"No active {parser.bank}:{parser.account_type} account for sync source "
                    f"{email.sync_source_id}",
                    parser=parser,
                )

        return Dispatched(parser=parser, result=result, account_id=account_id)


def build_default_registry(config: IngestionConfig = None) -> ParserRegistry:
    """Registry with the production parsers in dispatch order."""
    return ParserRegistry(default_parsers(), config=config)
