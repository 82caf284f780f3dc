"""
Parsed Value Validation

Domain checks applied to a parser's output before anything is persisted.

All validators raise ValidationError (a ValueError) with the offending field,
the provided value and what was expected.
"""

import re
from decimal import Decimal
from typing import Any

from config import IngestionConfig

from alerts.email_parsers.base import (
    RESULT_CREDIT_UPDATE,
    RESULT_TRANSACTION,
    ParsedCreditUpdate,
    ParsedTransaction,
    ParseResult,
)

CARD_LAST4_RE = re.compile(r"^\d{4}$")


class ValidationError(ValueError):
    """Custom exception for validation errors with structured data."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        provided_value: Any | None = None,
        expected: str | None = None,
    ):
        self.message = message
        self.field = field
        self.provided_value = provided_value
        self.expected = expected
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dict for API and DLQ reporting."""
        result = {"error": "validation_error", "message": self.message}

        if self.field:
            result["field"] = self.field

        if self.provided_value is not None:
            result["provided"] = str(self.provided_value)

        if self.expected:
            result["expected"] = self.expected

        return result


def validate_card_last4(card_last4: str, field_name: str = "card_last4"):
    """
    Validate the last four digits of a card or account number.

    Raises:
        ValidationError: If the value is not exactly four digits
    """
    if not isinstance(card_last4, str) or not CARD_LAST4_RE.match(card_last4):
        raise ValidationError(
            message=f"{field_name} must be exactly four digits",
            field=field_name,
            provided_value=card_last4,
            expected="four digits",
        )


def validate_amount(amount, max_amount: Decimal, field_name: str = "amount"):
    """
    Validate a transaction amount.

    Args:
        amount: Signed Decimal amount
        max_amount: Largest accepted magnitude (exclusive)
        field_name: Name of the field (for error messages)

    Raises:
        ValidationError: If amount is not a finite, non-zero Decimal below max_amount
    """
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise ValidationError(
            message=f"{field_name} must be a finite decimal",
            field=field_name,
            provided_value=amount,
            expected="finite decimal",
        )

    if amount == 0:
        raise ValidationError(
            message=f"{field_name} must not be zero",
            field=field_name,
            provided_value=amount,
            expected="non-zero amount",
        )

    if abs(amount) >= max_amount:
        raise ValidationError(
            message=f"{field_name} exceeds the maximum of {max_amount}",
            field=field_name,
            provided_value=amount,
            expected=f"magnitude below {max_amount}",
        )


def validate_transaction(txn: ParsedTransaction, config: IngestionConfig):
    """Validate a parsed transaction."""
    validate_amount(txn.amount, config.max_transaction_amount)

    if not txn.merchant or not txn.merchant.strip():
        raise ValidationError(
            message="merchant must not be empty",
            field="merchant",
            provided_value=txn.merchant,
            expected="non-empty merchant name",
        )

    validate_card_last4(txn.card_last4)

    if txn.date is None:
        raise ValidationError(
            message="transaction date is missing",
            field="date",
            expected="transaction date",
        )


def validate_credit_update(update: ParsedCreditUpdate):
    """Validate a parsed available-credit update."""
    credit = update.available_credit
    if not isinstance(credit, Decimal) or not credit.is_finite() or credit < 0:
        raise ValidationError(
            message="available_credit must be a non-negative decimal",
            field="available_credit",
            provided_value=credit,
            expected="non-negative decimal",
        )

    validate_card_last4(update.card_last4)


def validate_parse_result(result: ParseResult, config: IngestionConfig):
    """
    Validate the payload of a handled parse result.

    Args:
        result: Transaction or credit_update result
        config: Ingestion configuration (amount ceiling)

    Raises:
        ValidationError: If the payload fails a domain check
    """
    if result.type == RESULT_TRANSACTION:
        validate_transaction(result.data, config)
    elif result.type == RESULT_CREDIT_UPDATE:
        validate_credit_update(result.data)
    else:
        raise ValidationError(
            message=f"Cannot validate result of type {result.type}",
            field="type",
            provided_value=result.type,
            expected="transaction or credit_update",
        )
