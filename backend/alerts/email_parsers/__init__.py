"""
Email Parsers - Bank-Specific Alert Parsers

This package contains bank-specific alert parsers organized by bank:
- bmo.py: BMO credit card transactions, available credit, payments
- rbc.py: RBC chequing deposits and withdrawals

Usage:
    from alerts.email_parsers import default_parsers, extract_email_body

    for parser in default_parsers():
        if parser.can_parse(email):
            result = parser.parse(email)
"""

from .base import (
    ALERT_TYPES,
    EmailAlertParser,
    EmailMessage,
    ParsedCreditUpdate,
    ParsedPayment,
    ParsedTransaction,
    ParseResult,
    extract_email_body,
    parse_amount,
    parse_date_text,
    sent_by,
)
from .bmo import BmoCreditParser, BmoPaymentParser, BmoTransactionParser
from .rbc import RbcChequingTransactionParser


def default_parsers() -> list:
    """
    Production parsers in dispatch order.

    Parsers with narrower signatures come before broader ones from the same
    sender; the first parser that claims an email wins.
    """
    return [
        BmoCreditParser(),
        BmoPaymentParser(),
        BmoTransactionParser(),
        RbcChequingTransactionParser(),
    ]


__all__ = [
    "ALERT_TYPES",
    "EmailAlertParser",
    "EmailMessage",
    "ParsedCreditUpdate",
    "ParsedPayment",
    "ParsedTransaction",
    "ParseResult",
    "extract_email_body",
    "parse_amount",
    "parse_date_text",
    "sent_by",
    "BmoCreditParser",
    "BmoPaymentParser",
    "BmoTransactionParser",
    "RbcChequingTransactionParser",
    "default_parsers",
]
