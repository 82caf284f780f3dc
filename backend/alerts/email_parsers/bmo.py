"""
BMO Alert Parsers

Handles BMO credit card alerts sent from bmoalerts@bmo.com:
- Transaction alerts ("a transaction in the amount of $12.34 at STORE was approved ...")
- Available credit alerts ("You have $1,234.56 of available credit left ...")
- Payment received alerts ("a payment of $500.00 was received ...")
"""

import re
from typing import Optional

from .base import (
    EmailMessage,
    ParsedCreditUpdate,
    ParsedPayment,
    ParsedTransaction,
    ParseResult,
    extract_email_body,
    parse_amount,
    sent_by,
)

BMO_ALERTS_ADDRESS = "bmoalerts@bmo.com"


class BmoTransactionParser:
    """
    BMO credit card transaction alerts.

    Pattern:
    "a transaction in the amount of $12.34 at EXAMPLE STORE was approved on
    your BMO® Credit Card ending in 5678"

    Purchases are outflows, so the amount is always stored negative. A
    declined transaction moved no money and is reported as unknown.
    """

    bank = "bmo"
    account_type = "creditcard"
    alert_kind = "transactions"

    SIGNATURE = re.compile(r"a transaction in the amount of", re.IGNORECASE)
    TRANSACTION_PATTERN = re.compile(
        r"a transaction in the amount of \$([\d,]+\.\d{2}) at (.+?)\s+was\s+"
        r"(approved|declined).+?BMO®?\s*Credit\s+Card\s+ending\s+in\s+(\d{4})",
        re.IGNORECASE | re.DOTALL,
    )

    def can_parse(self, email: EmailMessage) -> bool:
        if not sent_by(email, BMO_ALERTS_ADDRESS):
            return False
        return bool(self.SIGNATURE.search(extract_email_body(email)))

    def parse(self, email: EmailMessage) -> Optional[ParseResult]:
        match = self.TRANSACTION_PATTERN.search(extract_email_body(email))
        if not match:
            return None

        amount_str, merchant, status, card_last4 = match.groups()

        amount = parse_amount(amount_str)
        if amount is None:
            return None

        if status.lower() == "declined":
            return ParseResult.unknown()

        return ParseResult.transaction(
            ParsedTransaction(
                # BMO alerts carry no transaction date; the email date is the closest
                date=email.date,
                amount=-abs(amount),
                merchant=" ".join(merchant.split()),
                card_last4=card_last4,
                pending=False,
            )
        )


class BmoCreditParser:
    """
    BMO available credit alerts.

    Pattern:
    "You have $1,234.56 of available credit left on your BMO credit card
    ending in 5678"
    """

    bank = "bmo"
    account_type = "creditcard"
    alert_kind = "balance"

    SIGNATURE = re.compile(r"of available credit left on your BMO", re.IGNORECASE)
    CREDIT_PATTERN = re.compile(
        r"You have \*?\$([\d,]+\.\d{2})\*? of available credit left on your "
        r"BMO credit card\s+ending in \*?(\d{4})\*?",
        re.IGNORECASE | re.DOTALL,
    )

    def can_parse(self, email: EmailMessage) -> bool:
        if not sent_by(email, BMO_ALERTS_ADDRESS):
            return False
        return bool(self.SIGNATURE.search(extract_email_body(email)))

    def parse(self, email: EmailMessage) -> Optional[ParseResult]:
        match = self.CREDIT_PATTERN.search(extract_email_body(email))
        if not match:
            return None

        amount_str, card_last4 = match.groups()
        available_credit = parse_amount(amount_str)
        if available_credit is None:
            return None

        return ParseResult.credit_update(
            ParsedCreditUpdate(available_credit=available_credit, card_last4=card_last4)
        )


class BmoPaymentParser:
    """
    BMO payment received alerts.

    Pattern:
    "a payment of $500.00 was received on your BMO® Credit Card ending in 5678"

    Recognized so the alert is quarantined as unsupported rather than
    unclaimed; payments have no handling path yet.
    """

    bank = "bmo"
    account_type = "creditcard"
    alert_kind = "payment"

    SIGNATURE = re.compile(r"a payment (?:in the amount )?of \$", re.IGNORECASE)
    PAYMENT_PATTERN = re.compile(
        r"a payment (?:in the amount )?of \$([\d,]+\.\d{2}).+?"
        r"BMO®?\s*Credit\s+Card\s+ending\s+in\s+(\d{4})",
        re.IGNORECASE | re.DOTALL,
    )

    def can_parse(self, email: EmailMessage) -> bool:
        if not sent_by(email, BMO_ALERTS_ADDRESS):
            return False
        return bool(self.SIGNATURE.search(extract_email_body(email)))

    def parse(self, email: EmailMessage) -> Optional[ParseResult]:
        match = self.PAYMENT_PATTERN.search(extract_email_body(email))
        if not match:
            return None

        amount_str, card_last4 = match.groups()
        amount = parse_amount(amount_str)
        if amount is None:
            return None

        # Payments reduce the card balance: an inflow to the account
        return ParseResult.payment(
            ParsedPayment(amount=abs(amount), date=email.date, card_last4=card_last4)
        )
