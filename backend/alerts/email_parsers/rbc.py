"""
RBC Alert Parsers

Handles RBC Royal Bank chequing alerts sent from
rbcroyalbankalerts@alerts.rbc.com.
"""

import re
from typing import Optional

from alerts.logging_config import get_logger

from .base import (
    EmailMessage,
    ParsedTransaction,
    ParseResult,
    extract_email_body,
    parse_amount,
    parse_date_text,
    sent_by,
)

logger = get_logger(__name__)

RBC_ALERTS_ADDRESS = "rbcroyalbankalerts@alerts.rbc.com"

_MONTHS = (
    r"(?:January|February|March|April|May|June|July|August|September|October"
    r"|November|December)"
)

# Asterisks around the date label are optional (*Transaction Date:* or Transaction Date:)
_DATE_SUFFIX = rf".*?\*?Transaction Date:\*?\s*({_MONTHS}\s+\d{{1,2}},\s+\d{{4}})"


class RbcChequingTransactionParser:
    """
    RBC chequing deposit and withdrawal alerts.

    Deposit pattern:
    "A deposit of $123.45 was made to your bank account ********1234 ...
    Transaction Date: January 01, 2026"

    Withdrawal pattern:
    "A withdrawal of $567.89 was debited from your bank account ********1234 ...
    Transaction Date: January 01, 2026"
    """

    bank = "rbc"
    account_type = "chequing"
    alert_kind = "transactions"

    SIGNATURE = re.compile(
        r"a (?:deposit|withdrawal) of \$[\d,.]+\s+was (?:made to|debited from) your bank account",
        re.IGNORECASE,
    )
    DEPOSIT_PATTERN = re.compile(
        r"a deposit of \$([\d,]+\.\d{2})\s+was made to your bank account \*{8}(\d{4})"
        + _DATE_SUFFIX,
        re.IGNORECASE | re.DOTALL,
    )
    WITHDRAWAL_PATTERN = re.compile(
        r"a withdrawal of \$([\d,]+\.\d{2})\s+was debited from your bank account \*{8}(\d{4})"
        + _DATE_SUFFIX,
        re.IGNORECASE | re.DOTALL,
    )

    def can_parse(self, email: EmailMessage) -> bool:
        if not sent_by(email, RBC_ALERTS_ADDRESS):
            return False
        return bool(self.SIGNATURE.search(extract_email_body(email)))

    def parse(self, email: EmailMessage) -> Optional[ParseResult]:
        body = extract_email_body(email)

        is_deposit = True
        match = self.DEPOSIT_PATTERN.search(body)
        if not match:
            is_deposit = False
            match = self.WITHDRAWAL_PATTERN.search(body)

        if not match:
            logger.debug(
                "RBC alert claimed but no deposit/withdrawal pattern matched",
                extra={"message_uid": email.message_uid, "bank": self.bank},
            )
            return None

        amount_str, account_last4, date_str = match.groups()

        amount = parse_amount(amount_str)
        date = parse_date_text(date_str)
        if amount is None or date is None:
            return None

        return ParseResult.transaction(
            ParsedTransaction(
                date=date,
                amount=abs(amount) if is_deposit else -abs(amount),
                merchant="RBC Deposit" if is_deposit else "RBC Withdrawal",
                card_last4=account_last4,
                pending=False,
            )
        )
