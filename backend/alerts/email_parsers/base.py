"""
Email Parser Base - Message Types, Parser Contract and Shared Utilities

Contains:
- EmailMessage, the normalized input every parser receives
- Parsed value objects and the tagged ParseResult
- The EmailAlertParser protocol implemented by bank-specific parsers
- Common utility functions for body extraction, amount and date parsing
"""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Protocol, runtime_checkable

from bs4 import BeautifulSoup

ALERT_TYPES = ("TRANSACTION", "CREDIT_LIMIT", "PAYMENT", "UNKNOWN")

RESULT_TRANSACTION = "transaction"
RESULT_CREDIT_UPDATE = "credit_update"
RESULT_PAYMENT = "payment"
RESULT_UNKNOWN = "unknown"

FORWARD_MARKERS = (
    "---------- Forwarded message ---------",
    "Begin forwarded message:",
)

# Inline image references such as [https://www1.bmo.com/.../alert/logo.gif]
IMAGE_REF_RE = re.compile(r"\[https?://[^\]]+\.(?:gif|png|jpg)\]", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")


def parse_message_date(value) -> Optional[datetime]:
    """Parse an ISO-8601 or RFC 2822 date string (datetimes pass through)."""
    if value is None or isinstance(value, datetime):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        # fromisoformat rejects a trailing 'Z' before Python 3.11
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass

    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError):
        raise ValueError(f"Unrecognized message date: {value!r}") from None


@dataclass(frozen=True)
class EmailMessage:
    """Normalized bank-alert email as delivered by the mailbox fetcher."""

    message_uid: str
    subject: str = ""
    from_address: str = ""
    date: Optional[datetime] = None
    body_text: str = ""
    body_html: Optional[str] = None
    alert_type: str = "UNKNOWN"
    user_id: Optional[str] = None
    sync_source_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(
        cls, data: dict, sync_source_id: int = None, user_id: str = None
    ) -> "EmailMessage":
        """
        Build a message from a queued JSON payload.

        Accepts both snake_case keys and the camelCase keys the scheduler
        emits (uid, from, bodyText, bodyHtml).

        Raises:
            ValueError: If the UID is missing or the date is unparseable
        """
        uid = data.get("message_uid", data.get("uid"))
        if uid is None or str(uid).strip() == "":
            raise ValueError("Email payload is missing a message UID")

        date = parse_message_date(data.get("date"))
        alert_type = str(data.get("alert_type") or "UNKNOWN").upper()

        return cls(
            message_uid=str(uid).strip(),
            subject=data.get("subject") or "",
            from_address=data.get("from_address", data.get("from")) or "",
            date=date,
            body_text=data.get("body_text", data.get("bodyText")) or "",
            body_html=data.get("body_html", data.get("bodyHtml")),
            alert_type=alert_type if alert_type in ALERT_TYPES else "UNKNOWN",
            user_id=data.get("user_id", user_id),
            sync_source_id=data.get("sync_source_id", sync_source_id),
            created_at=parse_message_date(data.get("created_at")) or date,
        )

    def content_hash(self) -> str:
        """SHA-256 of the content that identifies this message."""
        digest = hashlib.sha256()
        for part in (self.subject, self.from_address, self.body_text, self.body_html):
            digest.update((part or "").encode("utf-8"))
            digest.update(b"\x00")
        return digest.hexdigest()


@dataclass(frozen=True)
class ParsedTransaction:
    """Transaction extracted from an alert (negative amount = outflow)."""

    date: Optional[datetime]
    amount: Decimal
    merchant: str
    card_last4: str
    pending: bool = False


@dataclass(frozen=True)
class ParsedCreditUpdate:
    available_credit: Decimal
    card_last4: str


@dataclass(frozen=True)
class ParsedPayment:
    amount: Decimal
    date: Optional[datetime]
    card_last4: str


@dataclass(frozen=True)
class ParseResult:
    """Tagged result of a successful parse."""

    type: str
    data: Any = field(default=None)

    @classmethod
    def transaction(cls, data: ParsedTransaction) -> "ParseResult":
        return cls(RESULT_TRANSACTION, data)

    @classmethod
    def credit_update(cls, data: ParsedCreditUpdate) -> "ParseResult":
        return cls(RESULT_CREDIT_UPDATE, data)

    @classmethod
    def payment(cls, data: ParsedPayment) -> "ParseResult":
        return cls(RESULT_PAYMENT, data)

    @classmethod
    def unknown(cls) -> "ParseResult":
        return cls(RESULT_UNKNOWN, None)


@runtime_checkable
class EmailAlertParser(Protocol):
    """
    Contract for bank-specific alert parsers.

    Attributes:
        bank: Bank code (e.g. 'bmo', 'rbc')
        account_type: Account type (e.g. 'creditcard', 'chequing')
        alert_kind: 'transactions', 'balance' or 'payment'

    can_parse() is a cheap claim based on sender and alert signature; parse()
    performs the structural capture and returns None when it fails.
    Implementations must be pure.
    """

    bank: str
    account_type: str
    alert_kind: str

    def can_parse(self, email: EmailMessage) -> bool: ...

    def parse(self, email: EmailMessage) -> Optional[ParseResult]: ...


def html_to_text(html: str) -> str:
    """Visible text of an HTML body."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    return soup.get_text("\n")


def _unwrap_forwarded(body: str) -> str:
    """Keep only the original message of a forwarded email.

    The original content starts after the first blank line that follows a
    'To:' header line.
    """
    if not any(marker in body for marker in FORWARD_MARKERS):
        return body

    lines = body.splitlines()
    for index in range(1, len(lines)):
        if lines[index - 1].lstrip().startswith("To:") and not lines[index].strip():
            return "\n".join(lines[index + 1 :])

    return body


def extract_email_body(email: EmailMessage) -> str:
    """
    Normalized body text used for pattern matching.

    Falls back to the visible text of body_html when body_text is blank,
    strips inline image references, unwraps forwarded messages, and collapses
    every whitespace run (newlines included) to a single space.
    """
    body = email.body_text or ""
    if not body.strip() and email.body_html:
        body = html_to_text(email.body_html)

    body = IMAGE_REF_RE.sub("", body)
    body = _unwrap_forwarded(body)

    return WHITESPACE_RE.sub(" ", body).strip()


def sent_by(email: EmailMessage, address: str) -> bool:
    """True if the email comes from address, directly or as a forward."""
    address = address.lower()
    if address in (email.from_address or "").lower():
        return True
    return address in (email.body_text or "").lower() or address in (
        email.body_html or ""
    ).lower()


def parse_amount(text: str) -> Optional[Decimal]:
    """Extract a Decimal amount from text like '$12.34', '2,120.13 CAD' or '€ 63,75'."""
    if not text:
        return None

    # Remove currency symbols and whitespace
    cleaned = re.sub(r"[$£€¥\s]", "", text)

    # European format: comma as decimal separator (e.g. "63,75" -> "63.75")
    if re.match(r"^\d+,\d{2}$", cleaned):
        cleaned = cleaned.replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    match = re.search(r"(\d+(?:\.\d+)?)", cleaned)
    if match:
        try:
            return Decimal(match.group(1))
        except InvalidOperation:
            pass
    return None


MONTH_PATTERN = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?"
    r"|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

DATE_PATTERNS = [
    # January 15, 2024 or Jan 15 2024
    (re.compile(rf"({MONTH_PATTERN})\s+(\d{{1,2}}),?\s+(\d{{4}})", re.IGNORECASE), "MDY_FULL"),
    # 15 January 2024
    (re.compile(rf"(\d{{1,2}})\s+({MONTH_PATTERN})\s+(\d{{4}})", re.IGNORECASE), "DMY_FULL"),
    # 2024-01-15
    (re.compile(r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})"), "YMD"),
    # 15/01/2024
    (re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})"), "DMY"),
]


def parse_date_text(text: str) -> Optional[datetime]:
    """Parse month-name and numeric date formats to a (midnight) datetime."""
    if not text:
        return None

    for pattern, fmt in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        try:
            if fmt == "MDY_FULL":
                month = MONTHS[match.group(1).lower()]
                day, year = int(match.group(2)), int(match.group(3))
            elif fmt == "DMY_FULL":
                day = int(match.group(1))
                month = MONTHS[match.group(2).lower()]
                year = int(match.group(3))
            elif fmt == "YMD":
                year, month, day = (int(g) for g in match.groups())
            else:
                day, month, year = (int(g) for g in match.groups())

            return datetime(year, month, day)
        except (ValueError, KeyError):
            continue

    return None
