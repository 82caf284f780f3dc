"""
Email Alert Ingestion Configuration
Handles environment variables and validation for the alert pipeline
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

# Load from .env in the backend directory
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=False)


TRUTHY = ("true", "1", "yes")


@dataclass
class IngestionConfig:
    """Ingestion pipeline configuration object"""
    max_transaction_amount: Decimal = Decimal("1000000")
    verify_content_hash: bool = True
    max_messages_per_sync: int = 500
    default_currency: str = "CAD"

    def __post_init__(self):
        """Validate configuration after initialization"""
        self.validate()

    def validate(self):
        """Validate ingestion configuration"""
        if self.max_transaction_amount <= 0:
            raise ValueError("EMAIL_ALERTS_MAX_TRANSACTION_AMOUNT must be greater than 0")

        if self.max_messages_per_sync <= 0:
            raise ValueError("EMAIL_ALERTS_MAX_MESSAGES_PER_SYNC must be greater than 0")

        if len(self.default_currency) != 3 or not self.default_currency.isalpha():
            raise ValueError(
                f"Invalid EMAIL_ALERTS_DEFAULT_CURRENCY: {self.default_currency} "
                "(expected an ISO 4217 code like 'CAD')"
            )


def load_ingestion_config() -> IngestionConfig:
    """
    Load ingestion configuration from environment variables.

    Environment Variables:
    - EMAIL_ALERTS_MAX_TRANSACTION_AMOUNT: Largest accepted transaction magnitude (default: 1000000)
    - EMAIL_ALERTS_VERIFY_CONTENT_HASH: Detect mailbox UID reuse (default: true)
    - EMAIL_ALERTS_MAX_MESSAGES_PER_SYNC: Safety limit per sync cycle (default: 500)
    - EMAIL_ALERTS_DEFAULT_CURRENCY: Currency stamped on transactions (default: CAD)

    Returns:
        IngestionConfig object

    Raises:
        ValueError: If a variable is present but malformed
    """
    amount_str = os.getenv("EMAIL_ALERTS_MAX_TRANSACTION_AMOUNT", "1000000")
    try:
        max_amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(
            f"Invalid EMAIL_ALERTS_MAX_TRANSACTION_AMOUNT: {amount_str}"
        ) from None

    limit_str = os.getenv("EMAIL_ALERTS_MAX_MESSAGES_PER_SYNC", "500")
    try:
        max_messages = int(limit_str)
    except ValueError:
        raise ValueError(
            f"Invalid EMAIL_ALERTS_MAX_MESSAGES_PER_SYNC: {limit_str}"
        ) from None

    return IngestionConfig(
        max_transaction_amount=max_amount,
        verify_content_hash=os.getenv("EMAIL_ALERTS_VERIFY_CONTENT_HASH", "true").lower() in TRUTHY,
        max_messages_per_sync=max_messages,
        default_currency=os.getenv("EMAIL_ALERTS_DEFAULT_CURRENCY", "CAD").upper(),
    )
