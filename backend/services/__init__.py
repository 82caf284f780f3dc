"""
Services Package - Business Logic Layer

This package contains service modules that encapsulate business logic,
separating it from HTTP routing concerns.

Services can be called from:
- Flask routes (HTTP requests)
- Background tasks (Celery)
- Tests

Available services:
- email_alert_service: DLQ triage, balances and sync source status
"""

from . import email_alert_service

__all__ = [
    "email_alert_service",
]
