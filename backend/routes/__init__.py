"""Routes package for API endpoints."""

from routes.email_alerts import email_alerts_bp
from routes.health import health_bp

__all__ = [
    "email_alerts_bp",
    "health_bp",
]
