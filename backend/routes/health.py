"""
Minimal health check endpoints

Responses expose only pass/fail per dependency, never error details.
"""

import os
from datetime import UTC, datetime

from flask import Blueprint, jsonify
from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database import get_session

health_bp = Blueprint("health", __name__, url_prefix="/api")


def check_db_connection() -> bool:
    """Test database connectivity.

    Returns:
        True if database is accessible
    """
    try:
        with get_session() as session:
            return session.execute(text("SELECT 1")).scalar() == 1
    except SQLAlchemyError:
        return False


def check_broker_connection() -> bool | None:
    """Test the Celery broker when it is Redis.

    Returns:
        True/False for a Redis broker, None for any other broker
    """
    broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    if not broker_url.startswith(("redis://", "rediss://")):
        return None

    try:
        return bool(Redis.from_url(broker_url, socket_connect_timeout=2).ping())
    except RedisError:
        return False


@health_bp.route("/health", methods=["GET"])
def health_check():
    """Health check with dependency status.

    Returns:
        200: Service is healthy
        503: A dependency is unreachable
    """
    checks = {"database": check_db_connection()}

    broker = check_broker_connection()
    if broker is not None:
        checks["broker"] = broker

    all_healthy = all(checks.values())
    health = {
        "status": "ok" if all_healthy else "degraded",
        "timestamp": datetime.now(UTC).isoformat(),
        "checks": checks,
    }
    return jsonify(health), 200 if all_healthy else 503


@health_bp.route("/ping", methods=["GET"])
def ping():
    """Ultra-minimal ping endpoint for basic uptime checks.

    Returns:
        200: {"pong": true}
    """
    return jsonify({"pong": True}), 200
