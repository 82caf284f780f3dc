"""
Email Alert Routes - Flask Blueprint

Read and triage endpoints for the alert ingestion pipeline: dead-letter
entries, latest balances and sync source status.
Routes are thin controllers that delegate to email_alert_service.

Authentication is handled upstream; every call is scoped by the user_id
query parameter.
"""

from flask import Blueprint, jsonify, request

from alerts.logging_config import get_logger
from database.models.ledger import BALANCE_TYPES
from services import email_alert_service

logger = get_logger(__name__)

email_alerts_bp = Blueprint("email_alerts", __name__, url_prefix="/api/email-alerts")


def _require_user_id():
    user_id = request.args.get("user_id", "").strip()
    if not user_id:
        raise ValueError("user_id query parameter is required")
    return user_id


# ============================================================================
# Dead-letter queue
# ============================================================================


@email_alerts_bp.route("/dlq", methods=["GET"])
def list_dlq():
    """
    List quarantined emails for a user, newest first.

    Query params:
        user_id (str): Owning user ID
        limit (int): Page size (default: 50)
        offset (int): Page offset (default: 0)
        error_type (str): Optional DLQ error type filter

    Returns:
        Entries with paging info and per-type counts
    """
    try:
        user_id = _require_user_id()
        limit = int(request.args.get("limit", 50))
        offset = int(request.args.get("offset", 0))
        error_type = request.args.get("error_type")

        result = email_alert_service.list_dlq_entries(user_id, limit, offset, error_type)
        return jsonify(result)

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"List DLQ error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


@email_alerts_bp.route("/dlq/<int:dlq_id>", methods=["GET"])
def get_dlq_entry(dlq_id):
    """
    Get a quarantined email with its snapshot and error details.

    Path params:
        dlq_id (int): DLQ entry ID

    Returns:
        DLQ entry or 404
    """
    try:
        user_id = _require_user_id()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        return jsonify(email_alert_service.get_dlq_entry(dlq_id, user_id))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        logger.error(f"Get DLQ entry error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


@email_alerts_bp.route("/dlq/<int:dlq_id>", methods=["DELETE"])
def delete_dlq_entry(dlq_id):
    """
    Delete a quarantined email after triage.

    Path params:
        dlq_id (int): DLQ entry ID

    Returns:
        Success dict or 404
    """
    try:
        user_id = _require_user_id()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        return jsonify(email_alert_service.delete_dlq_entry(dlq_id, user_id))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        logger.error(f"Delete DLQ entry error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


# ============================================================================
# Balances
# ============================================================================


@email_alerts_bp.route("/accounts/<int:account_id>/balance", methods=["GET"])
def get_account_balance(account_id):
    """
    Get the latest balance reported for an account.

    Path params:
        account_id (int): Account ID

    Query params:
        user_id (str): Owning user ID
        balance_type (str): 'available_balance' (default) or 'current_balance'

    Returns:
        Balance dict (balance is null when never reported) or 404
    """
    try:
        user_id = _require_user_id()
        balance_type = request.args.get("balance_type", "available_balance")
        if balance_type not in BALANCE_TYPES:
            raise ValueError(f"Invalid balance type: {balance_type}")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        return jsonify(
            email_alert_service.get_account_balance(account_id, user_id, balance_type)
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        logger.error(f"Get account balance error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


# ============================================================================
# Sync sources
# ============================================================================


@email_alerts_bp.route("/sync-sources/<int:sync_source_id>", methods=["GET"])
def get_sync_source(sync_source_id):
    """
    Get sync source status (credentials are never returned).

    Path params:
        sync_source_id (int): Sync source ID

    Returns:
        Sync source status or 404
    """
    try:
        user_id = _require_user_id()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        return jsonify(
            email_alert_service.get_sync_source_status(
                sync_source_id, user_id
            )
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        logger.error(f"Get sync source error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


@email_alerts_bp.route("/sync-sources/<int:sync_source_id>", methods=["DELETE"])
def deactivate_sync_source(sync_source_id):
    """
    Deactivate a sync source (soft delete; history is kept).

    Path params:
        sync_source_id (int): Sync source ID

    Returns:
        Success dict or 404
    """
    try:
        user_id = _require_user_id()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        return jsonify(
            email_alert_service.deactivate_sync_source(sync_source_id, user_id)
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        logger.error(f"Deactivate sync source error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500
