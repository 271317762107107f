# Overview: Flask API routes for the general ledger and dashboard stats.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..models.ledger import LEDGER_KINDS
from ..runtime import get_coordinator, get_store
from ..services import reporting_service
from ..validation import parse_ledger_entry_command

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api")


@ledger_bp.post("/ledger")
def create_ledger_entry_route():
    try:
        command = parse_ledger_entry_command(request.get_json(silent=True))
        result = get_coordinator().record_ledger_entry(command)
        return jsonify({"id": result.id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record ledger entry")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/ledger")
def list_ledger_route():
    """Optional ?kind=revenue|expense filter."""
    kind = request.args.get("kind")
    if kind and kind not in LEDGER_KINDS:
        return jsonify({"error": f"kind must be one of: {', '.join(LEDGER_KINDS)}", "details": {}}), 400
    return jsonify(reporting_service.list_ledger_entries(get_store(), kind=kind))


@ledger_bp.get("/stats")
def stats_route():
    return jsonify(reporting_service.dashboard_stats(get_store()))
