# Overview: Flask API routes for full-store backup export and restore.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_coordinator, get_store
from ..services import backup_service

backup_bp = Blueprint("backup", __name__, url_prefix="/api/backup")


@backup_bp.get("/export")
def export_route():
    """
    Complete snapshot of every table.

    Taken inside a unit so no writer interleaves with the read.
    """
    try:
        with get_store().unit_of_work("export_backup") as session:
            snapshot = backup_service.export_snapshot(session)
        return jsonify(snapshot), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export backup")
        return jsonify({"error": "Internal server error"}), 500


@backup_bp.post("/import")
def import_route():
    """
    Replace the whole store with the posted snapshot.

    400 for a malformed or partial snapshot (nothing deleted), 409 for a
    constraint violation (rolled back).
    """
    try:
        counts = get_coordinator().restore_backup(request.get_json(silent=True))
        return jsonify({"success": True, "tables": counts}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to import backup")
        return jsonify({"error": "Internal server error"}), 500
