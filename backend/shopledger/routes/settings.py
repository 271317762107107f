# Overview: Flask API routes for display settings.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_store
from ..services import settings_service

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def get_settings_route():
    return jsonify(settings_service.get_settings(get_store()))


@settings_bp.post("")
def update_settings_route():
    try:
        settings = settings_service.update_settings(get_store(), request.get_json(silent=True))
        return jsonify({"success": True, "settings": settings}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
