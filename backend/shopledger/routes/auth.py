# Overview: Flask API routes for login and registration.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_store
from ..services import auth_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/login")
def login_route():
    """Credential check only; returns the user's public fields."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.authenticate(get_store(), data.get("username"), data.get("password"))
        return jsonify(user.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to authenticate")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.register_user(get_store(), data, rounds=current_app.config["BCRYPT_ROUNDS"])
        return jsonify({"id": user.id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500
