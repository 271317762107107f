# Overview: Flask API routes for repair jobs.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_store
from ..services import maintenance_service

maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")


@maintenance_bp.get("")
def list_jobs_route():
    return jsonify([job.to_dict() for job in maintenance_service.list_jobs(get_store())])


@maintenance_bp.post("")
def create_job_route():
    try:
        job = maintenance_service.create_job(get_store(), request.get_json(silent=True))
        return jsonify({"id": job.id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create maintenance job")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.put("/<int:job_id>")
def update_job_route(job_id: int):
    try:
        job = maintenance_service.update_job_status(get_store(), job_id, request.get_json(silent=True))
        return jsonify({"success": True, "job": job.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update maintenance job")
        return jsonify({"error": "Internal server error"}), 500
