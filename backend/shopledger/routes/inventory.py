# Overview: Flask API routes for stock adjustments and warehouses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_coordinator, get_store
from ..services import catalog_service, reporting_service
from ..validation import parse_stock_adjustment_command

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.post("/stock-adjustments")
def create_stock_adjustment_route():
    """Remove damaged, lost or miscounted units from stock."""
    try:
        command = parse_stock_adjustment_command(request.get_json(silent=True))
        result = get_coordinator().record_stock_adjustment(command)
        return jsonify({"success": True, "id": result.id, "warnings": result.warnings}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record stock adjustment")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/stock-adjustments")
def list_stock_adjustments_route():
    return jsonify(reporting_service.list_stock_adjustments(get_store()))


@inventory_bp.get("/warehouses")
def list_warehouses_route():
    return jsonify(reporting_service.list_warehouses(get_store()))


@inventory_bp.post("/warehouses")
def create_warehouse_route():
    try:
        warehouse = catalog_service.create_warehouse(get_store(), request.get_json(silent=True))
        return jsonify({"id": warehouse.id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create warehouse")
        return jsonify({"error": "Internal server error"}), 500
