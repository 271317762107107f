# Overview: Flask API routes for sales and purchases; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_coordinator, get_store
from ..services import reporting_service
from ..validation import parse_purchase_command, parse_sale_command

sales_bp = Blueprint("sales", __name__, url_prefix="/api")


@sales_bp.post("/sales")
def create_sale_route():
    """
    Record a sale: header, items, stock decrements and the customer's
    movement rows, all in one unit.

    `warnings` lists products whose stock this sale drove below zero.
    """
    try:
        command = parse_sale_command(request.get_json(silent=True))
        result = get_coordinator().record_sale(command)
        return jsonify({"id": result.id, "warnings": result.warnings}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/sales")
def list_sales_route():
    return jsonify(reporting_service.list_sales(get_store()))


@sales_bp.get("/sales/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return jsonify(reporting_service.get_sale(get_store(), sale_id))
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/purchases")
def create_purchase_route():
    try:
        command = parse_purchase_command(request.get_json(silent=True))
        result = get_coordinator().record_purchase(command)
        return jsonify({"id": result.id, "warnings": result.warnings}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/purchases")
def list_purchases_route():
    return jsonify(reporting_service.list_purchases(get_store()))


@sales_bp.get("/purchases/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        return jsonify(reporting_service.get_purchase(get_store(), purchase_id))
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
