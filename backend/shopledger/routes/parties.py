# Overview: Flask API routes for customers and suppliers, their statements and payments.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_coordinator, get_store
from ..services import catalog_service, reporting_service
from ..validation import parse_payment_command

parties_bp = Blueprint("parties", __name__, url_prefix="/api")


# =============================================================================
# CUSTOMERS
# =============================================================================


@parties_bp.get("/customers")
def list_customers_route():
    return jsonify(reporting_service.list_customers(get_store()))


@parties_bp.post("/customers")
def create_customer_route():
    try:
        customer_id = catalog_service.create_customer(get_coordinator(), request.get_json(silent=True))
        return jsonify({"id": customer_id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@parties_bp.get("/customers/<int:customer_id>/statement")
def customer_statement_route(customer_id: int):
    try:
        return jsonify(reporting_service.customer_statement(get_store(), customer_id))
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@parties_bp.post("/payments")
def customer_payment_route():
    try:
        command = parse_payment_command(request.get_json(silent=True), "customer_id")
        result = get_coordinator().record_customer_payment(command)
        return jsonify({"success": True, "id": result.id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record customer payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SUPPLIERS
# =============================================================================


@parties_bp.get("/suppliers")
def list_suppliers_route():
    return jsonify(reporting_service.list_suppliers(get_store()))


@parties_bp.post("/suppliers")
def create_supplier_route():
    try:
        supplier = catalog_service.create_supplier(get_store(), request.get_json(silent=True))
        return jsonify({"id": supplier.id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@parties_bp.get("/suppliers/<int:supplier_id>/statement")
def supplier_statement_route(supplier_id: int):
    try:
        return jsonify(reporting_service.supplier_statement(get_store(), supplier_id))
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@parties_bp.post("/supplier-payments")
def supplier_payment_route():
    try:
        command = parse_payment_command(request.get_json(silent=True), "supplier_id")
        result = get_coordinator().record_supplier_payment(command)
        return jsonify({"success": True, "id": result.id}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record supplier payment")
        return jsonify({"error": "Internal server error"}), 500
