# Overview: Flask API routes for products; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..runtime import get_store
from ..services import catalog_service, reporting_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    return jsonify(reporting_service.list_products(get_store()))


@products_bp.get("/low-stock")
def low_stock_route():
    """Products at or below their min_stock_level."""
    return jsonify(reporting_service.low_stock_products(get_store()))


@products_bp.post("")
def create_product_route():
    try:
        product = catalog_service.create_product(get_store(), request.get_json(silent=True))
        return jsonify({"id": product.id, "product": product.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """
    Edit product master data.

    stock_quantity and opening_stock are rejected here; stock only moves
    through sales, purchases and stock adjustments.
    """
    try:
        product = catalog_service.update_product(get_store(), product_id, request.get_json(silent=True))
        return jsonify({"success": True, "product": product.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
