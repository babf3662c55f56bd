# Overview: Flask API routes for products and restocking.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import error_response, json_body, require_branch
from ..services import inventory_service
from ..validation import ConflictError, NotFoundError, ValidationError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError)


@products_bp.post("/")
@require_branch
def create_product_route():
    try:
        product = inventory_service.create_product(g.branch_id, json_body())
        return jsonify({"product": product.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/")
@require_branch
def list_products_route():
    in_stock_only = request.args.get("in_stock", "false").lower() == "true"
    products = inventory_service.list_products(g.branch_id, in_stock_only=in_stock_only)
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("/restock")
@require_branch
def restock_route():
    """Body: {memo_no?, stock_date?, items: [{product_id, quantity}]}"""
    try:
        memo_no, entries = inventory_service.restock_products(g.branch_id, json_body())
        current_app.logger.info("Restock %s posted (%s products)", memo_no, len(entries))
        return jsonify({"memo_no": memo_no, "entries": [e.to_dict() for e in entries]}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restock products")
        return jsonify({"error": "Internal server error"}), 500
