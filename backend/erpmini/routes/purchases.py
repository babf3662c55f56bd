# Overview: Flask API routes for material purchases.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import error_response, json_body, list_limit, require_branch
from ..services import purchase_service
from ..validation import ConflictError, NotFoundError, ValidationError, parse_date, parse_id


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")

DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError)


@purchases_bp.post("/")
@require_branch
def create_purchase_route():
    try:
        purchase = purchase_service.create_purchase(g.branch_id, json_body())
        current_app.logger.info("Purchase %s recorded", purchase.memo_no)
        return jsonify({"purchase": purchase.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:purchase_id>")
@require_branch
def update_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.update_purchase(g.branch_id, purchase_id, json_body())
        return jsonify({"purchase": purchase.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/")
@require_branch
def list_purchases_route():
    try:
        purchases = purchase_service.list_purchases(
            g.branch_id,
            start_date=parse_date(request.args.get("start_date"), "start_date", required=False),
            end_date=parse_date(request.args.get("end_date"), "end_date", required=False),
            supplier_id=parse_id(request.args.get("supplier_id"), "supplier_id", required=False),
            limit=list_limit(),
        )
        return jsonify({"purchases": [p.to_dict() for p in purchases], "count": len(purchases)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
