# Overview: Flask API routes for ready-made sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import error_response, json_body, list_limit, require_branch
from ..services import sales_service
from ..validation import ConflictError, NotFoundError, ValidationError, parse_date, parse_id


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError)


@sales_bp.post("/")
@require_branch
def create_sale_route():
    try:
        sale = sales_service.create_sale(g.branch_id, json_body())
        current_app.logger.info("Sale %s recorded for branch %s", sale.memo_no, g.branch_id)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<memo_no>")
@require_branch
def update_sale_route(memo_no: str):
    """Replace a sale; every prior effect is reversed before the new one is applied."""
    try:
        sale = sales_service.update_sale(g.branch_id, memo_no, json_body())
        current_app.logger.info("Sale %s updated", sale.memo_no)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<memo_no>")
@require_branch
def get_sale_route(memo_no: str):
    try:
        sale = sales_service.get_sale(g.branch_id, memo_no)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@sales_bp.get("/")
@require_branch
def list_sales_route():
    try:
        sales = sales_service.list_sales(
            g.branch_id,
            start_date=parse_date(request.args.get("start_date"), "start_date", required=False),
            end_date=parse_date(request.args.get("end_date"), "end_date", required=False),
            customer_id=parse_id(request.args.get("customer_id"), "customer_id", required=False),
            limit=list_limit(),
        )
        return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
