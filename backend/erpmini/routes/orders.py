# Overview: Flask API routes for order lifecycle operations; parses input and returns JSON responses.

"""
Order Routes

Branch context comes from the X-Branch-ID header (see decorators.require_branch).
Lifecycle failures map to:
- 400 validation errors
- 404 unknown order/customer/account/employee/product
- 409 illegal transition or duplicate memo number
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import error_response, json_body, list_limit, require_branch
from ..services import order_service
from ..services.lifecycle_service import OrderStateError
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    format_amount,
    parse_date,
    parse_id,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError)


@orders_bp.post("/")
@require_branch
def create_order_route():
    """Create a pending order. Returns 201 with the order and its items."""
    try:
        order = order_service.create_order(g.branch_id, json_body())
        current_app.logger.info("Order %s created for branch %s", order.memo_no, g.branch_id)
        return jsonify({"order": order.to_dict(include_items=True)}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>")
@require_branch
def update_order_route(order_id: int):
    try:
        order = order_service.update_order(g.branch_id, order_id, json_body())
        current_app.logger.info("Order %s updated", order.memo_no)
        return jsonify({"order": order.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/checkout")
@require_branch
def checkout_order_route(order_id: int):
    """Move a pending order to checkout. Optional body: {on_date} for the top sheet row."""
    try:
        on_date = parse_date(json_body().get("on_date"), "on_date", required=False)
        order = order_service.checkout_order(g.branch_id, order_id, on_date=on_date)
        current_app.logger.info("Order %s checked out", order.memo_no)
        return jsonify({"order": order.to_dict()}), 200
    except OrderStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to checkout order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/delivery")
@require_branch
def confirm_delivery_route(order_id: int):
    """
    Confirm delivery of some or all remaining items.

    Body: {items_to_deliver, paid_amount?, payment_account_id?, exit_date?}
    items_to_deliver above the remaining count is clamped.
    """
    try:
        order = order_service.confirm_delivery(g.branch_id, order_id, json_body())
        current_app.logger.info(
            "Order %s delivery confirmed (%s/%s items)",
            order.memo_no,
            order.items_delivered,
            order.total_items,
        )
        return jsonify({"order": order.to_dict()}), 200
    except OrderStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to confirm delivery")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_branch
def cancel_order_route(order_id: int):
    """Cancel the remaining items. Optional body: {on_date} for the top sheet row."""
    try:
        on_date = parse_date(json_body().get("on_date"), "on_date", required=False)
        order = order_service.cancel_order(g.branch_id, order_id, on_date=on_date)
        current_app.logger.info("Order %s cancelled", order.memo_no)
        return jsonify({"order": order.to_dict()}), 200
    except OrderStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_branch
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.branch_id, order_id)
        return jsonify({"order": order.to_dict(include_items=True)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.get("/")
@require_branch
def list_orders_route():
    """Query: status, customer_id, start_date, end_date, limit."""
    try:
        orders = order_service.list_orders(
            g.branch_id,
            status=request.args.get("status") or None,
            customer_id=parse_id(request.args.get("customer_id"), "customer_id", required=False),
            start_date=parse_date(request.args.get("start_date"), "start_date", required=False),
            end_date=parse_date(request.args.get("end_date"), "end_date", required=False),
            limit=list_limit(),
        )
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.get("/items")
@require_branch
def order_items_route():
    memo_no = (request.args.get("memo_no") or "").strip()
    if not memo_no:
        return jsonify({"error": "memo_no is required"}), 400
    try:
        items = order_service.get_order_items_by_memo(g.branch_id, memo_no)
        return jsonify({"memo_no": memo_no, "items": [i.to_dict() for i in items]}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.get("/summary")
@require_branch
def order_summary_route():
    try:
        summary = order_service.order_summary(
            g.branch_id,
            start_date=parse_date(request.args.get("start_date"), "start_date", required=False),
            end_date=parse_date(request.args.get("end_date"), "end_date", required=False),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({
        "summary": {
            "by_status": summary["by_status"],
            "total_payable_amount": format_amount(summary["total_payable_amount"]),
            "total_advance_amount": format_amount(summary["total_advance_amount"]),
            "total_due_amount": format_amount(summary["total_due_amount"]),
        }
    }), 200
