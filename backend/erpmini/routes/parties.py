# Overview: Flask API routes for customers, suppliers and employees.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import error_response, json_body, list_limit, require_branch
from ..services import party_service, payroll_service
from ..time_utils import to_iso_date
from ..validation import ConflictError, NotFoundError, ValidationError, format_amount


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")
employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")

DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError)


# =============================================================================
# CUSTOMERS
# =============================================================================

@customers_bp.post("/")
@require_branch
def create_customer_route():
    try:
        customer = party_service.create_customer(g.branch_id, json_body())
        return jsonify({"customer": customer.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/")
@require_branch
def list_customers_route():
    customers = party_service.list_customers(
        g.branch_id,
        search=request.args.get("search") or None,
        limit=list_limit(),
    )
    return jsonify({"customers": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/<int:customer_id>")
@require_branch
def get_customer_route(customer_id: int):
    try:
        customer = party_service.get_customer(g.branch_id, customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@customers_bp.post("/<int:customer_id>/payments")
@require_branch
def collect_due_route(customer_id: int):
    """Body: {amount, payment_account_id, payment_date?, memo_no?}"""
    try:
        result = party_service.collect_customer_due(g.branch_id, customer_id, json_body())
        current_app.logger.info("Collected %s from customer %s", result["amount"], customer_id)
        customer = party_service.get_customer(g.branch_id, customer_id)
        return jsonify({
            "customer": customer.to_dict(),
            "amount": format_amount(result["amount"]),
            "transaction": result["transaction"].to_dict(),
        }), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to collect customer due")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SUPPLIERS
# =============================================================================

@suppliers_bp.post("/")
@require_branch
def create_supplier_route():
    try:
        supplier = party_service.create_supplier(g.branch_id, json_body())
        return jsonify({"supplier": supplier.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/")
@require_branch
def list_suppliers_route():
    suppliers = party_service.list_suppliers(g.branch_id)
    return jsonify({"suppliers": [s.to_dict() for s in suppliers], "count": len(suppliers)}), 200


# =============================================================================
# EMPLOYEES
# =============================================================================

@employees_bp.post("/")
@require_branch
def create_employee_route():
    try:
        employee = party_service.create_employee(g.branch_id, json_body())
        return jsonify({"employee": employee.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.get("/")
@require_branch
def list_employees_route():
    employees = party_service.list_employees(g.branch_id, role=request.args.get("role") or None)
    return jsonify({"employees": [e.to_dict() for e in employees], "count": len(employees)}), 200


@employees_bp.post("/<int:employee_id>/salary")
@require_branch
def submit_salary_route(employee_id: int):
    """Body: {amount, salary_date?, memo_no?, notes?}"""
    try:
        tx = payroll_service.submit_salary(g.branch_id, employee_id, json_body())
        current_app.logger.info("Salary %s paid to employee %s", tx.amount, employee_id)
        return jsonify({"transaction": tx.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to submit salary")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.post("/<int:employee_id>/progress")
@require_branch
def worker_progress_route(employee_id: int):
    """Body: {sheet_date?, production_units?, overtime_hours?, advance_payment?}"""
    try:
        result = payroll_service.record_worker_progress(g.branch_id, employee_id, json_body())
        tx = result["transaction"]
        return jsonify({
            "progress": {
                "employee_id": result["employee_id"],
                "sheet_date": to_iso_date(result["sheet_date"]),
                "production_units": result["production_units"],
                "overtime_hours": format_amount(result["overtime_hours"]),
                "advance_payment": format_amount(result["advance_payment"]),
            },
            "transaction": tx.to_dict() if tx else None,
        }), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record worker progress")
        return jsonify({"error": "Internal server error"}), 500
