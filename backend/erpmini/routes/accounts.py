# Overview: Flask API routes for branch accounts and the transaction ledger.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import error_response, json_body, list_limit, require_branch
from ..services import branch_service, ledger_service
from ..models.transactions import ENTITY_TYPES, TRANSACTION_TYPES
from ..time_utils import parse_iso_datetime
from ..validation import ConflictError, NotFoundError, ValidationError, parse_id


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")
transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")

DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError)


@accounts_bp.post("/")
@require_branch
def create_account_route():
    try:
        account = branch_service.create_account(g.branch_id, json_body())
        return jsonify({"account": account.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/")
@require_branch
def list_accounts_route():
    accounts = branch_service.list_accounts(g.branch_id, account_type=request.args.get("type") or None)
    return jsonify({"accounts": [a.to_dict() for a in accounts], "count": len(accounts)}), 200


@accounts_bp.get("/<int:account_id>")
@require_branch
def get_account_route(account_id: int):
    try:
        account = branch_service.get_account(g.branch_id, account_id)
        return jsonify({"account": account.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@transactions_bp.get("/")
@require_branch
def list_transactions_route():
    """
    Query parameters:
    - memo_no
    - entity_type / entity_id: either side of the movement
    - transaction_type
    - from / to: ISO-8601 timestamps (inclusive)
    """
    entity_type = request.args.get("entity_type") or None
    transaction_type = request.args.get("transaction_type") or None
    if entity_type and entity_type not in ENTITY_TYPES:
        return jsonify({"error": "Invalid entity_type", "details": {"allowed": list(ENTITY_TYPES)}}), 400
    if transaction_type and transaction_type not in TRANSACTION_TYPES:
        return jsonify({"error": "Invalid transaction_type", "details": {"allowed": list(TRANSACTION_TYPES)}}), 400

    try:
        from_dt = parse_iso_datetime(request.args.get("from"))
        to_dt = parse_iso_datetime(request.args.get("to"))
    except ValueError:
        return jsonify({"error": "from/to must be ISO-8601 datetimes"}), 400

    try:
        rows = ledger_service.list_transactions(
            branch_id=g.branch_id,
            memo_no=request.args.get("memo_no") or None,
            entity_type=entity_type,
            entity_id=parse_id(request.args.get("entity_id"), "entity_id", required=False),
            transaction_type=transaction_type,
            from_date=from_dt,
            to_date=to_dt,
            limit=list_limit(),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"transactions": [t.to_dict() for t in rows], "count": len(rows)}), 200
