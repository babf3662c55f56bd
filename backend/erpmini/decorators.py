# Overview: Request decorators and error mapping for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services.lifecycle_service import OrderStateError
from .validation import ConflictError, NotFoundError, ValidationError, parse_id


def _branch_from_request():
    header = current_app.config.get("BRANCH_HEADER", "X-Branch-ID")
    raw = request.headers.get(header)
    if raw is None:
        raw = request.args.get("branch_id")
    if raw is None and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            raw = body.get("branch_id")
    return raw


def require_branch(f):
    """
    Establish branch context.

    Sets g.branch_id from the X-Branch-ID header (or a branch_id query/body
    field for clients that cannot set headers). Returns 400 when missing.
    Whether the branch exists is checked by the service that uses it.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.branch_id = parse_id(_branch_from_request(), "branch_id")
        except ValidationError as e:
            return jsonify({"error": str(e), "details": e.details}), 400
        return f(*args, **kwargs)

    return decorated_function


def error_response(exc: Exception):
    """Map a domain exception to its JSON error response."""
    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, (OrderStateError, ConflictError)):
        status = 409
    else:
        raise exc
    return jsonify({"error": str(exc), "details": exc.details}), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def list_limit() -> int:
    limit = request.args.get("limit", current_app.config.get("DEFAULT_LIST_LIMIT", 200), type=int)
    if limit < 1:
        limit = 1
    if limit > 1000:
        limit = 1000
    return limit
