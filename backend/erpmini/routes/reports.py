# Overview: Flask API routes for daily rollup reports (read-only).

from flask import Blueprint, request, jsonify, g

from ..decorators import error_response, require_branch
from ..services import reporting_service
from ..validation import ValidationError, parse_date, parse_id


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/top-sheet")
@require_branch
def top_sheet_route():
    """Query: start_date, end_date (YYYY-MM-DD, inclusive)."""
    try:
        report = reporting_service.top_sheet_report(
            g.branch_id,
            start_date=parse_date(request.args.get("start_date"), "start_date", required=False),
            end_date=parse_date(request.args.get("end_date"), "end_date", required=False),
        )
    except ValidationError as e:
        return error_response(e)
    return jsonify({"top_sheet": report}), 200


@reports_bp.get("/employee-progress")
@require_branch
def employee_progress_route():
    try:
        report = reporting_service.employee_progress_report(
            g.branch_id,
            start_date=parse_date(request.args.get("start_date"), "start_date", required=False),
            end_date=parse_date(request.args.get("end_date"), "end_date", required=False),
            employee_id=parse_id(request.args.get("employee_id"), "employee_id", required=False),
        )
    except ValidationError as e:
        return error_response(e)
    return jsonify({"employee_progress": report}), 200
