# backend/erpmini/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports basic counts for deployment
debugging.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Account, Branch, Order
from erpmini.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        branch_count = db.session.query(Branch).count()
        account_count = db.session.query(Account).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "branches": branch_count,
                "accounts": account_count,
                "orders": order_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_bootstrap_health() -> dict:
    """Degraded when a branch has no cash account (purchases and salary are paid from it)."""
    try:
        branches_without_cash = (
            db.session.query(Branch.id)
            .filter(~Branch.accounts.any(Account.type == "cash"))
            .count()
        )
    except Exception:
        current_app.logger.exception("Bootstrap health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Database error"}

    if branches_without_cash:
        return {
            "status": "degraded",
            "warning": f"{branches_without_cash} branch(es) without a cash account",
        }
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    bootstrap_health = check_bootstrap_health()

    all_checks = [database_health, bootstrap_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "bootstrap": bootstrap_health,
        }
    }

    return response, http_status
