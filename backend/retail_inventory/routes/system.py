# backend/retail_inventory/routes/system.py
"""
System health endpoint.

Reports database connectivity plus the headline inventory counters so a
deployment check can tell an empty database from a broken one.
"""

import time
from flask import Blueprint, current_app
from ..services import alert_service, audit_service, inventory_service
from retail_inventory.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "active_products": inventory_service.count_active_products(),
            "low_stock_products": inventory_service.count_low_stock_products(),
            "unresolved_alerts": alert_service.count_unresolved(),
            "stock_movements": audit_service.count_movements(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }, status_code
