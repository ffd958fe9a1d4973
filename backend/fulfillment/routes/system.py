# backend/fulfillment/routes/system.py
"""
System health endpoint.

Reports database reachability plus the serial ledger consistency check so a
deployment can be probed for drift between stock counters and serials.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Product, Order, SerialAllocation
from ..services.inventory_service import verify_quantity_conservation
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        order_count = db.session.query(Order).count()
        serial_count = db.session.query(SerialAllocation).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "orders": order_count,
                "serials": serial_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_ledger_health() -> dict:
    try:
        problems = verify_quantity_conservation()
    except Exception:
        current_app.logger.exception("Ledger health check failed")
        return {"status": "unhealthy", "error": "Ledger check error"}

    if problems:
        return {"status": "degraded", "mismatches": problems}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    database = check_database_health()
    ledger = check_ledger_health() if database["status"] == "healthy" else {"status": "skipped"}

    healthy = database["status"] == "healthy" and ledger["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "checked_at": to_utc_z(utcnow()),
        "checks": {"database": database, "ledger": ledger},
    }
    return jsonify(body), 200 if healthy else 503
