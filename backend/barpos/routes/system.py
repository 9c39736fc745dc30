# backend/barpos/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import InventoryItem, Tab
from ..models.tabs import TAB_STATUS_OPEN

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        item_count = db.session.query(InventoryItem).count()
        open_tab_count = db.session.query(Tab).filter_by(status=TAB_STATUS_OPEN).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "inventory_items": item_count,
                "open_tabs": open_tab_count,
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


@system_bp.get("/health")
def health():
    database = check_database_health()
    registry = current_app.extensions.get("barpos_terminals")
    status_code = 200 if database["status"] == "healthy" else 503
    return {
        "status": database["status"],
        "checks": {"database": database},
        "terminals": len(registry) if registry is not None else 0,
    }, status_code
