# backend/gudang/routes/system.py
"""
System health endpoint.

Reports database connectivity and a ledger sanity check. A negative
balance can only come from a defect in the write path, so it is reported
as "degraded" rather than hidden.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Movement, OutletStock, Outlet, Product
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        outlet_count = db.session.query(Outlet).count()
        movement_count = db.session.query(Movement).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "outlets": outlet_count,
                "movements": movement_count,
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
    start_time = time.time()
    try:
        negative_central = db.session.query(Product).filter(
            or_(Product.stock < 0, Product.minimum_low_stock < 0)
        ).count()
        negative_outlet = db.session.query(OutletStock).filter(OutletStock.qty <= 0).count()

        elapsed_ms = (time.time() - start_time) * 1000
        if negative_central or negative_outlet:
            current_app.logger.error(
                "Ledger invariant breach: %s central rows, %s outlet rows out of range",
                negative_central, negative_outlet,
            )
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Ledger contains out-of-range balances",
                "details": {
                    "central_rows": negative_central,
                    "outlet_rows": negative_outlet,
                },
            }

        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Ledger health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Ledger check error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    ledger_health = check_ledger_health()

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "ledger": ledger_health,
        }
    }, http_status
