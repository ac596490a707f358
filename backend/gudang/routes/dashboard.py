# backend/gudang/routes/dashboard.py
"""
Dashboard and analytics routes.

Common query parameters:
- period:   today | last7days | last30days (default today)
- location: all | central | outlet:<id> (default all)
- limit:    list length (default DASHBOARD_DEFAULT_LIMIT)
- range:    last30days | monthly | yearly (trend only)
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_access_scope
from ..services import analytics_service
from ..services.location_service import ALL


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _common_args() -> dict:
    return {
        "period": request.args.get("period", "today"),
        "location_filter": request.args.get("location", ALL),
        "scope": g.access_scope,
    }


@dashboard_bp.get("/kpis")
@require_access_scope
@json_errors
def kpis_route():
    return jsonify(analytics_service.compute_kpis(**_common_args())), 200


@dashboard_bp.get("/low-stock")
@require_access_scope
@json_errors
def low_stock_route():
    items = analytics_service.low_stock_priorities(
        limit=request.args.get("limit", type=int),
        scope=g.access_scope,
    )
    return jsonify({"items": items, "count": len(items)}), 200


@dashboard_bp.get("/alerts")
@require_access_scope
@json_errors
def alerts_route():
    result = analytics_service.low_stock_alerts(
        location_filter=request.args.get("location", ALL),
        scope=g.access_scope,
        limit=request.args.get("limit", type=int),
    )
    return jsonify(result), 200


@dashboard_bp.get("/activity")
@require_access_scope
@json_errors
def activity_route():
    items = analytics_service.recent_activity(**_common_args(), limit=request.args.get("limit", type=int))
    return jsonify({"items": items, "count": len(items)}), 200


@dashboard_bp.get("/top-products")
@require_access_scope
@json_errors
def top_products_route():
    items = analytics_service.top_active_products(**_common_args(), limit=request.args.get("limit", type=int))
    return jsonify({"items": items, "count": len(items)}), 200


@dashboard_bp.get("/outlets")
@require_access_scope
@json_errors
def outlets_route():
    items = analytics_service.outlet_summaries(**_common_args())
    return jsonify({"items": items, "count": len(items)}), 200


@dashboard_bp.get("/inactive")
@require_access_scope
@json_errors
def inactive_route():
    items = analytics_service.inactive_products(
        location_filter=request.args.get("location", ALL),
        scope=g.access_scope,
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": items, "count": len(items)}), 200


@dashboard_bp.get("/trend")
@require_access_scope
@json_errors
def trend_route():
    result = analytics_service.stock_trend(
        range_=request.args.get("range", "last30days"),
        location_filter=request.args.get("location", ALL),
        scope=g.access_scope,
    )
    return jsonify(result), 200


@dashboard_bp.get("/report")
@require_access_scope
@json_errors
def report_route():
    rows = analytics_service.stock_report_rows(
        location_filter=request.args.get("location", ALL),
        scope=g.access_scope,
    )
    return jsonify({"items": rows, "count": len(rows)}), 200


@dashboard_bp.get("/summary")
@require_access_scope
@json_errors
def summary_route():
    return jsonify(analytics_service.dashboard(**_common_args(), limit=request.args.get("limit", type=int))), 200
