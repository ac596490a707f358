# backend/gudang/routes/export.py
from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_access_scope
from ..services import export_service
from ..services.location_service import ALL, location_filter_label, parse_location_filter


export_bp = Blueprint("export", __name__, url_prefix="/api/export")


@export_bp.get("/stock-rows")
@require_access_scope
@json_errors
def stock_rows_route():
    location_filter = parse_location_filter(request.args.get("location", ALL))
    rows = export_service.stock_rows(location_filter, g.access_scope)
    return jsonify({
        "location_filter": location_filter,
        "location_label": location_filter_label(location_filter),
        "columns": ["location", "product", "sku", "category", "unit", "quantity"],
        "rows": rows,
        "count": len(rows),
    }), 200
