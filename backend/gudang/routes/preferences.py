# backend/gudang/routes/preferences.py
"""
Per-location product ordering for order-entry screens.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_access_scope
from ..services import prioritization_service
from ..services.access_service import check_location_filter
from ..services.location_service import location_key, parse_location


preferences_bp = Blueprint("preferences", __name__, url_prefix="/api/preferences")


@preferences_bp.get("/products")
@require_access_scope
@json_errors
def prioritized_products_route():
    """?location=central | outlet:<id>"""
    location = parse_location(request.args.get("location", "central"))
    check_location_filter(g.access_scope, location_key(location))

    items = prioritization_service.prioritized_products(location)
    return jsonify({"location_key": location_key(location), "items": items, "count": len(items)}), 200


@preferences_bp.post("/favorites/toggle")
@require_access_scope
@json_errors
def toggle_favorite_route():
    """
    Request body:
    {
        "product_id": int,
        "location": {"kind": "central"} | {"kind": "outlet", "outlet_id": int}
    }
    """
    payload = request.get_json(silent=True) or {}
    location = parse_location(payload.get("location"))
    check_location_filter(g.access_scope, location_key(location))

    is_favorite = prioritization_service.toggle_favorite(location, payload.get("product_id"))
    return jsonify({
        "location_key": location_key(location),
        "product_id": payload.get("product_id"),
        "is_favorite": is_favorite,
    }), 200
