# backend/gudang/routes/inventory.py
"""
Stock movement routes.

Every mutation goes through movement_service, which validates the whole
request before touching the ledger. Locations are sent as
{"kind": "central"} or {"kind": "outlet", "outlet_id": <id>}.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_access_scope
from ..extensions import db
from ..models import Category, Outlet, Product, Unit
from ..services import analytics_service, ledger_service, movement_service, transfer_service
from ..services.location_service import ALL, location_filter_options
from ..time_utils import to_utc_z, utcnow


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/movements")
@require_access_scope
@json_errors
def record_movement_route():
    """
    Record stock in / stock out.

    Request body:
    {
        "product_id": int,
        "quantity": int (> 0),
        "type": "in" | "out",
        "note": str (optional),
        "location": {"kind": "central"} | {"kind": "outlet", "outlet_id": int}
    }
    """
    payload = request.get_json(silent=True) or {}

    movement = movement_service.record_movement(
        product_id=payload.get("product_id"),
        quantity=payload.get("quantity"),
        type=payload.get("type"),
        note=payload.get("note"),
        location=payload.get("location"),
        scope=g.access_scope,
    )
    return jsonify({"movement": movement.to_dict()}), 201


@inventory_bp.post("/opname")
@require_access_scope
@json_errors
def record_opname_route():
    """Set a location's balance to a physical count (actual_stock >= 0)."""
    payload = request.get_json(silent=True) or {}

    movement = movement_service.record_opname(
        product_id=payload.get("product_id"),
        actual_stock=payload.get("actual_stock"),
        note=payload.get("note"),
        location=payload.get("location"),
        scope=g.access_scope,
    )
    return jsonify({"movement": movement.to_dict()}), 201


@inventory_bp.get("/movements")
@require_access_scope
@json_errors
def list_movements_route():
    result = movement_service.list_movements(
        type=request.args.get("type") or None,
        location_filter=request.args.get("location", ALL),
        product_id=request.args.get("product_id", type=int),
        scope=g.access_scope,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@inventory_bp.get("/stock/<int:product_id>")
@require_access_scope
@json_errors
def get_stock_route(product_id: int):
    location = request.args.get("location", "central")
    return jsonify(movement_service.get_stock(product_id, location, scope=g.access_scope)), 200


@inventory_bp.get("/snapshot")
@require_access_scope
@json_errors
def snapshot_route():
    """
    Master data, ledger balances and history in one payload, limited to the
    locations the caller can see.
    """
    scope = g.access_scope
    outlets = db.session.query(Outlet).order_by(Outlet.name.asc()).all()
    visible_ids = scope.visible_outlet_ids(o.id for o in outlets)
    outlets = [o for o in outlets if o.id in visible_ids]

    products = [p.to_dict() for p in db.session.query(Product).order_by(Product.name.asc()).all()]
    if not scope.can_view_central:
        for p in products:
            p["stock"] = None

    return jsonify({
        "categories": [c.to_dict() for c in db.session.query(Category).order_by(Category.name.asc()).all()],
        "units": [u.to_dict() for u in db.session.query(Unit).order_by(Unit.name.asc()).all()],
        "products": products,
        "outlets": [o.to_dict() for o in outlets],
        "outlet_stocks": [r.to_dict() for r in ledger_service.list_outlet_stocks(visible_ids)],
        "movements": [m.to_dict() for m in analytics_service.filter_movements(ALL, scope)],
        "transfers": transfer_service.list_transfers(scope=scope)["items"],
        "location_options": [
            o for o in location_filter_options(outlets)
            if o["value"] != "central" or scope.can_view_central
        ],
        "as_of": to_utc_z(utcnow()),
    }), 200
