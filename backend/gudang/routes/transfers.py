# backend/gudang/routes/transfers.py
"""
Stock transfer API routes.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_access_scope
from ..services import transfer_service
from ..services.location_service import ALL


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_access_scope
@json_errors
def create_transfer():
    """
    Move stock from one location to one or more outlets.

    Request body:
    {
        "product_id": int,
        "source": {"kind": "central"} | {"kind": "outlet", "outlet_id": int},
        "destinations": [{"outlet_id": int, "qty": int}, ...],
        "note": str (optional)
    }

    Returns:
        201: Transfer recorded
        400: Invalid request
        403: Source outside caller's access
        404: Unknown product or outlet
        409: Total exceeds the source balance
    """
    data = request.get_json(silent=True) or {}

    record = transfer_service.transfer(
        product_id=data.get("product_id"),
        source=data.get("source"),
        destinations=data.get("destinations"),
        note=data.get("note"),
        scope=g.access_scope,
    )
    return jsonify({"transfer": record.to_dict()}), 201


@transfers_bp.route("", methods=["GET"])
@require_access_scope
@json_errors
def list_transfers():
    result = transfer_service.list_transfers(
        location_filter=request.args.get("location", ALL),
        product_id=request.args.get("product_id", type=int),
        scope=g.access_scope,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200
