# backend/gudang/routes/master_data.py
"""
Master data routes: categories, units, products, outlets.

Each resource supports GET (list), POST (create), PUT /<id> (update) and
DELETE /<id>. Deletes blocked by references return 409.
"""
from flask import Blueprint, jsonify, request

from ..decorators import json_errors
from ..services import master_data_service


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
units_bp = Blueprint("units", __name__, url_prefix="/api/units")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")
outlets_bp = Blueprint("outlets", __name__, url_prefix="/api/outlets")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


# Categories

@categories_bp.get("")
@json_errors
def list_categories_route():
    items = master_data_service.list_categories()
    return jsonify({"items": items, "count": len(items)}), 200


@categories_bp.post("")
@json_errors
def create_category_route():
    return jsonify(master_data_service.create_category(_payload()).to_dict()), 201


@categories_bp.put("/<int:category_id>")
@json_errors
def update_category_route(category_id: int):
    return jsonify(master_data_service.update_category(category_id, _payload()).to_dict()), 200


@categories_bp.delete("/<int:category_id>")
@json_errors
def delete_category_route(category_id: int):
    master_data_service.delete_category(category_id)
    return jsonify({"deleted": True}), 200


# Units

@units_bp.get("")
@json_errors
def list_units_route():
    items = master_data_service.list_units()
    return jsonify({"items": items, "count": len(items)}), 200


@units_bp.post("")
@json_errors
def create_unit_route():
    return jsonify(master_data_service.create_unit(_payload()).to_dict()), 201


@units_bp.put("/<int:unit_id>")
@json_errors
def update_unit_route(unit_id: int):
    return jsonify(master_data_service.update_unit(unit_id, _payload()).to_dict()), 200


@units_bp.delete("/<int:unit_id>")
@json_errors
def delete_unit_route(unit_id: int):
    master_data_service.delete_unit(unit_id)
    return jsonify({"deleted": True}), 200


# Products

@products_bp.get("")
@json_errors
def list_products_route():
    result = master_data_service.list_products(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@products_bp.get("/suggest-sku")
@json_errors
def suggest_sku_route():
    return jsonify({"sku": master_data_service.suggest_sku(request.args.get("name", ""))}), 200


@products_bp.post("")
@json_errors
def create_product_route():
    """
    Request body:
    {
        "name": str,
        "sku": str (optional, generated from name when blank),
        "category_id": int,
        "unit_id": int,
        "minimum_low_stock": int (optional),
        "initial_stock": int (optional, posted as a central "in" movement)
    }
    """
    return jsonify(master_data_service.create_product(_payload()).to_dict()), 201


@products_bp.put("/<int:product_id>")
@json_errors
def update_product_route(product_id: int):
    return jsonify(master_data_service.update_product(product_id, _payload()).to_dict()), 200


@products_bp.delete("/<int:product_id>")
@json_errors
def delete_product_route(product_id: int):
    master_data_service.delete_product(product_id)
    return jsonify({"deleted": True}), 200


# Outlets

@outlets_bp.get("")
@json_errors
def list_outlets_route():
    items = master_data_service.list_outlets()
    return jsonify({"items": items, "count": len(items)}), 200


@outlets_bp.get("/suggest-code")
@json_errors
def suggest_outlet_code_route():
    return jsonify({"code": master_data_service.suggest_outlet_code(request.args.get("name", ""))}), 200


@outlets_bp.post("")
@json_errors
def create_outlet_route():
    return jsonify(master_data_service.create_outlet(_payload()).to_dict()), 201


@outlets_bp.put("/<int:outlet_id>")
@json_errors
def update_outlet_route(outlet_id: int):
    return jsonify(master_data_service.update_outlet(outlet_id, _payload()).to_dict()), 200


@outlets_bp.delete("/<int:outlet_id>")
@json_errors
def delete_outlet_route(outlet_id: int):
    master_data_service.delete_outlet(outlet_id)
    return jsonify({"deleted": True}), 200
