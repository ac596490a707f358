# backend/gudang/services/master_data_service.py
"""
Master data: categories, units, products and outlets.

NAMES AND CODES:
- Every text field is trimmed; blank required fields are rejected.
- Category and unit names are unique case-insensitively.
- Product SKU and outlet code are stored uppercased and unique. A blank SKU
  or code is generated from the name (see text_utils.build_code_from_name).

DELETES:
- A category or unit still used by a product cannot be deleted.
- An outlet cannot be deleted once it appears in movement or transfer
  history, or while it still holds stock. Deleting it removes its favorite
  and usage rows.
- Deleting a product removes its outlet stock, favorite and usage rows.
  Movement and transfer history keep their product name snapshots.

Product.stock is never written here except through
movement_service.post_initial_stock on create.
"""
from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import (
    Category,
    FavoriteProduct,
    Movement,
    Outlet,
    OutletStock,
    Product,
    ProductUsage,
    TransferDestination,
    TransferRecord,
    Unit,
)
from ..pagination import paginate_query
from ..text_utils import build_code_from_name, name_sort_key
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    clean_text,
    require_non_negative_int,
    validate_payload,
)
from .concurrency import run_in_transaction
from .movement_service import post_initial_stock

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "sku", "category_id", "unit_id", "minimum_low_stock"},
    required_on_create={"name", "category_id", "unit_id"},
)
OUTLET_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "address", "latitude", "longitude"},
    required_on_create={"name", "address"},
)


def _require(model, obj_id, label: str):
    obj = db.session.get(model, obj_id)
    if obj is None:
        raise NotFoundError(f"{label} {obj_id} not found")
    return obj


def _required_name(payload: dict | None, label: str) -> str:
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    name = clean_text(payload.get("name"))
    if not name:
        raise ValidationError(f"{label} name is required")
    return name


# ---------------------------------------------------------------------------
# Categories and units
# ---------------------------------------------------------------------------

def _ensure_unique_name(model, name: str, label: str, exclude_id: int | None = None) -> None:
    query = db.session.query(model).filter(func.lower(model.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"{label} name already exists")


def _list_named(model) -> list[dict]:
    return [o.to_dict() for o in sorted(db.session.query(model).all(), key=lambda o: name_sort_key(o.name))]


def list_categories() -> list[dict]:
    return _list_named(Category)


def create_category(payload: dict) -> Category:
    name = _required_name(payload, "Category")

    def _op():
        _ensure_unique_name(Category, name, "Category")
        category = Category(name=name)
        db.session.add(category)
        db.session.flush()
        return category

    return run_in_transaction(_op)


def update_category(category_id: int, payload: dict) -> Category:
    name = _required_name(payload, "Category")

    def _op():
        category = _require(Category, category_id, "Category")
        _ensure_unique_name(Category, name, "Category", exclude_id=category.id)
        category.name = name
        return category

    return run_in_transaction(_op)


def delete_category(category_id: int) -> None:
    def _op():
        category = _require(Category, category_id, "Category")
        if db.session.query(Product.id).filter_by(category_id=category.id).first() is not None:
            raise ConflictError("Category is still used by a product")
        db.session.delete(category)

    run_in_transaction(_op)


def list_units() -> list[dict]:
    return _list_named(Unit)


def create_unit(payload: dict) -> Unit:
    name = _required_name(payload, "Unit")

    def _op():
        _ensure_unique_name(Unit, name, "Unit")
        unit = Unit(name=name)
        db.session.add(unit)
        db.session.flush()
        return unit

    return run_in_transaction(_op)


def update_unit(unit_id: int, payload: dict) -> Unit:
    name = _required_name(payload, "Unit")

    def _op():
        unit = _require(Unit, unit_id, "Unit")
        _ensure_unique_name(Unit, name, "Unit", exclude_id=unit.id)
        unit.name = name
        return unit

    return run_in_transaction(_op)


def delete_unit(unit_id: int) -> None:
    def _op():
        unit = _require(Unit, unit_id, "Unit")
        if db.session.query(Product.id).filter_by(unit_id=unit.id).first() is not None:
            raise ConflictError("Unit is still used by a product")
        db.session.delete(unit)

    run_in_transaction(_op)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def suggest_sku(name: str, exclude_id: int | None = None) -> str:
    query = db.session.query(Product.sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return build_code_from_name(name, [sku for (sku,) in query.all()], fallback="PRD")


def _ensure_unique_sku(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(func.upper(Product.sku) == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists")


def _check_product_refs(patch: dict) -> None:
    if "category_id" in patch:
        if patch["category_id"] is None:
            raise ValidationError("category_id is required")
        _require(Category, patch["category_id"], "Category")
    if "unit_id" in patch:
        if patch["unit_id"] is None:
            raise ValidationError("unit_id is required")
        _require(Unit, patch["unit_id"], "Unit")


def list_products(page: int | None = None, per_page: int | None = None) -> dict:
    base_query = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc())
    return paginate_query(base_query, page=page, per_page=per_page, serialize=lambda p: p.to_dict())


def create_product(payload: dict) -> Product:
    """
    Create a product; an "initial_stock" above 0 is posted as a central
    "in" movement in the same transaction.
    """
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    if not clean_text(payload.get("sku")):
        payload.pop("sku", None)
    initial_stock = require_non_negative_int(payload.pop("initial_stock", 0) or 0, "initial_stock")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    if "minimum_low_stock" in patch:
        patch["minimum_low_stock"] = require_non_negative_int(patch["minimum_low_stock"], "minimum_low_stock")

    def _op():
        _check_product_refs(patch)
        sku = (patch.get("sku") or "").upper() or suggest_sku(patch["name"])
        _ensure_unique_sku(sku)

        product = Product(
            name=patch["name"],
            sku=sku,
            stock=0,
            minimum_low_stock=patch.get("minimum_low_stock") or 0,
            category_id=patch["category_id"],
            unit_id=patch["unit_id"],
        )
        db.session.add(product)
        db.session.flush()

        post_initial_stock(product, initial_stock)
        return product

    return run_in_transaction(_op)


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    if "minimum_low_stock" in patch:
        patch["minimum_low_stock"] = require_non_negative_int(patch["minimum_low_stock"], "minimum_low_stock")

    def _op():
        product = _require(Product, product_id, "Product")
        _check_product_refs(patch)
        if "sku" in patch:
            sku = (patch["sku"] or "").upper()
            if not sku:
                raise ValidationError("sku cannot be blank")
            _ensure_unique_sku(sku, exclude_id=product.id)
            patch["sku"] = sku
        for key, value in patch.items():
            setattr(product, key, value)
        return product

    return run_in_transaction(_op)


def delete_product(product_id: int) -> None:
    def _op():
        product = _require(Product, product_id, "Product")
        db.session.query(OutletStock).filter_by(product_id=product.id).delete(synchronize_session=False)
        db.session.query(FavoriteProduct).filter_by(product_id=product.id).delete(synchronize_session=False)
        db.session.query(ProductUsage).filter_by(product_id=product.id).delete(synchronize_session=False)
        db.session.delete(product)

    run_in_transaction(_op)


# ---------------------------------------------------------------------------
# Outlets
# ---------------------------------------------------------------------------

def suggest_outlet_code(name: str, exclude_id: int | None = None) -> str:
    query = db.session.query(Outlet.code)
    if exclude_id is not None:
        query = query.filter(Outlet.id != exclude_id)
    return build_code_from_name(name, [code for (code,) in query.all()], fallback="OUT")


def _ensure_unique_code(code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Outlet).filter(func.upper(Outlet.code) == code)
    if exclude_id is not None:
        query = query.filter(Outlet.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Outlet code already exists")


def list_outlets() -> list[dict]:
    return _list_named(Outlet)


def create_outlet(payload: dict) -> Outlet:
    if isinstance(payload, dict) and not clean_text(payload.get("code")):
        payload = {k: v for k, v in payload.items() if k != "code"}
    patch = validate_payload(model=Outlet, payload=payload, policy=OUTLET_POLICY, partial=False)

    def _op():
        code = (patch.get("code") or "").upper() or suggest_outlet_code(patch["name"])
        _ensure_unique_code(code)
        outlet = Outlet(
            name=patch["name"],
            code=code,
            address=patch["address"],
            latitude=patch.get("latitude") or 0.0,
            longitude=patch.get("longitude") or 0.0,
        )
        db.session.add(outlet)
        db.session.flush()
        return outlet

    return run_in_transaction(_op)


def update_outlet(outlet_id: int, payload: dict) -> Outlet:
    """Renames do not touch history; movement and transfer rows keep their label snapshots."""
    patch = validate_payload(model=Outlet, payload=payload, policy=OUTLET_POLICY, partial=True)

    def _op():
        outlet = _require(Outlet, outlet_id, "Outlet")
        if "code" in patch:
            code = (patch["code"] or "").upper()
            if not code:
                raise ValidationError("code cannot be blank")
            _ensure_unique_code(code, exclude_id=outlet.id)
            patch["code"] = code
        for key, value in patch.items():
            setattr(outlet, key, value)
        return outlet

    return run_in_transaction(_op)


def delete_outlet(outlet_id: int) -> None:
    def _op():
        outlet = _require(Outlet, outlet_id, "Outlet")

        used_in_movement = (
            db.session.query(Movement.id)
            .filter(Movement.location_kind == "outlet", Movement.location_id == str(outlet.id))
            .first()
        )
        if used_in_movement is not None:
            raise ConflictError("Outlet cannot be deleted because it appears in movement history")

        used_in_transfer = (
            db.session.query(TransferRecord.id)
            .filter(or_(
                TransferRecord.source_outlet_id == outlet.id,
                TransferRecord.destinations.any(TransferDestination.outlet_id == outlet.id),
            ))
            .first()
        )
        if used_in_transfer is not None:
            raise ConflictError("Outlet cannot be deleted because it appears in transfer history")

        if db.session.query(OutletStock.id).filter_by(outlet_id=outlet.id).first() is not None:
            raise ConflictError("Outlet cannot be deleted while it still holds stock")

        key = f"outlet:{outlet.id}"
        db.session.query(FavoriteProduct).filter_by(location_key=key).delete(synchronize_session=False)
        db.session.query(ProductUsage).filter_by(location_key=key).delete(synchronize_session=False)
        db.session.delete(outlet)

    run_in_transaction(_op)
