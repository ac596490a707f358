# Overview: Receipt / issue / opname recording against the stock ledger with an append-only movement history.

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import and_, false, or_

from ..extensions import db
from ..models import Movement, Product
from ..pagination import paginate_query
from ..validation import (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    require_positive_int,
    require_non_negative_int,
    clean_text,
)
from . import ledger_service
from .access_service import AccessScope, check_location_filter, check_write_location
from .concurrency import lock_for_update, run_in_transaction
from .location_service import (
    ALL,
    CENTRAL,
    OUTLET,
    StockLocation,
    filter_outlet_id,
    get_location_label,
    location_key,
    parse_location,
    parse_location_filter,
    require_outlet,
)
from .prioritization_service import bump_usage
"""
Movement Invariants (authoritative)

- Quantities are integers. "in"/"out" quantity > 0; opname actual_stock >= 0.
- "out" never exceeds the balance read inside the same transaction.
- balance_after == balance_before + delta for every movement.
- opname: delta = actual - before, balance_after = actual, qty = |delta|,
  counted_stock = actual. A zero delta still appends a movement.
- Validation runs completely before the first ledger write. Failures leave
  no ledger change, no movement row and no usage bump.
- Movements are append-only and listed newest first.
- Every successful movement/opname bumps the usage counter for
  (location, product). Transfers do not.
"""

DEFAULT_NOTES = {
    "in": "Stock in",
    "out": "Stock out",
    "opname": "Stock opname adjustment",
}
INITIAL_STOCK_NOTE = "Initial product stock"


def _load_product(product_id: Any, *, lock: bool = False) -> Product:
    if product_id is None or product_id == "":
        raise ValidationError("product_id is required")
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _resolve_write_location(location: Any) -> StockLocation:
    loc = parse_location(location)
    if loc.kind == OUTLET:
        require_outlet(loc.outlet_id)
    return loc


def _append_movement(
    *,
    product: Product,
    location: StockLocation,
    movement_type: str,
    qty: int,
    delta: int,
    balance_after: int,
    note: str,
    counted_stock: int | None = None,
) -> Movement:
    movement = Movement(
        product_id=product.id,
        product_name=product.name,
        qty=qty,
        type=movement_type,
        note=note,
        delta=delta,
        balance_after=balance_after,
        counted_stock=counted_stock,
        location_kind=location.kind,
        location_id=CENTRAL if location.kind == CENTRAL else str(location.outlet_id),
        location_label=get_location_label(location),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_movement(
    *,
    product_id: int,
    quantity: Any,
    type: str,
    location: Any,
    note: str | None = None,
    scope: AccessScope | None = None,
) -> Movement:
    """
    Record a receipt ("in") or issue ("out") at one location.

    Raises:
        ValidationError: non-positive/non-integer quantity, bad type, outlet without id
        NotFoundError: unknown product or outlet
        InsufficientStockError: "out" larger than the current balance
        ForbiddenLocationError: location outside the caller's scope
    """
    qty = require_positive_int(quantity, "quantity")
    if type not in ("in", "out"):
        raise ValidationError("type must be 'in' or 'out'")

    def _op():
        product = _load_product(product_id, lock=True)
        loc = _resolve_write_location(location)
        check_write_location(scope, loc)
        key = location_key(loc)

        before = ledger_service.get_quantity(product.id, key, lock=True)
        if type == "out" and qty > before:
            raise InsufficientStockError(
                f"Stock out failed: requested {qty} exceeds available {before}",
                available=before,
                requested=qty,
            )

        delta = qty if type == "in" else -qty
        after = before + delta
        ledger_service.set_quantity(product.id, key, after)

        movement = _append_movement(
            product=product,
            location=loc,
            movement_type=type,
            qty=qty,
            delta=delta,
            balance_after=after,
            note=clean_text(note) or DEFAULT_NOTES[type],
        )
        bump_usage(key, product.id)
        return movement

    movement = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded %s movement id=%s product_id=%s location=%s delta=%s balance_after=%s",
        movement.type, movement.id, movement.product_id, movement.location_key,
        movement.delta, movement.balance_after,
    )
    return movement


def record_opname(
    *,
    product_id: int,
    actual_stock: Any,
    location: Any,
    note: str | None = None,
    scope: AccessScope | None = None,
) -> Movement:
    """
    Reconcile a physical count: set the balance to actual_stock and record
    the adjustment. Succeeds once validated, whether the count goes up, down,
    to zero, or matches the system balance.
    """
    actual = require_non_negative_int(actual_stock, "actual_stock")

    def _op():
        product = _load_product(product_id, lock=True)
        loc = _resolve_write_location(location)
        check_write_location(scope, loc)
        key = location_key(loc)

        before = ledger_service.get_quantity(product.id, key, lock=True)
        delta = actual - before
        ledger_service.set_quantity(product.id, key, actual)

        movement = _append_movement(
            product=product,
            location=loc,
            movement_type="opname",
            qty=abs(delta),
            delta=delta,
            balance_after=actual,
            counted_stock=actual,
            note=clean_text(note) or DEFAULT_NOTES["opname"],
        )
        bump_usage(key, product.id)
        return movement

    movement = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded opname id=%s product_id=%s location=%s delta=%s counted=%s",
        movement.id, movement.product_id, movement.location_key, movement.delta, movement.counted_stock,
    )
    return movement


def post_initial_stock(product: Product, quantity: int) -> Movement | None:
    """
    Post the opening central balance of a freshly created product.

    Runs inside the caller's transaction (master_data_service.create_product).
    """
    if quantity <= 0:
        return None
    ledger_service.set_quantity(product.id, CENTRAL, quantity)
    return _append_movement(
        product=product,
        location=StockLocation(CENTRAL),
        movement_type="in",
        qty=quantity,
        delta=quantity,
        balance_after=quantity,
        note=INITIAL_STOCK_NOTE,
    )


def get_stock(product_id: int, location: Any, *, scope: AccessScope | None = None) -> dict:
    product = _load_product(product_id)
    loc = parse_location(location)
    key = location_key(loc)
    check_location_filter(scope, key)
    return {
        "product_id": product.id,
        "location_key": key,
        "location_label": get_location_label(loc),
        "quantity": ledger_service.get_quantity(product.id, key),
    }


def scope_condition(scope: AccessScope | None):
    """SQL condition restricting Movement rows to the caller's locations (None = no restriction)."""
    if scope is None or scope.is_unrestricted:
        return None
    parts = []
    if scope.can_view_central:
        parts.append(Movement.location_kind == CENTRAL)
    if scope.outlet_ids is None:
        parts.append(Movement.location_kind == OUTLET)
    elif scope.outlet_ids:
        parts.append(and_(
            Movement.location_kind == OUTLET,
            Movement.location_id.in_([str(i) for i in scope.outlet_ids]),
        ))
    return or_(*parts) if parts else false()


def location_condition(location_filter: str):
    if location_filter == ALL:
        return None
    if location_filter == CENTRAL:
        return Movement.location_kind == CENTRAL
    return and_(
        Movement.location_kind == OUTLET,
        Movement.location_id == str(filter_outlet_id(location_filter)),
    )


def list_movements(
    *,
    type: str | None = None,
    location_filter: str | None = ALL,
    product_id: int | None = None,
    scope: AccessScope | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Movement history, newest first."""
    location_filter = parse_location_filter(location_filter)
    check_location_filter(scope, location_filter)
    if type is not None and type not in ("in", "out", "opname"):
        raise ValidationError("type must be 'in', 'out' or 'opname'")

    query = db.session.query(Movement)
    for cond in (location_condition(location_filter), scope_condition(scope)):
        if cond is not None:
            query = query.filter(cond)
    if type is not None:
        query = query.filter(Movement.type == type)
    if product_id is not None:
        query = query.filter(Movement.product_id == product_id)

    query = query.order_by(Movement.created_at.desc(), Movement.id.desc())
    return paginate_query(query, page=page, per_page=per_page, serialize=lambda m: m.to_dict())
