# Overview: Stock ledger; current quantity per (product, location) with non-negative writes.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Product, OutletStock
from ..validation import InvalidQuantity, NotFoundError
from .concurrency import lock_for_update
from .location_service import CENTRAL, OUTLET_PREFIX
"""
Stock Ledger Invariants (authoritative)

- Quantity at any (product, location) is a non-negative integer.
- Central quantity is Product.stock (written directly, including 0).
- Outlet quantity is an OutletStock row that exists only while qty > 0;
  absence means 0. Writing 0 deletes the row.
- set_quantity is the single write path. Only movement_service and
  transfer_service call it, after validating the whole operation, inside
  concurrency.run_in_transaction. Nothing else assigns Product.stock or
  OutletStock.qty.
"""


def _split_key(location_key: str) -> int | None:
    """Outlet id for an outlet key, None for central."""
    if location_key == CENTRAL:
        return None
    if location_key.startswith(OUTLET_PREFIX):
        try:
            return int(location_key[len(OUTLET_PREFIX):])
        except ValueError:
            pass
    raise ValueError(f"invalid location key: {location_key!r}")


def _outlet_row(outlet_id: int, product_id: int, *, lock: bool = False) -> OutletStock | None:
    query = db.session.query(OutletStock).filter_by(outlet_id=outlet_id, product_id=product_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_quantity(product_id: int, location_key: str, *, lock: bool = False) -> int:
    """Current quantity; 0 when the product has no balance at the location."""
    outlet_id = _split_key(location_key)
    if outlet_id is None:
        query = db.session.query(Product).filter_by(id=product_id)
        if lock:
            query = lock_for_update(query)
        product = query.first()
        return int(product.stock) if product else 0

    row = _outlet_row(outlet_id, product_id, lock=lock)
    return int(row.qty) if row else 0


def set_quantity(product_id: int, location_key: str, new_quantity: int) -> None:
    """
    Write the absolute balance for (product, location).

    Raises InvalidQuantity for negative or non-integer values. The caller is
    responsible for committing (see concurrency.run_in_transaction).
    """
    if not isinstance(new_quantity, int) or isinstance(new_quantity, bool):
        raise InvalidQuantity("quantity must be an integer")
    if new_quantity < 0:
        raise InvalidQuantity(f"quantity cannot be negative (got {new_quantity})")

    outlet_id = _split_key(location_key)
    if outlet_id is None:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        product.stock = new_quantity
        db.session.flush()
        return

    row = _outlet_row(outlet_id, product_id)
    if new_quantity == 0:
        if row is not None:
            db.session.delete(row)
    elif row is None:
        db.session.add(OutletStock(outlet_id=outlet_id, product_id=product_id, qty=new_quantity))
    else:
        row.qty = new_quantity
    db.session.flush()


def outlet_stock_map() -> dict[tuple[int, int], int]:
    """{(outlet_id, product_id): qty} for every positive outlet balance."""
    rows = db.session.query(OutletStock.outlet_id, OutletStock.product_id, OutletStock.qty).all()
    return {(r.outlet_id, r.product_id): int(r.qty) for r in rows}


def outlet_totals() -> dict[int, int]:
    rows = db.session.query(
        OutletStock.outlet_id,
        func.coalesce(func.sum(OutletStock.qty), 0).label("total"),
    ).group_by(OutletStock.outlet_id).all()
    return {r.outlet_id: int(r.total) for r in rows}


def central_total() -> int:
    return int(db.session.query(func.coalesce(func.sum(Product.stock), 0)).scalar() or 0)


def list_outlet_stocks(outlet_ids: set[int] | None = None) -> list[OutletStock]:
    query = db.session.query(OutletStock)
    if outlet_ids is not None:
        if not outlet_ids:
            return []
        query = query.filter(OutletStock.outlet_id.in_(outlet_ids))
    return query.order_by(OutletStock.outlet_id.asc(), OutletStock.product_id.asc()).all()
