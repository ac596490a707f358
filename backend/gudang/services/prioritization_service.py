# Overview: Per-location product ranking from favorites and usage counters.

"""
Product prioritization for order-entry flows.

Ordering, strictly in this order:
1. favorited at this location first
2. usage count at this location, descending
3. product name ascending (accent/case folded)

prioritize() is a pure function of its inputs. The stateful helpers below
only maintain the favorite/usage rows it reads; none of them touch ledger
quantities.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from sqlalchemy import func

from ..extensions import db
from ..models import FavoriteProduct, Movement, Product, ProductUsage
from ..text_utils import name_sort_key
from ..validation import NotFoundError
from .location_service import StockLocation, location_key


def prioritize(
    products: Iterable,
    location_key: str,
    favorites: Mapping[str, Iterable[int]],
    usage: Mapping[str, Mapping[int, int]],
) -> list:
    favorite_set = set(favorites.get(location_key) or ())
    usage_map = usage.get(location_key) or {}

    return sorted(
        products,
        key=lambda p: (
            p.id not in favorite_set,
            -int(usage_map.get(p.id, 0)),
            name_sort_key(p.name),
        ),
    )


def favorites_for(location_key: str) -> set[int]:
    rows = db.session.query(FavoriteProduct.product_id).filter_by(location_key=location_key).all()
    return {r.product_id for r in rows}


def usage_for(location_key: str) -> dict[int, int]:
    rows = db.session.query(ProductUsage.product_id, ProductUsage.count).filter_by(location_key=location_key).all()
    return {r.product_id: int(r.count) for r in rows}


def bump_usage(location_key: str, product_id: int) -> ProductUsage:
    """Increment the usage counter. Flushes only; the caller's transaction commits."""
    row = db.session.query(ProductUsage).filter_by(location_key=location_key, product_id=product_id).first()
    if row is None:
        row = ProductUsage(location_key=location_key, product_id=product_id, count=0)
        db.session.add(row)
    row.count = (row.count or 0) + 1
    db.session.flush()
    return row


def toggle_favorite(location: StockLocation, product_id: int) -> bool:
    """Flip the favorite flag; returns the new state."""
    key = location_key(location)
    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")

    row = db.session.query(FavoriteProduct).filter_by(location_key=key, product_id=product_id).first()
    if row is not None:
        db.session.delete(row)
        db.session.commit()
        return False

    db.session.add(FavoriteProduct(location_key=key, product_id=product_id))
    db.session.commit()
    return True


def prioritized_products(location: StockLocation, products: list[Product] | None = None) -> list[dict]:
    key = location_key(location)
    if products is None:
        products = db.session.query(Product).all()

    favorites = {key: favorites_for(key)}
    usage = {key: usage_for(key)}

    return [
        {
            **p.to_dict(),
            "is_favorite": p.id in favorites[key],
            "usage_count": usage[key].get(p.id, 0),
        }
        for p in prioritize(products, key, favorites, usage)
    ]


def rebuild_usage_from_history() -> int:
    """
    Recount every usage counter from movement history.

    Counters for products that no longer exist are skipped. Returns the
    number of counter rows written.
    """
    product_ids = {pid for (pid,) in db.session.query(Product.id).all()}
    rows = (
        db.session.query(
            Movement.location_kind,
            Movement.location_id,
            Movement.product_id,
            func.count(Movement.id).label("events"),
        )
        .group_by(Movement.location_kind, Movement.location_id, Movement.product_id)
        .all()
    )

    db.session.query(ProductUsage).delete()
    written = 0
    for r in rows:
        if r.product_id not in product_ids:
            continue
        key = "central" if r.location_kind == "central" else f"outlet:{r.location_id}"
        db.session.add(ProductUsage(location_key=key, product_id=r.product_id, count=int(r.events)))
        written += 1
    db.session.commit()
    return written
