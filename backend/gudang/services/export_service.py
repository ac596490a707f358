# Overview: Flat stock rows for the reporting/export collaborator (the spreadsheet writer lives elsewhere).

from __future__ import annotations

from ..extensions import db
from ..models import Category, Outlet, Product, Unit
from ..text_utils import name_sort_key
from . import ledger_service
from .access_service import AccessScope, check_location_filter
from .location_service import ALL, CENTRAL, OUTLET_PREFIX, central_label, filter_outlet_id, parse_location_filter


def stock_rows(location_filter: str = ALL, scope: AccessScope | None = None) -> list[dict]:
    """
    One row per (location, product) with columns
    location, product, sku, category, unit, quantity.

    "all" emits the central block first, then each outlet by name. Products
    without a balance at a location still get a row with quantity 0.
    """
    location_filter = parse_location_filter(location_filter)
    check_location_filter(scope, location_filter)

    products = sorted(db.session.query(Product).all(), key=lambda p: name_sort_key(p.name))
    categories = {c.id: c.name for c in db.session.query(Category).all()}
    units = {u.id: u.name for u in db.session.query(Unit).all()}

    def _row(location: str, product: Product, qty: int) -> dict:
        return {
            "location": location,
            "product": product.name,
            "sku": product.sku,
            "category": categories.get(product.category_id, "-"),
            "unit": units.get(product.unit_id, "-"),
            "quantity": qty,
        }

    rows: list[dict] = []
    if location_filter == CENTRAL or (
        location_filter == ALL and (scope is None or scope.can_view_central)
    ):
        label = central_label()
        rows.extend(_row(label, p, p.stock) for p in products)

    if location_filter == CENTRAL:
        return rows

    query = db.session.query(Outlet)
    if location_filter.startswith(OUTLET_PREFIX):
        query = query.filter(Outlet.id == filter_outlet_id(location_filter))
    outlets = sorted(query.all(), key=lambda o: name_sort_key(o.name))
    if scope is not None and scope.outlet_ids is not None:
        outlets = [o for o in outlets if o.id in scope.outlet_ids]

    stock_map = ledger_service.outlet_stock_map()
    for outlet in outlets:
        rows.extend(_row(outlet.label, p, stock_map.get((outlet.id, p.id), 0)) for p in products)
    return rows
