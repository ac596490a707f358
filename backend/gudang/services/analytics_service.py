# Overview: Derived dashboard analytics over movement/transfer history and the current ledger.

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Category, Movement, Outlet, Product, TransferRecord, Unit
from ..text_utils import name_sort_key
from ..time_utils import date_key, month_key, shift_months, start_of_day, to_utc_naive, to_utc_z, utcnow
from ..validation import ValidationError
from . import ledger_service, movement_service, transfer_service
from .access_service import AccessScope, check_location_filter
from .location_service import (
    ALL,
    CENTRAL,
    OUTLET,
    OUTLET_PREFIX,
    filter_outlet_id,
    location_filter_label,
    movement_in_location,
    parse_location_filter,
    transfer_in_location,
)
"""
Analytics Semantics (authoritative)

Windows:
- "today" / "last7days" / "last30days" start at the start of the current UTC
  day minus 0 / 6 / 29 days. The window is [start, now], both inclusive.
- Inactivity always uses the last30days window, whatever the caller's period.

Location filters:
- "all" | "central" | "outlet:<id>". Movements match by their own location.
  Transfers match "central" when the source is central and "outlet:<id>"
  when that outlet is the source or any destination.
- Every function takes the caller's AccessScope. A filter outside the scope
  raises ForbiddenLocationError; "all" is narrowed to what the scope can see.

Derived values are recomputed from history on every call; nothing is cached.
"""

PERIODS = {"today": 0, "last7days": 6, "last30days": 29}
TREND_RANGES = ("last30days", "monthly", "yearly")
INACTIVE_SENTINEL_DAYS = 999

TYPE_LABELS = {"in": "IN", "out": "OUT", "opname": "OPNAME"}


def _now(now: datetime | None) -> datetime:
    return to_utc_naive(now) if now is not None else utcnow()


def _default_limit() -> int:
    return int(current_app.config.get("DASHBOARD_DEFAULT_LIMIT", 5))


def _prepare_filter(location_filter, scope: AccessScope | None) -> str:
    location_filter = parse_location_filter(location_filter)
    check_location_filter(scope, location_filter)
    return location_filter


def period_start(period: str, now: datetime | None = None) -> datetime:
    if period not in PERIODS:
        raise ValidationError("period must be 'today', 'last7days' or 'last30days'")
    return start_of_day(_now(now)) - timedelta(days=PERIODS[period])


# ---------------------------------------------------------------------------
# History readers
# ---------------------------------------------------------------------------

def filter_movements(
    location_filter: str,
    scope: AccessScope | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Movement]:
    """Movements in the location filter (and scope), optionally within [start, end]; newest first."""
    query = db.session.query(Movement)
    for cond in (
        movement_service.location_condition(location_filter),
        movement_service.scope_condition(scope),
    ):
        if cond is not None:
            query = query.filter(cond)
    if start is not None:
        query = query.filter(Movement.created_at >= start)
    if end is not None:
        query = query.filter(Movement.created_at <= end)
    return query.order_by(Movement.created_at.desc(), Movement.id.desc()).all()


def filter_transfers(
    location_filter: str,
    scope: AccessScope | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[TransferRecord]:
    query = db.session.query(TransferRecord)
    for cond in (
        transfer_service.location_condition(location_filter),
        transfer_service.scope_condition(scope),
    ):
        if cond is not None:
            query = query.filter(cond)
    if start is not None:
        query = query.filter(TransferRecord.created_at >= start)
    if end is not None:
        query = query.filter(TransferRecord.created_at <= end)
    return query.order_by(TransferRecord.created_at.desc(), TransferRecord.id.desc()).all()


def _period_movements(period, location_filter, scope, now) -> list[Movement]:
    now = _now(now)
    return filter_movements(location_filter, scope, start=period_start(period, now), end=now)


def _period_transfers(period, location_filter, scope, now) -> list[TransferRecord]:
    now = _now(now)
    return filter_transfers(location_filter, scope, start=period_start(period, now), end=now)


# ---------------------------------------------------------------------------
# Stock scope helpers
# ---------------------------------------------------------------------------

def _visible_outlets(location_filter: str, scope: AccessScope | None) -> list[Outlet]:
    """Outlets the filter covers: all -> every outlet in scope, central -> none, outlet:<id> -> that one."""
    if location_filter == CENTRAL:
        return []
    query = db.session.query(Outlet)
    if location_filter.startswith(OUTLET_PREFIX):
        query = query.filter(Outlet.id == filter_outlet_id(location_filter))
    outlets = query.all()
    if scope is not None and scope.outlet_ids is not None:
        outlets = [o for o in outlets if o.id in scope.outlet_ids]
    return outlets


def _can_view_central(scope: AccessScope | None) -> bool:
    return scope is None or scope.can_view_central


def _includes_central(location_filter: str, scope: AccessScope | None) -> bool:
    if location_filter == CENTRAL:
        return True
    if location_filter == ALL:
        return _can_view_central(scope)
    return False


def scope_stock_total(location_filter: str, scope: AccessScope | None = None) -> int:
    total = ledger_service.central_total() if _includes_central(location_filter, scope) else 0
    totals = ledger_service.outlet_totals()
    for outlet in _visible_outlets(location_filter, scope):
        total += totals.get(outlet.id, 0)
    return total


# ---------------------------------------------------------------------------
# Dashboard building blocks
# ---------------------------------------------------------------------------

def compute_kpis(
    *,
    period: str = "today",
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    now: datetime | None = None,
) -> dict:
    location_filter = _prepare_filter(location_filter, scope)
    movements = _period_movements(period, location_filter, scope, now)

    in_qty = sum(m.qty for m in movements if m.type == "in")
    out_qty = sum(m.qty for m in movements if m.type == "out")
    opname_events = sum(1 for m in movements if m.type == "opname")

    # central semantics: products at or below their minimum
    low_stock_count = 0
    if _can_view_central(scope):
        low_stock_count = (
            db.session.query(func.count(Product.id))
            .filter(Product.stock <= Product.minimum_low_stock)
            .scalar()
        ) or 0

    return {
        "scope_stock": scope_stock_total(location_filter, scope),
        "in_qty": in_qty,
        "out_qty": out_qty,
        "net_qty": in_qty - out_qty,
        "opname_events": opname_events,
        "low_stock_count": int(low_stock_count),
    }


def _low_stock_item(product: Product, current_stock: int) -> dict:
    return {
        "product_id": product.id,
        "name": product.name,
        "sku": product.sku,
        "current_stock": current_stock,
        "minimum_low_stock": product.minimum_low_stock,
        "gap": max(0, product.minimum_low_stock - current_stock),
    }


def low_stock_priorities(
    products: Iterable[Product] | None = None,
    limit: int | None = None,
    scope: AccessScope | None = None,
) -> list[dict]:
    """
    Products with central stock <= minimum, largest gap first, then by name.

    Empty for callers who cannot see the central warehouse.
    """
    if not _can_view_central(scope):
        return []
    if products is None:
        products = db.session.query(Product).all()
    if limit is None:
        limit = _default_limit()

    items = [_low_stock_item(p, p.stock) for p in products if p.stock <= p.minimum_low_stock]
    items.sort(key=lambda i: (-i["gap"], name_sort_key(i["name"])))
    return items[:limit]


def low_stock_alerts(
    *,
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Per-location low-stock alerts: central plus every outlet the filter covers.

    An outlet balance is low when it is at or below the product minimum, the
    same rule as central. Items carry the location key/label so one list can
    mix locations.
    """
    location_filter = _prepare_filter(location_filter, scope)
    if limit is None:
        limit = _default_limit()

    products = db.session.query(Product).all()
    items: list[dict] = []

    if _includes_central(location_filter, scope):
        for p in products:
            if p.stock <= p.minimum_low_stock:
                items.append({
                    **_low_stock_item(p, p.stock),
                    "location_kind": CENTRAL,
                    "location_key": CENTRAL,
                    "location_label": location_filter_label(CENTRAL),
                    "outlet_id": None,
                })

    stock_map = ledger_service.outlet_stock_map()
    for outlet in _visible_outlets(location_filter, scope):
        for p in products:
            qty = stock_map.get((outlet.id, p.id), 0)
            if qty <= p.minimum_low_stock:
                items.append({
                    **_low_stock_item(p, qty),
                    "location_kind": OUTLET,
                    "location_key": f"{OUTLET_PREFIX}{outlet.id}",
                    "location_label": outlet.label,
                    "outlet_id": outlet.id,
                })

    items.sort(key=lambda i: (-i["gap"], name_sort_key(i["name"]), name_sort_key(i["location_label"])))
    return {
        "location_filter": location_filter,
        "low_stock_count": len(items),
        "low_stock_priorities": items[:limit],
        "as_of": to_utc_z(_now(now)),
    }


def _movement_item(m: Movement) -> dict:
    return {
        "id": f"movement:{m.id}",
        "kind": "movement",
        "type_label": TYPE_LABELS.get(m.type, m.type.upper()),
        "created_at": to_utc_z(m.created_at),
        "title": m.product_name,
        "subtitle": f"{m.location_label} | {m.note}",
        "qty_text": f"{m.qty}",
        "_sort": (m.created_at, 0, m.id),
    }


def _transfer_item(t: TransferRecord) -> dict:
    destinations = ", ".join(d.outlet_name for d in t.destinations)
    return {
        "id": f"transfer:{t.id}",
        "kind": "transfer",
        "type_label": "TRANSFER",
        "created_at": to_utc_z(t.created_at),
        "title": t.product_name,
        "subtitle": f"{t.source_label} -> {destinations}",
        "qty_text": f"{t.total_qty}",
        "_sort": (t.created_at, 1, t.id),
    }


def recent_activity(
    *,
    period: str = "today",
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[dict]:
    location_filter = _prepare_filter(location_filter, scope)
    if limit is None:
        limit = int(current_app.config.get("ACTIVITY_DEFAULT_LIMIT", 10))

    items = [_movement_item(m) for m in _period_movements(period, location_filter, scope, now)]
    items += [_transfer_item(t) for t in _period_transfers(period, location_filter, scope, now)]
    items.sort(key=lambda i: i["_sort"], reverse=True)

    out = []
    for item in items[:limit]:
        item.pop("_sort")
        out.append(item)
    return out


def top_active_products(
    *,
    period: str = "today",
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[dict]:
    location_filter = _prepare_filter(location_filter, scope)
    if limit is None:
        limit = _default_limit()

    products = {p.id: p for p in db.session.query(Product).all()}
    aggregated: dict[int, dict] = {}
    for m in _period_movements(period, location_filter, scope, now):
        # deleted products drop out of the ranking
        if m.product_id not in products:
            continue
        entry = aggregated.setdefault(m.product_id, {"events": 0, "total_qty": 0})
        entry["events"] += 1
        entry["total_qty"] += m.qty

    rows = [
        {
            "product_id": pid,
            "name": products[pid].name,
            "sku": products[pid].sku,
            "events": v["events"],
            "total_qty": v["total_qty"],
        }
        for pid, v in aggregated.items()
    ]
    rows.sort(key=lambda r: (-r["events"], -r["total_qty"], name_sort_key(r["name"])))
    return rows[:limit]


def outlet_summaries(
    *,
    period: str = "today",
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    now: datetime | None = None,
) -> list[dict]:
    location_filter = _prepare_filter(location_filter, scope)
    outlets = _visible_outlets(location_filter, scope)
    if not outlets:
        return []

    movements = _period_movements(period, ALL, None, now)
    transfers = _period_transfers(period, ALL, None, now)
    totals = ledger_service.outlet_totals()

    rows = []
    for outlet in outlets:
        key = f"{OUTLET_PREFIX}{outlet.id}"
        movement_events = sum(1 for m in movements if movement_in_location(m, key))
        transfer_events = sum(1 for t in transfers if transfer_in_location(t, key))
        rows.append({
            "outlet_id": outlet.id,
            "outlet_name": outlet.name,
            "outlet_code": outlet.code,
            "total_stock": totals.get(outlet.id, 0),
            "movement_events": movement_events,
            "transfer_events": transfer_events,
            "total_events": movement_events + transfer_events,
        })

    rows.sort(key=lambda r: (-r["total_events"], -r["total_stock"], name_sort_key(r["outlet_name"])))
    return rows


def inactive_products(
    *,
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Products with no movement in the last 30 days at the filtered locations.

    days_inactive counts whole days since the latest movement ever recorded
    for the product in the filter, or 999 when there is none.
    """
    location_filter = _prepare_filter(location_filter, scope)
    if limit is None:
        limit = _default_limit()
    now = _now(now)

    active_ids = {m.product_id for m in _period_movements("last30days", location_filter, scope, now)}

    latest_query = db.session.query(Movement.product_id, func.max(Movement.created_at).label("latest"))
    for cond in (
        movement_service.location_condition(location_filter),
        movement_service.scope_condition(scope),
    ):
        if cond is not None:
            latest_query = latest_query.filter(cond)
    latest = {r.product_id: r.latest for r in latest_query.group_by(Movement.product_id).all()}

    rows = []
    for p in db.session.query(Product).all():
        if p.id in active_ids:
            continue
        last_at = latest.get(p.id)
        if last_at is None:
            days = INACTIVE_SENTINEL_DAYS
        else:
            seconds = max(0.0, (now - to_utc_naive(last_at)).total_seconds())
            days = int(seconds // 86400)
        rows.append({
            "product_id": p.id,
            "name": p.name,
            "sku": p.sku,
            "days_inactive": days,
        })

    rows.sort(key=lambda r: (-r["days_inactive"], name_sort_key(r["name"])))
    return rows[:limit]


# ---------------------------------------------------------------------------
# Trend + report table
# ---------------------------------------------------------------------------

def trend_buckets(range_: str, now: datetime | None = None) -> list[dict]:
    """Contiguous buckets ending with the current day / month / year."""
    today = start_of_day(_now(now))
    buckets = []
    if range_ == "last30days":
        for offset in range(29, -1, -1):
            start = today - timedelta(days=offset)
            buckets.append({
                "key": date_key(start),
                "label": start.strftime("%d %b"),
                "start": start,
                "end": start + timedelta(days=1),
            })
    elif range_ == "monthly":
        for offset in range(11, -1, -1):
            start = shift_months(today, -offset)
            buckets.append({
                "key": month_key(start),
                "label": start.strftime("%b %y"),
                "start": start,
                "end": shift_months(start, 1),
            })
    elif range_ == "yearly":
        for offset in range(4, -1, -1):
            year = today.year - offset
            buckets.append({
                "key": f"{year}",
                "label": f"{year}",
                "start": datetime(year, 1, 1),
                "end": datetime(year + 1, 1, 1),
            })
    else:
        raise ValidationError("range must be 'last30days', 'monthly' or 'yearly'")
    return buckets


def _bucket_key(range_: str, dt: datetime) -> str:
    if range_ == "last30days":
        return date_key(dt)
    if range_ == "monthly":
        return month_key(dt)
    return f"{dt.year}"


def stock_trend(
    *,
    range_: str = "last30days",
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    now: datetime | None = None,
) -> dict:
    """
    In/out quantities per bucket. Opname events are excluded; each movement
    lands in exactly one bucket by its timestamp.
    """
    location_filter = _prepare_filter(location_filter, scope)
    buckets = trend_buckets(range_, now)

    aggregated = {b["key"]: {"in_qty": 0, "out_qty": 0} for b in buckets}
    movements = filter_movements(location_filter, scope, start=buckets[0]["start"])
    last_end = buckets[-1]["end"]
    for m in movements:
        created_at = to_utc_naive(m.created_at)
        if m.type == "opname" or created_at >= last_end:
            continue
        entry = aggregated.get(_bucket_key(range_, created_at))
        if entry is None:
            continue
        if m.type == "in":
            entry["in_qty"] += m.qty
        elif m.type == "out":
            entry["out_qty"] += m.qty

    points = []
    for b in buckets:
        in_qty = aggregated[b["key"]]["in_qty"]
        out_qty = aggregated[b["key"]]["out_qty"]
        points.append({
            "key": b["key"],
            "label": b["label"],
            "in_qty": in_qty,
            "out_qty": out_qty,
            "net_qty": in_qty - out_qty,
        })

    return {
        "range": range_,
        "location_filter": location_filter,
        "location_label": location_filter_label(location_filter),
        "points": points,
        "totals": {
            "in_qty": sum(p["in_qty"] for p in points),
            "out_qty": sum(p["out_qty"] for p in points),
            "net_qty": sum(p["net_qty"] for p in points),
        },
    }


def stock_report_rows(*, location_filter: str = ALL, scope: AccessScope | None = None) -> list[dict]:
    """Per-product stock table: central, outlet total, combined and the filtered quantity."""
    location_filter = _prepare_filter(location_filter, scope)

    categories = {c.id: c.name for c in db.session.query(Category).all()}
    units = {u.id: u.name for u in db.session.query(Unit).all()}
    stock_map = ledger_service.outlet_stock_map()
    visible_ids = {o.id for o in _visible_outlets(ALL, scope)}
    show_central = scope is None or scope.can_view_central

    rows = []
    for p in db.session.query(Product).all():
        outlet_total = sum(
            qty for (outlet_id, product_id), qty in stock_map.items()
            if product_id == p.id and outlet_id in visible_ids
        )
        central = p.stock if show_central else 0
        if location_filter == CENTRAL:
            filtered = central
        elif location_filter == ALL:
            filtered = central + outlet_total
        else:
            filtered = stock_map.get((filter_outlet_id(location_filter), p.id), 0)
        rows.append({
            "product_id": p.id,
            "name": p.name,
            "sku": p.sku,
            "category": categories.get(p.category_id, "-"),
            "unit": units.get(p.unit_id, "-"),
            "minimum_low_stock": p.minimum_low_stock,
            "central_stock": central,
            "outlet_stock": outlet_total,
            "total_stock": central + outlet_total,
            "filtered_stock": filtered,
        })

    rows.sort(key=lambda r: name_sort_key(r["name"]))
    return rows


def dashboard(
    *,
    period: str = "today",
    location_filter: str = ALL,
    scope: AccessScope | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Everything the dashboard page shows, computed against one 'now'."""
    now = _now(now)
    location_filter = _prepare_filter(location_filter, scope)
    period_start(period, now)

    return {
        "period": period,
        "location_filter": location_filter,
        "location_label": location_filter_label(location_filter),
        "as_of": to_utc_z(now),
        "kpis": compute_kpis(period=period, location_filter=location_filter, scope=scope, now=now),
        "low_stock": low_stock_priorities(limit=limit, scope=scope),
        "activity": recent_activity(period=period, location_filter=location_filter, scope=scope, now=now),
        "top_products": top_active_products(
            period=period, location_filter=location_filter, scope=scope, limit=limit, now=now
        ),
        "outlets": outlet_summaries(period=period, location_filter=location_filter, scope=scope, now=now),
        "inactive": inactive_products(location_filter=location_filter, scope=scope, limit=limit, now=now),
    }
