# backend/gudang/services/transfer_service.py
"""
One-source / many-destination stock transfer.

A transfer moves stock from the central warehouse or an outlet to one or
more outlets. The whole request is validated before the first ledger write,
then the source decrement and every destination increment are applied in
one database transaction. Either all balances change or none do.

Validation order (first failure wins):
1. product exists
2. outlet source has an id and resolves to a known outlet
3. at least one destination with an outlet id
4. every destination quantity is a positive integer
5. destination outlet ids are unique
6. no destination is the source outlet
7. every destination outlet exists
8. total quantity <= source balance

Transfers do not bump product usage counters.
"""
from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import false, or_

from ..extensions import db
from ..models import Product, TransferDestination, TransferRecord
from ..pagination import paginate_query
from ..validation import (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    clean_text,
    coerce_int,
    require_positive_int,
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
    parse_location_filter,
    require_outlet,
)

DEFAULT_TRANSFER_NOTE = "Stock transfer"


def _parse_source(source: Any) -> StockLocation:
    """Source is central or an outlet; an outlet without id fails here (step 2)."""
    if isinstance(source, StockLocation):
        kind, outlet_id = source.kind, source.outlet_id
    elif isinstance(source, dict):
        kind, outlet_id = source.get("kind"), source.get("outlet_id")
    elif isinstance(source, str) and source.strip() == CENTRAL:
        kind, outlet_id = CENTRAL, None
    elif isinstance(source, str) and source.strip().startswith("outlet:"):
        kind, outlet_id = OUTLET, source.strip()[len("outlet:"):]
    else:
        raise ValidationError("source is required")

    if kind == CENTRAL:
        return StockLocation(CENTRAL)
    if kind != OUTLET:
        raise ValidationError("source kind must be 'central' or 'outlet'")
    if outlet_id is None or (isinstance(outlet_id, str) and not outlet_id.strip()):
        raise ValidationError("Source outlet must be selected")
    return StockLocation(OUTLET, coerce_int(outlet_id, "source.outlet_id"))


def _normalize_destinations(destinations: Any, source: StockLocation) -> list[tuple[int, int]]:
    """Steps 3-6. Returns [(outlet_id, qty)] in request order."""
    if destinations is None:
        destinations = []
    if not isinstance(destinations, list):
        raise ValidationError("destinations must be a list")

    entries = []
    for entry in destinations:
        if not isinstance(entry, dict):
            raise ValidationError("Each destination must be an object")
        outlet_id = entry.get("outlet_id")
        if outlet_id is None or (isinstance(outlet_id, str) and not outlet_id.strip()):
            continue
        entries.append((outlet_id, entry.get("qty", entry.get("quantity"))))

    if not entries:
        raise ValidationError("Select at least one destination outlet")

    parsed = []
    for outlet_id, qty in entries:
        parsed.append((coerce_int(outlet_id, "destination outlet_id"), require_positive_int(qty, "qty")))

    seen: set[int] = set()
    for outlet_id, _ in parsed:
        if outlet_id in seen:
            raise ValidationError("Destination outlets must be unique")
        seen.add(outlet_id)

    if source.kind == OUTLET and source.outlet_id in seen:
        raise ValidationError("Destination outlet cannot be the source outlet")

    return parsed


def transfer(
    *,
    product_id: int,
    source: Any,
    destinations: list,
    note: str | None = None,
    scope: AccessScope | None = None,
) -> TransferRecord:
    """
    Move stock from one location to one or more outlets atomically.

    Args:
        product_id: Product being moved
        source: {"kind": "central"} or {"kind": "outlet", "outlet_id": 3}
        destinations: [{"outlet_id": 4, "qty": 2}, ...]
        note: Optional note, defaults to "Stock transfer"
        scope: Caller access scope; the source must be writable

    Returns:
        TransferRecord: the appended record, with destination name snapshots

    Raises:
        ValidationError, NotFoundError, InsufficientStockError,
        ForbiddenLocationError
    """
    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")

        src = _parse_source(source)
        if src.kind == OUTLET:
            require_outlet(src.outlet_id, role="Source outlet")

        parsed = _normalize_destinations(destinations, src)
        dest_outlets = [
            (require_outlet(outlet_id, role="Destination outlet"), qty)
            for outlet_id, qty in parsed
        ]
        check_write_location(scope, src)

        src_key = location_key(src)
        total = sum(qty for _, qty in dest_outlets)
        available = ledger_service.get_quantity(product.id, src_key, lock=True)
        if total > available:
            raise InsufficientStockError(
                f"Transfer failed: total {total} exceeds available {available} at source",
                available=available,
                requested=total,
            )

        ledger_service.set_quantity(product.id, src_key, available - total)
        for outlet, qty in dest_outlets:
            dest_key = location_key(StockLocation(OUTLET, outlet.id))
            before = ledger_service.get_quantity(product.id, dest_key, lock=True)
            ledger_service.set_quantity(product.id, dest_key, before + qty)

        record = TransferRecord(
            product_id=product.id,
            product_name=product.name,
            source_kind=src.kind,
            source_outlet_id=src.outlet_id,
            source_label=get_location_label(src),
            total_qty=total,
            note=clean_text(note) or DEFAULT_TRANSFER_NOTE,
        )
        db.session.add(record)
        db.session.flush()

        for outlet, qty in dest_outlets:
            db.session.add(TransferDestination(
                transfer_id=record.id,
                outlet_id=outlet.id,
                outlet_name=outlet.name,
                qty=qty,
            ))
        db.session.flush()
        db.session.refresh(record)
        return record

    record = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded transfer id=%s product_id=%s source=%s total_qty=%s destinations=%s",
        record.id, record.product_id, record.source_label, record.total_qty,
        [(d.outlet_id, d.qty) for d in record.destinations],
    )
    return record


def _has_destination(outlet_ids):
    return TransferRecord.destinations.any(TransferDestination.outlet_id.in_(list(outlet_ids)))


def scope_condition(scope: AccessScope | None):
    if scope is None or scope.is_unrestricted:
        return None
    parts = []
    if scope.can_view_central:
        parts.append(TransferRecord.source_kind == CENTRAL)
    if scope.outlet_ids is None:
        parts.append(TransferRecord.source_kind == OUTLET)
        parts.append(TransferRecord.destinations.any())
    elif scope.outlet_ids:
        parts.append(TransferRecord.source_outlet_id.in_(list(scope.outlet_ids)))
        parts.append(_has_destination(scope.outlet_ids))
    return or_(*parts) if parts else false()


def location_condition(location_filter: str):
    if location_filter == ALL:
        return None
    if location_filter == CENTRAL:
        return TransferRecord.source_kind == CENTRAL
    outlet_id = filter_outlet_id(location_filter)
    return or_(
        TransferRecord.source_outlet_id == outlet_id,
        _has_destination([outlet_id]),
    )


def list_transfers(
    *,
    location_filter: str | None = ALL,
    product_id: int | None = None,
    scope: AccessScope | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Transfer history, newest first. An outlet filter matches the source or any destination."""
    location_filter = parse_location_filter(location_filter)
    check_location_filter(scope, location_filter)

    query = db.session.query(TransferRecord)
    for cond in (location_condition(location_filter), scope_condition(scope)):
        if cond is not None:
            query = query.filter(cond)
    if product_id is not None:
        query = query.filter(TransferRecord.product_id == product_id)

    query = query.order_by(TransferRecord.created_at.desc(), TransferRecord.id.desc())
    return paginate_query(query, page=page, per_page=per_page, serialize=lambda t: t.to_dict())
