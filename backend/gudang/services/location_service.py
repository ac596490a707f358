# Overview: Canonical stock locations (central warehouse or an outlet) and location filters.

"""
Location keys (authoritative)

- "central"            the single warehouse; quantity lives on Product.stock
- "outlet:<id>"        one outlet; quantity lives in sparse OutletStock rows

Location filters used by history and analytics add one more value:

- "all"                every location the caller may see

Labels are display-only: an unknown outlet id resolves to a fallback label
instead of failing. Mutations use require_outlet() which does fail.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Outlet
from ..validation import ValidationError, NotFoundError, coerce_int

CENTRAL = "central"
OUTLET = "outlet"
ALL = "all"
OUTLET_PREFIX = "outlet:"


@dataclass(frozen=True)
class StockLocation:
    kind: str
    outlet_id: int | None = None

    @property
    def is_central(self) -> bool:
        return self.kind == CENTRAL

    @property
    def key(self) -> str:
        return location_key(self)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "outlet_id": self.outlet_id}


CENTRAL_LOCATION = StockLocation(CENTRAL)


def central_label() -> str:
    return current_app.config.get("CENTRAL_LABEL", "Central")


def unknown_outlet_label() -> str:
    return current_app.config.get("UNKNOWN_OUTLET_LABEL", "Unknown outlet")


def _coerce_outlet_id(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_int(value, "outlet_id")


def make_location(kind: str | None, outlet_id: Any = None) -> StockLocation:
    if kind not in (CENTRAL, OUTLET):
        raise ValidationError("location kind must be 'central' or 'outlet'")
    if kind == CENTRAL:
        return CENTRAL_LOCATION
    oid = _coerce_outlet_id(outlet_id)
    if oid is None:
        raise ValidationError("An outlet must be selected")
    return StockLocation(OUTLET, oid)


def parse_location(value: Any) -> StockLocation:
    """
    Accepts {"kind": "central"}, {"kind": "outlet", "outlet_id": 3},
    or a location key string ("central", "outlet:3").
    """
    if isinstance(value, StockLocation):
        return make_location(value.kind, value.outlet_id)
    if isinstance(value, str):
        s = value.strip()
        if s == CENTRAL:
            return CENTRAL_LOCATION
        if s.startswith(OUTLET_PREFIX):
            return make_location(OUTLET, s[len(OUTLET_PREFIX):])
        raise ValidationError(f"Invalid location: {value!r}")
    if isinstance(value, dict):
        return make_location(value.get("kind"), value.get("outlet_id"))
    if value is None:
        raise ValidationError("location is required")
    raise ValidationError("Invalid location")


def location_key(location: StockLocation) -> str:
    if location.kind == CENTRAL:
        return CENTRAL
    if location.outlet_id is None:
        raise ValidationError("An outlet must be selected")
    return f"{OUTLET_PREFIX}{location.outlet_id}"


def get_location_label(location: StockLocation) -> str:
    if location.kind == CENTRAL:
        return central_label()
    outlet = db.session.get(Outlet, location.outlet_id) if location.outlet_id is not None else None
    return outlet.label if outlet else unknown_outlet_label()


def resolve(kind: str, outlet_id: Any = None) -> tuple[str, str]:
    """(location_key, label) for a location; outlet without id is a ValidationError."""
    location = make_location(kind, outlet_id)
    return location_key(location), get_location_label(location)


def require_outlet(outlet_id: int, *, role: str = "Outlet") -> Outlet:
    outlet = db.session.get(Outlet, outlet_id)
    if outlet is None:
        raise NotFoundError(f"{role} {outlet_id} not found")
    return outlet


# ---------------------------------------------------------------------------
# Location filters
# ---------------------------------------------------------------------------

def parse_location_filter(value: Any) -> str:
    if value is None:
        return ALL
    s = str(value).strip()
    if s in ("", ALL):
        return ALL
    if s == CENTRAL:
        return CENTRAL
    if s.startswith(OUTLET_PREFIX):
        oid = _coerce_outlet_id(s[len(OUTLET_PREFIX):])
        if oid is None:
            raise ValidationError("location filter is missing an outlet id")
        return f"{OUTLET_PREFIX}{oid}"
    raise ValidationError("location must be 'all', 'central' or 'outlet:<id>'")


def filter_outlet_id(location_filter: str) -> int | None:
    if location_filter.startswith(OUTLET_PREFIX):
        return int(location_filter[len(OUTLET_PREFIX):])
    return None


def movement_in_location(movement, location_filter: str) -> bool:
    if location_filter == ALL:
        return True
    if location_filter == CENTRAL:
        return movement.location_kind == CENTRAL
    outlet_id = location_filter[len(OUTLET_PREFIX):]
    return movement.location_kind == OUTLET and str(movement.location_id) == outlet_id


def transfer_in_location(transfer, location_filter: str) -> bool:
    if location_filter == ALL:
        return True
    if location_filter == CENTRAL:
        return transfer.source_kind == CENTRAL
    outlet_id = filter_outlet_id(location_filter)
    from_outlet = transfer.source_kind == OUTLET and transfer.source_outlet_id == outlet_id
    to_outlet = any(d.outlet_id == outlet_id for d in transfer.destinations)
    return from_outlet or to_outlet


def location_filter_label(location_filter: str) -> str:
    if location_filter == ALL:
        return "All locations"
    if location_filter == CENTRAL:
        return central_label()
    return get_location_label(StockLocation(OUTLET, filter_outlet_id(location_filter)))


def location_filter_options(outlets: list[Outlet] | None = None) -> list[dict]:
    if outlets is None:
        outlets = db.session.query(Outlet).order_by(Outlet.name.asc()).all()
    return [
        {"value": ALL, "label": "All locations"},
        {"value": CENTRAL, "label": central_label()},
        *[
            {"value": f"{OUTLET_PREFIX}{o.id}", "label": o.label}
            for o in outlets
        ],
    ]
