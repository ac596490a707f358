# Overview: Caller access scope (role + accessible locations) consumed from the access-control collaborator.

"""
Access scope

Authentication and role resolution live outside this service. The host
configures ACCESS_SCOPE_RESOLVER, a callable(request) -> AccessScope, and the
@require_access_scope decorator stores the result on flask.g.

Every history and analytics function takes a scope so results never include
locations the caller cannot see:

- an explicit filter outside the scope raises ForbiddenLocationError
- the "all" filter is narrowed to the scope's locations
"""

from __future__ import annotations

from dataclasses import dataclass

from ..validation import ForbiddenLocationError
from .location_service import ALL, CENTRAL, StockLocation, filter_outlet_id

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"


@dataclass(frozen=True)
class AccessScope:
    role: str = ROLE_OWNER
    # None means every outlet
    outlet_ids: frozenset[int] | None = None
    can_view_central: bool = True
    can_write: bool = True

    @property
    def is_unrestricted(self) -> bool:
        return self.outlet_ids is None and self.can_view_central

    def allows_outlet(self, outlet_id: int | None) -> bool:
        if outlet_id is None:
            return False
        return self.outlet_ids is None or outlet_id in self.outlet_ids

    def allows_location(self, location: StockLocation) -> bool:
        if location.kind == CENTRAL:
            return self.can_view_central
        return self.allows_outlet(location.outlet_id)

    def visible_outlet_ids(self, all_outlet_ids) -> set[int]:
        ids = set(all_outlet_ids)
        if self.outlet_ids is None:
            return ids
        return ids & set(self.outlet_ids)


FULL_ACCESS = AccessScope()


def check_location_filter(scope: AccessScope | None, location_filter: str) -> None:
    if scope is None or location_filter == ALL:
        return
    if location_filter == CENTRAL:
        if not scope.can_view_central:
            raise ForbiddenLocationError("Central warehouse is outside your access")
        return
    if not scope.allows_outlet(filter_outlet_id(location_filter)):
        raise ForbiddenLocationError("Outlet is outside your access")


def check_write_location(scope: AccessScope | None, location: StockLocation) -> None:
    if scope is None:
        return
    if not scope.can_write:
        raise ForbiddenLocationError("Your role cannot change stock")
    if not scope.allows_location(location):
        raise ForbiddenLocationError("Location is outside your access")


def resolve_request_scope(app, request) -> AccessScope:
    resolver = app.config.get("ACCESS_SCOPE_RESOLVER")
    if resolver is None:
        return FULL_ACCESS
    scope = resolver(request)
    return scope if scope is not None else FULL_ACCESS
