# Overview: Pytest coverage for multi-destination transfers and the end-to-end stock scenario.

import pytest

from gudang.models import Movement, ProductUsage, TransferRecord
from gudang.services import analytics_service, ledger_service
from gudang.services.access_service import AccessScope
from gudang.services.movement_service import record_movement, record_opname
from gudang.services.transfer_service import list_transfers, transfer
from gudang.validation import (
    ForbiddenLocationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)

CENTRAL = {"kind": "central"}


def key(outlet):
    return f"outlet:{outlet.id}"


def balances(product, *outlets):
    return [ledger_service.get_quantity(product.id, "central")] + [
        ledger_service.get_quantity(product.id, key(o)) for o in outlets
    ]


class TestTransfer:
    """Validation order and atomic application."""

    def test_central_to_two_outlets(self, db_session, product, outlet_a, outlet_b):
        record = transfer(
            product_id=product.id,
            source=CENTRAL,
            destinations=[{"outlet_id": outlet_a.id, "qty": 4}, {"outlet_id": outlet_b.id, "qty": 1}],
        )
        assert record.total_qty == 5
        assert record.note == "Stock transfer"
        assert record.source_label == "Central"
        assert [(d.outlet_id, d.outlet_name, d.qty) for d in record.destinations] == [
            (outlet_a.id, "Outlet A", 4),
            (outlet_b.id, "Outlet B", 1),
        ]
        assert balances(product, outlet_a, outlet_b) == [45, 4, 1]

    def test_conservation_from_outlet(self, db_session, product, outlet_a, outlet_b):
        record_movement(product_id=product.id, quantity=10, type="in", location={"kind": "outlet", "outlet_id": outlet_a.id})
        before = balances(product, outlet_a, outlet_b)

        record = transfer(
            product_id=product.id,
            source={"kind": "outlet", "outlet_id": outlet_a.id},
            destinations=[{"outlet_id": outlet_b.id, "qty": 6}],
        )
        after = balances(product, outlet_a, outlet_b)
        assert before[1] - after[1] == after[2] - before[2] == record.total_qty == 6
        assert after[0] == before[0]

    def test_whole_source_moves_and_row_disappears(self, db_session, product, outlet_a, outlet_b):
        record_movement(product_id=product.id, quantity=2, type="in", location={"kind": "outlet", "outlet_id": outlet_a.id})
        transfer(
            product_id=product.id,
            source={"kind": "outlet", "outlet_id": outlet_a.id},
            destinations=[{"outlet_id": outlet_b.id, "qty": 2}],
        )
        assert ledger_service.outlet_stock_map() == {(outlet_b.id, product.id): 2}

    def test_no_usage_bump(self, db_session, product, outlet_a):
        transfer(product_id=product.id, source=CENTRAL, destinations=[{"outlet_id": outlet_a.id, "qty": 1}])
        assert db_session.query(ProductUsage).count() == 0
        assert db_session.query(Movement).count() == 0

    def test_insufficient_total_changes_nothing(self, db_session, product, outlet_a, outlet_b):
        with pytest.raises(InsufficientStockError):
            transfer(
                product_id=product.id,
                source=CENTRAL,
                destinations=[{"outlet_id": outlet_a.id, "qty": 30}, {"outlet_id": outlet_b.id, "qty": 21}],
            )
        assert balances(product, outlet_a, outlet_b) == [50, 0, 0]
        assert db_session.query(TransferRecord).count() == 0

    def test_unknown_product(self, db_session, outlet_a):
        with pytest.raises(NotFoundError):
            transfer(product_id=999, source=CENTRAL, destinations=[{"outlet_id": outlet_a.id, "qty": 1}])

    def test_source_outlet_without_id(self, db_session, product, outlet_a):
        with pytest.raises(ValidationError):
            transfer(product_id=product.id, source={"kind": "outlet"}, destinations=[{"outlet_id": outlet_a.id, "qty": 1}])

    def test_unknown_source_outlet(self, db_session, product, outlet_a):
        with pytest.raises(NotFoundError):
            transfer(
                product_id=product.id,
                source={"kind": "outlet", "outlet_id": 999},
                destinations=[{"outlet_id": outlet_a.id, "qty": 1}],
            )

    def test_destinations_without_outlet_are_dropped(self, db_session, product):
        with pytest.raises(ValidationError, match="destination"):
            transfer(product_id=product.id, source=CENTRAL, destinations=[{"outlet_id": None, "qty": 3}, {"qty": 1}])

    @pytest.mark.parametrize("qty", [0, -1, 1.5, "x"])
    def test_destination_qty_must_be_positive_int(self, db_session, product, outlet_a, qty):
        with pytest.raises(ValidationError):
            transfer(product_id=product.id, source=CENTRAL, destinations=[{"outlet_id": outlet_a.id, "qty": qty}])
        assert balances(product, outlet_a) == [50, 0]

    def test_duplicate_destinations(self, db_session, product, outlet_a):
        with pytest.raises(ValidationError, match="unique"):
            transfer(
                product_id=product.id,
                source=CENTRAL,
                destinations=[{"outlet_id": outlet_a.id, "qty": 1}, {"outlet_id": outlet_a.id, "qty": 2}],
            )

    def test_destination_equals_source(self, db_session, product, outlet_a, outlet_b):
        with pytest.raises(ValidationError, match="source"):
            transfer(
                product_id=product.id,
                source={"kind": "outlet", "outlet_id": outlet_a.id},
                destinations=[{"outlet_id": outlet_b.id, "qty": 1}, {"outlet_id": outlet_a.id, "qty": 1}],
            )

    def test_unknown_destination(self, db_session, product, outlet_a):
        with pytest.raises(NotFoundError):
            transfer(
                product_id=product.id,
                source=CENTRAL,
                destinations=[{"outlet_id": outlet_a.id, "qty": 1}, {"outlet_id": 999, "qty": 1}],
            )
        assert balances(product, outlet_a) == [50, 0]

    def test_validation_runs_before_stock_check(self, db_session, product, outlet_a):
        # duplicate destinations are reported even though the total is also too large
        with pytest.raises(ValidationError):
            transfer(
                product_id=product.id,
                source=CENTRAL,
                destinations=[{"outlet_id": outlet_a.id, "qty": 100}, {"outlet_id": outlet_a.id, "qty": 100}],
            )

    def test_scope_requires_writable_source(self, db_session, product, outlet_a):
        scope = AccessScope(role="staff", outlet_ids=frozenset({outlet_a.id}), can_view_central=False)
        with pytest.raises(ForbiddenLocationError):
            transfer(product_id=product.id, source=CENTRAL, destinations=[{"outlet_id": outlet_a.id, "qty": 1}], scope=scope)


class TestListTransfers:

    def test_outlet_filter_matches_source_or_destination(self, db_session, product, outlet_a, outlet_b):
        to_a = transfer(product_id=product.id, source=CENTRAL, destinations=[{"outlet_id": outlet_a.id, "qty": 5}])
        a_to_b = transfer(
            product_id=product.id,
            source={"kind": "outlet", "outlet_id": outlet_a.id},
            destinations=[{"outlet_id": outlet_b.id, "qty": 2}],
        )

        assert [t["id"] for t in list_transfers(location_filter=key(outlet_a))["items"]] == [a_to_b.id, to_a.id]
        assert [t["id"] for t in list_transfers(location_filter=key(outlet_b))["items"]] == [a_to_b.id]
        assert [t["id"] for t in list_transfers(location_filter="central")["items"]] == [to_a.id]


class TestExampleScenario:
    """Central 50 / min 10 -> out 45 -> transfer 4 + 1 -> opname 4 at A -> out 2 at B fails."""

    def test_scenario(self, db_session, product, outlet_a, outlet_b):
        out = record_movement(product_id=product.id, quantity=45, type="out", location=CENTRAL)
        assert (out.type, out.qty, out.delta, out.balance_after) == ("out", 45, -45, 5)
        low = analytics_service.low_stock_priorities()
        assert [i["product_id"] for i in low] == [product.id]

        record = transfer(
            product_id=product.id,
            source=CENTRAL,
            destinations=[{"outlet_id": outlet_a.id, "qty": 4}, {"outlet_id": outlet_b.id, "qty": 1}],
        )
        assert record.total_qty == 5
        assert balances(product, outlet_a, outlet_b) == [0, 4, 1]

        opname = record_opname(product_id=product.id, actual_stock=4, location={"kind": "outlet", "outlet_id": outlet_a.id})
        assert (opname.type, opname.delta, opname.balance_after) == ("opname", 0, 4)

        with pytest.raises(InsufficientStockError):
            record_movement(product_id=product.id, quantity=2, type="out", location={"kind": "outlet", "outlet_id": outlet_b.id})
        assert balances(product, outlet_a, outlet_b) == [0, 4, 1]
