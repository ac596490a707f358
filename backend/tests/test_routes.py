# Overview: HTTP-level tests for the JSON API (status codes, error mapping, scoped reads).

import pytest

from gudang.services import ledger_service
from gudang.services.access_service import AccessScope


def outlet_loc(outlet):
    return {"kind": "outlet", "outlet_id": outlet.id}


@pytest.fixture
def staff_scope(app, monkeypatch, outlet_a):
    """Restrict every request to Outlet A without central visibility."""
    scope = AccessScope(role="staff", outlet_ids=frozenset({outlet_a.id}), can_view_central=False)
    monkeypatch.setitem(app.config, "ACCESS_SCOPE_RESOLVER", lambda request: scope)
    return scope


class TestMovementRoutes:

    def test_record_movement_created(self, client, db_session, product):
        response = client.post("/api/inventory/movements", json={
            "product_id": product.id,
            "quantity": 5,
            "type": "in",
            "location": {"kind": "central"},
        })
        assert response.status_code == 201
        movement = response.get_json()["movement"]
        assert (movement["type"], movement["balance_after"]) == ("in", 55)
        assert movement["created_at"].endswith("Z")

        db_session.expire_all()
        assert ledger_service.get_quantity(product.id, "central") == 55

    def test_invalid_quantity_is_400(self, client, db_session, product):
        response = client.post("/api/inventory/movements", json={
            "product_id": product.id, "quantity": "1.5", "type": "in", "location": {"kind": "central"},
        })
        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_unknown_product_is_404(self, client, db_session):
        response = client.post("/api/inventory/movements", json={
            "product_id": 999, "quantity": 1, "type": "in", "location": {"kind": "central"},
        })
        assert response.status_code == 404

    def test_insufficient_stock_is_409_with_amounts(self, client, db_session, product):
        response = client.post("/api/inventory/movements", json={
            "product_id": product.id, "quantity": 51, "type": "out", "location": {"kind": "central"},
        })
        assert response.status_code == 409
        body = response.get_json()
        assert (body["available"], body["requested"]) == (50, 51)

    def test_opname_route(self, client, db_session, product):
        response = client.post("/api/inventory/opname", json={
            "product_id": product.id, "actual_stock": 47, "location": {"kind": "central"},
        })
        assert response.status_code == 201
        assert response.get_json()["movement"]["delta"] == -3

    def test_get_stock(self, client, db_session, product, outlet_a):
        response = client.get(f"/api/inventory/stock/{product.id}?location=outlet:{outlet_a.id}")
        assert response.status_code == 200
        assert response.get_json() == {
            "product_id": product.id,
            "location_key": f"outlet:{outlet_a.id}",
            "location_label": "Outlet A (OUT-A)",
            "quantity": 0,
        }

    def test_bad_location_filter_is_400(self, client, db_session):
        assert client.get("/api/inventory/movements?location=warehouse").status_code == 400


class TestTransferRoutes:

    def test_transfer_created(self, client, db_session, product, outlet_a, outlet_b):
        response = client.post("/api/transfers", json={
            "product_id": product.id,
            "source": {"kind": "central"},
            "destinations": [{"outlet_id": outlet_a.id, "qty": 4}, {"outlet_id": outlet_b.id, "qty": 1}],
        })
        assert response.status_code == 201
        body = response.get_json()["transfer"]
        assert body["total_qty"] == 5
        assert [d["outlet_name"] for d in body["destinations"]] == ["Outlet A", "Outlet B"]

        listing = client.get(f"/api/transfers?location=outlet:{outlet_b.id}").get_json()
        assert [t["id"] for t in listing["items"]] == [body["id"]]

    def test_duplicate_destination_is_400(self, client, db_session, product, outlet_a):
        response = client.post("/api/transfers", json={
            "product_id": product.id,
            "source": {"kind": "central"},
            "destinations": [{"outlet_id": outlet_a.id, "qty": 1}, {"outlet_id": outlet_a.id, "qty": 1}],
        })
        assert response.status_code == 400


class TestScopedAccess:

    def test_central_write_forbidden(self, client, db_session, product, staff_scope):
        response = client.post("/api/inventory/movements", json={
            "product_id": product.id, "quantity": 1, "type": "in", "location": {"kind": "central"},
        })
        assert response.status_code == 403

    def test_foreign_outlet_filter_forbidden(self, client, db_session, outlet_b, staff_scope):
        response = client.get(f"/api/dashboard/kpis?location=outlet:{outlet_b.id}")
        assert response.status_code == 403

    def test_low_stock_hides_central(self, client, db_session, make_product, staff_scope):
        make_product(name="Secret", stock=3, minimum_low_stock=10)
        body = client.get("/api/dashboard/low-stock").get_json()
        assert body == {"items": [], "count": 0}

    def test_summary_hides_central_low_stock(self, client, db_session, make_product, staff_scope):
        make_product(name="Secret", stock=3, minimum_low_stock=10)
        body = client.get("/api/dashboard/summary").get_json()
        assert body["low_stock"] == []
        assert body["kpis"]["low_stock_count"] == 0
        assert body["kpis"]["scope_stock"] == 0

    def test_snapshot_hides_central(self, client, db_session, product, outlet_a, outlet_b, staff_scope):
        body = client.get("/api/inventory/snapshot").get_json()
        assert [o["id"] for o in body["outlets"]] == [outlet_a.id]
        assert body["products"][0]["stock"] is None
        assert "central" not in [o["value"] for o in body["location_options"]]


class TestDashboardRoutes:

    def test_summary(self, client, db_session, product):
        client.post("/api/inventory/movements", json={
            "product_id": product.id, "quantity": 45, "type": "out", "location": {"kind": "central"},
        })
        response = client.get("/api/dashboard/summary?period=today&location=central")
        assert response.status_code == 200
        body = response.get_json()
        assert body["kpis"]["out_qty"] == 45
        assert body["kpis"]["low_stock_count"] == 1
        assert [i["product_id"] for i in body["low_stock"]] == [product.id]
        assert body["activity"][0]["type_label"] == "OUT"

    def test_bad_period_is_400(self, client, db_session):
        assert client.get("/api/dashboard/kpis?period=yesterday").status_code == 400

    def test_trend_range(self, client, db_session):
        body = client.get("/api/dashboard/trend?range=yearly").get_json()
        assert len(body["points"]) == 5


class TestMasterDataRoutes:

    def test_create_and_delete_category(self, client, db_session):
        response = client.post("/api/categories", json={"name": "Snacks"})
        assert response.status_code == 201
        category_id = response.get_json()["id"]
        assert client.post("/api/categories", json={"name": "SNACKS"}).status_code == 409
        assert client.delete(f"/api/categories/{category_id}").get_json() == {"deleted": True}

    def test_create_product_with_generated_sku(self, client, db_session, category, unit):
        response = client.post("/api/products", json={
            "name": "Teh Manis", "category_id": category.id, "unit_id": unit.id, "initial_stock": 3,
        })
        assert response.status_code == 201
        body = response.get_json()
        assert (body["sku"], body["stock"]) == ("TEH-MAN", 3)

    def test_suggest_code(self, client, db_session, outlet_a):
        response = client.get("/api/outlets/suggest-code", query_string={"name": "Outlet Baru"})
        assert response.get_json() == {"code": "OUT-BAR"}

    def test_delete_outlet_with_stock_is_409(self, client, db_session, product, outlet_a):
        ledger_service.set_quantity(product.id, f"outlet:{outlet_a.id}", 2)
        db_session.commit()
        assert client.delete(f"/api/outlets/{outlet_a.id}").status_code == 409


class TestPreferenceAndExportRoutes:

    def test_toggle_and_prioritized_list(self, client, db_session, make_product):
        apple = make_product(name="Apple")
        banana = make_product(name="Banana")
        response = client.post("/api/preferences/favorites/toggle", json={
            "product_id": banana.id, "location": {"kind": "central"},
        })
        assert response.get_json()["is_favorite"] is True

        body = client.get("/api/preferences/products?location=central").get_json()
        assert [i["id"] for i in body["items"]] == [banana.id, apple.id]

    def test_export_rows(self, client, db_session, product):
        body = client.get("/api/export/stock-rows?location=central").get_json()
        assert body["columns"] == ["location", "product", "sku", "category", "unit", "quantity"]
        assert body["rows"] == [{
            "location": "Central",
            "product": "Product P",
            "sku": "PRD-P",
            "category": "Beverages",
            "unit": "pcs",
            "quantity": 50,
        }]


class TestHealth:

    def test_health(self, client, db_session):
        response = client.get("/api/system/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["ledger"]["status"] == "healthy"
