# Overview: Pytest coverage for master data CRUD, code generation, delete rules and export rows.

import pytest

from gudang.models import FavoriteProduct, Movement, OutletStock, Product, ProductUsage
from gudang.services import ledger_service, master_data_service as mds
from gudang.services.export_service import stock_rows
from gudang.services.movement_service import record_movement
from gudang.services.prioritization_service import toggle_favorite
from gudang.services.location_service import StockLocation
from gudang.services.transfer_service import transfer
from gudang.text_utils import build_code_from_name
from gudang.validation import ConflictError, NotFoundError, ValidationError


class TestCodeGeneration:

    def test_three_letters_per_word(self):
        assert build_code_from_name("Buku Catatan A5", [], fallback="PRD") == "BUK-CAT-A5"

    def test_collision_suffix(self):
        assert build_code_from_name("Kopi", ["KOP", "kop-2"], fallback="PRD") == "KOP-3"

    def test_fallback_for_symbols_only(self):
        assert build_code_from_name("!!!", [], fallback="OUT") == "OUT"

    def test_accents_stripped(self):
        assert build_code_from_name("Café Ébène", [], fallback="PRD") == "CAF-EBE"


class TestCategoriesAndUnits:

    def test_create_trims_and_rejects_duplicates_case_insensitive(self, db_session):
        category = mds.create_category({"name": "  Snacks "})
        assert category.name == "Snacks"
        with pytest.raises(ConflictError):
            mds.create_category({"name": "snacks"})

    def test_blank_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            mds.create_unit({"name": "   "})

    def test_rename_to_own_name_allowed(self, db_session, unit):
        assert mds.update_unit(unit.id, {"name": "PCS"}).name == "PCS"

    def test_list_sorted_by_name(self, db_session):
        for name in ("kg", "Box", "liter"):
            mds.create_unit({"name": name})
        assert [u["name"] for u in mds.list_units()] == ["Box", "kg", "liter"]

    def test_delete_used_category_conflicts(self, db_session, product, category):
        with pytest.raises(ConflictError):
            mds.delete_category(category.id)

    def test_delete_unused_unit(self, db_session):
        unit = mds.create_unit({"name": "dus"})
        mds.delete_unit(unit.id)
        assert mds.list_units() == []

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            mds.delete_category(999)


class TestProducts:

    def payload(self, category, unit, **extra):
        return {"name": "Kopi Susu", "category_id": category.id, "unit_id": unit.id, **extra}

    def test_blank_sku_generated(self, db_session, category, unit):
        product = mds.create_product(self.payload(category, unit, sku="  "))
        assert product.sku == "KOP-SUS"
        second = mds.create_product(self.payload(category, unit))
        assert second.sku == "KOP-SUS-2"

    def test_sku_uppercased_and_unique(self, db_session, category, unit):
        assert mds.create_product(self.payload(category, unit, sku="ks-01")).sku == "KS-01"
        with pytest.raises(ConflictError):
            mds.create_product(self.payload(category, unit, name="Other", sku="KS-01"))

    def test_initial_stock_posts_central_movement(self, db_session, category, unit):
        product = mds.create_product(self.payload(category, unit, initial_stock=12))
        assert ledger_service.get_quantity(product.id, "central") == 12
        movement = db_session.query(Movement).one()
        assert (movement.type, movement.qty, movement.balance_after) == ("in", 12, 12)
        assert movement.note == "Initial product stock"
        assert db_session.query(ProductUsage).count() == 0

    def test_zero_initial_stock_posts_nothing(self, db_session, category, unit):
        product = mds.create_product(self.payload(category, unit))
        assert product.stock == 0
        assert db_session.query(Movement).count() == 0

    def test_negative_initial_stock_rejected(self, db_session, category, unit):
        with pytest.raises(ValidationError):
            mds.create_product(self.payload(category, unit, initial_stock=-1))
        assert db_session.query(Product).count() == 0

    def test_unknown_category(self, db_session, unit, category):
        with pytest.raises(NotFoundError):
            mds.create_product({"name": "X", "category_id": 999, "unit_id": unit.id})

    def test_update_cannot_write_stock(self, db_session, product):
        with pytest.raises(ValidationError):
            mds.update_product(product.id, {"stock": 999})
        assert ledger_service.get_quantity(product.id, "central") == 50

    def test_update_fields(self, db_session, product):
        updated = mds.update_product(product.id, {"name": "Product Q", "minimum_low_stock": 4, "sku": "prd-q"})
        assert (updated.name, updated.minimum_low_stock, updated.sku) == ("Product Q", 4, "PRD-Q")

    def test_delete_cascades_preferences_and_outlet_stock(self, db_session, product, outlet_a):
        record_movement(product_id=product.id, quantity=3, type="in", location={"kind": "outlet", "outlet_id": outlet_a.id})
        toggle_favorite(StockLocation("central"), product.id)

        mds.delete_product(product.id)
        assert db_session.query(OutletStock).count() == 0
        assert db_session.query(FavoriteProduct).count() == 0
        assert db_session.query(ProductUsage).count() == 0
        # history keeps its snapshot
        assert db_session.query(Movement).one().product_name == "Product P"


class TestOutlets:

    def test_blank_code_generated(self, db_session):
        outlet = mds.create_outlet({"name": "Toko Pusat Kota", "code": "", "address": "Jl. Pahlawan"})
        assert outlet.code == "TOK-PUS-KOT"

    def test_code_unique_case_insensitive(self, db_session, outlet_a):
        with pytest.raises(ConflictError):
            mds.create_outlet({"name": "Another", "code": "out-a", "address": "x"})

    def test_missing_address(self, db_session):
        with pytest.raises(ValidationError):
            mds.create_outlet({"name": "No Address"})

    def test_delete_unused_outlet_removes_preferences(self, db_session, product, outlet_a):
        toggle_favorite(StockLocation("outlet", outlet_a.id), product.id)
        mds.delete_outlet(outlet_a.id)
        assert mds.list_outlets() == []
        assert db_session.query(FavoriteProduct).count() == 0

    def test_delete_with_movement_history_conflicts(self, db_session, product, outlet_a):
        loc = {"kind": "outlet", "outlet_id": outlet_a.id}
        record_movement(product_id=product.id, quantity=1, type="in", location=loc)
        record_movement(product_id=product.id, quantity=1, type="out", location=loc)
        with pytest.raises(ConflictError, match="movement"):
            mds.delete_outlet(outlet_a.id)

    def test_delete_transfer_destination_conflicts(self, db_session, product, outlet_a, outlet_b):
        transfer(product_id=product.id, source={"kind": "central"}, destinations=[{"outlet_id": outlet_b.id, "qty": 1}])
        transfer(
            product_id=product.id,
            source={"kind": "outlet", "outlet_id": outlet_b.id},
            destinations=[{"outlet_id": outlet_a.id, "qty": 1}],
        )
        ledger_service.set_quantity(product.id, f"outlet:{outlet_a.id}", 0)
        db_session.commit()
        with pytest.raises(ConflictError, match="transfer"):
            mds.delete_outlet(outlet_a.id)

    def test_delete_with_stock_conflicts(self, db_session, product, outlet_a):
        ledger_service.set_quantity(product.id, f"outlet:{outlet_a.id}", 2)
        db_session.commit()
        with pytest.raises(ConflictError, match="stock"):
            mds.delete_outlet(outlet_a.id)


class TestExportRows:

    def test_all_rows_central_first_then_outlets_by_name(self, db_session, make_product, outlet_a, outlet_b):
        tea = make_product(name="Tea", stock=4)
        make_product(name="coffee", stock=1)
        ledger_service.set_quantity(tea.id, f"outlet:{outlet_b.id}", 3)
        db_session.commit()

        rows = stock_rows("all")
        assert [(r["location"], r["product"], r["quantity"]) for r in rows] == [
            ("Central", "coffee", 1),
            ("Central", "Tea", 4),
            ("Outlet A (OUT-A)", "coffee", 0),
            ("Outlet A (OUT-A)", "Tea", 0),
            ("Outlet B (OUT-B)", "coffee", 0),
            ("Outlet B (OUT-B)", "Tea", 3),
        ]
        assert rows[0]["category"] == "Beverages"
        assert rows[0]["unit"] == "pcs"
        assert rows[0]["sku"] == "COFFEE"

    def test_single_outlet(self, db_session, product, outlet_a, outlet_b):
        rows = stock_rows(f"outlet:{outlet_a.id}")
        assert [(r["location"], r["quantity"]) for r in rows] == [("Outlet A (OUT-A)", 0)]
