"""
Pytest fixtures for gudang backend tests.

Provides an in-memory database, test client, and small master-data fixtures
(one category, one unit, two outlets, a product with central stock 50 and
minimum 10).
"""

from datetime import datetime

import pytest
from gudang import create_app
from gudang.extensions import db
from gudang.models import Category, Unit, Outlet, Product, Movement


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TX_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def unit(db_session):
    unit = Unit(name="pcs")
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture(scope='function')
def outlet_a(db_session):
    outlet = Outlet(name="Outlet A", code="OUT-A", address="Jl. Merdeka 1")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def outlet_b(db_session):
    outlet = Outlet(name="Outlet B", code="OUT-B", address="Jl. Sudirman 2")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def make_product(db_session, category, unit):
    """Factory for products with a given central stock and minimum."""
    def _make(name="Product P", sku=None, stock=0, minimum_low_stock=0):
        product = Product(
            name=name,
            sku=sku or name.upper().replace(" ", "-"),
            stock=stock,
            minimum_low_stock=minimum_low_stock,
            category_id=category.id,
            unit_id=unit.id,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product P: central stock 50, minimum 10."""
    return make_product(name="Product P", sku="PRD-P", stock=50, minimum_low_stock=10)


@pytest.fixture(scope='function')
def make_movement(db_session):
    """Insert a history row directly with an explicit timestamp."""
    def _make(product, *, type="in", qty=1, created_at: datetime, outlet=None, note=None):
        delta = -qty if type == "out" else qty
        movement = Movement(
            product_id=product.id,
            product_name=product.name,
            qty=qty,
            type=type,
            note=note or f"{type} note",
            delta=delta,
            balance_after=0,
            location_kind="outlet" if outlet else "central",
            location_id=str(outlet.id) if outlet else "central",
            location_label=outlet.label if outlet else "Central",
            created_at=created_at,
        )
        db_session.add(movement)
        db_session.commit()
        return movement

    return _make
