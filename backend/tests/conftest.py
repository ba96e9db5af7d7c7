"""
Pytest fixtures for apparel POS backend tests.

Provides the in-memory application, per-test table cleanup, catalog
factories and order-draft helpers.
"""

import itertools

import pytest

from apparel_pos import create_app
from apparel_pos.config import TestConfig
from apparel_pos.extensions import db
from apparel_pos.models import Product
from apparel_pos.services import catalog_service, exhibition_service
from apparel_pos.services.billing_service import CustomerInfo
from apparel_pos.services.cart_service import cart_from_items
from apparel_pos.services.order_service import OrderDraft


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def make_product(db_session):
    """Factory for committed catalog products (defaults: ₹999, 12% GST, tax-exclusive)."""
    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        fields = {
            "sku": f"SKU-{n:03d}",
            "name": f"Kurta {n}",
            "category": "men",
            "base_price_paise": 99900,
            "gst_rate": 12,
            "is_tax_inclusive": False,
            "stock_qty": 10,
            "low_stock_threshold": 2,
        }
        fields.update(overrides)
        product = Product(**fields)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def customer():
    return CustomerInfo(name="Priya Sharma", phone="9876543210", address="Pune")


@pytest.fixture(scope='function')
def make_draft(db_session, customer):
    """
    Build an OrderDraft from (product, quantity) pairs.

    make_draft([(product, 2)], type="prebooking", delivery_date=...)
    """
    def _make(items, **overrides):
        payload = [{"product_id": product.id, "quantity": quantity} for product, quantity in items]
        snapshots = catalog_service.batch_get(product.id for product, _ in items)
        fields = {
            "type": "daily",
            "customer": customer,
            "cart": cart_from_items(payload, snapshots),
            "created_by": "emp-1",
            "employee_name": "Asha",
        }
        fields.update(overrides)
        return OrderDraft(**fields)

    return _make



@pytest.fixture(scope='function')
def make_exhibition(db_session):
    """Start an exhibition (default: emp-1 at Pune Expo) and return it."""
    def _make(**overrides):
        fields = {"location": "Pune Expo", "created_by": "emp-1"}
        fields.update(overrides)
        return exhibition_service.start_exhibition(**fields)

    return _make
