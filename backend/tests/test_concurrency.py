"""
Concurrency tests against a file-backed SQLite store.

Each worker runs in its own app context (own session, own connection), the
same way two request threads would. A barrier releases the workers together.

Verifies:
- Two payments racing for the last due amount: exactly one lands
- Two checkouts racing for the last unit: exactly one lands, stock never negative
- Bill numbers stay unique under concurrent checkouts
"""

import threading

import pytest

from apparel_pos import create_app
from apparel_pos.config import TestConfig
from apparel_pos.errors import InsufficientStockError, LockedBillError, OverpaymentError
from apparel_pos.extensions import db
from apparel_pos.models import BillPaymentState, Order, Product
from apparel_pos.services import catalog_service, order_service, payment_service
from apparel_pos.services.billing_service import CustomerInfo
from apparel_pos.services.cart_service import cart_from_items
from apparel_pos.services.order_service import OrderDraft, PaymentInput


@pytest.fixture
def file_app(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'concurrency.sqlite3'}"
        STORE_RETRY_ATTEMPTS = 10

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def seed_product(app, **overrides):
    fields = {
        "sku": "KUR-1",
        "name": "Cotton Kurta",
        "category": "men",
        "base_price_paise": 99900,
        "gst_rate": 12,
        "is_tax_inclusive": False,
        "stock_qty": 10,
    }
    fields.update(overrides)
    with app.app_context():
        product = Product(**fields)
        db.session.add(product)
        db.session.commit()
        return product.id


def draft(product_id, quantity, **overrides):
    snapshots = catalog_service.batch_get([product_id])
    fields = {
        "type": "daily",
        "customer": CustomerInfo(name="Priya", phone="9876543210"),
        "cart": cart_from_items([{"product_id": product_id, "quantity": quantity}], snapshots),
        "created_by": "emp-1",
        "employee_name": "Asha",
    }
    fields.update(overrides)
    return OrderDraft(**fields)


def run_together(app, work, count=2):
    """Run work(i) in `count` threads inside fresh app contexts; returns results or exceptions."""
    barrier = threading.Barrier(count)
    results = [None] * count

    def worker(i):
        with app.app_context():
            try:
                barrier.wait()
                results[i] = work(i)
            except Exception as exc:
                results[i] = exc
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentPayments:

    @pytest.fixture
    def bill_id(self, file_app):
        """Bill with payable ₹2238 of which ₹2000 is already paid."""
        product_id = seed_product(file_app)
        with file_app.app_context():
            order = order_service.create_order(draft(
                product_id, 2, initial_payment=PaymentInput(mode="CASH", amount_paise=200000),
            ))
            return order.bill_id

    def test_two_payments_for_the_last_due(self, file_app, bill_id):
        results = run_together(file_app, lambda i: payment_service.record_payment(bill_id, "CASH", 20000).paid_paise)

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert successes == [220000]
        assert len(failures) == 1
        assert isinstance(failures[0], OverpaymentError)

        with file_app.app_context():
            state = db.session.get(BillPaymentState, bill_id)
            assert state.paid_paise == 220000
            assert state.due_paise == 3800
            assert len(state.payments) == 2

    def test_two_payments_settling_the_bill(self, file_app, bill_id):
        results = run_together(file_app, lambda i: payment_service.record_payment(bill_id, "CASH", 23800).payment_status)

        assert [r for r in results if not isinstance(r, Exception)] == ["PAID"]
        loser = next(r for r in results if isinstance(r, Exception))
        assert isinstance(loser, (OverpaymentError, LockedBillError))

        with file_app.app_context():
            state = db.session.get(BillPaymentState, bill_id)
            assert state.paid_paise == 223800
            assert state.locked


class TestConcurrentCheckouts:

    def test_last_unit(self, file_app):
        product_id = seed_product(file_app, stock_qty=1)

        def checkout(i):
            return order_service.create_order(draft(product_id, 1, created_by=f"emp-{i}")).id

        results = run_together(file_app, checkout)

        assert len([r for r in results if isinstance(r, int)]) == 1
        assert len([r for r in results if isinstance(r, InsufficientStockError)]) == 1
        with file_app.app_context():
            assert db.session.get(Product, product_id).stock_qty == 0
            assert db.session.query(Order).count() == 1

    def test_bill_numbers_are_unique(self, file_app):
        product_id = seed_product(file_app, stock_qty=50)

        def checkout(i):
            return order_service.create_order(draft(product_id, 1)).bill.bill_number

        numbers = run_together(file_app, checkout, count=5)

        assert not [n for n in numbers if isinstance(n, Exception)]
        assert len(set(numbers)) == 5
        assert sorted(n[-4:] for n in numbers) == ["0001", "0002", "0003", "0004", "0005"]
