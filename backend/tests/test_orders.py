"""
Order lifecycle tests.

Verifies:
- Completed orders deduct stock and get a bill in one transaction
- Pre-bookings leave stock alone until converted, exactly once
- Failed creation writes nothing (stock, order, bill, customer)
- Overdue sweep converts due pre-bookings and is idempotent
"""

from datetime import datetime, timedelta

import pytest

from apparel_pos.errors import (
    AlreadyConvertedError,
    InsufficientStockError,
    NotFoundError,
    OverpaymentError,
    PolicyError,
    ValidationError,
)
from apparel_pos.models import Bill, BillPaymentState, Customer, Order, Product
from apparel_pos.services import exhibition_service, order_service
from apparel_pos.services.billing_service import CustomerInfo
from apparel_pos.services.order_service import PaymentInput


T0 = datetime(2026, 10, 19, 6, 0)


def stock_of(db_session, product):
    db_session.expire_all()
    return db_session.get(Product, product.id).stock_qty


# =============================================================================
# CREATION
# =============================================================================


class TestCreateOrder:

    def test_daily_order_deducts_stock_and_bills(self, make_product, make_draft, db_session):
        kurta = make_product(stock_qty=5)

        order = order_service.create_order(make_draft([(kurta, 2)]), now=T0)

        assert order.status == "completed"
        assert order.completed_at == T0
        assert order.grand_total_paise == 223776
        assert order.payable_paise == 223800
        assert stock_of(db_session, kurta) == 3

        bill = db_session.get(Bill, order.bill_id)
        assert bill.order_id == order.id
        assert bill.bill_number == "BILL-261019-0001"
        assert bill.order_type == "store"
        assert bill.payment_state.payment_status == "UNPAID"
        assert [line.position for line in order.lines] == [1]

    def test_customer_is_upserted(self, make_product, make_draft, db_session):
        kurta = make_product()
        order_service.create_order(make_draft(
            [(kurta, 1)],
            customer_gender="female",
            customer_age_group="25-34",
        ))
        order_service.create_order(make_draft(
            [(kurta, 1)],
            customer=CustomerInfo(name="Priya S.", phone="9876543210"),
        ))

        customers = db_session.query(Customer).all()
        assert len(customers) == 1
        assert customers[0].name == "Priya S."
        assert customers[0].gender == "female"

    def test_initial_payment_is_applied(self, make_product, make_draft, db_session):
        kurta = make_product()
        order = order_service.create_order(make_draft(
            [(kurta, 2)],
            initial_payment=PaymentInput(mode="UPI", amount_paise=223800, reference_id="UPI-1"),
        ))

        state = db_session.get(BillPaymentState, order.bill_id)
        assert state.payment_status == "PAID"
        assert state.locked
        assert db_session.get(Bill, order.bill_id).payment_mode == "UPI"

    def test_overpaying_advance_writes_nothing(self, make_product, make_draft, db_session):
        kurta = make_product(stock_qty=5)
        with pytest.raises(OverpaymentError):
            order_service.create_order(make_draft(
                [(kurta, 1)],
                initial_payment=PaymentInput(mode="CASH", amount_paise=500000),
            ))

        assert stock_of(db_session, kurta) == 5
        assert db_session.query(Order).count() == 0
        assert db_session.query(Bill).count() == 0
        assert db_session.query(Customer).count() == 0

    def test_insufficient_stock_writes_nothing(self, make_product, make_draft, db_session):
        a = make_product(stock_qty=5)
        b = make_product(stock_qty=1)
        with pytest.raises(InsufficientStockError):
            order_service.create_order(make_draft([(a, 1), (b, 2)]))

        assert stock_of(db_session, a) == 5
        assert db_session.query(Order).count() == 0
        assert db_session.query(Bill).count() == 0

    def test_exhibition_order_keeps_exhibition(self, make_product, make_draft, make_exhibition):
        kurta = make_product()
        exhibition = make_exhibition()
        order = order_service.create_order(make_draft([(kurta, 1)], type="exhibition", exhibition_id=exhibition.id))
        assert order.exhibition_id == exhibition.id
        assert order.bill.exhibition_id == exhibition.id

    def test_exhibition_order_needs_running_exhibition(self, make_product, make_draft, make_exhibition, db_session):
        kurta = make_product(stock_qty=5)
        with pytest.raises(PolicyError):
            order_service.create_order(make_draft([(kurta, 1)], type="exhibition"))
        with pytest.raises(NotFoundError):
            order_service.create_order(make_draft([(kurta, 1)], type="exhibition", exhibition_id="EXH-000000-0404"))

        ended = exhibition_service.end_exhibition(make_exhibition().id)
        with pytest.raises(PolicyError):
            order_service.create_order(make_draft([(kurta, 1)], type="exhibition", exhibition_id=ended.id))

        assert stock_of(db_session, kurta) == 5
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize(
        "overrides,error",
        [
            ({"type": "online"}, ValidationError),
            ({"created_by": ""}, ValidationError),
            ({"customer": CustomerInfo(name="Priya", phone="98765")}, ValidationError),
            ({"employee_discount_percent": 15}, PolicyError),
            ({"type": "prebooking"}, PolicyError),
            ({"delivery_date": T0}, PolicyError),
            ({"type": "prebooking", "delivery_date": T0, "exhibition_id": "EXH-1"}, PolicyError),
            ({"initial_payment": PaymentInput(mode="CARD", amount_paise=100)}, ValidationError),
        ],
    )
    def test_invalid_drafts(self, make_product, make_draft, db_session, overrides, error):
        kurta = make_product(stock_qty=5)
        with pytest.raises(error):
            order_service.create_order(make_draft([(kurta, 1)], **overrides))
        assert stock_of(db_session, kurta) == 5
        assert db_session.query(Order).count() == 0


# =============================================================================
# PRE-BOOKINGS
# =============================================================================


class TestPreBookings:

    def test_prebooking_leaves_stock_alone(self, make_product, make_draft, db_session):
        kurta = make_product(stock_qty=5)
        order = order_service.create_order(
            make_draft([(kurta, 2)], type="prebooking", delivery_date=T0 + timedelta(days=1)),
            now=T0,
        )

        assert order.status == "pending"
        assert order.completed_at is None
        assert order.bill.order_type == "prebooking"
        assert stock_of(db_session, kurta) == 5

    def test_convert_deducts_stock_once(self, make_product, make_draft, make_exhibition, db_session):
        kurta = make_product(stock_qty=5)
        exhibition = make_exhibition()
        order = order_service.create_order(
            make_draft([(kurta, 2)], type="prebooking", delivery_date=T0 + timedelta(days=1)),
            now=T0,
        )
        bill_id = order.bill_id

        converted = order_service.convert_prebooking(order.id, exhibition.id, now=T0 + timedelta(hours=2))
        assert converted.status == "completed"
        assert converted.exhibition_id == exhibition.id
        assert converted.converted_at == T0 + timedelta(hours=2)
        assert converted.completed_at == converted.converted_at
        assert converted.bill_id == bill_id
        assert stock_of(db_session, kurta) == 3

        with pytest.raises(AlreadyConvertedError):
            order_service.convert_prebooking(order.id)
        assert stock_of(db_session, kurta) == 3

    def test_convert_without_exhibition_keeps_none(self, make_product, make_draft):
        kurta = make_product()
        order = order_service.create_order(make_draft([(kurta, 1)], type="prebooking", delivery_date=T0))
        assert order_service.convert_prebooking(order.id).exhibition_id is None

    def test_convert_with_unknown_exhibition_stays_pending(self, make_product, make_draft, db_session):
        kurta = make_product(stock_qty=5)
        order = order_service.create_order(make_draft([(kurta, 1)], type="prebooking", delivery_date=T0))

        with pytest.raises(NotFoundError):
            order_service.convert_prebooking(order.id, "EXH-000000-0404")

        db_session.expire_all()
        assert db_session.get(Order, order.id).status == "pending"
        assert stock_of(db_session, kurta) == 5

    def test_convert_with_short_stock_stays_pending(self, make_product, make_draft, db_session):
        kurta = make_product(stock_qty=1)
        order = order_service.create_order(make_draft([(kurta, 2)], type="prebooking", delivery_date=T0))

        with pytest.raises(InsufficientStockError):
            order_service.convert_prebooking(order.id)
        db_session.expire_all()
        assert db_session.get(Order, order.id).status == "pending"

    def test_convert_rejects_other_orders(self, make_product, make_draft):
        kurta = make_product()
        order = order_service.create_order(make_draft([(kurta, 1)]))
        with pytest.raises(ValidationError):
            order_service.convert_prebooking(order.id)
        with pytest.raises(NotFoundError):
            order_service.convert_prebooking(9999)

    def test_can_convert(self, make_product, make_draft):
        kurta = make_product()
        delivery = T0 + timedelta(minutes=90)
        order = order_service.create_order(make_draft([(kurta, 1)], type="prebooking", delivery_date=delivery))

        early = order_service.can_convert(order.id, now=T0)
        assert early.ok is False
        assert early.minutes_until_eligible == 90

        almost = order_service.can_convert(order.id, now=delivery - timedelta(seconds=30))
        assert almost.minutes_until_eligible == 1

        assert order_service.can_convert(order.id, now=delivery).ok is True
        assert order_service.can_convert(9999).reason == "Pre-booking not found"

        order_service.convert_prebooking(order.id)
        assert order_service.can_convert(order.id).reason == "Pre-booking already converted"

    def test_pending_prebookings_by_creator(self, make_product, make_draft):
        kurta = make_product()
        mine = order_service.create_order(make_draft([(kurta, 1)], type="prebooking", delivery_date=T0))
        order_service.create_order(make_draft(
            [(kurta, 1)], type="prebooking", delivery_date=T0, created_by="emp-2",
        ))

        assert [o.id for o in order_service.pending_prebookings("emp-1")] == [mine.id]
        assert len(order_service.pending_prebookings()) == 2


# =============================================================================
# OVERDUE SWEEP
# =============================================================================


class TestSweepOverdue:

    def test_converts_overdue_once(self, make_product, make_draft, db_session):
        kurta = make_product(stock_qty=5)
        delivery = T0
        order = order_service.create_order(
            make_draft([(kurta, 2)], type="prebooking", delivery_date=delivery),
            now=T0 - timedelta(days=1),
        )
        bill_number = order.bill.bill_number
        assert stock_of(db_session, kurta) == 5

        result = order_service.sweep_overdue(now=delivery + timedelta(seconds=1))
        assert result.to_dict() == {"converted": 1, "failed": 0, "skipped": 0, "errors": []}

        db_session.expire_all()
        order = db_session.get(Order, order.id)
        assert order.status == "completed"
        assert order.converted_at is not None
        assert order.completed_at is not None
        assert order.bill.bill_number == bill_number
        assert db_session.query(Bill).count() == 1
        assert stock_of(db_session, kurta) == 3

        again = order_service.sweep_overdue(now=delivery + timedelta(seconds=2))
        assert again.converted == 0
        assert stock_of(db_session, kurta) == 3

    def test_not_yet_due_is_left_pending(self, make_product, make_draft):
        kurta = make_product()
        order_service.create_order(make_draft([(kurta, 1)], type="prebooking", delivery_date=T0))
        result = order_service.sweep_overdue(now=T0 - timedelta(seconds=1))
        assert result.converted == 0
        assert len(order_service.pending_prebookings()) == 1

    def test_one_failure_does_not_stop_the_sweep(self, make_product, make_draft, db_session):
        scarce = make_product(stock_qty=1)
        plenty = make_product(stock_qty=5)
        short = order_service.create_order(make_draft([(scarce, 2)], type="prebooking", delivery_date=T0))
        fine = order_service.create_order(make_draft([(plenty, 1)], type="prebooking", delivery_date=T0))

        result = order_service.sweep_overdue(now=T0 + timedelta(minutes=1))

        assert result.converted == 1
        assert result.failed == 1
        assert result.errors[0]["order_id"] == short.id
        db_session.expire_all()
        assert db_session.get(Order, fine.id).status == "completed"
        assert db_session.get(Order, short.id).status == "pending"

    def test_scoped_to_creator(self, make_product, make_draft):
        kurta = make_product()
        order_service.create_order(make_draft([(kurta, 1)], type="prebooking", delivery_date=T0))
        order_service.create_order(make_draft(
            [(kurta, 1)], type="prebooking", delivery_date=T0, created_by="emp-2",
        ))

        result = order_service.sweep_overdue("emp-2", now=T0 + timedelta(minutes=1))
        assert result.converted == 1
        assert [o.created_by for o in order_service.pending_prebookings()] == ["emp-1"]


class TestOrderQueries:

    def test_list_orders_filters(self, make_product, make_draft, make_exhibition):
        kurta = make_product()
        expo = make_exhibition()
        daily = order_service.create_order(make_draft([(kurta, 1)]))
        exhibition = order_service.create_order(make_draft([(kurta, 1)], type="exhibition", exhibition_id=expo.id))

        assert [o.id for o in order_service.list_orders(type="daily")] == [daily.id]
        assert [o.id for o in order_service.list_orders(exhibition_id=expo.id)] == [exhibition.id]
        assert len(order_service.list_orders(status="completed")) == 2

    def test_get_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.get_order(1)
