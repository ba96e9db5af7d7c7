# Overview: Order lifecycle; creation with bill and stock, pre-booking conversion, overdue sweep.

"""
Order Lifecycle

WHY: An order ties together four writes that must agree: stock, the order
row, its bill and (optionally) an advance payment.

ATOMICITY:
- create_order and convert_prebooking each run in ONE database transaction.
  Writes happen in this order: (1) stock decrement, (2) order row / status,
  (3) bill + payment state, (4) payment. Any failure rolls back all of them,
  so there is no partial state to compensate.
- Exactly-once stock deduction on conversion: the order row is read under
  lock, the status must still be 'pending', and the UPDATE is guarded by
  Order.version_id. A concurrent converter that loses the compare-and-set is
  retried against fresh state, sees 'completed', and gets
  AlreadyConvertedError without touching stock.

STATE MACHINE:
    create(prebooking)          -> pending
    create(daily | exhibition)  -> completed   (stock--)
    pending --convert-->           completed   (stock--)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import AlreadyConvertedError, EngineError, NotFoundError, PolicyError, ValidationError
from ..extensions import db
from ..models import Order, OrderLine
from ..models.billing import PAYMENT_MODES
from ..models.orders import (
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING,
    ORDER_TYPE_EXHIBITION,
    ORDER_TYPE_PREBOOKING,
    ORDER_TYPES,
)
from ..time_utils import ensure_utc_naive, utcnow
from .billing_service import BillMetadata, CustomerInfo, SellerInfo, generate_bill, save_bill
from .calculation_service import OrderCalculation, calculate
from .cart_service import Cart
from .concurrency import lock_for_update, run_with_retry
from .customer_service import upsert_customer, validate_phone
from .exhibition_service import require_active_exhibition, require_exhibition
from .payment_service import apply_payment, validate_payment
from .stock_service import decrement_batch


# =============================================================================
# INPUT / RESULT VALUES
# =============================================================================

@dataclass(frozen=True)
class PaymentInput:
    mode: str
    amount_paise: int
    reference_id: str | None = None


@dataclass(frozen=True)
class OrderDraft:
    type: str
    customer: CustomerInfo
    cart: Cart
    created_by: str
    employee_name: str
    employee_discount_percent: object = 0
    exhibition_id: str | None = None
    delivery_date: datetime | None = None
    initial_payment: PaymentInput | None = None
    payment_mode: str = "CASH"
    notes: str = ""
    customer_gender: str | None = None
    customer_age_group: str | None = None


@dataclass(frozen=True)
class ConversionCheck:
    ok: bool
    reason: str
    minutes_until_eligible: int = 0

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "reason": self.reason,
            "minutes_until_eligible": self.minutes_until_eligible,
        }


@dataclass
class SweepResult:
    converted: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "converted": self.converted,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


# =============================================================================
# CREATION
# =============================================================================

def validate_draft(draft: OrderDraft) -> None:
    errors = []
    if draft.type not in ORDER_TYPES:
        errors.append(f"Invalid order type: {draft.type}. Must be one of {', '.join(ORDER_TYPES)}")
    if not draft.created_by:
        errors.append("created_by is required")
    if not draft.employee_name:
        errors.append("employee_name is required")
    if draft.customer is None or not draft.customer.name:
        errors.append("Customer name is required")
    if draft.payment_mode not in PAYMENT_MODES:
        errors.append(f"Invalid payment mode: {draft.payment_mode}")
    if draft.initial_payment is not None:
        errors.extend(validate_payment(
            draft.initial_payment.mode,
            draft.initial_payment.amount_paise,
            draft.initial_payment.reference_id,
        ))
    if errors:
        raise ValidationError("Invalid order", messages=errors)

    validate_phone(draft.customer.phone)

    if draft.type == ORDER_TYPE_PREBOOKING:
        if draft.delivery_date is None:
            raise PolicyError("Delivery date is required for pre-bookings")
        if draft.exhibition_id:
            raise PolicyError("Exhibition is assigned when a pre-booking is converted, not at creation")
    elif draft.delivery_date is not None:
        raise PolicyError("Delivery date is only allowed on pre-bookings")
    elif draft.type == ORDER_TYPE_EXHIBITION and not draft.exhibition_id:
        raise PolicyError("Exhibition orders need an exhibition_id")


def _stock_items(lines) -> list[dict]:
    return [
        {"product_id": line.product_id, "quantity": line.quantity}
        for line in lines
        if line.product_id is not None
    ]


def _build_order(draft: OrderDraft, calculation: OrderCalculation, now: datetime) -> Order:
    summary = calculation.summary
    is_prebooking = draft.type == ORDER_TYPE_PREBOOKING
    order = Order(
        type=draft.type,
        status=ORDER_STATUS_PENDING if is_prebooking else ORDER_STATUS_COMPLETED,
        customer_phone=draft.customer.phone,
        exhibition_id=draft.exhibition_id,
        created_by=draft.created_by,
        delivery_date=ensure_utc_naive(draft.delivery_date) if draft.delivery_date else None,
        employee_discount_percent=summary.employee_discount_percent,
        subtotal_paise=summary.subtotal_paise,
        total_discount_paise=summary.total_discount_paise,
        total_taxable_paise=summary.total_taxable_paise,
        total_cgst_paise=summary.total_cgst_paise,
        total_sgst_paise=summary.total_sgst_paise,
        total_tax_paise=summary.total_tax_paise,
        grand_total_paise=summary.grand_total_paise,
        created_at=now,
        completed_at=None if is_prebooking else now,
    )
    for position, item in enumerate(calculation.items, start=1):
        order.lines.append(OrderLine(
            position=position,
            product_id=item.product_id,
            product_name=item.name,
            sku=item.sku,
            category=item.category,
            quantity=item.quantity,
            unit_price_paise=item.effective_unit_price_paise,
            line_discount_paise=item.line_discount_paise,
            line_tax_paise=item.line_total_tax_paise,
            line_total_paise=item.line_total_paise,
        ))
    return order


def create_order(draft: OrderDraft, *, seller: SellerInfo | None = None, now: datetime | None = None) -> Order:
    """
    Price, persist and bill an order in one transaction.

    Raises:
        ValidationError / PolicyError: bad draft or cart
        InsufficientStockError: stock check failed (nothing is written)
        OverpaymentError: initial payment larger than the payable amount
    """
    validate_draft(draft)
    calculation = calculate(draft.cart, draft.employee_discount_percent)
    seller = seller or SellerInfo.from_config(current_app.config)
    payment = draft.initial_payment
    payment_mode = payment.mode if payment is not None else draft.payment_mode

    def _op():
        created_at = ensure_utc_naive(now) if now else utcnow()
        if draft.exhibition_id:
            require_active_exhibition(draft.exhibition_id)

        if draft.type != ORDER_TYPE_PREBOOKING:
            decrement_batch(_stock_items(calculation.items), commit=False)

        order = _build_order(draft, calculation, created_at)
        db.session.add(order)
        db.session.flush()

        upsert_customer(
            phone=draft.customer.phone,
            name=draft.customer.name,
            address=draft.customer.address or None,
            gender=draft.customer_gender,
            age_group=draft.customer_age_group,
            commit=False,
        )

        bill = generate_bill(
            calculation,
            BillMetadata(
                order_id=order.id,
                order_type=draft.type,
                employee_id=draft.created_by,
                employee_name=draft.employee_name,
                customer=draft.customer,
                exhibition_id=draft.exhibition_id,
                payment_mode=payment_mode,
                notes=draft.notes,
            ),
            seller=seller,
            generated_at=created_at,
        )
        save_bill(bill)
        order.bill_id = bill.id
        order.payable_paise = bill.payable_paise

        if payment is not None:
            apply_payment(
                bill.payment_state,
                mode=payment.mode,
                amount_paise=payment.amount_paise,
                reference_id=payment.reference_id,
                recorded_by=draft.created_by,
                now=created_at,
            )

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s created (type=%s, status=%s, bill=%s, payable=%s paise)",
        order.id, order.type, order.status, order.bill_id, order.payable_paise,
    )
    return order


# =============================================================================
# PRE-BOOKING CONVERSION
# =============================================================================

def convert_prebooking(order_id: int, exhibition_id: str | None = None, *, now: datetime | None = None) -> Order:
    """
    Promote a pending pre-booking to completed and deduct its stock, once.

    The bill is not touched. exhibition_id is recorded only when given, and
    must name an existing exhibition.
    """
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if order.type != ORDER_TYPE_PREBOOKING:
            raise ValidationError(f"Order {order_id} is not a pre-booking")
        if order.status != ORDER_STATUS_PENDING:
            raise AlreadyConvertedError(f"Pre-booking {order_id} already converted")
        if exhibition_id:
            require_exhibition(exhibition_id)

        items = _stock_items(order.lines)
        if items:
            decrement_batch(items, commit=False)

        converted_at = ensure_utc_naive(now) if now else utcnow()
        order.status = ORDER_STATUS_COMPLETED
        if exhibition_id:
            order.exhibition_id = exhibition_id
        order.converted_at = converted_at
        order.completed_at = converted_at
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Pre-booking %s converted (exhibition=%s)", order.id, order.exhibition_id)
    return order


def can_convert(order_id: int, now: datetime | None = None) -> ConversionCheck:
    order = db.session.get(Order, order_id)
    if order is None:
        return ConversionCheck(False, "Pre-booking not found")
    if order.type != ORDER_TYPE_PREBOOKING:
        return ConversionCheck(False, "Order is not a pre-booking")
    if order.status != ORDER_STATUS_PENDING:
        return ConversionCheck(False, "Pre-booking already converted")
    if order.delivery_date is None:
        return ConversionCheck(True, "No delivery date set")

    now = ensure_utc_naive(now) if now else utcnow()
    delivery = ensure_utc_naive(order.delivery_date)
    if now >= delivery:
        return ConversionCheck(True, "Delivery time has passed")
    minutes = math.ceil((delivery - now).total_seconds() / 60)
    return ConversionCheck(False, "Delivery time not reached yet", minutes)


def sweep_overdue(created_by: str | None = None, now: datetime | None = None) -> SweepResult:
    """
    Convert every pending pre-booking whose delivery time has passed.

    Scope is one operator's pre-bookings, or everyone's when created_by is None.
    One failing order never stops the sweep. Orders converted concurrently by
    someone else are counted as skipped.
    """
    now = ensure_utc_naive(now) if now else utcnow()
    result = SweepResult()

    due_ids = [
        order.id
        for order in pending_prebookings(created_by)
        if order.delivery_date is not None and now >= ensure_utc_naive(order.delivery_date)
    ]

    for order_id in due_ids:
        try:
            convert_prebooking(order_id, None, now=now)
            result.converted += 1
        except AlreadyConvertedError:
            result.skipped += 1
        except (EngineError, SQLAlchemyError) as exc:
            db.session.rollback()
            result.failed += 1
            result.errors.append({"order_id": order_id, "error": str(exc)})
            current_app.logger.warning("Failed to auto-convert pre-booking %s: %s", order_id, exc)

    if due_ids:
        current_app.logger.info(
            "Overdue sweep: %s converted, %s failed, %s skipped",
            result.converted, result.failed, result.skipped,
        )
    return result


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    *,
    type: str | None = None,
    created_by: str | None = None,
    exhibition_id: str | None = None,
    status: str | None = None,
) -> list[Order]:
    """Orders matching every given filter, newest first."""
    query = db.session.query(Order)
    if type:
        query = query.filter(Order.type == type)
    if created_by:
        query = query.filter(Order.created_by == created_by)
    if exhibition_id:
        query = query.filter(Order.exhibition_id == exhibition_id)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def pending_prebookings(created_by: str | None = None) -> list[Order]:
    return list_orders(type=ORDER_TYPE_PREBOOKING, created_by=created_by, status=ORDER_STATUS_PENDING)
