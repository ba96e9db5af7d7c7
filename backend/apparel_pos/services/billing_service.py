# Overview: Bill generation, validation, GST summary, display formatting and bill queries.

"""
Bill Generator

A bill is the printed GST invoice for one order calculation. It is written
once (Bill + BillLine rows) and never updated; payment progress lives in the
separate BillPaymentState row created alongside it and owned by
payment_service.

Rounding: payable = nearest whole rupee of the grand total (half away from
zero); rounded_off = payable - grand total, and may be negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Mapping

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Bill, BillLine, BillPaymentState
from ..models.billing import BILL_ORDER_TYPES, PAYMENT_MODES
from ..models.orders import ORDER_TYPE_DAILY
from ..money import format_inr, round_to_rupee, rounding_adjustment
from ..time_utils import ist_date, ist_day_bounds, to_ist, utcnow
from .calculation_service import OrderCalculation
from .customer_service import PHONE_LENGTH, is_valid_phone
from .document_service import next_bill_number


PREVIEW_BILL_NUMBER = "PREVIEW"


# =============================================================================
# INPUT VALUES
# =============================================================================

@dataclass(frozen=True)
class SellerInfo:
    business_name: str
    gstin: str
    address: str = ""
    state_code: str = ""
    phone: str = ""
    email: str = ""

    @classmethod
    def from_config(cls, config: Mapping) -> "SellerInfo":
        return cls(
            business_name=config.get("BUSINESS_NAME", ""),
            gstin=config.get("BUSINESS_GSTIN", ""),
            address=config.get("BUSINESS_ADDRESS", ""),
            state_code=config.get("BUSINESS_STATE_CODE", ""),
            phone=config.get("BUSINESS_PHONE", ""),
            email=config.get("BUSINESS_EMAIL", ""),
        )


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    phone: str
    address: str = ""


@dataclass(frozen=True)
class BillMetadata:
    order_id: int | None
    order_type: str
    employee_id: str
    employee_name: str
    customer: CustomerInfo
    exhibition_id: str | None = None
    payment_mode: str = "CASH"
    notes: str = ""


def bill_order_type(order_type: str) -> str:
    """Orders say 'daily'; the invoice header says 'store'."""
    if order_type == ORDER_TYPE_DAILY:
        return "store"
    return order_type


# =============================================================================
# GENERATION
# =============================================================================

def _check_metadata(metadata: BillMetadata) -> None:
    errors = []
    if not metadata.order_type:
        errors.append("Order type is required")
    elif bill_order_type(metadata.order_type) not in BILL_ORDER_TYPES:
        errors.append(f"Invalid order type: {metadata.order_type}")
    if not metadata.employee_id:
        errors.append("Employee ID is required")
    if not metadata.employee_name:
        errors.append("Employee name is required")
    if metadata.customer is None or not metadata.customer.name:
        errors.append("Customer name is required")
    if metadata.customer is None or not metadata.customer.phone:
        errors.append("Customer phone is required")
    elif not is_valid_phone(metadata.customer.phone):
        errors.append(f"Phone number must be exactly {PHONE_LENGTH} digits")
    if metadata.payment_mode not in PAYMENT_MODES:
        errors.append(f"Invalid payment mode: {metadata.payment_mode}")
    if errors:
        raise ValidationError("Invalid bill metadata", messages=errors)


def generate_bill(
    calculation: OrderCalculation,
    metadata: BillMetadata,
    *,
    seller: SellerInfo,
    bill_number: str | None = None,
    generated_at: datetime | None = None,
) -> Bill:
    """
    Build an (unsaved) Bill for a priced order.

    When bill_number is None the next BILL-YYMMDD-NNNN number is reserved in
    the current transaction; pass PREVIEW_BILL_NUMBER for a quote that is never
    stored.
    """
    if calculation is None or not calculation.items:
        raise ValidationError("Invalid order calculation: items are required")
    _check_metadata(metadata)

    now = generated_at or utcnow()
    if bill_number is None:
        bill_number = next_bill_number(now)

    summary = calculation.summary
    payable = round_to_rupee(summary.grand_total_paise)

    bill = Bill(
        bill_number=bill_number,
        bill_date=now,
        order_id=metadata.order_id,
        order_type=bill_order_type(metadata.order_type),
        employee_id=metadata.employee_id,
        employee_name=metadata.employee_name,
        exhibition_id=metadata.exhibition_id,
        seller_business_name=seller.business_name,
        seller_gstin=seller.gstin,
        seller_address=seller.address,
        seller_state_code=seller.state_code,
        seller_phone=seller.phone,
        seller_email=seller.email,
        customer_name=metadata.customer.name,
        customer_phone=metadata.customer.phone,
        customer_address=metadata.customer.address or "",
        total_quantity=summary.total_quantity,
        subtotal_paise=summary.subtotal_paise,
        total_discount_paise=summary.total_discount_paise,
        total_taxable_paise=summary.total_taxable_paise,
        total_cgst_paise=summary.total_cgst_paise,
        total_sgst_paise=summary.total_sgst_paise,
        total_tax_paise=summary.total_tax_paise,
        grand_total_paise=summary.grand_total_paise,
        rounded_off_paise=rounding_adjustment(summary.grand_total_paise, payable),
        payable_paise=payable,
        payment_mode=metadata.payment_mode,
        notes=metadata.notes or "",
        generated_at=now,
    )
    for position, item in enumerate(calculation.items, start=1):
        bill.lines.append(BillLine(
            position=position,
            product_id=item.product_id,
            sku=item.sku,
            product_name=item.name,
            category=item.category,
            quantity=item.quantity,
            unit_price_paise=item.effective_unit_price_paise,
            discount_paise=item.line_discount_paise,
            taxable_paise=item.line_taxable_paise,
            gst_rate=item.gst_rate,
            cgst_paise=item.line_cgst_paise,
            sgst_paise=item.line_sgst_paise,
            line_total_paise=item.line_total_paise,
        ))
    return bill


def validate_bill(bill: Bill) -> list[str]:
    """Structured list of problems; empty when the bill may be issued."""
    errors = []
    if not bill.bill_number:
        errors.append("Bill number is required")
    if not bill.bill_date:
        errors.append("Bill date is required")
    if not bill.order_id:
        errors.append("Order ID is required")
    if not bill.order_type:
        errors.append("Order type is required")
    if not bill.employee_id:
        errors.append("Employee ID is required")
    if not bill.employee_name:
        errors.append("Employee name is required")
    if not bill.seller_business_name:
        errors.append("Seller business name is required")
    if not bill.seller_gstin:
        errors.append("Seller GSTIN is required")
    if not bill.customer_name:
        errors.append("Customer name is required")
    if not bill.customer_phone:
        errors.append("Customer phone is required")

    if not bill.lines:
        errors.append("At least one line item is required")
    for index, line in enumerate(bill.lines, start=1):
        if not line.sku:
            errors.append(f"Line item {index}: SKU is required")
        if not line.product_name:
            errors.append(f"Line item {index}: Product name is required")
        if line.quantity is None or line.quantity <= 0:
            errors.append(f"Line item {index}: Quantity must be positive")
        if line.unit_price_paise is None or line.unit_price_paise < 0:
            errors.append(f"Line item {index}: Unit price cannot be negative")

    if bill.payable_paise is None or bill.payable_paise <= 0:
        errors.append("Payable amount must be positive")
    return errors


def save_bill(bill: Bill) -> Bill:
    """
    Stage a generated bill and its UNPAID payment state in the current
    transaction. The caller commits (order creation commits once for
    stock, order, bill and any initial payment).
    """
    errors = validate_bill(bill)
    if errors:
        raise ValidationError("Bill failed validation", messages=errors)

    bill.payment_state = BillPaymentState(
        payable_paise=bill.payable_paise,
        paid_paise=0,
        due_paise=bill.payable_paise,
        payment_status="UNPAID",
        locked=False,
    )
    db.session.add(bill)
    db.session.flush()
    return bill


# =============================================================================
# DERIVED VIEWS
# =============================================================================

def gst_summary(bill: Bill) -> list[dict]:
    """Per-rate sums of the bill's own line items, ascending by GST rate."""
    groups: dict[int, dict] = {}
    for line in bill.lines:
        group = groups.setdefault(line.gst_rate, {
            "gst_rate": line.gst_rate,
            "cgst_rate": str(line.cgst_rate),
            "sgst_rate": str(line.sgst_rate),
            "taxable_paise": 0,
            "cgst_paise": 0,
            "sgst_paise": 0,
            "total_tax_paise": 0,
        })
        group["taxable_paise"] += line.taxable_paise
        group["cgst_paise"] += line.cgst_paise
        group["sgst_paise"] += line.sgst_paise
        group["total_tax_paise"] += line.cgst_paise + line.sgst_paise
    return [groups[rate] for rate in sorted(groups)]


def format_bill_for_display(bill: Bill) -> dict:
    """Bill dict with rupee strings (en-IN grouping) and the bill date in IST."""
    data = bill.to_dict()
    data["bill_date"] = to_ist(bill.bill_date).strftime("%d %b %Y, %I:%M %p")
    data["line_items"] = [
        {
            **line.to_dict(),
            "unit_price": format_inr(line.unit_price_paise),
            "discount": format_inr(line.discount_paise),
            "taxable_value": format_inr(line.taxable_paise),
            "cgst_amount": format_inr(line.cgst_paise),
            "sgst_amount": format_inr(line.sgst_paise),
            "line_total": format_inr(line.line_total_paise),
        }
        for line in bill.lines
    ]
    data["totals_display"] = {
        "total_quantity": str(bill.total_quantity),
        "subtotal": format_inr(bill.subtotal_paise),
        "total_discount": format_inr(bill.total_discount_paise),
        "total_cgst": format_inr(bill.total_cgst_paise),
        "total_sgst": format_inr(bill.total_sgst_paise),
        "total_tax": format_inr(bill.total_tax_paise),
        "grand_total": format_inr(bill.grand_total_paise),
        "rounded_off": format_inr(bill.rounded_off_paise),
        "payable": format_inr(bill.payable_paise, decimals=False),
    }
    data["gst_summary"] = [
        {
            **group,
            "taxable_value": format_inr(group["taxable_paise"]),
            "cgst_amount": format_inr(group["cgst_paise"]),
            "sgst_amount": format_inr(group["sgst_paise"]),
            "total_tax": format_inr(group["total_tax_paise"]),
        }
        for group in gst_summary(bill)
    ]
    return data


# =============================================================================
# QUERIES
# =============================================================================

def get_bill(bill_id: int) -> Bill:
    bill = db.session.get(Bill, bill_id)
    if bill is None:
        raise NotFoundError(f"Bill {bill_id} not found")
    return bill


def get_bill_by_number(bill_number: str) -> Bill:
    bill = db.session.query(Bill).filter_by(bill_number=bill_number).first()
    if bill is None:
        raise NotFoundError(f"Bill {bill_number} not found")
    return bill


def list_bills(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    employee_id: str | None = None,
) -> list[Bill]:
    """Bills generated in [start, end), newest first."""
    query = db.session.query(Bill)
    if start is not None:
        query = query.filter(Bill.generated_at >= start)
    if end is not None:
        query = query.filter(Bill.generated_at < end)
    if employee_id:
        query = query.filter(Bill.employee_id == employee_id)
    return query.order_by(Bill.generated_at.desc(), Bill.id.desc()).all()


def todays_bills(employee_id: str | None = None, now: datetime | None = None) -> list[Bill]:
    """Bills of the current IST business day; every employee's when no id is given."""
    day: date = ist_date(now or utcnow())
    start, end = ist_day_bounds(day)
    return list_bills(start=start, end=end, employee_id=employee_id)
