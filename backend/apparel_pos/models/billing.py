from __future__ import annotations

from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..errors import ImmutableRecordError
from ..extensions import db
from ..time_utils import to_utc_z, utcnow


BILL_ORDER_TYPES = ("store", "exhibition", "prebooking")

PAYMENT_MODES = ("CASH", "UPI", "CARD", "BANK_TRANSFER", "SPLIT")
PAYMENT_STATUSES = ("UNPAID", "PARTIALLY_PAID", "PAID")


class Bill(db.Model):
    """
    GST tax invoice body.

    IMMUTABLE: written once by the billing service and never updated.
    Payment progress lives in BillPaymentState (one row per bill), so the
    invoice a customer was handed never changes underneath them.

    All amounts are paise; payable_paise is always a whole rupee and
    rounded_off_paise (payable - grand total) may be negative.
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.UniqueConstraint("bill_number", name="uq_bills_bill_number"),
        db.Index("ix_bills_employee_generated", "employee_id", "generated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Header
    bill_number = db.Column(db.String(32), nullable=False)
    bill_date = db.Column(db.DateTime(timezone=True), nullable=False)
    order_id = db.Column(db.Integer, nullable=False, index=True)
    order_type = db.Column(db.String(16), nullable=False)
    employee_id = db.Column(db.String(64), nullable=False)
    employee_name = db.Column(db.String(255), nullable=False)
    exhibition_id = db.Column(db.String(64), nullable=True)

    # Seller
    seller_business_name = db.Column(db.String(255), nullable=False)
    seller_gstin = db.Column(db.String(32), nullable=False)
    seller_address = db.Column(db.String(512), nullable=False, default="")
    seller_state_code = db.Column(db.String(8), nullable=False, default="")
    seller_phone = db.Column(db.String(32), nullable=False, default="")
    seller_email = db.Column(db.String(255), nullable=False, default="")

    # Customer
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(10), nullable=False)
    customer_address = db.Column(db.String(512), nullable=False, default="")

    # Totals
    total_quantity = db.Column(db.Integer, nullable=False)
    subtotal_paise = db.Column(db.Integer, nullable=False)
    total_discount_paise = db.Column(db.Integer, nullable=False)
    total_taxable_paise = db.Column(db.Integer, nullable=False)
    total_cgst_paise = db.Column(db.Integer, nullable=False)
    total_sgst_paise = db.Column(db.Integer, nullable=False)
    total_tax_paise = db.Column(db.Integer, nullable=False)
    grand_total_paise = db.Column(db.Integer, nullable=False)
    rounded_off_paise = db.Column(db.Integer, nullable=False)
    payable_paise = db.Column(db.Integer, nullable=False)

    # Footer
    payment_mode = db.Column(db.String(16), nullable=False, default="CASH")
    notes = db.Column(db.Text, nullable=False, default="")

    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    lines = db.relationship(
        "BillLine",
        backref="bill",
        lazy=True,
        order_by="BillLine.position",
        cascade="all, delete-orphan",
    )
    payment_state = db.relationship("BillPaymentState", backref="bill", uselist=False, lazy=True)

    def __repr__(self) -> str:
        return f"<Bill id={self.id} number={self.bill_number!r}>"

    def seller_dict(self) -> dict:
        return {
            "business_name": self.seller_business_name,
            "gstin": self.seller_gstin,
            "address": self.seller_address,
            "state_code": self.seller_state_code,
            "phone": self.seller_phone,
            "email": self.seller_email,
        }

    def totals_dict(self) -> dict:
        return {
            "total_quantity": self.total_quantity,
            "subtotal_paise": self.subtotal_paise,
            "total_discount_paise": self.total_discount_paise,
            "total_taxable_paise": self.total_taxable_paise,
            "total_cgst_paise": self.total_cgst_paise,
            "total_sgst_paise": self.total_sgst_paise,
            "total_tax_paise": self.total_tax_paise,
            "grand_total_paise": self.grand_total_paise,
            "rounded_off_paise": self.rounded_off_paise,
            "payable_paise": self.payable_paise,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_number": self.bill_number,
            "bill_date": to_utc_z(self.bill_date),
            "order_id": self.order_id,
            "order_type": self.order_type,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "exhibition_id": self.exhibition_id,
            "seller": self.seller_dict(),
            "customer": {
                "name": self.customer_name,
                "phone": self.customer_phone,
                "address": self.customer_address,
            },
            "line_items": [line.to_dict() for line in self.lines],
            "totals": self.totals_dict(),
            "footer": {
                "payment_mode": self.payment_mode,
                "notes": self.notes,
            },
            "generated_at": to_utc_z(self.generated_at),
        }


class BillLine(db.Model):
    """Denormalized invoice line; copies everything needed to reprint the bill."""
    __tablename__ = "bill_lines"
    __table_args__ = (
        db.UniqueConstraint("bill_id", "position", name="uq_bill_lines_bill_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=True)
    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    discount_paise = db.Column(db.Integer, nullable=False, default=0)
    taxable_paise = db.Column(db.Integer, nullable=False)
    gst_rate = db.Column(db.Integer, nullable=False)
    cgst_paise = db.Column(db.Integer, nullable=False)
    sgst_paise = db.Column(db.Integer, nullable=False)
    line_total_paise = db.Column(db.Integer, nullable=False)

    @property
    def cgst_rate(self) -> Decimal:
        return Decimal(self.gst_rate) / 2

    @property
    def sgst_rate(self) -> Decimal:
        return Decimal(self.gst_rate) / 2

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price_paise": self.unit_price_paise,
            "discount_paise": self.discount_paise,
            "taxable_paise": self.taxable_paise,
            "gst_rate": self.gst_rate,
            "cgst_rate": str(self.cgst_rate),
            "cgst_paise": self.cgst_paise,
            "sgst_rate": str(self.sgst_rate),
            "sgst_paise": self.sgst_paise,
            "line_total_paise": self.line_total_paise,
        }


@event.listens_for(Bill, "before_update")
@event.listens_for(BillLine, "before_update")
def _reject_issued_bill_changes(mapper, connection, target):
    # Fires for collection-only changes too; only column edits are refused
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableRecordError(
        f"{mapper.class_.__name__} {target.id} is an issued invoice and cannot be changed",
        details={"table": mapper.local_table.name, "id": target.id},
    )


class BillPaymentState(db.Model):
    """
    Mutable payment sub-document of a bill.

    INVARIANTS:
    - paid_paise == sum(payments.amount_paise)
    - paid_paise + due_paise == payable_paise
    - payment_status derives from (paid, payable); PAID implies locked
    Every write goes through the payment service, guarded by version_id.
    """
    __tablename__ = "bill_payment_states"

    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), primary_key=True)
    payable_paise = db.Column(db.Integer, nullable=False)
    paid_paise = db.Column(db.Integer, nullable=False, default=0)
    due_paise = db.Column(db.Integer, nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)
    locked = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    payments = db.relationship(
        "BillPayment",
        backref="payment_state",
        lazy=True,
        order_by="BillPayment.sequence",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "bill_id": self.bill_id,
            "payable_paise": self.payable_paise,
            "paid_paise": self.paid_paise,
            "due_paise": self.due_paise,
            "payment_status": self.payment_status,
            "locked": self.locked,
            "paid_at": to_utc_z(self.paid_at),
            "payments": [p.to_dict() for p in self.payments],
            "version_id": self.version_id,
        }


class BillPayment(db.Model):
    """
    Append-only payment entry.

    sequence is 1..n per bill; the unique constraint makes two writers that
    read the same state collide instead of both appending.
    """
    __tablename__ = "bill_payments"
    __table_args__ = (
        db.UniqueConstraint("bill_id", "sequence", name="uq_bill_payments_bill_sequence"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bill_payment_states.bill_id"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)
    mode = db.Column(db.String(16), nullable=False)
    amount_paise = db.Column(db.Integer, nullable=False)
    reference_id = db.Column(db.String(128), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    recorded_by = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "sequence": self.sequence,
            "mode": self.mode,
            "amount_paise": self.amount_paise,
            "reference_id": self.reference_id,
            "paid_at": to_utc_z(self.paid_at),
            "recorded_by": self.recorded_by,
        }
