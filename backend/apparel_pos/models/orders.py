from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ORDER_TYPE_DAILY = "daily"
ORDER_TYPE_EXHIBITION = "exhibition"
ORDER_TYPE_PREBOOKING = "prebooking"
ORDER_TYPES = (ORDER_TYPE_DAILY, ORDER_TYPE_EXHIBITION, ORDER_TYPE_PREBOOKING)

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_COMPLETED = "completed"
# Written only by older clients; read models treat it as a completed sale.
ORDER_STATUS_PREBOOKED = "prebooked"
ORDER_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_COMPLETED, ORDER_STATUS_PREBOOKED)


class Order(db.Model):
    """
    Customer order.

    LIFECYCLE:
    - type=prebooking is created pending (stock untouched) and needs delivery_date.
    - type in (daily, exhibition) is created completed and deducts stock.
    - pending -> completed happens once (status compare-and-set via version_id),
      and deducts stock in the same transaction.

    Totals are a denormalized copy of the order calculation (all paise).
    The order owns the link to its bill (bill_id); the bill only repeats the
    order id in its printed header.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_type_status", "type", "status"),
        db.Index("ix_orders_created_by_created", "created_by", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)

    customer_phone = db.Column(db.String(10), nullable=False, index=True)
    exhibition_id = db.Column(db.String(64), nullable=True, index=True)
    created_by = db.Column(db.String(64), nullable=False)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    employee_discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    subtotal_paise = db.Column(db.Integer, nullable=False, default=0)
    total_discount_paise = db.Column(db.Integer, nullable=False, default=0)
    total_taxable_paise = db.Column(db.Integer, nullable=False, default=0)
    total_cgst_paise = db.Column(db.Integer, nullable=False, default=0)
    total_sgst_paise = db.Column(db.Integer, nullable=False, default=0)
    total_tax_paise = db.Column(db.Integer, nullable=False, default=0)
    grand_total_paise = db.Column(db.Integer, nullable=False, default=0)
    payable_paise = db.Column(db.Integer, nullable=False, default=0)

    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=True, index=True)

    # Set only on orders produced by the legacy merge
    legacy_source_ids = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    converted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
    )
    bill = db.relationship("Bill", foreign_keys=[bill_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} type={self.type} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "customer_phone": self.customer_phone,
            "exhibition_id": self.exhibition_id,
            "created_by": self.created_by,
            "delivery_date": to_utc_z(self.delivery_date),
            "employee_discount_percent": str(self.employee_discount_percent),
            "items": [line.to_dict() for line in self.lines],
            "totals": {
                "subtotal_paise": self.subtotal_paise,
                "total_discount_paise": self.total_discount_paise,
                "total_taxable_paise": self.total_taxable_paise,
                "total_cgst_paise": self.total_cgst_paise,
                "total_sgst_paise": self.total_sgst_paise,
                "total_tax_paise": self.total_tax_paise,
                "grand_total_paise": self.grand_total_paise,
                "payable_paise": self.payable_paise,
            },
            "bill_id": self.bill_id,
            "created_at": to_utc_z(self.created_at),
            "converted_at": to_utc_z(self.converted_at),
            "completed_at": to_utc_z(self.completed_at),
            "version_id": self.version_id,
        }


class OrderLine(db.Model):
    """One product on an order, in cart insertion order (position)."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "position", name="uq_order_lines_order_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    # Legacy lines may reference products that were never imported
    legacy_product_ref = db.Column(db.String(64), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(16), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    line_discount_paise = db.Column(db.Integer, nullable=False, default=0)
    line_tax_paise = db.Column(db.Integer, nullable=False, default=0)
    line_total_paise = db.Column(db.Integer, nullable=False)

    @property
    def product_key(self) -> str:
        if self.product_id is not None:
            return str(self.product_id)
        return self.legacy_product_ref or ""

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_key,
            "product_name": self.product_name,
            "sku": self.sku,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price_paise": self.unit_price_paise,
            "line_discount_paise": self.line_discount_paise,
            "line_tax_paise": self.line_tax_paise,
            "line_total_paise": self.line_total_paise,
        }
