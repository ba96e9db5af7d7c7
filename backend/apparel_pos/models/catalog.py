from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CATEGORIES = ("men", "women", "kids")
GST_RATES = (5, 12, 18)


class Product(db.Model):
    """
    Product master data (apparel catalog).

    PRICING:
    - base_price_paise is the list price.
    - sale_price_paise is set iff is_on_sale, and must be below base price.
    - gst_rate is a whole percentage (5, 12, 18); is_tax_inclusive says whether
      the shelf price already contains GST.

    STOCK:
    stock_qty is shared mutable state. Only the stock service decrements it,
    under a row lock plus the version_id compare-and-set.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("base_price_paise > 0", name="ck_products_base_price_positive"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(16), nullable=False)
    subcategory = db.Column(db.String(64), nullable=False, default="")

    # Authoritative storage in paise (frontend may only format for display)
    base_price_paise = db.Column(db.Integer, nullable=False)
    sale_price_paise = db.Column(db.Integer, nullable=True)
    is_on_sale = db.Column(db.Boolean, nullable=False, default=False)

    gst_rate = db.Column(db.Integer, nullable=False)
    is_tax_inclusive = db.Column(db.Boolean, nullable=False, default=False)

    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_qty <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "subcategory": self.subcategory,
            "base_price_paise": self.base_price_paise,
            "sale_price_paise": self.sale_price_paise,
            "is_on_sale": self.is_on_sale,
            "gst_rate": self.gst_rate,
            "is_tax_inclusive": self.is_tax_inclusive,
            "stock_qty": self.stock_qty,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
