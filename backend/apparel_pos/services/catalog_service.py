# Overview: Product catalog read contract (snapshots) and owner-side catalog writes.

"""
Product Catalog

The billing engine reads products only through immutable ProductSnapshot
values (get_by_id / batch_get). Writes (create, update, toggle, restock)
are owner operations and enforce the catalog rules:

- base_price_paise > 0
- sale_price_paise < base_price_paise when set
- is_on_sale requires a sale price; is_on_sale=False clears it
- sku trimmed, uppercased, unique
- gst_rate in (5, 12, 18); category in (men, women, kids)
- stock_qty >= 0, low_stock_threshold >= 0

Stock decrements belong to stock_service, never to this module.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

from ..errors import NotFoundError, PolicyError, ValidationError
from ..extensions import db
from ..models import Product
from ..models.catalog import CATEGORIES, GST_RATES
from .concurrency import run_with_retry


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: int
    name: str
    sku: str
    category: str
    subcategory: str
    base_price_paise: int
    sale_price_paise: int | None
    gst_rate: int
    is_tax_inclusive: bool
    is_on_sale: bool
    stock_qty: int
    low_stock_threshold: int
    is_active: bool

    @classmethod
    def from_model(cls, product: Product) -> "ProductSnapshot":
        return cls(
            product_id=product.id,
            name=product.name,
            sku=product.sku,
            category=product.category,
            subcategory=product.subcategory or "",
            base_price_paise=product.base_price_paise,
            sale_price_paise=product.sale_price_paise,
            gst_rate=product.gst_rate,
            is_tax_inclusive=bool(product.is_tax_inclusive),
            is_on_sale=bool(product.is_on_sale),
            stock_qty=product.stock_qty,
            low_stock_threshold=product.low_stock_threshold,
            is_active=bool(product.is_active),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# READ CONTRACT
# =============================================================================

def get_by_id(product_id: int) -> ProductSnapshot | None:
    product = db.session.get(Product, product_id)
    if product is None:
        return None
    return ProductSnapshot.from_model(product)


def batch_get(product_ids: Iterable[int]) -> dict[int, ProductSnapshot]:
    """Snapshots keyed by id; unknown ids are simply absent from the result."""
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {row.id: ProductSnapshot.from_model(row) for row in rows}


def list_products(*, active_only: bool = False, category: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def product_index() -> dict[str, dict]:
    """productId (as str) -> {name, category}; the lookup analytics expects."""
    rows = db.session.query(Product.id, Product.name, Product.category).all()
    return {str(row.id): {"name": row.name, "category": row.category} for row in rows}


# =============================================================================
# VALIDATION
# =============================================================================

PRODUCT_FIELDS = (
    "sku",
    "name",
    "category",
    "subcategory",
    "base_price_paise",
    "sale_price_paise",
    "is_on_sale",
    "gst_rate",
    "is_tax_inclusive",
    "stock_qty",
    "low_stock_threshold",
    "is_active",
)

REQUIRED_ON_CREATE = (
    "sku",
    "name",
    "category",
    "base_price_paise",
    "gst_rate",
    "is_tax_inclusive",
    "stock_qty",
    "low_stock_threshold",
)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_product_data(data: dict, *, partial: bool = False) -> dict:
    """
    Validate and normalize a product payload.

    partial=True only checks the fields present (cross-field rules still run
    when both sides are present). Returns a cleaned dict of known fields.
    """
    unknown = sorted(set(data) - set(PRODUCT_FIELDS))
    errors: list[str] = [f"Unknown field: {name}" for name in unknown]
    policy: list[str] = []

    if not partial:
        for name in REQUIRED_ON_CREATE:
            if data.get(name) is None:
                errors.append(f"{name} is required")

    cleaned = {k: v for k, v in data.items() if k in PRODUCT_FIELDS}

    for name in ("sku", "name", "subcategory"):
        if name in cleaned and cleaned[name] is not None:
            if not isinstance(cleaned[name], str):
                errors.append(f"{name} must be a string")
                continue
            cleaned[name] = cleaned[name].strip()
            if name != "subcategory" and not cleaned[name]:
                errors.append(f"{name} cannot be empty")
    if isinstance(cleaned.get("sku"), str):
        cleaned["sku"] = cleaned["sku"].upper()

    if "category" in cleaned and cleaned["category"] is not None and cleaned["category"] not in CATEGORIES:
        errors.append(f"category must be one of: {', '.join(CATEGORIES)}")

    if "gst_rate" in cleaned and cleaned["gst_rate"] is not None and cleaned["gst_rate"] not in GST_RATES:
        errors.append(f"gst_rate must be one of: {', '.join(str(r) for r in GST_RATES)}")

    for name in ("is_on_sale", "is_tax_inclusive", "is_active"):
        if name in cleaned and cleaned[name] is not None and not isinstance(cleaned[name], bool):
            errors.append(f"{name} must be a boolean")

    base = cleaned.get("base_price_paise")
    if base is not None and (not _is_int(base) or base <= 0):
        errors.append("base_price_paise must be a positive integer")
        base = None

    sale = cleaned.get("sale_price_paise")
    if sale is not None and (not _is_int(sale) or sale <= 0):
        errors.append("sale_price_paise must be a positive integer or null")
        sale = None

    for name in ("stock_qty", "low_stock_threshold"):
        value = cleaned.get(name)
        if value is not None and (not _is_int(value) or value < 0):
            errors.append(f"{name} must be a non-negative integer")

    if sale is not None and base is not None and sale >= base:
        policy.append("Sale price must be lower than base price")

    if cleaned.get("is_on_sale") is True and "sale_price_paise" in cleaned and cleaned["sale_price_paise"] is None:
        policy.append("Sale price is required when product is on sale")
    if cleaned.get("is_on_sale") is True and "sale_price_paise" not in cleaned and not partial:
        policy.append("Sale price is required when product is on sale")
    if cleaned.get("is_on_sale") is False:
        cleaned["sale_price_paise"] = None

    if errors:
        raise ValidationError("Product validation failed", messages=errors + policy)
    if policy:
        raise PolicyError("Product violates pricing policy", messages=policy)
    return cleaned


def _ensure_sku_free(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ValidationError("SKU already exists", details={"sku": sku})


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


# =============================================================================
# OWNER WRITES
# =============================================================================

def create_product(data: dict) -> Product:
    cleaned = validate_product_data(data, partial=False)

    def _op():
        _ensure_sku_free(cleaned["sku"])
        product = Product(
            sku=cleaned["sku"],
            name=cleaned["name"],
            category=cleaned["category"],
            subcategory=cleaned.get("subcategory") or "",
            base_price_paise=cleaned["base_price_paise"],
            sale_price_paise=cleaned.get("sale_price_paise") if cleaned.get("is_on_sale") else None,
            is_on_sale=bool(cleaned.get("is_on_sale", False)),
            gst_rate=cleaned["gst_rate"],
            is_tax_inclusive=cleaned["is_tax_inclusive"],
            stock_qty=cleaned["stock_qty"],
            low_stock_threshold=cleaned["low_stock_threshold"],
            is_active=cleaned.get("is_active", True),
        )
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, updates: dict) -> Product:
    """
    Apply a partial update. The merged record is re-validated as a whole so
    cross-field pricing rules hold after the write.
    """
    validate_product_data(updates, partial=True)

    def _op():
        product = _require_product(product_id)
        merged = {name: getattr(product, name) for name in PRODUCT_FIELDS}
        merged.update(updates)
        if updates.get("is_on_sale") is False:
            merged["sale_price_paise"] = None
        if not merged.get("is_on_sale"):
            merged["sale_price_paise"] = None
        cleaned = validate_product_data(merged, partial=False)

        if "sku" in updates:
            _ensure_sku_free(cleaned["sku"], exclude_id=product.id)

        for name in PRODUCT_FIELDS:
            setattr(product, name, cleaned.get(name))
        product.subcategory = cleaned.get("subcategory") or ""
        db.session.commit()
        return product

    return run_with_retry(_op)


def toggle_product_active(product_id: int, is_active: bool) -> Product:
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean")

    def _op():
        product = _require_product(product_id)
        product.is_active = is_active
        db.session.commit()
        return product

    return run_with_retry(_op)


def set_product_stock(product_id: int, new_stock_qty: int) -> Product:
    """Owner restock / count correction (absolute value, never negative)."""
    if not _is_int(new_stock_qty) or new_stock_qty < 0:
        raise ValidationError("Stock quantity must be a non-negative integer")

    def _op():
        product = _require_product(product_id)
        product.stock_qty = new_stock_qty
        db.session.commit()
        return product

    return run_with_retry(_op)
