# Overview: Immutable cart values and the pure operations that build them.

from __future__ import annotations

from dataclasses import dataclass, replace

from ..errors import NotFoundError, ValidationError
from .catalog_service import ProductSnapshot


@dataclass(frozen=True)
class CartLine:
    product_id: int
    name: str
    sku: str
    category: str
    quantity: int
    unit_base_price_paise: int
    unit_sale_price_paise: int | None
    gst_rate: int
    is_tax_inclusive: bool

    @property
    def is_on_sale(self) -> bool:
        return self.unit_sale_price_paise is not None

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "quantity": self.quantity,
            "unit_base_price_paise": self.unit_base_price_paise,
            "unit_sale_price_paise": self.unit_sale_price_paise,
            "gst_rate": self.gst_rate,
            "is_tax_inclusive": self.is_tax_inclusive,
        }


@dataclass(frozen=True)
class Cart:
    """Lines in insertion order; one line per product."""
    lines: tuple[CartLine, ...] = ()

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    def find(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def to_dict(self) -> dict:
        return {"items": [line.to_dict() for line in self.lines]}


def _check_quantity(quantity) -> int:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", details={"quantity": quantity})
    return quantity


def add(cart: Cart, line: CartLine) -> Cart:
    """Append a line, or sum quantities into the existing line for the same product."""
    _check_quantity(line.quantity)
    merged = []
    found = False
    for existing in cart.lines:
        if existing.product_id == line.product_id:
            merged.append(replace(existing, quantity=existing.quantity + line.quantity))
            found = True
        else:
            merged.append(existing)
    if not found:
        merged.append(line)
    return Cart(tuple(merged))


def set_quantity(cart: Cart, product_id: int, quantity: int) -> Cart:
    _check_quantity(quantity)
    if cart.find(product_id) is None:
        raise NotFoundError(f"Product {product_id} is not in the cart")
    return Cart(tuple(
        replace(line, quantity=quantity) if line.product_id == product_id else line
        for line in cart.lines
    ))


def remove(cart: Cart, product_id: int) -> Cart:
    if cart.find(product_id) is None:
        raise NotFoundError(f"Product {product_id} is not in the cart")
    return Cart(tuple(line for line in cart.lines if line.product_id != product_id))


def clear(cart: Cart) -> Cart:
    return Cart()


def line_from_product(product: ProductSnapshot, quantity: int = 1) -> CartLine:
    """Cart line priced from a catalog snapshot; the sale price rides along only while on sale."""
    _check_quantity(quantity)
    sale_price = product.sale_price_paise if product.is_on_sale else None
    return CartLine(
        product_id=product.product_id,
        name=product.name,
        sku=product.sku,
        category=product.category,
        quantity=quantity,
        unit_base_price_paise=product.base_price_paise,
        unit_sale_price_paise=sale_price,
        gst_rate=product.gst_rate,
        is_tax_inclusive=product.is_tax_inclusive,
    )


def cart_from_items(items: list[dict], snapshots: dict[int, ProductSnapshot]) -> Cart:
    """
    Build a cart from request items [{product_id, quantity}] using catalog snapshots.

    Unknown or inactive products are rejected; repeated ids merge.
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    cart = Cart()
    missing = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        product_id = item.get("product_id")
        snapshot = snapshots.get(product_id)
        if snapshot is None or not snapshot.is_active:
            missing.append(product_id)
            continue
        cart = add(cart, line_from_product(snapshot, item.get("quantity")))
    if missing:
        raise NotFoundError(
            "Some products were not found or are inactive",
            details={"product_ids": missing},
        )
    return cart
