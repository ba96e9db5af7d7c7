# Overview: Order calculation engine (discount policy, GST split, order totals). Pure, no I/O.

"""
Order Calculation

Per line, in cart order:

1) Effective unit price
   - on sale (unit_sale_price_paise set): sale price, no discount
     (the sale price silently overrides any employee discount)
   - employee discount d > 0: base - round(base * d / 100)
   - otherwise: base

2) GST split on the effective unit price p at rate r (percent)
   - tax-exclusive: half = round(p * r / 200), taxable = p, unit total = p + 2*half
   - tax-inclusive: half = round(p * r / (2 * (100 + r))), taxable = p - 2*half,
     unit total = p
   CGST = SGST = half, so CGST == SGST == total tax / 2 exactly.

3) Line amounts are the unit amounts times quantity; order totals are plain
   sums over the lines. Nothing is rounded after step 2.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction

from ..errors import PolicyError, ValidationError
from ..models.catalog import CATEGORIES, GST_RATES
from ..money import add, as_fraction, mul, sub
from .cart_service import Cart, CartLine


MAX_EMPLOYEE_DISCOUNT_PERCENT = 10


@dataclass(frozen=True)
class CalculatedLine:
    product_id: int
    name: str
    sku: str
    category: str
    quantity: int
    unit_base_price_paise: int
    unit_sale_price_paise: int | None
    gst_rate: int
    is_tax_inclusive: bool

    effective_unit_price_paise: int
    unit_discount_paise: int
    unit_taxable_paise: int
    unit_cgst_paise: int
    unit_sgst_paise: int
    unit_total_tax_paise: int

    line_subtotal_paise: int
    line_taxable_paise: int
    line_discount_paise: int
    line_cgst_paise: int
    line_sgst_paise: int
    line_total_tax_paise: int
    line_total_paise: int

    @property
    def is_on_sale(self) -> bool:
        return self.unit_sale_price_paise is not None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class OrderSummary:
    total_items: int
    total_quantity: int
    employee_discount_percent: Decimal
    subtotal_paise: int
    total_discount_paise: int
    total_taxable_paise: int
    total_cgst_paise: int
    total_sgst_paise: int
    total_tax_paise: int
    grand_total_paise: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["employee_discount_percent"] = str(self.employee_discount_percent)
        return data


@dataclass(frozen=True)
class OrderCalculation:
    items: tuple[CalculatedLine, ...]
    summary: OrderSummary

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "summary": self.summary.to_dict(),
        }


# =============================================================================
# VALIDATION
# =============================================================================

def parse_discount_percent(value) -> Fraction:
    """
    Employee discount as an exact fraction.

    Negative or non-numeric values are malformed input (ValidationError);
    anything above the 10% cap is a policy violation (PolicyError).
    """
    if value is None:
        return Fraction(0)
    percent = as_fraction(value)
    if percent < 0:
        raise ValidationError("Employee discount cannot be negative", details={"employee_discount_percent": str(value)})
    if percent > MAX_EMPLOYEE_DISCOUNT_PERCENT:
        raise PolicyError(
            f"Employee discount cannot exceed {MAX_EMPLOYEE_DISCOUNT_PERCENT}%",
            details={"employee_discount_percent": str(value)},
        )
    return percent


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_line(line: CartLine) -> list[str]:
    """Field-level problems with one cart line; empty when the line is usable."""
    label = line.sku or str(line.product_id)
    errors = []
    if line.product_id is None:
        errors.append("Product id is required")
    if not line.name:
        errors.append(f"{label}: product name is required")
    if line.category not in CATEGORIES:
        errors.append(f"{label}: invalid category {line.category!r}")
    if not _is_int(line.quantity) or line.quantity <= 0:
        errors.append(f"{label}: quantity must be a positive integer")
    if not _is_int(line.unit_base_price_paise) or line.unit_base_price_paise <= 0:
        errors.append(f"{label}: base price must be positive")
    sale = line.unit_sale_price_paise
    if sale is not None:
        if not _is_int(sale) or sale <= 0:
            errors.append(f"{label}: sale price must be positive")
        elif _is_int(line.unit_base_price_paise) and sale >= line.unit_base_price_paise:
            errors.append(f"{label}: sale price must be lower than base price")
    if line.gst_rate not in GST_RATES:
        errors.append(f"{label}: GST rate must be one of {', '.join(str(r) for r in GST_RATES)}")
    if not isinstance(line.is_tax_inclusive, bool):
        errors.append(f"{label}: is_tax_inclusive must be a boolean")
    return errors


# =============================================================================
# LINE CALCULATION
# =============================================================================

def effective_unit_price(line: CartLine, discount_percent: Fraction) -> tuple[int, int]:
    """(effective unit price, unit discount) in paise."""
    if line.is_on_sale:
        return line.unit_sale_price_paise, 0
    if discount_percent > 0:
        unit_discount = mul(line.unit_base_price_paise, discount_percent / 100)
        return sub(line.unit_base_price_paise, unit_discount), unit_discount
    return line.unit_base_price_paise, 0


def split_gst(price_paise: int, gst_rate: int, is_tax_inclusive: bool) -> tuple[int, int, int]:
    """(taxable, half, unit total) for one unit; CGST and SGST are both `half`."""
    if is_tax_inclusive:
        half = mul(price_paise, Fraction(gst_rate, 2 * (100 + gst_rate)))
        return sub(price_paise, add(half, half)), half, price_paise
    half = mul(price_paise, Fraction(gst_rate, 200))
    return price_paise, half, add(price_paise, half, half)


def calculate_line(line: CartLine, discount_percent: Fraction) -> CalculatedLine:
    price, unit_discount = effective_unit_price(line, discount_percent)
    taxable, half, unit_total = split_gst(price, line.gst_rate, line.is_tax_inclusive)
    qty = line.quantity
    return CalculatedLine(
        product_id=line.product_id,
        name=line.name,
        sku=line.sku,
        category=line.category,
        quantity=qty,
        unit_base_price_paise=line.unit_base_price_paise,
        unit_sale_price_paise=line.unit_sale_price_paise,
        gst_rate=line.gst_rate,
        is_tax_inclusive=line.is_tax_inclusive,
        effective_unit_price_paise=price,
        unit_discount_paise=unit_discount,
        unit_taxable_paise=taxable,
        unit_cgst_paise=half,
        unit_sgst_paise=half,
        unit_total_tax_paise=2 * half,
        line_subtotal_paise=price * qty,
        line_taxable_paise=taxable * qty,
        line_discount_paise=unit_discount * qty,
        line_cgst_paise=half * qty,
        line_sgst_paise=half * qty,
        line_total_tax_paise=2 * half * qty,
        line_total_paise=unit_total * qty,
    )


# =============================================================================
# ORDER CALCULATION
# =============================================================================

def summarize(items, discount_percent: Fraction) -> OrderSummary:
    return OrderSummary(
        total_items=len(items),
        total_quantity=sum(i.quantity for i in items),
        employee_discount_percent=Decimal(discount_percent.numerator) / Decimal(discount_percent.denominator),
        subtotal_paise=add(*(i.line_subtotal_paise for i in items)),
        total_discount_paise=add(*(i.line_discount_paise for i in items)),
        total_taxable_paise=add(*(i.line_taxable_paise for i in items)),
        total_cgst_paise=add(*(i.line_cgst_paise for i in items)),
        total_sgst_paise=add(*(i.line_sgst_paise for i in items)),
        total_tax_paise=add(*(i.line_total_tax_paise for i in items)),
        grand_total_paise=add(*(i.line_total_paise for i in items)),
    )


def calculate(cart: Cart, employee_discount_percent=0) -> OrderCalculation:
    """
    Price a cart.

    Raises:
        ValidationError: empty cart, malformed line, negative discount
        PolicyError: discount above the cap
    """
    if not cart.lines:
        raise ValidationError("Cart is empty")

    discount = parse_discount_percent(employee_discount_percent)

    errors = []
    for line in cart.lines:
        errors.extend(validate_line(line))
    if errors:
        raise ValidationError("Cart contains invalid items", messages=errors)

    items = tuple(calculate_line(line, discount) for line in cart.lines)
    return OrderCalculation(items=items, summary=summarize(items, discount))


def gst_breakdown(summary: OrderSummary) -> dict:
    """Order-level GST totals plus the effective GST percentage on the taxable value."""
    if summary.total_taxable_paise > 0:
        percent = Decimal(summary.total_tax_paise * 100) / Decimal(summary.total_taxable_paise)
        percent = percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    else:
        percent = Decimal("0.00")
    return {
        "taxable_paise": summary.total_taxable_paise,
        "cgst_paise": summary.total_cgst_paise,
        "sgst_paise": summary.total_sgst_paise,
        "total_gst_paise": summary.total_tax_paise,
        "gst_percent": str(percent),
    }
