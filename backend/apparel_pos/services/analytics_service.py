# Overview: Owner analytics derivations (revenue roll-ups, trend, anomalies); read-only.

"""
Owner Analytics

Every derivation is a pure function over normalized AnalyticsOrder values, so
it can run over stored orders, API payloads or a legacy export alike.

Revenue source (one per deployment, applied everywhere):
- order revenue       = payable amount (whole rupees, in paise)
- legacy order revenue = round(price x quantity) rupees
- category / product roll-ups use line totals

Only completed sales count: pending pre-bookings are excluded; 'completed'
and the legacy 'prebooked' status are included. Days and months are IST.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from typing import Iterable, Mapping

from ..errors import ValidationError
from ..extensions import db
from ..models import Bill, Order
from ..models.orders import (
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PREBOOKED,
    ORDER_TYPE_DAILY,
    ORDER_TYPE_EXHIBITION,
    ORDER_TYPE_PREBOOKING,
)
from ..money import PAISE_PER_RUPEE, as_fraction, round_half_away
from ..time_utils import IST, ensure_utc_naive, ist_date, ist_day_bounds, ist_month_key, parse_iso_datetime, previous_month_key, utcnow


TREND_DAYS = 30
ANOMALY_WINDOW = 7
TOP_PRODUCTS = 3
LOW_STOCK_LIMIT = 10
UNKNOWN_CATEGORY = "unknown"
DATE_RANGES = ("all", "today", "week", "month", "custom")


@dataclass(frozen=True)
class AnalyticsLine:
    product_key: str
    quantity: int
    revenue_paise: int
    category: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class AnalyticsOrder:
    order_id: str
    type: str
    status: str
    created_at: datetime | None
    exhibition_id: str | None
    revenue_paise: int
    lines: tuple[AnalyticsLine, ...]
    created_by: str | None = None


# =============================================================================
# NORMALIZATION (both order schemas)
# =============================================================================

def _created_at(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc_naive(value)
    if isinstance(value, str):
        return parse_iso_datetime(value)
    raise ValidationError(f"Unsupported created_at value: {value!r}")


def _legacy_revenue(price, quantity) -> int:
    return round_half_away(as_fraction(price) * quantity) * PAISE_PER_RUPEE


def normalize_order(raw) -> AnalyticsOrder:
    """
    Accepts an Order row, an Order.to_dict() payload, or a legacy
    single-product dict ({productId, price, quantity, ...}).
    """
    if isinstance(raw, Order):
        return AnalyticsOrder(
            order_id=str(raw.id),
            type=raw.type,
            status=raw.status,
            created_at=_created_at(raw.created_at),
            exhibition_id=raw.exhibition_id,
            revenue_paise=raw.payable_paise,
            lines=tuple(
                AnalyticsLine(
                    product_key=line.product_key,
                    quantity=line.quantity,
                    revenue_paise=line.line_total_paise,
                    category=line.category,
                    name=line.product_name,
                )
                for line in raw.lines
            ),
            created_by=raw.created_by,
        )

    if not isinstance(raw, Mapping):
        raise ValidationError(f"Cannot read order from {type(raw).__name__}")

    created = _created_at(raw.get("created_at", raw.get("createdAt")))
    exhibition_id = raw.get("exhibition_id", raw.get("exhibitionId")) or None
    order_id = str(raw.get("id", ""))
    created_by = raw.get("created_by", raw.get("createdBy")) or None

    if "items" in raw:
        totals = raw.get("totals") or {}
        lines = tuple(
            AnalyticsLine(
                product_key=str(item.get("product_id", "")),
                quantity=int(item.get("quantity", 0)),
                revenue_paise=int(item.get("line_total_paise", 0)),
                category=item.get("category"),
                name=item.get("product_name"),
            )
            for item in raw["items"]
        )
        return AnalyticsOrder(
            order_id=order_id,
            type=raw.get("type", ""),
            status=raw.get("status", ""),
            created_at=created,
            exhibition_id=exhibition_id,
            revenue_paise=int(totals.get("payable_paise", 0)),
            lines=lines,
            created_by=created_by,
        )

    product_key = str(raw.get("product_id", raw.get("productId", "")))
    quantity = int(raw.get("quantity", 0) or 0)
    revenue = _legacy_revenue(raw.get("price", 0) or 0, quantity)
    return AnalyticsOrder(
        order_id=order_id,
        type=raw.get("type", ""),
        status=raw.get("status", ""),
        created_at=created,
        exhibition_id=exhibition_id,
        revenue_paise=revenue,
        lines=(AnalyticsLine(product_key=product_key, quantity=quantity, revenue_paise=revenue),),
        created_by=created_by,
    )


def is_revenue_order(order: AnalyticsOrder) -> bool:
    if order.type == ORDER_TYPE_PREBOOKING and order.status == ORDER_STATUS_PENDING:
        return False
    return order.status in (ORDER_STATUS_COMPLETED, ORDER_STATUS_PREBOOKED)


def revenue_orders(raw_orders: Iterable) -> list[AnalyticsOrder]:
    normalized = [normalize_order(raw) for raw in raw_orders]
    return [order for order in normalized if is_revenue_order(order)]


def load_revenue_orders() -> list[AnalyticsOrder]:
    """Completed orders from the store, normalized."""
    return revenue_orders(db.session.query(Order).order_by(Order.created_at.asc(), Order.id.asc()).all())


# =============================================================================
# FILTERS
# =============================================================================

def _as_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


def apply_filters(
    orders: list[AnalyticsOrder],
    *,
    order_type: str | None = None,
    date_range: str | None = None,
    start=None,
    end=None,
    now: datetime | None = None,
) -> list[AnalyticsOrder]:
    """
    Narrow orders by type and creation time.

    date_range: all | today | week (last 7 x 24h) | month (IST month to date) |
    custom (start/end are IST calendar days, both inclusive).
    """
    filtered = list(orders)
    if order_type and order_type != "all":
        filtered = [o for o in filtered if o.type == order_type]

    if not date_range or date_range == "all":
        return filtered
    return within(filtered, *period_window(date_range, start=start, end=end, now=now))


def period_window(date_range: str | None, *, start=None, end=None, now: datetime | None = None):
    """UTC-naive [lower, upper) for a date range; either bound may be None (open)."""
    if date_range not in (None, *DATE_RANGES):
        raise ValidationError(f"Invalid date range: {date_range}. Must be one of {', '.join(DATE_RANGES)}")
    if not date_range or date_range == "all":
        return None, None

    now = ensure_utc_naive(now) if now else utcnow()
    lower = upper = None
    if date_range == "today":
        lower, upper = ist_day_bounds(ist_date(now))
    elif date_range == "week":
        lower, upper = now - timedelta(days=7), now + timedelta(microseconds=1)
    elif date_range == "month":
        year, month = ist_month_key(now)
        lower = ensure_utc_naive(datetime(year, month, 1, tzinfo=IST))
        upper = now + timedelta(microseconds=1)
    else:
        start_day, end_day = _as_date(start), _as_date(end)
        if start_day:
            lower = ist_day_bounds(start_day)[0]
        if end_day:
            upper = ist_day_bounds(end_day)[1]
    return lower, upper


def previous_window(lower: datetime | None, upper: datetime | None):
    """The window of equal length ending where [lower, upper) starts; None when open-ended."""
    if lower is None or upper is None:
        return None
    return lower - (upper - lower), lower


def within(orders: Iterable[AnalyticsOrder], lower: datetime | None, upper: datetime | None) -> list[AnalyticsOrder]:
    def _keep(order: AnalyticsOrder) -> bool:
        if order.created_at is None:
            return False
        if lower is not None and order.created_at < lower:
            return False
        if upper is not None and order.created_at >= upper:
            return False
        return True

    return [o for o in orders if _keep(o)]


# =============================================================================
# DERIVATIONS
# =============================================================================

def is_exhibition_sale(order: AnalyticsOrder) -> bool:
    return order.type == ORDER_TYPE_EXHIBITION or bool(order.exhibition_id)


def revenue_summary(orders: list[AnalyticsOrder]) -> dict:
    overall = daily = exhibition = 0
    for order in orders:
        overall += order.revenue_paise
        if is_exhibition_sale(order):
            exhibition += order.revenue_paise
        elif order.type == ORDER_TYPE_DAILY:
            daily += order.revenue_paise
    return {
        "overall_revenue_paise": overall,
        "daily_sales_revenue_paise": daily,
        "exhibition_sales_revenue_paise": exhibition,
    }


def _change_percent(current: int, previous: int) -> str | None:
    if previous == 0:
        return None
    change = Decimal(current - previous) * 100 / Decimal(previous)
    return str(change.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def monthly_comparison(orders: list[AnalyticsOrder], now: datetime | None = None) -> dict:
    """Current vs previous IST calendar month."""
    current_key = ist_month_key(ensure_utc_naive(now) if now else utcnow())
    previous_key = previous_month_key(*current_key)
    current = previous = 0
    for order in orders:
        if order.created_at is None:
            continue
        key = ist_month_key(order.created_at)
        if key == current_key:
            current += order.revenue_paise
        elif key == previous_key:
            previous += order.revenue_paise
    return {
        "current_paise": current,
        "previous_paise": previous,
        "change_percent": _change_percent(current, previous),
    }


def _line_meta(line: AnalyticsLine, product_index: Mapping[str, Mapping]) -> tuple[str, str]:
    info = product_index.get(line.product_key) or {}
    name = info.get("name") or line.name or line.product_key or "Unknown"
    category = info.get("category") or line.category or UNKNOWN_CATEGORY
    return name, category


def revenue_by_category(orders: list[AnalyticsOrder], product_index: Mapping[str, Mapping]) -> list[dict]:
    totals: dict[str, int] = defaultdict(int)
    for order in orders:
        for line in order.lines:
            _, category = _line_meta(line, product_index)
            totals[category] += line.revenue_paise
    return [
        {"category": category, "revenue_paise": revenue}
        for category, revenue in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def _product_revenue(orders: Iterable[AnalyticsOrder]) -> dict[str, int]:
    totals: dict[str, int] = defaultdict(int)
    for order in orders:
        for line in order.lines:
            if line.product_key:
                totals[line.product_key] += line.revenue_paise
    return totals


def _ranked(totals: Mapping[str, int]) -> list[tuple[str, int]]:
    # Highest revenue first; ties go to the lexicographically smallest id
    return sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))


def top_selling_product(orders: list[AnalyticsOrder], product_index: Mapping[str, Mapping]) -> dict:
    ranked = _ranked(_product_revenue(orders))
    if not ranked:
        return {"product_id": None, "name": "N/A", "category": "N/A", "revenue_paise": 0}
    product_key, revenue = ranked[0]
    names = _names_from_lines(orders)
    info = product_index.get(product_key) or {}
    return {
        "product_id": product_key,
        "name": info.get("name") or names.get(product_key, product_key),
        "category": info.get("category") or UNKNOWN_CATEGORY,
        "revenue_paise": revenue,
    }


def _names_from_lines(orders: Iterable[AnalyticsOrder]) -> dict[str, str]:
    names = {}
    for order in orders:
        for line in order.lines:
            if line.name:
                names.setdefault(line.product_key, line.name)
    return names


def trend_days(now: datetime | None = None, days: int = TREND_DAYS) -> list[date]:
    today = ist_date(ensure_utc_naive(now) if now else utcnow())
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def _day_label(day: date) -> str:
    return f"{day.day} {day.strftime('%b')}"


def revenue_trend(orders: list[AnalyticsOrder], now: datetime | None = None) -> list[dict]:
    """One bucket per IST day for the last 30 days (today included), oldest first."""
    days = trend_days(now)
    buckets = {day: 0 for day in days}
    for order in orders:
        if order.created_at is None:
            continue
        day = ist_date(order.created_at)
        if day in buckets:
            buckets[day] += order.revenue_paise
    return [
        {"date": day.isoformat(), "label": _day_label(day), "revenue_paise": buckets[day]}
        for day in days
    ]


def anomalies(trend: list[dict]) -> list[dict]:
    """
    Spikes and drops against the mean of the 7 strictly preceding days.

    spike: revenue > 2 x baseline; drop: revenue < baseline / 2; both need baseline > 0.
    """
    found = []
    for i in range(ANOMALY_WINDOW, len(trend)):
        window = trend[i - ANOMALY_WINDOW:i]
        baseline = Fraction(sum(day["revenue_paise"] for day in window), ANOMALY_WINDOW)
        if baseline <= 0:
            continue
        revenue = trend[i]["revenue_paise"]
        if revenue > 2 * baseline:
            kind = "spike"
        elif revenue < baseline / 2:
            kind = "drop"
        else:
            continue
        found.append({
            "date": trend[i]["date"],
            "label": trend[i]["label"],
            "type": kind,
            "revenue_paise": revenue,
            "baseline_paise": round_half_away(baseline),
        })
    return found


def product_performance(
    orders: list[AnalyticsOrder],
    product_index: Mapping[str, Mapping],
    now: datetime | None = None,
) -> dict:
    """Top products by revenue in the trend window, each as a daily series on the trend labels."""
    days = trend_days(now)
    position = {day: i for i, day in enumerate(days)}
    in_window = [
        order for order in orders
        if order.created_at is not None and ist_date(order.created_at) in position
    ]
    top = _ranked(_product_revenue(in_window))[:TOP_PRODUCTS]
    names = _names_from_lines(in_window)

    series = []
    for product_key, total in top:
        data = [0] * len(days)
        for order in in_window:
            index = position[ist_date(order.created_at)]
            for line in order.lines:
                if line.product_key == product_key:
                    data[index] += line.revenue_paise
        info = product_index.get(product_key) or {}
        series.append({
            "product_id": product_key,
            "name": info.get("name") or names.get(product_key, product_key),
            "revenue_paise": total,
            "data": data,
        })
    return {"labels": [_day_label(day) for day in days], "series": series}


# =============================================================================
# OWNER KPIs
# =============================================================================

def items_sold(orders: Iterable[AnalyticsOrder]) -> int:
    return sum(line.quantity for order in orders for line in order.lines)


def average_order_value(orders: list[AnalyticsOrder]) -> int:
    """Mean revenue per order in paise (half away from zero); 0 with no orders."""
    if not orders:
        return 0
    return round_half_away(Fraction(sum(o.revenue_paise for o in orders), len(orders)))


def period_kpis(orders: list[AnalyticsOrder]) -> dict:
    return {
        "revenue_paise": sum(o.revenue_paise for o in orders),
        "orders": len(orders),
        "items_sold": items_sold(orders),
        "average_order_value_paise": average_order_value(orders),
    }


def growth_vs_previous(current: list[AnalyticsOrder], previous: list[AnalyticsOrder]) -> dict:
    """
    Each KPI of the current window against the previous window.

    change_percent is None when the previous value is zero.
    """
    now_kpis, prev_kpis = period_kpis(current), period_kpis(previous)
    return {
        name: {
            "current": now_kpis[name],
            "previous": prev_kpis[name],
            "change_percent": _change_percent(now_kpis[name], prev_kpis[name]),
        }
        for name in now_kpis
    }


def _category_totals(orders: Iterable[AnalyticsOrder], product_index: Mapping[str, Mapping]) -> dict[str, dict]:
    totals: dict[str, dict] = defaultdict(lambda: {"revenue_paise": 0, "items_sold": 0, "order_ids": set()})
    for order in orders:
        for line in order.lines:
            _, category = _line_meta(line, product_index)
            bucket = totals[category]
            bucket["revenue_paise"] += line.revenue_paise
            bucket["items_sold"] += line.quantity
            bucket["order_ids"].add(order.order_id)
    return totals


def category_performance(
    current: list[AnalyticsOrder],
    previous: list[AnalyticsOrder],
    product_index: Mapping[str, Mapping],
) -> list[dict]:
    """Line revenue per category with order count, average order share and growth, highest revenue first."""
    now_totals = _category_totals(current, product_index)
    prev_totals = _category_totals(previous, product_index)
    rows = []
    for category, bucket in now_totals.items():
        order_count = len(bucket["order_ids"])
        previous_revenue = prev_totals[category]["revenue_paise"] if category in prev_totals else 0
        rows.append({
            "category": category,
            "revenue_paise": bucket["revenue_paise"],
            "items_sold": bucket["items_sold"],
            "orders": order_count,
            "average_value_paise": round_half_away(Fraction(bucket["revenue_paise"], order_count)),
            "previous_revenue_paise": previous_revenue,
            "growth_percent": _change_percent(bucket["revenue_paise"], previous_revenue),
        })
    return sorted(rows, key=lambda row: (-row["revenue_paise"], row["category"]))


def employee_performance(orders: list[AnalyticsOrder], employee_names: Mapping[str, str] | None = None) -> list[dict]:
    """Revenue, order count and average order value per creating employee, highest revenue first."""
    employee_names = employee_names or {}
    grouped: dict[str, list[AnalyticsOrder]] = defaultdict(list)
    for order in orders:
        grouped[order.created_by or "unknown"].append(order)
    rows = [
        {
            "employee_id": employee_id,
            "name": employee_names.get(employee_id) or "Unknown",
            "revenue_paise": sum(o.revenue_paise for o in group),
            "orders": len(group),
            "average_order_value_paise": average_order_value(group),
        }
        for employee_id, group in grouped.items()
    ]
    return sorted(rows, key=lambda row: (-row["revenue_paise"], row["employee_id"]))


def low_stock(products: Iterable[Mapping], limit: int = LOW_STOCK_LIMIT) -> dict:
    """
    Products at or below their low-stock threshold, emptiest first.

    products are Product.to_dict()-shaped mappings.
    """
    flagged = [p for p in products if p.get("stock_qty", 0) <= p.get("low_stock_threshold", 0)]
    flagged.sort(key=lambda p: (p.get("stock_qty", 0), p.get("name") or "", p.get("id") or 0))
    return {
        "count": len(flagged),
        "out_of_stock": sum(1 for p in flagged if p.get("stock_qty", 0) == 0),
        "products": [
            {
                "product_id": p.get("id"),
                "sku": p.get("sku"),
                "name": p.get("name"),
                "stock_qty": p.get("stock_qty", 0),
                "low_stock_threshold": p.get("low_stock_threshold", 0),
            }
            for p in flagged[:limit]
        ],
    }


def load_employee_names() -> dict[str, str]:
    """Latest name each employee id printed on a bill."""
    rows = db.session.query(Bill.employee_id, Bill.employee_name).order_by(Bill.generated_at.asc(), Bill.id.asc())
    return {employee_id: name for employee_id, name in rows}


def owner_dashboard(
    orders: list[AnalyticsOrder],
    product_index: Mapping[str, Mapping],
    *,
    now: datetime | None = None,
    order_type: str | None = None,
    date_range: str | None = None,
    start=None,
    end=None,
    products: Iterable[Mapping] = (),
    employee_names: Mapping[str, str] | None = None,
) -> dict:
    """
    Every owner roll-up over the filtered revenue orders.

    Growth compares against the equal-length window just before the selected
    one (same order type); it is None for "all" and half-open custom ranges.
    """
    now = ensure_utc_naive(now) if now else utcnow()
    filtered = apply_filters(
        orders, order_type=order_type, date_range=date_range, start=start, end=end, now=now,
    )
    prior_window = None
    if date_range and date_range != "all":
        prior_window = previous_window(*period_window(date_range, start=start, end=end, now=now))
    previous = []
    if prior_window is not None:
        previous = within(apply_filters(orders, order_type=order_type), *prior_window)

    summary = revenue_summary(filtered)
    trend = revenue_trend(filtered, now)
    return {
        **summary,
        "order_count": len(filtered),
        "monthly_comparison": monthly_comparison(filtered, now),
        "top_selling_product": top_selling_product(filtered, product_index),
        "category_revenue": revenue_by_category(filtered, product_index),
        "revenue_trend": trend,
        "anomalies": anomalies(trend),
        "product_performance": product_performance(filtered, product_index, now),
        "total_items_sold": items_sold(filtered),
        "average_order_value_paise": average_order_value(filtered),
        "growth": growth_vs_previous(filtered, previous) if prior_window is not None else None,
        "category_performance": category_performance(filtered, previous, product_index),
        "employee_performance": employee_performance(filtered, employee_names),
        "low_stock": low_stock(products),
    }
