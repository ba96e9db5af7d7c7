"""
Owner analytics tests.

Verifies:
- Only completed sales count (pending pre-bookings excluded)
- Daily vs exhibition split, legacy order revenue
- IST month comparison, 30-day trend, spike/drop detection
- Category and top-product roll-ups with deterministic ties
"""

from datetime import datetime, timedelta

import pytest

from apparel_pos.errors import ValidationError
from apparel_pos.services import analytics_service
from apparel_pos.services.analytics_service import (
    anomalies,
    apply_filters,
    average_order_value,
    category_performance,
    employee_performance,
    growth_vs_previous,
    items_sold,
    low_stock,
    monthly_comparison,
    normalize_order,
    owner_dashboard,
    period_window,
    previous_window,
    product_performance,
    revenue_by_category,
    revenue_orders,
    revenue_summary,
    revenue_trend,
    top_selling_product,
)


NOW = datetime(2026, 10, 19, 6, 0)  # 11:30 IST


def order(order_id, *, type="daily", status="completed", at=NOW, payable=0, items=(), exhibition_id=None,
          created_by="emp-1"):
    """Order.to_dict()-shaped payload."""
    return {
        "id": order_id,
        "created_by": created_by,
        "type": type,
        "status": status,
        "exhibition_id": exhibition_id,
        "created_at": at.isoformat() + "Z",
        "items": [
            {"product_id": pid, "quantity": qty, "line_total_paise": total, "category": category, "product_name": f"P{pid}"}
            for pid, qty, total, category in items
        ],
        "totals": {"payable_paise": payable},
    }


def legacy(order_id, *, product_id, price, quantity, status="completed", type="daily", at=NOW):
    return {
        "id": order_id,
        "productId": product_id,
        "price": price,
        "quantity": quantity,
        "status": status,
        "type": type,
        "createdAt": at.isoformat() + "Z",
    }


# =============================================================================
# NORMALIZATION
# =============================================================================


class TestNormalization:

    def test_pending_prebookings_are_not_revenue(self):
        orders = revenue_orders([
            order(1, payable=100000),
            order(2, type="prebooking", status="pending", payable=50000),
            order(3, type="prebooking", status="completed", payable=30000),
            legacy("L1", product_id="7", price=100, quantity=1, status="prebooked"),
        ])
        assert [o.order_id for o in orders] == ["1", "3", "L1"]

    @pytest.mark.parametrize(
        "price,quantity,expected",
        [
            (999.5, 1, 100000),
            ("499.49", 3, 149800),
            (250, 2, 50000),
        ],
    )
    def test_legacy_revenue_is_whole_rupees(self, price, quantity, expected):
        normalized = normalize_order(legacy("L", product_id="7", price=price, quantity=quantity))
        assert normalized.revenue_paise == expected
        assert normalized.lines[0].product_key == "7"

    def test_unreadable_order(self):
        with pytest.raises(ValidationError):
            normalize_order(42)


# =============================================================================
# ROLL-UPS
# =============================================================================


class TestRevenueSummary:

    def test_daily_and_exhibition_split(self):
        orders = revenue_orders([
            order(1, payable=100000),
            order(2, type="exhibition", exhibition_id="EXH-1", payable=200000),
            order(3, payable=50000, exhibition_id="EXH-1"),
            order(4, type="prebooking", payable=70000),
        ])
        summary = revenue_summary(orders)

        assert summary == {
            "overall_revenue_paise": 420000,
            "daily_sales_revenue_paise": 100000,
            "exhibition_sales_revenue_paise": 250000,
        }

    def test_monthly_comparison_uses_ist_months(self):
        orders = revenue_orders([
            order(1, payable=200000, at=datetime(2026, 10, 5)),
            # 19:00 UTC on 30 Sep is already 1 Oct in IST
            order(2, payable=100000, at=datetime(2026, 9, 30, 19, 0)),
            order(3, payable=200000, at=datetime(2026, 9, 10)),
            order(4, payable=999900, at=datetime(2026, 8, 10)),
        ])
        comparison = monthly_comparison(orders, NOW)

        assert comparison == {"current_paise": 300000, "previous_paise": 200000, "change_percent": "50.0"}

    def test_no_previous_month(self):
        orders = revenue_orders([order(1, payable=100)])
        assert monthly_comparison(orders, NOW)["change_percent"] is None

    def test_category_revenue(self):
        orders = revenue_orders([
            order(1, payable=0, items=[("1", 1, 30000, "men"), ("2", 1, 50000, "women")]),
            order(2, payable=0, items=[("1", 2, 60000, "men"), ("3", 1, 10000, None)]),
        ])
        index = {"2": {"name": "Saree", "category": "women"}}

        assert revenue_by_category(orders, index) == [
            {"category": "men", "revenue_paise": 90000},
            {"category": "women", "revenue_paise": 50000},
            {"category": "unknown", "revenue_paise": 10000},
        ]

    def test_top_product_tie_breaks_on_smallest_id(self):
        orders = revenue_orders([
            order(1, items=[("9", 1, 50000, "men"), ("10", 1, 50000, "men")]),
        ])
        top = top_selling_product(orders, {"10": {"name": "Sherwani", "category": "men"}})
        assert top["product_id"] == "10"
        assert top["name"] == "Sherwani"

    def test_top_product_when_empty(self):
        assert top_selling_product([], {})["name"] == "N/A"


# =============================================================================
# TREND AND ANOMALIES
# =============================================================================


class TestTrend:

    def test_thirty_ist_days(self):
        orders = revenue_orders([
            # 20:00 UTC on the 18th is 01:30 IST on the 19th
            order(1, payable=100000, at=datetime(2026, 10, 18, 20, 0)),
            order(2, payable=50000, at=datetime(2026, 10, 18, 6, 0)),
            order(3, payable=70000, at=datetime(2026, 9, 1)),
        ])
        trend = revenue_trend(orders, NOW)

        assert len(trend) == 30
        assert trend[0]["label"] == "20 Sep"
        assert trend[-1] == {"date": "2026-10-19", "label": "19 Oct", "revenue_paise": 100000}
        assert trend[-2]["revenue_paise"] == 50000
        assert sum(day["revenue_paise"] for day in trend) == 150000

    def test_spike_and_drop(self):
        values = [1000] * 7 + [3000, 100]
        trend = [{"date": f"d{i}", "label": f"L{i}", "revenue_paise": v} for i, v in enumerate(values)]

        found = anomalies(trend)

        assert [(a["date"], a["type"]) for a in found] == [("d7", "spike"), ("d8", "drop")]
        assert found[0]["baseline_paise"] == 1000
        assert found[1]["baseline_paise"] == 1286

    def test_zero_baseline_is_never_anomalous(self):
        values = [0] * 7 + [5000]
        trend = [{"date": f"d{i}", "label": f"L{i}", "revenue_paise": v} for i, v in enumerate(values)]
        assert anomalies(trend) == []

    def test_product_performance_series(self):
        orders = revenue_orders([
            order(1, at=NOW, items=[("1", 1, 10000, "men"), ("2", 1, 40000, "men")]),
            order(2, at=NOW - timedelta(days=1), items=[("1", 1, 10000, "men"), ("3", 1, 30000, "kids")]),
            order(3, at=NOW - timedelta(days=2), items=[("4", 1, 5000, "women")]),
        ])
        performance = product_performance(orders, {}, NOW)

        assert len(performance["labels"]) == 30
        assert [s["product_id"] for s in performance["series"]] == ["2", "3", "1"]
        ones = performance["series"][2]
        assert ones["data"][-1] == 10000
        assert ones["data"][-2] == 10000
        assert ones["revenue_paise"] == 20000


# =============================================================================
# FILTERS AND DASHBOARD
# =============================================================================


class TestFilters:

    def setup_method(self):
        self.orders = revenue_orders([
            order(1, payable=100, at=NOW - timedelta(hours=1)),
            order(2, payable=200, at=NOW - timedelta(days=3), type="exhibition"),
            order(3, payable=300, at=NOW - timedelta(days=10)),
            order(4, payable=400, at=datetime(2026, 9, 15)),
        ])

    def test_today(self):
        assert [o.order_id for o in apply_filters(self.orders, date_range="today", now=NOW)] == ["1"]

    def test_week(self):
        assert [o.order_id for o in apply_filters(self.orders, date_range="week", now=NOW)] == ["1", "2"]

    def test_month(self):
        assert [o.order_id for o in apply_filters(self.orders, date_range="month", now=NOW)] == ["1", "2", "3"]

    def test_custom_days_are_inclusive(self):
        filtered = apply_filters(self.orders, date_range="custom", start="2026-09-16", end="2026-10-16", now=NOW)
        assert [o.order_id for o in filtered] == ["2", "3"]

    def test_type_filter(self):
        assert [o.order_id for o in apply_filters(self.orders, order_type="exhibition")] == ["2"]

    def test_invalid_range(self):
        with pytest.raises(ValidationError):
            apply_filters(self.orders, date_range="year")

    def test_dashboard(self):
        dashboard = owner_dashboard(self.orders, {}, now=NOW, date_range="month")

        assert dashboard["order_count"] == 3
        assert dashboard["overall_revenue_paise"] == 600
        assert dashboard["exhibition_sales_revenue_paise"] == 200
        assert len(dashboard["revenue_trend"]) == analytics_service.TREND_DAYS
        assert set(dashboard) >= {
            "monthly_comparison",
            "top_selling_product",
            "category_revenue",
            "anomalies",
            "product_performance",
        }


# =============================================================================
# OWNER KPIs
# =============================================================================


class TestOwnerKpis:

    def setup_method(self):
        self.current = revenue_orders([
            order(1, payable=100000, at=NOW - timedelta(hours=1), items=[("1", 2, 80000, "men")]),
            order(2, payable=50000, at=NOW - timedelta(days=2), created_by="emp-2",
                  items=[("2", 1, 45000, "women")]),
            order(3, payable=30001, at=NOW - timedelta(days=3),
                  items=[("1", 1, 30000, "men"), ("3", 2, 1, "kids")]),
        ])
        self.previous = revenue_orders([
            order(4, payable=60000, at=NOW - timedelta(days=8), items=[("1", 1, 40000, "men")]),
            order(5, payable=40000, at=NOW - timedelta(days=9), created_by="emp-2",
                  items=[("2", 1, 40000, "women")]),
        ])
        self.older = revenue_orders([
            order(6, payable=999, at=NOW - timedelta(days=20), items=[("1", 1, 999, "men")]),
        ])

    def test_items_sold_and_average_order_value(self):
        assert items_sold(self.current) == 6
        assert average_order_value(self.current) == 60000
        assert average_order_value([]) == 0

    def test_growth_vs_previous(self):
        growth = growth_vs_previous(self.current, self.previous)

        assert growth["revenue_paise"] == {"current": 180001, "previous": 100000, "change_percent": "80.0"}
        assert growth["orders"]["change_percent"] == "50.0"
        assert growth["items_sold"] == {"current": 6, "previous": 2, "change_percent": "200.0"}
        assert growth["average_order_value_paise"]["previous"] == 50000
        assert growth["average_order_value_paise"]["change_percent"] == "20.0"

    def test_growth_from_empty_previous_is_none(self):
        growth = growth_vs_previous(self.current, [])
        assert growth["revenue_paise"]["change_percent"] is None

    def test_category_performance(self):
        rows = category_performance(self.current, self.previous, {})

        assert [row["category"] for row in rows] == ["men", "women", "kids"]
        assert rows[0] == {
            "category": "men",
            "revenue_paise": 110000,
            "items_sold": 3,
            "orders": 2,
            "average_value_paise": 55000,
            "previous_revenue_paise": 40000,
            "growth_percent": "175.0",
        }
        assert rows[1]["growth_percent"] == "12.5"
        assert rows[2]["growth_percent"] is None

    def test_employee_performance(self):
        rows = employee_performance(self.current, {"emp-1": "Asha"})

        assert rows == [
            {"employee_id": "emp-1", "name": "Asha", "revenue_paise": 130001, "orders": 2,
             "average_order_value_paise": 65001},
            {"employee_id": "emp-2", "name": "Unknown", "revenue_paise": 50000, "orders": 1,
             "average_order_value_paise": 50000},
        ]

    def test_legacy_creator_is_read(self):
        normalized = normalize_order(legacy("L", product_id="7", price=100, quantity=1) | {"createdBy": "emp-9"})
        assert normalized.created_by == "emp-9"

    def test_low_stock(self):
        products = [
            {"id": 1, "sku": "KUR-1", "name": "Kurta", "stock_qty": 3, "low_stock_threshold": 2},
            {"id": 2, "sku": "SAR-1", "name": "Saree", "stock_qty": 0, "low_stock_threshold": 2},
            {"id": 3, "sku": "DUP-1", "name": "Dupatta", "stock_qty": 2, "low_stock_threshold": 2},
        ]
        result = low_stock(products)

        assert result["count"] == 2
        assert result["out_of_stock"] == 1
        assert [p["product_id"] for p in result["products"]] == [2, 3]
        assert len(low_stock(products, limit=1)["products"]) == 1

    def test_previous_window_has_equal_length(self):
        lower, upper = period_window("today", now=NOW)
        assert previous_window(lower, upper) == (lower - timedelta(days=1), lower)
        assert previous_window(*period_window("all")) is None
        assert previous_window(*period_window("custom", start="2026-10-01", now=NOW)) is None

    def test_dashboard_compares_with_previous_week(self):
        orders = self.current + self.previous + self.older
        dashboard = owner_dashboard(
            orders, {}, now=NOW, date_range="week", employee_names={"emp-1": "Asha"},
            products=[{"id": 2, "sku": "SAR-1", "name": "Saree", "stock_qty": 0, "low_stock_threshold": 2}],
        )

        assert dashboard["order_count"] == 3
        assert dashboard["total_items_sold"] == 6
        assert dashboard["average_order_value_paise"] == 60000
        assert dashboard["growth"]["revenue_paise"]["previous"] == 100000
        assert dashboard["category_performance"][0]["previous_revenue_paise"] == 40000
        assert dashboard["employee_performance"][0]["name"] == "Asha"
        assert dashboard["low_stock"]["out_of_stock"] == 1

    def test_dashboard_without_a_window_has_no_growth(self):
        dashboard = owner_dashboard(self.current + self.previous, {}, now=NOW)

        assert dashboard["growth"] is None
        assert all(row["growth_percent"] is None for row in dashboard["category_performance"])
        assert dashboard["low_stock"] == {"count": 0, "out_of_stock": 0, "products": []}
