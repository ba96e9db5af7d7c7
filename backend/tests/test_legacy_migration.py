"""
Legacy single-product order migration tests.

Verifies:
- Documents from one checkout (same phone, creator, type, minute) merge
- Import is idempotent and never touches stock or bills
- Timestamps in every exported form are understood
"""

import json
from datetime import datetime

import pytest

from apparel_pos.errors import ValidationError
from apparel_pos.models import Bill, Order, Product
from apparel_pos.services import analytics_service
from apparel_pos.services.legacy_migration import (
    import_legacy_orders,
    is_legacy_order,
    merge_legacy_orders,
    parse_legacy_timestamp,
)


def doc(doc_id, product_id, *, price=999, quantity=1, phone="9876543210", created_by="emp-1",
        created_at="2026-10-19T06:00:10Z", type="daily", status="completed"):
    return {
        "id": doc_id,
        "productId": product_id,
        "price": price,
        "quantity": quantity,
        "customerPhone": phone,
        "createdBy": created_by,
        "createdAt": created_at,
        "type": type,
        "status": status,
    }


class TestParseLegacyTimestamp:

    @pytest.mark.parametrize(
        "value",
        [
            "2026-10-19T06:00:00Z",
            "2026-10-19T11:30:00+05:30",
            1792389600000,
            {"seconds": 1792389600, "nanoseconds": 0},
            {"_seconds": 1792389600},
        ],
    )
    def test_forms(self, value):
        assert parse_legacy_timestamp(value) == datetime(2026, 10, 19, 6, 0)

    def test_empty(self):
        assert parse_legacy_timestamp(None) is None
        assert parse_legacy_timestamp("") is None

    @pytest.mark.parametrize("value", [{"minutes": 3}, True, [1, 2]])
    def test_unsupported(self, value):
        with pytest.raises(ValidationError):
            parse_legacy_timestamp(value)


class TestMerge:

    def test_same_checkout_merges(self):
        merged = merge_legacy_orders([
            doc("a", "p1", price=999, quantity=2),
            doc("b", "p2", price="1499.50", created_at="2026-10-19T06:00:50Z"),
            doc("c", "p3", created_at="2026-10-19T06:01:05Z"),
        ])

        assert [m["source_ids"] for m in merged] == [["a", "b"], ["c"]]
        first = merged[0]
        assert [item["product_ref"] for item in first["items"]] == ["p1", "p2"]
        assert first["items"][1]["unit_price_paise"] == 149950
        assert first["subtotal_paise"] == 199800 + 149950
        assert first["payable_paise"] == 349800
        assert first["created_at"] == datetime(2026, 10, 19, 6, 0, 10)

    def test_different_customers_stay_apart(self):
        merged = merge_legacy_orders([
            doc("a", "p1"),
            doc("b", "p1", phone="9123456780"),
            doc("c", "p1", created_by="emp-2"),
            doc("d", "p1", type="exhibition"),
        ])
        assert len(merged) == 4

    def test_non_legacy_documents_are_ignored(self):
        modern = {"id": 5, "items": [], "productId": "p1"}
        assert not is_legacy_order(modern)
        assert merge_legacy_orders([modern, {"id": 6}]) == []

    def test_missing_creator(self):
        merged = merge_legacy_orders([doc("a", "p1", created_by=None)])
        assert merged[0]["created_by"] == "legacy"


class TestImport:

    def test_import_writes_orders_only(self, make_product, db_session):
        kurta = make_product(sku="KUR-9", stock_qty=5)
        stats = import_legacy_orders([
            doc("a", "KUR-9", quantity=2),
            doc("b", str(kurta.id)),
            doc("c", "gone-product", created_by="emp-2"),
        ])

        assert stats == {"migrated": 2, "merged_from": 3, "skipped": 0, "invalid": 0}
        db_session.expire_all()
        assert db_session.get(Product, kurta.id).stock_qty == 5
        assert db_session.query(Bill).count() == 0

        orders = db_session.query(Order).order_by(Order.id).all()
        merged, orphan = orders
        assert [line.product_id for line in merged.lines] == [kurta.id, kurta.id]
        assert json.loads(merged.legacy_source_ids) == ["a", "b"]
        assert merged.status == "completed"
        assert merged.completed_at == datetime(2026, 10, 19, 6, 0, 10)
        assert merged.bill_id is None
        assert orphan.lines[0].product_id is None
        assert orphan.lines[0].product_key == "gone-product"

    def test_reimport_is_skipped(self, db_session):
        docs = [doc("a", "p1"), doc("b", "p2")]
        import_legacy_orders(docs)

        again = import_legacy_orders(docs)

        assert again == {"migrated": 0, "merged_from": 0, "skipped": 1, "invalid": 0}
        assert db_session.query(Order).count() == 1

    def test_invalid_groups_are_counted(self, db_session):
        stats = import_legacy_orders([doc("a", "p1", type="online"), doc("b", "p1", status="void")])
        assert stats["invalid"] == 2
        assert db_session.query(Order).count() == 0

    def test_imported_orders_count_as_revenue(self, db_session):
        import_legacy_orders([doc("a", "p1", price=999, quantity=2, status="prebooked")])
        orders = analytics_service.load_revenue_orders()
        assert [o.revenue_paise for o in orders] == [199800]
