# Overview: One-shot import of legacy single-product orders into multi-item orders.

"""
Legacy Order Migration

Older clients wrote one order document per product sold. A single checkout
therefore shows up as several documents sharing customer phone, creator,
order type and creation minute. This module regroups them into one
multi-item order per checkout.

- merge_legacy_orders: pure grouping (no I/O)
- import_legacy_orders: writes the merged orders; never touches stock or bills,
  and skips groups whose source documents were already imported
"""

from __future__ import annotations

import json
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Iterable, Mapping

from ..errors import ValidationError
from ..extensions import db
from ..models import Order, OrderLine, Product
from ..models.orders import ORDER_STATUSES, ORDER_TYPES
from ..money import PAISE_PER_RUPEE, as_fraction, round_half_away, round_to_rupee
from ..time_utils import parse_iso_datetime
from .concurrency import run_with_retry


LEGACY_CREATOR = "legacy"


def is_legacy_order(raw: Mapping) -> bool:
    return bool(raw.get("productId") or raw.get("product_id")) and "items" not in raw


def parse_legacy_timestamp(value) -> datetime | None:
    """ISO string, epoch milliseconds, or an exported {seconds, nanoseconds} timestamp."""
    if value is None or value == "":
        return None
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            raise ValidationError(f"Unsupported timestamp: {value!r}")
        return datetime.fromtimestamp(int(seconds), tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        return parse_iso_datetime(value)
    raise ValidationError(f"Unsupported timestamp: {value!r}")


def _minute_bucket(created_at: datetime | None) -> int:
    if created_at is None:
        return 0
    epoch_seconds = created_at.replace(tzinfo=timezone.utc).timestamp()
    return int(epoch_seconds // 60)


def _price_paise(price) -> int:
    return round_half_away(as_fraction(price or 0) * PAISE_PER_RUPEE)


def merge_legacy_orders(raw_orders: Iterable[Mapping]) -> list[dict]:
    """
    Group legacy documents by (customer phone, creator, creation minute, type).

    Returns merged order payloads in first-seen order; each carries the ids of
    the documents it replaces in `source_ids`. Non-legacy documents are ignored.
    """
    groups: "OrderedDict[tuple, list[Mapping]]" = OrderedDict()
    for raw in raw_orders:
        if not is_legacy_order(raw):
            continue
        created_at = parse_legacy_timestamp(raw.get("createdAt", raw.get("created_at")))
        key = (
            raw.get("customerPhone", raw.get("customer_phone")) or "",
            raw.get("createdBy", raw.get("created_by")) or "",
            _minute_bucket(created_at),
            raw.get("type") or "",
        )
        groups.setdefault(key, []).append(raw)

    merged = []
    for (phone, created_by, _, order_type), members in groups.items():
        first = members[0]
        items = []
        for member in members:
            product_ref = str(member.get("productId", member.get("product_id")))
            quantity = int(member.get("quantity") or 0)
            unit = _price_paise(member.get("price"))
            items.append({
                "product_ref": product_ref,
                "quantity": quantity,
                "unit_price_paise": unit,
                "line_total_paise": unit * quantity,
            })
        total = sum(item["line_total_paise"] for item in items)
        merged.append({
            "source_ids": [str(member.get("id", "")) for member in members],
            "type": order_type,
            "status": first.get("status") or "completed",
            "customer_phone": phone,
            "created_by": created_by or LEGACY_CREATOR,
            "exhibition_id": first.get("exhibitionId", first.get("exhibition_id")) or None,
            "delivery_date": parse_legacy_timestamp(first.get("deliveryDate", first.get("delivery_date"))),
            "created_at": parse_legacy_timestamp(first.get("createdAt", first.get("created_at"))),
            "items": items,
            "subtotal_paise": total,
            "grand_total_paise": total,
            "payable_paise": round_to_rupee(total),
        })
    return merged


def _imported_source_ids() -> set[str]:
    imported: set[str] = set()
    for (raw,) in db.session.query(Order.legacy_source_ids).filter(Order.legacy_source_ids.isnot(None)):
        imported.update(json.loads(raw))
    return imported


def _to_order(payload: dict, known_products: Mapping[str, Product]) -> Order:
    order = Order(
        type=payload["type"],
        status=payload["status"],
        customer_phone=payload["customer_phone"][:10],
        exhibition_id=payload["exhibition_id"],
        created_by=payload["created_by"],
        delivery_date=payload["delivery_date"],
        subtotal_paise=payload["subtotal_paise"],
        total_taxable_paise=payload["subtotal_paise"],
        grand_total_paise=payload["grand_total_paise"],
        payable_paise=payload["payable_paise"],
        legacy_source_ids=json.dumps(payload["source_ids"]),
    )
    if payload["created_at"] is not None:
        order.created_at = payload["created_at"]
        if payload["status"] != "pending":
            order.completed_at = payload["created_at"]

    for position, item in enumerate(payload["items"], start=1):
        product = known_products.get(item["product_ref"])
        order.lines.append(OrderLine(
            position=position,
            product_id=product.id if product is not None else None,
            legacy_product_ref=None if product is not None else item["product_ref"],
            product_name=product.name if product is not None else item["product_ref"],
            sku=product.sku if product is not None else item["product_ref"],
            category=product.category if product is not None else None,
            quantity=item["quantity"],
            unit_price_paise=item["unit_price_paise"],
            line_total_paise=item["line_total_paise"],
        ))
    return order


def import_legacy_orders(raw_orders: Iterable[Mapping]) -> dict:
    """
    Persist merged legacy orders.

    Returns {"migrated": orders written, "merged_from": source documents used,
    "skipped": groups already imported, "invalid": groups with bad type/status}.
    """
    merged = merge_legacy_orders(list(raw_orders))

    def _op():
        imported = _imported_source_ids()
        catalog = db.session.query(Product).all()
        products = {p.sku: p for p in catalog}
        products.update({str(p.id): p for p in catalog})

        stats = {"migrated": 0, "merged_from": 0, "skipped": 0, "invalid": 0}
        for payload in merged:
            if any(source_id in imported for source_id in payload["source_ids"]):
                stats["skipped"] += 1
                continue
            if payload["type"] not in ORDER_TYPES or payload["status"] not in ORDER_STATUSES:
                stats["invalid"] += 1
                continue
            db.session.add(_to_order(payload, products))
            stats["migrated"] += 1
            stats["merged_from"] += len(payload["source_ids"])
        db.session.commit()
        return stats

    return run_with_retry(_op)
