# Overview: Stock mutator; the only writer of Product.stock_qty decrements.

from __future__ import annotations

from collections import OrderedDict
from typing import Iterable

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from .concurrency import lock_for_update, run_with_retry


def _aggregate(items: Iterable[dict]) -> "OrderedDict[int, int]":
    """Sum requested quantities per product, first-seen order."""
    requested: OrderedDict[int, int] = OrderedDict()
    errors = []
    for index, item in enumerate(items, start=1):
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if product_id is None:
            errors.append(f"Item {index}: product_id is required")
            continue
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            errors.append(f"Item {index}: quantity must be a positive integer")
            continue
        requested[product_id] = requested.get(product_id, 0) + quantity
    if errors:
        raise ValidationError("Invalid stock batch", messages=errors)
    if not requested:
        raise ValidationError("Stock batch is empty")
    return requested


def _decrement_batch_inner(items: Iterable[dict]) -> list[dict]:
    """
    Core decrement without retry or commit.

    Rows are locked in ascending id order so two batches touching the same
    products cannot deadlock. Every product is checked before any is written,
    so a failing batch leaves stock untouched.
    """
    requested = _aggregate(items)

    rows = (
        lock_for_update(
            db.session.query(Product)
            .filter(Product.id.in_(list(requested)))
            .order_by(Product.id.asc())
        ).all()
    )
    by_id = {row.id: row for row in rows}

    missing = [pid for pid in requested if pid not in by_id]
    if missing:
        raise NotFoundError("Products not found", details={"product_ids": missing})

    short = [
        {
            "product_id": pid,
            "sku": by_id[pid].sku,
            "requested": qty,
            "available": by_id[pid].stock_qty,
        }
        for pid, qty in requested.items()
        if by_id[pid].stock_qty - qty < 0
    ]
    if short:
        names = ", ".join(item["sku"] for item in short)
        raise InsufficientStockError(f"Insufficient stock for: {names}", details={"items": short})

    result = []
    for pid, qty in requested.items():
        product = by_id[pid]
        product.stock_qty = product.stock_qty - qty
        result.append({"product_id": pid, "new_stock": product.stock_qty})
    db.session.flush()
    return result


def decrement_batch(items: Iterable[dict], *, commit: bool = True) -> list[dict]:
    """
    Decrement stock for [{product_id, quantity}] all-or-nothing.

    commit=False stages the change in the caller's transaction (order creation
    and pre-booking conversion); the caller owns retry and commit.
    """
    items = list(items)
    if not commit:
        return _decrement_batch_inner(items)

    def _op():
        result = _decrement_batch_inner(items)
        db.session.commit()
        return result

    return run_with_retry(_op)


def low_stock_products() -> list[Product]:
    """Active products at or below their low-stock threshold (informational only)."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock_qty <= Product.low_stock_threshold)
        .order_by(Product.stock_qty.asc(), Product.id.asc())
        .all()
    )
