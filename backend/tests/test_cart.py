"""
Cart value tests: merging, quantity edits, removal and building carts from
request items against catalog snapshots.
"""

import dataclasses

import pytest

from apparel_pos.errors import NotFoundError, ValidationError
from apparel_pos.services import cart_service
from apparel_pos.services.cart_service import Cart, CartLine, cart_from_items, line_from_product
from apparel_pos.services.catalog_service import ProductSnapshot


def snapshot(product_id=1, **overrides):
    fields = dict(
        product_id=product_id,
        name=f"Saree {product_id}",
        sku=f"SAR-{product_id}",
        category="women",
        subcategory="",
        base_price_paise=249900,
        sale_price_paise=None,
        gst_rate=12,
        is_tax_inclusive=False,
        is_on_sale=False,
        stock_qty=5,
        low_stock_threshold=1,
        is_active=True,
    )
    fields.update(overrides)
    return ProductSnapshot(**fields)


class TestCartOperations:

    def test_add_merges_same_product(self):
        cart = cart_service.add(Cart(), line_from_product(snapshot(1), 1))
        cart = cart_service.add(cart, line_from_product(snapshot(2), 1))
        cart = cart_service.add(cart, line_from_product(snapshot(1), 2))

        assert len(cart) == 2
        assert [line.product_id for line in cart] == [1, 2]
        assert cart.find(1).quantity == 3
        assert cart.total_quantity == 4

    def test_add_does_not_mutate_original(self):
        original = cart_service.add(Cart(), line_from_product(snapshot(1), 1))
        cart_service.add(original, line_from_product(snapshot(1), 1))
        assert original.find(1).quantity == 1

    def test_set_quantity(self):
        cart = cart_service.add(Cart(), line_from_product(snapshot(1), 1))
        cart = cart_service.set_quantity(cart, 1, 5)
        assert cart.find(1).quantity == 5

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
    def test_bad_quantity_is_rejected(self, quantity):
        cart = cart_service.add(Cart(), line_from_product(snapshot(1), 1))
        with pytest.raises(ValidationError):
            cart_service.set_quantity(cart, 1, quantity)

    def test_remove_and_clear(self):
        cart = cart_service.add(Cart(), line_from_product(snapshot(1), 1))
        cart = cart_service.add(cart, line_from_product(snapshot(2), 1))

        cart = cart_service.remove(cart, 1)
        assert [line.product_id for line in cart] == [2]
        assert len(cart_service.clear(cart)) == 0

    def test_remove_missing_product(self):
        with pytest.raises(NotFoundError):
            cart_service.remove(Cart(), 99)


class TestLineFromProduct:

    def test_sale_price_only_while_on_sale(self):
        on_sale = line_from_product(snapshot(1, is_on_sale=True, sale_price_paise=199900))
        stale = line_from_product(snapshot(2, is_on_sale=False, sale_price_paise=199900))

        assert on_sale.is_on_sale
        assert on_sale.unit_sale_price_paise == 199900
        assert not stale.is_on_sale
        assert stale.unit_sale_price_paise is None

    def test_to_dict(self):
        data = line_from_product(snapshot(1), 2).to_dict()
        assert data["quantity"] == 2
        assert data["unit_base_price_paise"] == 249900


class TestCartFromItems:

    def test_builds_cart_in_request_order(self):
        snapshots = {1: snapshot(1), 2: snapshot(2)}
        cart = cart_from_items(
            [{"product_id": 2, "quantity": 1}, {"product_id": 1, "quantity": 2}, {"product_id": 2, "quantity": 1}],
            snapshots,
        )
        assert [(line.product_id, line.quantity) for line in cart] == [(2, 2), (1, 2)]

    def test_unknown_and_inactive_products_are_reported(self):
        snapshots = {1: snapshot(1), 2: snapshot(2, is_active=False)}
        with pytest.raises(NotFoundError) as exc:
            cart_from_items(
                [{"product_id": 1, "quantity": 1}, {"product_id": 2, "quantity": 1}, {"product_id": 3, "quantity": 1}],
                snapshots,
            )
        assert exc.value.details["product_ids"] == [2, 3]

    def test_items_must_be_objects(self):
        with pytest.raises(ValidationError):
            cart_from_items([1, 2], {})

    def test_cart_line_is_frozen(self):
        line = CartLine(1, "x", "X", "men", 1, 100, None, 5, False)
        with pytest.raises(dataclasses.FrozenInstanceError):
            line.quantity = 2
