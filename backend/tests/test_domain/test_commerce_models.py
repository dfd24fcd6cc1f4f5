"""
Unit tests for domain models and helpers (money, slugs, carts, orders, variants)
"""
import re
from decimal import Decimal

import pytest

from storefront.domain.cart import Cart, CartItem, calculate_totals
from storefront.domain.common import slugify, to_minor_units, to_money, unique_slug
from storefront.domain.order import Order, can_transition, generate_order_number
from storefront.domain.product import OptionGroup, Product, apply_price_change, generate_variants


def _item(price, quantity, item_id="item-1"):
    return CartItem(
        id=item_id,
        product_id=f"prod-{item_id}",
        product_name="Mug",
        unit_price=Decimal(price),
        quantity=quantity,
    )


class TestMoneyAndSlugs:

    def test_to_money_rounds_half_up(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(None) == Decimal("0.00")
        assert to_money(3) == Decimal("3.00")

    def test_to_minor_units(self):
        assert to_minor_units(Decimal("49.90")) == 4990
        assert to_minor_units(Decimal("0.015")) == 2

    def test_slugify(self):
        assert slugify("Summer Sale 2025!") == "summer-sale-2025"
        assert slugify("  --Hello   World--  ") == "hello-world"
        assert slugify("") == ""

    def test_unique_slug_appends_counter(self):
        assert unique_slug("about", []) == "about"
        assert unique_slug("about", ["about", "about-1"]) == "about-2"

    def test_unique_slug_ignores_excluded(self):
        # A record keeping its own slug is not a collision
        assert unique_slug("about", ["about"], exclude="about") == "about"


class TestCartTotals:

    def test_totals_from_items(self):
        items = [_item("10.00", 2, "a"), _item("5.50", 1, "b")]

        totals = calculate_totals(items, discount_total=Decimal("3"), shipping_total=Decimal("4.99"))

        assert totals.subtotal == Decimal("25.50")
        assert totals.discount_total == Decimal("3.00")
        assert totals.total == Decimal("27.49")

    def test_discount_is_clamped_to_subtotal(self):
        totals = calculate_totals([_item("10.00", 1)], discount_total=Decimal("50"), shipping_total=Decimal("5"))

        assert totals.discount_total == Decimal("10.00")
        assert totals.total == Decimal("5.00")

    def test_negative_discount_is_ignored(self):
        totals = calculate_totals([_item("10.00", 1)], discount_total=Decimal("-5"))

        assert totals.discount_total == Decimal("0.00")
        assert totals.total == Decimal("10.00")

    def test_cart_to_dict_adds_counts_and_line_totals(self):
        cart = Cart(id="cart-1", tenant_id="t", items=[_item("2.50", 3)])

        data = cart.to_dict()

        assert data["item_count"] == 3
        assert data["items"][0]["line_total"] == "7.50"
        assert cart.is_empty is False


class TestOrderStatusMachine:

    def test_allowed_transitions(self):
        assert can_transition("pending", "confirmed")
        assert can_transition("shipped", "delivered")
        assert can_transition("returned", "refunded")

    def test_forbidden_transitions(self):
        assert not can_transition("pending", "shipped")
        assert not can_transition("cancelled", "pending")
        assert not can_transition("refunded", "returned")

    def test_order_to_dict_lists_next_statuses(self):
        order = Order(id="o-1", tenant_id="t", order_number="ORD-1", status="processing")

        data = order.to_dict()

        assert data["allowed_transitions"] == ["shipped", "cancelled"]
        assert data["total"] == "0.00"

    def test_generate_order_number_format(self):
        number = generate_order_number()

        assert re.fullmatch(r"ORD-[0-9A-Z]+-[0-9A-Z]{4}", number)
        assert generate_order_number() != number


class TestProducts:

    def test_generate_variants_is_cartesian(self):
        groups = [
            OptionGroup(name="Size", values=["S", "M"]),
            OptionGroup(name="Color", values=["Red", "Blue"]),
        ]

        variants = generate_variants(groups)

        assert [v.title for v in variants] == ["S / Red", "S / Blue", "M / Red", "M / Blue"]
        assert variants[1].options == {"Size": "S", "Color": "Blue"}

    def test_generate_variants_without_groups(self):
        assert generate_variants([]) == []

    def test_stock_flags(self):
        low = Product(id="p", tenant_id="t", name="A", slug="a", quantity=3, low_stock_threshold=5)
        out = Product(id="p", tenant_id="t", name="A", slug="a", quantity=0)

        assert low.is_low_stock is True
        assert out.is_out_of_stock is True

    def test_price_changes(self):
        price = Decimal("19.99")

        assert apply_price_change(price, "set", Decimal("15")) == Decimal("15.00")
        assert apply_price_change(price, "increase", Decimal("0.01")) == Decimal("20.00")
        assert apply_price_change(price, "percentage_decrease", Decimal("25")) == Decimal("14.99")
        assert apply_price_change(price, "percentage_decrease", Decimal("150")) == Decimal("0.00")

    def test_unknown_price_change(self):
        with pytest.raises(ValueError):
            apply_price_change(Decimal("10"), "double", Decimal("2"))
