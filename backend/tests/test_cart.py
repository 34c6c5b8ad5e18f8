"""
Cart behaviour: merging, soft stock checks, quantity edits and totals.
"""

from datetime import timedelta

import pytest

from stockpro.domain import ItemSnapshot
from stockpro.services.cart_service import (
    Cart,
    CartError,
    CartStore,
    InsufficientDisplayStockError,
)
from stockpro.time_utils import utcnow
from stockpro.validation import ValidationError


MILO = ItemSnapshot(id=1, name="Milo 500g", category="Beverages", price_cents=50000, quantity=10, unit="tin")
BREAD = ItemSnapshot(id=2, name="Bread", category="Bakery", price_cents=1999, quantity=40, unit="loaf")


class TestAddItem:

    def test_adding_same_item_merges_lines(self):
        cart = Cart()
        cart.add_item(MILO, 2)
        cart.add_item(MILO, 3)

        assert len(cart) == 1
        assert cart.get(MILO.id).requested_quantity == 5

    def test_default_quantity_is_one(self):
        cart = Cart()
        line = cart.add_item(BREAD)
        assert line.requested_quantity == 1

    def test_lines_keep_insertion_order(self):
        cart = Cart()
        cart.add_item(BREAD)
        cart.add_item(MILO)
        cart.add_item(BREAD)
        assert [line.item_id for line in cart.lines()] == [BREAD.id, MILO.id]

    def test_line_snapshots_price_and_unit(self):
        cart = Cart()
        line = cart.add_item(MILO, 3)
        assert line.unit_price_cents == 50000
        assert line.unit == "tin"
        assert line.line_total_cents == 150000

    def test_soft_check_rejects_more_than_displayed_stock(self):
        cart = Cart()
        with pytest.raises(InsufficientDisplayStockError) as exc:
            cart.add_item(MILO, 11)
        assert exc.value.available == 10
        assert exc.value.details["requested_quantity"] == 11
        assert cart.is_empty()

    def test_soft_check_on_merge_leaves_line_unchanged(self):
        cart = Cart()
        cart.add_item(MILO, 8)
        with pytest.raises(InsufficientDisplayStockError):
            cart.add_item(MILO, 3)
        assert cart.get(MILO.id).requested_quantity == 8

    @pytest.mark.parametrize("qty", [0, -1, 1.5, "abc", True, None])
    def test_invalid_quantities_rejected(self, qty):
        cart = Cart()
        with pytest.raises(ValidationError):
            cart.add_item(MILO, qty)
        assert cart.is_empty()


class TestSetQuantity:

    def test_overwrites_quantity(self):
        cart = Cart()
        cart.add_item(MILO, 2)
        line = cart.set_quantity(MILO.id, 7)
        assert line.requested_quantity == 7

    @pytest.mark.parametrize("qty", [0, -3])
    def test_zero_or_negative_removes_line(self, qty):
        cart = Cart()
        cart.add_item(MILO, 2)
        assert cart.set_quantity(MILO.id, qty) is None
        assert MILO.id not in cart

    def test_soft_check_uses_last_displayed_stock(self):
        cart = Cart()
        cart.add_item(MILO, 2)
        with pytest.raises(InsufficientDisplayStockError):
            cart.set_quantity(MILO.id, 11)
        assert cart.get(MILO.id).requested_quantity == 2

    def test_refreshed_catalog_entry_updates_soft_check(self):
        cart = Cart()
        cart.add_item(MILO, 2)
        restocked = ItemSnapshot(**{**MILO.to_dict(), "quantity": 30})
        line = cart.set_quantity(MILO.id, 25, item=restocked)
        assert line.requested_quantity == 25
        assert line.available_hint == 30

    def test_missing_line_raises(self):
        with pytest.raises(CartError):
            Cart().set_quantity(99, 1)

    def test_non_integer_rejected(self):
        cart = Cart()
        cart.add_item(MILO, 1)
        with pytest.raises(ValidationError):
            cart.set_quantity(MILO.id, 2.5)


def test_remove_item_is_noop_when_absent():
    cart = Cart()
    cart.add_item(MILO)
    assert cart.remove_item(MILO.id) is True
    assert cart.remove_item(MILO.id) is False
    assert cart.is_empty()


def test_clear_empties_cart():
    cart = Cart()
    cart.add_item(MILO)
    cart.add_item(BREAD)
    cart.clear()
    assert cart.is_empty()


class TestTotals:

    def test_example_totals(self):
        cart = Cart()
        cart.add_item(MILO, 3)
        totals = cart.compute_totals(750)
        assert totals.subtotal_cents == 150000
        assert totals.tax_cents == 11250
        assert totals.total_cents == 161250

    def test_totals_are_idempotent(self):
        cart = Cart()
        cart.add_item(MILO, 3)
        cart.add_item(BREAD, 7)
        first = cart.compute_totals(750)
        second = cart.compute_totals(750)
        assert first == second
        assert len(cart) == 2

    def test_subtotal_is_sum_of_exact_line_totals(self):
        cart = Cart()
        cart.add_item(BREAD, 7)
        cart.add_item(MILO, 1)
        totals = cart.compute_totals(0)
        assert totals.subtotal_cents == 1999 * 7 + 50000
        assert totals.tax_cents == 0
        assert totals.total_cents == totals.subtotal_cents

    def test_empty_cart_totals_zero(self):
        totals = Cart().compute_totals(750)
        assert (totals.subtotal_cents, totals.tax_cents, totals.total_cents) == (0, 0, 0)

    def test_to_dict_includes_totals(self):
        cart = Cart()
        cart.add_item(MILO, 1)
        data = cart.to_dict(750)
        assert data["count"] == 1
        assert data["lines"][0]["name"] == "Milo 500g"
        assert data["totals"]["total_cents"] == 50000 + 3750


class TestCartStore:

    def test_same_session_gets_same_cart(self):
        store = CartStore()
        first = store.get(1)
        first.cart.add_item(MILO)
        assert store.get(1).cart.get(MILO.id) is not None
        assert store.get(2).cart.is_empty()

    def test_discard_abandons_cart(self):
        store = CartStore()
        store.get(1).cart.add_item(MILO)
        assert store.discard(1) is True
        assert store.get(1).cart.is_empty()
        assert store.discard(42) is False

    def test_purge_idle(self):
        store = CartStore()
        store.get(1)
        store.get(2)
        store._sessions[1].touched_at = utcnow() - timedelta(hours=3)

        assert store.purge_idle(timedelta(hours=2)) == 1
        assert len(store) == 1
