"""
Catalog -> cart -> checkout over HTTP against the SQL store.
"""

import pytest

from stockpro.domain import TransactionEntry
from stockpro.extensions import db, carts
from stockpro.models import InventoryItem, TransactionRecord, STOCK_OUT
from stockpro.services import checkout_service
from stockpro.services.checkout_service import INSUFFICIENT_STOCK, LineFailure, PartialCommitError


def _qty(item_id):
    return db.session.get(InventoryItem, item_id, populate_existing=True).quantity


def _stock_out_records():
    return db.session.query(TransactionRecord).filter_by(type=STOCK_OUT).all()


class TestCartEndpoints:

    def test_catalog_lists_active_items(self, client, staff_headers, milo, sugar):
        resp = client.get("/api/catalog", headers=staff_headers)
        assert resp.status_code == 200
        names = [i["name"] for i in resp.json["items"]]
        assert names == ["Milo 500g", "Sugar 1kg"]
        assert resp.json["loaded_at"].endswith("Z")

    def test_add_merge_and_totals(self, client, staff_headers, milo):
        client.post("/api/cart/items", json={"item_id": milo.id, "quantity": 1}, headers=staff_headers)
        resp = client.post("/api/cart/items", json={"item_id": milo.id, "quantity": 2}, headers=staff_headers)

        assert resp.status_code == 201
        assert resp.json["count"] == 1
        assert resp.json["lines"][0]["requested_quantity"] == 3
        assert resp.json["totals"] == {
            "subtotal_cents": 150000,
            "tax_rate_bp": 750,
            "tax_cents": 11250,
            "total_cents": 161250,
        }

    def test_add_by_barcode(self, client, staff_headers, milo):
        resp = client.post("/api/cart/items", json={"barcode": milo.barcode}, headers=staff_headers)
        assert resp.status_code == 201
        assert resp.json["lines"][0]["item_id"] == milo.id

    def test_soft_check_against_displayed_stock(self, client, staff_headers, sugar):
        resp = client.post("/api/cart/items", json={"item_id": sugar.id, "quantity": 6}, headers=staff_headers)
        assert resp.status_code == 409
        assert resp.json["details"]["available_quantity"] == 5

    def test_unknown_item(self, client, staff_headers, milo):
        resp = client.post("/api/cart/items", json={"item_id": 999}, headers=staff_headers)
        assert resp.status_code == 404

    def test_invalid_quantity(self, client, staff_headers, milo):
        resp = client.post("/api/cart/items", json={"item_id": milo.id, "quantity": 0}, headers=staff_headers)
        assert resp.status_code == 400

    def test_set_quantity_zero_removes(self, client, staff_headers, milo):
        client.post("/api/cart/items", json={"item_id": milo.id, "quantity": 2}, headers=staff_headers)
        resp = client.put(f"/api/cart/items/{milo.id}", json={"quantity": 0}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 0

    def test_set_quantity_on_missing_line(self, client, staff_headers, milo):
        resp = client.put(f"/api/cart/items/{milo.id}", json={"quantity": 2}, headers=staff_headers)
        assert resp.status_code == 404

    def test_remove_and_clear(self, client, staff_headers, milo, sugar):
        client.post("/api/cart/items", json={"item_id": milo.id}, headers=staff_headers)
        client.post("/api/cart/items", json={"item_id": sugar.id}, headers=staff_headers)

        resp = client.delete(f"/api/cart/items/{milo.id}", headers=staff_headers)
        assert [l["item_id"] for l in resp.json["lines"]] == [sugar.id]

        resp = client.delete("/api/cart", headers=staff_headers)
        assert resp.json["count"] == 0

    def test_carts_are_per_session(self, client, staff_headers, other_staff_headers, milo):
        client.post("/api/cart/items", json={"item_id": milo.id}, headers=staff_headers)
        resp = client.get("/api/cart", headers=other_staff_headers)
        assert resp.json["count"] == 0

    def test_logout_abandons_cart(self, client, login, staff_user, milo):
        headers = login(staff_user.email)
        client.post("/api/cart/items", json={"item_id": milo.id}, headers=headers)
        assert len(carts) == 1

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert len(carts) == 0
        assert client.get("/api/cart", headers=headers).status_code == 401


class TestCheckoutEndpoint:

    def test_example_checkout(self, client, staff_headers, staff_user, milo):
        client.post("/api/cart/items", json={"item_id": milo.id, "quantity": 3}, headers=staff_headers)

        resp = client.post("/api/checkout", json={"note": "walk-in"}, headers=staff_headers)

        assert resp.status_code == 201
        receipt = resp.json["receipt"]
        assert receipt["receipt_number"] == "RCP-000001"
        assert receipt["subtotal_cents"] == 150000
        assert receipt["tax_cents"] == 11250
        assert receipt["total_cents"] == 161250
        assert receipt["cashier_email"] == staff_user.email
        assert resp.json["display"]["total"] == "₦1,612.50"
        assert resp.json["display"]["tax_label"] == "VAT (7.5%)"

        assert _qty(milo.id) == 7
        records = _stock_out_records()
        assert len(records) == 1
        assert records[0].quantity == 3
        assert records[0].line_total_cents == 150000
        assert records[0].note == "walk-in"

        assert client.get("/api/cart", headers=staff_headers).json["count"] == 0

    def test_empty_cart(self, client, staff_headers):
        resp = client.post("/api/checkout", headers=staff_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Cart is empty"

    def test_stale_catalog_is_rejected_with_line_details(
        self, client, staff_headers, other_staff_headers, sugar
    ):
        # Both cashiers see 5 bags; the other one sells 3 first
        client.post("/api/cart/items", json={"item_id": sugar.id, "quantity": 4}, headers=staff_headers)
        client.post("/api/cart/items", json={"item_id": sugar.id, "quantity": 3}, headers=other_staff_headers)
        assert client.post("/api/checkout", headers=other_staff_headers).status_code == 201

        resp = client.post("/api/checkout", headers=staff_headers)

        assert resp.status_code == 409
        line = resp.json["details"]["lines"][0]
        assert line["item_id"] == sugar.id
        assert line["reason"] == "InsufficientStock"
        assert line["available_quantity"] == 2
        assert _qty(sugar.id) == 2
        assert len(_stock_out_records()) == 1
        # Cart kept so the cashier can fix the quantity
        assert client.get("/api/cart", headers=staff_headers).json["lines"][0]["requested_quantity"] == 4

    def test_deactivated_item_fails_as_not_found(self, client, staff_headers, admin_headers, milo):
        client.post("/api/cart/items", json={"item_id": milo.id}, headers=staff_headers)
        client.patch(f"/api/items/{milo.id}", json={"is_active": False}, headers=admin_headers)

        resp = client.post("/api/checkout", headers=staff_headers)

        assert resp.status_code == 409
        assert resp.json["details"]["lines"][0]["reason"] == "ItemNotFound"

    def test_note_too_long(self, client, staff_headers, milo):
        client.post("/api/cart/items", json={"item_id": milo.id}, headers=staff_headers)
        resp = client.post("/api/checkout", json={"note": "x" * 300}, headers=staff_headers)
        assert resp.status_code == 400
        assert _qty(milo.id) == 10

    def test_partial_commit_reports_both_sets(self, client, staff_headers, milo, sugar, monkeypatch):
        def partial_checkout(cart, cashier, note=None):
            entry = TransactionEntry(
                type=STOCK_OUT, item_id=milo.id, item_name=milo.name, quantity=1, unit=milo.unit,
                unit_price_cents=milo.price_cents, line_total_cents=milo.price_cents,
                cashier_email=cashier.email, receipt_number="RCP-000001",
            )
            failure = LineFailure(sugar.id, sugar.name, INSUFFICIENT_STOCK, 9, 5)
            cart.remove_item(milo.id)
            raise PartialCommitError([entry], [failure])

        monkeypatch.setattr(checkout_service, "checkout", partial_checkout)
        client.post("/api/cart/items", json={"item_id": milo.id}, headers=staff_headers)
        client.post("/api/cart/items", json={"item_id": sugar.id}, headers=staff_headers)

        resp = client.post("/api/checkout", headers=staff_headers)

        assert resp.status_code == 409
        assert [e["item_id"] for e in resp.json["details"]["committed"]] == [milo.id]
        assert [f["item_id"] for f in resp.json["details"]["failed"]] == [sugar.id]
        lines = client.get("/api/cart", headers=staff_headers).json["lines"]
        assert [l["item_id"] for l in lines] == [sugar.id]


class TestReceipts:

    def _checkout(self, client, headers, item, qty=1):
        client.post("/api/cart/items", json={"item_id": item.id, "quantity": qty}, headers=headers)
        return client.post("/api/checkout", headers=headers).json["receipt"]["receipt_number"]

    def test_receipt_can_be_rebuilt(self, client, staff_headers, milo, sugar):
        client.post("/api/cart/items", json={"item_id": milo.id, "quantity": 2}, headers=staff_headers)
        client.post("/api/cart/items", json={"item_id": sugar.id, "quantity": 1}, headers=staff_headers)
        created = client.post("/api/checkout", headers=staff_headers).json["receipt"]

        resp = client.get(f"/api/checkout/receipts/{created['receipt_number']}", headers=staff_headers)

        assert resp.status_code == 200
        rebuilt = resp.json["receipt"]
        assert rebuilt["total_cents"] == created["total_cents"]
        assert [l["item_name"] for l in rebuilt["lines"]] == ["Milo 500g", "Sugar 1kg"]

    def test_text_format(self, client, staff_headers, milo):
        number = self._checkout(client, staff_headers, milo, 3)

        resp = client.get(f"/api/checkout/receipts/{number}?format=text", headers=staff_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "text/plain"
        body = resp.get_data(as_text=True)
        assert number in body
        assert "₦1,612.50" in body
        assert "Thank you for shopping with us!" in body

    @pytest.mark.parametrize("width", ["10", "121", "2000000"])
    def test_text_width_out_of_range(self, client, staff_headers, milo, width):
        number = self._checkout(client, staff_headers, milo)
        resp = client.get(f"/api/checkout/receipts/{number}?format=text&width={width}", headers=staff_headers)
        assert resp.status_code == 400
        assert "width must be between" in resp.json["error"]

    def test_staff_cannot_read_other_cashiers_receipt(
        self, client, staff_headers, other_staff_headers, admin_headers, milo
    ):
        number = self._checkout(client, staff_headers, milo)

        assert client.get(f"/api/checkout/receipts/{number}", headers=other_staff_headers).status_code == 404
        assert client.get(f"/api/checkout/receipts/{number}", headers=admin_headers).status_code == 200

    def test_unknown_receipt(self, client, staff_headers):
        assert client.get("/api/checkout/receipts/RCP-999999", headers=staff_headers).status_code == 404

    def test_recent_receipts_are_scoped(self, client, staff_headers, other_staff_headers, milo):
        mine = self._checkout(client, staff_headers, milo)
        theirs = self._checkout(client, other_staff_headers, milo)

        resp = client.get("/api/checkout/receipts", headers=staff_headers)
        assert resp.json["receipts"] == [mine]
        assert theirs not in resp.json["receipts"]
