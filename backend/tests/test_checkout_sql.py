"""
Checkout service against SQLite: atomicity, receipt numbering, retries and
concurrent cashiers on a file database.
"""

import threading
from dataclasses import replace

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError

from stockpro import create_app
from stockpro.domain import Cashier, ItemSnapshot
from stockpro.extensions import db
from stockpro.models import InventoryItem, TransactionRecord
from stockpro.repositories import SqlInventoryRepository
from stockpro.services import checkout_service
from stockpro.services.cart_service import Cart
from stockpro.services.checkout_service import CheckoutRejected, ExternalUnavailable


def _qty(item_id):
    return db.session.get(InventoryItem, item_id, populate_existing=True).quantity


def _cart(*lines):
    cart = Cart()
    for item, qty in lines:
        cart.add_item(item, qty)
    return cart


@pytest.fixture
def cashier(staff_user):
    return Cashier.from_user(staff_user)


class TestSqlCheckout:

    def test_example_checkout(self, db_session, milo, cashier):
        snapshot = ItemSnapshot.from_model(milo)

        receipt = checkout_service.checkout(_cart((snapshot, 3)), cashier)

        assert _qty(milo.id) == 7
        records = db_session.query(TransactionRecord).all()
        assert len(records) == 1
        assert records[0].type == "Stock Out"
        assert records[0].quantity == 3
        assert records[0].line_total_cents == 150000
        assert records[0].tax_rate_bp == 750
        assert receipt.total_cents == 161250

    def test_insufficient_stock_leaves_store_untouched(self, db_session, sugar, milo, cashier):
        stale_sugar = replace(ItemSnapshot.from_model(sugar), quantity=100)
        cart = _cart((ItemSnapshot.from_model(milo), 2), (stale_sugar, 50))

        with pytest.raises(CheckoutRejected) as exc:
            checkout_service.checkout(cart, cashier)

        assert exc.value.failures[0].available_quantity == 5
        assert _qty(sugar.id) == 5
        assert _qty(milo.id) == 10
        assert db_session.query(TransactionRecord).count() == 0
        assert len(cart) == 2

    def test_receipt_numbers_increment(self, db_session, milo, cashier):
        snapshot = ItemSnapshot.from_model(milo)
        numbers = [
            checkout_service.checkout(_cart((snapshot, 1)), cashier).receipt_number
            for _ in range(3)
        ]
        assert numbers == ["RCP-000001", "RCP-000002", "RCP-000003"]

    def test_get_receipt_keeps_original_tax_rate(self, db_session, milo, cashier):
        snapshot = ItemSnapshot.from_model(milo)
        created = checkout_service.checkout(_cart((snapshot, 2)), cashier, tax_rate_bp=1000)

        rebuilt = checkout_service.get_receipt(created.receipt_number)

        assert rebuilt.tax_rate_bp == 1000
        assert rebuilt.tax_cents == 10000
        assert rebuilt.total_cents == created.total_cents
        assert rebuilt.cashier_email == cashier.email

    def test_transient_lock_error_is_retried(self, db_session, milo, cashier, monkeypatch):
        original = SqlInventoryRepository.decrement_if_available
        calls = {"n": 0}

        def flaky(self, item_id, amount):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("UPDATE items", {}, Exception("database is locked"))
            return original(self, item_id, amount)

        monkeypatch.setattr(SqlInventoryRepository, "decrement_if_available", flaky)

        receipt = checkout_service.checkout(_cart((ItemSnapshot.from_model(milo), 1)), cashier)

        assert calls["n"] == 2
        assert receipt.receipt_number == "RCP-000001"
        assert _qty(milo.id) == 9

    def test_persistent_lock_error_surfaces_as_unavailable(self, db_session, milo, cashier, monkeypatch):
        def locked(self, item_id, amount):
            raise OperationalError("UPDATE items", {}, Exception("database is locked"))

        monkeypatch.setattr(SqlInventoryRepository, "decrement_if_available", locked)
        cart = _cart((ItemSnapshot.from_model(milo), 1))

        with pytest.raises(ExternalUnavailable) as exc:
            checkout_service.checkout(cart, cashier)

        assert exc.value.outcome_unknown is False
        assert len(cart) == 1
        assert _qty(milo.id) == 10


def test_database_rejects_negative_quantity(db_session, milo):
    with pytest.raises(IntegrityError):
        db_session.execute(
            update(InventoryItem).where(InventoryItem.id == milo.id).values(quantity=-1)
        )
        db_session.flush()
    db_session.rollback()
    assert _qty(milo.id) == 10


@pytest.fixture
def file_app(tmp_path):
    """Separate app on a file database so threads get real connections."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'stockpro.sqlite3'}",
        'STOCKPRO_BCRYPT_ROUNDS': 4,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _seed_item(app, quantity):
    with app.app_context():
        item = InventoryItem(name="Sugar 1kg", category="Groceries", price_cents=120000, quantity=quantity, unit="bag")
        db.session.add(item)
        db.session.commit()
        return ItemSnapshot.from_model(item)


def _run_concurrently(app, snapshot, quantities):
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(quantities))

    def worker(n, qty):
        with app.app_context():
            cart = _cart((snapshot, qty))
            cashier = Cashier(user_id=None, email=f"cashier{n}@stockpro.test")
            barrier.wait()
            try:
                receipt = checkout_service.checkout(cart, cashier)
                outcome = ("ok", receipt.receipt_number)
            except CheckoutRejected:
                outcome = ("rejected", None)
            except ExternalUnavailable:
                outcome = ("unavailable", None)
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker, args=(n, q)) for n, q in enumerate(quantities)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_two_cashiers_racing_for_last_stock(file_app):
    snapshot = _seed_item(file_app, 5)

    results = _run_concurrently(file_app, snapshot, [3, 3])

    outcomes = sorted(r[0] for r in results)
    assert outcomes == ["ok", "rejected"]
    with file_app.app_context():
        assert db.session.get(InventoryItem, snapshot.id).quantity == 2
        assert db.session.query(TransactionRecord).count() == 1


def test_many_cashiers_never_overcommit(file_app):
    snapshot = _seed_item(file_app, 5)

    results = _run_concurrently(file_app, snapshot, [1] * 8)

    ok = [number for outcome, number in results if outcome == "ok"]
    assert len(ok) == 5
    assert len(set(ok)) == 5
    with file_app.app_context():
        assert db.session.get(InventoryItem, snapshot.id).quantity == 0
        sold = sum(r.quantity for r in db.session.query(TransactionRecord).all())
        assert sold == 5
