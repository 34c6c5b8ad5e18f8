"""
Pytest fixtures for StockPro backend tests.

Provides the app on an in-memory database, a fresh schema per test,
users for each role, and a couple of stocked items.
"""

import pytest

from stockpro import create_app
from stockpro.extensions import db, carts
from stockpro.models import InventoryItem, ROLE_ADMIN, ROLE_STAFF
from stockpro.services import auth_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'STOCKPRO_BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        carts.clear()

        yield db.session()

        db.session.rollback()
        carts.clear()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user("admin@stockpro.test", PASSWORD, role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def staff_user(db_session):
    return auth_service.create_user("staff@stockpro.test", PASSWORD, role=ROLE_STAFF)


@pytest.fixture(scope='function')
def other_staff_user(db_session):
    return auth_service.create_user("staff2@stockpro.test", PASSWORD, role=ROLE_STAFF)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email))


@pytest.fixture(scope='function')
def other_staff_headers(client, other_staff_user):
    return auth_headers(get_auth_token(client, other_staff_user.email))


@pytest.fixture(scope='function')
def milo(db_session):
    """Milo 500g: 500.00 each, 10 in stock."""
    item = InventoryItem(
        name="Milo 500g",
        category="Beverages",
        price_cents=50000,
        quantity=10,
        unit="tin",
        barcode="6001067000012",
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def sugar(db_session):
    """Sugar 1kg: 1,200.00 each, 5 in stock."""
    item = InventoryItem(
        name="Sugar 1kg",
        category="Groceries",
        price_cents=120000,
        quantity=5,
        unit="bag",
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def login(client):
    """Log in and return Authorization headers for a fresh session."""
    def _login(email: str, password: str = PASSWORD) -> dict:
        return auth_headers(get_auth_token(client, email, password))
    return _login
