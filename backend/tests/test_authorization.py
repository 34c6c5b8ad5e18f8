"""
Role capability matrix and endpoint protection.
"""

import pytest

from stockpro.models import SecurityEvent
from stockpro.permissions import (
    ROLE_PERMISSIONS,
    can,
    get_all_permission_codes,
    get_role_permissions,
    validate_permission_code,
)
from stockpro.services import permission_service


STAFF_ALLOWED = {"VIEW_INVENTORY", "CHECKOUT", "VIEW_OWN_TRANSACTIONS", "VIEW_STAFF_DASHBOARD"}


@pytest.mark.parametrize("action", get_all_permission_codes())
def test_admin_can_everything(action):
    assert can("admin", action)


@pytest.mark.parametrize("action", get_all_permission_codes())
def test_staff_matrix(action):
    assert can("staff", action) is (action in STAFF_ALLOWED)


def test_unknown_role_or_action_is_denied():
    assert not can("owner", "VIEW_INVENTORY")
    assert not can(None, "VIEW_INVENTORY")
    assert not can("admin", "DROP_TABLES")


def test_role_permissions_are_known_codes():
    codes = set(get_all_permission_codes())
    for role, granted in ROLE_PERMISSIONS.items():
        assert granted <= codes, role
    assert get_role_permissions("staff") == sorted(STAFF_ALLOWED)
    assert validate_permission_code("CHECKOUT")
    assert not validate_permission_code("checkout")


def test_service_rejects_unknown_code(db_session, admin_user):
    with pytest.raises(ValueError):
        permission_service.require_permission(admin_user, "NOT_A_PERMISSION")


PROTECTED = [
    ("get", "/api/items"),
    ("get", "/api/items/low-stock"),
    ("post", "/api/items"),
    ("patch", "/api/items/1"),
    ("post", "/api/items/1/stock-in"),
    ("get", "/api/catalog"),
    ("get", "/api/cart"),
    ("post", "/api/cart/items"),
    ("delete", "/api/cart"),
    ("post", "/api/checkout"),
    ("get", "/api/checkout/receipts"),
    ("get", "/api/transactions"),
    ("get", "/api/transactions/export"),
    ("get", "/api/reports/summary"),
    ("get", "/api/users"),
    ("patch", "/api/users/1"),
    ("get", "/api/auth/me"),
]


@pytest.mark.parametrize("method, path", PROTECTED)
def test_requires_token(client, db_session, method, path):
    r = getattr(client, method)(path, json={})
    assert r.status_code == 401


@pytest.mark.parametrize("method, path", PROTECTED)
def test_rejects_garbage_token(client, db_session, method, path):
    r = getattr(client, method)(path, json={}, headers={"Authorization": "Bearer not-a-real-token"})
    assert r.status_code == 401


ADMIN_ONLY = [
    ("post", "/api/items", "MANAGE_ITEMS"),
    ("patch", "/api/items/1", "MANAGE_ITEMS"),
    ("post", "/api/items/1/stock-in", "RECEIVE_STOCK"),
    ("get", "/api/transactions/export", "EXPORT_TRANSACTIONS"),
    ("get", "/api/users", "VIEW_USERS"),
    ("patch", "/api/users/1", "MANAGE_USERS"),
]


@pytest.mark.parametrize("method, path, permission", ADMIN_ONLY)
def test_staff_is_forbidden(client, db_session, staff_headers, method, path, permission):
    r = getattr(client, method)(path, json={}, headers=staff_headers)

    assert r.status_code == 403
    assert r.get_json()["required_permission"] == permission
    event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
    assert event.action == permission
    assert event.resource == path


def test_health_is_public(client, db_session):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json()["database"]["status"] == "healthy"
