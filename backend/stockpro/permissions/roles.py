# Overview: Static role -> permission grants.

from .definitions import PERMISSION_DEFINITIONS


ROLE_PERMISSIONS = {
    "admin": frozenset(perm[0] for perm in PERMISSION_DEFINITIONS),
    "staff": frozenset({
        "VIEW_INVENTORY",
        "CHECKOUT",
        "VIEW_OWN_TRANSACTIONS",
        "VIEW_STAFF_DASHBOARD",
    }),
}
