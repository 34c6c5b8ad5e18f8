# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View items, quantities and the checkout catalog",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_ITEMS",
        "Manage Items",
        "Add products and edit item details",
        PermissionCategory.INVENTORY,
    ),
    (
        "RECEIVE_STOCK",
        "Receive Stock",
        "Record Stock In transactions (incoming stock)",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CHECKOUT",
        "Checkout",
        "Build a cart and commit Stock Out sales",
        PermissionCategory.SALES,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_OWN_TRANSACTIONS",
        "View Own Transactions",
        "View transactions recorded by yourself",
        PermissionCategory.REPORTS,
    ),
    (
        "VIEW_ALL_TRANSACTIONS",
        "View All Transactions",
        "View every transaction regardless of cashier",
        PermissionCategory.REPORTS,
    ),
    (
        "EXPORT_TRANSACTIONS",
        "Export Transactions",
        "Download transactions as CSV",
        PermissionCategory.REPORTS,
    ),
    (
        "VIEW_STAFF_DASHBOARD",
        "View Staff Dashboard",
        "Personal sales summary cards",
        PermissionCategory.REPORTS,
    ),
    (
        "VIEW_ADMIN_DASHBOARD",
        "View Admin Dashboard",
        "Store-wide summary cards and recent sales",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "List registered users and their roles",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Change user roles and deactivate accounts",
        PermissionCategory.USERS,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
)
