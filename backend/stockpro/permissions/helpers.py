# Overview: Utility functions for permission lookups and the role capability check.

from .definitions import PERMISSION_DEFINITIONS
from .roles import ROLE_PERMISSIONS


def can(role, action):
    """
    Single authorization check used by every route and service.

    Unknown roles and unknown actions are denied.
    """
    return action in ROLE_PERMISSIONS.get(role, frozenset())


def get_role_permissions(role):
    """Get the sorted permission codes granted to a role."""
    return sorted(ROLE_PERMISSIONS.get(role, frozenset()))


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Get all permissions in a category."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    """Get full definition for a permission code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == code:
            return {
                "code": perm[0],
                "name": perm[1],
                "description": perm[2],
                "category": perm[3],
            }
    return None


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()
