# Overview: Permission checks and security event logging.

"""
Permission Checking and Security Event Logging

Enforces the role capability map (permissions.can) and keeps an audit trail.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and unknown permission codes are denied
- Log denials only: permission grants are not logged
"""

import logging

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import can, validate_permission_code
from stockpro.time_utils import utcnow


logger = logging.getLogger(__name__)


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event to the audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGIN_SUCCESS
    - LOGOUT
    - USER_REGISTERED
    - ROLE_CHANGED
    - USER_DEACTIVATED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    if not success:
        logger.warning(
            "Security event %s user=%s resource=%s reason=%s",
            event_type, user_id, resource, reason,
        )
    return event


def user_has_permission(user, permission_code: str) -> bool:
    if user is None or not user.is_active:
        return False
    return can(user.role, permission_code)


def require_permission(
    user,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are written to security_events.
    """
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")

    if user_has_permission(user, permission_code):
        return

    log_security_event(
        user_id=user.id if user is not None else None,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(f"Permission denied: {permission_code}")


def recent_security_events(limit: int = 50, event_type: str | None = None) -> list[SecurityEvent]:
    q = db.session.query(SecurityEvent)
    if event_type:
        q = q.filter_by(event_type=event_type)
    return q.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()
