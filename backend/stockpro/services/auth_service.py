# Overview: Service-layer operations for auth; accounts, passwords and roles.

"""
Authentication Service

Every transaction is attributed to a user's email, so every action starts
from an authenticated account here.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters; upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
- The first account ever registered becomes admin; later sign-ups are staff
- The last active admin cannot be demoted or deactivated
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db, carts
from ..models import User, ROLE_ADMIN, ROLE_STAFF, ROLES
from .concurrency import begin_write
from stockpro.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthError(Exception):
    """Raised for account operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PasswordValidationError(AuthError):
    """Raised when password doesn't meet strength requirements."""
    pass


class LastAdminError(AuthError):
    pass


class UserNotFoundError(AuthError):
    pass


def normalize_email(email) -> str:
    if not isinstance(email, str):
        raise AuthError("email is required")
    email = email.strip().lower()
    if not email:
        raise AuthError("email is required")
    if not EMAIL_RE.match(email) or len(email) > 255:
        raise AuthError("email is not valid")
    return email


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-+=;/\\\[\]~`]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash password using bcrypt (cost factor 12 by default).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never verify."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _bcrypt_rounds() -> int:
    return current_app.config.get("STOCKPRO_BCRYPT_ROUNDS", 12)


def create_user(email: str, password: str, role: str = ROLE_STAFF) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises AuthError if the email is taken or the role is unknown, and
    PasswordValidationError for weak passwords.
    """
    email = normalize_email(email)
    if role not in ROLES:
        raise AuthError(f"role must be one of: {', '.join(ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise AuthError("Email already registered")

    user = User(
        email=email,
        password_hash=hash_password(password, rounds=_bcrypt_rounds()),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register(email: str, password: str, confirm_password: str | None = None) -> User:
    """
    Self-registration from the sign-up page.

    The very first account becomes admin so a fresh install can be
    administered; everyone after that starts as staff.
    """
    if confirm_password is not None and confirm_password != password:
        raise PasswordValidationError("Passwords do not match")

    # The admin check and the insert share one write transaction
    begin_write(db.session)
    try:
        role = ROLE_ADMIN if db.session.query(User.id).first() is None else ROLE_STAFF
        return create_user(email, password, role=role)
    except Exception:
        db.session.rollback()
        raise


def authenticate(email: str, password: str) -> User | None:
    """
    Returns User if credentials valid and the account is active, None otherwise.

    Updates last_login_at on success.
    """
    try:
        email = normalize_email(email)
    except AuthError:
        return None

    user = db.session.query(User).filter_by(email=email, is_active=True).first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def get_profile(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.asc(), User.id.asc()).all()


def _active_admin_count() -> int:
    return db.session.query(User).filter_by(role=ROLE_ADMIN, is_active=True).count()


def _require_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError("User not found", details={"user_id": user_id})
    return user


def set_user_role(user_id: int, role: str) -> User:
    if role not in ROLES:
        raise AuthError(f"role must be one of: {', '.join(ROLES)}")

    user = _require_user(user_id)
    if user.role == role:
        return user

    if user.role == ROLE_ADMIN and user.is_active and _active_admin_count() <= 1:
        raise LastAdminError("Cannot demote the last active admin")

    user.role = role
    db.session.commit()
    return user


def set_user_active(user_id: int, is_active: bool) -> User:
    """
    Activate or deactivate an account.

    Deactivation revokes every open session for the user and drops their carts.
    """
    from . import session_service

    user = _require_user(user_id)
    if user.is_active == is_active:
        return user

    if not is_active and user.role == ROLE_ADMIN and _active_admin_count() <= 1:
        raise LastAdminError("Cannot deactivate the last active admin")

    user.is_active = is_active
    db.session.commit()

    if not is_active:
        for session_id in session_service.revoke_all_user_sessions(user.id, reason="User account deactivated"):
            carts.discard(session_id)
    return user
