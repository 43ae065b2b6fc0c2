# Overview: Service-layer operations for auth; signup, users and password handling.

"""
Authentication Service with Multi-Tenant Support

Every action must be attributable. Uses bcrypt for password hashing and
validates password strength.

MULTI-TENANT: Users belong to exactly one business (business_id).
Email is the login identifier and is unique across the system
(case-insensitive; stored lower-cased).

SIGNUP (create-and-verify):
1. Business + its first (admin) user are inserted in one commit
2. The user is read back with a bounded exponential-backoff retry
3. After the maximum attempts a StorageError is raised; there is no
   unbounded wait

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with uppercase, lowercase, digit and special char
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import logging
import re

import bcrypt
from flask import current_app

from ..errors import AccessDenied, StorageError, ValidationError
from ..extensions import db
from ..models import Business, User
from ..models.auth import ROLE_ADMIN, VALID_ROLES
from dukapos.time_utils import get_zone, utcnow
from .concurrency import atomic, retry_with_backoff
from .session_service import revoke_all_user_sessions
from .tenant_service import TenantContext, get_owned, require_admin, scoped_query

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character

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

    if not re.search(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt (cost BCRYPT_ROUNDS, default 12) after the strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash is a failed
    login, not a server error.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    value = (email or "").strip().lower() if isinstance(email, str) else ""
    if not EMAIL_RE.match(value):
        raise ValidationError("A valid email address is required", details={"field": "email"})
    return value


def _require_unused_email(email: str) -> None:
    if db.session.query(User.id).filter(User.email == email).first():
        raise ValidationError(
            "This email is already registered. Please log in or use a different email.",
            details={"field": "email"},
        )


def _require_name(value, field: str, default: str | None = None) -> str:
    name = value.strip() if isinstance(value, str) else ""
    if not name:
        if default is not None:
            return default
        raise ValidationError(f"{field} is required", details={"field": field})
    return name


def signup(
    *,
    business_name: str,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
    timezone: str | None = None,
) -> User:
    """
    Create a business and its first user (admin) atomically, then verify
    the user is readable before returning it.
    """
    business_name = _require_name(business_name, "business_name")
    email = normalize_email(email)
    password_hash = hash_password(password)

    tz_name = (timezone or "UTC").strip() or "UTC"
    if get_zone(tz_name).key != tz_name:
        raise ValidationError("Unknown timezone", details={"field": "timezone", "value": tz_name})

    with atomic("create business"):
        _require_unused_email(email)
        business = Business(name=business_name, timezone=tz_name)
        db.session.add(business)
        db.session.flush()

        user = User(
            business_id=business.id,
            email=email,
            first_name=_require_name(first_name, "first_name", default="User"),
            last_name=_require_name(last_name, "last_name", default=""),
            password_hash=password_hash,
            role=ROLE_ADMIN,
        )
        db.session.add(user)
        db.session.flush()
        user_id = user.id

    user = verify_user_created(user_id)
    logger.info("Business created id=%s admin_user_id=%s", user.business_id, user.id)
    return user


def verify_user_created(user_id: int) -> User:
    """Read the new user back with bounded exponential backoff."""
    attempts = current_app.config.get("SIGNUP_VERIFY_ATTEMPTS", 5)
    backoff = current_app.config.get("SIGNUP_VERIFY_BACKOFF", 0.05)

    def _load() -> User:
        user = db.session.get(User, user_id)
        if user is None or user.business is None:
            db.session.expire_all()
            raise LookupError(f"user {user_id} not visible yet")
        return user

    try:
        return retry_with_backoff(_load, attempts=attempts, backoff_base=backoff)
    except LookupError as exc:
        logger.error("Signup verification failed for user_id=%s after %s attempts", user_id, attempts)
        raise StorageError("Account was created but could not be verified; please try logging in") from exc


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user for email/password within an active business,
    or None. Updates last_login_at on success.
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        return None

    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active:
        return None
    if not user.business or not user.business.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def create_user(
    ctx: TenantContext,
    *,
    email: str,
    password: str,
    role: str = "user",
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """Admin only: add a user to the caller's business."""
    require_admin(ctx, "create users")
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}", details={"field": "role"})
    email = normalize_email(email)
    password_hash = hash_password(password)

    with atomic("create user"):
        _require_unused_email(email)
        user = User(
            business_id=ctx.business_id,
            email=email,
            first_name=_require_name(first_name, "first_name", default="User"),
            last_name=_require_name(last_name, "last_name", default=""),
            password_hash=password_hash,
            role=role,
        )
        db.session.add(user)
        db.session.flush()

    logger.info("User created id=%s role=%s business_id=%s", user.id, role, ctx.business_id)
    return user


def list_users(ctx: TenantContext) -> list[User]:
    return scoped_query(User, ctx).order_by(User.created_at.desc(), User.id.desc()).all()


def update_user(ctx: TenantContext, user_id: int, fields: dict) -> User:
    """Admin only: change names, role or active flag of a user in the business."""
    require_admin(ctx, "update users")
    with atomic("update user"):
        user = get_owned(ctx, User, user_id, label="User")
        if "first_name" in fields:
            user.first_name = _require_name(fields["first_name"], "first_name")
        if "last_name" in fields:
            user.last_name = _require_name(fields["last_name"], "last_name", default="")
        if "role" in fields:
            if fields["role"] not in VALID_ROLES:
                raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}", details={"field": "role"})
            if user.id == ctx.user_id and fields["role"] != ROLE_ADMIN:
                raise AccessDenied("Admins cannot remove their own admin role")
            user.role = fields["role"]
        if "is_active" in fields:
            if user.id == ctx.user_id and not fields["is_active"]:
                raise AccessDenied("Admins cannot deactivate themselves")
            user.is_active = bool(fields["is_active"])

    if "role" in fields or fields.get("is_active") is False:
        # Role is captured at login; force re-authentication
        revoke_all_user_sessions(user_id, reason="User role or status changed")

    logger.info("User updated id=%s business_id=%s", user_id, ctx.business_id)
    return user


def delete_user(ctx: TenantContext, user_id: int) -> None:
    """Admin only; an admin cannot delete their own account."""
    require_admin(ctx, "delete users")
    if user_id == ctx.user_id:
        raise AccessDenied("Admins cannot delete their own account")
    with atomic("delete user"):
        user = get_owned(ctx, User, user_id, label="User")
        db.session.delete(user)

    logger.info("User deleted id=%s business_id=%s", user_id, ctx.business_id)
