# Overview: Service-layer operations for session; opaque tokens carrying the tenant context.

"""
Session Token Management Service with Multi-Tenant Support

Tokens are cryptographically random, stored only as SHA-256 hashes, and
time-limited.

MULTI-TENANT: Sessions capture business_id and role at creation time.
That context becomes the TenantContext of every authenticated request
without repeated lookups.

SECURITY FEATURES:
- 32 bytes of entropy per token (secrets.token_hex)
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2)
- Revocable on logout
- Deactivated users or businesses invalidate their sessions
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from dukapos.time_utils import utcnow
from .tenant_service import TenantContext

logger = logging.getLogger(__name__)

DEFAULT_ABSOLUTE_TIMEOUT_HOURS = 24
DEFAULT_IDLE_TIMEOUT_HOURS = 2


@dataclass
class SessionContext:
    """
    Result of validate_session: the user, the session row and the tenant
    context fixed at login.
    """
    user: User
    session: SessionToken
    tenant: TenantContext


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", DEFAULT_ABSOLUTE_TIMEOUT_HOURS))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", DEFAULT_IDLE_TIMEOUT_HOURS))


def generate_token() -> str:
    """64-character hex string (32 bytes); sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is sufficient for high-entropy tokens (unlike passwords)."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for user. Returns (session_record, plaintext_token).

    Raises ValueError if the user or their business is inactive.
    """
    if not user.is_active:
        raise ValueError("User account is not active")
    if not user.business or not user.business.is_active:
        raise ValueError("Business is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        business_id=user.business_id,
        role=user.role,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for a valid token, else None.

    Invalid when the token is unknown, revoked, past its absolute expiry,
    idle too long, or its user/business has been deactivated. Idle and
    deactivated sessions are revoked on the way out. A valid call
    refreshes last_used_at.
    """
    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    if not session.business or not session.business.is_active:
        _revoke(session, "Business deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        user=user,
        session=session,
        tenant=TenantContext(business_id=session.business_id, role=session.role, user_id=user.id),
    )


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if an active session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Returns count of sessions revoked (role change, deactivation)."""
    now = utcnow()
    count = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).update(
        {"is_revoked": True, "revoked_at": now, "revoked_reason": reason},
        synchronize_session=False,
    )
    db.session.commit()
    return count


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """Delete sessions created before the cutoff that are expired or revoked."""
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)

    db.session.commit()
    logger.info("Session cleanup removed %s rows", deleted)
    return deleted
