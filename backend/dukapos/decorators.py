# Overview: Request decorators for API routes (authentication and admin gating).

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.tenant: TenantContext(business_id, role, user_id) fixed at login
    - g.token: The bearer token of this request (for logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired, idle or revoked token
    - User account or business deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token", "code": "unauthenticated"}), 401

        g.current_user = context.user
        g.tenant = context.tenant
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require the admin role. Must be applied after @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant = getattr(g, "tenant", None)
        if tenant is None:
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401
        if not tenant.is_admin:
            return jsonify({"error": "Admin role required", "code": "access_denied"}), 403
        return f(*args, **kwargs)

    return decorated_function
