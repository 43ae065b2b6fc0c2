# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/dukapos/routes/auth.py
"""
Authentication API routes

- POST /signup creates a business with its first (admin) user
- POST /login exchanges email + password for a bearer token
- POST /logout revokes the current token
- GET /me returns the current user and tenant context
- /users: admin-only user management within the caller's business
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import PosError
from ..services import auth_service
from ..services import session_service
from ..services.tenant_service import get_business
from ..decorators import require_auth, require_admin


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str) -> dict:
    return {
        "user": user.to_dict(),
        "business": user.business.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "business_id": session.business_id,
        "role": session.role,
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Create a business and its admin user, and log that user in.

    Request body:
    {
        "business_name": "Mama Duka",   // required
        "email": "owner@example.com",   // required
        "password": "Secret123!",       // required, strength-checked
        "first_name": "Amina",          // optional
        "last_name": "Otieno",          // optional
        "timezone": "Africa/Nairobi"    // optional, IANA name (default UTC)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.signup(
            business_name=data.get("business_name"),
            email=data.get("email"),
            password=data.get("password"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            timezone=data.get("timezone"),
        )
        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        payload = _session_payload(user, session, token)
        payload["message"] = "Signup successful"
        return jsonify(payload), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to sign up business")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """Authenticate by email + password and create a session token."""
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required", "code": "validation_error"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login for %s from %s", str(email).lower(), request.remote_addr)
            return jsonify({"error": "Invalid credentials", "code": "unauthenticated"}), 401

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        payload = _session_payload(user, session, token)
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the bearer token of this request."""
    try:
        session_service.revoke_session(g.token, reason="User logout")
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    try:
        return jsonify({
            "user": g.current_user.to_dict(),
            "business": get_business(g.tenant).to_dict(),
            "business_id": g.tenant.business_id,
            "role": g.tenant.role,
        }), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load current user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    try:
        users = auth_service.list_users(g.tenant)
        return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    """
    Add a user to the caller's business.

    Request body: email, password, role ("admin" | "user"), first_name, last_name
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            g.tenant,
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or "user",
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
        return jsonify(user.to_dict()), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.patch("/users/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    fields = {k: data[k] for k in ("first_name", "last_name", "role", "is_active") if k in data}
    try:
        user = auth_service.update_user(g.tenant, user_id, fields)
        return jsonify(user.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.delete("/users/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(g.tenant, user_id)
        return jsonify({"ok": True}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
