# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/erp/routes/auth.py
"""
Authentication API routes

- Login issues an opaque bearer token (stored hashed server-side)
- Logout revokes the presented token
- Registration is not self-service: an admin registers staff into their
  own company
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError
from ..extensions import db
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import auth_service
from ..services import session_service
from ..validation import json_payload
from ..services import user_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    Inactive users get 401; users of an inactive company get 403.
    """
    try:
        data = json_payload(request)
        user = auth_service.authenticate(data.get("email"), data.get("password"))

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "company": user.company.to_dict() if user.company else None,
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
        }), 200

    except ERPError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.auth_token)
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "company": user.company.to_dict() if user.company else None,
    }), 200


@auth_bp.post("/register")
@require_auth
@require_role(ROLE_ADMIN)
def register_route():
    """
    Register a staff user in the caller's company.

    Superadmins must pass company_id. Use /api/users for other roles.
    """
    try:
        data = json_payload(request)
        user = user_service.create_user(
            g.scope,
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=ROLE_STAFF,
            company_id=data.get("company_id"),
        )
        return jsonify({"user": user.to_dict()}), 201

    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500
