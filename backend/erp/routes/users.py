# Overview: Flask API routes for user administration; parses input and returns JSON responses.

"""
User management routes.

SECURITY: Admin role required (superadmins always pass). Admins only see
and manage users of their own company.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..errors import ERPError, ValidationError
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import user_service
from ..validation import json_payload, parse_pagination

USER_WRITABLE_FIELDS = {"name", "email", "password", "role", "is_active", "company_id"}

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _payload() -> dict:
    payload = json_payload(request)
    for key in payload:
        if key not in USER_WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")
    if "is_active" in payload and not isinstance(payload["is_active"], bool):
        raise ValidationError("is_active must be a boolean")
    return payload


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    try:
        page, per_page = parse_pagination(request.args)
        result = user_service.list_users(
            g.scope,
            search=request.args.get("search") or None,
            role=request.args.get("role") or None,
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    try:
        data = _payload()
        user = user_service.create_user(
            g.scope,
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or ROLE_STAFF,
            company_id=data.get("company_id"),
        )
        return jsonify(user.to_dict()), 201
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user_route(user_id: int):
    try:
        return jsonify(user_service.get_user(g.scope, user_id).to_dict()), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code


@users_bp.put("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    try:
        data = _payload()
        data.pop("company_id", None)
        user = user_service.update_user(g.scope, user_id, data)
        return jsonify(user.to_dict()), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.scope, user_id)
        return jsonify({"message": "User deleted successfully"}), 200
    except ERPError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
