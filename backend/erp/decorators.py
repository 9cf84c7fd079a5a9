# Overview: Request and role decorators for API routes.

import logging
from functools import wraps

from flask import request, jsonify, g

from .models.auth import ROLE_SUPERADMIN
from .services import session_service
from .services.tenant_service import TenantScope
from .validation import parse_optional_int

logger = logging.getLogger(__name__)


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'scope')


def _requested_company_id():
    raw = request.args.get("company_id")
    if raw is None and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            raw = body.get("company_id")
    return parse_optional_int(raw, "company_id")


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.scope: TenantScope passed explicitly into services
    - g.session_context: The full SessionContext object
    - g.auth_token: The raw bearer token (for logout)

    Superadmins may narrow their scope with a ``company_id`` query
    parameter (or JSON body field on writes); for everyone else the
    session's company is authoritative and client input is ignored.

    Returns 401 if the header is missing, the token is invalid or expired,
    or the user / company has been deactivated since login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        user = context.user
        if not user.is_superadmin and not context.company_id:
            logger.warning("Session for user %s missing company context", user.id)
            return jsonify({"error": "Invalid session: missing tenant context"}), 401

        requested = _requested_company_id() if user.is_superadmin else None

        g.current_user = user
        g.session_context = context
        g.auth_token = token
        g.scope = TenantScope(
            user_id=user.id,
            role=user.role,
            company_id=context.company_id,
            requested_company_id=requested,
        )

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the current user to hold one of ``roles``.

    Superadmins always pass. Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.role == ROLE_SUPERADMIN or user.role in roles:
                return f(*args, **kwargs)

            logger.warning(
                "Permission denied: user %s (role=%s) on %s %s requires %s",
                user.id, user.role, request.method, request.path, ", ".join(roles),
            )
            return jsonify({
                "error": "Permission denied",
                "required_roles": list(roles),
            }), 403

        return decorated_function
    return decorator


def require_superadmin(f):
    """Shorthand for routes only a superadmin may call."""
    return require_role(ROLE_SUPERADMIN)(f)
