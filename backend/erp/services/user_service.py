# Overview: Service-layer operations for user administration; encapsulates business logic and database work.

"""
User administration.

MULTI-TENANT: Admins manage users of their own company only; a user in
another company is reported as not found. Superadmins manage everyone
and are the only callers who may create or promote superadmins.
Superadmin accounts never belong to a company.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import ConflictError, PermissionDeniedError, ValidationError
from ..extensions import db
from ..models import Purchase, Sale, SalesReturn, User
from ..models.auth import ROLE_STAFF, ROLE_SUPERADMIN, ROLES
from .auth_service import hash_password, normalize_email
from .concurrency import unit_of_work
from .listing import paginate
from .session_service import revoke_all_user_sessions
from .tenant_service import TenantScope, company_id_for_create, get_scoped, scoped_query

logger = logging.getLogger(__name__)


def _require_role_value(scope: TenantScope, role: str) -> str:
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    if role == ROLE_SUPERADMIN and not scope.is_superadmin:
        raise PermissionDeniedError("Only a superadmin can grant the superadmin role")
    return role


def _require_unique_email(email: str, exclude_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ConflictError("Email already registered")


def list_users(
    scope: TenantScope,
    search: str | None = None,
    role: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    query = scoped_query(User, scope)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page, per_page, lambda u: u.to_dict())


def get_user(scope: TenantScope, user_id: int) -> User:
    return get_scoped(User, user_id, scope, "User")


def build_user(*, name, email, password, role: str, company_id: int | None) -> User:
    """Validated, hashed, not yet added to the session."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    email = normalize_email(email)
    _require_unique_email(email)
    return User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        company_id=company_id,
        is_active=True,
    )


def create_user(
    scope: TenantScope,
    *,
    name: str,
    email: str,
    password: str,
    role: str = ROLE_STAFF,
    company_id: int | None = None,
) -> User:
    """
    Create a user in the caller's company (superadmins name the company).

    Raises:
        ConflictError: email already registered
        PermissionDeniedError: non-superadmin creating a superadmin
        ValidationError: bad name / email / password / role
    """
    role = _require_role_value(scope, role or ROLE_STAFF)
    target_company_id = None if role == ROLE_SUPERADMIN else company_id_for_create(scope, company_id)

    with unit_of_work():
        user = build_user(
            name=name, email=email, password=password, role=role, company_id=target_company_id
        )
        db.session.add(user)
        db.session.flush()

    logger.info("User %s created (role=%s, company=%s)", user.email, user.role, user.company_id)
    return user


def update_user(scope: TenantScope, user_id: int, patch: dict) -> User:
    """
    Apply name / email / role / password / is_active changes.

    Changing the password or deactivating the account revokes the user's
    live sessions.
    """
    with unit_of_work():
        user = get_user(scope, user_id)
        revoke_reason = None

        if patch.get("name") is not None:
            if not str(patch["name"]).strip():
                raise ValidationError("name cannot be blank")
            user.name = str(patch["name"]).strip()
        if patch.get("email") is not None:
            email = normalize_email(patch["email"])
            _require_unique_email(email, exclude_id=user.id)
            user.email = email
        if patch.get("role") is not None:
            role = _require_role_value(scope, patch["role"])
            if (role == ROLE_SUPERADMIN) != user.is_superadmin:
                raise ValidationError("Superadmin accounts cannot be converted to or from company roles")
            user.role = role
        if patch.get("password"):
            user.password_hash = hash_password(patch["password"])
            revoke_reason = "Password changed"
        if patch.get("is_active") is not None:
            if user.id == scope.user_id and patch["is_active"] is False:
                raise ValidationError("Cannot deactivate your own account")
            user.is_active = bool(patch["is_active"])
            if not user.is_active:
                revoke_reason = "User deactivated"

        if revoke_reason:
            revoke_all_user_sessions(user.id, reason=revoke_reason)

    return user


def delete_user(scope: TenantScope, user_id: int) -> None:
    """
    Delete a user account.

    Users cannot delete themselves. Accounts attributed on orders or
    returns are kept for history and must be deactivated instead.
    """
    with unit_of_work():
        user = get_user(scope, user_id)
        if user.id == scope.user_id:
            raise ValidationError("Cannot delete your own account")

        attributed = (
            db.session.query(Sale.id).filter(Sale.user_id == user.id).first()
            or db.session.query(Purchase.id).filter(Purchase.user_id == user.id).first()
            or db.session.query(SalesReturn.id).filter(SalesReturn.user_id == user.id).first()
        )
        if attributed:
            raise ConflictError("Cannot delete user with existing orders. Please deactivate instead.")

        email = user.email
        db.session.delete(user)

    logger.info("User %s deleted", email)
