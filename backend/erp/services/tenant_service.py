"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every request is scoped to a tenant (company). The scope is an explicit
TenantScope value built once per request from the authenticated session
and passed into every service call; services never read request globals.

SECURITY INVARIANTS:
1. Non-superadmin callers only ever see rows of their own company
2. Records in another company are reported as "not found", never as
   "forbidden", so their existence is not revealed
3. Superadmins may narrow to one company (requested_company_id) or see all
4. Records created by a superadmin must name their owning company

USAGE:
    from erp.services.tenant_service import TenantScope, scoped_query

    scope = TenantScope(user_id=1, role="admin", company_id=7)
    products = scoped_query(Product, scope).all()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import NotFoundError, TenantAccessError, ValidationError
from ..extensions import db
from ..models import Company
from ..models.auth import ROLE_SUPERADMIN
from ..validation import coerce_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantScope:
    """
    Caller identity as seen by the core services.

    company_id is the caller's own company (None for superadmins).
    requested_company_id is the explicit company filter a superadmin asked
    for; it is ignored for everyone else.
    """
    user_id: int | None
    role: str
    company_id: int | None
    requested_company_id: int | None = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    @classmethod
    def for_user(cls, user, requested_company_id: int | None = None) -> "TenantScope":
        return cls(
            user_id=user.id,
            role=user.role,
            company_id=user.company_id,
            requested_company_id=requested_company_id,
        )


def company_filter(scope: TenantScope) -> int | None:
    """
    Company id every read must be restricted to, or None for "all tenants".

    Only a superadmin without an explicit company filter gets None.
    """
    if scope.is_superadmin:
        return scope.requested_company_id
    if scope.company_id is None:
        # A non-superadmin without a company must never see everything
        raise TenantAccessError("Tenant context not established")
    return scope.company_id


def company_id_for_create(scope: TenantScope, requested: int | None = None) -> int:
    """
    Owning company for a new record.

    Non-superadmins always create in their own company (client input is
    ignored). Superadmins must name the company explicitly.
    """
    if not scope.is_superadmin:
        return company_filter(scope)

    company_id = requested if requested not in (None, "") else scope.requested_company_id
    if company_id is None:
        raise ValidationError("company_id is required when creating records as superadmin")
    company_id = coerce_int(company_id, "company_id")
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company.id


def scoped_query(model, scope: TenantScope):
    """Query for ``model`` restricted to the caller's tenant."""
    query = db.session.query(model)
    company_id = company_filter(scope)
    if company_id is not None:
        query = query.filter(model.company_id == company_id)
    return query


def get_scoped(model, record_id: int, scope: TenantScope, label: str, *, query=None):
    """
    Fetch one tenant-owned record or raise a 404-style error.

    A record that exists in another company raises TenantAccessError with
    the same message as a missing one, and the attempt is logged.
    """
    base = query if query is not None else db.session.query(model)
    record = base.filter(model.id == record_id).first()
    if record is None:
        raise NotFoundError(f"{label} not found")

    company_id = company_filter(scope)
    if company_id is not None and record.company_id != company_id:
        _log_cross_tenant_attempt(
            f"{model.__name__} {record_id} belongs to company {record.company_id}, not {company_id}",
            scope=scope,
        )
        raise TenantAccessError(f"{label} not found")
    return record


def require_record_in_company(model, record_id: int, company_id: int, label: str):
    """
    Validate a referenced record (customer, product, ...) belongs to the
    company an operation is writing into.
    """
    record = db.session.get(model, record_id) if record_id is not None else None
    if record is None:
        raise NotFoundError(f"{label} not found")
    if record.company_id != company_id:
        logger.warning(
            "Cross-tenant reference denied: %s %s belongs to company %s, not %s",
            model.__name__, record_id, record.company_id, company_id,
        )
        raise TenantAccessError(f"{label} not found")
    return record


def _log_cross_tenant_attempt(reason: str, *, scope: TenantScope) -> None:
    logger.warning(
        "Cross-tenant access denied (user_id=%s company_id=%s): %s",
        scope.user_id, scope.company_id, reason,
    )
