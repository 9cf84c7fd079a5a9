# Overview: Service-layer operations for companies (tenants); encapsulates business logic and database work.

"""
Company (tenant) administration. Superadmin only; routes enforce the role.

A company that owns any user, customer, product, sale or purchase cannot be
hard-deleted; it has to be deactivated instead, which blocks its users'
logins and live sessions.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Company, Customer, Product, Purchase, Sale, User
from ..models.auth import ROLE_ADMIN
from ..models.tenancy import COMPANY_STATUSES
from .concurrency import unit_of_work
from .listing import paginate
from .user_service import build_user

logger = logging.getLogger(__name__)

COMPANY_MUTABLE_FIELDS = {"name", "address", "phone", "email", "status", "logo"}


def apply_company_patch(company: Company, patch: dict) -> None:
    for k, v in patch.items():
        if k not in COMPANY_MUTABLE_FIELDS:
            continue
        setattr(company, k, v)


def list_companies(
    search: str | None = None,
    status: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    query = db.session.query(Company)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Company.name.ilike(pattern), Company.email.ilike(pattern)))
    if status:
        if status not in COMPANY_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(COMPANY_STATUSES)}")
        query = query.filter(Company.status == status)
    query = query.order_by(Company.created_at.desc(), Company.id.desc())
    return paginate(query, page, per_page, lambda c: c.to_dict())


def get_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def create_company(patch: dict, admin_user: dict | None = None) -> Company:
    """
    Create an active company, optionally with its first admin user in the
    same unit of work. A duplicate admin email aborts both.
    """
    with unit_of_work():
        company = Company()
        apply_company_patch(company, patch)
        if not company.status:
            company.status = "active"
        db.session.add(company)
        db.session.flush()

        if admin_user:
            if not isinstance(admin_user, dict):
                raise ValidationError("admin_user must be an object")
            db.session.add(build_user(
                name=admin_user.get("name"),
                email=admin_user.get("email"),
                password=admin_user.get("password"),
                role=ROLE_ADMIN,
                company_id=company.id,
            ))
            db.session.flush()

    logger.info("Company %s created (id=%s)", company.name, company.id)
    return company


def update_company(company_id: int, patch: dict) -> Company:
    with unit_of_work():
        company = get_company(company_id)
        previous_status = company.status
        apply_company_patch(company, patch)

    if previous_status != company.status:
        logger.info("Company %s status %s -> %s", company.id, previous_status, company.status)
    return company


def company_stats(company_id: int) -> dict:
    company = get_company(company_id)
    return {
        "users": db.session.query(User).filter(User.company_id == company.id).count(),
        "customers": db.session.query(Customer).filter(Customer.company_id == company.id).count(),
        "products": db.session.query(Product).filter(Product.company_id == company.id).count(),
        "sales": db.session.query(Sale).filter(Sale.company_id == company.id).count(),
        "purchases": db.session.query(Purchase).filter(Purchase.company_id == company.id).count(),
    }


def delete_company(company_id: int) -> None:
    """Hard delete, refused with ConflictError while the company owns data."""
    with unit_of_work():
        company = get_company(company_id)
        stats = company_stats(company.id)
        if any(stats.values()):
            raise ConflictError(
                "Cannot delete company with existing data. Please deactivate instead.",
                details=stats,
            )
        for sequence in company.document_sequences:
            db.session.delete(sequence)
        db.session.delete(company)

    logger.info("Company %s deleted", company_id)


def list_company_users(company_id: int) -> list[User]:
    company = get_company(company_id)
    return (
        db.session.query(User)
        .filter(User.company_id == company.id)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
