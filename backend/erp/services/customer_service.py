# Overview: Service-layer operations for customers and suppliers; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Customer, Purchase, Sale
from ..models.customers import CUSTOMER_TYPES
from .concurrency import unit_of_work
from .listing import paginate
from .tenant_service import TenantScope, company_id_for_create, get_scoped, scoped_query

logger = logging.getLogger(__name__)

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address", "city", "country", "type"}


def apply_customer_patch(customer: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        setattr(customer, k, v)


def list_customers(
    scope: TenantScope,
    search: str | None = None,
    type: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    """
    Search runs over name, email, phone and city. ``type`` filters on the
    party type; asking for "customer" or "supplier" also includes "both".
    """
    query = scoped_query(Customer, scope)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Customer.name.ilike(pattern),
            Customer.email.ilike(pattern),
            Customer.phone.ilike(pattern),
            Customer.city.ilike(pattern),
        ))
    if type:
        if type not in CUSTOMER_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(CUSTOMER_TYPES)}")
        if type == "both":
            query = query.filter(Customer.type == "both")
        else:
            query = query.filter(Customer.type.in_((type, "both")))
    query = query.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate(query, page, per_page, lambda c: c.to_dict())


def get_customer(scope: TenantScope, customer_id: int) -> Customer:
    return get_scoped(Customer, customer_id, scope, "Customer")


def create_customer(scope: TenantScope, patch: dict, company_id: int | None = None) -> Customer:
    target_company_id = company_id_for_create(scope, company_id)

    with unit_of_work():
        customer = Customer(company_id=target_company_id)
        apply_customer_patch(customer, patch)
        db.session.add(customer)
        db.session.flush()

    logger.info("Customer %s created (company=%s, type=%s)", customer.id, customer.company_id, customer.type)
    return customer


def update_customer(scope: TenantScope, customer_id: int, patch: dict) -> Customer:
    with unit_of_work():
        customer = get_customer(scope, customer_id)
        apply_customer_patch(customer, patch)
    return customer


def delete_customer(scope: TenantScope, customer_id: int) -> None:
    """Refused with ConflictError while any sale or purchase references the party."""
    with unit_of_work():
        customer = get_customer(scope, customer_id)
        in_use = (
            db.session.query(Sale.id).filter(Sale.customer_id == customer.id).first()
            or db.session.query(Purchase.id).filter(Purchase.supplier_id == customer.id).first()
        )
        if in_use:
            raise ConflictError("Cannot delete customer with existing orders")
        db.session.delete(customer)

    logger.info("Customer %s deleted", customer_id)
