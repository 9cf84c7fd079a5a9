# Overview: Service-layer operations for products; encapsulates business logic and database work.

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import or_

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Inventory, Product, PurchaseItem, SaleItem
from erp.time_utils import utcnow
from .concurrency import unit_of_work
from .listing import paginate
from .tenant_service import TenantScope, company_id_for_create, get_scoped, scoped_query

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "category",
    "unit",
    "cost_price_cents",
    "selling_price_cents",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_unique_sku(company_id: int, sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.company_id == company_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists for this company")


def list_products(
    scope: TenantScope,
    search: str | None = None,
    category: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    """
    Tenant-scoped product listing with pagination; each row carries its
    inventory snapshot.
    """
    query = scoped_query(Product, scope)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.description.ilike(pattern),
        ))
    if category:
        query = query.filter(Product.category == category)
    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, per_page, lambda p: p.to_dict(include_inventory=True))


def list_categories(scope: TenantScope) -> list[str]:
    rows = (
        scoped_query(Product, scope)
        .with_entities(Product.category)
        .filter(Product.category.isnot(None))
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [row[0] for row in rows]


def get_product(scope: TenantScope, product_id: int) -> Product:
    return get_scoped(Product, product_id, scope, "Product")


def create_product(
    scope: TenantScope,
    patch: dict,
    *,
    initial_quantity: int = 0,
    min_stock_level: int | None = None,
    location: str | None = None,
    company_id: int | None = None,
) -> Product:
    """
    Create a product together with its inventory row.

    Raises:
        ConflictError: SKU already used in the company
        ValidationError: negative opening quantity or minimum level
    """
    if initial_quantity < 0:
        raise ValidationError("initial_quantity must be >= 0")
    if min_stock_level is None:
        min_stock_level = current_app.config.get("DEFAULT_MIN_STOCK_LEVEL", 10)
    if min_stock_level < 0:
        raise ValidationError("min_stock_level must be >= 0")

    target_company_id = company_id_for_create(scope, company_id)

    sku = patch.get("sku")
    if not sku:
        raise ValidationError("sku is required")

    with unit_of_work():
        _require_unique_sku(target_company_id, sku)

        p = Product(company_id=target_company_id)
        apply_product_patch(p, patch)
        p.inventory = Inventory(
            company_id=target_company_id,
            quantity=initial_quantity,
            min_stock_level=min_stock_level,
            location=location,
            last_restocked_at=utcnow() if initial_quantity > 0 else None,
        )
        db.session.add(p)
        db.session.flush()

    logger.info("Product %s created (sku=%s, company=%s)", p.id, p.sku, p.company_id)
    return p


def update_product(scope: TenantScope, product_id: int, patch: dict) -> Product:
    with unit_of_work():
        p = get_product(scope, product_id)
        if "sku" in patch and patch["sku"] != p.sku:
            _require_unique_sku(p.company_id, patch["sku"], exclude_id=p.id)
        apply_product_patch(p, patch)
    return p


def delete_product(scope: TenantScope, product_id: int) -> None:
    """Refused with ConflictError while any order line references the product."""
    with unit_of_work():
        p = get_product(scope, product_id)
        in_use = (
            db.session.query(SaleItem.id).filter(SaleItem.product_id == p.id).first()
            or db.session.query(PurchaseItem.id).filter(PurchaseItem.product_id == p.id).first()
        )
        if in_use:
            raise ConflictError("Cannot delete product referenced by existing orders")
        db.session.delete(p)

    logger.info("Product %s deleted", product_id)
