# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory Invariants (authoritative)

Inventory model:
- One Inventory row per Product, holding the on-hand quantity directly.
- quantity >= 0 always. Every mutation checks the result before writing;
  the table also carries a CHECK constraint.
- Low stock: quantity <= min_stock_level.

Mutations:
- add: quantity += n (n >= 1), stamps last_restocked_at
- remove: quantity -= n (n >= 1), InsufficientStockError if result < 0
- set: quantity = n (n >= 0), unconditional otherwise

Bulk helpers (deduct_stock / restock) are called by the order services
inside their own unit of work so stock and status change together.
deduct_stock validates every line before touching any row.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Inventory, Product
from erp.time_utils import utcnow
from .concurrency import lock_for_update, unit_of_work
from .listing import paginate
from .tenant_service import TenantScope, company_filter, get_scoped

logger = logging.getLogger(__name__)

ADJUST_ADD = "add"
ADJUST_REMOVE = "remove"
ADJUST_SET = "set"
ADJUST_KINDS = (ADJUST_ADD, ADJUST_REMOVE, ADJUST_SET)


def _inventory_query():
    return db.session.query(Inventory).join(Product, Product.id == Inventory.product_id)


def _locked_inventory_for_product(scope: TenantScope, product_id: int) -> Inventory:
    product = get_scoped(Product, product_id, scope, "Product")
    inventory = lock_for_update(
        db.session.query(Inventory).filter(Inventory.product_id == product.id)
    ).first()
    if inventory is None:
        raise NotFoundError("Inventory record not found for this product")
    return inventory


def _aggregate(items) -> dict[int, int]:
    """Sum quantities per product_id, preserving first-seen order."""
    totals: dict[int, int] = {}
    for item in items:
        totals[item["product_id"]] = totals.get(item["product_id"], 0) + item["quantity"]
    return totals


def _locked_rows(product_ids, company_id: int) -> dict[int, Inventory]:
    rows = lock_for_update(
        db.session.query(Inventory).filter(
            Inventory.product_id.in_(list(product_ids)),
            Inventory.company_id == company_id,
        )
    ).all()
    return {row.product_id: row for row in rows}


def adjust_inventory(
    scope: TenantScope,
    product_id: int,
    quantity: int,
    kind: str,
    reason: str | None = None,
) -> Inventory:
    """
    Apply a single add / remove / set adjustment to a product's stock.

    Raises:
        ValidationError: unknown kind, or quantity out of range for kind
        NotFoundError: product not in the caller's tenant or no inventory row
        InsufficientStockError: remove would drive quantity below zero
    """
    if kind not in ADJUST_KINDS:
        raise ValidationError(f"type must be one of: {', '.join(ADJUST_KINDS)}")
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValidationError("quantity must be an integer")
    if kind == ADJUST_SET and quantity < 0:
        raise ValidationError("quantity must be >= 0")
    if kind != ADJUST_SET and quantity < 1:
        raise ValidationError("quantity must be at least 1")

    with unit_of_work():
        inventory = _locked_inventory_for_product(scope, product_id)
        before = inventory.quantity

        if kind == ADJUST_ADD:
            inventory.quantity = before + quantity
            inventory.last_restocked_at = utcnow()
        elif kind == ADJUST_REMOVE:
            if before - quantity < 0:
                raise InsufficientStockError(
                    f"Insufficient stock. Available: {before}, Requested: {quantity}",
                    details=[{
                        "product_id": inventory.product_id,
                        "product_name": inventory.product.name,
                        "requested": quantity,
                        "available": before,
                    }],
                )
            inventory.quantity = before - quantity
        else:
            inventory.quantity = quantity

    logger.info(
        "Inventory adjusted: product=%s kind=%s qty=%s %s -> %s reason=%s",
        product_id, kind, quantity, before, inventory.quantity, reason,
    )
    return inventory


def check_stock_availability(items, company_id: int) -> list[dict]:
    """
    Return one entry per product whose on-hand quantity cannot cover the
    requested total. Duplicate product lines are summed first. A product
    without an inventory row counts as 0 available.
    """
    totals = _aggregate(items)
    rows = {
        row.product_id: row
        for row in db.session.query(Inventory).filter(
            Inventory.product_id.in_(list(totals)),
            Inventory.company_id == company_id,
        )
    }
    return _shortfalls(totals, rows)


def _shortfalls(totals: dict[int, int], rows: dict[int, Inventory]) -> list[dict]:
    short = []
    for product_id, requested in totals.items():
        row = rows.get(product_id)
        available = row.quantity if row is not None else 0
        if requested > available:
            product = row.product if row is not None else db.session.get(Product, product_id)
            short.append({
                "product_id": product_id,
                "product_name": product.name if product else None,
                "requested": requested,
                "available": available,
            })
    return short


def deduct_stock(items, company_id: int) -> None:
    """
    Remove stock for every line, all or nothing.

    Must run inside the caller's unit of work. Every line is checked
    against locked rows first; if any is short, InsufficientStockError
    lists all short products and nothing is changed.
    """
    totals = _aggregate(items)
    rows = _locked_rows(totals, company_id)

    short = _shortfalls(totals, rows)
    if short:
        raise InsufficientStockError("Insufficient stock for one or more items", details=short)

    for product_id, quantity in totals.items():
        rows[product_id].quantity -= quantity
    db.session.flush()


def restock(items, company_id: int) -> None:
    """
    Add stock back for every line and stamp last_restocked_at.

    Must run inside the caller's unit of work.
    """
    totals = _aggregate(items)
    rows = _locked_rows(totals, company_id)
    now = utcnow()

    for product_id, quantity in totals.items():
        row = rows.get(product_id)
        if row is None:
            raise NotFoundError(f"Inventory record not found for product {product_id}")
        row.quantity += quantity
        row.last_restocked_at = now
    db.session.flush()


def get_low_stock(scope: TenantScope) -> list[Inventory]:
    """Inventory rows at or below their minimum level, lowest quantity first."""
    query = _inventory_query().filter(Inventory.quantity <= Inventory.min_stock_level)
    company_id = company_filter(scope)
    if company_id is not None:
        query = query.filter(Inventory.company_id == company_id)
    return query.order_by(Inventory.quantity.asc(), Inventory.id.asc()).all()


def list_inventory(
    scope: TenantScope,
    page: int = 1,
    per_page: int = 10,
    search: str | None = None,
    low_stock: bool = False,
) -> dict:
    query = _inventory_query()
    company_id = company_filter(scope)
    if company_id is not None:
        query = query.filter(Inventory.company_id == company_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if low_stock:
        query = query.filter(Inventory.quantity <= Inventory.min_stock_level)
    query = query.order_by(Product.name.asc(), Inventory.id.asc())
    return paginate(query, page, per_page, lambda row: row.to_dict(include_product=True))


def get_inventory(scope: TenantScope, product_id: int) -> Inventory:
    product = get_scoped(Product, product_id, scope, "Product")
    if product.inventory is None:
        raise NotFoundError("Inventory record not found for this product")
    return product.inventory


def update_inventory(
    scope: TenantScope,
    product_id: int,
    *,
    quantity: int | None = None,
    location: str | None = None,
    min_stock_level: int | None = None,
) -> Inventory:
    """
    Direct edit of an inventory row. Increasing quantity stamps
    last_restocked_at.
    """
    if quantity is not None and quantity < 0:
        raise ValidationError("quantity must be >= 0")
    if min_stock_level is not None and min_stock_level < 0:
        raise ValidationError("min_stock_level must be >= 0")

    with unit_of_work():
        inventory = _locked_inventory_for_product(scope, product_id)
        if quantity is not None:
            if quantity > inventory.quantity:
                inventory.last_restocked_at = utcnow()
            inventory.quantity = quantity
        if location is not None:
            inventory.location = location
        if min_stock_level is not None:
            inventory.min_stock_level = min_stock_level

    return inventory

