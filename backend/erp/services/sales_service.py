# Overview: Service-layer operations for sales orders; encapsulates business logic and database work.

"""
Sales Order Service

LIFECYCLE: pending -> confirmed -> shipped -> delivered, with cancelled
reachable from every non-terminal status (see lifecycle_service).

STOCK POLICY:
Stock is deducted when the order is created, not when it is confirmed.
A pending order therefore holds its stock until it is cancelled or
deleted, both of which put the full ordered quantity back. A sale with
returns that are not cancelled can be neither cancelled nor deleted, so
no unit goes back on the shelf twice.

Every mutating function runs in one unit of work: the order rows, the
document number and the inventory rows commit or roll back together.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem
from ..models.documents import RETURN_STATUS_CANCELLED
from ..models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_DELIVERED, SALE_STATUS_PENDING
from ..validation import parse_line_items, parse_money, parse_optional_int
from .concurrency import lock_for_update, unit_of_work
from .document_service import SALE_DOCUMENT, next_document_number
from .inventory_service import deduct_stock, restock
from .lifecycle_service import require_transition, validate_status
from .listing import paginate
from .tenant_service import (
    TenantScope,
    company_id_for_create,
    get_scoped,
    require_record_in_company,
    scoped_query,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def _stock_lines(sale: Sale) -> list[dict]:
    return [{"product_id": item.product_id, "quantity": item.quantity} for item in sale.items]


def load_products(product_ids, company_id: int) -> dict[int, Product]:
    """
    Products referenced by order lines, all of which must belong to
    ``company_id``. Raises NotFoundError otherwise.
    """
    wanted = set(product_ids)
    products = (
        db.session.query(Product)
        .filter(Product.id.in_(wanted), Product.company_id == company_id)
        .all()
    )
    if len(products) != len(wanted):
        raise NotFoundError("One or more products not found")
    return {p.id: p for p in products}


def create_sale(
    scope: TenantScope,
    user_id: int | None,
    customer_id: int,
    items,
    tax_cents=0,
    notes: str | None = None,
    company_id: int | None = None,
) -> Sale:
    """
    Create a pending sale and deduct its stock.

    Unit price defaults to the product's selling price.
    subtotal = sum(quantity * unit_price), total = subtotal + tax.

    Raises:
        NotFoundError: customer or any product missing from the tenant
        ValidationError: bad lines, or the customer is supplier-only
        InsufficientStockError: any line short (details list every short line);
            nothing is persisted in that case
    """
    customer_id = parse_optional_int(customer_id, "customer_id")
    if customer_id is None:
        raise ValidationError("customer_id is required")
    lines = parse_line_items(items, require_unit_price=False)
    tax_cents = parse_money(tax_cents, "tax_cents")
    target_company_id = company_id_for_create(scope, company_id)

    with unit_of_work():
        customer = require_record_in_company(Customer, customer_id, target_company_id, "Customer")
        if not customer.can_buy:
            raise ValidationError("Selected customer is a supplier and cannot be used for sales")

        products = load_products([line["product_id"] for line in lines], target_company_id)

        sale_items = []
        subtotal = 0
        for line in lines:
            product = products[line["product_id"]]
            unit_price = line["unit_price_cents"]
            if unit_price is None:
                unit_price = product.selling_price_cents
            line_total = line["quantity"] * unit_price
            subtotal += line_total
            sale_items.append(SaleItem(
                product_id=product.id,
                quantity=line["quantity"],
                unit_price_cents=unit_price,
                line_total_cents=line_total,
            ))

        deduct_stock(lines, target_company_id)

        sale = Sale(
            company_id=target_company_id,
            order_number=next_document_number(company_id=target_company_id, document_type=SALE_DOCUMENT),
            customer_id=customer.id,
            user_id=user_id,
            status=SALE_STATUS_PENDING,
            subtotal_cents=subtotal,
            tax_cents=tax_cents,
            total_cents=subtotal + tax_cents,
            notes=notes,
            items=sale_items,
        )
        db.session.add(sale)
        db.session.flush()

    logger.info("Sale %s created (company=%s, total=%s)", sale.order_number, sale.company_id, sale.total_cents)
    return sale


def get_sale(scope: TenantScope, sale_id: int) -> Sale:
    return get_scoped(Sale, sale_id, scope, "Sale")


def _locked_sale(scope: TenantScope, sale_id: int) -> Sale:
    return get_scoped(Sale, sale_id, scope, "Sale", query=lock_for_update(db.session.query(Sale)))


def list_sales(
    scope: TenantScope,
    status: str | None = None,
    search: str | None = None,
    customer_id: int | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    query = scoped_query(Sale, scope).join(Customer, Customer.id == Sale.customer_id)
    if status:
        query = query.filter(Sale.status == validate_status("sale", status))
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Sale.order_number.ilike(pattern), Customer.name.ilike(pattern)))
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginate(query, page, per_page, lambda sale: sale.to_dict())


def transition_sale(scope: TenantScope, sale_id: int, status: str) -> Sale:
    """
    Move a sale to ``status``.

    Cancelling puts every line's quantity back into inventory in the same
    unit of work as the status write, and is refused while the sale has
    returns that are not cancelled. Other moves have no stock effect.
    """
    with unit_of_work():
        sale = _locked_sale(scope, sale_id)
        previous = sale.status
        require_transition("sale", previous, status)

        if status == SALE_STATUS_CANCELLED:
            if any(r.status != RETURN_STATUS_CANCELLED for r in sale.returns):
                raise ConflictError("Cannot cancel a sale that has returns")
            restock(_stock_lines(sale), sale.company_id)

        sale.status = status

    logger.info("Sale %s status %s -> %s", sale.order_number, previous, status)
    return sale


def update_sale(scope: TenantScope, sale_id: int, *, notes=_UNSET, tax_cents=_UNSET) -> Sale:
    """Edit notes / tax of a pending sale. Changing tax recomputes the total."""
    with unit_of_work():
        sale = _locked_sale(scope, sale_id)
        if sale.status != SALE_STATUS_PENDING:
            raise InvalidStateError("Can only update pending orders")

        if notes is not _UNSET:
            sale.notes = notes
        if tax_cents is not _UNSET:
            sale.tax_cents = parse_money(tax_cents, "tax_cents")
            sale.total_cents = sale.subtotal_cents + sale.tax_cents

    return sale


def delete_sale(scope: TenantScope, sale_id: int) -> None:
    """
    Remove a sale and its items.

    Delivered sales cannot be deleted. Unless the sale was already
    cancelled, its stock is restored first, in the same unit of work.
    """
    with unit_of_work():
        sale = _locked_sale(scope, sale_id)
        if sale.status == SALE_STATUS_DELIVERED:
            raise InvalidStateError("Cannot delete delivered orders")
        if sale.returns:
            raise ConflictError("Cannot delete a sale that has returns")

        if sale.status != SALE_STATUS_CANCELLED:
            restock(_stock_lines(sale), sale.company_id)

        order_number = sale.order_number
        db.session.delete(sale)

    logger.info("Sale %s deleted", order_number)
