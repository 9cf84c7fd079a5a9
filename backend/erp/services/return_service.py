# Overview: Service-layer operations for sales returns; encapsulates business logic and database work.

"""
Sales Return Service

LIFECYCLE: pending -> approved -> completed, with cancelled reachable from
pending and approved.

RULES:
- Returns can only be raised against confirmed, shipped or delivered sales.
- Per sale line, the quantities of all non-cancelled returns never exceed
  the ordered quantity. Lines repeated within one request count together.
- Line totals use the original unit price. Tax is apportioned from the
  original sale: subtotal * sale.tax / sale.subtotal, rounded half-up to
  the cent (0 when the sale subtotal is 0).
- Creating a return does not touch inventory; completing it puts every
  returned quantity back on the shelf in the same unit of work. A return
  on a sale that was cancelled in the meantime cannot be completed.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import InvalidStateError, ValidationError
from ..extensions import db
from ..models import Sale, SalesReturn, SalesReturnItem
from ..models.documents import RETURN_STATUS_CANCELLED, RETURN_STATUS_COMPLETED, RETURN_STATUS_PENDING
from ..models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_CONFIRMED, SALE_STATUS_DELIVERED, SALE_STATUS_SHIPPED
from ..validation import coerce_int, parse_optional_int
from .concurrency import lock_for_update, unit_of_work
from .document_service import SALES_RETURN_DOCUMENT, next_document_number
from .inventory_service import restock
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

RETURNABLE_SALE_STATUSES = (SALE_STATUS_CONFIRMED, SALE_STATUS_SHIPPED, SALE_STATUS_DELIVERED)


def _require_returnable(sale: Sale) -> None:
    if sale.status not in RETURNABLE_SALE_STATUSES:
        raise InvalidStateError(
            f"Returns are only allowed for orders with status: {', '.join(RETURNABLE_SALE_STATUSES)}"
        )


def returned_quantities(sale_id: int) -> dict[int, int]:
    """sale_item_id -> quantity covered by non-cancelled returns of the sale."""
    rows = (
        db.session.query(SalesReturnItem.sale_item_id, db.func.sum(SalesReturnItem.quantity))
        .join(SalesReturn, SalesReturn.id == SalesReturnItem.sales_return_id)
        .filter(
            SalesReturn.sale_id == sale_id,
            SalesReturn.status != RETURN_STATUS_CANCELLED,
        )
        .group_by(SalesReturnItem.sale_item_id)
        .all()
    )
    return {sale_item_id: int(total or 0) for sale_item_id, total in rows}


def apportion_tax(subtotal_cents: int, sale_tax_cents: int, sale_subtotal_cents: int) -> int:
    """subtotal * tax / sale_subtotal, rounded half-up to the cent."""
    if sale_subtotal_cents <= 0:
        return 0
    numerator = subtotal_cents * sale_tax_cents
    return (numerator + sale_subtotal_cents // 2) // sale_subtotal_cents


def get_returnable_items(scope: TenantScope, sale_id: int) -> dict:
    """
    Per sale line: ordered, already returned, remaining and can_return.

    Raises InvalidStateError when the sale is not in a returnable status.
    """
    sale = get_scoped(Sale, sale_id, scope, "Sale")
    _require_returnable(sale)

    returned = returned_quantities(sale.id)
    rows = []
    for item in sale.items:
        already = returned.get(item.id, 0)
        remaining = item.quantity - already
        rows.append({
            "sale_item_id": item.id,
            "product_id": item.product_id,
            "product_sku": item.product.sku if item.product else None,
            "product_name": item.product.name if item.product else None,
            "ordered_quantity": item.quantity,
            "returned_quantity": already,
            "remaining_quantity": remaining,
            "unit_price_cents": item.unit_price_cents,
            "can_return": remaining > 0,
        })
    return {"sale": sale.to_dict(), "returnable_items": rows}


def create_return(
    scope: TenantScope,
    user_id: int | None,
    sale_id: int,
    items,
    reason: str | None = None,
    notes: str | None = None,
    company_id: int | None = None,
) -> SalesReturn:
    """
    Create a pending return against a sale.

    Validation order: sale exists in tenant, sale status, at least one item,
    then per item: belongs to the sale, quantity >= 1, quantity within what
    is still returnable. The first failure aborts with nothing persisted.
    """
    sale_id = parse_optional_int(sale_id, "sale_id")
    if sale_id is None:
        raise ValidationError("sale_id is required")
    target_company_id = company_id_for_create(scope, company_id)

    with unit_of_work():
        sale = require_record_in_company(Sale, sale_id, target_company_id, "Sale")
        # Serialize concurrent returns against the same sale
        lock_for_update(db.session.query(Sale).filter(Sale.id == sale.id)).first()
        _require_returnable(sale)

        if not isinstance(items, list) or not items:
            raise ValidationError("At least one return item is required")

        sale_items = {item.id: item for item in sale.items}
        returned = returned_quantities(sale.id)

        return_items = []
        subtotal = 0
        for raw in items:
            if not isinstance(raw, dict):
                raise ValidationError("Each return item must be an object")
            raw_sale_item_id = raw.get("sale_item_id")
            sale_item = None
            if raw_sale_item_id is not None:
                sale_item = sale_items.get(coerce_int(raw_sale_item_id, "sale_item_id"))
            if sale_item is None:
                raise ValidationError(f"Item with saleItemId {raw_sale_item_id} is not part of the original sale")

            quantity = raw.get("quantity")
            quantity = coerce_int(quantity, "quantity") if quantity not in (None, "") else 0
            if quantity < 1:
                raise ValidationError("Return quantity must be at least 1")

            already = returned.get(sale_item.id, 0)
            remaining = sale_item.quantity - already
            if quantity > remaining:
                raise ValidationError(
                    f"Cannot return {quantity} units of product. Only {remaining} remaining "
                    f"(ordered: {sale_item.quantity}, already returned: {already})"
                )
            returned[sale_item.id] = already + quantity

            line_total = quantity * sale_item.unit_price_cents
            subtotal += line_total
            return_items.append(SalesReturnItem(
                sale_item_id=sale_item.id,
                product_id=sale_item.product_id,
                quantity=quantity,
                unit_price_cents=sale_item.unit_price_cents,
                line_total_cents=line_total,
            ))

        tax = apportion_tax(subtotal, sale.tax_cents, sale.subtotal_cents)

        sales_return = SalesReturn(
            company_id=sale.company_id,
            return_number=next_document_number(
                company_id=sale.company_id, document_type=SALES_RETURN_DOCUMENT
            ),
            sale_id=sale.id,
            user_id=user_id,
            status=RETURN_STATUS_PENDING,
            subtotal_cents=subtotal,
            tax_cents=tax,
            total_cents=subtotal + tax,
            reason=reason,
            notes=notes,
            items=return_items,
        )
        db.session.add(sales_return)
        db.session.flush()

    logger.info(
        "Sales return %s created for sale %s (total=%s)",
        sales_return.return_number, sale.order_number, sales_return.total_cents,
    )
    return sales_return


def get_return(scope: TenantScope, return_id: int) -> SalesReturn:
    return get_scoped(SalesReturn, return_id, scope, "Sales return")


def _locked_return(scope: TenantScope, return_id: int) -> SalesReturn:
    return get_scoped(
        SalesReturn, return_id, scope, "Sales return",
        query=lock_for_update(db.session.query(SalesReturn)),
    )


def list_returns(
    scope: TenantScope,
    status: str | None = None,
    search: str | None = None,
    sale_id: int | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    query = scoped_query(SalesReturn, scope).join(Sale, Sale.id == SalesReturn.sale_id)
    if status:
        query = query.filter(SalesReturn.status == validate_status("return", status))
    if sale_id is not None:
        query = query.filter(SalesReturn.sale_id == sale_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(SalesReturn.return_number.ilike(pattern), Sale.order_number.ilike(pattern)))
    query = query.order_by(SalesReturn.created_at.desc(), SalesReturn.id.desc())
    return paginate(query, page, per_page, lambda sales_return: sales_return.to_dict())


def transition_return(scope: TenantScope, return_id: int, status: str) -> SalesReturn:
    """
    Move a return to ``status``. Completing it restocks every returned
    line (stamping last_restocked_at) together with the status write.
    """
    with unit_of_work():
        sales_return = _locked_return(scope, return_id)
        previous = sales_return.status
        require_transition("return", previous, status)

        if status == RETURN_STATUS_COMPLETED:
            if sales_return.sale.status == SALE_STATUS_CANCELLED:
                raise InvalidStateError("Cannot complete a return for a cancelled sale")
            restock(
                [{"product_id": item.product_id, "quantity": item.quantity} for item in sales_return.items],
                sales_return.company_id,
            )

        sales_return.status = status

    logger.info("Sales return %s status %s -> %s", sales_return.return_number, previous, status)
    return sales_return


def delete_return(scope: TenantScope, return_id: int) -> None:
    """Only pending returns may be deleted."""
    with unit_of_work():
        sales_return = _locked_return(scope, return_id)
        if sales_return.status != RETURN_STATUS_PENDING:
            raise InvalidStateError("Only pending returns can be deleted")
        return_number = sales_return.return_number
        db.session.delete(sales_return)

    logger.info("Sales return %s deleted", return_number)
