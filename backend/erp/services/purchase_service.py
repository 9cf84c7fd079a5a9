# Overview: Service-layer operations for purchase orders; encapsulates business logic and database work.

"""
Purchase Order Service

LIFECYCLE: pending -> approved -> ordered -> (partial ->) received, with
cancelled reachable from every non-terminal status.

Creating or transitioning a purchase never touches inventory. Stock only
arrives through receive_purchase, which may be called several times while
the order is ordered or partial; each call adds what it receives and
moves the order to partial or received.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import InvalidStateError, ValidationError
from ..extensions import db
from ..models import Customer, Purchase, PurchaseItem
from ..models.purchases import (
    PURCHASE_STATUS_CANCELLED,
    PURCHASE_STATUS_ORDERED,
    PURCHASE_STATUS_PARTIAL,
    PURCHASE_STATUS_PENDING,
    PURCHASE_STATUS_RECEIVED,
)
from ..validation import coerce_int, parse_line_items, parse_money, parse_optional_int
from erp.time_utils import parse_iso_date
from .concurrency import lock_for_update, unit_of_work
from .document_service import PURCHASE_DOCUMENT, next_document_number
from .inventory_service import restock
from .lifecycle_service import require_transition, validate_status
from .listing import paginate
from .sales_service import load_products
from .tenant_service import (
    TenantScope,
    company_id_for_create,
    get_scoped,
    require_record_in_company,
    scoped_query,
)

logger = logging.getLogger(__name__)

_UNSET = object()

RECEIVABLE_STATUSES = (PURCHASE_STATUS_ORDERED, PURCHASE_STATUS_PARTIAL)
DELETABLE_STATUSES = (PURCHASE_STATUS_PENDING, PURCHASE_STATUS_CANCELLED)


def _parse_expected_delivery(value):
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError("expected_delivery must be an ISO-8601 date")
    return value


def create_purchase(
    scope: TenantScope,
    user_id: int | None,
    supplier_id: int,
    items,
    tax_cents=0,
    notes: str | None = None,
    expected_delivery=None,
    company_id: int | None = None,
) -> Purchase:
    """
    Create a pending purchase order. Every line needs an explicit unit price.

    Raises:
        NotFoundError: supplier or any product missing from the tenant
        ValidationError: bad lines, or the party is customer-only
    """
    supplier_id = parse_optional_int(supplier_id, "supplier_id")
    if supplier_id is None:
        raise ValidationError("supplier_id is required")
    lines = parse_line_items(items, require_unit_price=True)
    tax_cents = parse_money(tax_cents, "tax_cents")
    expected_delivery = _parse_expected_delivery(expected_delivery)
    target_company_id = company_id_for_create(scope, company_id)

    with unit_of_work():
        supplier = require_record_in_company(Customer, supplier_id, target_company_id, "Supplier")
        if not supplier.can_supply:
            raise ValidationError("Selected party is a customer and cannot be used for purchases")

        load_products([line["product_id"] for line in lines], target_company_id)

        purchase_items = []
        subtotal = 0
        for line in lines:
            line_total = line["quantity"] * line["unit_price_cents"]
            subtotal += line_total
            purchase_items.append(PurchaseItem(
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                line_total_cents=line_total,
                received_quantity=0,
            ))

        purchase = Purchase(
            company_id=target_company_id,
            order_number=next_document_number(company_id=target_company_id, document_type=PURCHASE_DOCUMENT),
            supplier_id=supplier.id,
            user_id=user_id,
            status=PURCHASE_STATUS_PENDING,
            subtotal_cents=subtotal,
            tax_cents=tax_cents,
            total_cents=subtotal + tax_cents,
            notes=notes,
            expected_delivery=expected_delivery,
            items=purchase_items,
        )
        db.session.add(purchase)
        db.session.flush()

    logger.info("Purchase %s created (company=%s, total=%s)", purchase.order_number, purchase.company_id, purchase.total_cents)
    return purchase


def get_purchase(scope: TenantScope, purchase_id: int) -> Purchase:
    return get_scoped(Purchase, purchase_id, scope, "Purchase")


def _locked_purchase(scope: TenantScope, purchase_id: int) -> Purchase:
    return get_scoped(Purchase, purchase_id, scope, "Purchase", query=lock_for_update(db.session.query(Purchase)))


def list_purchases(
    scope: TenantScope,
    status: str | None = None,
    search: str | None = None,
    supplier_id: int | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    query = scoped_query(Purchase, scope).join(Customer, Customer.id == Purchase.supplier_id)
    if status:
        query = query.filter(Purchase.status == validate_status("purchase", status))
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Purchase.order_number.ilike(pattern), Customer.name.ilike(pattern)))
    query = query.order_by(Purchase.created_at.desc(), Purchase.id.desc())
    return paginate(query, page, per_page, lambda purchase: purchase.to_dict())


def transition_purchase(scope: TenantScope, purchase_id: int, status: str) -> Purchase:
    """Table-checked status change; never touches inventory."""
    with unit_of_work():
        purchase = _locked_purchase(scope, purchase_id)
        previous = purchase.status
        require_transition("purchase", previous, status)
        purchase.status = status

    logger.info("Purchase %s status %s -> %s", purchase.order_number, previous, status)
    return purchase


def _requested_quantities(purchase: Purchase, items) -> dict[int, int] | None:
    """
    Map purchase_item_id -> requested quantity, or None when the caller
    asked to receive everything outstanding.

    Request lines match by ``purchase_item_id`` or, failing that, by
    ``product_id``.
    """
    if not items:
        return None
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    by_id = {item.id: item for item in purchase.items}
    by_product = {}
    for item in purchase.items:
        by_product.setdefault(item.product_id, item)

    requested: dict[int, int] = {}
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity")
        if quantity < 1:
            raise ValidationError(f"items[{index}].quantity must be at least 1")

        target = None
        if raw.get("purchase_item_id") is not None:
            target = by_id.get(coerce_int(raw["purchase_item_id"], f"items[{index}].purchase_item_id"))
        elif raw.get("product_id") is not None:
            target = by_product.get(coerce_int(raw["product_id"], f"items[{index}].product_id"))
        else:
            raise ValidationError(f"items[{index}] needs purchase_item_id or product_id")

        if target is None:
            raise ValidationError(f"items[{index}] is not part of this purchase")
        requested[target.id] = requested.get(target.id, 0) + quantity
    return requested


def receive_purchase(scope: TenantScope, purchase_id: int, items=None) -> Purchase:
    """
    Receive goods against an ordered or partial purchase.

    Per line: the requested quantity capped at what is outstanding, or the
    whole outstanding quantity when no items are given. Lines absent from
    an explicit request receive nothing. Received stock, received_quantity
    and the new status (received when every line is complete, otherwise
    partial) commit together.

    Raises:
        InvalidStateError: purchase is not ordered or partial
        ValidationError: malformed request or nothing left to receive
    """
    with unit_of_work():
        purchase = _locked_purchase(scope, purchase_id)
        if purchase.status not in RECEIVABLE_STATUSES:
            raise InvalidStateError("Purchase must be in ordered or partial status to receive goods")

        requested = _requested_quantities(purchase, items)

        received_lines = []
        for item in purchase.items:
            outstanding = item.outstanding_quantity
            if requested is None:
                to_receive = outstanding
            else:
                to_receive = min(requested.get(item.id, 0), outstanding)
            if to_receive > 0:
                item.received_quantity += to_receive
                received_lines.append({"product_id": item.product_id, "quantity": to_receive})

        if not received_lines:
            raise ValidationError("No items to receive")

        restock(received_lines, purchase.company_id)

        all_received = all(item.received_quantity >= item.quantity for item in purchase.items)
        previous = purchase.status
        purchase.status = PURCHASE_STATUS_RECEIVED if all_received else PURCHASE_STATUS_PARTIAL

    logger.info(
        "Purchase %s received %d line(s); status %s -> %s",
        purchase.order_number, len(received_lines), previous, purchase.status,
    )
    return purchase


def update_purchase(
    scope: TenantScope,
    purchase_id: int,
    *,
    notes=_UNSET,
    tax_cents=_UNSET,
    expected_delivery=_UNSET,
) -> Purchase:
    """Edit notes / tax / expected delivery of a pending purchase."""
    with unit_of_work():
        purchase = _locked_purchase(scope, purchase_id)
        if purchase.status != PURCHASE_STATUS_PENDING:
            raise InvalidStateError("Can only update pending purchases")

        if notes is not _UNSET:
            purchase.notes = notes
        if expected_delivery is not _UNSET:
            purchase.expected_delivery = _parse_expected_delivery(expected_delivery)
        if tax_cents is not _UNSET:
            purchase.tax_cents = parse_money(tax_cents, "tax_cents")
            purchase.total_cents = purchase.subtotal_cents + purchase.tax_cents

    return purchase


def delete_purchase(scope: TenantScope, purchase_id: int) -> None:
    """Only pending or cancelled purchases may be deleted."""
    with unit_of_work():
        purchase = _locked_purchase(scope, purchase_id)
        if purchase.status not in DELETABLE_STATUSES:
            raise InvalidStateError("Can only delete pending or cancelled purchases")
        order_number = purchase.order_number
        db.session.delete(purchase)

    logger.info("Purchase %s deleted", order_number)
