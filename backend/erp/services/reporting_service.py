# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Read-only reporting over sales and purchases.

Date filters are calendar days: ``start`` includes its whole day from
midnight, ``end`` includes its whole day up to the last microsecond.
Nothing here writes to the database.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime, time

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Customer, Inventory, Product, Purchase, Sale
from ..models.purchases import (
    PURCHASE_STATUS_APPROVED,
    PURCHASE_STATUS_ORDERED,
    PURCHASE_STATUS_PARTIAL,
    PURCHASE_STATUS_PENDING,
)
from ..models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_PENDING
from erp.time_utils import end_of_day, parse_iso_date, to_iso_date
from .lifecycle_service import validate_status
from .tenant_service import TenantScope, company_filter, scoped_query

SALES_CSV_HEADERS = [
    "Order Number",
    "Date",
    "Customer ID",
    "Customer",
    "Customer Email",
    "Status",
    "Item SKU",
    "Item Name",
    "Qty",
    "Subtotal",
    "Tax",
    "Total",
    "Created By",
]

PURCHASES_CSV_HEADERS = [
    "Order Number",
    "Date",
    "Expected Delivery",
    "Supplier ID",
    "Supplier",
    "Supplier Email",
    "Status",
    "Item SKU",
    "Item Name",
    "Qty",
    "Subtotal",
    "Tax",
    "Total",
    "Created By",
]


def format_cents(cents: int | None) -> str:
    """1234 -> "12.34" without going through floats."""
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def _parse_day(value, field: str):
    if value is None or value == "":
        return None
    try:
        return parse_iso_date(value) if isinstance(value, str) else value
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def _filtered(model, scope: TenantScope, *, start, end, party_column, party_id, status, kind):
    query = scoped_query(model, scope)
    start_day = _parse_day(start, "start_date")
    end_day = _parse_day(end, "end_date")
    if start_day:
        query = query.filter(model.created_at >= datetime.combine(start_day, time.min))
    if end_day:
        query = query.filter(model.created_at <= end_of_day(end_day))
    if party_id is not None:
        query = query.filter(party_column == party_id)
    if status:
        query = query.filter(model.status == validate_status(kind, status))
    return query.order_by(model.created_at.desc(), model.id.desc()).all()


def _summary(orders, total_key: str) -> dict:
    by_status: dict[str, dict] = {}
    for order in orders:
        bucket = by_status.setdefault(order.status, {"count": 0, "total_cents": 0})
        bucket["count"] += 1
        bucket["total_cents"] += order.total_cents
    return {
        "total_orders": len(orders),
        total_key: sum(order.total_cents for order in orders),
        "total_tax_cents": sum(order.tax_cents for order in orders),
        "by_status": by_status,
    }


def sales_report(
    scope: TenantScope,
    start=None,
    end=None,
    customer_id: int | None = None,
    status: str | None = None,
) -> dict:
    sales = _filtered(
        Sale, scope, start=start, end=end,
        party_column=Sale.customer_id, party_id=customer_id, status=status, kind="sale",
    )
    return {
        "sales": [sale.to_dict(include_items=True) for sale in sales],
        "summary": _summary(sales, "total_revenue_cents"),
    }


def purchases_report(
    scope: TenantScope,
    start=None,
    end=None,
    supplier_id: int | None = None,
    status: str | None = None,
) -> dict:
    purchases = _filtered(
        Purchase, scope, start=start, end=end,
        party_column=Purchase.supplier_id, party_id=supplier_id, status=status, kind="purchase",
    )
    return {
        "purchases": [purchase.to_dict(include_items=True) for purchase in purchases],
        "summary": _summary(purchases, "total_amount_cents"),
    }


def _write_csv(headers, rows) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buf.getvalue()


def export_sales_csv(scope: TenantScope, start=None, end=None, customer_id=None, status=None) -> str:
    """One row per sale line; a sale without lines still gets one row."""
    sales = _filtered(
        Sale, scope, start=start, end=end,
        party_column=Sale.customer_id, party_id=customer_id, status=status, kind="sale",
    )
    rows = []
    for sale in sales:
        customer = sale.customer
        head = [
            sale.order_number,
            to_iso_date(sale.created_at),
            customer.id if customer else "",
            customer.name if customer else "",
            (customer.email or "") if customer else "",
            sale.status,
        ]
        tail = [
            format_cents(sale.subtotal_cents),
            format_cents(sale.tax_cents),
            format_cents(sale.total_cents),
            sale.user.name if sale.user else "",
        ]
        if sale.items:
            for item in sale.items:
                product = item.product
                rows.append(head + [
                    product.sku if product else "",
                    product.name if product else "",
                    item.quantity,
                ] + tail)
        else:
            rows.append(head + ["", "", ""] + tail)
    return _write_csv(SALES_CSV_HEADERS, rows)


def export_purchases_csv(scope: TenantScope, start=None, end=None, supplier_id=None, status=None) -> str:
    purchases = _filtered(
        Purchase, scope, start=start, end=end,
        party_column=Purchase.supplier_id, party_id=supplier_id, status=status, kind="purchase",
    )
    rows = []
    for purchase in purchases:
        supplier = purchase.supplier
        head = [
            purchase.order_number,
            to_iso_date(purchase.created_at),
            to_iso_date(purchase.expected_delivery) or "",
            supplier.id if supplier else "",
            supplier.name if supplier else "",
            (supplier.email or "") if supplier else "",
            purchase.status,
        ]
        tail = [
            format_cents(purchase.subtotal_cents),
            format_cents(purchase.tax_cents),
            format_cents(purchase.total_cents),
            purchase.user.name if purchase.user else "",
        ]
        if purchase.items:
            for item in purchase.items:
                product = item.product
                rows.append(head + [
                    product.sku if product else "",
                    product.name if product else "",
                    item.quantity,
                ] + tail)
        else:
            rows.append(head + ["", "", ""] + tail)
    return _write_csv(PURCHASES_CSV_HEADERS, rows)


def dashboard(scope: TenantScope, recent_limit: int = 5) -> dict:
    """Headline counts for the caller's tenant."""
    company_id = company_filter(scope)

    def _count(model, *criteria):
        query = db.session.query(func.count(model.id))
        if company_id is not None:
            query = query.filter(model.company_id == company_id)
        return query.filter(*criteria).scalar() or 0

    revenue_query = db.session.query(func.coalesce(func.sum(Sale.total_cents), 0)).filter(
        Sale.status != SALE_STATUS_CANCELLED
    )
    if company_id is not None:
        revenue_query = revenue_query.filter(Sale.company_id == company_id)

    recent = scoped_query(Sale, scope).order_by(Sale.created_at.desc(), Sale.id.desc()).limit(recent_limit).all()

    return {
        "customers": _count(Customer),
        "products": _count(Product),
        "sales": _count(Sale),
        "purchases": _count(Purchase),
        "revenue_cents": int(revenue_query.scalar() or 0),
        "low_stock": _count(Inventory, Inventory.quantity <= Inventory.min_stock_level),
        "pending_sales": _count(Sale, Sale.status == SALE_STATUS_PENDING),
        "open_purchases": _count(
            Purchase,
            Purchase.status.in_((
                PURCHASE_STATUS_PENDING,
                PURCHASE_STATUS_APPROVED,
                PURCHASE_STATUS_ORDERED,
                PURCHASE_STATUS_PARTIAL,
            )),
        ),
        "recent_sales": [sale.to_dict() for sale in recent],
    }
