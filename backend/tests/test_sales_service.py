# Overview: Pytest coverage for the sales order lifecycle and its stock effects.

import pytest

from erp.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from erp.extensions import db
from erp.models import Sale
from erp.services import inventory_service, return_service, sales_service

from conftest import make_product, stock_of


def _sale(scope, user, customer, *lines, tax_cents=0):
    items = [{"product_id": p.id, "quantity": q} for p, q in lines]
    return sales_service.create_sale(scope, user.id, customer.id, items, tax_cents=tax_cents)


class TestCreateSale:
    def test_deducts_stock_and_stays_low(self, db_session, scope_a, admin_a, company_a, customer_a):
        """5 on hand with minimum 10: selling 3 leaves 2, still low."""
        product = make_product(db_session, company_a, "P-1", "Low product", quantity=5, min_stock_level=10)

        sale = _sale(scope_a, admin_a, customer_a, (product, 3))

        assert sale.status == "pending"
        assert stock_of(product) == 2
        assert product.id in [row.product_id for row in inventory_service.get_low_stock(scope_a)]

    def test_totals_use_selling_price_by_default(self, db_session, scope_a, admin_a, customer_a, product_a, product_a2):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 2), (product_a2, 1), tax_cents=450)
        assert sale.subtotal_cents == 2 * 1000 + 2500
        assert sale.tax_cents == 450
        assert sale.total_cents == 4950
        assert [item.line_total_cents for item in sale.items] == [2000, 2500]

    def test_explicit_unit_price(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = sales_service.create_sale(
            scope_a, admin_a.id, customer_a.id,
            [{"product_id": product_a.id, "quantity": 3, "unit_price_cents": 900}],
        )
        assert sale.subtotal_cents == 2700

    def test_order_number_format(self, db_session, scope_a, admin_a, company_a, customer_a, product_a):
        first = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        second = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        assert first.order_number == f"SO-{company_a.id:03d}-00001"
        assert second.order_number == f"SO-{company_a.id:03d}-00002"

    def test_order_numbers_unique_across_rapid_creates(self, db_session, scope_a, admin_a, customer_a, product_a):
        numbers = {_sale(scope_a, admin_a, customer_a, (product_a, 1)).order_number for _ in range(10)}
        assert len(numbers) == 10

    def test_insufficient_stock_persists_nothing(self, db_session, scope_a, admin_a, customer_a, product_a, product_a2):
        with pytest.raises(InsufficientStockError) as exc:
            _sale(scope_a, admin_a, customer_a, (product_a, 5), (product_a2, 25))

        assert exc.value.details == [{
            "product_id": product_a2.id,
            "product_name": "Gadget",
            "requested": 25,
            "available": 20,
        }]
        assert stock_of(product_a) == 50
        assert stock_of(product_a2) == 20
        assert db.session.query(Sale).count() == 0

    def test_failed_create_does_not_consume_order_number(self, db_session, scope_a, admin_a, company_a, customer_a, product_a):
        with pytest.raises(InsufficientStockError):
            _sale(scope_a, admin_a, customer_a, (product_a, 500))
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        assert sale.order_number == f"SO-{company_a.id:03d}-00001"

    def test_supplier_cannot_buy(self, db_session, scope_a, admin_a, supplier_a, product_a):
        with pytest.raises(ValidationError, match="supplier"):
            _sale(scope_a, admin_a, supplier_a, (product_a, 1))

    def test_requires_items(self, db_session, scope_a, admin_a, customer_a):
        with pytest.raises(ValidationError):
            sales_service.create_sale(scope_a, admin_a.id, customer_a.id, [])

    def test_rejects_zero_quantity(self, db_session, scope_a, admin_a, customer_a, product_a):
        with pytest.raises(ValidationError):
            _sale(scope_a, admin_a, customer_a, (product_a, 0))

    def test_foreign_customer_not_found(self, db_session, scope_a, admin_a, customer_b, product_a):
        with pytest.raises(NotFoundError):
            _sale(scope_a, admin_a, customer_b, (product_a, 1))

    def test_foreign_product_not_found(self, db_session, scope_a, admin_a, customer_a, product_b):
        with pytest.raises(NotFoundError):
            _sale(scope_a, admin_a, customer_a, (product_b, 1))
        assert stock_of(product_b) == 50


class TestTransitions:
    def test_full_lifecycle(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 2))
        for status in ("confirmed", "shipped", "delivered"):
            sale = sales_service.transition_sale(scope_a, sale.id, status)
            assert sale.status == status
        assert stock_of(product_a) == 48

    def test_delivered_to_confirmed_rejected(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 2))
        for status in ("confirmed", "shipped", "delivered"):
            sales_service.transition_sale(scope_a, sale.id, status)

        with pytest.raises(InvalidTransitionError):
            sales_service.transition_sale(scope_a, sale.id, "confirmed")

        assert sales_service.get_sale(scope_a, sale.id).status == "delivered"
        assert stock_of(product_a) == 48

    def test_cancel_confirmed_restores_stock(self, db_session, scope_a, admin_a, company_a, customer_a):
        product = make_product(db_session, company_a, "R-1", "Restock me", quantity=10)
        sale = _sale(scope_a, admin_a, customer_a, (product, 3))
        sales_service.transition_sale(scope_a, sale.id, "confirmed")
        assert stock_of(product) == 7

        sale = sales_service.transition_sale(scope_a, sale.id, "cancelled")

        assert sale.status == "cancelled"
        assert stock_of(product) == 10

    def test_cancelled_is_terminal(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        sales_service.transition_sale(scope_a, sale.id, "cancelled")
        with pytest.raises(InvalidTransitionError):
            sales_service.transition_sale(scope_a, sale.id, "cancelled")
        assert stock_of(product_a) == 50

    def test_skip_ahead_rejected(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        with pytest.raises(InvalidTransitionError):
            sales_service.transition_sale(scope_a, sale.id, "delivered")


class TestUpdateAndDelete:
    def test_update_tax_recomputes_total(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        sale = sales_service.update_sale(scope_a, sale.id, tax_cents=150, notes="Rush")
        assert sale.total_cents == 1150
        assert sale.notes == "Rush"

    def test_update_requires_pending(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        sales_service.transition_sale(scope_a, sale.id, "confirmed")
        with pytest.raises(InvalidStateError):
            sales_service.update_sale(scope_a, sale.id, notes="late edit")

    def test_delete_restores_stock(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 4))
        sales_service.delete_sale(scope_a, sale.id)
        assert stock_of(product_a) == 50
        assert db.session.query(Sale).count() == 0

    def test_delete_cancelled_does_not_restock_twice(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 4))
        sales_service.transition_sale(scope_a, sale.id, "cancelled")
        sales_service.delete_sale(scope_a, sale.id)
        assert stock_of(product_a) == 50

    def test_delete_delivered_refused(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        for status in ("confirmed", "shipped", "delivered"):
            sales_service.transition_sale(scope_a, sale.id, status)
        with pytest.raises(InvalidStateError):
            sales_service.delete_sale(scope_a, sale.id)

    def test_delete_with_returns_refused(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = _sale(scope_a, admin_a, customer_a, (product_a, 2))
        sales_service.transition_sale(scope_a, sale.id, "confirmed")
        return_service.create_return(scope_a, admin_a.id, sale.id, [{"sale_item_id": sale.items[0].id, "quantity": 1}])
        with pytest.raises(ConflictError):
            sales_service.delete_sale(scope_a, sale.id)


class TestListing:
    def test_filters_and_search(self, db_session, scope_a, admin_a, customer_a, product_a):
        first = _sale(scope_a, admin_a, customer_a, (product_a, 1))
        _sale(scope_a, admin_a, customer_a, (product_a, 1))
        sales_service.transition_sale(scope_a, first.id, "confirmed")

        assert sales_service.list_sales(scope_a, status="confirmed")["pagination"]["total"] == 1
        assert sales_service.list_sales(scope_a, search="Carol")["pagination"]["total"] == 2
        assert sales_service.list_sales(scope_a, search=first.order_number)["items"][0]["id"] == first.id

    def test_unknown_status_filter(self, db_session, scope_a):
        with pytest.raises(ValidationError):
            sales_service.list_sales(scope_a, status="lost")
