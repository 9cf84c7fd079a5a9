# Overview: Pytest coverage for sales returns: eligibility, quantity bounds, tax apportioning and restock.

import pytest

from erp.errors import ConflictError, InvalidStateError, InvalidTransitionError, NotFoundError, ValidationError
from erp.extensions import db
from erp.models import Inventory, SalesReturn
from erp.services import return_service, sales_service

from conftest import stock_of


@pytest.fixture
def confirmed_sale(db_session, scope_a, admin_a, customer_a, product_a, product_a2):
    """Subtotal 100.00, tax 10.00: Widget 4 x 10.00 and Gadget 6 x 10.00."""
    sale = sales_service.create_sale(
        scope_a, admin_a.id, customer_a.id,
        [
            {"product_id": product_a.id, "quantity": 4, "unit_price_cents": 1000},
            {"product_id": product_a2.id, "quantity": 6, "unit_price_cents": 1000},
        ],
        tax_cents=1000,
    )
    return sales_service.transition_sale(scope_a, sale.id, "confirmed")


def _line(sale, product):
    return next(item for item in sale.items if item.product_id == product.id)


class TestCreateReturn:
    def test_apportions_tax(self, db_session, scope_a, admin_a, company_a, confirmed_sale, product_a):
        sales_return = return_service.create_return(
            scope_a, admin_a.id, confirmed_sale.id,
            [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 2}],
            reason="Damaged",
        )
        assert sales_return.status == "pending"
        assert sales_return.return_number == f"SR-{company_a.id:03d}-00001"
        assert sales_return.subtotal_cents == 2000
        assert sales_return.tax_cents == 200
        assert sales_return.total_cents == 2200

    def test_create_has_no_stock_effect(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        before = stock_of(product_a)
        return_service.create_return(
            scope_a, admin_a.id, confirmed_sale.id,
            [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 1}],
        )
        assert stock_of(product_a) == before

    def test_cannot_exceed_remaining(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        item_id = _line(confirmed_sale, product_a).id
        return_service.create_return(scope_a, admin_a.id, confirmed_sale.id, [{"sale_item_id": item_id, "quantity": 3}])

        with pytest.raises(ValidationError) as exc:
            return_service.create_return(scope_a, admin_a.id, confirmed_sale.id, [{"sale_item_id": item_id, "quantity": 2}])
        assert str(exc.value) == (
            "Cannot return 2 units of product. Only 1 remaining (ordered: 4, already returned: 3)"
        )

    def test_duplicate_lines_in_one_request_share_the_bound(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        item_id = _line(confirmed_sale, product_a).id
        with pytest.raises(ValidationError):
            return_service.create_return(
                scope_a, admin_a.id, confirmed_sale.id,
                [{"sale_item_id": item_id, "quantity": 3}, {"sale_item_id": item_id, "quantity": 2}],
            )
        assert db.session.query(SalesReturn).count() == 0

    def test_cancelled_returns_free_their_quantity(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        item_id = _line(confirmed_sale, product_a).id
        first = return_service.create_return(scope_a, admin_a.id, confirmed_sale.id, [{"sale_item_id": item_id, "quantity": 4}])
        return_service.transition_return(scope_a, first.id, "cancelled")

        second = return_service.create_return(scope_a, admin_a.id, confirmed_sale.id, [{"sale_item_id": item_id, "quantity": 4}])
        assert second.items[0].quantity == 4

    def test_returned_total_never_exceeds_ordered(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        item_id = _line(confirmed_sale, product_a).id
        for quantity in (1, 2, 2, 1, 1):
            try:
                return_service.create_return(
                    scope_a, admin_a.id, confirmed_sale.id, [{"sale_item_id": item_id, "quantity": quantity}]
                )
            except ValidationError:
                pass
        assert return_service.returned_quantities(confirmed_sale.id)[item_id] <= 4

    def test_pending_sale_not_returnable(self, db_session, scope_a, admin_a, customer_a, product_a):
        sale = sales_service.create_sale(scope_a, admin_a.id, customer_a.id, [{"product_id": product_a.id, "quantity": 1}])
        with pytest.raises(InvalidStateError):
            return_service.create_return(scope_a, admin_a.id, sale.id, [{"sale_item_id": sale.items[0].id, "quantity": 1}])

    def test_requires_items(self, db_session, scope_a, admin_a, confirmed_sale):
        with pytest.raises(ValidationError, match="At least one return item is required"):
            return_service.create_return(scope_a, admin_a.id, confirmed_sale.id, [])

    def test_item_must_belong_to_sale(self, db_session, scope_a, admin_a, confirmed_sale):
        with pytest.raises(ValidationError, match="is not part of the original sale"):
            return_service.create_return(scope_a, admin_a.id, confirmed_sale.id, [{"sale_item_id": 999999, "quantity": 1}])

    def test_quantity_at_least_one(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        with pytest.raises(ValidationError, match="Return quantity must be at least 1"):
            return_service.create_return(
                scope_a, admin_a.id, confirmed_sale.id,
                [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 0}],
            )

    def test_other_tenant_sale_not_found(self, db_session, scope_b, admin_b, confirmed_sale, product_a):
        with pytest.raises(NotFoundError):
            return_service.create_return(
                scope_b, admin_b.id, confirmed_sale.id,
                [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 1}],
            )


def test_apportion_tax_rounds_half_up():
    assert return_service.apportion_tax(1000, 1000, 3000) == 333
    assert return_service.apportion_tax(1500, 1, 2000) == 1
    assert return_service.apportion_tax(500, 1, 2000) == 0
    assert return_service.apportion_tax(100, 50, 0) == 0


class TestReturnLifecycle:
    def test_completing_restocks(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        before = stock_of(product_a)
        sales_return = return_service.create_return(
            scope_a, admin_a.id, confirmed_sale.id,
            [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 2}],
        )
        return_service.transition_return(scope_a, sales_return.id, "approved")
        sales_return = return_service.transition_return(scope_a, sales_return.id, "completed")

        assert sales_return.status == "completed"
        assert stock_of(product_a) == before + 2
        inventory = db.session.query(Inventory).filter_by(product_id=product_a.id).one()
        assert inventory.last_restocked_at is not None

    def test_pending_cannot_complete_directly(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        sales_return = return_service.create_return(
            scope_a, admin_a.id, confirmed_sale.id,
            [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 1}],
        )
        with pytest.raises(InvalidTransitionError):
            return_service.transition_return(scope_a, sales_return.id, "completed")

    def test_only_pending_can_be_deleted(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        sales_return = return_service.create_return(
            scope_a, admin_a.id, confirmed_sale.id,
            [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 1}],
        )
        return_service.transition_return(scope_a, sales_return.id, "approved")
        with pytest.raises(InvalidStateError):
            return_service.delete_return(scope_a, sales_return.id)

    def test_returnable_items(self, db_session, scope_a, admin_a, confirmed_sale, product_a, product_a2):
        return_service.create_return(
            scope_a, admin_a.id, confirmed_sale.id,
            [{"sale_item_id": _line(confirmed_sale, product_a).id, "quantity": 4}],
        )
        result = return_service.get_returnable_items(scope_a, confirmed_sale.id)
        rows = {row["product_id"]: row for row in result["returnable_items"]}

        assert rows[product_a.id]["returned_quantity"] == 4
        assert rows[product_a.id]["remaining_quantity"] == 0
        assert rows[product_a.id]["can_return"] is False
        assert rows[product_a2.id]["remaining_quantity"] == 6
        assert rows[product_a2.id]["can_return"] is True


class TestReturnsAgainstCancelledSales:
    """A unit sold, cancelled and returned is put back on the shelf once."""

    def _return_two(self, scope_a, admin_a, sale, product_a):
        return return_service.create_return(
            scope_a, admin_a.id, sale.id,
            [{"sale_item_id": _line(sale, product_a).id, "quantity": 2}],
        )

    def test_cancel_refused_while_return_is_open(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        sales_return = self._return_two(scope_a, admin_a, confirmed_sale, product_a)

        with pytest.raises(ConflictError):
            sales_service.transition_sale(scope_a, confirmed_sale.id, "cancelled")

        return_service.transition_return(scope_a, sales_return.id, "approved")
        return_service.transition_return(scope_a, sales_return.id, "completed")

        assert sales_service.get_sale(scope_a, confirmed_sale.id).status == "confirmed"
        assert stock_of(product_a) == 50 - 4 + 2

    def test_cancel_refused_after_completed_return(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        sales_return = self._return_two(scope_a, admin_a, confirmed_sale, product_a)
        return_service.transition_return(scope_a, sales_return.id, "approved")
        return_service.transition_return(scope_a, sales_return.id, "completed")

        with pytest.raises(ConflictError):
            sales_service.transition_sale(scope_a, confirmed_sale.id, "cancelled")

        assert stock_of(product_a) == 50 - 4 + 2

    def test_cancel_allowed_once_returns_are_cancelled(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        sales_return = self._return_two(scope_a, admin_a, confirmed_sale, product_a)
        return_service.transition_return(scope_a, sales_return.id, "cancelled")

        sale = sales_service.transition_sale(scope_a, confirmed_sale.id, "cancelled")

        assert sale.status == "cancelled"
        assert stock_of(product_a) == 50

    def test_return_on_cancelled_sale_cannot_complete(self, db_session, scope_a, admin_a, confirmed_sale, product_a):
        sales_return = self._return_two(scope_a, admin_a, confirmed_sale, product_a)
        return_service.transition_return(scope_a, sales_return.id, "approved")
        # Sale cancelled by a direct write, bypassing the service guard.
        confirmed_sale.status = "cancelled"
        db_session.commit()

        with pytest.raises(InvalidStateError):
            return_service.transition_return(scope_a, sales_return.id, "completed")

        assert return_service.get_return(scope_a, sales_return.id).status == "approved"
        assert stock_of(product_a) == 50 - 4
