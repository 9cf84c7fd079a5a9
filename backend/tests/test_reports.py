# Overview: Pytest coverage for sales/purchase reports, CSV exports and the dashboard.

import csv
import io
from datetime import datetime

import pytest

from erp.errors import ValidationError
from erp.services import purchase_service, reporting_service, sales_service


@pytest.fixture
def two_sales(db_session, scope_a, admin_a, customer_a, product_a, product_a2):
    first = sales_service.create_sale(
        scope_a, admin_a.id, customer_a.id,
        [{"product_id": product_a.id, "quantity": 2}, {"product_id": product_a2.id, "quantity": 1}],
        tax_cents=450,
    )
    second = sales_service.create_sale(
        scope_a, admin_a.id, customer_a.id, [{"product_id": product_a.id, "quantity": 1}],
    )
    sales_service.transition_sale(scope_a, second.id, "cancelled")
    return first, second


def test_format_cents():
    assert reporting_service.format_cents(123456) == "1234.56"
    assert reporting_service.format_cents(5) == "0.05"
    assert reporting_service.format_cents(-250) == "-2.50"
    assert reporting_service.format_cents(None) == "0.00"


class TestSalesReport:
    def test_summary(self, scope_a, two_sales):
        summary = reporting_service.sales_report(scope_a)["summary"]
        assert summary["total_orders"] == 2
        assert summary["total_revenue_cents"] == 4950 + 1000
        assert summary["total_tax_cents"] == 450
        assert summary["by_status"] == {
            "pending": {"count": 1, "total_cents": 4950},
            "cancelled": {"count": 1, "total_cents": 1000},
        }

    def test_status_filter(self, scope_a, two_sales):
        report = reporting_service.sales_report(scope_a, status="cancelled")
        assert [row["id"] for row in report["sales"]] == [two_sales[1].id]

    def test_end_date_includes_whole_day(self, db_session, scope_a, two_sales):
        first, _ = two_sales
        first.created_at = datetime(2026, 3, 14, 23, 59, 30)
        db_session.commit()

        report = reporting_service.sales_report(scope_a, start="2026-03-14", end="2026-03-14")
        assert [row["id"] for row in report["sales"]] == [first.id]

    def test_bad_date(self, scope_a):
        with pytest.raises(ValidationError):
            reporting_service.sales_report(scope_a, start="14/03/2026")

    def test_other_tenant_sees_nothing(self, scope_b, two_sales):
        assert reporting_service.sales_report(scope_b)["summary"]["total_orders"] == 0


class TestCsvExport:
    def test_sales_csv_has_one_row_per_item(self, scope_a, two_sales):
        rows = list(csv.reader(io.StringIO(reporting_service.export_sales_csv(scope_a))))
        assert rows[0] == reporting_service.SALES_CSV_HEADERS
        assert len(rows) == 1 + 3
        first, _ = two_sales
        first_rows = [row for row in rows[1:] if row[0] == first.order_number]
        assert {row[6] for row in first_rows} == {"WID-001", "GAD-001"}
        assert first_rows[0][9:12] == ["45.00", "4.50", "49.50"]
        assert first_rows[0][12] == "Alice Admin"

    def test_purchases_csv(self, db_session, scope_a, admin_a, supplier_a, product_a):
        purchase_service.create_purchase(
            scope_a, admin_a.id, supplier_a.id,
            [{"product_id": product_a.id, "quantity": 3, "unit_price_cents": 199}],
            expected_delivery="2026-12-24",
        )
        rows = list(csv.reader(io.StringIO(reporting_service.export_purchases_csv(scope_a))))
        assert rows[0] == reporting_service.PURCHASES_CSV_HEADERS
        assert rows[1][2] == "2026-12-24"
        assert rows[1][4] == "Steel Supplier"
        assert rows[1][10] == "5.97"

    def test_export_endpoint(self, client, admin_headers, two_sales):
        resp = client.get("/api/reports/sales/export?status=pending", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert resp.headers["Content-Disposition"].startswith("attachment; filename=sales_report_")
        assert len(resp.get_data(as_text=True).strip().splitlines()) == 1 + 2


class TestDashboard:
    def test_counts(self, scope_a, two_sales, supplier_a):
        data = reporting_service.dashboard(scope_a)
        assert data["sales"] == 2
        assert data["pending_sales"] == 1
        assert data["revenue_cents"] == 4950
        assert data["customers"] == 2
        assert data["products"] == 2
        assert data["low_stock"] == 0
        assert len(data["recent_sales"]) == 2

    def test_endpoint(self, client, admin_headers, two_sales):
        resp = client.get("/api/reports/dashboard", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["revenue_cents"] == 4950
