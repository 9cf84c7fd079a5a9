# Overview: Pytest coverage for company, user, customer and product administration.

import pytest

from erp.errors import ConflictError, ValidationError
from erp.services import company_service, customer_service, products_service, sales_service, user_service

from conftest import PASSWORD, auth_headers, get_auth_token


class TestCompanies:
    def test_create_with_admin(self, client, superadmin_headers):
        resp = client.post("/api/companies", headers=superadmin_headers, json={
            "name": "Gamma Goods",
            "email": "hello@gamma.test",
            "admin_user": {"name": "Gina", "email": "gina@gamma.test", "password": "gamma-pass"},
        })
        assert resp.status_code == 201
        assert resp.json["status"] == "active"
        assert [u["email"] for u in resp.json["users"]] == ["gina@gamma.test"]
        assert resp.json["users"][0]["role"] == "admin"
        assert get_auth_token(client, "gina@gamma.test", "gamma-pass")

    def test_duplicate_admin_email_creates_nothing(self, client, superadmin_headers, admin_a):
        resp = client.post("/api/companies", headers=superadmin_headers, json={
            "name": "Dup Co",
            "admin_user": {"name": "Dup", "email": admin_a.email, "password": "whatever"},
        })
        assert resp.status_code == 409
        listing = client.get("/api/companies?search=Dup", headers=superadmin_headers).json
        assert listing["pagination"]["total"] == 0

    def test_delete_refused_while_company_has_data(self, db_session, company_a, admin_a):
        with pytest.raises(ConflictError) as exc:
            company_service.delete_company(company_a.id)
        assert exc.value.details["users"] == 1

    def test_delete_empty_company(self, client, superadmin_headers, company_b):
        resp = client.delete(f"/api/companies/{company_b.id}", headers=superadmin_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/companies/{company_b.id}", headers=superadmin_headers).status_code == 404

    def test_stats(self, client, superadmin_headers, company_a, admin_a, customer_a, product_a):
        resp = client.get(f"/api/companies/{company_a.id}/stats", headers=superadmin_headers)
        assert resp.json == {"users": 1, "customers": 1, "products": 1, "sales": 0, "purchases": 0}

    def test_deactivate_blocks_login(self, client, superadmin_headers, company_a, admin_a):
        resp = client.put(f"/api/companies/{company_a.id}", headers=superadmin_headers, json={"status": "inactive"})
        assert resp.status_code == 200
        login = client.post("/api/auth/login", json={"email": admin_a.email, "password": PASSWORD})
        assert login.status_code == 403


class TestUsers:
    def test_admin_creates_manager_in_own_company(self, client, admin_headers, company_a, company_b):
        resp = client.post("/api/users", headers=admin_headers, json={
            "name": "Mia", "email": "mia@acme.test", "password": "manager1", "role": "manager",
            "company_id": company_b.id,
        })
        assert resp.status_code == 201
        assert resp.json["company_id"] == company_a.id

    def test_admin_cannot_create_superadmin(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={
            "name": "Eve", "email": "eve@acme.test", "password": "superpass", "role": "superadmin",
        })
        assert resp.status_code == 403

    def test_list_is_tenant_scoped(self, client, admin_headers, admin_a, staff_a, admin_b):
        emails = {row["email"] for row in client.get("/api/users", headers=admin_headers).json["items"]}
        assert emails == {admin_a.email, staff_a.email}

    def test_password_change_revokes_sessions(self, client, admin_headers, staff_a):
        staff_headers = auth_headers(get_auth_token(client, staff_a.email))
        resp = client.put(f"/api/users/{staff_a.id}", headers=admin_headers, json={"password": "brand-new"})
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401
        assert get_auth_token(client, staff_a.email, "brand-new")

    def test_cannot_delete_self(self, db_session, scope_a, admin_a):
        with pytest.raises(ValidationError):
            user_service.delete_user(scope_a, admin_a.id)

    def test_cannot_delete_user_with_orders(self, db_session, scope_a, staff_a, customer_a, product_a):
        sales_service.create_sale(scope_a, staff_a.id, customer_a.id, [{"product_id": product_a.id, "quantity": 1}])
        with pytest.raises(ConflictError):
            user_service.delete_user(scope_a, staff_a.id)

    def test_delete_user(self, client, admin_headers, staff_a):
        assert client.delete(f"/api/users/{staff_a.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/users/{staff_a.id}", headers=admin_headers).status_code == 404


class TestCustomers:
    def test_type_filter_includes_both(self, db_session, scope_a, customer_a, supplier_a):
        both = customer_service.create_customer(scope_a, {"name": "Two Way", "type": "both"})
        suppliers = customer_service.list_customers(scope_a, type="supplier")
        assert {row["id"] for row in suppliers["items"]} == {supplier_a.id, both.id}

    def test_search(self, client, admin_headers, customer_a, supplier_a):
        resp = client.get("/api/customers?search=steel", headers=admin_headers)
        assert [row["id"] for row in resp.json["items"]] == [supplier_a.id]

    def test_invalid_type(self, client, admin_headers):
        resp = client.post("/api/customers", headers=admin_headers, json={"name": "X", "type": "partner"})
        assert resp.status_code == 400

    def test_delete_with_orders_conflicts(self, client, admin_headers, scope_a, admin_a, customer_a, product_a):
        sales_service.create_sale(scope_a, admin_a.id, customer_a.id, [{"product_id": product_a.id, "quantity": 1}])
        resp = client.delete(f"/api/customers/{customer_a.id}", headers=admin_headers)
        assert resp.status_code == 409


class TestProducts:
    def test_create_with_opening_stock(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "sku": "NEW-1", "name": "New thing", "selling_price_cents": 1299,
            "initial_quantity": 12, "min_stock_level": 3, "location": "Shelf B",
        })
        assert resp.status_code == 201
        assert resp.json["inventory"]["quantity"] == 12
        assert resp.json["inventory"]["min_stock_level"] == 3
        assert resp.json["inventory"]["location"] == "Shelf B"
        assert resp.json["inventory"]["last_restocked_at"] is not None

    def test_default_min_stock_level(self, db_session, scope_a):
        product = products_service.create_product(scope_a, {"sku": "DEF-1", "name": "Default"})
        assert product.inventory.min_stock_level == 10
        assert product.inventory.quantity == 0

    def test_duplicate_sku_conflicts(self, client, admin_headers, product_a):
        resp = client.post("/api/products", headers=admin_headers, json={"sku": product_a.sku, "name": "Copy"})
        assert resp.status_code == 409

    def test_negative_price_rejected(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "sku": "NEG", "name": "Negative", "selling_price_cents": -1,
        })
        assert resp.status_code == 400

    def test_delete_referenced_product_conflicts(self, db_session, scope_a, admin_a, customer_a, product_a):
        sales_service.create_sale(scope_a, admin_a.id, customer_a.id, [{"product_id": product_a.id, "quantity": 1}])
        with pytest.raises(ConflictError):
            products_service.delete_product(scope_a, product_a.id)

    def test_categories(self, client, db_session, admin_headers, product_a, product_a2):
        product_a.category = "Hardware"
        product_a2.category = "Gizmos"
        db_session.commit()
        resp = client.get("/api/products/categories", headers=admin_headers)
        assert resp.json["items"] == ["Gizmos", "Hardware"]

    def test_inventory_adjust_endpoint(self, client, admin_headers, product_a):
        resp = client.post("/api/inventory/adjust", headers=admin_headers, json={
            "product_id": product_a.id, "quantity": 60, "type": "remove",
        })
        assert resp.status_code == 400
        assert resp.json["kind"] == "insufficient_stock"

        resp = client.post("/api/inventory/adjust", headers=admin_headers, json={
            "product_id": product_a.id, "quantity": 5, "type": "add", "reason": "Found a box",
        })
        assert resp.status_code == 200
        assert resp.json["quantity"] == 55
