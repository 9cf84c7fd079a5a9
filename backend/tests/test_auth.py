# Overview: Pytest coverage for login, sessions and role checks over HTTP.

import pytest

from conftest import PASSWORD, auth_headers, get_auth_token


class TestLogin:
    def test_login_returns_token_and_company(self, client, admin_a, company_a):
        resp = client.post("/api/auth/login", json={"email": "ADMIN@acme.test ", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["role"] == "admin"
        assert resp.json["company"]["id"] == company_a.id

    def test_wrong_password(self, client, admin_a):
        resp = client.post("/api/auth/login", json={"email": admin_a.email, "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json["kind"] == "unauthorized"

    def test_inactive_user_refused(self, client, db_session, admin_a):
        admin_a.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"email": admin_a.email, "password": PASSWORD})
        assert resp.status_code == 401

    def test_inactive_company_refused(self, client, db_session, admin_a, company_a):
        company_a.status = "inactive"
        db_session.commit()
        resp = client.post("/api/auth/login", json={"email": admin_a.email, "password": PASSWORD})
        assert resp.status_code == 403

    def test_me_and_logout(self, client, admin_a):
        headers = auth_headers(get_auth_token(client, admin_a.email))
        assert client.get("/api/auth/me", headers=headers).json["user"]["email"] == admin_a.email

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_deactivated_company_revokes_live_session(self, client, db_session, admin_a, company_a):
        headers = auth_headers(get_auth_token(client, admin_a.email))
        company_a.status = "inactive"
        db_session.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestRegister:
    def test_admin_registers_staff_in_own_company(self, client, admin_headers, company_a):
        resp = client.post("/api/auth/register", headers=admin_headers, json={
            "name": "New Hire", "email": "hire@acme.test", "password": "longenough",
        })
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "staff"
        assert resp.json["user"]["company_id"] == company_a.id

    def test_short_password_rejected(self, client, admin_headers):
        resp = client.post("/api/auth/register", headers=admin_headers, json={
            "name": "New Hire", "email": "hire@acme.test", "password": "12345",
        })
        assert resp.status_code == 400

    def test_duplicate_email_conflict(self, client, admin_headers, staff_a):
        resp = client.post("/api/auth/register", headers=admin_headers, json={
            "name": "Again", "email": staff_a.email, "password": "longenough",
        })
        assert resp.status_code == 409

    def test_staff_cannot_register(self, client, staff_headers):
        resp = client.post("/api/auth/register", headers=staff_headers, json={
            "name": "Nope", "email": "nope@acme.test", "password": "longenough",
        })
        assert resp.status_code == 403
        assert resp.json["required_roles"] == ["admin"]


@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/api/customers"),
        ("GET", "/api/products"),
        ("GET", "/api/inventory"),
        ("POST", "/api/inventory/adjust"),
        ("GET", "/api/sales"),
        ("POST", "/api/sales"),
        ("GET", "/api/purchases"),
        ("GET", "/api/sales-returns"),
        ("GET", "/api/reports/dashboard"),
        ("GET", "/api/users"),
        ("GET", "/api/companies"),
    ],
)
def test_requires_auth(client, db_session, method, path):
    resp = getattr(client, method.lower())(path)
    assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"


def test_garbage_token_rejected(client, db_session):
    resp = client.get("/api/sales", headers=auth_headers("not-a-token"))
    assert resp.status_code == 401


class TestRoleChecks:
    def test_staff_cannot_adjust_inventory(self, client, staff_headers, product_a):
        resp = client.post("/api/inventory/adjust", headers=staff_headers, json={
            "product_id": product_a.id, "quantity": 1, "type": "add",
        })
        assert resp.status_code == 403

    def test_staff_cannot_list_users(self, client, staff_headers):
        assert client.get("/api/users", headers=staff_headers).status_code == 403

    def test_admin_cannot_manage_companies(self, client, admin_headers):
        assert client.get("/api/companies", headers=admin_headers).status_code == 403

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
