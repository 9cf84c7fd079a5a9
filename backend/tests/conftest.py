"""
Pytest fixtures for ERP backend tests.

Provides test database setup, two tenant companies with users of every
role, customers / suppliers, products with inventory, and the test client.
"""

import pytest
from erp import create_app
from erp.config import TestConfig
from erp.extensions import db
from erp.models import Company, Customer, Inventory, Product, User
from erp.models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF, ROLE_SUPERADMIN
from erp.services.auth_service import hash_password
from erp.services.tenant_service import TenantScope

PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant)."""
    company = Company(name="Acme Trading", email="office@acme.test", status="active")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    company = Company(name="Beta Supplies", email="office@beta.test", status="active")
    db_session.add(company)
    db_session.commit()
    return company


def _make_user(db_session, company, name, email, role):
    user = User(
        company_id=company.id if company else None,
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def superadmin(db_session):
    return _make_user(db_session, None, "Root", "root@erp.test", ROLE_SUPERADMIN)


@pytest.fixture(scope='function')
def admin_a(db_session, company_a):
    return _make_user(db_session, company_a, "Alice Admin", "admin@acme.test", ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager_a(db_session, company_a):
    return _make_user(db_session, company_a, "Mark Manager", "manager@acme.test", ROLE_MANAGER)


@pytest.fixture(scope='function')
def staff_a(db_session, company_a):
    return _make_user(db_session, company_a, "Sam Staff", "staff@acme.test", ROLE_STAFF)


@pytest.fixture(scope='function')
def admin_b(db_session, company_b):
    return _make_user(db_session, company_b, "Bob Admin", "admin@beta.test", ROLE_ADMIN)


@pytest.fixture(scope='function')
def scope_a(admin_a):
    """Tenant scope of Company A's admin."""
    return TenantScope.for_user(admin_a)


@pytest.fixture(scope='function')
def scope_b(admin_b):
    return TenantScope.for_user(admin_b)


@pytest.fixture(scope='function')
def customer_a(db_session, company_a):
    customer = Customer(company_id=company_a.id, name="Carol Customer", email="carol@example.test", type="customer")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier_a(db_session, company_a):
    supplier = Customer(company_id=company_a.id, name="Steel Supplier", email="sales@steel.test", type="supplier")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer_b(db_session, company_b):
    customer = Customer(company_id=company_b.id, name="Dave Customer", type="customer")
    db_session.add(customer)
    db_session.commit()
    return customer


def make_product(db_session, company, sku, name, *, price_cents=1000, cost_cents=600, quantity=50, min_stock_level=10):
    """Product with its inventory row."""
    product = Product(
        company_id=company.id,
        sku=sku,
        name=name,
        selling_price_cents=price_cents,
        cost_price_cents=cost_cents,
    )
    db_session.add(product)
    db_session.flush()
    db_session.add(Inventory(
        product_id=product.id,
        company_id=company.id,
        quantity=quantity,
        min_stock_level=min_stock_level,
    ))
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, company_a):
    """Product in Company A, 50 on hand."""
    return make_product(db_session, company_a, "WID-001", "Widget")


@pytest.fixture(scope='function')
def product_a2(db_session, company_a):
    return make_product(db_session, company_a, "GAD-001", "Gadget", price_cents=2500, cost_cents=1500, quantity=20)


@pytest.fixture(scope='function')
def product_b(db_session, company_b):
    """Product in Company B."""
    return make_product(db_session, company_b, "WID-001", "Beta Widget", price_cents=2000)


def stock_of(product) -> int:
    """Current on-hand quantity, read fresh from the database."""
    inventory = db.session.query(Inventory).filter_by(product_id=product.id).one()
    db.session.refresh(inventory)
    return inventory.quantity


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_a):
    return auth_headers(get_auth_token(client, admin_a.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff_a):
    return auth_headers(get_auth_token(client, staff_a.email))


@pytest.fixture(scope='function')
def admin_b_headers(client, admin_b):
    return auth_headers(get_auth_token(client, admin_b.email))


@pytest.fixture(scope='function')
def superadmin_headers(client, superadmin):
    return auth_headers(get_auth_token(client, superadmin.email))
