"""
Pytest fixtures for DukaPOS backend tests.

Provides test database setup, two tenants with an admin and a plain user
each, stocked products, and API client helpers.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from dukapos import create_app
from dukapos.extensions import db
from dukapos.models import Business, User, Product
from dukapos.models.auth import ROLE_ADMIN, ROLE_USER
from dukapos.services.auth_service import hash_password
from dukapos.services.tenant_service import TenantContext

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SIGNUP_VERIFY_BACKOFF': 0,
        'BCRYPT_ROUNDS': 4,
    })

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
def business_a(db_session):
    """Business A (first tenant), UTC calendar."""
    business = Business(name="Duka A", timezone="UTC", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def business_b(db_session):
    """Business B (second tenant), Nairobi calendar."""
    business = Business(name="Duka B", timezone="Africa/Nairobi", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


def _make_user(db_session, business, email, role):
    user = User(
        business_id=business.id,
        email=email,
        first_name="Test",
        last_name=role.title(),
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_a(db_session, business_a):
    return _make_user(db_session, business_a, "admin_a@duka.test", ROLE_ADMIN)


@pytest.fixture(scope='function')
def clerk_a(db_session, business_a):
    return _make_user(db_session, business_a, "clerk_a@duka.test", ROLE_USER)


@pytest.fixture(scope='function')
def admin_b(db_session, business_b):
    return _make_user(db_session, business_b, "admin_b@duka.test", ROLE_ADMIN)


@pytest.fixture(scope='function')
def ctx_a(admin_a):
    """Admin tenant context for Business A."""
    return TenantContext(business_id=admin_a.business_id, role=ROLE_ADMIN, user_id=admin_a.id)


@pytest.fixture(scope='function')
def clerk_ctx_a(clerk_a):
    """Non-admin tenant context for Business A."""
    return TenantContext(business_id=clerk_a.business_id, role=ROLE_USER, user_id=clerk_a.id)


@pytest.fixture(scope='function')
def ctx_b(admin_b):
    """Admin tenant context for Business B."""
    return TenantContext(business_id=admin_b.business_id, role=ROLE_ADMIN, user_id=admin_b.id)


def make_product(db_session, business, name="Sugar 1kg", stock=10, buying_price="5.00", description=None):
    product = Product(
        business_id=business.id,
        name=name,
        description=description or f"{name} (test)",
        stock_quantity=stock,
        buying_price=Decimal(buying_price),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, business_a):
    """Product in Business A: stock 10, unit cost 5.00."""
    return make_product(db_session, business_a)


@pytest.fixture(scope='function')
def product_b(db_session, business_b):
    """Product in Business B."""
    return make_product(db_session, business_b, name="Rice 2kg", stock=20, buying_price="3.00")


def sale_patch(product, quantity=3, selling_price="8.00", payment_method="cash", sale_date=None, **extra):
    """Validated-shape sale patch for sales_service.record_sale."""
    patch = {
        "product_id": product.id,
        "quantity": quantity,
        "selling_price": Decimal(selling_price),
        "payment_method": payment_method,
        "sale_date": sale_date or datetime(2025, 9, 1, 10, 0, 0),
    }
    patch.update(extra)
    return patch


CREDIT = {"customer_name": "Juma", "due_date": "2025-09-30"}


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
def clerk_headers(client, clerk_a):
    return auth_headers(get_auth_token(client, clerk_a.email))


@pytest.fixture(scope='function')
def admin_b_headers(client, admin_b):
    return auth_headers(get_auth_token(client, admin_b.email))
