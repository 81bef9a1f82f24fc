"""
Pytest fixtures for boutique backend tests.

Provides test database setup, an admin login and small data factories.
"""

import pytest
from boutique import create_app
from boutique.extensions import db
from boutique.models import InventoryItem, Customer, BusinessProfile
from boutique.services.auth_service import ensure_admin_account


ADMIN_EMAIL = "admin@test.local"
ADMIN_PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_EMAIL': ADMIN_EMAIL,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'ALLOW_NEGATIVE_STOCK': True,
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
def admin(db_session):
    """The single administrator account."""
    account, _created = ensure_admin_account(ADMIN_EMAIL, ADMIN_PASSWORD)
    return account


@pytest.fixture(scope='function')
def token(client, admin):
    return get_auth_token(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture(scope='function')
def headers(token):
    return auth_headers(token)


@pytest.fixture(scope='function')
def profile(db_session):
    p = BusinessProfile(
        business_name="Aleen Clothing",
        address="Baba Jaan Chawk, Pune",
        phone="+91 98765 43210",
        gstin="27XXXXX1234X1ZX",
        default_tax_rate_bps=1800,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: make_item(name="Kurti", price_cents=50000, cost_cents=30000, quantity=10, ...)."""
    def _make(name="Cotton Kurti", category="Kurtis", price_cents=50000, cost_cents=30000, quantity=10, **extra):
        item = InventoryItem(
            name=name,
            category=category,
            price_cents=price_cents,
            cost_cents=cost_cents,
            quantity=quantity,
            **extra,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Priya Sharma", phone="9876543210", **extra):
        customer = Customer(name=name, phone=phone, **extra)
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for an account."""
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
