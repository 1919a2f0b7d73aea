"""
Pytest fixtures for back-office tests.

Provides test database setup, two tenants with warehouses and users, seeded
products, and test client helpers.
"""

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Company, User, Warehouse
from backoffice.services.auth_service import hash_password
from backoffice.services.products_service import create_product, create_variable_product, VariationInput
from backoffice.validation import InventoryEntryInput


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSFER_RETRY_BACKOFF': 0,
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


def _company(db_session, name: str) -> Company:
    company = Company(company_name=name, status="active")
    db_session.add(company)
    db_session.commit()
    return company


def _warehouse(db_session, name: str, company_id) -> Warehouse:
    warehouse = Warehouse(warehouse_name=name, warehouse_address=f"{name} Road", company_id=company_id)
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


def _user(db_session, username: str, company_id) -> User:
    user = User(
        company_id=company_id,
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(PASSWORD, rounds=4),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant)."""
    return _company(db_session, "Company A - Acme Corp")


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    return _company(db_session, "Company B - Beta Inc")


@pytest.fixture(scope='function')
def wh_main(db_session, company_a):
    """Company A's default warehouse."""
    warehouse = _warehouse(db_session, "Main", company_a.id)
    company_a.warehouse_id = warehouse.id
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def wh_north(db_session, company_a):
    return _warehouse(db_session, "North", company_a.id)


@pytest.fixture(scope='function')
def wh_south(db_session, company_a):
    return _warehouse(db_session, "South", company_a.id)


@pytest.fixture(scope='function')
def wh_b(db_session, company_b):
    """Warehouse owned by Company B."""
    return _warehouse(db_session, "Beta Depot", company_b.id)


@pytest.fixture(scope='function')
def user_a(db_session, company_a):
    return _user(db_session, "user_a", company_a.id)


@pytest.fixture(scope='function')
def user_b(db_session, company_b):
    return _user(db_session, "user_b", company_b.id)


@pytest.fixture(scope='function')
def product_a(db_session, company_a, wh_main, wh_north):
    """Single product in Company A: Main=10, North=0."""
    product = create_product(
        patch={"product_name": "Widget", "product_code": "W-1"},
        inventory=[
            InventoryEntryInput(warehouse_id=wh_main.id, quantity=10),
            InventoryEntryInput(warehouse_id=wh_north.id, quantity=0),
        ],
        company_id=company_a.id,
    )
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variable_product(db_session, company_a, wh_main):
    """Parent with two variants seeded in Main: Small=5, Large=3."""
    parent, variants = create_variable_product(
        patch={"product_name": "Shirt", "product_code": "SH"},
        variations=[
            VariationInput(product_name="Shirt S", quantity=5, product_code="SH-S"),
            VariationInput(product_name="Shirt L", quantity=3, product_code="SH-L"),
        ],
        company_id=company_a.id,
    )
    db_session.commit()
    return parent, variants


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_a(client, user_a):
    return auth_headers(get_auth_token(client, user_a.username))


@pytest.fixture(scope='function')
def headers_b(client, user_b):
    return auth_headers(get_auth_token(client, user_b.username))
