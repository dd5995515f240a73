"""
Pytest fixtures for print shop backend tests.

Provides an app on a throwaway SQLite file, a wiped database per test,
two tenants (ACME and BETA) with branches, users and auth helpers.
"""

from decimal import Decimal

import pytest
from flask import g

from printshop import create_app
from printshop.extensions import db
from printshop.models import Customer, Product, WeightPricingTier
from printshop.services import company_service
from printshop.services.auth_service import create_user, assign_role

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("db") / "printshop-test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh database for each test."""
    # Requests reuse the session-wide app context, so g outlives a test
    for name in ("current_user", "company_id", "branch_id", "session_context"):
        g.pop(name, None)

    # Clear all data but keep schema
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant), 10% tax."""
    return company_service.create_company(patch={"name": "Acme Printing", "code": "ACME", "tax_rate": Decimal("10")})


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant), no tax."""
    return company_service.create_company(patch={"name": "Beta Press", "code": "BETA", "tax_rate": Decimal("0")})


@pytest.fixture(scope='function')
def branch_a(company_a):
    return company_service.create_branch(company_id=company_a.id, patch={"name": "Acme Main", "code": "MAIN"})


@pytest.fixture(scope='function')
def branch_a2(company_a):
    return company_service.create_branch(company_id=company_a.id, patch={"name": "Acme North", "code": "NORTH"})


@pytest.fixture(scope='function')
def branch_b(company_b):
    # Same code as branch_a on purpose: branch codes are unique per company only
    return company_service.create_branch(company_id=company_b.id, patch={"name": "Beta Main", "code": "MAIN"})


def make_user(company, username, role, branch=None):
    user = create_user(
        username=username,
        email=f"{username}@{company.code.lower()}.test",
        password=PASSWORD,
        company_id=company.id,
        branch_id=branch.id if branch else None,
    )
    assign_role(user.id, role)
    return user


@pytest.fixture(scope='function')
def admin_a(company_a, branch_a):
    """Company-level admin of Company A."""
    return make_user(company_a, "admin_a", "company_admin")


@pytest.fixture(scope='function')
def manager_a(company_a, branch_a):
    return make_user(company_a, "manager_a", "branch_manager", branch_a)


@pytest.fixture(scope='function')
def cashier_a(company_a, branch_a):
    return make_user(company_a, "cashier_a", "cashier", branch_a)


@pytest.fixture(scope='function')
def production_a(company_a, branch_a):
    return make_user(company_a, "printer_a", "production_staff", branch_a)


@pytest.fixture(scope='function')
def admin_b(company_b, branch_b):
    return make_user(company_b, "admin_b", "company_admin")


@pytest.fixture(scope='function')
def standard_tiers(company_a):
    """Light 0-5kg @100, Medium 5-20kg @150 + 10/kg, Heavy 20kg+ @300 + 15/kg."""
    tiers = [
        WeightPricingTier(company_id=company_a.id, tier_name="Light", min_weight=Decimal("0"),
                          max_weight=Decimal("5"), base_price=Decimal("100"), per_kg_rate=Decimal("0"),
                          status="active", sort_order=1),
        WeightPricingTier(company_id=company_a.id, tier_name="Medium", min_weight=Decimal("5"),
                          max_weight=Decimal("20"), base_price=Decimal("150"), per_kg_rate=Decimal("10"),
                          status="active", sort_order=2),
        WeightPricingTier(company_id=company_a.id, tier_name="Heavy", min_weight=Decimal("20"),
                          max_weight=None, base_price=Decimal("300"), per_kg_rate=Decimal("15"),
                          status="active", sort_order=3),
    ]
    db.session.add_all(tiers)
    db.session.commit()
    return tiers


@pytest.fixture(scope='function')
def customer_a(company_a, branch_a):
    customer = Customer(company_id=company_a.id, branch_id=branch_a.id, name="Jane Perera", email="jane@example.com")
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(company_b, branch_b):
    customer = Customer(company_id=company_b.id, branch_id=branch_b.id, name="Beta Customer")
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture(scope='function')
def business_cards(company_a):
    """500 g per box of business cards, 25.00 per box."""
    product = Product(
        company_id=company_a.id,
        product_code="BC-STD",
        name="Standard Business Cards",
        base_price=Decimal("25.00"),
        weight_per_unit=Decimal("500"),
        weight_unit="g",
        minimum_quantity=1,
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def banner(company_a):
    """2 kg vinyl banner, 80.00 each."""
    product = Product(
        company_id=company_a.id,
        product_code="BN-VINYL",
        name="Vinyl Banner",
        base_price=Decimal("80.00"),
        weight_per_unit=Decimal("2"),
        weight_unit="kg",
        minimum_quantity=1,
        maximum_quantity=50,
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(company_b):
    product = Product(
        company_id=company_b.id,
        product_code="BETA-1",
        name="Beta Flyer",
        base_price=Decimal("5.00"),
        weight_per_unit=Decimal("0.1"),
        weight_unit="kg",
    )
    db.session.add(product)
    db.session.commit()
    return product


def get_auth_token(client, username: str, password: str = PASSWORD, company_code: str | None = None) -> str:
    """Helper to get auth token for a user."""
    payload = {'username': username, 'password': password}
    if company_code:
        payload['company_code'] = company_code
    response = client.post('/api/auth/login', json=payload)
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login_headers(client, username: str) -> dict:
    token = get_auth_token(client, username)
    assert token, f"login failed for {username}"
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(client, admin_a):
    return login_headers(client, "admin_a")


@pytest.fixture(scope='function')
def manager_headers(client, manager_a):
    return login_headers(client, "manager_a")


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_a):
    return login_headers(client, "cashier_a")


@pytest.fixture(scope='function')
def production_headers(client, production_a):
    return login_headers(client, "printer_a")


@pytest.fixture(scope='function')
def admin_b_headers(client, admin_b):
    return login_headers(client, "admin_b")
