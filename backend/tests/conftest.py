"""
Pytest fixtures for BranchStock backend tests.

Provides an in-memory database, a fixed clock, branches/users/products and
a test client that sends the X-User-Id actor header.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from branchstock import create_app
from branchstock.extensions import db
from branchstock.models import Branch, Category, Product, User
from branchstock.services import stock_service
from branchstock.time_utils import FixedClock


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_BACKOFF': 0,
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


@pytest.fixture
def clock():
    """Clock pinned to 5 Dec 2024, 10:00 UTC."""
    return FixedClock(datetime(2024, 12, 5, 10, 0, 0))


@pytest.fixture(scope='function')
def jakarta(db_session):
    """Branch JKT."""
    branch = Branch(code="JKT", name="Jakarta", is_active=True)
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def bandung(db_session):
    """Branch BDG."""
    branch = Branch(code="BDG", name="Bandung", is_active=True)
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def admin(db_session, jakarta):
    """super_admin based in Jakarta."""
    user = User(username="admin", name="Admin", role="super_admin", branch_id=jakarta.id, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def branch_admin(db_session, bandung):
    """branch_admin based in Bandung."""
    user = User(username="bdg_admin", name="Bandung Admin", role="branch_admin", branch_id=bandung.id, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier(db_session, jakarta):
    """cashier based in Jakarta."""
    user = User(username="kasir", name="Kasir", role="cashier", branch_id=jakarta.id, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product(db_session, category):
    """Product priced at 10,000.00."""
    product = Product(sku="SKU-001", name="Coffee Beans", category_id=category.id, price=Decimal("10000.00"))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def other_product(db_session, category):
    """Product priced at 2,500.50."""
    product = Product(sku="SKU-002", name="Tea Leaves", category_id=category.id, price=Decimal("2500.50"))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def stock_up(db_session):
    """Put `quantity` units of `product` into `branch` through the ledger."""
    def _stock_up(branch, product, quantity, actor):
        return stock_service.adjust_stock(branch.id, product.id, quantity, actor.id, notes="Seed stock")
    return _stock_up


@pytest.fixture
def headers():
    """Headers identifying a user as the acting user."""
    def _headers(user) -> dict:
        return {'X-User-Id': str(user.id)}
    return _headers
