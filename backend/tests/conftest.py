"""
Pytest fixtures for shopledger backend tests.

Provides the test database, factories for products and parties, and a test
client with actor headers.
"""

from decimal import Decimal

import pytest

from shopledger import create_app
from shopledger.extensions import db
from shopledger.services import customer_service, inventory_service, vendor_service

ACTOR = "tester"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
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
def actor_headers(app):
    return {app.config['ACTOR_HEADER']: ACTOR}


@pytest.fixture
def make_product(db_session):
    """Factory: product with optional starting stock (booked as an IN adjustment)."""
    def _make(name="Cement", unit="BAG", stock=0, minimum_stock_level=0):
        product = inventory_service.create_product(
            name=name, unit=unit, minimum_stock_level=minimum_stock_level,
        )
        if Decimal(str(stock)) > 0:
            inventory_service.adjust_stock(
                product_id=product.id,
                adjustment_type="IN",
                quantity=stock,
                actor_id=ACTOR,
            )
        return db_session.get(type(product), product.id, populate_existing=True)
    return _make


@pytest.fixture
def make_vendor(db_session):
    def _make(name="Lucky Traders", opening_balance=None, **kwargs):
        return vendor_service.create_vendor(
            name=name, opening_balance=opening_balance, actor_id=ACTOR, **kwargs
        )
    return _make


@pytest.fixture
def make_customer(db_session):
    def _make(name="Bilal Builders", opening_balance=None, **kwargs):
        return customer_service.create_customer(
            name=name, opening_balance=opening_balance, actor_id=ACTOR, **kwargs
        )
    return _make


def refresh(obj):
    """Reload an ORM object from the database."""
    return db.session.get(type(obj), obj.id, populate_existing=True)
