"""
Pytest fixtures for retail inventory engine tests.

Provides the app on an in-memory database, a per-test clean session, product
fixtures, a sale processor with a fixed actor and the Flask test client.
"""

import pytest
from retail_inventory import create_app
from retail_inventory.extensions import db
from retail_inventory.identity import StaticIdentity
from retail_inventory.models import Product
from retail_inventory.services import stock_service
from retail_inventory.services.sales_service import SaleProcessor


CASHIER_ID = 7
CASHIER_NAME = "cashier"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALERT_AUTO_RESOLVE_ON_RESTOCK': False,
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
def processor(db_session):
    """Sale processor acting as the test cashier, 10% tax."""
    return SaleProcessor(StaticIdentity(CASHIER_ID, CASHIER_NAME), tax_rate_bps=1000, receipt_prefix="NAR")


def _make_product(db_session, *, name="Widget", price_cents=1000, quantity=0, min_stock=0,
                  sku=None, category="GENERAL"):
    """Create a committed product; opening stock is received as a RESTOCK movement."""
    product = Product(
        name=name,
        sku=sku,
        category=category,
        price_cents=price_cents,
        quantity=0,
        min_stock=min_stock,
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    if quantity:
        stock_service.restock(
            product_id=product.id,
            quantity=quantity,
            actor_user_id=1,
            reason="Opening stock",
        )
    return product


@pytest.fixture(scope='function')
def product_a(db_session):
    """Five on hand, minimum three."""
    return _make_product(db_session, name="Product A", sku="PROD-A-001", price_cents=1000,
                         quantity=5, min_stock=3)


@pytest.fixture(scope='function')
def product_b(db_session):
    """Plenty on hand."""
    return _make_product(db_session, name="Product B", sku="PROD-B-001", price_cents=2500,
                         quantity=50, min_stock=5, category="SNACKS")


def actor_headers(actor_id: int = CASHIER_ID, name: str = CASHIER_NAME) -> dict:
    """Helper to create the headers the upstream session layer would set."""
    return {'X-Actor-Id': str(actor_id), 'X-Actor-Name': name}


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for extra committed products."""
    def factory(**kwargs):
        return _make_product(db_session, **kwargs)
    return factory


@pytest.fixture(scope='function')
def headers():
    return actor_headers()
