"""
Pytest fixtures for shopledger backend tests.

Provides the application on in-memory SQLite, a per-test table wipe, the test
client, and small factories for categories, products and transactions.
"""

import pytest

from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import ShopSettings
from shopledger.services import catalog_service, transaction_service
from shopledger.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SEED_DEMO_DATA': False,
        'ASSISTANT_API_KEY': None,
        'DEFAULT_MIN_STOCK': 5,
        'EXPIRY_ALERT_DAYS': 7,
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
def utc_shop(db_session):
    """Shop settings pinned to UTC so calendar-day boundaries are predictable."""
    now = utcnow()
    settings = ShopSettings(
        shop_name="Test Shop",
        owner_name="Tester",
        currency="INR",
        timezone="UTC",
        is_offline_mode=False,
        created_at=now,
        updated_at=now,
    )
    db_session.add(settings)
    db_session.commit()
    return settings


@pytest.fixture(scope='function')
def make_category(db_session):
    """Factory: create a category by name (idempotent)."""
    def _make(name="Beverages", **extra):
        for existing in catalog_service.list_categories():
            if existing.name == name:
                return existing
        return catalog_service.create_category(patch={"name": name, **extra})
    return _make


@pytest.fixture(scope='function')
def make_product(db_session, make_category):
    """Factory: create a product; `stock` is booked as opening stock."""
    counter = {"n": 0}

    def _make(name=None, *, price_cents=1000, category="Beverages", stock=0, **extra):
        counter["n"] += 1
        make_category(category)
        patch = {
            "name": name or f"Product {counter['n']}",
            "price_cents": price_cents,
            "category": category,
            "stock": stock,
        }
        patch.update(extra)
        return catalog_service.create_product(patch=patch)
    return _make


@pytest.fixture(scope='function')
def make_transaction(db_session):
    """Factory: commit a checkout of [(product, quantity), ...]."""
    def _make(lines, *, payment_method="cash", discount_cents=0, occurred_at=None, **extra):
        items = [{"product_id": product.id, "quantity": quantity} for product, quantity in lines]
        return transaction_service.create_transaction(
            items=items,
            payment_method=payment_method,
            discount_cents=discount_cents,
            occurred_at=occurred_at,
            **extra,
        )
    return _make
