"""
Pytest fixtures for posledger backend tests.

Provides the in-memory application, a fresh database per test, a controllable
clock and factories for customers, products and sales.
"""

from datetime import datetime, timedelta

import pytest

from posledger import create_app
from posledger.bridge import Bridge
from posledger.extensions import db
from posledger.models import Customer, Sale
from posledger.services.catalog_service import CatalogService
from posledger.services.payment_allocator import PaymentAllocator
from posledger.services.sale_engine import SaleEngine
from posledger.services.stock_ledger import StockLedger


NOW = datetime(2026, 3, 1, 12, 0, 0)


class FakeClock:
    """Callable clock for services; tests move it around explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value

    def days_ago(self, days: int) -> datetime:
        return NOW - timedelta(days=days)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
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
    return FakeClock(NOW)


@pytest.fixture
def stock_ledger(db_session, clock):
    return StockLedger(db_session, clock=clock)


@pytest.fixture
def catalog(db_session, stock_ledger, clock):
    return CatalogService(db_session, stock_ledger=stock_ledger, clock=clock)


@pytest.fixture
def sale_engine(db_session, stock_ledger, clock):
    return SaleEngine(db_session, stock_ledger=stock_ledger, clock=clock)


@pytest.fixture
def allocator(db_session, clock):
    return PaymentAllocator(db_session, clock=clock)


@pytest.fixture
def bridge(db_session, clock):
    return Bridge(db_session, clock=clock)


@pytest.fixture
def make_customer(catalog):
    counter = {"n": 0}

    def _make(name=None, **kwargs):
        counter["n"] += 1
        return catalog.create_customer(name or f"Customer {counter['n']}", **kwargs)

    return _make


@pytest.fixture
def make_product(catalog):
    counter = {"n": 0}

    def _make(name=None, price_cents=1000, quantity=100, **kwargs):
        counter["n"] += 1
        return catalog.create_product(
            name or f"Product {counter['n']}", price_cents, quantity=quantity, **kwargs,
        )

    return _make


@pytest.fixture
def make_sale(sale_engine, clock, make_product):
    """
    Create a sale for `total` cents (one line of quantity 1) at a given age.

    The clock is restored to NOW afterwards so aging is measured from NOW.
    """

    def _make(customer, total=10000, paid=0, days_ago=0, product=None):
        product = product or make_product(price_cents=total, quantity=10)
        clock.set(NOW - timedelta(days=days_ago))
        try:
            return sale_engine.create_sale(
                customer.id,
                [{"product_id": product.id, "quantity": 1}],
                amount_paid_cents=paid,
            )
        finally:
            clock.set(NOW)

    return _make


def outstanding_total(session, customer_id: int) -> int:
    sales = session.query(Sale).filter_by(customer_id=customer_id).all()
    return sum(s.outstanding_amount_cents for s in sales)


def assert_balance_mirror(session, customer_id: int) -> None:
    customer = session.get(Customer, customer_id)
    assert customer.credit_balance_cents == outstanding_total(session, customer_id)


@pytest.fixture
def balance_mirror(db_session):
    """Assert credit_balance == SUM(outstanding) for a customer."""

    def _check(customer_id: int) -> None:
        assert_balance_mirror(db_session, customer_id)

    return _check
