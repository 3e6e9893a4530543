"""
Pytest fixtures for retailpos backend tests.

Provides an in-memory database, a per-test clean session, the Flask test
client, and a few ready-made workers, items and contracts.
"""

import pytest

from retailpos import create_app
from retailpos.extensions import db
from retailpos.models import Item, User
from retailpos.services import contract_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
def worker(db_session):
    user = User(username="clerk", full_name="Front Desk Clerk", id_card="W-100", role="worker")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def approver(db_session):
    user = User(username="manager", full_name="Store Manager", role="admin")
    db_session.add(user)
    db_session.commit()
    return user


def make_item(session, *, name="Refrigerator", quantity=2, installment=True, price_cash_cents=150000):
    item = Item(
        name=name,
        price_cash_cents=price_cash_cents,
        price_installment_total_cents=180000,
        installment_months=3,
        installment_per_month_cents=10000,
        quantity=quantity,
        available=quantity > 0,
        installment=installment,
    )
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def item(db_session):
    return make_item(db_session)


def customer_payload(**overrides) -> dict:
    data = {
        "full_name": "Jane Customer",
        "id_card_number": "C-200",
        "phone": "555-0100",
        "address": "1 Main Street",
        "email": "jane@example.com",
    }
    data.update(overrides)
    return data


def contract_payload(worker_id: int, item_id: int, **overrides) -> dict:
    data = {
        "worker_id": worker_id,
        "item_id": item_id,
        "total_price_cents": 30000,
        "down_payment_cents": 0,
        "months": 3,
        "monthly_payment_cents": 10000,
        "start_date": "2024-01-15",
    }
    data.update(overrides)
    return data


def apply(session, worker_id, item_id, *, customer=None, sponsors=None, **terms):
    return contract_service.apply_contract(
        session,
        customer or customer_payload(),
        sponsors or [],
        contract_payload(worker_id, item_id, **terms),
    )


@pytest.fixture(scope='function')
def pending_contract(db_session, worker, item):
    return apply(db_session, worker.id, item.id)


@pytest.fixture(scope='function')
def active_contract(db_session, worker, approver, item):
    """Approved 3 x 100.00 contract starting 2024-01-15."""
    result = apply(db_session, worker.id, item.id)
    contract_service.approve_contract(db_session, result["contract_id"], approver.id)
    return contract_service.get_contract(db_session, result["contract_id"])


@pytest.fixture(scope='function')
def schedule(db_session, active_contract):
    return contract_service.get_contract_schedule(db_session, active_contract.id)
