"""
Pytest fixtures for fulfillment backend tests.

Provides an in-memory application, a per-test table wipe, actors and a small
catalog whose opening stock is backed by minted serials.
"""

import pytest
from fulfillment import create_app
from fulfillment.extensions import db
from fulfillment.models import User
from fulfillment.services import cart_service, inventory_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ORDER_RETRY_ATTEMPTS': 2,
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
        app.config['FIFO_REQUIRE_SELL_BACKLOG'] = False

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, username, role):
    user = User(username=username, role=role)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def buyer(db_session):
    return _make_user(db_session, "buyer_a", "buyer")


@pytest.fixture(scope='function')
def other_buyer(db_session):
    return _make_user(db_session, "buyer_b", "buyer")


@pytest.fixture(scope='function')
def seller(db_session):
    return _make_user(db_session, "seller_a", "seller")


@pytest.fixture(scope='function')
def second_seller(db_session):
    return _make_user(db_session, "seller_b", "seller")


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def drafter(db_session):
    """DFT-P at 400 with 5 units of opening stock (DFT-P001..005)."""
    return inventory_service.create_product(
        code="DFT-P", name="drafter", variant="premium_drafter", price_cents=400, opening_quantity=5,
    )


@pytest.fixture(scope='function')
def lab_coat(db_session):
    """WLC-M at 230 with 3 units of opening stock."""
    return inventory_service.create_product(
        code="WLC-M", name="white_lab_coat", variant="M", price_cents=230, opening_quantity=3,
    )


@pytest.fixture(scope='function')
def calculator(db_session):
    """CALC-ES at 950 with no stock."""
    return inventory_service.create_product(
        code="CALC-ES", name="calculator", variant="ES", price_cents=950,
    )


@pytest.fixture
def fill_cart(db_session):
    """Add (product, quantity) pairs to a user's open cart and return the cart."""
    def _fill(user, kind, *items):
        for product, quantity in items:
            cart_service.add_to_cart(user.id, kind, product.id, quantity)
        return cart_service.find_open_cart(user.id, kind)
    return _fill


@pytest.fixture
def actor_headers():
    """Headers the upstream auth layer forwards for a verified actor."""
    def _headers(user, role=None):
        return {'X-Actor-Id': str(user.id), 'X-Actor-Role': role or user.role}
    return _headers

