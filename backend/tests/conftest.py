"""
Pytest fixtures for EMI locker backend tests.

Provides test database setup, two isolated shops with owners, customers and
devices, a recording broadcaster, and bearer tokens for every actor.
"""

import pytest
from emilocker import create_app
from emilocker.extensions import db
from emilocker.models import Device, Shop, User
from emilocker.permissions import Role
from emilocker.services import session_service
from emilocker.services.auth_service import hash_password
from emilocker.services.policy_service import CallerIdentity


PASSWORD = "Password123"


class MemoryBroadcaster:
    """Records every emit so tests can assert on rooms and payloads."""

    def __init__(self):
        self.events = []

    def emit(self, room, event, payload):
        self.events.append((room, event, payload))

    def rooms_for(self, event):
        return [room for room, name, _ in self.events if name == event]

    def clear(self):
        self.events.clear()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'BCRYPT_ROUNDS': 4,
        },
        broadcaster=MemoryBroadcaster(),
    )

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
def broadcasts(app):
    """The recording broadcaster, emptied for this test."""
    broadcaster = app.extensions["broadcaster"]
    broadcaster.clear()
    return broadcaster


def make_user(session, *, name, phone, role=Role.USER, shop=None, email=None, **fields):
    user = User(
        role=role.value,
        shop_id=shop.id if shop is not None else None,
        name=name,
        phone=phone,
        email=email,
        password_hash=hash_password(PASSWORD),
        **fields,
    )
    session.add(user)
    session.commit()
    return user


def make_shop(session, *, code, name, **fields):
    shop = Shop(shop_code=code, name=name, **fields)
    session.add(shop)
    session.commit()
    return shop


def make_device(session, user, *, device_id, imei, is_locked=False):
    device = Device(
        device_id=device_id,
        imei_number=imei,
        user_id=user.id,
        shop_id=user.shop_id,
        brand="Acme",
        model="A1",
        is_locked=is_locked,
        lock_reason="manual_lock" if is_locked else None,
    )
    user.device_id = device_id
    user.imei_number = imei
    user.device_is_locked = is_locked
    user.device_lock_reason = device.lock_reason
    session.add(device)
    session.commit()
    return device


@pytest.fixture(scope='function')
def superadmin(db_session):
    return make_user(db_session, name="Super Admin", phone="9000000000", role=Role.SUPERADMIN, email="admin@emi.test")


@pytest.fixture(scope='function')
def shop_a(db_session):
    """Shop A (first tenant)."""
    return make_shop(db_session, code="SHOP-A", name="Shop A Mobiles")


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Shop B (second tenant)."""
    return make_shop(db_session, code="SHOP-B", name="Shop B Electronics")


@pytest.fixture(scope='function')
def owner_a(db_session, shop_a):
    user = make_user(db_session, name="Owner A", phone="9100000001", role=Role.SHOPOWNER, shop=shop_a)
    shop_a.owner_id = user.id
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_b(db_session, shop_b):
    user = make_user(db_session, name="Owner B", phone="9200000001", role=Role.SHOPOWNER, shop=shop_b)
    shop_b.owner_id = user.id
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer_a(db_session, shop_a):
    return make_user(
        db_session,
        name="Customer A",
        phone="9100000002",
        shop=shop_a,
        emi_total_amount_cents=1_200_000,
        emi_paid_amount_cents=200_000,
    )


@pytest.fixture(scope='function')
def customer_b(db_session, shop_b):
    return make_user(db_session, name="Customer B", phone="9200000002", shop=shop_b)


@pytest.fixture(scope='function')
def device_a(db_session, customer_a):
    return make_device(db_session, customer_a, device_id="dev-a-001", imei="111111111111111")


@pytest.fixture(scope='function')
def device_b(db_session, customer_b):
    return make_device(db_session, customer_b, device_id="dev-b-001", imei="222222222222222")


def token_for(user) -> str:
    _, token = session_service.create_session(user.id)
    return token


def caller_for(user) -> CallerIdentity:
    return CallerIdentity.from_user(user)


def get_auth_token(client, identifier: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'identifier': identifier,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def superadmin_headers(superadmin):
    return auth_headers(token_for(superadmin))


@pytest.fixture(scope='function')
def owner_a_headers(owner_a):
    return auth_headers(token_for(owner_a))


@pytest.fixture(scope='function')
def owner_b_headers(owner_b):
    return auth_headers(token_for(owner_b))


@pytest.fixture(scope='function')
def customer_a_headers(customer_a):
    return auth_headers(token_for(customer_a))


@pytest.fixture(scope='function')
def customer_b_headers(customer_b):
    return auth_headers(token_for(customer_b))
