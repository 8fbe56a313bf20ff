import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from auth import create_access_token
from config import PaymentSettings, PricingTable, Settings, get_payment_settings, get_pricing, get_settings
from database import create_document, ensure_indexes, get_db

TEST_SETTINGS = Settings(jwt_secret="test-secret", razorpay_key_id="rzp_test_key", razorpay_key_secret="rzp_test_secret")
TEST_PAYMENT = PaymentSettings(key_id="rzp_test_key", key_secret="rzp_test_secret", currency="INR", fallback_amount=100)


class FakeGateway:
    def __init__(self):
        self.orders = []

    def create_order(self, amount, currency, receipt, notes):
        order = {"id": f"order_test_{len(self.orders) + 1}", "amount": amount, "currency": currency,
                 "receipt": receipt, "notes": notes}
        self.orders.append(order)
        return order


@pytest.fixture
def mongo_db():
    database = mongomock.MongoClient()["ecowaste_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def pricing():
    return PricingTable()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(mongo_db, pricing, gateway):
    main.app.dependency_overrides[get_db] = lambda: mongo_db
    main.app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    main.app.dependency_overrides[get_payment_settings] = lambda: TEST_PAYMENT
    main.app.dependency_overrides[get_pricing] = lambda: pricing
    main.app.dependency_overrides[main.get_gateway] = lambda: gateway
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def token_headers(subject, role="user"):
    token = create_access_token({"sub": str(subject), "role": role}, TEST_SETTINGS)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(mongo_db):
    def _make(email="asha@ecowaste.io", user_type="home", name="Asha"):
        return create_document(mongo_db, "user", {
            "name": name,
            "email": email,
            "password_hash": "unused",
            "user_type": user_type,
            "status": "active",
            "total_pickups": 0,
            "eco_points": 0,
            "discount_balance": 0,
            "co2_saved": 0,
        })
    return _make


@pytest.fixture
def user_id(make_user):
    return make_user()


@pytest.fixture
def user_headers(user_id):
    return token_headers(user_id)


@pytest.fixture
def admin_headers(mongo_db):
    admin_id = create_document(mongo_db, "admin", {"name": "Root", "email": "root@ecowaste.io",
                                                   "password_hash": "unused"})
    return token_headers(admin_id, role="admin")


@pytest.fixture
def pickup_body():
    def _body(**overrides):
        body = {
            "user_name": "Asha",
            "user_phone": "+91-9800000000",
            "location": "12 Lake Road",
            "waste_type": "recyclable",
            "date": "2026-10-21",
            "time": "09:30",
            "service_type": "home",
            "waste_count": 2,
            "waste_unit": "bins/bags",
        }
        body.update(overrides)
        return body
    return _body


@pytest.fixture
def headers_for():
    return token_headers


class _StaleCollection:
    def __init__(self, collection, snapshot):
        self._collection = collection
        self._snapshot = snapshot

    def find_one(self, *args, **kwargs):
        return dict(self._snapshot)

    def __getattr__(self, name):
        return getattr(self._collection, name)


class StaleReads:
    """Database wrapper whose reads of one collection keep returning an old snapshot."""

    def __init__(self, database, collection, snapshot):
        self._database = database
        self._name = collection
        self._snapshot = snapshot

    def __getitem__(self, name):
        if name == self._name:
            return _StaleCollection(self._database[name], self._snapshot)
        return self._database[name]


@pytest.fixture
def stale_reads():
    return StaleReads
