import pytest
from decimal import Decimal

from app import create_app
from config import TestingConfig
from models import db
from models.plan import SubscriptionPlan
from models.subscription import Subscription
from models.transaction import Transaction
from models.user import User
from utils.auth_utils import hash_password
from utils.exceptions import GatewayError
from utils.payment_gateway import GatewayMode
from utils.signature import compute_signature

SERVER_KEY = TestingConfig.MIDTRANS_SERVER_KEY
PASSWORD = "correct-horse-battery"


def pytest_configure(config):
    config.addinivalue_line("markers", "payment: mark test as payment-related")


class FakeGateway:
    """Stands in for the gateway client; tests script its answers"""

    mode = GatewayMode.LIVE

    def __init__(self):
        self.statuses = {}
        self.created = []
        self.status_calls = []
        self.fail_create = False
        self.fail_status = False

    def create_transaction(self, params):
        if self.fail_create:
            raise GatewayError("Gateway returned HTTP 401", status=401)
        self.created.append(params)
        order_id = params["transaction_details"]["order_id"]
        return {"token": f"tok-{order_id}", "redirect_url": f"https://pay.example/{order_id}"}

    def get_status(self, order_id):
        self.status_calls.append(order_id)
        if self.fail_status:
            raise GatewayError("Gateway unreachable: timed out")
        if order_id not in self.statuses:
            raise GatewayError(f"Gateway has no record of order {order_id}", status=404)
        return dict(self.statuses[order_id])


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def app(gateway):
    """Fresh app and in-memory database per test"""
    app = create_app(TestingConfig, gateway=gateway)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def make_user(name="Subscriber", email="subscriber@example.com", role="user"):
    user = User(name=name, email=email, password_hash=hash_password(PASSWORD), role=role)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def subscriber(app):
    return make_user()


@pytest.fixture()
def creator(app):
    return make_user(name="Dewi Creates", email="dewi@example.com", role="creator")


@pytest.fixture()
def plan(creator):
    plan = SubscriptionPlan(
        creator_id=creator.id,
        name="Gold Tier",
        price=Decimal("50000.00"),
        interval="monthly",
    )
    db.session.add(plan)
    db.session.commit()
    return plan


@pytest.fixture()
def make_transaction(subscriber, plan):
    counter = {"n": 0}

    def _make(order_id=None, status="pending", user=None, amount=None):
        counter["n"] += 1
        owner = user or subscriber
        transaction = Transaction(
            order_id=order_id or f"SUBS-TEST-{counter['n']}",
            user_id=owner.id,
            creator_id=plan.creator_id,
            plan_id=plan.id,
            amount=amount if amount is not None else plan.price,
            status=status,
        )
        db.session.add(transaction)
        db.session.commit()
        return transaction

    return _make


@pytest.fixture()
def pending_transaction(make_transaction):
    return make_transaction(order_id="SUBS-1700000000000-abc123")


def signed_notification(order_id, transaction_status="settlement", fraud_status="accept",
                        gross_amount="50000.00", status_code="200", key=SERVER_KEY, **extra):
    """Notification body as the gateway sends it, signed with the test server key"""
    body = {
        "order_id": order_id,
        "transaction_status": transaction_status,
        "fraud_status": fraud_status,
        "gross_amount": gross_amount,
        "status_code": status_code,
        "payment_type": "bank_transfer",
        "transaction_time": "2024-05-01 10:00:00",
        "settlement_time": "2024-05-01 10:05:00",
        "signature_key": compute_signature(order_id, status_code, gross_amount, key),
    }
    body.update(extra)
    return body


def login(client, email="subscriber@example.com", password=PASSWORD):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response


def subscription_count(**filters):
    return Subscription.query.filter_by(**filters).count()
