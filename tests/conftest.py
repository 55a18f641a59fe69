import re
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from avrnpo import create_app
from avrnpo.config import TestingConfig
from avrnpo.extensions import db
from avrnpo.models import ROLE_ADMIN, ROLE_USER, User
from avrnpo.services.helcim import EXTENSION_KEY, CheckoutSession, HelcimError, PaymentResult, Subscription

WEBHOOK_SECRET = "test_verifier_token"
PASSWORD = "correct-horse-battery"

_TOKEN_RE = re.compile(r'name="authenticity_token"[^>]*value="([^"]+)"')


class _TestConfig(TestingConfig):
    HELCIM_WEBHOOK_VERIFIER_TOKEN = WEBHOOK_SECRET


class FakeHelcim:
    """Records calls; approves everything unless told otherwise."""

    def __init__(self, *, approve=True, fail_init=False, fail_purchase=False, fail_lookup=False):
        self.approve = approve
        self.fail_init = fail_init
        self.fail_purchase = fail_purchase
        self.fail_lookup = fail_lookup
        self.calls = []

    def initialize_checkout(self, amount, **kwargs):
        self.calls.append(("initialize_checkout", amount, kwargs))
        if self.fail_init:
            raise HelcimError("upstream down", 503)
        return CheckoutSession(checkout_token="chk_123", secret_token="sec_456")

    def purchase(self, amount, *, customer_code, card_token):
        self.calls.append(("purchase", amount, customer_code, card_token))
        if self.fail_purchase:
            raise HelcimError("timeout", 504)
        return PaymentResult(transaction_id="TX-1", status="APPROVED" if self.approve else "DECLINED", amount=amount)

    def create_payment_plan(self, amount, name):
        self.calls.append(("create_payment_plan", amount, name))
        return "PLAN-9"

    def create_subscription(self, *, customer_code, payment_plan_id, amount):
        self.calls.append(("create_subscription", customer_code, payment_plan_id, amount))
        return Subscription(
            id="SUB-1",
            customer_code=customer_code,
            payment_plan_id=payment_plan_id,
            amount=amount,
            status="active",
            next_billing_date=datetime(2030, 1, 1),
        )

    def get_subscription(self, subscription_id):
        self.calls.append(("get_subscription", subscription_id))
        if self.fail_lookup:
            raise HelcimError("not reachable", 502)
        return Subscription(subscription_id, "CUST", "PLAN-9", Decimal("50"), "active", datetime(2030, 1, 1))

    def cancel_subscription(self, subscription_id):
        self.calls.append(("cancel_subscription", subscription_id))


def extract_token(html) -> str:
    if isinstance(html, bytes):
        html = html.decode("utf-8")
    m = _TOKEN_RE.search(html)
    assert m, "no authenticity_token field in page"
    return m.group(1)


def page_token(client, path: str = "/contact") -> str:
    return extract_token(client.get(path).data)


def login(client, email: str, password: str = PASSWORD):
    token = page_token(client, "/auth/new")
    return client.post(
        "/auth",
        data={"email": email, "password": password, "authenticity_token": token},
    )


def make_user(app, email: str, role: str = ROLE_USER, first_name: str = "Test", last_name: str = "User"):
    """Insert a user; returns a plain record so it survives the app context."""
    with app.app_context():
        user = User(email=email, first_name=first_name, last_name=last_name, role=role)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return SimpleNamespace(id=user.id, email=user.email, role=user.role)


# Requests must run outside an app context held by the test: Flask reuses an
# active app context for requests, which would share ``g`` (login state, CSRF
# token cache) between requests.
@pytest.fixture
def app():
    app = create_app(_TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(app):
    return make_user(app, "donor@example.org", first_name="Dana", last_name="Donor")


@pytest.fixture
def admin(app):
    return make_user(app, "admin@example.org", role=ROLE_ADMIN, first_name="Alex", last_name="Admin")


@pytest.fixture
def user_client(client, user):
    resp = login(client, user.email)
    assert resp.status_code == 302
    return client


@pytest.fixture
def admin_client(client, admin):
    resp = login(client, admin.email)
    assert resp.status_code == 302
    return client


@pytest.fixture
def helcim(app):
    fake = FakeHelcim()
    app.extensions[EXTENSION_KEY] = fake
    return fake
