import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from decimal import Decimal  # noqa: E402
from typing import Dict, List, Optional  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402

from app import build_components, create_app  # noqa: E402
from common.auth import JwtIdentityProvider, Principal, Role  # noqa: E402
from common.config import AppConfig  # noqa: E402
from common.db.session import init_db, make_engine, make_session_factory  # noqa: E402
from common.errors import GatewayError  # noqa: E402
from common.models.enums import SessionStatus  # noqa: E402
from common.services.cart_service import MenuItem  # noqa: E402
from common.services.payment_gateway import HostedPayment, PaymentCustomer  # noqa: E402

SECRET = "test-secret-key-for-jwt-signing-0123456789"


class FakeGateway:
    """Stands in for PaymentGateway: records calls, returns scripted statuses."""

    def __init__(self):
        self.created: List[Dict] = []
        self.statuses: Dict[str, SessionStatus] = {}
        self.status_calls: List[str] = []
        self.fail_create: Optional[GatewayError] = None
        self._counter = 0

    def create_payment_session(self, order_id, amount, currency, purpose, customer: PaymentCustomer):
        if self.fail_create is not None:
            raise self.fail_create
        self._counter += 1
        payment_id = f"pay-{self._counter}"
        self.created.append(
            {"order_id": order_id, "amount": amount, "currency": currency, "purpose": purpose, "customer": customer}
        )
        self.statuses[payment_id] = SessionStatus.PENDING
        return HostedPayment(payment_id=payment_id, url=f"https://gateway.test/pay/{payment_id}")

    def check_status(self, payment_id):
        self.status_calls.append(payment_id)
        return self.statuses.get(payment_id, SessionStatus.PENDING)


@pytest.fixture
def config():
    return AppConfig(
        database_url="sqlite:///:memory:",
        secret_key=SECRET,
        log_level="WARNING",
        currency="MYR",
        gateway_base_url="https://gateway.test/v1",
        gateway_api_key="key",
        gateway_timeout_seconds=5,
        payment_redirect_url="https://shop.test/payment-success",
        payment_webhook_url="https://shop.test/api/payments/callback",
        payment_session_ttl_minutes=30,
    )


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def services(config, session_factory, gateway):
    return build_components(config, session_factory, gateway, JwtIdentityProvider(SECRET))


@pytest.fixture
def customer():
    return Principal(user_id="cust-1", role=Role.CUSTOMER, name="Aisha Rahman", email="aisha@example.com", phone="0123456789")


@pytest.fixture
def other_customer():
    return Principal(user_id="cust-2", role=Role.CUSTOMER, name="Ben Lim", email="ben@example.com")


@pytest.fixture
def staff():
    return Principal(user_id="staff-1", role=Role.STAFF, restaurant_id="r1")


@pytest.fixture
def other_staff():
    return Principal(user_id="staff-9", role=Role.STAFF, restaurant_id="r9")


@pytest.fixture
def admin():
    return Principal(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def fill_cart(services):
    def _fill(principal, restaurant_id="r1"):
        carts = services["cart_service"]
        carts.add_item(principal.user_id, restaurant_id, MenuItem("1", "Nasi Lemak", Decimal("25")), 2)
        carts.add_item(principal.user_id, restaurant_id, MenuItem("2", "Teh Tarik", Decimal("18")), 1)
        return carts.get_cart(principal.user_id)

    return _fill


def make_token(sub, role="customer", **claims):
    payload = {"sub": sub, "role": role}
    payload.update(claims)
    return jwt.encode(payload, SECRET, algorithm="HS256")


def auth_header(sub, role="customer", **claims):
    return {"Authorization": f"Bearer {make_token(sub, role, **claims)}"}


@pytest.fixture
def app(config, gateway):
    flask_app = create_app(config, gateway=gateway)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
