from decimal import Decimal

import pytest
import requests

from common.errors import GatewayError
from common.models.enums import SessionStatus
from common.services.payment_gateway import PaymentCustomer, PaymentGateway


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeHTTP:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


CUSTOMER = PaymentCustomer(name="Aisha", email="aisha@example.com", phone="0123")


def _gateway(outcome):
    http = FakeHTTP(outcome)
    gw = PaymentGateway(
        "https://gateway.test/v1/",
        "secret-key",
        timeout=7,
        redirect_url="https://shop.test/return",
        webhook_url="https://shop.test/hook",
        http=http,
    )
    return gw, http


def test_create_session_posts_expected_payload():
    gw, http = _gateway(FakeResponse(201, {"paymentId": "abc", "url": "https://gateway.test/pay/abc"}))
    hosted = gw.create_payment_session("order-1", Decimal("68"), "myr", "Order order-1", CUSTOMER)
    assert hosted.payment_id == "abc"
    assert hosted.url == "https://gateway.test/pay/abc"
    assert hosted.status is SessionStatus.CREATED

    method, url, kwargs = http.calls[0]
    assert method == "POST"
    assert url == "https://gateway.test/v1/payments"
    assert kwargs["timeout"] == 7
    assert kwargs["headers"]["X-BUSINESS-API-KEY"] == "secret-key"
    body = kwargs["json"]
    assert body["amount"] == "68.00"
    assert body["currency"] == "MYR"
    assert body["reference_number"] == "order-1"
    assert body["email"] == "aisha@example.com"
    assert body["redirect_url"] == "https://shop.test/return"
    assert body["webhook"] == "https://shop.test/hook"


def test_network_failure_is_transient():
    gw, _ = _gateway(requests.exceptions.ConnectionError("refused"))
    with pytest.raises(GatewayError) as exc:
        gw.create_payment_session("o", Decimal("10"), "MYR", "p", CUSTOMER)
    assert exc.value.kind == "network"
    assert exc.value.transient is True


def test_timeout_is_transient():
    gw, _ = _gateway(requests.exceptions.Timeout())
    with pytest.raises(GatewayError) as exc:
        gw.check_status("abc")
    assert exc.value.transient is True


def test_server_error_is_transient():
    gw, _ = _gateway(FakeResponse(503, None))
    with pytest.raises(GatewayError) as exc:
        gw.create_payment_session("o", Decimal("10"), "MYR", "p", CUSTOMER)
    assert exc.value.transient is True


@pytest.mark.parametrize(
    "response,kind",
    [
        (FakeResponse(422, {"message": "amount invalid"}), "validation"),
        (FakeResponse(401, {"message": "bad key"}), "rejected"),
        (FakeResponse(200, {"error": "merchant disabled"}), "rejected"),
        (FakeResponse(200, {"url": "https://x"}), "validation"),
        (FakeResponse(200, None), "validation"),
    ],
)
def test_provider_refusals_are_not_transient(response, kind):
    gw, _ = _gateway(response)
    with pytest.raises(GatewayError) as exc:
        gw.create_payment_session("o", Decimal("10"), "MYR", "p", CUSTOMER)
    assert exc.value.kind == kind
    assert exc.value.transient is False


def test_local_validation_never_calls_gateway():
    gw, http = _gateway(FakeResponse(200, {}))
    with pytest.raises(GatewayError) as exc:
        gw.create_payment_session("o", Decimal("0"), "MYR", "p", CUSTOMER)
    assert exc.value.kind == "validation"
    with pytest.raises(GatewayError):
        gw.create_payment_session("o", Decimal("5"), "MYR", "p", PaymentCustomer(name="", email=""))
    assert http.calls == []


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("completed", SessionStatus.COMPLETED),
        ("PENDING", SessionStatus.PENDING),
        ("failed", SessionStatus.FAILED),
        ("expired", SessionStatus.FAILED),
    ],
)
def test_check_status_maps_gateway_vocabulary(raw, expected):
    gw, http = _gateway(FakeResponse(200, {"status": raw}))
    assert gw.check_status("abc") is expected
    method, url, _ = http.calls[0]
    assert (method, url) == ("GET", "https://gateway.test/v1/payments/abc/status")


def test_check_status_is_repeatable():
    gw, http = _gateway(FakeResponse(200, {"status": "pending"}))
    assert gw.check_status("abc") is gw.check_status("abc")
    assert len(http.calls) == 2


def test_unknown_status_rejected():
    gw, _ = _gateway(FakeResponse(200, {"status": "weird"}))
    with pytest.raises(GatewayError) as exc:
        gw.check_status("abc")
    assert exc.value.kind == "validation"
