from decimal import Decimal

import pytest

from common.errors import GatewayError, ValidationError
from common.models.enums import SessionStatus


def test_counter_checkout_confirms_and_pays_immediately(services, customer, fill_cart, gateway):
    cart = fill_cart(customer)
    assert cart.subtotal() == Decimal("68")

    result = services["checkout_service"].checkout(customer, "counter")
    assert result.payment is None
    assert result.order.status == "confirmed"
    assert result.order.payment_status == "paid"
    assert Decimal(result.order.total_amount) == Decimal("68")
    assert gateway.created == []
    assert services["cart_service"].get_cart(customer.user_id).is_empty()


def test_gateway_checkout_then_webhook(services, customer, fill_cart, gateway):
    fill_cart(customer)
    result = services["checkout_service"].checkout(customer, "gateway")
    assert result.order.status == "pending"
    assert result.order.payment_status == "unpaid"
    assert Decimal(result.payment.amount) == Decimal("68")
    assert result.payment.gateway_url.startswith("https://gateway.test/pay/")
    # cart is kept until the payment is confirmed
    assert not services["cart_service"].get_cart(customer.user_id).is_empty()

    gateway.statuses[result.payment.payment_id] = SessionStatus.COMPLETED
    services["reconciliation"].handle_webhook(
        {"payment_id": result.payment.payment_id, "status": "completed", "transaction_id": "txn-9"}
    )
    order = services["order_service"].get_order(customer, result.order.id)
    assert (order.status, order.payment_status) == ("confirmed", "paid")
    assert services["cart_service"].get_cart(customer.user_id).is_empty()
    payment = services["payment_service"].get_session(customer, result.payment.payment_id)
    assert payment.transaction_id == "txn-9"


def test_checkout_with_reservation(services, customer, fill_cart):
    reservation = services["reservation_service"].create_reservation(
        customer, {"restaurant_id": "r1", "date": "2026-11-02", "time": "12:00", "party_size": 2}
    )
    fill_cart(customer)
    result = services["checkout_service"].checkout(customer, "counter", reservation_id=reservation.id)
    assert result.order.reservation_id == reservation.id


def test_empty_cart_rejected(services, customer):
    with pytest.raises(ValidationError):
        services["checkout_service"].checkout(customer, "counter")


def test_gateway_checkout_requires_contact(services, fill_cart, customer):
    from common.auth import Principal, Role

    anonymous = Principal(user_id="cust-3", role=Role.CUSTOMER)
    fill_cart(anonymous)
    with pytest.raises(ValidationError):
        services["checkout_service"].checkout(anonymous, "gateway")
    result = services["checkout_service"].checkout(
        anonymous, "gateway", contact={"name": "Chen", "email": "chen@example.com"}
    )
    assert result.payment is not None


def test_gateway_failure_surfaces_and_retry_opens_new_session(services, customer, fill_cart, gateway):
    fill_cart(customer)
    gateway.fail_create = GatewayError("down", kind="network")
    with pytest.raises(GatewayError) as exc:
        services["checkout_service"].checkout(customer, "gateway")
    assert exc.value.transient

    order = services["order_service"].list_for_customer(customer.user_id)[0]
    assert order.payment_status == "unpaid"

    gateway.fail_create = None
    retry = services["checkout_service"].retry_payment(customer, order.id)
    assert retry.payment.order_id == order.id


def test_retry_after_failure_never_reuses_session(services, customer, fill_cart, gateway):
    fill_cart(customer)
    first = services["checkout_service"].checkout(customer, "gateway")
    gateway.statuses[first.payment.payment_id] = SessionStatus.FAILED
    services["reconciliation"].handle_webhook({"payment_id": first.payment.payment_id, "status": "failed"})

    retry = services["checkout_service"].retry_payment(customer, first.order.id)
    assert retry.payment.payment_id != first.payment.payment_id
    assert retry.payment.status == "created"


def test_retry_supersedes_abandoned_session(services, customer, fill_cart, gateway):
    fill_cart(customer)
    first = services["checkout_service"].checkout(customer, "gateway")
    retry = services["checkout_service"].retry_payment(customer, first.order.id)

    old = services["payment_service"].get_session(customer, first.payment.payment_id)
    assert old.status == "failed"
    assert retry.payment.payment_id != first.payment.payment_id


def test_retry_detects_payment_made_on_old_session(services, customer, fill_cart, gateway):
    fill_cart(customer)
    first = services["checkout_service"].checkout(customer, "gateway")
    gateway.statuses[first.payment.payment_id] = SessionStatus.COMPLETED

    with pytest.raises(ValidationError):
        services["checkout_service"].retry_payment(customer, first.order.id)
    order = services["order_service"].get_order(customer, first.order.id)
    assert order.payment_status == "paid"


def test_counter_orders_cannot_retry(services, customer, fill_cart):
    fill_cart(customer)
    result = services["checkout_service"].checkout(customer, "counter")
    with pytest.raises(ValidationError):
        services["checkout_service"].retry_payment(customer, result.order.id)
