"""Customer-facing API: cart, checkout, payments and reservations."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from common.auth import Principal, bearer_token
from common.errors import ValidationError
from common.services.cart_service import MenuItem
from common.utils.dto import to_order_dto, to_payment_session_dto, to_reservation_dto
from common.utils.money import parse_decimal
from common.utils.validators import require_fields


api_bp = Blueprint("restaurant_api", __name__, url_prefix="/api")


def _components() -> Dict[str, Any]:
    return current_app.extensions["restaurant_components"]


def _principal() -> Principal:
    token = bearer_token(request.headers.get("Authorization"))
    return _components()["identity"].verify(token)


def _customer() -> Principal:
    return _principal().require_customer()


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


# --- Cart ---

@api_bp.get("/cart")
def get_cart():
    principal = _customer()
    cart = _components()["cart_service"].get_cart(principal.user_id)
    return jsonify(cart.to_dict())


@api_bp.post("/cart/items")
def add_cart_item():
    principal = _customer()
    payload = _payload()
    require_fields(payload, ("restaurant_id", "item_id", "name"))
    price = payload.get("unit_price", payload.get("price"))
    if price is None:
        raise ValidationError("unit_price required", field="unit_price")
    unit_price = parse_decimal(price, "unit_price")
    if unit_price < 0:
        raise ValidationError("unit_price must be >= 0", field="unit_price")
    item = MenuItem(str(payload["item_id"]), str(payload["name"]), unit_price)
    try:
        qty = int(payload.get("quantity") or 1)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer", field="quantity")
    cart = _components()["cart_service"].add_item(principal.user_id, str(payload["restaurant_id"]), item, qty)
    return jsonify(cart.to_dict()), 201


@api_bp.put("/cart/items/<item_id>")
def update_cart_item(item_id: str):
    principal = _customer()
    try:
        qty = int(_payload().get("quantity", 0))
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer", field="quantity")
    cart = _components()["cart_service"].set_quantity(principal.user_id, item_id, qty)
    return jsonify(cart.to_dict())


@api_bp.delete("/cart/items/<item_id>")
def remove_cart_item(item_id: str):
    principal = _customer()
    cart = _components()["cart_service"].remove_item(principal.user_id, item_id)
    return jsonify(cart.to_dict())


@api_bp.delete("/cart")
def clear_cart():
    principal = _customer()
    _components()["cart_service"].clear(principal.user_id)
    return jsonify({"status": "ok"})


# --- Checkout & orders ---

@api_bp.post("/checkout")
def checkout():
    principal = _customer()
    payload = _payload()
    require_fields(payload, ("payment_method",))
    result = _components()["checkout_service"].checkout(
        principal,
        payload["payment_method"],
        reservation_id=payload.get("reservation_id") or None,
        notes=payload.get("notes"),
        contact={k: payload.get(k) for k in ("name", "email", "phone")},
    )
    return jsonify(result.to_dict()), 201


@api_bp.post("/orders/<order_id>/retry-payment")
def retry_payment(order_id: str):
    principal = _customer()
    payload = _payload()
    result = _components()["checkout_service"].retry_payment(
        principal,
        order_id,
        contact={k: payload.get(k) for k in ("name", "email", "phone")},
    )
    return jsonify(result.to_dict()), 201


@api_bp.get("/orders")
def list_orders():
    principal = _customer()
    orders = _components()["order_service"].list_for_customer(principal.user_id)
    return jsonify({"orders": [to_order_dto(o) for o in orders]})


@api_bp.get("/orders/<order_id>")
def get_order(order_id: str):
    order = _components()["order_service"].get_order(_principal(), order_id)
    return jsonify({"order": to_order_dto(order)})


# --- Payments ---

@api_bp.get("/payments/<payment_id>")
def get_payment(payment_id: str):
    row = _components()["payment_service"].get_session(_principal(), payment_id)
    return jsonify({"payment": to_payment_session_dto(row)})


@api_bp.get("/payments/<payment_id>/status")
def poll_payment(payment_id: str):
    """Called when the customer returns from the hosted page and confirms payment."""
    principal = _customer()
    engine = _components()["reconciliation"]
    result = engine.poll(payment_id, principal)
    order = _components()["order_service"].get_order(principal, result.order_id)
    data = result.to_dict()
    data["order"] = to_order_dto(order)
    return jsonify(data)


@api_bp.post("/payments/callback")
def payment_callback():
    """Gateway webhook. Terminal statuses are confirmed with the gateway; duplicates are acknowledged without effect."""
    payload = request.get_json(silent=True) or request.form.to_dict()
    result = _components()["reconciliation"].handle_webhook(payload)
    return jsonify({"status": "ok", "result": result.to_dict()})


# --- Reservations ---

@api_bp.post("/reservations")
def create_reservation():
    principal = _customer()
    reservation = _components()["reservation_service"].create_reservation(principal, _payload())
    return jsonify({"reservation": to_reservation_dto(reservation)}), 201


@api_bp.get("/reservations")
def list_reservations():
    principal = _customer()
    rows = _components()["reservation_service"].list_for_customer(principal.user_id)
    return jsonify({"reservations": [to_reservation_dto(r) for r in rows]})


@api_bp.get("/reservations/<reservation_id>")
def get_reservation(reservation_id: str):
    row = _components()["reservation_service"].get_reservation(_principal(), reservation_id)
    return jsonify({"reservation": to_reservation_dto(row)})


@api_bp.post("/reservations/<reservation_id>/cancel")
def cancel_reservation(reservation_id: str):
    row = _components()["reservation_service"].cancel(_customer(), reservation_id)
    return jsonify({"reservation": to_reservation_dto(row)})


@api_bp.post("/reservations/<reservation_id>/request-cancellation")
def request_cancellation(reservation_id: str):
    reason = _payload().get("reason")
    row = _components()["reservation_service"].request_cancellation(_customer(), reservation_id, reason)
    return jsonify({"reservation": to_reservation_dto(row)})


@api_bp.post("/reservations/<reservation_id>/withdraw-cancellation")
def withdraw_cancellation(reservation_id: str):
    row = _components()["reservation_service"].withdraw_cancellation_request(_customer(), reservation_id)
    return jsonify({"reservation": to_reservation_dto(row)})


@api_bp.get("/history")
def customer_history():
    principal = _customer()
    history = _components()["history_service"].customer_history(principal.user_id)
    return jsonify(history.to_dict())
