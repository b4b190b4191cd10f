"""Staff and admin API: reservation/order management and payment review."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, g, jsonify, request

from common.auth import Principal, Role, bearer_token
from common.errors import PermissionDenied, ValidationError
from common.utils.dto import to_order_dto, to_payment_session_dto, to_reservation_dto
from common.utils.pagination import paginate


staff_bp = Blueprint("restaurant_staff", __name__, url_prefix="/api/staff")


def _components() -> Dict[str, Any]:
    return current_app.extensions["restaurant_components"]


def _principal() -> Principal:
    return g.staff_principal


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _restaurant_id() -> str:
    principal = _principal()
    if principal.role is Role.STAFF:
        return principal.restaurant_id
    restaurant_id = request.args.get("restaurant_id")
    if not restaurant_id:
        raise ValidationError("restaurant_id query parameter required for admin", field="restaurant_id")
    return restaurant_id


def _require_admin() -> None:
    if _principal().role is not Role.ADMIN:
        raise PermissionDenied("admin role required")


def _page_args():
    try:
        return int(request.args.get("page", 1)), int(request.args.get("per_page", 20))
    except ValueError:
        raise ValidationError("page and per_page must be integers")


@staff_bp.before_request
def guard_staff_routes():
    token = bearer_token(request.headers.get("Authorization"))
    g.staff_principal = _components()["identity"].verify(token).require_staff()
    return None


# --- Reservations ---

@staff_bp.get("/reservations")
def list_reservations():
    rows = _components()["reservation_service"].list_for_restaurant(_restaurant_id(), request.args.get("status"))
    page, per_page = _page_args()
    data = paginate([to_reservation_dto(r) for r in rows], page, per_page)
    data["reservations"] = data.pop("items")
    return jsonify(data)


@staff_bp.put("/reservations/<reservation_id>/status")
def update_reservation_status(reservation_id: str):
    status = _payload().get("status")
    if not status:
        raise ValidationError("status required", field="status")
    row = _components()["reservation_service"].update_status(_principal(), reservation_id, status)
    return jsonify({"reservation": to_reservation_dto(row)})


@staff_bp.post("/reservations/<reservation_id>/approve-cancellation")
def approve_cancellation(reservation_id: str):
    row = _components()["reservation_service"].approve_cancellation(_principal(), reservation_id)
    return jsonify({"reservation": to_reservation_dto(row)})


@staff_bp.post("/reservations/<reservation_id>/reject-cancellation")
def reject_cancellation(reservation_id: str):
    row = _components()["reservation_service"].reject_cancellation(_principal(), reservation_id)
    return jsonify({"reservation": to_reservation_dto(row)})


# --- Orders ---

@staff_bp.get("/orders")
def list_orders():
    rows = _components()["order_service"].list_for_restaurant(_restaurant_id(), request.args.get("status"))
    page, per_page = _page_args()
    data = paginate([to_order_dto(o) for o in rows], page, per_page)
    data["orders"] = data.pop("items")
    return jsonify(data)


@staff_bp.put("/orders/<order_id>/status")
def update_order_status(order_id: str):
    status = _payload().get("status")
    if not status:
        raise ValidationError("status required", field="status")
    order = _components()["order_service"].update_status(_principal(), order_id, status)
    return jsonify({"order": to_order_dto(order)})


@staff_bp.post("/orders/<order_id>/advance")
def advance_order(order_id: str):
    order = _components()["order_service"].advance(_principal(), order_id)
    return jsonify({"order": to_order_dto(order)})


@staff_bp.get("/stats")
def restaurant_stats():
    return jsonify(_components()["history_service"].restaurant_summary(_restaurant_id()))


# --- Payment review (admin) ---

@staff_bp.get("/payments/conflicts")
def list_payment_conflicts():
    _require_admin()
    rows = _components()["reconciliation"].list_conflicts()
    return jsonify({"payments": [to_payment_session_dto(r) for r in rows]})


@staff_bp.get("/payments/<payment_id>/signals")
def list_payment_signals(payment_id: str):
    _require_admin()
    signals = _components()["reconciliation"].signals_for(payment_id)
    return jsonify(
        {
            "signals": [
                {
                    "source": s.source,
                    "status": s.status,
                    "transaction_id": s.transaction_id,
                    "applied": bool(s.applied),
                    "received_at": s.received_at.isoformat() if s.received_at else None,
                }
                for s in signals
            ]
        }
    )


@staff_bp.post("/payments/expire")
def expire_payments():
    _require_admin()
    results = _components()["reconciliation"].expire_stale_sessions()
    return jsonify({"expired": [r.to_dict() for r in results]})
