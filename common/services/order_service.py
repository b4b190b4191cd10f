from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import select, update

from ..auth import Principal
from ..db.session import get_session, session_scope
from ..errors import InvalidTransition, NotFoundError, PermissionDenied, ValidationError
from ..models.enums import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReservationStatus,
    TERMINAL_RESERVATION,
)
from ..models.order import Order
from ..models.reservation import Reservation
from ..utils.money import line_total, parse_decimal, quantize, sum_amounts
from ..utils.validators import ensure_positive_int
from .logging import log_event
from .transitions import ORDER_NEXT, ORDER_TRANSITIONS, check_transition, parse_status

O = OrderStatus
ENTITY = "order"


def build_order_items(items: Iterable) -> List[Dict]:
    """Normalize cart lines or raw dicts into OrderItem snapshots.

    Amounts are stored as decimal strings so the JSON column never round-trips
    them through float.
    """
    snapshot = []
    for it in items:
        if isinstance(it, dict):
            name = it.get("item_name") or it.get("name")
            quantity = it.get("quantity")
            unit_price = it.get("unit_price", it.get("price"))
            supplied = it.get("subtotal")
            instructions = it.get("special_instructions")
            item_id = it.get("item_id")
        else:
            name, quantity, unit_price = it.name, it.quantity, it.unit_price
            supplied, instructions, item_id = None, None, getattr(it, "item_id", None)
        if not name:
            raise ValidationError("item_name required", field="items")
        qty = ensure_positive_int(quantity, "quantity")
        if unit_price is None or (isinstance(unit_price, str) and not unit_price.strip()):
            raise ValidationError("unit_price required", field="unit_price")
        price = parse_decimal(unit_price, "unit_price")
        if price < 0:
            raise ValidationError("unit_price must be >= 0", field="unit_price")
        subtotal = quantize(parse_decimal(supplied, "subtotal")) if supplied not in (None, "") else line_total(price, qty)
        entry = {
            "item_id": str(item_id) if item_id is not None else None,
            "item_name": str(name),
            "quantity": qty,
            "unit_price": str(quantize(price)),
            "subtotal": str(subtotal),
        }
        if instructions:
            entry["special_instructions"] = str(instructions)
        snapshot.append(entry)
    if not snapshot:
        raise ValidationError("order must contain at least one item", field="items")
    return snapshot


def order_total(snapshot: List[Dict]) -> Decimal:
    return sum_amounts((line_total(e["unit_price"], e["quantity"]) for e in snapshot), "unit_price")


class OrderService:
    """Order creation, staff progression and payment marking backed by DB."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def create_order(
        self,
        *,
        customer_id: str,
        restaurant_id: str,
        items: Iterable,
        payment_method: str,
        currency: str,
        reservation_id: Optional[str] = None,
        notes: Optional[str] = None,
        session=None,
    ) -> Order:
        method = parse_status(PaymentMethod, payment_method, "payment_method")
        snapshot = build_order_items(items)
        with session_scope(self._session_factory, session) as session:
            if reservation_id:
                self._check_reservation(session, reservation_id, customer_id, restaurant_id)
            order = Order(
                id=str(uuid4()),
                customer_id=customer_id,
                restaurant_id=str(restaurant_id),
                reservation_id=reservation_id or None,
                items=snapshot,
                total_amount=order_total(snapshot),
                currency=currency,
                status=O.PENDING.value,
                payment_method=method.value,
                payment_status=PaymentStatus.UNPAID.value,
                notes=notes,
            )
            session.add(order)
            session.flush()
            log_event(
                "info",
                "order.created",
                order_id=order.id,
                items=len(snapshot),
                total=str(order.total_amount),
                payment_method=method.value,
                reservation_id=order.reservation_id,
            )
            return order

    def get_order(self, principal: Principal, order_id: str) -> Order:
        with self._session_factory() as session:
            order = self._load(session, order_id)
            if principal.is_customer:
                if order.customer_id != principal.user_id:
                    raise PermissionDenied("not your order")
            elif not principal.can_manage(order.restaurant_id):
                raise PermissionDenied("order belongs to another restaurant")
            return order

    def list_for_customer(self, customer_id: str) -> List[Order]:
        with self._session_factory() as session:
            return (
                session.query(Order)
                .filter(Order.customer_id == customer_id)
                .order_by(Order.created_at.desc())
                .all()
            )

    def list_for_restaurant(self, restaurant_id: str, status: Optional[str] = None) -> List[Order]:
        with self._session_factory() as session:
            q = session.query(Order).filter(Order.restaurant_id == str(restaurant_id))
            if status:
                q = q.filter(Order.status == parse_status(OrderStatus, status).value)
            return q.order_by(Order.created_at.desc()).all()

    def update_status(self, principal: Principal, order_id: str, status: str) -> Order:
        principal.require_staff()
        target = parse_status(OrderStatus, status)
        with self._session_factory() as session:
            order = self._load(session, order_id)
            if not principal.can_manage(order.restaurant_id):
                raise PermissionDenied("order belongs to another restaurant")
            return self.transition(order_id, target, session=session)

    def advance(self, principal: Principal, order_id: str) -> Order:
        """Move an order one step along pending → confirmed → preparing → ready → completed."""
        principal.require_staff()
        with self._session_factory() as session:
            order = self._load(session, order_id)
            if not principal.can_manage(order.restaurant_id):
                raise PermissionDenied("order belongs to another restaurant")
            target = ORDER_NEXT.get(O(order.status))
            if target is None:
                raise InvalidTransition(ENTITY, order.status, "next")
            return self.transition(order_id, target, session=session)

    def cancel(self, principal: Principal, order_id: str) -> Order:
        return self.update_status(principal, order_id, O.CANCELLED.value)

    def transition(self, order_id: str, target: OrderStatus, session=None) -> Order:
        with session_scope(self._session_factory, session) as session:
            order = self._load(session, order_id)
            current = O(order.status)
            check_transition(ORDER_TRANSITIONS, ENTITY, current, target)
            values = {"status": target.value}
            # cash settles at the counter the moment the order is confirmed
            if target is O.CONFIRMED and order.payment_method == PaymentMethod.COUNTER.value:
                values.update(payment_status=PaymentStatus.PAID.value, paid_at=datetime.utcnow())
            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                latest = session.execute(select(Order.status).where(Order.id == order_id)).scalar_one()
                raise InvalidTransition(ENTITY, latest, target.value)
            session.refresh(order)
            log_event("info", "order.status_changed", order_id=order_id, previous=current.value, status=target.value)
            return order

    def mark_paid(self, order_id: str, session=None) -> bool:
        """Record a completed gateway payment. Returns False when the order was already paid."""
        with session_scope(self._session_factory, session) as session:
            order = self._load(session, order_id)
            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.payment_status == PaymentStatus.UNPAID.value)
                .values(payment_status=PaymentStatus.PAID.value, paid_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                log_event("info", "order.already_paid", order_id=order_id)
                return False
            session.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == O.PENDING.value)
                .values(status=O.CONFIRMED.value)
                .execution_options(synchronize_session=False)
            )
            session.refresh(order)
            log_event("info", "order.paid", order_id=order_id, status=order.status)
            return True

    @staticmethod
    def _load(session, order_id: str) -> Order:
        order = session.get(Order, order_id)
        if order is None:
            raise NotFoundError("order", order_id)
        return order

    @staticmethod
    def _check_reservation(session, reservation_id: str, customer_id: str, restaurant_id: str) -> None:
        reservation = session.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("reservation", reservation_id)
        if reservation.customer_id != customer_id:
            raise PermissionDenied("reservation belongs to another customer")
        if reservation.restaurant_id != str(restaurant_id):
            raise ValidationError("reservation is for a different restaurant", field="reservation_id")
        if ReservationStatus(reservation.status) in TERMINAL_RESERVATION:
            raise ValidationError(f"reservation is {reservation.status}", field="reservation_id")
