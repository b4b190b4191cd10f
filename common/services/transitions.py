"""Exhaustive transition tables for the reservation, order and payment-session lifecycles."""
from typing import Dict, FrozenSet, Type, TypeVar
from enum import Enum

from ..errors import InvalidTransition, ValidationError
from ..models.enums import OrderStatus, ReservationStatus, SessionStatus

E = TypeVar("E", bound=Enum)

R = ReservationStatus
RESERVATION_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    R.PENDING: frozenset({R.CONFIRMED, R.CANCELLED, R.CANCELLATION_REQUESTED}),
    R.CONFIRMED: frozenset({R.CANCELLATION_REQUESTED, R.CANCELLED, R.COMPLETED, R.NO_SHOW}),
    # leaving cancellation_requested towards pending/confirmed is only legal
    # when restoring the remembered prior status, see ReservationService
    R.CANCELLATION_REQUESTED: frozenset({R.CANCELLED, R.CONFIRMED, R.PENDING}),
    R.CANCELLED: frozenset(),
    R.COMPLETED: frozenset(),
    R.NO_SHOW: frozenset(),
}

O = OrderStatus
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    O.PENDING: frozenset({O.CONFIRMED, O.CANCELLED}),
    O.CONFIRMED: frozenset({O.PREPARING, O.CANCELLED}),
    O.PREPARING: frozenset({O.READY, O.CANCELLED}),
    O.READY: frozenset({O.COMPLETED, O.CANCELLED}),
    O.COMPLETED: frozenset(),
    O.CANCELLED: frozenset(),
}

ORDER_NEXT: Dict[OrderStatus, OrderStatus] = {
    O.PENDING: O.CONFIRMED,
    O.CONFIRMED: O.PREPARING,
    O.PREPARING: O.READY,
    O.READY: O.COMPLETED,
}

# created < pending < {completed, failed}
SESSION_RANK: Dict[SessionStatus, int] = {
    SessionStatus.CREATED: 0,
    SessionStatus.PENDING: 1,
    SessionStatus.COMPLETED: 2,
    SessionStatus.FAILED: 2,
}


def parse_status(enum_cls: Type[E], value, field: str = "status") -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value or "").strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}", field=field)


def check_transition(table: Dict[E, FrozenSet[E]], entity: str, current: E, target: E) -> None:
    if target not in table.get(current, frozenset()):
        raise InvalidTransition(entity, current.value, target.value)


def session_advances(current: SessionStatus, reported: SessionStatus) -> bool:
    """True when ``reported`` is strictly above ``current`` in the session lattice."""
    return SESSION_RANK[reported] > SESSION_RANK[current]
