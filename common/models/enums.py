"""Closed status enumerations for reservations, orders and payment sessions."""
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLATION_REQUESTED = "cancellation_requested"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    COUNTER = "counter"
    GATEWAY = "gateway"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class SessionStatus(str, Enum):
    CREATED = "created"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class SignalSource(str, Enum):
    WEBHOOK = "webhook"
    POLL = "poll"
    EXPIRY = "expiry"
    SUPERSEDED = "superseded"


TERMINAL_RESERVATION = frozenset(
    {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED, ReservationStatus.NO_SHOW}
)
TERMINAL_SESSION = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED})
