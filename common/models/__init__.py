from .base import Base
from .cart_item import CartItem
from .order import Order
from .payment_session import PaymentSession, PaymentSignal
from .reservation import Reservation

__all__ = [
    "Base",
    "CartItem",
    "Order",
    "PaymentSession",
    "PaymentSignal",
    "Reservation",
]
