from dataclasses import dataclass
from typing import Dict, Optional

from ..auth import Principal
from ..db.session import get_session
from ..errors import PermissionDenied, ValidationError
from ..models.enums import OrderStatus, PaymentMethod, PaymentStatus, SessionStatus
from ..models.order import Order
from ..models.payment_session import PaymentSession
from ..utils.dto import to_order_dto, to_payment_session_dto
from ..utils.validators import validate_email
from .cart_service import CartService
from .logging import log_event
from .order_service import OrderService
from .payment_gateway import PaymentCustomer
from .payment_service import PaymentService
from .reconciliation_service import ReconciliationEngine
from .transitions import parse_status


@dataclass
class CheckoutResult:
    order: Order
    payment: Optional[PaymentSession] = None

    def to_dict(self) -> Dict:
        return {
            "order": to_order_dto(self.order),
            "payment": to_payment_session_dto(self.payment) if self.payment else None,
        }


class CheckoutService:
    """Turns the customer's cart into an order and, for gateway payments, a payment session."""

    def __init__(
        self,
        carts: CartService,
        orders: OrderService,
        payments: PaymentService,
        reconciliation: ReconciliationEngine,
        currency: str,
        session_factory=get_session,
    ):
        self._carts = carts
        self._orders = orders
        self._payments = payments
        self._reconciliation = reconciliation
        self._currency = currency
        self._session_factory = session_factory

    def checkout(
        self,
        principal: Principal,
        payment_method: str,
        reservation_id: Optional[str] = None,
        notes: Optional[str] = None,
        contact: Optional[Dict] = None,
    ) -> CheckoutResult:
        principal.require_customer()
        method = parse_status(PaymentMethod, payment_method, "payment_method")
        customer = self._payment_customer(principal, contact) if method is PaymentMethod.GATEWAY else None
        cart = self._carts.get_cart(principal.user_id)
        if cart.is_empty():
            raise ValidationError("cart is empty", field="cart")

        if method is PaymentMethod.COUNTER:
            # order, confirmation and cart clearing commit together
            with self._session_factory() as session:
                order = self._orders.create_order(
                    customer_id=principal.user_id,
                    restaurant_id=cart.restaurant_id,
                    items=cart.items(),
                    payment_method=method.value,
                    currency=self._currency,
                    reservation_id=reservation_id,
                    notes=notes,
                    session=session,
                )
                order = self._orders.transition(order.id, OrderStatus.CONFIRMED, session=session)
                self._carts.clear(principal.user_id, session=session)
            log_event("info", "checkout.counter", order_id=order.id, total=str(order.total_amount))
            return CheckoutResult(order)

        order = self._orders.create_order(
            customer_id=principal.user_id,
            restaurant_id=cart.restaurant_id,
            items=cart.items(),
            payment_method=method.value,
            currency=self._currency,
            reservation_id=reservation_id,
            notes=notes,
        )
        # the cart survives until the payment is reconciled as completed;
        # a failed gateway call leaves an unpaid pending order the customer can retry
        payment = self._payments.open_session(order, customer)
        log_event("info", "checkout.gateway", order_id=order.id, payment_id=payment.payment_id)
        return CheckoutResult(order, payment)

    def retry_payment(self, principal: Principal, order_id: str, contact: Optional[Dict] = None) -> CheckoutResult:
        """Open a fresh payment session for an unpaid gateway order; old sessions are never reused."""
        principal.require_customer()
        order = self._orders.get_order(principal, order_id)
        if order.customer_id != principal.user_id:
            raise PermissionDenied("not your order")
        if order.payment_method != PaymentMethod.GATEWAY.value:
            raise ValidationError("order is paid at the counter", field="payment_method")
        customer = self._payment_customer(principal, contact)

        for open_session in self._payments.open_sessions_for_order(order.id):
            # ask the gateway first: the customer may have paid after all
            result = self._reconciliation.poll(open_session.payment_id)
            if result.status in (SessionStatus.CREATED, SessionStatus.PENDING):
                self._reconciliation.supersede(open_session.payment_id)

        order = self._orders.get_order(principal, order_id)
        if order.payment_status == PaymentStatus.PAID.value:
            raise ValidationError("order is already paid", field="order_id")
        payment = self._payments.open_session(order, customer)
        log_event("info", "checkout.retry", order_id=order.id, payment_id=payment.payment_id)
        return CheckoutResult(order, payment)

    @staticmethod
    def _payment_customer(principal: Principal, contact: Optional[Dict]) -> PaymentCustomer:
        contact = contact or {}
        name = (contact.get("name") or principal.name or "").strip()
        if not name:
            raise ValidationError("name required", field="name")
        email = validate_email(contact.get("email") or principal.email)
        phone = (contact.get("phone") or principal.phone or "").strip() or None
        return PaymentCustomer(name=name, email=email, phone=phone)
