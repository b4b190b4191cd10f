from datetime import datetime, timedelta
from typing import List, Optional

from ..auth import Principal
from ..db.session import get_session
from ..errors import NotFoundError, PermissionDenied, ValidationError
from ..models.enums import OrderStatus, PaymentMethod, PaymentStatus, SessionStatus
from ..models.order import Order
from ..models.payment_session import PaymentSession
from ..utils.money import parse_decimal
from .logging import log_event
from .payment_gateway import PaymentCustomer, PaymentGateway

OPEN_STATUSES = (SessionStatus.CREATED.value, SessionStatus.PENDING.value)


class PaymentService:
    """Opens gateway payment sessions and persists them server-side, keyed by payment id."""

    def __init__(self, gateway: PaymentGateway, session_factory=get_session, ttl_minutes: int = 60):
        self._gateway = gateway
        self._session_factory = session_factory
        self._ttl = timedelta(minutes=ttl_minutes)

    def open_session(self, order: Order, customer: PaymentCustomer, purpose: Optional[str] = None) -> PaymentSession:
        if order.payment_method != PaymentMethod.GATEWAY.value:
            raise ValidationError("order is not paid through the gateway", field="payment_method")
        if order.payment_status != PaymentStatus.UNPAID.value:
            raise ValidationError("order is already paid", field="order_id")
        if order.status != OrderStatus.PENDING.value:
            raise ValidationError(f"order is {order.status}", field="order_id")
        amount = parse_decimal(order.total_amount, "total_amount")
        purpose = purpose or f"Order {order.id}"

        # network call stays outside any open transaction
        hosted = self._gateway.create_payment_session(order.id, amount, order.currency, purpose, customer)

        now = datetime.utcnow()
        row = PaymentSession(
            payment_id=hosted.payment_id,
            order_id=order.id,
            customer_id=order.customer_id,
            amount=amount,
            currency=order.currency,
            purpose=purpose,
            gateway_url=hosted.url,
            status=SessionStatus.CREATED.value,
            needs_review=False,
            expires_at=now + self._ttl,
        )
        with self._session_factory() as session:
            session.add(row)
            session.flush()
        log_event(
            "info",
            "payment.session_opened",
            payment_id=row.payment_id,
            order_id=order.id,
            amount=str(amount),
            currency=order.currency,
        )
        return row

    def get_session(self, principal: Principal, payment_id: str) -> PaymentSession:
        with self._session_factory() as session:
            row = session.get(PaymentSession, payment_id)
            if row is None:
                raise NotFoundError("payment", payment_id)
            if principal.is_customer and row.customer_id != principal.user_id:
                raise PermissionDenied("not your payment")
            if not principal.is_customer:
                order = session.get(Order, row.order_id)
                if order is None or not principal.can_manage(order.restaurant_id):
                    raise PermissionDenied("payment belongs to another restaurant")
            return row

    def sessions_for_order(self, order_id: str) -> List[PaymentSession]:
        with self._session_factory() as session:
            return (
                session.query(PaymentSession)
                .filter(PaymentSession.order_id == order_id)
                .order_by(PaymentSession.created_at)
                .all()
            )

    def open_sessions_for_order(self, order_id: str) -> List[PaymentSession]:
        return [s for s in self.sessions_for_order(order_id) if s.status in OPEN_STATUSES]
