"""
Payment reconciliation.

Two unordered, possibly duplicated signals report the outcome of a gateway
payment: the provider's webhook and the customer's "I have paid" status poll.
Both funnel into ``apply_signal``, which moves ``PaymentSession.status`` up the
lattice created < pending < {completed, failed} with a compare-and-set, so at
most one signal ever performs the terminal transition. The side effects of a
completed payment (order paid/confirmed, cart cleared) run in the same
transaction as that transition.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, update

from ..auth import Principal
from ..db.session import get_session
from ..errors import NotFoundError, PermissionDenied, ReconciliationConflict, ValidationError
from ..models.enums import OrderStatus, SessionStatus, SignalSource, TERMINAL_SESSION
from ..models.order import Order
from ..models.payment_session import PaymentSession, PaymentSignal
from .cart_service import CartService
from .logging import log_event
from .order_service import OrderService
from .payment_gateway import PaymentGateway, STATUS_MAP
from .payment_service import OPEN_STATUSES
from .transitions import session_advances


@dataclass
class ReconcileResult:
    payment_id: str
    order_id: str
    status: SessionStatus
    applied: bool
    conflict: Optional[ReconciliationConflict] = None

    def to_dict(self) -> Dict:
        return {
            "payment_id": self.payment_id,
            "order_id": self.order_id,
            "status": self.status.value,
            "applied": self.applied,
            "conflict": self.conflict.to_dict() if self.conflict else None,
        }


class ReconciliationEngine:
    def __init__(
        self,
        gateway: PaymentGateway,
        order_service: OrderService,
        cart_service: CartService,
        session_factory=get_session,
    ):
        self._gateway = gateway
        self._orders = order_service
        self._carts = cart_service
        self._session_factory = session_factory

    def handle_webhook(self, payload: Dict) -> ReconcileResult:
        payment_id = str(payload.get("payment_id") or payload.get("paymentId") or "").strip()
        if not payment_id:
            raise ValidationError("payment_id required", field="payment_id")
        raw_status = str(payload.get("status") or "").strip().lower()
        status = STATUS_MAP.get(raw_status)
        if status is None:
            raise ValidationError(f"unknown payment status {raw_status!r}", field="status")
        transaction_id = payload.get("transaction_id") or payload.get("transactionId")
        if status in TERMINAL_SESSION:
            # the callback carries no credential; a terminal outcome counts only once the gateway reports it too
            with self._session_factory() as session:
                if session.get(PaymentSession, payment_id) is None:
                    raise NotFoundError("payment", payment_id)
            confirmed = self._gateway.check_status(payment_id)
            if confirmed is not status:
                return self._record_unverified(payment_id, status, confirmed, transaction_id)
        return self.apply_signal(payment_id, status, SignalSource.WEBHOOK, transaction_id)

    def poll(self, payment_id: str, principal: Optional[Principal] = None) -> ReconcileResult:
        """Customer-initiated check after returning from the hosted page."""
        if principal is not None:
            self._authorize(payment_id, principal)
        reported = self._gateway.check_status(payment_id)
        return self.apply_signal(payment_id, reported, SignalSource.POLL)

    def apply_signal(
        self,
        payment_id: str,
        reported: SessionStatus,
        source: SignalSource,
        transaction_id: Optional[str] = None,
    ) -> ReconcileResult:
        with self._session_factory() as session:
            row = session.get(PaymentSession, payment_id)
            if row is None:
                raise NotFoundError("payment", payment_id)
            signal = PaymentSignal(
                payment_id=payment_id,
                source=source.value,
                status=reported.value,
                transaction_id=transaction_id,
                applied=False,
            )
            session.add(signal)

            current = SessionStatus(row.status)
            # a lost compare-and-set means another signal moved the session;
            # re-evaluate against what it wrote
            while True:
                if current in TERMINAL_SESSION or not session_advances(current, reported):
                    conflict = self._observe(session, row, current, reported, source)
                    return ReconcileResult(payment_id, row.order_id, current, False, conflict)
                values = {"status": reported.value}
                if transaction_id:
                    values["transaction_id"] = transaction_id
                result = session.execute(
                    update(PaymentSession)
                    .where(PaymentSession.payment_id == payment_id, PaymentSession.status == current.value)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    break
                current = SessionStatus(
                    session.execute(
                        select(PaymentSession.status).where(PaymentSession.payment_id == payment_id)
                    ).scalar_one()
                )

            signal.applied = True
            log_event(
                "info",
                "reconcile.transition",
                payment_id=payment_id,
                order_id=row.order_id,
                previous=current.value,
                status=reported.value,
                source=source.value,
            )
            if reported is SessionStatus.COMPLETED:
                self._orders.mark_paid(row.order_id, session=session)
                self._carts.clear(row.customer_id, session=session)
                order = session.get(Order, row.order_id)
                if order is not None and order.status == OrderStatus.CANCELLED.value:
                    # money taken for an order staff already cancelled: flag for refund
                    session.execute(
                        update(PaymentSession)
                        .where(PaymentSession.payment_id == payment_id)
                        .values(needs_review=True)
                        .execution_options(synchronize_session=False)
                    )
                    log_event("warning", "reconcile.paid_after_cancel", payment_id=payment_id, order_id=row.order_id)
            elif reported is SessionStatus.FAILED:
                log_event("info", "reconcile.payment_failed", payment_id=payment_id, order_id=row.order_id)
            session.flush()
            session.refresh(row)
            return ReconcileResult(payment_id, row.order_id, reported, True)

    def expire_stale_sessions(self, now: Optional[datetime] = None) -> List[ReconcileResult]:
        """Fail sessions that never received a terminal signal before ``expires_at``."""
        now = now or datetime.utcnow()
        with self._session_factory() as session:
            stale = [
                pid
                for (pid,) in session.execute(
                    select(PaymentSession.payment_id).where(
                        PaymentSession.status.in_(OPEN_STATUSES),
                        PaymentSession.expires_at.isnot(None),
                        PaymentSession.expires_at < now,
                    )
                )
            ]
        results = [self.apply_signal(pid, SessionStatus.FAILED, SignalSource.EXPIRY) for pid in stale]
        if results:
            log_event("info", "reconcile.expired", count=len(results))
        return results

    def supersede(self, payment_id: str) -> ReconcileResult:
        """Close an open session because the customer is starting a new attempt."""
        return self.apply_signal(payment_id, SessionStatus.FAILED, SignalSource.SUPERSEDED)

    def list_conflicts(self) -> List[PaymentSession]:
        with self._session_factory() as session:
            return (
                session.query(PaymentSession)
                .filter(PaymentSession.needs_review.is_(True))
                .order_by(PaymentSession.updated_at.desc())
                .all()
            )

    def signals_for(self, payment_id: str) -> List[PaymentSignal]:
        with self._session_factory() as session:
            return (
                session.query(PaymentSignal)
                .filter(PaymentSignal.payment_id == payment_id)
                .order_by(PaymentSignal.id)
                .all()
            )

    def _record_unverified(
        self,
        payment_id: str,
        reported: SessionStatus,
        confirmed: SessionStatus,
        transaction_id: Optional[str],
    ) -> ReconcileResult:
        with self._session_factory() as session:
            row = session.get(PaymentSession, payment_id)
            if row is None:
                raise NotFoundError("payment", payment_id)
            session.add(
                PaymentSignal(
                    payment_id=payment_id,
                    source=SignalSource.WEBHOOK.value,
                    status=reported.value,
                    transaction_id=transaction_id,
                    applied=False,
                )
            )
            log_event(
                "warning",
                "reconcile.unverified",
                payment_id=payment_id,
                reported=reported.value,
                gateway_status=confirmed.value,
            )
            return ReconcileResult(payment_id, row.order_id, SessionStatus(row.status), False)

    def _observe(self, session, row, current, reported, source) -> Optional[ReconciliationConflict]:
        """Log a signal that produces no state change; flag terminal disagreements."""
        if current in TERMINAL_SESSION and reported in TERMINAL_SESSION and reported is not current:
            conflict = ReconciliationConflict(row.payment_id, current.value, reported.value, source.value)
            session.execute(
                update(PaymentSession)
                .where(PaymentSession.payment_id == row.payment_id)
                .values(needs_review=True, conflict_status=reported.value)
                .execution_options(synchronize_session=False)
            )
            session.flush()
            session.refresh(row)
            log_event("warning", "reconcile.conflict", **conflict.to_dict())
            return conflict
        log_event(
            "info",
            "reconcile.ignored",
            payment_id=row.payment_id,
            status=current.value,
            reported=reported.value,
            source=source.value,
        )
        return None

    def _authorize(self, payment_id: str, principal: Principal) -> None:
        with self._session_factory() as session:
            row = session.get(PaymentSession, payment_id)
            if row is None:
                raise NotFoundError("payment", payment_id)
            if principal.is_customer and row.customer_id != principal.user_id:
                raise PermissionDenied("not your payment")
