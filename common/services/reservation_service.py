"""Reservation lifecycle.

Every transition is a compare-and-set on the row's status: the UPDATE only
matches while the status is still the one the transition was validated
against, so a staff approval racing a customer withdrawal cannot both win.
"""
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy import select, update

from ..auth import Principal
from ..db.session import get_session
from ..errors import InvalidTransition, NotFoundError, PermissionDenied, ValidationError
from ..models.enums import ReservationStatus
from ..models.reservation import Reservation
from ..utils.validators import (
    require_fields,
    validate_date,
    validate_party_size,
    validate_reason,
    validate_time,
)
from .logging import log_event
from .transitions import RESERVATION_TRANSITIONS, check_transition, parse_status

R = ReservationStatus
ENTITY = "reservation"


class ReservationService:
    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    # --- creation & reads -------------------------------------------------

    def create_reservation(self, principal: Principal, payload: Dict) -> Reservation:
        principal.require_customer()
        require_fields(payload, ("restaurant_id", "date", "time", "party_size"))
        special = (payload.get("special_requests") or "").strip() or None
        if special and len(special) > 1000:
            raise ValidationError("special_requests must be at most 1000 characters", field="special_requests")
        reservation = Reservation(
            id=str(uuid4()),
            customer_id=principal.user_id,
            restaurant_id=str(payload["restaurant_id"]),
            table_id=str(payload["table_id"]) if payload.get("table_id") is not None else None,
            date=validate_date(payload["date"]),
            time=validate_time(payload["time"]),
            party_size=validate_party_size(payload["party_size"]),
            special_requests=special,
            status=R.PENDING.value,
        )
        with self._session_factory() as session:
            session.add(reservation)
            session.flush()
            session.refresh(reservation)
        log_event(
            "info",
            "reservation.created",
            reservation_id=reservation.id,
            restaurant_id=reservation.restaurant_id,
            party_size=reservation.party_size,
        )
        return reservation

    def get_reservation(self, principal: Principal, reservation_id: str) -> Reservation:
        with self._session_factory() as session:
            row = self._load(session, reservation_id)
            self._authorize_read(principal, row)
            return row

    def list_for_customer(self, customer_id: str) -> List[Reservation]:
        with self._session_factory() as session:
            return (
                session.query(Reservation)
                .filter(Reservation.customer_id == customer_id)
                .order_by(Reservation.date.desc(), Reservation.time.desc())
                .all()
            )

    def list_for_restaurant(self, restaurant_id: str, status: Optional[str] = None) -> List[Reservation]:
        with self._session_factory() as session:
            q = session.query(Reservation).filter(Reservation.restaurant_id == str(restaurant_id))
            if status:
                q = q.filter(Reservation.status == parse_status(ReservationStatus, status).value)
            return q.order_by(Reservation.date.desc(), Reservation.time.desc()).all()

    # --- customer actions -------------------------------------------------

    def cancel(self, principal: Principal, reservation_id: str) -> Reservation:
        """Direct customer cancel, legal only while the booking is still pending."""
        def guard(row: Reservation) -> None:
            self._authorize_owner(principal, row)
            if row.status != R.PENDING.value:
                raise InvalidTransition(ENTITY, row.status, R.CANCELLED.value)

        return self._transition(reservation_id, R.CANCELLED, guard)

    def request_cancellation(self, principal: Principal, reservation_id: str, reason: str) -> Reservation:
        reason = validate_reason(reason)

        def guard(row: Reservation) -> None:
            self._authorize_owner(principal, row)

        def values(row: Reservation) -> Dict:
            return {"previous_status": row.status, "cancellation_reason": reason}

        return self._transition(reservation_id, R.CANCELLATION_REQUESTED, guard, values)

    def withdraw_cancellation_request(self, principal: Principal, reservation_id: str) -> Reservation:
        return self._restore(reservation_id, lambda row: self._authorize_owner(principal, row), "withdrawn")

    # --- staff actions ----------------------------------------------------

    def confirm(self, principal: Principal, reservation_id: str) -> Reservation:
        return self._staff_transition(principal, reservation_id, R.CONFIRMED, {R.PENDING})

    def staff_cancel(self, principal: Principal, reservation_id: str) -> Reservation:
        return self._staff_transition(principal, reservation_id, R.CANCELLED, {R.PENDING, R.CONFIRMED})

    def approve_cancellation(self, principal: Principal, reservation_id: str) -> Reservation:
        return self._staff_transition(
            principal,
            reservation_id,
            R.CANCELLED,
            {R.CANCELLATION_REQUESTED},
            extra={"previous_status": None},
        )

    def reject_cancellation(self, principal: Principal, reservation_id: str) -> Reservation:
        return self._restore(reservation_id, lambda row: self._authorize_staff(principal, row), "rejected")

    def complete(self, principal: Principal, reservation_id: str) -> Reservation:
        return self._staff_transition(principal, reservation_id, R.COMPLETED, {R.CONFIRMED})

    def mark_no_show(self, principal: Principal, reservation_id: str) -> Reservation:
        return self._staff_transition(principal, reservation_id, R.NO_SHOW, {R.CONFIRMED})

    def update_status(self, principal: Principal, reservation_id: str, status: str) -> Reservation:
        """Staff status update as sent by the staff screen."""
        target = parse_status(ReservationStatus, status)
        actions = {
            R.CONFIRMED: self.confirm,
            R.CANCELLED: self.staff_cancel,
            R.COMPLETED: self.complete,
            R.NO_SHOW: self.mark_no_show,
        }
        action = actions.get(target)
        if action is None:
            raise ValidationError(f"staff cannot set status '{target.value}' directly", field="status")
        return action(principal, reservation_id)

    # --- internals --------------------------------------------------------

    @staticmethod
    def _load(session, reservation_id: str) -> Reservation:
        row = session.get(Reservation, reservation_id)
        if row is None:
            raise NotFoundError("reservation", reservation_id)
        return row

    @staticmethod
    def _authorize_read(principal: Principal, row: Reservation) -> None:
        if principal.is_customer:
            if row.customer_id != principal.user_id:
                raise PermissionDenied("not your reservation")
        elif not principal.can_manage(row.restaurant_id):
            raise PermissionDenied("reservation belongs to another restaurant")

    @staticmethod
    def _authorize_owner(principal: Principal, row: Reservation) -> None:
        if not principal.is_customer or row.customer_id != principal.user_id:
            raise PermissionDenied("only the booking customer can do this")

    @staticmethod
    def _authorize_staff(principal: Principal, row: Reservation) -> None:
        principal.require_staff()
        if not principal.can_manage(row.restaurant_id):
            raise PermissionDenied("reservation belongs to another restaurant")

    def _staff_transition(self, principal, reservation_id, target, sources, extra=None) -> Reservation:
        def guard(row: Reservation) -> None:
            self._authorize_staff(principal, row)
            if R(row.status) not in sources:
                raise InvalidTransition(ENTITY, row.status, target.value)

        return self._transition(reservation_id, target, guard, lambda row: dict(extra or {}))

    def _restore(self, reservation_id: str, authorize, outcome: str) -> Reservation:
        """Leave cancellation_requested for exactly the status held before the request."""
        with self._session_factory() as session:
            row = self._load(session, reservation_id)
            authorize(row)
            current = R(row.status)
            if current is not R.CANCELLATION_REQUESTED or not row.previous_status:
                raise InvalidTransition(ENTITY, current.value, row.previous_status or "previous status")
            target = R(row.previous_status)
            check_transition(RESERVATION_TRANSITIONS, ENTITY, current, target)
            self._compare_and_set(
                session,
                row,
                current,
                target,
                {"previous_status": None, "cancellation_reason": None},
            )
        log_event("info", f"reservation.cancellation_{outcome}", reservation_id=reservation_id, status=target.value)
        return row

    def _transition(self, reservation_id: str, target: ReservationStatus, guard, values=None) -> Reservation:
        with self._session_factory() as session:
            row = self._load(session, reservation_id)
            guard(row)
            current = R(row.status)
            check_transition(RESERVATION_TRANSITIONS, ENTITY, current, target)
            extra = values(row) if values else {}
            self._compare_and_set(session, row, current, target, extra)
        log_event(
            "info",
            "reservation.status_changed",
            reservation_id=reservation_id,
            previous=current.value,
            status=target.value,
        )
        return row

    @staticmethod
    def _compare_and_set(session, row: Reservation, current, target, extra: Dict) -> None:
        result = session.execute(
            update(Reservation)
            .where(Reservation.id == row.id, Reservation.status == current.value)
            .values(status=target.value, **extra)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            latest = session.execute(select(Reservation.status).where(Reservation.id == row.id)).scalar_one()
            log_event("warning", "reservation.lost_update", reservation_id=row.id, expected=current.value, found=latest)
            raise InvalidTransition(ENTITY, latest, target.value)
        session.refresh(row)
