"""Read-only projections joining reservations with their orders."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from ..models.enums import OrderStatus, PaymentStatus, ReservationStatus
from ..utils.dto import to_order_dto, to_reservation_dto
from ..utils.money import parse_decimal, quantize, to_json_number
from .order_service import OrderService
from .reservation_service import ReservationService


def _field(row: Any, name: str, default=None):
    if isinstance(row, dict):
        return row.get(name, default)
    return getattr(row, name, default)


def _as_dict(row: Any, converter) -> Dict:
    return dict(row) if isinstance(row, dict) else converter(row)


@dataclass
class ReservationView:
    reservation: Dict
    orders: List[Dict] = field(default_factory=list)
    total_order_amount: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict:
        data = dict(self.reservation)
        data["orders"] = self.orders
        data["total_order_amount"] = to_json_number(self.total_order_amount)
        return data


@dataclass
class CustomerHistory:
    reservations: List[ReservationView]
    standalone_orders: List[Dict]

    def to_dict(self) -> Dict:
        return {
            "reservations": [v.to_dict() for v in self.reservations],
            "orders": self.standalone_orders,
        }


def build_customer_history(reservations: Iterable[Any], orders: Iterable[Any]) -> CustomerHistory:
    """Attach each order to its reservation and total the amounts as exact decimals.

    Accepts ORM rows or plain dicts; ``total_amount`` may be a number or a
    numeric string. Orders without a matching reservation are listed separately.
    """
    views: List[ReservationView] = []
    by_id: Dict[str, ReservationView] = {}
    for r in reservations:
        view = ReservationView(reservation=_as_dict(r, to_reservation_dto))
        views.append(view)
        by_id[str(_field(r, "id"))] = view

    standalone: List[Dict] = []
    totals: Dict[str, Decimal] = {key: Decimal("0") for key in by_id}
    for o in orders:
        reservation_id = _field(o, "reservation_id")
        view = by_id.get(str(reservation_id)) if reservation_id is not None else None
        if view is None:
            standalone.append(_as_dict(o, to_order_dto))
            continue
        view.orders.append(_as_dict(o, to_order_dto))
        totals[str(reservation_id)] += parse_decimal(_field(o, "total_amount"), "total_amount")

    for key, view in by_id.items():
        view.total_order_amount = quantize(totals[key])
    return CustomerHistory(reservations=views, standalone_orders=standalone)


def build_restaurant_summary(reservations: Iterable[Any], orders: Iterable[Any]) -> Dict:
    """Status counts and paid revenue for the staff dashboard."""
    reservation_counts = {s.value: 0 for s in ReservationStatus}
    for r in reservations:
        status = _field(r, "status")
        reservation_counts[status] = reservation_counts.get(status, 0) + 1

    order_counts = {s.value: 0 for s in OrderStatus}
    revenue = Decimal("0")
    unpaid = Decimal("0")
    for o in orders:
        status = _field(o, "status")
        order_counts[status] = order_counts.get(status, 0) + 1
        amount = parse_decimal(_field(o, "total_amount"), "total_amount")
        if _field(o, "payment_status") == PaymentStatus.PAID.value:
            revenue += amount
        elif status != OrderStatus.CANCELLED.value:
            unpaid += amount

    return {
        "reservations": reservation_counts,
        "orders": order_counts,
        "pending_cancellation_requests": reservation_counts[ReservationStatus.CANCELLATION_REQUESTED.value],
        "paid_revenue": to_json_number(quantize(revenue)),
        "outstanding_amount": to_json_number(quantize(unpaid)),
    }


class HistoryService:
    def __init__(self, reservations: ReservationService, orders: OrderService):
        self._reservations = reservations
        self._orders = orders

    def customer_history(self, customer_id: str) -> CustomerHistory:
        return build_customer_history(
            self._reservations.list_for_customer(customer_id),
            self._orders.list_for_customer(customer_id),
        )

    def restaurant_summary(self, restaurant_id: str) -> Dict:
        summary = build_restaurant_summary(
            self._reservations.list_for_restaurant(restaurant_id),
            self._orders.list_for_restaurant(restaurant_id),
        )
        summary["restaurant_id"] = str(restaurant_id)
        return summary
