from typing import Any, Dict

from .money import parse_decimal, to_json_number


def _iso(value: Any):
    return value.isoformat() if value is not None else None


def to_reservation_dto(row: Any) -> Dict:
    return {
        "id": getattr(row, "id", None),
        "customer_id": getattr(row, "customer_id", None),
        "restaurant_id": getattr(row, "restaurant_id", None),
        "table_id": getattr(row, "table_id", None),
        "date": getattr(row, "date", None),
        "time": getattr(row, "time", None),
        "party_size": getattr(row, "party_size", None),
        "special_requests": getattr(row, "special_requests", None),
        "status": getattr(row, "status", None),
        "cancellation_reason": getattr(row, "cancellation_reason", None),
        "created_at": _iso(getattr(row, "created_at", None)),
    }


def to_order_dto(row: Any) -> Dict:
    return {
        "id": getattr(row, "id", None),
        "customer_id": getattr(row, "customer_id", None),
        "restaurant_id": getattr(row, "restaurant_id", None),
        "reservation_id": getattr(row, "reservation_id", None),
        "items": getattr(row, "items", None) or [],
        "total_amount": to_json_number(parse_decimal(getattr(row, "total_amount", 0), "total_amount")),
        "currency": getattr(row, "currency", None),
        "status": getattr(row, "status", None),
        "payment_method": getattr(row, "payment_method", None),
        "payment_status": getattr(row, "payment_status", None),
        "notes": getattr(row, "notes", None),
        "created_at": _iso(getattr(row, "created_at", None)),
        "paid_at": _iso(getattr(row, "paid_at", None)),
    }


def to_payment_session_dto(row: Any) -> Dict:
    return {
        "payment_id": getattr(row, "payment_id", None),
        "order_id": getattr(row, "order_id", None),
        "amount": to_json_number(parse_decimal(getattr(row, "amount", 0))),
        "currency": getattr(row, "currency", None),
        "gateway_url": getattr(row, "gateway_url", None),
        "status": getattr(row, "status", None),
        "transaction_id": getattr(row, "transaction_id", None),
        "needs_review": bool(getattr(row, "needs_review", False)),
        "conflict_status": getattr(row, "conflict_status", None),
        "expires_at": _iso(getattr(row, "expires_at", None)),
    }
