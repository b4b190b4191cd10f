import re
from datetime import datetime
from typing import Any, Dict, Iterable

from ..errors import ValidationError

MAX_REASON_LENGTH = 500
MIN_PARTY_SIZE = 1
MAX_PARTY_SIZE = 20

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def ensure_positive_int(value: Any, field: str) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field=field)
    if v <= 0:
        raise ValidationError(f"{field} must be > 0", field=field)
    return v


def require_fields(payload: Dict[str, Any], fields: Iterable[str]) -> None:
    for f in fields:
        value = payload.get(f)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{f} required", field=f)


def validate_date(value: str) -> str:
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", field="date")


def validate_time(value: str) -> str:
    text = str(value).strip()
    # accept HH:MM and HH:MM:SS, store HH:MM
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).strftime("%H:%M")
        except ValueError:
            continue
    raise ValidationError("time must be HH:MM", field="time")


def validate_party_size(value: Any) -> int:
    size = ensure_positive_int(value, "party_size")
    if not MIN_PARTY_SIZE <= size <= MAX_PARTY_SIZE:
        raise ValidationError(f"party_size must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}", field="party_size")
    return size


def validate_reason(value: Any) -> str:
    reason = str(value or "").strip()
    if not reason:
        raise ValidationError("reason required", field="reason")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason must be at most {MAX_REASON_LENGTH} characters", field="reason")
    return reason


def validate_email(value: Any) -> str:
    email = str(value or "").strip()
    if not _EMAIL_RE.match(email):
        raise ValidationError("a valid email is required", field="email")
    return email
