from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from ..errors import ValidationError

CENT = Decimal("0.01")


def parse_decimal(value: Any, field: str = "amount") -> Decimal:
    """Parse a monetary value that may arrive as str/int/float/Decimal/None.

    Numeric strings such as ``"155.96"`` are parsed, never concatenated.
    ``None`` and empty strings count as zero.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric", field=field)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return Decimal("0")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"{field} must be numeric, got {value!r}", field=field)
    else:
        raise ValidationError(f"{field} must be numeric", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    return result


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_amounts(values: Iterable[Any], field: str = "amount") -> Decimal:
    total = Decimal("0")
    for v in values:
        total += parse_decimal(v, field)
    return quantize(total)


def line_total(unit_price: Any, quantity: int) -> Decimal:
    return quantize(parse_decimal(unit_price, "unit_price") * Decimal(int(quantity)))


def to_json_number(value: Decimal) -> float:
    return float(quantize(value))
