from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _to_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int | float):
        d = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        try:
            d = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    return d if d.is_finite() else None


def parse_number(value: object, default: Decimal = ZERO) -> Decimal:
    """Parse a numeric leaf into a Decimal, returning *default* on any failure.

    Accepts str, int, float and Decimal. Strings are stripped and a lone
    comma is read as the decimal separator ("12,5" -> 12.5). NaN and
    infinities resolve to *default*. Never raises.
    """
    d = _to_decimal(value)
    return default if d is None else d


def format_plain(value: Decimal, places: int = 2) -> str:
    """Render a Decimal with a fixed number of places (half-up rounding).

    Precision is widened to fit the value, so large magnitudes never raise.
    """
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        return str(value.quantize(quantum, rounding=ROUND_HALF_UP))


def is_number(value: object) -> bool:
    """True when *value* parses as a finite number."""
    return _to_decimal(value) is not None
