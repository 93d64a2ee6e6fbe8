"""Decimal helpers for rate arithmetic through the canonical base currency."""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, getcontext, localcontext

ROUNDING_PRECISION = 28
MIN_CODE_LENGTH = 3
MAX_CODE_LENGTH = 10


def get_decimal_context():
    """Return the shared Decimal context used across rate arithmetic."""

    context = getcontext().copy()
    context.prec = ROUNDING_PRECISION
    context.rounding = ROUND_HALF_EVEN
    return context


def normalize_currency(code: str) -> str:
    """Normalize a currency code to canonical uppercase form."""

    if not code or not str(code).strip():
        raise ValueError("Currency code cannot be blank.")
    normalized = str(code).strip().upper()
    if not normalized.isascii():
        raise ValueError(f"Currency code must be ASCII: {code!r}")
    return normalized


def is_valid_code(code: str) -> bool:
    normalized = str(code or "").strip()
    return (
        MIN_CODE_LENGTH <= len(normalized) <= MAX_CODE_LENGTH
        and normalized.isascii()
        and normalized.isalnum()
    )


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert input into a Decimal using the shared context."""

    context = get_decimal_context()
    with localcontext(context):
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal value: {value!r}") from exc


def cross_convert(
    amount: Decimal | int | float | str,
    from_rate: Decimal | None,
    to_rate: Decimal | None,
) -> Decimal | None:
    """Convert ``amount`` of A into B where both rates are units per base.

    Returns ``None`` when either rate is unknown or the source rate is zero.
    """

    if from_rate is None or to_rate is None:
        return None
    from_dec = to_decimal(from_rate)
    if from_dec == 0:
        return None

    context = get_decimal_context()
    with localcontext(context):
        return to_decimal(amount) * to_decimal(to_rate) / from_dec


def price_to_rate(price: Decimal) -> Decimal:
    """Turn a price in base units (1 BTC = 65000 USD) into units per base."""

    if price <= 0:
        raise ValueError(f"Price must be positive, got {price!r}")
    context = get_decimal_context()
    with localcontext(context):
        return Decimal(1) / price
