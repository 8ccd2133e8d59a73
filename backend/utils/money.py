from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from config.constants import COMMISSION_ROUNDING_UNIT, MINOR_UNITS_PER_RUPEE


def to_minor_units(value) -> int:
    """
    Convert a rupee value (int, float, Decimal or numeric string) to paise.
    Rejects booleans, blanks, non-finite and sub-paise values.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("Amount must be a number")

    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    minor = amount * MINOR_UNITS_PER_RUPEE
    if minor != minor.to_integral_value():
        raise ValueError("Amount has more than 2 decimal places")

    return int(minor)


def parse_rate(value) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError("Commission rate must be a number")

    try:
        rate = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid commission rate: {value!r}")

    if not rate.is_finite() or rate < 0 or rate > 1:
        raise ValueError("Commission rate must be between 0 and 1")

    return rate


def compute_commission(order_amount: int, rate: Decimal) -> int:
    """
    Earned commission in paise, rounded half-up to the nearest ₹10.
    Only applies to `earned` entries.
    """
    raw = Decimal(order_amount) * rate
    units = (raw / COMMISSION_ROUNDING_UNIT).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(units) * COMMISSION_ROUNDING_UNIT


def format_inr(amount: int) -> str:
    return f"₹{Decimal(amount) / MINOR_UNITS_PER_RUPEE:.2f}"
