"""
Money helpers.

Balances, stakes and payouts are stored as integer minor units (kobo for NGN)
so that ledger arithmetic is exact. The service layer accepts and returns
``Decimal`` amounts with two decimal places; conversion happens only here.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation

MINOR_UNITS_PER_MAJOR = 100
CENT = Decimal("0.01")


def to_decimal(amount: Decimal | int | str) -> Decimal:
    """
    Parse an amount into a Decimal.

    Floats are rejected: binary floating point cannot represent most currency
    amounts exactly.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(amount, float):
        raise ValueError("Amounts must be Decimal, int or str, not float.")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return value


def to_minor(amount: Decimal | int | str) -> int:
    """
    Convert a major-unit amount to integer minor units.

    Amounts with more than two decimal places are rejected rather than
    silently rounded.
    """
    value = to_decimal(amount)
    if value != value.quantize(CENT):
        raise ValueError(f"Amount {value} has more than two decimal places.")
    return int(value * MINOR_UNITS_PER_MAJOR)


def from_minor(minor: int) -> Decimal:
    """Convert integer minor units back to a two-place Decimal."""
    return (Decimal(int(minor)) / MINOR_UNITS_PER_MAJOR).quantize(CENT)


def fee_fraction(value: Decimal | str | int) -> Decimal:
    """Validate a fee fraction (0 <= f < 1)."""
    fraction = to_decimal(value)
    if fraction < 0 or fraction >= 1:
        raise ValueError("Fee percentage must be a fraction between 0 and 1.")
    return fraction


def apply_fraction_half_up(minor: int, fraction: Decimal) -> int:
    """Return ``minor * fraction`` rounded half-up to whole minor units."""
    return int((Decimal(minor) * fraction).to_integral_value(rounding=ROUND_HALF_UP))


def floor_share(minor: int, numerator: int, denominator: int) -> int:
    """Return ``floor(minor * numerator / denominator)`` using integer math."""
    if denominator <= 0:
        raise ValueError("Denominator must be positive.")
    return (minor * numerator) // denominator


def format_amount(minor: int, currency: str = "NGN") -> str:
    """Format minor units for display, e.g. ``NGN 1,250.00``."""
    value = from_minor(minor).quantize(CENT, rounding=ROUND_DOWN)
    return f"{currency} {value:,.2f}"
