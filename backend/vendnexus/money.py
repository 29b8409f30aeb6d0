from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def to_dollars(cents: int | None) -> float | None:
    """Display-only dollar amount; cents stay authoritative."""
    if cents is None:
        return None
    return round(cents / 100, 2)


def to_cents(amount) -> int:
    """
    Convert a dollar amount (int, float, or numeric string) to integer cents.

    Goes through Decimal(str(...)) so 2.675 becomes 268, not 267.
    """
    if isinstance(amount, bool):
        raise ValueError("amount must be a number")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
