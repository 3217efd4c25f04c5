"""Minor-unit money helpers.

Amounts are stored and computed as integer minor units (pence); these
helpers are the only place they are converted to major units.
"""

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def to_major(amount_minor: int) -> Decimal:
    """150000 -> Decimal('1500.00')."""
    return (Decimal(amount_minor) / 100).quantize(_CENT)


def to_minor(amount_major: Decimal) -> int:
    """Decimal('1500.005') -> 150001, rounding half up."""
    return int((Decimal(amount_major) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_money(amount_minor: int, symbol: str = "£") -> str:
    """150000 -> '£1,500.00'."""
    major = to_major(amount_minor)
    sign = "-" if major < 0 else ""
    return f"{sign}{symbol}{abs(major):,.2f}"
