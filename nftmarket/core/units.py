"""Conversion between human-readable amounts and integer base units.

Amounts inside the registry are always ``int`` base units (wei).  These
helpers mirror the usual ``parseUnits("100", "ether")`` convention so
callers can write prices the way they read them.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

UNIT_DECIMALS: dict[str, int] = {
    "wei": 0,
    "kwei": 3,
    "mwei": 6,
    "gwei": 9,
    "szabo": 12,
    "finney": 15,
    "ether": 18,
}


def _decimals(unit: str | int) -> int:
    if isinstance(unit, int):
        if unit < 0:
            raise ValueError(f"Decimals must be non-negative, got {unit}")
        return unit
    try:
        return UNIT_DECIMALS[unit.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown unit {unit!r}. Known: {sorted(UNIT_DECIMALS)}"
        ) from None


def parse_units(value: str | int | Decimal, unit: str | int = "ether") -> int:
    """Convert *value* expressed in *unit* to integer base units.

    >>> parse_units("100", "ether")
    100000000000000000000
    >>> parse_units("1.5", "gwei")
    1500000000
    """
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")

    scaled = amount.scaleb(_decimals(unit))
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"{value!r} {unit} is not a whole number of base units"
        )
    return int(scaled)


def format_units(amount: int, unit: str | int = "ether") -> str:
    """Render integer base units as a decimal string in *unit*.

    >>> format_units(25_000_000_000_000_000)
    '0.025'
    >>> format_units(10**18)
    '1.0'
    """
    scaled = Decimal(amount).scaleb(-_decimals(unit))
    text = format(scaled.normalize(), "f")
    if "." not in text:
        text += ".0"
    return text
