"""
Token Amount Conversion

Lossless conversion between human-readable decimal amounts and the integer
base-unit strings that token contracts operate on.

Both directions work on digit strings only; no float or Decimal scaling is
involved, so amounts of any length keep their exact value.

Example:
    to_base_units("10.25", 6)       # "10250000"
    from_base_units("10250000", 6)  # "10.25"
"""

import re
from typing import Union

from .engine.exceptions import InvalidAmount

MAX_DECIMALS = 255

_AMOUNT_RE = re.compile(r"[0-9]+(\.[0-9]+)?")
_UNITS_RE = re.compile(r"[0-9]+")


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise ValueError("decimals must be an int")
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise ValueError(f"decimals must be between 0 and {MAX_DECIMALS}, got {decimals}")


def to_base_units(amount: Union[str, int], decimals: int) -> str:
    """Convert a human-readable token ``amount`` into a base-unit integer string.

    The fractional part is right-padded or truncated to exactly ``decimals``
    digits. Extra precision is dropped, never rounded.

    Args:
        amount: Decimal string such as ``"15.00"`` (ints are accepted as-is).
        decimals: Token precision, 0-255.

    Returns:
        str: Base-unit digits without leading zeros (``"0"`` for zero).

    Raises:
        InvalidAmount: If ``amount`` is missing, empty or not a plain decimal.
        ValueError: If ``decimals`` is out of range.
    """
    _check_decimals(decimals)

    if amount is None or isinstance(amount, (bool, float)):
        raise InvalidAmount("Invalid amount")

    value = str(amount)
    if not _AMOUNT_RE.fullmatch(value):
        raise InvalidAmount(f"Invalid numeric amount: {value!r}")

    whole, _, fraction = value.partition(".")
    padded_fraction = (fraction + "0" * decimals)[:decimals]

    raw = (whole + padded_fraction).lstrip("0")
    return raw or "0"


def from_base_units(raw: Union[str, int], decimals: int) -> str:
    """Convert a base-unit integer string into a human-readable decimal string.

    Args:
        raw: Non-negative integer in base units (str or int).
        decimals: Token precision, 0-255.

    Returns:
        str: ``"<whole>.<fraction>"`` with trailing zeros removed, or ``"<whole>"``.

    Raises:
        InvalidAmount: If ``raw`` is not a non-negative integer.
        ValueError: If ``decimals`` is out of range.
    """
    _check_decimals(decimals)

    if raw is None or isinstance(raw, (bool, float)):
        raise InvalidAmount("Invalid base-unit value")

    raw_str = str(raw)
    if not _UNITS_RE.fullmatch(raw_str):
        raise InvalidAmount(f"Invalid base-unit value: {raw_str!r}")

    raw_str = raw_str.lstrip("0") or "0"
    if decimals == 0:
        return raw_str

    padded = raw_str.rjust(decimals + 1, "0")
    whole = padded[:-decimals]
    fraction = padded[-decimals:].rstrip("0")

    return f"{whole}.{fraction}" if fraction else whole
