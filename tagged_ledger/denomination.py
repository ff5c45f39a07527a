"""
Denomination Tags Module

Defines the denomination tags that separate incompatible amounts, the
unsigned range every amount must stay within, and display helpers.
Quantities are always integers in the smallest unit of a denomination.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from .errors import InvalidAmount

DEFAULT_AMOUNT_BITS = 64


class Denomination(Enum):
    """Denomination tags with display precision (smallest-unit exponent)"""
    USD = ("USD", 2)  # US Dollar, quantities in cents
    EUR = ("EUR", 2)  # Euro, quantities in cents
    GBP = ("GBP", 2)  # British Pound, quantities in pence
    JPY = ("JPY", 0)  # Japanese Yen, no minor unit
    CHF = ("CHF", 2)  # Swiss Franc, quantities in rappen
    SUI = ("SUI", 9)  # Native coin, quantities in MIST

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: str) -> 'Denomination':
        """Look up a denomination by its code (case-insensitive)"""
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unknown denomination: {code}")


def max_amount(bits: int = DEFAULT_AMOUNT_BITS) -> int:
    """Largest quantity representable by an unsigned integer of `bits` width"""
    if bits <= 0:
        raise ValueError("Amount width must be a positive number of bits")
    return (1 << bits) - 1


MAX_AMOUNT = max_amount(DEFAULT_AMOUNT_BITS)


def validate_quantity(quantity: int, limit: Optional[int] = None) -> int:
    """
    Check that a quantity is a plain unsigned integer within range

    Args:
        quantity: Quantity in smallest units
        limit: Upper bound (defaults to MAX_AMOUNT)

    Returns:
        The validated quantity

    Raises:
        InvalidAmount: If the quantity is not an int, negative, or too large
    """
    if limit is None:
        limit = MAX_AMOUNT
    # bool is an int subclass but never a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidAmount(f"Quantity must be an integer, got {type(quantity).__name__}")
    if quantity < 0:
        raise InvalidAmount(f"Quantity must be non-negative, got {quantity}")
    if quantity > limit:
        raise InvalidAmount(f"Quantity {quantity} exceeds maximum {limit}")
    return quantity


def format_quantity(quantity: int, denomination: Denomination) -> str:
    """Format a smallest-unit quantity for display, e.g. 123456 USD -> 'USD 1,234.56'"""
    if denomination.precision == 0:
        return f"{denomination.code} {quantity:,}"
    major = Decimal(quantity).scaleb(-denomination.precision)
    return f"{denomination.code} {major:,.{denomination.precision}f}"
