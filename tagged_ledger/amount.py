"""
Tagged Amount Module

Denomination-tagged unsigned quantities. Value is conserved: split and merge
move quantity between amounts of one denomination and never create or destroy
it; only mint creates value. An amount is owned by exactly one holder, refuses
to be copied, and becomes inert once it has been merged into another amount
or destroyed.
"""

from dataclasses import dataclass, field

from .denomination import Denomination, MAX_AMOUNT, validate_quantity, format_quantity
from .errors import (
    AmountConsumed, DenominationMismatch, InsufficientValue,
    InvalidOperation, NonZeroAmount, ValueOverflowError
)


@dataclass(eq=False)
class TaggedAmount:
    """
    Non-negative quantity of a single denomination

    Construct through mint() or zero(). `limit` is the largest quantity the
    underlying unsigned integer can hold; arithmetic past it fails.
    """
    denomination: Denomination
    amount: int
    limit: int = field(default=MAX_AMOUNT, repr=False, compare=False)
    consumed: bool = field(default=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.denomination, Denomination):
            raise InvalidOperation(
                f"Denomination must be a Denomination, got {type(self.denomination).__name__}"
            )
        validate_quantity(self.amount, self.limit)

    def __setattr__(self, name, new_value):
        if name == "denomination" and "denomination" in self.__dict__:
            raise InvalidOperation("The denomination of an amount is fixed")
        super().__setattr__(name, new_value)

    def __copy__(self):
        raise TypeError("TaggedAmount cannot be copied; use split() to move value")

    def __deepcopy__(self, memo):
        raise TypeError("TaggedAmount cannot be copied; use split() to move value")

    def _ensure_live(self) -> None:
        if self.consumed:
            raise AmountConsumed(f"{self.denomination.code} amount was already consumed")

    def _ensure_same_denomination(self, other: 'TaggedAmount', verb: str) -> None:
        if not isinstance(other, TaggedAmount):
            raise InvalidOperation(f"Cannot {verb} {type(other).__name__} with a TaggedAmount")
        if self.denomination != other.denomination:
            raise DenominationMismatch(
                f"Cannot {verb} {other.denomination.code} and {self.denomination.code}"
            )

    @property
    def value(self) -> int:
        """Current quantity, without consuming the amount"""
        self._ensure_live()
        return self.amount

    def split(self, quantity: int) -> 'TaggedAmount':
        """
        Remove `quantity` from this amount and return it as a new amount

        Raises:
            InsufficientValue: If quantity exceeds the current amount
            InvalidAmount: If quantity is negative, not an int, or above `limit`
        """
        self._ensure_live()
        validate_quantity(quantity, self.limit)
        if quantity > self.amount:
            raise InsufficientValue(
                f"Cannot split {format_quantity(quantity, self.denomination)} "
                f"from {self.to_string()}"
            )
        self.amount -= quantity
        return TaggedAmount(self.denomination, quantity, limit=self.limit)

    def merge(self, other: 'TaggedAmount') -> None:
        """
        Add `other` into this amount and consume it

        Raises:
            DenominationMismatch: If denominations differ
            ValueOverflowError: If the sum exceeds the representable maximum
        """
        self._ensure_live()
        if other is self:
            raise InvalidOperation("Cannot merge an amount into itself")
        self._ensure_same_denomination(other, "merge")
        other._ensure_live()
        if self.amount + other.amount > self.limit:
            raise ValueOverflowError(
                f"Merging {other.to_string()} into {self.to_string()} exceeds {self.limit}"
            )
        self.amount += other.amount
        other.amount = 0
        other.consumed = True

    def can_accept(self, quantity: int) -> bool:
        """Check whether adding `quantity` stays within range"""
        return self.amount + quantity <= self.limit

    def withdraw_all(self) -> 'TaggedAmount':
        """Split out the whole quantity, leaving this amount at zero"""
        return self.split(self.value)

    def destroy_zero(self) -> None:
        """Retire an empty amount"""
        self._ensure_live()
        if self.amount != 0:
            raise NonZeroAmount(f"Cannot destroy {self.to_string()}: amount is not zero")
        self.consumed = True

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.value == 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, TaggedAmount):
            return NotImplemented
        self._ensure_same_denomination(other, "compare")
        return self.amount == other.amount and self.consumed == other.consumed

    def __lt__(self, other: 'TaggedAmount') -> bool:
        self._ensure_same_denomination(other, "compare")
        return self.value < other.value

    def __le__(self, other: 'TaggedAmount') -> bool:
        self._ensure_same_denomination(other, "compare")
        return self.value <= other.value

    def __gt__(self, other: 'TaggedAmount') -> bool:
        self._ensure_same_denomination(other, "compare")
        return self.value > other.value

    def __ge__(self, other: 'TaggedAmount') -> bool:
        self._ensure_same_denomination(other, "compare")
        return self.value >= other.value

    def to_string(self) -> str:
        """Format for display"""
        return format_quantity(self.amount, self.denomination)


def mint(denomination: Denomination, amount: int, limit: int = MAX_AMOUNT) -> TaggedAmount:
    """Create a new amount of `denomination`. No backing check is made."""
    return TaggedAmount(denomination, amount, limit=limit)


def zero(denomination: Denomination, limit: int = MAX_AMOUNT) -> TaggedAmount:
    """Create an empty amount of `denomination`"""
    return TaggedAmount(denomination, 0, limit=limit)


def split(amount: TaggedAmount, quantity: int) -> TaggedAmount:
    """Remove `quantity` from `amount` and return it as a new amount"""
    return amount.split(quantity)


def merge(amount: TaggedAmount, other: TaggedAmount) -> None:
    """Add `other` into `amount`; `other` is consumed"""
    amount.merge(other)


def value(amount: TaggedAmount) -> int:
    """Read the current quantity of `amount`"""
    return amount.value


def withdraw_all(amount: TaggedAmount) -> TaggedAmount:
    """Move the whole quantity of `amount` into a new amount"""
    return amount.withdraw_all()


def destroy_zero(amount: TaggedAmount) -> None:
    """Retire `amount`, which must be empty"""
    amount.destroy_zero()
