"""
Fixed-point currency amounts.

Every coupon and pricing computation goes through Money so no binary
floating point ever touches a charged amount. Intermediate results (for
example a percentage of a subtotal) keep full Decimal precision until
``rounded()`` is called; ``str()`` always renders two fractional digits.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from functools import total_ordering
from typing import Union

CENT = Decimal("0.01")

Scalar = Union[Decimal, int]


@total_ordering
class Money:
    """Signed currency amount backed by ``decimal.Decimal``."""

    __slots__ = ("_amount",)

    def __init__(self, amount: Union["Money", Decimal, int, str] = 0):
        if isinstance(amount, Money):
            value = amount.amount
        elif isinstance(amount, bool):
            raise TypeError("Money cannot be built from a bool")
        elif isinstance(amount, float):
            raise TypeError("Money cannot be built from a float; pass a str or Decimal")
        elif isinstance(amount, Decimal):
            value = amount
        elif isinstance(amount, int):
            value = Decimal(amount)
        elif isinstance(amount, str):
            try:
                value = Decimal(amount.strip())
            except InvalidOperation:
                raise ValueError(f"Invalid money amount: {amount!r}")
        else:
            raise TypeError(f"Unsupported money amount type: {type(amount).__name__}")

        if not value.is_finite():
            raise ValueError(f"Money amount must be finite, got {value}")
        self._amount = value

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @property
    def amount(self) -> Decimal:
        return self._amount

    # ---------- arithmetic ----------

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self._amount + other._amount)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self._amount - other._amount)

    def __mul__(self, factor: Scalar) -> "Money":
        if isinstance(factor, (Money, float, bool)) or not isinstance(factor, (Decimal, int)):
            return NotImplemented
        return Money(self._amount * factor)

    __rmul__ = __mul__

    def percent(self, rate: Scalar) -> "Money":
        """``rate`` percent of this amount, unrounded."""
        return self * (Decimal(rate) / Decimal(100))

    def clamp_zero(self) -> "Money":
        """``max(0, self)``."""
        return self if self._amount >= 0 else Money(0)

    def rounded(self) -> "Money":
        """Round half-up to whole cents."""
        return Money(self._amount.quantize(CENT, rounding=ROUND_HALF_UP))

    def is_negative(self) -> bool:
        return self._amount < 0

    # ---------- comparison ----------

    def __eq__(self, other) -> bool:
        if isinstance(other, Money):
            return self._amount == other._amount
        return NotImplemented

    def __lt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self._amount < other._amount

    def __hash__(self) -> int:
        return hash(self._amount)

    # ---------- rendering ----------

    def to_decimal(self) -> Decimal:
        """Two-decimal value for persistence and JSON responses."""
        return self.rounded()._amount

    def format(self, symbol: str = "$") -> str:
        return f"{symbol}{self}"

    def __str__(self) -> str:
        return str(self.to_decimal())

    def __repr__(self) -> str:
        return f"Money('{self._amount}')"


def money_min(a: Money, b: Money) -> Money:
    return a if a <= b else b


def money_sum(values) -> Money:
    total = Money.zero()
    for value in values:
        total = total + value
    return total
