"""Money value object.

Amounts are Decimal and always carry an ISO 4217 currency code.
Arithmetic and comparisons between different currencies are rejected.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

DEFAULT_CURRENCY = "USD"

Number = Union[int, float, Decimal]


class CurrencyMismatchError(ValueError):
    """Raised when two Money values with different currencies are combined."""

    def __init__(self, left: str, right: str):
        super().__init__(f"Cannot combine {left} and {right} amounts")
        self.left = left
        self.right = right


@dataclass(frozen=True)
class Money:
    """Immutable amount of money in a single currency."""

    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self):
        currency = (self.currency or "").strip()
        if len(currency) != 3 or not currency.isalpha():
            raise ValueError(f"Currency must be a 3-letter ISO code, got {self.currency!r}")
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "currency", currency.upper())
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(Decimal("0"), currency)

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __mul__(self, factor: Number) -> "Money":
        if isinstance(factor, Money):
            raise TypeError("Cannot multiply Money by Money")
        return Money(self.amount * Decimal(str(factor)), self.currency)

    __rmul__ = __mul__

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:,.2f}"
