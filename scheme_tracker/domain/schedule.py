"""Savings scheme terms"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Union

from scheme_tracker.config import settings
from scheme_tracker.domain.exceptions import InvalidScheduleError

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """Convert an amount to Decimal without binary float artifacts (0.1 -> Decimal('0.1'))"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


@dataclass(frozen=True)
class ScheduleModel:
    """
    Fixed-term weekly installment plan.

    The weekly amount is kept as an exact fraction so that
    weekly_amount() * duration_weeks == total_amount with no rounding drift.

    Raises:
        InvalidScheduleError: total_amount <= 0 (or not a finite number), duration_weeks <= 0
    """

    total_amount: Decimal
    duration_weeks: int
    start_date: date
    scheme_type: str = "weekly"

    def __post_init__(self) -> None:
        try:
            total = to_decimal(self.total_amount)
        except (InvalidOperation, TypeError, ValueError) as e:
            raise InvalidScheduleError(f"Invalid total amount: {self.total_amount!r}") from e

        if not total.is_finite() or total <= 0:
            raise InvalidScheduleError(f"Total amount must be positive, got {self.total_amount}")
        if isinstance(self.duration_weeks, bool) or not isinstance(self.duration_weeks, int):
            raise InvalidScheduleError(f"Duration must be a whole number of weeks, got {self.duration_weeks!r}")
        if self.duration_weeks <= 0:
            raise InvalidScheduleError(f"Duration must be positive, got {self.duration_weeks}")

        object.__setattr__(self, "total_amount", total)

    @classmethod
    def with_standard_term(cls, total_amount: Amount, start_date: date, scheme_type: str = "weekly") -> "ScheduleModel":
        """Scheme on the configured term (52 weeks unless overridden)"""
        return cls(
            total_amount=total_amount,
            duration_weeks=settings.scheme_duration_weeks,
            start_date=start_date,
            scheme_type=scheme_type,
        )

    def weekly_amount(self) -> Fraction:
        return Fraction(self.total_amount) / self.duration_weeks
