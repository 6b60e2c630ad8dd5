"""Unit tests for scheme terms"""

import pytest
from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal
from fractions import Fraction
from scheme_tracker.domain.exceptions import InvalidScheduleError
from scheme_tracker.domain.schedule import ScheduleModel, to_decimal


def test_weekly_amount_even_split():
    """5200 over 52 weeks is exactly 100 per week"""
    schedule = ScheduleModel(total_amount=Decimal("5200"), duration_weeks=52, start_date=date(2025, 1, 6))

    assert schedule.weekly_amount() == Fraction(100)


@pytest.mark.parametrize(
    "total, weeks",
    [("5200", 52), ("1000", 52), ("999.99", 52), ("1", 3), ("250000", 48), ("0.01", 7)],
)
def test_weekly_amount_times_duration_is_total(total, weeks):
    """No rounding drift: weekly * duration reproduces the total"""
    schedule = ScheduleModel(total_amount=Decimal(total), duration_weeks=weeks, start_date=date(2025, 1, 6))

    assert schedule.weekly_amount() * weeks == Fraction(Decimal(total))


def test_weekly_amount_is_not_rounded():
    """1000 / 52 keeps its fractional part"""
    schedule = ScheduleModel(total_amount=Decimal("1000"), duration_weeks=52, start_date=date(2025, 1, 6))

    assert schedule.weekly_amount() == Fraction(250, 13)


@pytest.mark.parametrize("total", [Decimal("0"), Decimal("-5200"), Decimal("NaN"), Decimal("Infinity")])
def test_invalid_total_amount(total):
    with pytest.raises(InvalidScheduleError):
        ScheduleModel(total_amount=total, duration_weeks=52, start_date=date(2025, 1, 6))


@pytest.mark.parametrize("weeks", [0, -1])
def test_invalid_duration(weeks):
    with pytest.raises(InvalidScheduleError):
        ScheduleModel(total_amount=Decimal("5200"), duration_weeks=weeks, start_date=date(2025, 1, 6))


def test_non_numeric_total_amount():
    with pytest.raises(InvalidScheduleError):
        ScheduleModel(total_amount="lots", duration_weeks=52, start_date=date(2025, 1, 6))


def test_amounts_are_normalized_to_decimal():
    """Float and int inputs become Decimal without binary artifacts"""
    schedule = ScheduleModel(total_amount=5200, duration_weeks=52, start_date=date(2025, 1, 6))

    assert schedule.total_amount == Decimal("5200")
    assert to_decimal(0.1) == Decimal("0.1")


def test_schedule_is_immutable():
    schedule = ScheduleModel(total_amount=Decimal("5200"), duration_weeks=52, start_date=date(2025, 1, 6))

    with pytest.raises(FrozenInstanceError):
        schedule.duration_weeks = 26


def test_standard_term_uses_configured_duration():
    schedule = ScheduleModel.with_standard_term(Decimal("5200"), date(2025, 1, 6), scheme_type="Gold Savings")

    assert schedule.duration_weeks == 52
    assert schedule.scheme_type == "Gold Savings"
    assert schedule.weekly_amount() == 100
