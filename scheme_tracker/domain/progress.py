"""Progress calculation - converts payment history into weeks paid / overdue / amount due"""

import math
from datetime import datetime
from decimal import Decimal
from fractions import Fraction
from typing import Sequence

from scheme_tracker.domain.exceptions import ComputationError
from scheme_tracker.domain.models import PaymentEvent, ProgressSnapshot
from scheme_tracker.domain.schedule import ScheduleModel, to_decimal
from scheme_tracker.utils.date_utils import add_weeks, weeks_elapsed


def _sum_finite(values: Sequence[Decimal], label: str) -> Decimal:
    total = Decimal("0")
    for value in values:
        amount = to_decimal(value)
        if not amount.is_finite():
            raise ComputationError(f"Non-finite {label}: {value}")
        total += amount
    return total


def compute_progress(
    schedule: ScheduleModel,
    payments: Sequence[PaymentEvent],
    now: datetime,
) -> ProgressSnapshot:
    """
    Compute a holder's progress snapshot.

    Precondition: `payments` is the complete, time-ordered payment set of one
    holder against `schedule`. Partial input is not detected here.

    Rules:
    - total_paid is the exact sum of amounts (no currency rounding)
    - paid_weeks = floor(total_paid / weekly_amount), clamped to [0, duration_weeks]
    - pending_amount = total_amount - total_paid, negative when overpaid
    - current_week = whole weeks since start_date, never negative
    - overdue_weeks = current_week - paid_weeks, <= 0 when on track or ahead

    Raises:
        ComputationError: a payment amount or bonus is NaN/Infinity
    """
    total_paid = _sum_finite([p.amount for p in payments], "payment amount")
    total_bonus = _sum_finite([p.bonus for p in payments], "bonus")

    weekly_amount = schedule.weekly_amount()
    paid_weeks = math.floor(Fraction(total_paid) / weekly_amount)
    paid_weeks = min(max(paid_weeks, 0), schedule.duration_weeks)

    current_week = weeks_elapsed(schedule.start_date, now)

    return ProgressSnapshot(
        total_paid=total_paid,
        paid_weeks=paid_weeks,
        pending_amount=schedule.total_amount - total_paid,
        current_week=current_week,
        overdue_weeks=current_week - paid_weeks,
        next_due_date=add_weeks(schedule.start_date, paid_weeks + 1),
        weekly_amount=weekly_amount,
        remaining_weeks=schedule.duration_weeks - paid_weeks,
        total_bonus=total_bonus,
    )
