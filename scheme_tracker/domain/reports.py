"""Monthly aggregate report over recorded payments"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Sequence

from scheme_tracker.domain.exceptions import ComputationError
from scheme_tracker.domain.models import MonthlyReport, PaymentEvent
from scheme_tracker.domain.schedule import to_decimal
from scheme_tracker.utils.date_utils import month_key


def build_monthly_report(payments: Sequence[PaymentEvent], month: str) -> MonthlyReport:
    """
    Summarize payments that occurred in `month` (YYYY-MM).

    Payments from other months are ignored, so callers may pass a wider set.
    An empty month reports an average of 0.
    """
    in_month = [p for p in payments if month_key(p.occurred_at) == month]

    total = Decimal("0")
    by_mode: Dict[str, Decimal] = defaultdict(Decimal)
    for payment in in_month:
        amount = to_decimal(payment.amount)
        if not amount.is_finite():
            raise ComputationError(f"Non-finite payment amount in report: {payment.amount}")
        total += amount
        by_mode[payment.payment_mode] += amount

    count = len(in_month)
    average = total / count if count else Decimal("0")

    return MonthlyReport(
        month=month,
        total_amount=total,
        total_payments=count,
        average_payment=average,
        by_payment_mode=dict(by_mode),
    )
