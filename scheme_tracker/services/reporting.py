"""Monthly report job"""

import logging
from datetime import datetime
from typing import Optional

from scheme_tracker.domain.models import MonthlyReport, ReportRecord
from scheme_tracker.domain.ports import EventLogSink, PaymentStore
from scheme_tracker.domain.reports import build_monthly_report
from scheme_tracker.services.dispatcher import Clock, utc_now
from scheme_tracker.utils.date_utils import as_date, month_bounds


def previous_month(now: datetime) -> str:
    """'YYYY-MM' of the month before `now`"""
    today = as_date(now)
    if today.month == 1:
        return f"{today.year - 1}-12"
    return f"{today.year}-{today.month - 1:02d}"


class ReportService:
    """Builds monthly payment reports and appends them to the event log"""

    def __init__(self, payments: PaymentStore, event_log: EventLogSink, clock: Clock = utc_now):
        self.payments = payments
        self.event_log = event_log
        self.clock = clock

    async def on_monthly_tick(self, now: Optional[datetime] = None) -> MonthlyReport:
        """Scheduled on the first day of a month; reports the month that just closed"""
        return self.generate(previous_month(now or self.clock()))

    def generate(self, month: str) -> MonthlyReport:
        start, end = month_bounds(month)
        report = build_monthly_report(self.payments.list_between(start, end), month)
        self.event_log.append(ReportRecord(report=report, generated_at=self.clock()))

        logging.info(
            "Monthly report generated",
            extra={
                "step": "monthly_report",
                "month": month,
                "total_payments": report.total_payments,
                "total_amount": str(report.total_amount),
            },
        )
        return report
