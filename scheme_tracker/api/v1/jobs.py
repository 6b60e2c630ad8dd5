"""POST /v1/jobs/* - entry points for the external scheduler"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from scheme_tracker.api.dependencies import get_dispatcher, get_report_service, get_request_id
from scheme_tracker.api.v1.schemas import MonthlyReportResponse, TickResponse
from scheme_tracker.services.dispatcher import EventDispatcher
from scheme_tracker.services.reporting import ReportService, previous_month

router = APIRouter()


@router.post("/jobs/reminders", response_model=TickResponse)
async def run_reminders(request: Request, dispatcher: EventDispatcher = Depends(get_dispatcher)):
    """
    Run one reminder tick over all active holders.

    Per-holder failures do not fail the request; they are counted in the
    response and recorded in the error log.
    """
    summary = await dispatcher.on_scheduled_tick()

    if summary.failures:
        logging.warning(
            f"Reminder tick finished with {len(summary.failures)} failures",
            extra={"request_id": get_request_id(request)},
        )

    return TickResponse(
        ran_at=summary.ran_at,
        holders=len(summary.outcomes),
        reminders_sent=summary.reminders_sent,
        failures=len(summary.failures),
        stages=summary.counts(),
    )


@router.post("/jobs/monthly-report", response_model=MonthlyReportResponse)
def run_monthly_report(
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the previous month"),
    reports: ReportService = Depends(get_report_service),
):
    """Build and store the payment report for one month"""
    try:
        report = reports.generate(month or previous_month(datetime.now(timezone.utc)))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MonthlyReportResponse(
        month=report.month,
        total_amount=report.total_amount,
        total_payments=report.total_payments,
        average_payment=report.average_payment,
        by_payment_mode=report.by_payment_mode,
    )
