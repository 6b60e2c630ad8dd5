"""GET /v1/holders/{holder_id}/progress and PATCH /v1/holders/{holder_id}"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from scheme_tracker.api.dependencies import get_dispatcher, get_request_id
from scheme_tracker.api.v1.schemas import HolderResponse, HolderUpdateRequest, ProgressResponse
from scheme_tracker.domain.exceptions import ComputationError, InvalidScheduleError
from scheme_tracker.domain.notifications import is_reminder_due
from scheme_tracker.domain.progress import compute_progress
from scheme_tracker.infrastructure.database.repositories import (
    HolderRepository,
    PaymentRepository,
    SchemeRepository,
)
from scheme_tracker.infrastructure.database.session import get_db
from scheme_tracker.services.dispatcher import EventDispatcher

router = APIRouter()

CENTS = Decimal("0.01")


@router.get("/holders/{holder_id}/progress", response_model=ProgressResponse)
def get_progress(holder_id: str, request: Request, db: Session = Depends(get_db)):
    """
    Current progress of a holder against their scheme.

    Returns:
        Weeks paid, pending amount, overdue weeks and next due date as of now
    """
    if HolderRepository(db).get(holder_id) is None:
        raise HTTPException(status_code=404, detail="Holder not found")

    try:
        schedule = SchemeRepository(db).get_for_holder(holder_id)
        if schedule is None:
            raise HTTPException(status_code=404, detail="Scheme not found")

        payments = PaymentRepository(db).list_for_holder(holder_id)
        snapshot = compute_progress(schedule, payments, datetime.now(timezone.utc))

    except (InvalidScheduleError, ComputationError) as e:
        logging.error(f"Progress unavailable: {e}", extra={"request_id": get_request_id(request), "holder_id": holder_id})
        raise HTTPException(status_code=422, detail=str(e))

    weekly = snapshot.weekly_amount
    return ProgressResponse(
        holder_id=holder_id,
        total_paid=snapshot.total_paid,
        paid_weeks=snapshot.paid_weeks,
        remaining_weeks=snapshot.remaining_weeks,
        pending_amount=snapshot.pending_amount,
        weekly_amount=(Decimal(weekly.numerator) / Decimal(weekly.denominator)).quantize(CENTS, rounding=ROUND_HALF_UP),
        current_week=snapshot.current_week,
        overdue_weeks=snapshot.overdue_weeks,
        next_due_date=snapshot.next_due_date,
        reminder_due=is_reminder_due(snapshot),
    )


@router.patch("/holders/{holder_id}", response_model=HolderResponse)
def update_holder(
    holder_id: str,
    request_body: HolderUpdateRequest,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """Update holder contact details or deactivate them; the change is recorded for analytics"""
    changes = request_body.model_dump(exclude_none=True)
    result = HolderRepository(db).update_holder(holder_id, **changes)
    if result is None:
        raise HTTPException(status_code=404, detail="Holder not found")

    before, after = result
    dispatcher.on_holder_updated(before, after)  # commits with the analytics record

    return HolderResponse(
        holder_id=after.holder_id,
        name=after.name,
        serial_number=after.serial_number,
        mobile_number=after.mobile_number,
        is_active=after.is_active,
    )
