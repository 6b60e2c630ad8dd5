"""POST /v1/payments - record a payment and schedule its confirmation"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheme_tracker.api.dependencies import get_dispatcher, get_request_id
from scheme_tracker.api.v1.schemas import PaymentRequest, PaymentResponse
from scheme_tracker.infrastructure.database.repositories import PaymentRepository
from scheme_tracker.infrastructure.database.session import get_db
from scheme_tracker.infrastructure.observability.metrics import payments_recorded_counter
from scheme_tracker.services.dispatcher import EventDispatcher

router = APIRouter()


@router.post("/payments", response_model=PaymentResponse, status_code=201)
async def create_payment(
    request_body: PaymentRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """
    Record a payment.

    Flow:
    1. Append the payment to the ledger and commit
    2. Schedule the WhatsApp confirmation in the background; the committed
       payment is part of the history the confirmation is computed from
    3. Return the recorded payment

    Payments for unknown holders are still recorded; their confirmation is
    skipped and shows up in the error log.
    """
    request_id = get_request_id(request)

    try:
        payment = PaymentRepository(db).record_payment(
            holder_id=request_body.holder_id,
            amount=request_body.amount,
            occurred_at=request_body.occurred_at or datetime.now(timezone.utc),
            payment_mode=request_body.payment_mode,
            receipt_ref=request_body.receipt_ref,
            bonus=request_body.bonus,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to record payment: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Could not record payment")

    payments_recorded_counter.labels(payment_mode=payment.payment_mode).inc()
    logging.info(
        "Payment recorded",
        extra={"request_id": request_id, "holder_id": payment.holder_id, "payment_id": payment.payment_id},
    )

    background_tasks.add_task(dispatcher.on_payment_created, payment)

    return PaymentResponse(
        payment_id=payment.payment_id,
        holder_id=payment.holder_id,
        amount=payment.amount,
        occurred_at=payment.occurred_at,
        confirmation_scheduled=True,
    )
