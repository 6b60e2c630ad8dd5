"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional


class PaymentRequest(BaseModel):
    """Request body for POST /v1/payments"""

    holder_id: str = Field(..., min_length=1, description="Holder identifier")
    amount: Decimal = Field(..., gt=0, description="Amount paid")
    payment_mode: str = Field(..., min_length=1, description="cash, upi, bank_transfer, ...")
    occurred_at: Optional[datetime] = Field(None, description="Payment time, defaults to now")
    receipt_ref: Optional[str] = None
    bonus: Decimal = Field(Decimal("0"), ge=0)


class PaymentResponse(BaseModel):
    """Response for POST /v1/payments"""

    payment_id: str
    holder_id: str
    amount: Decimal
    occurred_at: datetime
    confirmation_scheduled: bool


class ProgressResponse(BaseModel):
    """Response for GET /v1/holders/{holder_id}/progress"""

    holder_id: str
    total_paid: Decimal
    paid_weeks: int
    remaining_weeks: int
    pending_amount: Decimal
    weekly_amount: Decimal
    current_week: int
    overdue_weeks: int
    next_due_date: date
    reminder_due: bool


class HolderUpdateRequest(BaseModel):
    """Request body for PATCH /v1/holders/{holder_id}"""

    name: Optional[str] = Field(None, min_length=1)
    mobile_number: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class HolderResponse(BaseModel):
    holder_id: str
    name: str
    serial_number: str
    mobile_number: str
    is_active: bool


class TickResponse(BaseModel):
    """Response for POST /v1/jobs/reminders"""

    ran_at: datetime
    holders: int
    reminders_sent: int
    failures: int
    stages: Dict[str, int]


class MonthlyReportResponse(BaseModel):
    """Response for POST /v1/jobs/monthly-report"""

    month: str
    total_amount: Decimal
    total_payments: int
    average_payment: Decimal
    by_payment_mode: Dict[str, Decimal]
