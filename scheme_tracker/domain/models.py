"""Domain models - pure Python dataclasses representing business entities"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Holder:
    """Customer enrolled in a savings scheme"""

    holder_id: str
    name: str
    serial_number: str
    mobile_number: str
    is_active: bool = True


@dataclass(frozen=True)
class PaymentEvent:
    """Single installment payment, append-only source of truth for totals"""

    holder_id: str
    amount: Decimal
    occurred_at: datetime
    payment_mode: str  # "cash", "upi", "bank_transfer", ...
    receipt_ref: Optional[str] = None
    bonus: Decimal = Decimal("0")
    payment_id: Optional[str] = None


@dataclass(frozen=True)
class ProgressSnapshot:
    """Recomputed progress of one holder against their schedule at a point in time"""

    total_paid: Decimal
    paid_weeks: int
    pending_amount: Decimal  # negative when overpaid
    current_week: int
    overdue_weeks: int  # <= 0 means on track or ahead
    next_due_date: date
    weekly_amount: Fraction
    remaining_weeks: int
    total_bonus: Decimal

    @property
    def is_complete(self) -> bool:
        return self.remaining_weeks == 0


class NotificationKind(str, Enum):
    CONFIRMATION = "payment_confirmation"
    REMINDER = "payment_reminder"


@dataclass(frozen=True)
class Message:
    """Rendered notification ready for the delivery channel"""

    kind: NotificationKind
    target: str
    text: str


@dataclass(frozen=True)
class NotificationRecord:
    """Write-once log entry for a delivered notification"""

    holder_id: str
    kind: NotificationKind
    rendered_text: str
    channel_target: str
    dispatched_at: datetime
    payment_id: Optional[str] = None


@dataclass(frozen=True)
class AnalyticsRecord:
    """Analytics event appended alongside notifications"""

    event_type: str  # "transaction_created" | "holder_updated"
    holder_id: str
    recorded_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorRecord:
    """Operator-facing trail of a skipped or failed unit of work"""

    holder_id: str
    kind: NotificationKind
    stage: str
    error_type: str
    reason: str
    recorded_at: datetime
    payment_id: Optional[str] = None


@dataclass(frozen=True)
class MonthlyReport:
    """Aggregate payment statistics for one calendar month"""

    month: str  # YYYY-MM
    total_amount: Decimal
    total_payments: int
    average_payment: Decimal
    by_payment_mode: Dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportRecord:
    report: MonthlyReport
    generated_at: datetime


class DispatchStage(str, Enum):
    """Per-payment / per-holder processing states"""

    RECEIVED = "received"
    SNAPSHOT_COMPUTED = "snapshot_computed"
    MESSAGE_RENDERED = "message_rendered"
    DISPATCHED = "dispatched"
    LOGGED = "logged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchOutcome:
    """
    Result of processing one payment or one holder in a tick.

    `stage` is the terminal state; `last_stage` is the furthest successful
    step, which tells operators where a FAILED or SKIPPED unit stopped.
    """

    holder_id: str
    kind: NotificationKind
    stage: DispatchStage
    last_stage: DispatchStage
    reason: Optional[str] = None
    error: Optional[Exception] = None
    record: Optional[NotificationRecord] = None
    payment_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == DispatchStage.LOGGED

    @property
    def failed(self) -> bool:
        return self.stage == DispatchStage.FAILED


@dataclass(frozen=True)
class TickSummary:
    """Collected outcomes of one reminder tick"""

    ran_at: datetime
    outcomes: List[DispatchOutcome]

    @property
    def failures(self) -> List[DispatchOutcome]:
        return [o for o in self.outcomes if o.failed]

    @property
    def reminders_sent(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    def counts(self) -> Dict[str, int]:
        return dict(Counter(o.stage.value for o in self.outcomes))
