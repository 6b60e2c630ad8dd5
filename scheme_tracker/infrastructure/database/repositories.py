"""Data access layer - SQL implementations of the store and event log ports"""

import uuid
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheme_tracker.domain.models import (
    AnalyticsRecord,
    ErrorRecord,
    Holder,
    NotificationRecord,
    PaymentEvent,
    ReportRecord,
)
from scheme_tracker.domain.ports import LogRecord
from scheme_tracker.domain.schedule import ScheduleModel
from scheme_tracker.infrastructure.database.models import (
    AnalyticsEventRow,
    ErrorLogRow,
    HolderRow,
    HolderSchemeRow,
    NotificationLogRow,
    PaymentRow,
    ReportRow,
)


def _to_holder(row: HolderRow) -> Holder:
    return Holder(
        holder_id=row.id,
        name=row.name,
        serial_number=row.serial_number,
        mobile_number=row.mobile_number,
        is_active=row.is_active,
    )


def _to_payment(row: PaymentRow) -> PaymentEvent:
    return PaymentEvent(
        holder_id=row.holder_id,
        amount=Decimal(row.amount),
        occurred_at=row.occurred_at,
        payment_mode=row.payment_mode,
        receipt_ref=row.receipt_ref,
        bonus=Decimal(row.bonus),
        payment_id=str(row.id),
    )


class HolderRepository:
    """Repository for scheme holders"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, holder_id: str) -> Optional[Holder]:
        row = self.db.get(HolderRow, holder_id)
        return _to_holder(row) if row else None

    def list_active(self) -> List[Holder]:
        rows = (
            self.db.query(HolderRow)
            .filter(HolderRow.is_active.is_(True))
            .order_by(HolderRow.id)
            .all()
        )
        return [_to_holder(row) for row in rows]

    def create_holder(self, holder: Holder) -> Holder:
        self.db.add(
            HolderRow(
                id=holder.holder_id,
                name=holder.name,
                serial_number=holder.serial_number,
                mobile_number=holder.mobile_number,
                is_active=holder.is_active,
            )
        )
        self.db.flush()
        return holder

    def update_holder(self, holder_id: str, **changes) -> Optional[Tuple[Holder, Holder]]:
        """Apply field changes; returns (before, after) or None when the holder does not exist"""
        row = self.db.get(HolderRow, holder_id)
        if row is None:
            return None

        before = _to_holder(row)
        after = replace(before, **changes)
        row.name = after.name
        row.serial_number = after.serial_number
        row.mobile_number = after.mobile_number
        row.is_active = after.is_active
        self.db.flush()
        return before, after


class SchemeRepository:
    """Repository for holder scheme terms"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_holder(self, holder_id: str) -> Optional[ScheduleModel]:
        """First scheme the holder enrolled in; raises InvalidScheduleError on corrupt terms"""
        row = (
            self.db.query(HolderSchemeRow)
            .filter(HolderSchemeRow.holder_id == holder_id)
            .order_by(HolderSchemeRow.created_at)
            .first()
        )
        if row is None:
            return None

        return ScheduleModel(
            total_amount=Decimal(row.total_amount),
            duration_weeks=row.duration_weeks,
            start_date=row.start_date,
            scheme_type=row.scheme_type,
        )

    def create_scheme(self, holder_id: str, schedule: ScheduleModel) -> None:
        self.db.add(
            HolderSchemeRow(
                holder_id=holder_id,
                scheme_type=schedule.scheme_type,
                total_amount=schedule.total_amount,
                duration_weeks=schedule.duration_weeks,
                start_date=schedule.start_date,
            )
        )
        self.db.flush()


class PaymentRepository:
    """Repository for the append-only payment ledger"""

    def __init__(self, db: Session):
        self.db = db

    def record_payment(
        self,
        holder_id: str,
        amount: Decimal,
        occurred_at: datetime,
        payment_mode: str,
        receipt_ref: Optional[str] = None,
        bonus: Decimal = Decimal("0"),
    ) -> PaymentEvent:
        """Append a payment; the caller commits"""
        row = PaymentRow(
            id=uuid.uuid4(),
            holder_id=holder_id,
            amount=amount,
            bonus=bonus,
            occurred_at=occurred_at,
            payment_mode=payment_mode,
            receipt_ref=receipt_ref,
        )
        self.db.add(row)
        self.db.flush()
        return PaymentEvent(
            holder_id=holder_id,
            amount=amount,
            occurred_at=occurred_at,
            payment_mode=payment_mode,
            receipt_ref=receipt_ref,
            bonus=bonus,
            payment_id=str(row.id),
        )

    def list_for_holder(self, holder_id: str) -> List[PaymentEvent]:
        rows = (
            self.db.query(PaymentRow)
            .filter(PaymentRow.holder_id == holder_id)
            .order_by(PaymentRow.occurred_at, PaymentRow.created_at)
            .all()
        )
        return [_to_payment(row) for row in rows]

    def list_between(self, start: datetime, end: datetime) -> List[PaymentEvent]:
        rows = (
            self.db.query(PaymentRow)
            .filter(PaymentRow.occurred_at >= start, PaymentRow.occurred_at <= end)
            .order_by(PaymentRow.occurred_at)
            .all()
        )
        return [_to_payment(row) for row in rows]


class EventLogRepository:
    """
    Append-only sink for notification, analytics, error and report records.

    Each append commits on its own so the trail survives a later failure in
    the same unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(self, record: LogRecord) -> None:
        row = self._to_row(record)
        try:
            if isinstance(row, ReportRow):
                self.db.merge(row)  # regenerating a month replaces its report
            else:
                self.db.add(row)
            self.db.commit()
        except SQLAlchemyError:
            # Session is shared by every holder in a tick
            self.db.rollback()
            raise

    def list_notifications(self, holder_id: str) -> List[NotificationLogRow]:
        return (
            self.db.query(NotificationLogRow)
            .filter(NotificationLogRow.holder_id == holder_id)
            .order_by(NotificationLogRow.dispatched_at)
            .all()
        )

    @staticmethod
    def _to_row(record: LogRecord):
        if isinstance(record, NotificationRecord):
            return NotificationLogRow(
                holder_id=record.holder_id,
                kind=record.kind.value,
                rendered_text=record.rendered_text,
                channel_target=record.channel_target,
                payment_id=record.payment_id,
                dispatched_at=record.dispatched_at,
            )
        if isinstance(record, AnalyticsRecord):
            return AnalyticsEventRow(
                event_type=record.event_type,
                holder_id=record.holder_id,
                payload=_jsonable(record.payload),
                recorded_at=record.recorded_at,
            )
        if isinstance(record, ErrorRecord):
            return ErrorLogRow(
                holder_id=record.holder_id,
                kind=record.kind.value,
                stage=record.stage,
                error_type=record.error_type,
                reason=record.reason,
                payment_id=record.payment_id,
                recorded_at=record.recorded_at,
            )
        if isinstance(record, ReportRecord):
            report = record.report
            return ReportRow(
                id=f"monthly-report-{report.month}",
                month=report.month,
                total_amount=report.total_amount,
                total_payments=report.total_payments,
                average_payment=report.average_payment,
                by_payment_mode={mode: str(amount) for mode, amount in report.by_payment_mode.items()},
                generated_at=record.generated_at,
            )
        raise TypeError(f"Unsupported log record: {type(record).__name__}")


def _jsonable(value):
    """Convert dates and decimals inside analytics payloads to strings"""
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (date, datetime, Decimal)):
        return str(value)
    return value
