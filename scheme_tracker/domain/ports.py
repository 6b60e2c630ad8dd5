"""Interfaces of the collaborators the engine depends on"""

from datetime import datetime
from typing import Optional, Protocol, Sequence, Union

from scheme_tracker.domain.models import (
    AnalyticsRecord,
    ErrorRecord,
    Holder,
    NotificationRecord,
    PaymentEvent,
    ReportRecord,
)
from scheme_tracker.domain.schedule import ScheduleModel

LogRecord = Union[NotificationRecord, AnalyticsRecord, ErrorRecord, ReportRecord]


class HolderStore(Protocol):
    def get(self, holder_id: str) -> Optional[Holder]:
        ...

    def list_active(self) -> Sequence[Holder]:
        ...


class ScheduleStore(Protocol):
    def get_for_holder(self, holder_id: str) -> Optional[ScheduleModel]:
        ...


class PaymentStore(Protocol):
    def list_for_holder(self, holder_id: str) -> Sequence[PaymentEvent]:
        """All payments of a holder ordered by occurred_at"""
        ...

    def list_between(self, start: datetime, end: datetime) -> Sequence[PaymentEvent]:
        ...


class NotificationChannel(Protocol):
    async def send(self, target: str, text: str) -> bool:
        """Deliver a message; False or DispatchError means the send failed"""
        ...


class EventLogSink(Protocol):
    def append(self, record: LogRecord) -> None:
        ...
