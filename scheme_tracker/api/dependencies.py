"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from scheme_tracker.domain.ports import NotificationChannel
from scheme_tracker.infrastructure.clients.whatsapp import WhatsAppClient
from scheme_tracker.infrastructure.database.repositories import (
    EventLogRepository,
    HolderRepository,
    PaymentRepository,
    SchemeRepository,
)
from scheme_tracker.infrastructure.database.session import get_db
from scheme_tracker.services.dispatcher import EventDispatcher
from scheme_tracker.services.reporting import ReportService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_notification_channel() -> NotificationChannel:
    """Provide WhatsApp delivery channel"""
    return WhatsAppClient()


def get_dispatcher(
    db: Session = Depends(get_db),
    channel: NotificationChannel = Depends(get_notification_channel),
) -> EventDispatcher:
    """Wire the dispatcher to SQL stores and the delivery channel"""
    return EventDispatcher(
        holders=HolderRepository(db),
        schedules=SchemeRepository(db),
        payments=PaymentRepository(db),
        channel=channel,
        event_log=EventLogRepository(db),
    )


def get_report_service(db: Session = Depends(get_db)) -> ReportService:
    return ReportService(payments=PaymentRepository(db), event_log=EventLogRepository(db))
