"""SQLAlchemy ORM models for holders, schemes, payments and the event log"""

import uuid
from sqlalchemy import Column, Boolean, DateTime, Date, Integer, ForeignKey, Numeric, Text, JSON, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from scheme_tracker.config import settings

Base = declarative_base()


class HolderRow(Base):
    """Customer enrolled in a savings scheme"""

    __tablename__ = "holders"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    serial_number = Column(Text, nullable=False, unique=True)
    mobile_number = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    schemes = relationship("HolderSchemeRow", back_populates="holder", cascade="all, delete-orphan")


class HolderSchemeRow(Base):
    """Scheme terms a holder is enrolled in"""

    __tablename__ = "holder_schemes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    holder_id = Column(Text, ForeignKey("holders.id", ondelete="CASCADE"), nullable=False, index=True)
    scheme_type = Column(Text, nullable=False, default="weekly")
    total_amount = Column(Numeric(14, 2), nullable=False)
    duration_weeks = Column(Integer, nullable=False, default=settings.scheme_duration_weeks)
    start_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    holder = relationship("HolderRow", back_populates="schemes")


class PaymentRow(Base):
    """Append-only payment ledger"""

    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    holder_id = Column(Text, nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    bonus = Column(Numeric(14, 2), nullable=False, default=0)
    occurred_at = Column(DateTime(timezone=True), nullable=False, index=True)
    payment_mode = Column(Text, nullable=False)
    receipt_ref = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class NotificationLogRow(Base):
    """Delivered confirmations and reminders"""

    __tablename__ = "notification_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    holder_id = Column(Text, nullable=False, index=True)
    kind = Column(Text, nullable=False)
    rendered_text = Column(Text, nullable=False)
    channel_target = Column(Text, nullable=False)
    payment_id = Column(Text, nullable=True)
    dispatched_at = Column(DateTime(timezone=True), nullable=False)


class AnalyticsEventRow(Base):
    __tablename__ = "analytics_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type = Column(Text, nullable=False, index=True)
    holder_id = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)


class ErrorLogRow(Base):
    """Skipped or failed notification units for operator review"""

    __tablename__ = "error_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    holder_id = Column(Text, nullable=False)
    kind = Column(Text, nullable=False)
    stage = Column(Text, nullable=False)
    error_type = Column(Text, nullable=False)
    reason = Column(Text, nullable=False)
    payment_id = Column(Text, nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False)


class ReportRow(Base):
    """Monthly aggregate report, one row per month"""

    __tablename__ = "reports"

    id = Column(Text, primary_key=True)  # monthly-report-YYYY-MM
    month = Column(Text, nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    total_payments = Column(Integer, nullable=False)
    average_payment = Column(Numeric(14, 2), nullable=False)
    by_payment_mode = Column(JSON, nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False)
