"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import asyncio
import pytest
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from scheme_tracker.api.dependencies import get_notification_channel
from scheme_tracker.api.main import create_app
from scheme_tracker.domain.models import Holder, PaymentEvent
from scheme_tracker.domain.schedule import ScheduleModel
from scheme_tracker.infrastructure.database.models import Base
from scheme_tracker.infrastructure.database.session import build_engine, get_db, init_db
from scheme_tracker.services.dispatcher import EventDispatcher


# Scheme starts on a Monday; NOW is exactly 4 weeks later
START_DATE = date(2025, 1, 6)
NOW = datetime(2025, 2, 3, 9, 0, tzinfo=timezone.utc)

# Test database
engine = build_engine("sqlite://")
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class InMemoryStore:
    """Holder, schedule, payment store and event log sink in one test double"""

    def __init__(self):
        self.holders: Dict[str, Holder] = {}
        self.schedules: Dict[str, ScheduleModel] = {}
        self.payments: Dict[str, List[PaymentEvent]] = defaultdict(list)
        self.records: list = []

    def add_holder(self, holder: Holder, schedule: Optional[ScheduleModel] = None) -> Holder:
        self.holders[holder.holder_id] = holder
        if schedule is not None:
            self.schedules[holder.holder_id] = schedule
        return holder

    def add_payment(self, payment: PaymentEvent) -> PaymentEvent:
        self.payments[payment.holder_id].append(payment)
        return payment

    def get(self, holder_id: str) -> Optional[Holder]:
        return self.holders.get(holder_id)

    def list_active(self) -> List[Holder]:
        return [h for h in self.holders.values() if h.is_active]

    def get_for_holder(self, holder_id: str) -> Optional[ScheduleModel]:
        return self.schedules.get(holder_id)

    def list_for_holder(self, holder_id: str) -> List[PaymentEvent]:
        return sorted(self.payments.get(holder_id, []), key=lambda p: p.occurred_at)

    def list_between(self, start: datetime, end: datetime) -> List[PaymentEvent]:
        # Month filtering happens in the report builder
        return sorted((p for ps in self.payments.values() for p in ps), key=lambda p: p.occurred_at)

    def append(self, record) -> None:
        self.records.append(record)

    def records_of(self, record_type: type) -> list:
        return [r for r in self.records if isinstance(r, record_type)]


class FakeChannel:
    """Notification channel that records sends and tracks concurrency"""

    def __init__(self, fail_targets=(), delay: float = 0.0):
        self.sent: List[tuple] = []
        self.fail_targets = set(fail_targets)
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, target: str, text: str) -> bool:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if target in self.fail_targets:
                return False
            self.sent.append((target, text))
            return True
        finally:
            self.in_flight -= 1


def make_holder(n: int = 1, **overrides) -> Holder:
    fields = dict(
        holder_id=f"holder_{n}",
        name=f"Customer {n}",
        serial_number=f"FT-{n:04d}",
        mobile_number=f"91987654{n:04d}",
    )
    fields.update(overrides)
    return Holder(**fields)


def make_payment(holder_id: str = "holder_1", amount="100", days: int = 0, **overrides) -> PaymentEvent:
    fields = dict(
        holder_id=holder_id,
        amount=Decimal(amount),
        occurred_at=datetime.combine(START_DATE, datetime.min.time(), tzinfo=timezone.utc) + timedelta(days=days),
        payment_mode="cash",
    )
    fields.update(overrides)
    return PaymentEvent(**fields)


@pytest.fixture
def schedule() -> ScheduleModel:
    """5200 over 52 weeks: 100 per week"""
    return ScheduleModel(total_amount=Decimal("5200"), duration_weeks=52, start_date=START_DATE)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def dispatcher(store: InMemoryStore, channel: FakeChannel) -> EventDispatcher:
    return EventDispatcher(
        holders=store,
        schedules=store,
        payments=store,
        channel=channel,
        event_log=store,
        concurrency_limit=4,
        dispatch_timeout=1.0,
        clock=lambda: NOW,
    )


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    init_db(engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session, channel: FakeChannel) -> TestClient:
    """Create FastAPI test client with test database and fake WhatsApp channel"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_channel] = lambda: channel
    return TestClient(app)
