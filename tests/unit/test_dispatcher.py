"""Unit tests for payment confirmations and reminder ticks"""

import asyncio
import pytest
from decimal import Decimal
from scheme_tracker.domain.exceptions import ComputationError, DispatchError, NotFoundError
from scheme_tracker.domain.models import (
    AnalyticsRecord,
    DispatchStage,
    ErrorRecord,
    NotificationKind,
    NotificationRecord,
)
from scheme_tracker.services.dispatcher import EventDispatcher
from conftest import NOW, FakeChannel, make_holder, make_payment


class BrokenScheduleStore:
    """Schedule store whose lookup fails for one holder"""

    def __init__(self, store, broken_holder_id: str):
        self.store = store
        self.broken_holder_id = broken_holder_id

    def get_for_holder(self, holder_id: str):
        if holder_id == self.broken_holder_id:
            raise ConnectionError("schedule store unavailable")
        return self.store.get_for_holder(holder_id)


class FailingChannel:
    async def send(self, target: str, text: str) -> bool:
        raise DispatchError("gateway down")


# Payment confirmations


async def test_payment_confirmation_sent_and_logged(dispatcher, store, channel, schedule):
    holder = store.add_holder(make_holder(), schedule)
    store.add_payment(make_payment(amount="100", payment_id="p1"))
    payment = store.add_payment(make_payment(amount="150", days=9, payment_id="p2"))

    outcome = await dispatcher.on_payment_created(payment)

    assert outcome.stage == DispatchStage.LOGGED
    assert outcome.succeeded
    assert outcome.payment_id == "p2"
    assert len(channel.sent) == 1
    target, text = channel.sent[0]
    assert target == holder.mobile_number
    assert "Pending Amount: ₹4950" in text

    [record] = store.records_of(NotificationRecord)
    assert record.kind == NotificationKind.CONFIRMATION
    assert record.rendered_text == text
    assert record.channel_target == holder.mobile_number
    assert record.dispatched_at == NOW
    assert record.payment_id == "p2"


async def test_payment_included_even_if_store_lags(dispatcher, store, channel, schedule):
    """The confirmed payment is part of the snapshot even before the store returns it"""
    store.add_holder(make_holder(), schedule)
    store.add_payment(make_payment(amount="100", payment_id="p1"))
    late = make_payment(amount="150", days=9, payment_id="p2")  # not in the store

    outcome = await dispatcher.on_payment_created(late)

    assert outcome.succeeded
    assert "Pending Amount: ₹4950" in channel.sent[0][1]


async def test_payment_not_double_counted(dispatcher, store, channel, schedule):
    store.add_holder(make_holder(), schedule)
    payment = store.add_payment(make_payment(amount="250"))  # no payment_id: matched by equality

    await dispatcher.on_payment_created(payment)

    assert "Pending Amount: ₹4950" in channel.sent[0][1]


async def test_payment_analytics_recorded(dispatcher, store, schedule):
    store.add_holder(make_holder(), schedule)
    payment = store.add_payment(make_payment(amount="100", payment_mode="upi", payment_id="p1"))

    await dispatcher.on_payment_created(payment)

    [analytics] = store.records_of(AnalyticsRecord)
    assert analytics.event_type == "transaction_created"
    assert analytics.payload == {"payment_id": "p1", "amount": "100", "payment_mode": "upi"}


async def test_payment_for_unknown_holder_is_skipped(dispatcher, store, channel):
    payment = make_payment(holder_id="ghost")

    outcome = await dispatcher.on_payment_created(payment)

    assert outcome.stage == DispatchStage.SKIPPED
    assert outcome.last_stage == DispatchStage.RECEIVED
    assert isinstance(outcome.error, NotFoundError)
    assert channel.sent == []
    [error] = store.records_of(ErrorRecord)
    assert error.error_type == "NotFoundError"
    assert error.holder_id == "ghost"


async def test_payment_for_holder_without_scheme_is_skipped(dispatcher, store, channel):
    store.add_holder(make_holder())
    payment = store.add_payment(make_payment())

    outcome = await dispatcher.on_payment_created(payment)

    assert outcome.stage == DispatchStage.SKIPPED
    assert isinstance(outcome.error, NotFoundError)
    assert "Scheme not found" in outcome.reason
    assert channel.sent == []


async def test_payment_with_non_finite_amount_fails(dispatcher, store, channel, schedule):
    store.add_holder(make_holder(), schedule)
    payment = store.add_payment(make_payment(amount=Decimal("NaN")))

    outcome = await dispatcher.on_payment_created(payment)

    assert outcome.stage == DispatchStage.FAILED
    assert outcome.last_stage == DispatchStage.RECEIVED
    assert isinstance(outcome.error, ComputationError)
    assert channel.sent == []
    assert store.records_of(NotificationRecord) == []


async def test_channel_rejection_fails_without_logging_notification(store, schedule):
    holder = store.add_holder(make_holder(), schedule)
    dispatcher = EventDispatcher(store, store, store, FakeChannel(fail_targets=[holder.mobile_number]), store, clock=lambda: NOW)

    outcome = await dispatcher.on_payment_created(store.add_payment(make_payment()))

    assert outcome.stage == DispatchStage.FAILED
    assert outcome.last_stage == DispatchStage.MESSAGE_RENDERED
    assert isinstance(outcome.error, DispatchError)
    assert store.records_of(NotificationRecord) == []
    [error] = store.records_of(ErrorRecord)
    assert error.stage == "message_rendered"


async def test_dispatch_timeout_is_bounded(store, schedule):
    store.add_holder(make_holder(), schedule)
    slow = FakeChannel(delay=1.0)
    dispatcher = EventDispatcher(store, store, store, slow, store, dispatch_timeout=0.05, clock=lambda: NOW)

    outcome = await dispatcher.on_payment_created(store.add_payment(make_payment()))

    assert outcome.stage == DispatchStage.FAILED
    assert isinstance(outcome.error, DispatchError)
    assert "timed out" in outcome.reason


async def test_duplicate_payment_event_does_not_change_state(dispatcher, store, channel, schedule):
    """Re-delivering the same payment may re-send, but the figures stay the same"""
    store.add_holder(make_holder(), schedule)
    payment = store.add_payment(make_payment(amount="250", payment_id="p1"))

    await dispatcher.on_payment_created(payment)
    await dispatcher.on_payment_created(payment)

    assert channel.sent[0] == channel.sent[1]


# Reminder ticks


async def test_tick_reminds_only_overdue_holders(dispatcher, store, channel, schedule):
    behind = store.add_holder(make_holder(1), schedule)
    store.add_payment(make_payment(behind.holder_id, amount="250"))
    one_week = store.add_holder(make_holder(2), schedule)
    store.add_payment(make_payment(one_week.holder_id, amount="300"))
    ahead = store.add_holder(make_holder(3), schedule)
    store.add_payment(make_payment(ahead.holder_id, amount="650"))

    summary = await dispatcher.on_scheduled_tick(NOW)

    assert [target for target, _ in channel.sent] == [behind.mobile_number]
    assert "Overdue Weeks: 2 weeks" in channel.sent[0][1]
    assert "Total Due: ₹300" in channel.sent[0][1]
    assert summary.reminders_sent == 1
    assert summary.counts() == {"logged": 1, "skipped": 2}
    [record] = store.records_of(NotificationRecord)
    assert record.kind == NotificationKind.REMINDER


async def test_tick_skips_inactive_holders(dispatcher, store, channel, schedule):
    store.add_holder(make_holder(1, is_active=False), schedule)

    summary = await dispatcher.on_scheduled_tick(NOW)

    assert summary.outcomes == []
    assert channel.sent == []


async def test_tick_isolates_failing_holder(store, channel, schedule):
    """Holder 3's schedule lookup blows up; the other holders are still processed"""
    for n in range(1, 6):
        store.add_holder(make_holder(n), schedule)
    dispatcher = EventDispatcher(
        holders=store,
        schedules=BrokenScheduleStore(store, "holder_3"),
        payments=store,
        channel=channel,
        event_log=store,
        clock=lambda: NOW,
    )

    summary = await dispatcher.on_scheduled_tick(NOW)

    assert len(summary.outcomes) == 5
    assert len(summary.failures) == 1
    failed = summary.failures[0]
    assert failed.holder_id == "holder_3"
    assert isinstance(failed.error, ConnectionError)
    assert summary.reminders_sent == 4
    assert len(store.records_of(NotificationRecord)) == 4
    [error] = store.records_of(ErrorRecord)
    assert error.holder_id == "holder_3"
    assert error.error_type == "ConnectionError"


async def test_tick_isolates_missing_schedule_and_channel_failure(store, schedule):
    store.add_holder(make_holder(1), schedule)
    store.add_holder(make_holder(2))  # no scheme
    bad_target = store.add_holder(make_holder(3), schedule).mobile_number
    dispatcher = EventDispatcher(store, store, store, FakeChannel(fail_targets=[bad_target]), store, clock=lambda: NOW)

    summary = await dispatcher.on_scheduled_tick(NOW)

    stages = {o.holder_id: o.stage for o in summary.outcomes}
    assert stages == {
        "holder_1": DispatchStage.LOGGED,
        "holder_2": DispatchStage.SKIPPED,
        "holder_3": DispatchStage.FAILED,
    }


async def test_tick_channel_exception_is_failure(store, schedule):
    store.add_holder(make_holder(1), schedule)
    dispatcher = EventDispatcher(store, store, store, FailingChannel(), store, clock=lambda: NOW)

    summary = await dispatcher.on_scheduled_tick(NOW)

    assert summary.failures[0].reason == "gateway down"


async def test_tick_respects_concurrency_limit(store, schedule):
    for n in range(1, 11):
        store.add_holder(make_holder(n), schedule)
    channel = FakeChannel(delay=0.01)
    dispatcher = EventDispatcher(store, store, store, channel, store, concurrency_limit=3, clock=lambda: NOW)

    summary = await dispatcher.on_scheduled_tick(NOW)

    assert summary.reminders_sent == 10
    assert 1 < channel.max_in_flight <= 3


async def test_tick_defaults_to_clock(dispatcher, store, schedule):
    store.add_holder(make_holder(1), schedule)

    summary = await dispatcher.on_scheduled_tick()

    assert summary.ran_at == NOW


def test_concurrency_limit_must_be_positive(store, channel):
    with pytest.raises(ValueError):
        EventDispatcher(store, store, store, channel, store, concurrency_limit=0)


def test_holder_update_recorded(dispatcher, store):
    before = make_holder(1)
    after = make_holder(1, mobile_number="919999999999")

    record = dispatcher.on_holder_updated(before, after)

    assert record in store.records
    assert record.event_type == "holder_updated"
    assert record.payload["before"]["mobile_number"] == before.mobile_number
    assert record.payload["after"]["mobile_number"] == "919999999999"
