"""Event dispatcher - payment confirmations and reminder ticks over injected collaborators"""

import asyncio
import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from scheme_tracker.config import settings
from scheme_tracker.domain.exceptions import DispatchError, DomainException, NotFoundError
from scheme_tracker.domain.models import (
    AnalyticsRecord,
    DispatchOutcome,
    DispatchStage,
    ErrorRecord,
    Holder,
    Message,
    NotificationKind,
    NotificationRecord,
    PaymentEvent,
    TickSummary,
)
from scheme_tracker.domain.notifications import is_reminder_due, render_confirmation, render_reminder
from scheme_tracker.domain.ports import EventLogSink, HolderStore, NotificationChannel, PaymentStore, ScheduleStore
from scheme_tracker.domain.progress import compute_progress
from scheme_tracker.infrastructure.observability.logging import log_outcome, log_tick
from scheme_tracker.infrastructure.observability.metrics import (
    dispatch_failure_counter,
    dispatch_latency_histogram,
    record_outcome,
    tick_holders_counter,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Unit:
    """Tracks one payment or one tick-holder through the dispatch stages"""

    def __init__(self, holder_id: str, kind: NotificationKind, payment_id: Optional[str] = None):
        self.holder_id = holder_id
        self.kind = kind
        self.payment_id = payment_id
        self.stage = DispatchStage.RECEIVED

    def advance(self, stage: DispatchStage) -> None:
        self.stage = stage

    def _outcome(self, stage: DispatchStage, **kwargs) -> DispatchOutcome:
        return DispatchOutcome(
            holder_id=self.holder_id,
            kind=self.kind,
            stage=stage,
            last_stage=self.stage,
            payment_id=self.payment_id,
            **kwargs,
        )

    def logged(self, record: NotificationRecord) -> DispatchOutcome:
        self.advance(DispatchStage.LOGGED)
        return self._outcome(DispatchStage.LOGGED, record=record)

    def skipped(self, reason: str, error: Optional[Exception] = None) -> DispatchOutcome:
        return self._outcome(DispatchStage.SKIPPED, reason=reason, error=error)

    def failed(self, error: Exception) -> DispatchOutcome:
        return self._outcome(DispatchStage.FAILED, reason=str(error) or type(error).__name__, error=error)


def _including(history: Sequence[PaymentEvent], payment: PaymentEvent) -> List[PaymentEvent]:
    """Payment history guaranteed to contain `payment`, ordered by occurred_at"""
    if payment.payment_id is not None:
        present = any(p.payment_id == payment.payment_id for p in history)
    else:
        present = payment in history

    if present:
        return list(history)
    return sorted([*history, payment], key=lambda p: p.occurred_at)


class EventDispatcher:
    """
    Reacts to new payments and periodic ticks.

    Every unit of work (one payment, or one holder within a tick) ends in a
    DispatchOutcome: LOGGED on success, SKIPPED when there is nothing to send
    or the holder/scheme is missing, FAILED on computation or delivery errors.
    Nothing is retried here; the channel owns its retry policy.
    """

    def __init__(
        self,
        holders: HolderStore,
        schedules: ScheduleStore,
        payments: PaymentStore,
        channel: NotificationChannel,
        event_log: EventLogSink,
        concurrency_limit: int | None = None,
        dispatch_timeout: float | None = None,
        grace_weeks: int | None = None,
        clock: Clock = utc_now,
    ):
        self.holders = holders
        self.schedules = schedules
        self.payments = payments
        self.channel = channel
        self.event_log = event_log
        self.concurrency_limit = settings.dispatch_concurrency_limit if concurrency_limit is None else concurrency_limit
        self.dispatch_timeout = settings.dispatch_timeout_seconds if dispatch_timeout is None else dispatch_timeout
        self.grace_weeks = settings.reminder_grace_weeks if grace_weeks is None else grace_weeks
        self.clock = clock

        if self.concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {self.concurrency_limit}")

    async def on_payment_created(self, payment: PaymentEvent) -> DispatchOutcome:
        """
        Send a payment confirmation.

        The snapshot is recomputed from the stored history with `payment`
        added if the store does not return it yet.
        """
        self._record_payment_analytics(payment)
        unit = _Unit(payment.holder_id, NotificationKind.CONFIRMATION, payment.payment_id)
        return await self._process(unit, self._confirm(unit, payment))

    async def on_scheduled_tick(self, now: datetime | None = None) -> TickSummary:
        """
        Evaluate every active holder and send reminders to overdue ones.

        Holders are processed concurrently, at most `concurrency_limit` at a
        time. A failing holder never stops the rest of the batch.
        """
        now = now or self.clock()
        start_time = time.time()

        holders = self.holders.list_active()
        tick_holders_counter.inc(len(holders))
        semaphore = asyncio.Semaphore(self.concurrency_limit)

        outcomes = await asyncio.gather(*(self._remind_holder(holder, now, semaphore) for holder in holders))

        summary = TickSummary(ran_at=now, outcomes=list(outcomes))
        log_tick(summary, (time.time() - start_time) * 1000)
        return summary

    def on_holder_updated(self, before: Holder, after: Holder) -> AnalyticsRecord:
        """Record a holder profile change for analytics"""
        record = AnalyticsRecord(
            event_type="holder_updated",
            holder_id=after.holder_id,
            recorded_at=self.clock(),
            payload={"before": asdict(before), "after": asdict(after)},
        )
        self.event_log.append(record)
        return record

    async def _remind_holder(self, holder: Holder, now: datetime, semaphore: asyncio.Semaphore) -> DispatchOutcome:
        unit = _Unit(holder.holder_id, NotificationKind.REMINDER)
        async with semaphore:
            return await self._process(unit, self._remind(unit, holder, now))

    async def _confirm(self, unit: _Unit, payment: PaymentEvent) -> DispatchOutcome:
        holder = self.holders.get(payment.holder_id)
        if holder is None:
            error = NotFoundError(f"Holder {payment.holder_id} not found")
            return unit.skipped(str(error), error)

        schedule = self.schedules.get_for_holder(payment.holder_id)
        if schedule is None:
            error = NotFoundError(f"Scheme not found for holder {payment.holder_id}")
            return unit.skipped(str(error), error)

        history = _including(self.payments.list_for_holder(payment.holder_id), payment)
        snapshot = compute_progress(schedule, history, self.clock())
        unit.advance(DispatchStage.SNAPSHOT_COMPUTED)

        message = render_confirmation(holder, payment, schedule, snapshot)
        unit.advance(DispatchStage.MESSAGE_RENDERED)

        return await self._deliver(unit, message)

    async def _remind(self, unit: _Unit, holder: Holder, now: datetime) -> DispatchOutcome:
        schedule = self.schedules.get_for_holder(holder.holder_id)
        if schedule is None:
            error = NotFoundError(f"Scheme not found for holder {holder.holder_id}")
            return unit.skipped(str(error), error)

        snapshot = compute_progress(schedule, self.payments.list_for_holder(holder.holder_id), now)
        unit.advance(DispatchStage.SNAPSHOT_COMPUTED)

        if not is_reminder_due(snapshot, self.grace_weeks):
            return unit.skipped(f"Not due: {snapshot.overdue_weeks} overdue weeks")

        message = render_reminder(holder, snapshot)
        unit.advance(DispatchStage.MESSAGE_RENDERED)

        return await self._deliver(unit, message)

    async def _deliver(self, unit: _Unit, message: Message) -> DispatchOutcome:
        try:
            with dispatch_latency_histogram.time():
                delivered = await asyncio.wait_for(
                    self.channel.send(message.target, message.text),
                    timeout=self.dispatch_timeout,
                )
        except asyncio.TimeoutError as e:
            dispatch_failure_counter.inc()
            raise DispatchError(f"Send to {message.target} timed out after {self.dispatch_timeout}s") from e
        except DispatchError:
            dispatch_failure_counter.inc()
            raise

        if not delivered:
            dispatch_failure_counter.inc()
            raise DispatchError(f"Channel rejected message to {message.target}")
        unit.advance(DispatchStage.DISPATCHED)

        record = NotificationRecord(
            holder_id=unit.holder_id,
            kind=message.kind,
            rendered_text=message.text,
            channel_target=message.target,
            dispatched_at=self.clock(),
            payment_id=unit.payment_id,
        )
        self.event_log.append(record)
        return unit.logged(record)

    async def _process(self, unit: _Unit, work) -> DispatchOutcome:
        """Run one unit of work and turn any error into a FAILED outcome"""
        start_time = time.time()
        try:
            outcome = await work
        except DomainException as e:
            outcome = unit.failed(e)
        except Exception as e:
            logging.exception(
                f"Unexpected error processing holder {unit.holder_id}",
                extra={"holder_id": unit.holder_id, "stage": unit.stage.value},
            )
            outcome = unit.failed(e)

        if outcome.failed or isinstance(outcome.error, NotFoundError):
            self._record_error(outcome)

        record_outcome(outcome)
        log_outcome(outcome, (time.time() - start_time) * 1000)
        return outcome

    def _record_payment_analytics(self, payment: PaymentEvent) -> None:
        record = AnalyticsRecord(
            event_type="transaction_created",
            holder_id=payment.holder_id,
            recorded_at=self.clock(),
            payload={
                "payment_id": payment.payment_id,
                "amount": str(payment.amount),
                "payment_mode": payment.payment_mode,
            },
        )
        try:
            self.event_log.append(record)
        except Exception as e:
            logging.error(f"Failed to record payment analytics: {e}", extra={"holder_id": payment.holder_id})

    def _record_error(self, outcome: DispatchOutcome) -> None:
        record = ErrorRecord(
            holder_id=outcome.holder_id,
            kind=outcome.kind,
            stage=outcome.last_stage.value,
            error_type=type(outcome.error).__name__,
            reason=outcome.reason or "",
            recorded_at=self.clock(),
            payment_id=outcome.payment_id,
        )
        try:
            self.event_log.append(record)
        except Exception as e:
            logging.error(f"Failed to record error trail: {e}", extra={"holder_id": outcome.holder_id})
