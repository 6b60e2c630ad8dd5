"""Trigger definitions handed to the external scheduler"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from scheme_tracker.config import Settings, settings
from scheme_tracker.services.dispatcher import EventDispatcher
from scheme_tracker.services.reporting import ReportService

Handler = Callable[[datetime], Awaitable[Any]]


@dataclass(frozen=True)
class Trigger:
    """
    When and how a periodic job runs.

    The engine only provides `handler`; evaluating `cron` in `timezone` is the
    scheduler's job.
    """

    name: str
    cron: str
    timezone: str
    handler: Handler

    def __post_init__(self) -> None:
        if len(self.cron.split()) != 5:
            raise ValueError(f"Trigger {self.name}: cron must have 5 fields, got {self.cron!r}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Trigger {self.name}: unknown timezone {self.timezone!r}") from e

    async def fire(self, now: Optional[datetime] = None) -> Any:
        """Run the handler; `now` defaults to the current time in the trigger's timezone"""
        return await self.handler(now or datetime.now(ZoneInfo(self.timezone)))


def build_triggers(dispatcher: EventDispatcher, reports: ReportService, config: Settings = settings) -> List[Trigger]:
    """Weekly payment reminders and the monthly report"""
    return [
        Trigger(
            name="payment_reminders",
            cron=config.reminder_cron,
            timezone=config.scheduler_timezone,
            handler=dispatcher.on_scheduled_tick,
        ),
        Trigger(
            name="monthly_report",
            cron=config.monthly_report_cron,
            timezone=config.scheduler_timezone,
            handler=reports.on_monthly_tick,
        ),
    ]
