"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from scheme_tracker.config import settings
from scheme_tracker.domain.models import DispatchOutcome, TickSummary


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_outcome(outcome: DispatchOutcome, duration_ms: float) -> None:
    """Log structured result of one payment / holder unit for operator review"""
    extra = {
        "holder_id": outcome.holder_id,
        "payment_id": outcome.payment_id,
        "step": outcome.kind.value,
        "stage": outcome.stage.value,
        "last_stage": outcome.last_stage.value,
        "reason": outcome.reason,
        "duration_ms": duration_ms,
    }
    if outcome.failed:
        logging.error("Notification failed", extra=extra)
    elif outcome.succeeded:
        logging.info("Notification sent", extra=extra)
    else:
        logging.info("Notification skipped", extra=extra)


def log_tick(summary: TickSummary, duration_ms: float) -> None:
    """Log aggregate outcome of a reminder tick"""
    logging.info(
        "Reminder tick completed",
        extra={
            "step": "reminder_tick",
            "ran_at": summary.ran_at.isoformat(),
            "holders": len(summary.outcomes),
            "reminders_sent": summary.reminders_sent,
            "failures": len(summary.failures),
            "duration_ms": duration_ms,
        },
    )
