"""Notification policy - when reminders fire and how messages are rendered"""

import math
from decimal import Decimal
from fractions import Fraction
from typing import Union

from scheme_tracker.config import settings
from scheme_tracker.domain.models import (
    Holder,
    Message,
    NotificationKind,
    PaymentEvent,
    ProgressSnapshot,
)
from scheme_tracker.domain.schedule import ScheduleModel, to_decimal
from scheme_tracker.utils.date_utils import format_display_date

RECEIPT_PLACEHOLDER = "N/A"


def is_reminder_due(snapshot: ProgressSnapshot, grace_weeks: int = settings.reminder_grace_weeks) -> bool:
    """
    A reminder fires only when the holder is more than `grace_weeks` behind.

    With the default one-week grace, a holder exactly one week behind is not
    delinquent yet; two or more weeks behind is.
    """
    return snapshot.overdue_weeks > grace_weeks


def round_currency(value: Union[Fraction, Decimal, int]) -> int:
    """Round half-up to whole currency units; halves go toward +infinity (-800.5 -> -800)"""
    return math.floor(Fraction(value) + Fraction(1, 2))


def format_amount(value: Decimal) -> str:
    """Exact amount without exponent notation (Decimal('1E+2') -> '100')"""
    return f"{to_decimal(value):f}"


def render_confirmation(
    holder: Holder,
    payment: PaymentEvent,
    schedule: ScheduleModel,
    snapshot: ProgressSnapshot,
    currency: str = settings.currency_symbol,
    app_name: str = settings.app_display_name,
) -> Message:
    """
    Payment confirmation sent after every recorded payment.

    `snapshot` must already include `payment`. Weekly and pending amounts are
    rounded here; the snapshot itself stays exact.
    """
    text = f"""*Payment Received Successfully!*

*Customer Details:*
Name: {holder.name}
ID: {holder.serial_number}

*Payment Details:*
Amount: {currency}{format_amount(payment.amount)}
Date: {format_display_date(payment.occurred_at)}
Mode: {payment.payment_mode}
Receipt: {payment.receipt_ref or RECEIPT_PLACEHOLDER}

*Scheme Information:*
Scheme: {schedule.scheme_type}
Weekly Amount: {currency}{round_currency(snapshot.weekly_amount)}
Total Amount: {currency}{format_amount(schedule.total_amount)}

*Financial Summary:*
Weeks Paid: {snapshot.paid_weeks} of {schedule.duration_weeks}
Pending Amount: {currency}{round_currency(snapshot.pending_amount)}
Bonus Earned: {currency}{format_amount(payment.bonus)}
Total Bonus: {currency}{format_amount(snapshot.total_bonus)}

*Next Due Date:*
{format_display_date(snapshot.next_due_date)}

Thank you for your payment!

_This is an automated message from {app_name}_"""

    return Message(kind=NotificationKind.CONFIRMATION, target=holder.mobile_number, text=text)


def render_reminder(
    holder: Holder,
    snapshot: ProgressSnapshot,
    currency: str = settings.currency_symbol,
    app_name: str = settings.app_display_name,
) -> Message:
    """Overdue reminder: overdue amount covers missed weeks, total due adds the current week"""
    overdue_amount = snapshot.overdue_weeks * snapshot.weekly_amount
    total_due = (snapshot.overdue_weeks + 1) * snapshot.weekly_amount

    text = f"""*Payment Reminder*

*Customer Details:*
Name: {holder.name}
ID: {holder.serial_number}

*Payment Details:*
Weekly Amount: {currency}{round_currency(snapshot.weekly_amount)}
Overdue Amount: {currency}{round_currency(overdue_amount)}
Overdue Weeks: {snapshot.overdue_weeks} weeks

Total Due: {currency}{round_currency(total_due)}

Please make your payment at the earliest convenience.

_This is an automated reminder from {app_name}_"""

    return Message(kind=NotificationKind.REMINDER, target=holder.mobile_number, text=text)
