"""Time-based cancellation and reschedule policy.

All functions are pure: the caller passes the ``now`` it captured for the
request. Thresholds use strict ``<``, so a value exactly on a threshold falls
into the more permissive tier.
"""

import math
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from vetclinic.core import config
from vetclinic.models.appointment import AppointmentStatus

CANCEL_NO_PENALTY_HOURS = 72
CANCEL_WARNING_HOURS = 48
CANCEL_LATE_PENALTY_HOURS = 24
CANCEL_BLOCKED_HOURS = 24
RESCHEDULE_MIN_HOURS_BEFORE = 48
RESCHEDULE_REQUIRES_APPROVAL = True
LATE_CANCELLATION_FEE = Decimal('50.00')

ALREADY_OCCURRED_MESSAGE = 'The appointment has already taken place.'


class CancellationTier(str, Enum):
    FREE = 'free'
    SOFT_WARNED = 'soft_warned'
    WARNED = 'warned'
    FEE_BEARING = 'fee_bearing'
    BLOCKED = 'blocked'


class CancellationDecision(BaseModel):
    can_cancel: bool
    tier: CancellationTier
    status: str | None = None
    has_fee: bool = False
    fee: Decimal | None = None
    message: str


class RescheduleCheck(BaseModel):
    can_reschedule: bool
    requires_approval: bool = RESCHEDULE_REQUIRES_APPROVAL
    message: str


def to_local_naive(value: datetime) -> datetime:
    """Convert an offset-aware timestamp to naive local time, as stored."""
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def normalize_appointment_time(value: datetime) -> datetime:
    return to_local_naive(value).replace(second=0, microsecond=0)


def get_hours_until(scheduled_at: datetime, now: datetime) -> float:
    return (scheduled_at - now).total_seconds() / 3600


def classify_cancellation(scheduled_at: datetime, now: datetime) -> CancellationDecision:
    hours_until = get_hours_until(scheduled_at, now)

    if hours_until < 0:
        return CancellationDecision(
            can_cancel=False,
            tier=CancellationTier.BLOCKED,
            message=ALREADY_OCCURRED_MESSAGE,
        )

    if hours_until < CANCEL_BLOCKED_HOURS:
        return CancellationDecision(
            can_cancel=False,
            tier=CancellationTier.BLOCKED,
            message=(
                f'The appointment is less than {CANCEL_BLOCKED_HOURS}h away. '
                'It cannot be cancelled online, please contact the clinic by phone.'
            ),
        )

    # Only reachable when the late-fee window is wider than the blocked window.
    if hours_until < CANCEL_LATE_PENALTY_HOURS:
        return CancellationDecision(
            can_cancel=True,
            tier=CancellationTier.FEE_BEARING,
            status=AppointmentStatus.CANCELLED_LATE.value,
            has_fee=True,
            fee=LATE_CANCELLATION_FEE,
            message=(
                f'LATE CANCELLATION: cancelling less than {CANCEL_LATE_PENALTY_HOURS}h before the appointment '
                f'carries a handling fee of {LATE_CANCELLATION_FEE} {config.CLINIC_CURRENCY}. '
                'The fee will be added by reception at your next visit.'
            ),
        )

    if hours_until < CANCEL_WARNING_HOURS:
        return CancellationDecision(
            can_cancel=True,
            tier=CancellationTier.WARNED,
            status=AppointmentStatus.CANCELLED.value,
            message=(
                f'NOTE: you are cancelling less than {CANCEL_WARNING_HOURS // 24} days before the appointment. '
                'Please let us know earlier next time. This cancellation is free of charge.'
            ),
        )

    if hours_until < CANCEL_NO_PENALTY_HOURS:
        return CancellationDecision(
            can_cancel=True,
            tier=CancellationTier.SOFT_WARNED,
            status=AppointmentStatus.CANCELLED.value,
            message=(
                f'NOTE: you are cancelling less than {CANCEL_NO_PENALTY_HOURS // 24} days before the appointment. '
                'Please let us know earlier next time.'
            ),
        )

    return CancellationDecision(
        can_cancel=True,
        tier=CancellationTier.FREE,
        status=AppointmentStatus.CANCELLED.value,
        message='You can cancel this appointment free of charge.',
    )


def can_reschedule(scheduled_at: datetime, now: datetime) -> RescheduleCheck:
    hours_until = get_hours_until(scheduled_at, now)

    if hours_until < 0:
        return RescheduleCheck(can_reschedule=False, message=ALREADY_OCCURRED_MESSAGE)

    if hours_until < RESCHEDULE_MIN_HOURS_BEFORE:
        return RescheduleCheck(
            can_reschedule=False,
            message=(
                f'The appointment is less than {RESCHEDULE_MIN_HOURS_BEFORE}h away. '
                'It cannot be rescheduled online, please call the clinic.'
            ),
        )

    return RescheduleCheck(
        can_reschedule=True,
        message='You can propose a new time. The change must be approved by reception.',
    )


def _pluralize(count: int, singular: str) -> str:
    return f'{count} {singular}' if count == 1 else f'{count} {singular}s'


def format_time_remaining(hours: float) -> str:
    if hours < 0:
        return ALREADY_OCCURRED_MESSAGE

    days = math.floor(hours / 24)
    remaining_hours = math.floor(hours % 24)
    minutes = math.floor((hours % 1) * 60)

    parts = []
    if days > 0:
        parts.append(_pluralize(days, 'day'))
    if remaining_hours > 0:
        parts.append(_pluralize(remaining_hours, 'hour'))
    if minutes > 0 and days == 0:
        parts.append(_pluralize(minutes, 'minute'))

    return ' '.join(parts) if parts else '0 minutes'
