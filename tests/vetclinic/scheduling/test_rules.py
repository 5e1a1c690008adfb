from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from vetclinic.scheduling.rules import (
    ALREADY_OCCURRED_MESSAGE,
    CancellationTier,
    can_reschedule,
    classify_cancellation,
    format_time_remaining,
    get_hours_until,
)

NOW = datetime(2026, 3, 2, 10, 0)


def at(hours: float) -> datetime:
    return NOW + timedelta(hours=hours)


def test_get_hours_until_is_fractional() -> None:
    assert get_hours_until(NOW + timedelta(minutes=90), NOW) == 1.5
    assert get_hours_until(NOW - timedelta(hours=2), NOW) == -2


@pytest.mark.parametrize(
    ('hours', 'tier', 'expected_status'),
    [
        (100, CancellationTier.FREE, 'cancelled'),
        (72, CancellationTier.FREE, 'cancelled'),
        (71.9, CancellationTier.SOFT_WARNED, 'cancelled'),
        (48, CancellationTier.SOFT_WARNED, 'cancelled'),
        (47.9, CancellationTier.WARNED, 'cancelled'),
        (34, CancellationTier.WARNED, 'cancelled'),
        (24, CancellationTier.WARNED, 'cancelled'),
    ],
)
def test_classify_cancellation_allowed_tiers(hours: float, tier: CancellationTier, expected_status: str) -> None:
    decision = classify_cancellation(at(hours), NOW)

    assert decision.can_cancel is True
    assert decision.tier == tier
    assert decision.status == expected_status
    assert decision.has_fee is False
    assert decision.fee is None


@pytest.mark.parametrize('hours', [23.99, 10, 0])
def test_classify_cancellation_blocks_inside_final_day(hours: float) -> None:
    decision = classify_cancellation(at(hours), NOW)

    assert decision.can_cancel is False
    assert decision.tier == CancellationTier.BLOCKED
    assert decision.status is None
    assert 'contact the clinic by phone' in decision.message


def test_classify_cancellation_rejects_past_appointments() -> None:
    decision = classify_cancellation(at(-1), NOW)

    assert decision.can_cancel is False
    assert decision.message == ALREADY_OCCURRED_MESSAGE


def test_classify_cancellation_fee_tier_when_late_window_is_wider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('vetclinic.scheduling.rules.CANCEL_BLOCKED_HOURS', 12)

    decision = classify_cancellation(at(20), NOW)

    assert decision.can_cancel is True
    assert decision.tier == CancellationTier.FEE_BEARING
    assert decision.status == 'cancelled_late'
    assert decision.has_fee is True
    assert decision.fee == Decimal('50.00')


def test_free_tier_message() -> None:
    assert classify_cancellation(at(80), NOW).message == 'You can cancel this appointment free of charge.'


@pytest.mark.parametrize(
    ('hours', 'allowed'),
    [(100, True), (48, True), (47.99, False), (1, False), (-3, False)],
)
def test_can_reschedule_threshold(hours: float, allowed: bool) -> None:
    check = can_reschedule(at(hours), NOW)

    assert check.can_reschedule is allowed
    assert check.requires_approval is True


def test_can_reschedule_past_message() -> None:
    assert can_reschedule(at(-1), NOW).message == ALREADY_OCCURRED_MESSAGE


@pytest.mark.parametrize(
    ('hours', 'expected'),
    [
        (-0.5, ALREADY_OCCURRED_MESSAGE),
        (0, '0 minutes'),
        (0.5, '30 minutes'),
        (1, '1 hour'),
        (2.25, '2 hours 15 minutes'),
        (24, '1 day'),
        (49.5, '2 days 1 hour'),
        (72, '3 days'),
    ],
)
def test_format_time_remaining(hours: float, expected: str) -> None:
    assert format_time_remaining(hours) == expected
