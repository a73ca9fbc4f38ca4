"""
Tests for trial state derivation and remaining-time display.
"""
from datetime import datetime, timezone

from condoadmin.features.trials.state import calculate_remaining_time, trial_state
from condoadmin.models.subscription import Subscription
from condoadmin.models.trial import TrialState


ENDS = datetime(2025, 1, 15, tzinfo=timezone.utc)


def _at(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_fourteen_days_left_is_normal():
    remaining = calculate_remaining_time(ENDS, _at(2025, 1, 1))

    assert remaining.is_expired is False
    assert remaining.is_urgent is False
    assert remaining.status == "normal"
    assert remaining.days_remaining == 14
    assert remaining.display_text == "14 dias restantes"
    assert remaining.short_text == "14d"


def test_last_day_switches_to_hours():
    """23 hours before expiry the countdown shows hours and is critical."""
    remaining = calculate_remaining_time(ENDS, _at(2025, 1, 14, 1, 0))

    assert remaining.is_urgent is True
    assert remaining.is_last_day is True
    assert remaining.status == "critical"
    assert remaining.hours_remaining == 23
    assert remaining.display_text == "23 horas restantes"
    assert remaining.short_text == "23h"


def test_exactly_48_hours_is_urgent():
    remaining = calculate_remaining_time(ENDS, _at(2025, 1, 13))

    assert remaining.is_urgent is True
    assert remaining.is_last_day is False
    assert remaining.status == "urgent"
    assert remaining.display_text == "2 dias restantes"


def test_exactly_24_hours_uses_singular_day():
    remaining = calculate_remaining_time(ENDS, _at(2025, 1, 14))

    assert remaining.is_last_day is False
    assert remaining.display_text == "1 dia restante"
    assert remaining.short_text == "1d"


def test_singular_hour():
    remaining = calculate_remaining_time(ENDS, _at(2025, 1, 14, 23, 0))

    assert remaining.display_text == "1 hora restante"


def test_under_one_hour():
    remaining = calculate_remaining_time(ENDS, _at(2025, 1, 14, 23, 30))

    assert remaining.hours_remaining == 0
    assert remaining.display_text == "Menos de 1 hora restante"
    assert remaining.short_text == "0h"


def test_expired_at_exact_end():
    remaining = calculate_remaining_time(ENDS, ENDS)

    assert remaining.is_expired is True
    assert remaining.status == "expired"
    assert remaining.display_text == "Expirado"
    assert remaining.short_text == "0d"


def test_missing_end_is_expired():
    assert calculate_remaining_time(None, _at(2025, 1, 1)).is_expired is True


def test_naive_end_is_treated_as_utc():
    remaining = calculate_remaining_time(datetime(2025, 1, 15), _at(2025, 1, 14, 1, 0))

    assert remaining.hours_remaining == 23


def _subscription(**overrides):
    values = {"id": "sub-1", "condominium_id": "condo-1", "plan": "essencial"}
    values.update(overrides)
    return Subscription(**values)


def test_trial_state_classification():
    now = _at(2025, 1, 10)

    assert trial_state(_subscription(), now) == TrialState.NO_TRIAL
    assert trial_state(_subscription(is_trial=True, trial_ends_at=ENDS), now) == TrialState.TRIAL_ACTIVE
    assert trial_state(_subscription(is_trial=True, trial_ends_at=ENDS), ENDS) == TrialState.TRIAL_EXPIRED
    assert trial_state(_subscription(plan="enterprise", is_lifetime=True), now) == TrialState.LIFETIME
