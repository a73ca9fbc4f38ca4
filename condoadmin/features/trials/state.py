"""
Trial state derivation and remaining-time display.

Pure functions: the reference time is always passed in.
"""

from datetime import datetime, timedelta
from typing import Optional

from condoadmin.core.dates import calendar_days_between, ensure_utc
from condoadmin.models.subscription import Subscription
from condoadmin.models.trial import RemainingTime, TrialState

URGENT_WINDOW = timedelta(hours=48)
LAST_DAY_WINDOW = timedelta(hours=24)


def trial_state(subscription: Subscription, now: datetime) -> TrialState:
    """Classify a subscription's trial fields at `now`."""
    if subscription.is_lifetime:
        return TrialState.LIFETIME
    if not subscription.is_trial:
        return TrialState.NO_TRIAL
    ends = subscription.trial_ends_at
    if ends is None or ensure_utc(now) < ends:
        return TrialState.TRIAL_ACTIVE
    return TrialState.TRIAL_EXPIRED


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def calculate_remaining_time(trial_ends_at: Optional[datetime], now: datetime) -> RemainingTime:
    """
    Remaining time until `trial_ends_at`.

    Expired when there is no date or now >= trial_ends_at. Urgent while
    0 < remaining <= 48h. Below 24h the text counts hours instead of days.
    """
    if trial_ends_at is None:
        return _expired()

    ends = ensure_utc(trial_ends_at)
    now = ensure_utc(now)
    remaining = ends - now
    if remaining <= timedelta(0):
        return _expired()

    hours = int(remaining.total_seconds() // 3600)
    days = max(0, calendar_days_between(now, ends))
    is_last_day = remaining < LAST_DAY_WINDOW
    is_urgent = remaining <= URGENT_WINDOW

    if is_last_day:
        status = "critical"
    elif is_urgent:
        status = "urgent"
    else:
        status = "normal"

    if is_last_day:
        if hours == 0:
            display = "Menos de 1 hora restante"
        else:
            display = f"{hours} {_plural(hours, 'hora', 'horas')} {_plural(hours, 'restante', 'restantes')}"
        short = f"{hours}h"
    else:
        display = f"{days} {_plural(days, 'dia', 'dias')} {_plural(days, 'restante', 'restantes')}"
        short = f"{days}d"

    return RemainingTime(
        is_expired=False,
        is_urgent=is_urgent,
        is_last_day=is_last_day,
        days_remaining=days,
        hours_remaining=hours,
        status=status,
        display_text=display,
        short_text=short,
    )


def _expired() -> RemainingTime:
    return RemainingTime(
        is_expired=True,
        is_urgent=False,
        is_last_day=False,
        days_remaining=0,
        hours_remaining=0,
        status="expired",
        display_text="Expirado",
        short_text="0d",
    )
