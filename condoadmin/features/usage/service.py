"""
condoadmin/features/usage/service.py

Usage accounting service.

Handles:
- Counting qualifying occurrences inside a billing period
- Usage percentages against plan limits
- Per-resource usage summaries for display

Read-only: nothing here writes to the database.
"""

from datetime import datetime
from typing import Dict, Optional
from sqlalchemy import select, func

from condoadmin.core.database import get_db_session, occurrences
from condoadmin.core.dates import ensure_utc
from condoadmin.models.occurrence import COUNTED_STATUSES, RESOURCE_BY_TYPE
from condoadmin.models.plan import is_unlimited
from condoadmin.models.subscription import Subscription
from condoadmin.models.usage import PeriodUsage, ResourceUsage, UsageSummary


def count_period_usage(
    condominium_id: str,
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None,
) -> PeriodUsage:
    """
    Count occurrences per resource for a condominium.

    Only occurrences whose status is in COUNTED_STATUSES are counted.
    Bounds are inclusive and ignored when None.

    Args:
        condominium_id: Condominium to count for
        period_start: Optional start of the billing period
        period_end: Optional end of the billing period

    Returns:
        PeriodUsage with notifications, warnings and fines
    """
    query = (
        select(occurrences.c.type, func.count())
        .where(occurrences.c.condominium_id == condominium_id)
        .where(occurrences.c.status.in_([s.value for s in COUNTED_STATUSES]))
        .where(occurrences.c.type.in_([t.value for t in RESOURCE_BY_TYPE]))
    )
    if period_start is not None:
        query = query.where(occurrences.c.created_at >= ensure_utc(period_start))
    if period_end is not None:
        query = query.where(occurrences.c.created_at <= ensure_utc(period_end))

    with get_db_session() as session:
        rows = session.execute(query.group_by(occurrences.c.type)).all()

    counts: Dict[str, int] = {}
    by_value = {t.value: resource for t, resource in RESOURCE_BY_TYPE.items()}
    for occurrence_type, count in rows:
        counts[by_value[occurrence_type]] = count
    return PeriodUsage(**counts)


def usage_percentage(used: int, limit: int) -> float:
    """min(used/limit, 1) * 100; unlimited and zero limits report 0."""
    if is_unlimited(limit) or limit == 0:
        return 0.0
    return min(used / limit, 1.0) * 100


def resource_usage(used: int, limit: int) -> ResourceUsage:
    unlimited = is_unlimited(limit)
    return ResourceUsage(
        used=used,
        limit=limit,
        remaining=None if unlimited else max(0, limit - used),
        percentage=usage_percentage(used, limit),
        unlimited=unlimited,
    )


def get_usage_summary(subscription: Subscription) -> UsageSummary:
    """
    Usage of every resource in the subscription's current period.

    Notifications, warnings and fines come from counted occurrences.
    Package notifications have no occurrence source, so the stored counter
    is used and purchased extras raise the limit.
    """
    counted = count_period_usage(
        subscription.condominium_id,
        subscription.current_period_start,
        subscription.current_period_end,
    )

    package_limit = subscription.package_notifications_limit
    if not is_unlimited(package_limit):
        package_limit += subscription.package_notifications_extra

    return UsageSummary(
        subscription_id=subscription.id,
        period_start=subscription.current_period_start,
        period_end=subscription.current_period_end,
        notifications=resource_usage(counted.notifications, subscription.notifications_limit),
        warnings=resource_usage(counted.warnings, subscription.warnings_limit),
        fines=resource_usage(counted.fines, subscription.fines_limit),
        package_notifications=resource_usage(subscription.package_notifications_used, package_limit),
    )
