"""
Pro-ration of mid-period plan changes.

Pure: no database access and no clock reads.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from condoadmin.core.dates import whole_days_between
from condoadmin.models.billing import ProrationQuote, ZERO, round_money


def calculate_proration(
    period_start: Optional[datetime],
    period_end: Optional[datetime],
    old_price: Decimal,
    new_price: Decimal,
    today: datetime,
) -> ProrationQuote:
    """
    Amount due now to switch from old_price to new_price.

    Downgrades and lateral moves never charge. Upgrades charge the
    difference for the unused share of the period:

        r = days_remaining / total_days
        amount_due = max(0, r * new_price - r * old_price)

    Days are whole 24-hour periods with partial days dropped. Missing
    bounds, an empty period or an exhausted period defer the difference
    to the next cycle.
    """
    old_price = Decimal(old_price)
    new_price = Decimal(new_price)
    is_upgrade = new_price > old_price

    if period_start is None or period_end is None:
        return ProrationQuote(is_upgrade=is_upgrade)

    total_days = whole_days_between(period_start, period_end)
    days_used = whole_days_between(period_start, today)
    days_remaining = max(0, total_days - days_used)

    if not is_upgrade or total_days <= 0 or days_remaining <= 0:
        return ProrationQuote(
            is_upgrade=is_upgrade,
            days_remaining=days_remaining,
            total_days=max(0, total_days),
        )

    ratio = Decimal(days_remaining) / Decimal(total_days)
    old_credit = ratio * old_price
    new_charge = ratio * new_price
    amount_due = max(ZERO, round_money(new_charge - old_credit))

    return ProrationQuote(
        is_upgrade=True,
        amount_due=amount_due,
        days_remaining=days_remaining,
        total_days=total_days,
        old_credit=round_money(old_credit),
        new_charge=round_money(new_charge),
        prorated=True,
    )
