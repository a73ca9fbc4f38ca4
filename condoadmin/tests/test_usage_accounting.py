"""
Tests for usage accounting against plan limits.
"""
import uuid
from datetime import datetime, timezone

from condoadmin.features.usage.service import (
    count_period_usage,
    get_usage_summary,
    resource_usage,
    usage_percentage,
)
from condoadmin.models.plan import UNLIMITED

START = datetime(2025, 1, 1, tzinfo=timezone.utc)
END = datetime(2025, 1, 31, tzinfo=timezone.utc)
INSIDE = datetime(2025, 1, 10, tzinfo=timezone.utc)


def test_only_counted_statuses_are_counted(condominium, add_occurrence):
    add_occurrence("notificacao", "notificado", INSIDE)
    add_occurrence("notificacao", "arquivada", INSIDE)
    add_occurrence("notificacao", "registrada", INSIDE)
    add_occurrence("advertencia", "advertido", INSIDE)
    add_occurrence("advertencia", "em_defesa", INSIDE)
    add_occurrence("multa", "multado", INSIDE)

    usage = count_period_usage(condominium["id"], START, END)

    assert usage.notifications == 2
    assert usage.warnings == 1
    assert usage.fines == 1


def test_period_bounds_are_inclusive(condominium, add_occurrence):
    add_occurrence("notificacao", "notificado", START)
    add_occurrence("notificacao", "notificado", END)
    add_occurrence("notificacao", "notificado", datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc))
    add_occurrence("notificacao", "notificado", datetime(2025, 1, 31, 0, 1, tzinfo=timezone.utc))

    assert count_period_usage(condominium["id"], START, END).notifications == 2


def test_missing_bounds_count_everything(condominium, add_occurrence):
    add_occurrence("multa", "multado", datetime(2020, 1, 1, tzinfo=timezone.utc))
    add_occurrence("multa", "multado", INSIDE)

    assert count_period_usage(condominium["id"]).fines == 2


def test_other_condominiums_are_not_counted(condominium, add_occurrence):
    add_occurrence("notificacao", "notificado", INSIDE, condominium_id=str(uuid.uuid4()))

    assert count_period_usage(condominium["id"], START, END).notifications == 0


def test_usage_percentage_rules():
    assert usage_percentage(5, 10) == 50.0
    assert usage_percentage(15, 10) == 100.0
    assert usage_percentage(3, UNLIMITED) == 0.0
    assert usage_percentage(3, 0) == 0.0


def test_resource_usage_remaining():
    assert resource_usage(30, 50).remaining == 20
    assert resource_usage(60, 50).remaining == 0
    unlimited = resource_usage(60, UNLIMITED)
    assert unlimited.unlimited is True
    assert unlimited.remaining is None


def test_summary_counts_current_period(make_subscription, add_occurrence):
    sub = make_subscription()
    for _ in range(5):
        add_occurrence("notificacao", "notificado", INSIDE)
    add_occurrence("multa", "multado", datetime(2025, 3, 1, tzinfo=timezone.utc))

    summary = get_usage_summary(sub)

    assert summary.subscription_id == sub.id
    assert summary.notifications.used == 5
    assert summary.notifications.limit == 50
    assert summary.notifications.percentage == 10.0
    assert summary.fines.used == 0


def test_package_extras_raise_the_limit(make_subscription):
    sub = make_subscription(package_notifications_used=30, package_notifications_extra=20)

    package = get_usage_summary(sub).package_notifications

    assert package.used == 30
    assert package.limit == 120
    assert package.remaining == 90
    assert package.percentage == 25.0


def test_unlimited_package_ignores_extras(make_subscription):
    sub = make_subscription(package_notifications_limit=UNLIMITED, package_notifications_extra=20)

    package = get_usage_summary(sub).package_notifications

    assert package.limit == UNLIMITED
    assert package.unlimited is True
    assert package.percentage == 0.0
