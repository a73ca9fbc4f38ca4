"""
Tests for super-admin subscription edits and status resolution.
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from condoadmin.core.errors import ConflictError, NotFoundError, ValidationError
from condoadmin.features.audit.service import (
    ADD_EXTRA_DAYS,
    RESET_USAGE,
    SET_LIFETIME,
    UPDATE,
    list_audit_logs,
)
from condoadmin.features.subscriptions.service import (
    add_extra_days,
    provision_subscription,
    require_subscription,
    reset_usage_period,
    resolve_subscription_status,
    set_lifetime,
    update_subscription,
)
from condoadmin.models.plan import UNLIMITED, PlanSlug
from condoadmin.models.subscription import Subscription, SubscriptionUpdate

NOW = datetime(2025, 1, 10, tzinfo=timezone.utc)
PERIOD_END = datetime(2025, 1, 31, tzinfo=timezone.utc)


def test_provision_starts_on_free_trial(condominium):
    sub = provision_subscription(condominium["id"], now=NOW)

    assert sub.plan == PlanSlug.START
    assert sub.is_trial is True
    assert sub.trial_ends_at == NOW + timedelta(days=7)
    assert sub.current_period_end == NOW + timedelta(days=30)
    assert sub.notifications_limit == 10
    assert require_subscription(sub.id).fines_limit == 0


def test_provision_without_trial(condominium):
    sub = provision_subscription(condominium["id"], plan="essencial", trial_days=0, now=NOW)

    assert sub.is_trial is False
    assert sub.trial_ends_at is None
    assert sub.notifications_limit == 50


def test_lifetime_on_trial_is_invalid():
    with pytest.raises(PydanticValidationError):
        Subscription(
            id="sub-1",
            condominium_id="condo-1",
            plan="enterprise",
            is_lifetime=True,
            is_trial=True,
            trial_ends_at=NOW,
        )


def test_period_end_must_follow_start():
    with pytest.raises(PydanticValidationError):
        Subscription(
            id="sub-1",
            condominium_id="condo-1",
            plan="essencial",
            current_period_start=NOW,
            current_period_end=NOW,
        )


def test_set_lifetime_clears_trial_and_unlocks_limits(make_subscription):
    sub = make_subscription(is_trial=True, trial_ends_at=NOW + timedelta(days=5))

    updated = set_lifetime(sub.id, actor_id="admin-1", now=NOW)

    assert updated.is_lifetime is True
    assert updated.is_trial is False
    assert updated.trial_ends_at is None
    assert updated.plan == PlanSlug.ENTERPRISE
    assert updated.limits() == {
        "notifications_limit": UNLIMITED,
        "warnings_limit": UNLIMITED,
        "fines_limit": UNLIMITED,
        "package_notifications_limit": UNLIMITED,
    }
    stored = require_subscription(sub.id)
    assert stored.is_lifetime is True
    assert stored.trial_ends_at is None
    assert list_audit_logs(sub.id, action=SET_LIFETIME)[0]["user_id"] == "admin-1"


def test_lifetime_rejects_finite_limits(make_subscription):
    sub = make_subscription()
    set_lifetime(sub.id, now=NOW)

    with pytest.raises(ConflictError):
        update_subscription(sub.id, SubscriptionUpdate(notifications_limit=10), now=NOW)
    with pytest.raises(ConflictError):
        update_subscription(sub.id, SubscriptionUpdate(plan="start"), now=NOW)

    assert require_subscription(sub.id).notifications_limit == UNLIMITED


def test_update_plan_copies_limits(make_subscription):
    sub = make_subscription()

    updated = update_subscription(sub.id, SubscriptionUpdate(plan="profissional"), actor_id="admin-1", now=NOW)

    assert updated.plan == PlanSlug.PROFISSIONAL
    assert updated.warnings_limit == 200
    rows = list_audit_logs(sub.id, action=UPDATE)
    assert rows[0]["old_data"]["warnings_limit"] == 50
    assert rows[0]["new_data"]["warnings_limit"] == 200


def test_update_explicit_limits_override_plan(make_subscription):
    sub = make_subscription()

    updated = update_subscription(
        sub.id,
        SubscriptionUpdate(plan="profissional", fines_limit=5, package_notifications_extra=50),
        now=NOW,
    )

    assert updated.fines_limit == 5
    assert updated.notifications_limit == 200
    assert updated.package_notifications_extra == 50


def test_update_without_changes(make_subscription):
    sub = make_subscription()

    with pytest.raises(ValidationError):
        update_subscription(sub.id, SubscriptionUpdate(), now=NOW)


def test_update_limits_below_unlimited_rejected():
    with pytest.raises(PydanticValidationError):
        SubscriptionUpdate(notifications_limit=-2)


def test_add_extra_days_extends_period_end(make_subscription):
    sub = make_subscription()

    updated = add_extra_days(sub.id, 10, "Compensação por indisponibilidade", actor_id="admin-1", now=NOW)

    assert updated.current_period_end == PERIOD_END + timedelta(days=10)
    row = list_audit_logs(sub.id, action=ADD_EXTRA_DAYS)[0]
    assert row["new_data"]["days_added"] == 10
    assert row["new_data"]["condominium_name"] == "Residencial Jardim"
    assert row["new_data"]["justification"] == "Compensação por indisponibilidade"


def test_add_extra_days_without_period_counts_from_now(make_subscription):
    sub = make_subscription(current_period_start=None, current_period_end=None)

    updated = add_extra_days(sub.id, 5, "Cortesia", now=NOW)

    assert updated.current_period_start == NOW
    assert updated.current_period_end == NOW + timedelta(days=5)


def test_add_extra_days_validation(make_subscription):
    sub = make_subscription()

    with pytest.raises(ValidationError):
        add_extra_days(sub.id, 0, "Zero", now=NOW)
    with pytest.raises(ValidationError):
        add_extra_days(sub.id, 366, "Too many", now=NOW)
    with pytest.raises(ValidationError):
        add_extra_days(sub.id, 5, "", now=NOW)

    assert require_subscription(sub.id).current_period_end == PERIOD_END


def test_reset_usage_opens_new_period(make_subscription):
    sub = make_subscription(notifications_used=12, warnings_used=3, fines_used=1, package_notifications_used=40)

    updated = reset_usage_period(sub.id, actor_id="admin-1", now=NOW)

    assert updated.notifications_used == 0
    assert updated.package_notifications_used == 0
    assert updated.current_period_start == NOW
    assert updated.current_period_end == NOW + timedelta(days=30)
    row = list_audit_logs(sub.id, action=RESET_USAGE)[0]
    assert row["old_data"]["notifications_used"] == 12


def test_admin_operations_on_unknown_subscription(db):
    with pytest.raises(NotFoundError):
        set_lifetime("missing", now=NOW)
    with pytest.raises(NotFoundError):
        reset_usage_period("missing", now=NOW)


def test_status_without_subscription(condominium):
    status = resolve_subscription_status(condominium["id"], now=NOW)

    assert status.subscription is None
    assert status.is_active is False


def test_status_paid_active(make_subscription, condominium):
    sub = make_subscription()

    status = resolve_subscription_status(condominium["id"], now=NOW)

    assert status.subscription.id == sub.id
    assert status.is_paid_active is True
    assert status.is_active is True
    assert status.is_trial is False


def test_status_valid_trial(make_subscription, condominium):
    make_subscription(is_trial=True, trial_ends_at=NOW + timedelta(days=3))

    status = resolve_subscription_status(condominium["id"], now=NOW)

    assert status.is_trial is True
    assert status.is_trial_expired is False
    assert status.is_active is True


def test_status_expired_trial_blocks_access(make_subscription, condominium):
    make_subscription(is_trial=True, trial_ends_at=NOW - timedelta(days=1))

    status = resolve_subscription_status(condominium["id"], now=NOW)

    assert status.is_trial_expired is True
    assert status.is_active is False


def test_status_prefers_lifetime(make_subscription, condominium):
    make_subscription()
    lifetime = make_subscription(
        plan="enterprise",
        is_lifetime=True,
        notifications_limit=UNLIMITED,
        warnings_limit=UNLIMITED,
        fines_limit=UNLIMITED,
        package_notifications_limit=UNLIMITED,
    )

    status = resolve_subscription_status(condominium["id"], now=NOW)

    assert status.subscription.id == lifetime.id
    assert status.is_lifetime is True
    assert status.is_active is True


def test_status_prefers_paid_over_trial(make_subscription, condominium):
    make_subscription(is_trial=True, trial_ends_at=NOW + timedelta(days=3))
    paid = make_subscription()

    status = resolve_subscription_status(condominium["id"], now=NOW)

    assert status.subscription.id == paid.id
    assert status.is_paid_active is True
