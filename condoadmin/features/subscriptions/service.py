"""
condoadmin/features/subscriptions/service.py

Subscription record service.

Handles:
- Provisioning a subscription for a new condominium
- Lookup and status resolution
- Super-admin edits (limits, lifetime toggle, usage reset, extra days)
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import insert, select, update

from condoadmin.core.config import settings
from condoadmin.core.database import condominiums, get_db_session, subscriptions
from condoadmin.core.dates import ensure_utc, utc_now
from condoadmin.core.errors import ConflictError, NotFoundError, ValidationError
from condoadmin.core.logging import log_event
from condoadmin.features.audit import service as audit
from condoadmin.features.plans.service import require_plan
from condoadmin.features.trials.state import trial_state
from condoadmin.models.plan import LIMIT_FIELDS, TOP_TIER, UNLIMITED, PlanSlug
from condoadmin.models.subscription import Subscription, SubscriptionStatus, SubscriptionUpdate
from condoadmin.models.trial import TrialState

logger = logging.getLogger("condoadmin.subscriptions")

USED_FIELDS = (
    "notifications_used",
    "warnings_used",
    "fines_used",
    "package_notifications_used",
)


def _now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else utc_now()


def require_justification(justification: Optional[str]) -> str:
    """Reject blank justifications before any write."""
    text = (justification or "").strip()
    if not text:
        raise ValidationError("Justification is required")
    return text


def _row_to_subscription(row) -> Subscription:
    return Subscription.model_validate(dict(row._mapping))


def get_subscription(subscription_id: str, session=None) -> Optional[Subscription]:
    stmt = select(subscriptions).where(subscriptions.c.id == subscription_id)
    if session is not None:
        row = session.execute(stmt).first()
    else:
        with get_db_session() as own_session:
            row = own_session.execute(stmt).first()
    return _row_to_subscription(row) if row else None


def require_subscription(subscription_id: str, session=None) -> Subscription:
    subscription = get_subscription(subscription_id, session=session)
    if subscription is None:
        raise NotFoundError(f"Subscription not found: {subscription_id}", subscription_id=subscription_id)
    return subscription


def find_by_preapproval_id(preapproval_id: str, session=None) -> Optional[Subscription]:
    stmt = select(subscriptions).where(subscriptions.c.mercadopago_preapproval_id == preapproval_id)
    if session is not None:
        row = session.execute(stmt).first()
    else:
        with get_db_session() as own_session:
            row = own_session.execute(stmt).first()
    return _row_to_subscription(row) if row else None


def list_condominium_subscriptions(condominium_id: str) -> list[Subscription]:
    stmt = (
        select(subscriptions)
        .where(subscriptions.c.condominium_id == condominium_id)
        .order_by(subscriptions.c.created_at)
    )
    with get_db_session() as session:
        return [_row_to_subscription(row) for row in session.execute(stmt)]


def get_condominium_name(condominium_id: str, session=None) -> Optional[str]:
    stmt = select(condominiums.c.name).where(condominiums.c.id == condominium_id)
    if session is not None:
        return session.execute(stmt).scalar()
    with get_db_session() as own_session:
        return own_session.execute(stmt).scalar()


def merge_subscription(current: Subscription, values: Dict[str, Any]) -> Subscription:
    """Apply values to a snapshot, enforcing the record invariants."""
    try:
        return Subscription.model_validate({**current.model_dump(), **values})
    except PydanticValidationError as exc:
        message = exc.errors()[0].get("msg", "Invalid subscription state")
        raise ValidationError(message.removeprefix("Value error, ")) from exc


def write_subscription(session, subscription_id: str, values: Dict[str, Any], now: datetime) -> None:
    """Persist a validated change set inside the caller's transaction."""
    session.execute(
        update(subscriptions)
        .where(subscriptions.c.id == subscription_id)
        .values(**values, updated_at=now)
    )


def provision_subscription(
    condominium_id: str,
    plan: Union[str, PlanSlug] = PlanSlug.START,
    trial_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """Create the subscription of a newly provisioned condominium.

    Limits are copied from the plan; the record starts on a trial of
    DEFAULT_TRIAL_DAYS (pass trial_days=0 to skip it) and a fresh period.
    """
    now = _now(now)
    days = settings.DEFAULT_TRIAL_DAYS if trial_days is None else trial_days
    if days < 0 or days > settings.MAX_TRIAL_DAYS:
        raise ValidationError(f"trial_days must be between 0 and {settings.MAX_TRIAL_DAYS}")

    with get_db_session() as session:
        plan_obj = require_plan(plan, session=session)
        values = {
            "id": str(uuid.uuid4()),
            "condominium_id": condominium_id,
            "plan": plan_obj.slug.value,
            "active": True,
            **plan_obj.limits(),
            **{field: 0 for field in USED_FIELDS},
            "package_notifications_extra": 0,
            "current_period_start": now,
            "current_period_end": now + timedelta(days=settings.BILLING_PERIOD_DAYS),
            "is_trial": days > 0,
            "trial_ends_at": now + timedelta(days=days) if days > 0 else None,
            "is_lifetime": False,
            "created_at": now,
            "updated_at": now,
        }
        subscription = Subscription.model_validate(values)
        session.execute(insert(subscriptions).values(**values))

    log_event(
        "info",
        "subscription.provisioned",
        subscription_id=subscription.id,
        condominium_id=condominium_id,
        extra={"plan": subscription.plan.value, "trial_days": days},
    )
    return subscription


def update_subscription(
    subscription_id: str,
    changes: SubscriptionUpdate,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """Super-admin edit of plan, active flag and limits.

    Changing the plan copies the new plan's limits unless explicit limits
    are supplied in the same edit. Finite limits are rejected on lifetime
    subscriptions.
    """
    now = _now(now)
    requested = changes.model_dump(exclude_none=True)
    if not requested:
        raise ValidationError("No changes supplied")

    with get_db_session() as session:
        current = require_subscription(subscription_id, session=session)
        values: Dict[str, Any] = {}
        if "plan" in requested:
            plan_obj = require_plan(requested["plan"], session=session)
            values["plan"] = plan_obj.slug.value
            values.update(plan_obj.limits())
        values.update({k: v for k, v in requested.items() if k != "plan"})

        if current.is_lifetime:
            finite = [f for f in LIMIT_FIELDS if f in values and values[f] != UNLIMITED]
            if finite:
                raise ConflictError("Lifetime subscriptions must keep unlimited limits", subscription_id=current.id)
            if values.get("plan", TOP_TIER.value) != TOP_TIER.value:
                raise ConflictError("Lifetime subscriptions stay on the top tier plan", subscription_id=current.id)

        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)

    audit.record_audit_log(
        action=audit.UPDATE,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={k: getattr(current, k) for k in values},
        new_data=values,
        now=now,
    )
    return updated


def set_lifetime(
    subscription_id: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """One-way toggle to a lifetime subscription, in a single write."""
    now = _now(now)
    with get_db_session() as session:
        current = require_subscription(subscription_id, session=session)
        require_plan(TOP_TIER, session=session)
        values = {
            "plan": TOP_TIER.value,
            "active": True,
            "is_lifetime": True,
            "is_trial": False,
            "trial_ends_at": None,
            **{field: UNLIMITED for field in LIMIT_FIELDS},
        }
        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)

    audit.record_audit_log(
        action=audit.SET_LIFETIME,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={
            "plan": current.plan,
            "is_lifetime": current.is_lifetime,
            "is_trial": current.is_trial,
            "trial_ends_at": current.trial_ends_at,
        },
        new_data=values,
        now=now,
    )
    return updated


def reset_usage_period(
    subscription_id: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """Zero the stored usage counters and open a new billing period at `now`."""
    now = _now(now)
    with get_db_session() as session:
        current = require_subscription(subscription_id, session=session)
        values = {
            **{field: 0 for field in USED_FIELDS},
            "current_period_start": now,
            "current_period_end": now + timedelta(days=settings.BILLING_PERIOD_DAYS),
        }
        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)

    audit.record_audit_log(
        action=audit.RESET_USAGE,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={
            **{field: getattr(current, field) for field in USED_FIELDS},
            "current_period_start": current.current_period_start,
            "current_period_end": current.current_period_end,
        },
        new_data=values,
        now=now,
    )
    return updated


def add_extra_days(
    subscription_id: str,
    days: int,
    justification: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """Push current_period_end forward by `days`.

    Counts from `now` when the subscription has no period end yet.
    """
    now = _now(now)
    reason = require_justification(justification)
    if days < 1 or days > settings.MAX_EXTRA_DAYS:
        raise ValidationError(f"days must be between 1 and {settings.MAX_EXTRA_DAYS}")

    with get_db_session() as session:
        current = require_subscription(subscription_id, session=session)
        base = current.current_period_end or now
        values: Dict[str, Any] = {"current_period_end": base + timedelta(days=days)}
        if current.current_period_start is None:
            values["current_period_start"] = now
        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)
        condominium_name = get_condominium_name(current.condominium_id, session=session)

    audit.record_audit_log(
        action=audit.ADD_EXTRA_DAYS,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={"current_period_end": current.current_period_end},
        new_data={
            "current_period_end": updated.current_period_end,
            "days_added": days,
            "justification": reason,
            "condominium_name": condominium_name,
        },
        now=now,
    )
    return updated


def _pick_subscription(rows: list[Subscription], now: datetime) -> Subscription:
    for row in rows:
        if row.is_lifetime:
            return row
    for row in rows:
        if row.active and not row.is_trial:
            return row
    for row in rows:
        if row.active and trial_state(row, now) == TrialState.TRIAL_ACTIVE:
            return row
    for row in rows:
        if row.active:
            return row
    return rows[0]


def resolve_subscription_status(condominium_id: str, now: Optional[datetime] = None) -> SubscriptionStatus:
    """
    Access status of a condominium.

    Picks one subscription by priority (lifetime, paid active, valid trial,
    any active, first) and derives the access flags from it.
    """
    now = _now(now)
    rows = list_condominium_subscriptions(condominium_id)
    if not rows:
        return SubscriptionStatus(condominium_id=condominium_id)

    chosen = _pick_subscription(rows, now)
    state = trial_state(chosen, now)
    is_lifetime = state == TrialState.LIFETIME
    is_trial = state in (TrialState.TRIAL_ACTIVE, TrialState.TRIAL_EXPIRED)
    is_trial_expired = state == TrialState.TRIAL_EXPIRED
    is_paid_active = chosen.active and state == TrialState.NO_TRIAL
    return SubscriptionStatus(
        condominium_id=condominium_id,
        subscription=chosen,
        is_active=is_lifetime or (is_trial and not is_trial_expired) or is_paid_active,
        is_lifetime=is_lifetime,
        is_trial=is_trial,
        is_trial_expired=is_trial_expired,
        is_paid_active=is_paid_active,
    )
