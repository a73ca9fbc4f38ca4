"""
condoadmin/features/trials/service.py

Trial lifecycle transitions.

    no_trial      --activate-->  trial_active
    trial_active  --extend---->  trial_active
    trial_expired --extend---->  trial_active
    trial_*       --end------->  no_trial (+ first invoice when the plan is paid)

Every transition requires a justification and is audit-logged after the
write; audit failures never undo the transition.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from condoadmin.core.config import settings
from condoadmin.core.database import get_db_session
from condoadmin.core.dates import add_business_days, ensure_utc, utc_now
from condoadmin.core.errors import ConflictError, ValidationError
from condoadmin.core.logging import log_event
from condoadmin.features.audit import service as audit
from condoadmin.features.billing.invoices import issue_invoice
from condoadmin.features.plans.service import require_plan
from condoadmin.features.subscriptions.service import (
    merge_subscription,
    require_justification,
    require_subscription,
    write_subscription,
)
from condoadmin.features.trials.state import trial_state
from condoadmin.models.billing import (
    Discount,
    PercentageDiscount,
    TrialEndResult,
    ZERO,
    apply_discount,
    round_money,
)
from condoadmin.models.subscription import Subscription
from condoadmin.models.trial import TrialState


def _now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else utc_now()


def _require_days(days: int) -> int:
    if days < 1 or days > settings.MAX_TRIAL_DAYS:
        raise ValidationError(f"days must be between 1 and {settings.MAX_TRIAL_DAYS}")
    return days


def activate_trial(
    subscription_id: str,
    days: int,
    justification: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """Start a trial of `days` days counted from now."""
    now = _now(now)
    reason = require_justification(justification)
    _require_days(days)

    with get_db_session() as session:
        current = require_subscription(subscription_id, session=session)
        state = trial_state(current, now)
        if state != TrialState.NO_TRIAL:
            raise ConflictError(
                f"Cannot activate a trial from state {state.value}", subscription_id=current.id
            )
        values = {
            "is_trial": True,
            "trial_ends_at": now + timedelta(days=days),
            "active": True,
        }
        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)

    audit.record_audit_log(
        action=audit.ACTIVATE_TRIAL,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={"is_trial": current.is_trial, "trial_ends_at": current.trial_ends_at},
        new_data={
            "is_trial": True,
            "trial_ends_at": updated.trial_ends_at,
            "trial_days": days,
            "justification": reason,
        },
        now=now,
    )
    log_event("info", "trial.activated", subscription_id=subscription_id, condominium_id=current.condominium_id)
    return updated


def extend_trial(
    subscription_id: str,
    days: int,
    justification: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """Add `days` to the existing trial expiry (not to now)."""
    now = _now(now)
    reason = require_justification(justification)
    _require_days(days)

    with get_db_session() as session:
        current = require_subscription(subscription_id, session=session)
        state = trial_state(current, now)
        if state not in (TrialState.TRIAL_ACTIVE, TrialState.TRIAL_EXPIRED):
            raise ConflictError(
                f"Cannot extend a trial from state {state.value}", subscription_id=current.id
            )
        base = current.trial_ends_at or now
        values = {"is_trial": True, "trial_ends_at": base + timedelta(days=days)}
        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)

    audit.record_audit_log(
        action=audit.EXTEND_TRIAL,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={"trial_ends_at": current.trial_ends_at},
        new_data={
            "trial_ends_at": updated.trial_ends_at,
            "days_added": days,
            "justification": reason,
        },
        now=now,
    )
    log_event("info", "trial.extended", subscription_id=subscription_id, condominium_id=current.condominium_id)
    return updated


def _invoice_description(plan_name: str, discount: Optional[Discount], discount_amount: Decimal) -> str:
    description = f"Primeira mensalidade - Plano {plan_name}"
    if discount is not None and discount_amount > 0:
        description += f" (Desconto: {discount.label()})"
    return description


def end_trial(
    subscription_id: str,
    justification: str,
    discount: Optional[Discount] = None,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TrialEndResult:
    """
    End a trial and open the first paid period [now, now + 30d].

    The first invoice (list price minus discount, floored at zero) is issued
    only when the plan's list price is positive, due three business days
    from now.
    """
    now = _now(now)
    reason = require_justification(justification)

    with get_db_session() as session:
        current = require_subscription(subscription_id, session=session)
        state = trial_state(current, now)
        if state not in (TrialState.TRIAL_ACTIVE, TrialState.TRIAL_EXPIRED):
            raise ConflictError(
                f"Cannot end a trial from state {state.value}", subscription_id=current.id
            )
        plan = require_plan(current.plan, session=session)

        period_end = now + timedelta(days=settings.BILLING_PERIOD_DAYS)
        values = {
            "is_trial": False,
            "trial_ends_at": None,
            "current_period_start": now,
            "current_period_end": period_end,
        }
        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)

        price = plan.price
        discount_amount = round_money(discount.amount_for(price)) if discount else ZERO
        final_amount = apply_discount(price, discount)
        due_date = add_business_days(now, settings.TRIAL_END_DUE_BUSINESS_DAYS).date()

        invoice = None
        if price > 0:
            invoice = issue_invoice(
                session,
                subscription_id=current.id,
                condominium_id=current.condominium_id,
                amount=final_amount,
                due_date=due_date,
                period_start=now.date(),
                period_end=period_end.date(),
                description=_invoice_description(plan.name, discount, discount_amount),
                now=now,
            )

    audit.record_audit_log(
        action=audit.END_TRIAL,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={"is_trial": current.is_trial, "trial_ends_at": current.trial_ends_at},
        new_data={
            "is_trial": False,
            "original_price": price,
            "discount": discount.model_dump() if discount else None,
            "discount_amount": discount_amount,
            "final_amount": final_amount,
            "due_date": due_date,
            "invoice_id": invoice.id if invoice else None,
            "justification": reason,
        },
        now=now,
    )
    log_event(
        "info",
        "trial.ended",
        subscription_id=subscription_id,
        condominium_id=current.condominium_id,
        invoice_id=invoice.id if invoice else None,
    )

    return TrialEndResult(
        subscription=updated,
        original_price=price,
        discount_amount=discount_amount,
        final_amount=final_amount,
        due_date=due_date,
        invoice=invoice,
    )


def end_trial_early(
    subscription_id: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TrialEndResult:
    """Síndico self-service: end the trial now with the configured early discount."""
    percent = Decimal(str(settings.SINDICO_EARLY_TRIAL_DISCOUNT))
    discount = PercentageDiscount(value=percent)
    return end_trial(
        subscription_id,
        justification=f"Encerramento antecipado do trial pelo síndico (desconto de {discount.label()})",
        discount=discount,
        actor_id=actor_id,
        now=now,
    )
