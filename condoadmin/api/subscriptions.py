"""
Síndico-facing subscription router.

Read views (record, usage, remaining trial time, status, invoices), the
plan-change quote/confirm pair and the early trial end.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from condoadmin.core.admin_auth import get_acting_user_id
from condoadmin.core.dates import ensure_utc, utc_now
from condoadmin.features.billing.invoices import list_invoices
from condoadmin.features.billing.plan_change import change_plan, quote_plan_change
from condoadmin.features.subscriptions.service import require_subscription, resolve_subscription_status
from condoadmin.features.trials.service import end_trial_early
from condoadmin.features.trials.state import calculate_remaining_time, trial_state
from condoadmin.features.usage.service import get_usage_summary
from condoadmin.models.billing import PlanChangeQuote, PlanChangeResult, TrialEndResult
from condoadmin.models.invoice import Invoice
from condoadmin.models.subscription import Subscription, SubscriptionStatus
from condoadmin.models.trial import RemainingTime, TrialState
from condoadmin.models.usage import UsageSummary

router = APIRouter(prefix="/v1", tags=["subscriptions"])


class TrialView(BaseModel):
    state: TrialState
    remaining: Optional[RemainingTime] = None


class SubscriptionDetail(BaseModel):
    subscription: Subscription
    usage: UsageSummary
    trial: TrialView
    computed_at: datetime


class PlanChangeRequest(BaseModel):
    plan: str = Field(..., description="Target plan slug")


def _at(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now else utc_now()


@router.get("/subscriptions/{subscription_id}", response_model=SubscriptionDetail)
def get_subscription_detail(subscription_id: str, now: Optional[datetime] = Query(None)):
    """
    Subscription record with freshly counted usage and trial countdown.

    Args:
        now: Optional ISO timestamp for deterministic testing (overrides system time)
    """
    at = _at(now)
    subscription = require_subscription(subscription_id)
    state = trial_state(subscription, at)
    remaining = None
    if state in (TrialState.TRIAL_ACTIVE, TrialState.TRIAL_EXPIRED):
        remaining = calculate_remaining_time(subscription.trial_ends_at, at)
    return SubscriptionDetail(
        subscription=subscription,
        usage=get_usage_summary(subscription),
        trial=TrialView(state=state, remaining=remaining),
        computed_at=at,
    )


@router.get("/subscriptions/{subscription_id}/plan-change/quote", response_model=PlanChangeQuote)
def get_plan_change_quote(
    subscription_id: str,
    plan: str = Query(..., description="Target plan slug"),
    now: Optional[datetime] = Query(None),
):
    return quote_plan_change(subscription_id, plan, now=_at(now))


@router.post("/subscriptions/{subscription_id}/plan-change", response_model=PlanChangeResult)
def confirm_plan_change(subscription_id: str, body: PlanChangeRequest, request: Request):
    return change_plan(subscription_id, body.plan, actor_id=get_acting_user_id(request))


@router.post("/subscriptions/{subscription_id}/trial/end", response_model=TrialEndResult)
def end_trial_now(subscription_id: str, request: Request):
    """Síndico ends the trial early and receives the first invoice with the early discount."""
    return end_trial_early(subscription_id, actor_id=get_acting_user_id(request))


@router.get("/condominiums/{condominium_id}/subscription-status", response_model=SubscriptionStatus)
def get_subscription_status(condominium_id: str, now: Optional[datetime] = Query(None)):
    return resolve_subscription_status(condominium_id, now=_at(now))


@router.get("/condominiums/{condominium_id}/invoices", response_model=List[Invoice])
def get_condominium_invoices(condominium_id: str, limit: int = Query(50, ge=1, le=200)):
    return list_invoices(condominium_id, limit=limit)
