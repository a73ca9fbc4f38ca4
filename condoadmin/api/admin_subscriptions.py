"""
Super-admin subscription operations router.
Requires X-Admin-Key header for all endpoints.
Handles limit edits, trial transitions, extra days, usage reset and the
lifetime toggle. Every operation is audit-logged with the acting admin.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from condoadmin.core.admin_auth import AdminActor, require_admin
from condoadmin.features.subscriptions import service as subscriptions
from condoadmin.features.trials import service as trials
from condoadmin.models.billing import Discount, TrialEndResult
from condoadmin.models.subscription import Subscription, SubscriptionUpdate

logger = logging.getLogger("condoadmin.admin_subscriptions")

router = APIRouter(prefix="/v1/admin/subscriptions", tags=["admin-subscriptions"])


# ============================================================================
# Pydantic Models
# ============================================================================

class TrialDaysRequest(BaseModel):
    """Activate or extend a trial."""
    days: int = Field(..., ge=1, description="Trial days to grant, capped by MAX_TRIAL_DAYS")
    justification: str = Field(..., description="Reason recorded in the audit log")


class EndTrialRequest(BaseModel):
    """End a trial and bill the first period."""
    justification: str = Field(..., description="Reason recorded in the audit log")
    discount: Optional[Discount] = Field(None, description="Percentage (0-100) or fixed BRL amount")


class ExtraDaysRequest(BaseModel):
    """Push the current period end forward."""
    days: int = Field(..., ge=1, description="Capped by MAX_EXTRA_DAYS")
    justification: str


# ============================================================================
# Endpoints
# ============================================================================

@router.patch("/{subscription_id}", response_model=Subscription)
def patch_subscription(
    subscription_id: str,
    body: SubscriptionUpdate,
    actor: AdminActor = Depends(require_admin),
):
    logger.info(f"[admin_subscriptions] update {subscription_id} by {actor.actor_id}")
    return subscriptions.update_subscription(subscription_id, body, actor_id=actor.actor_id)


@router.post("/{subscription_id}/trial/activate", response_model=Subscription)
def activate_trial(
    subscription_id: str,
    body: TrialDaysRequest,
    actor: AdminActor = Depends(require_admin),
):
    return trials.activate_trial(subscription_id, body.days, body.justification, actor_id=actor.actor_id)


@router.post("/{subscription_id}/trial/extend", response_model=Subscription)
def extend_trial(
    subscription_id: str,
    body: TrialDaysRequest,
    actor: AdminActor = Depends(require_admin),
):
    return trials.extend_trial(subscription_id, body.days, body.justification, actor_id=actor.actor_id)


@router.post("/{subscription_id}/trial/end", response_model=TrialEndResult)
def end_trial(
    subscription_id: str,
    body: EndTrialRequest,
    actor: AdminActor = Depends(require_admin),
):
    return trials.end_trial(
        subscription_id,
        justification=body.justification,
        discount=body.discount,
        actor_id=actor.actor_id,
    )


@router.post("/{subscription_id}/extra-days", response_model=Subscription)
def add_extra_days(
    subscription_id: str,
    body: ExtraDaysRequest,
    actor: AdminActor = Depends(require_admin),
):
    return subscriptions.add_extra_days(subscription_id, body.days, body.justification, actor_id=actor.actor_id)


@router.post("/{subscription_id}/usage/reset", response_model=Subscription)
def reset_usage(subscription_id: str, actor: AdminActor = Depends(require_admin)):
    return subscriptions.reset_usage_period(subscription_id, actor_id=actor.actor_id)


@router.post("/{subscription_id}/lifetime", response_model=Subscription)
def set_lifetime(subscription_id: str, actor: AdminActor = Depends(require_admin)):
    logger.info(f"[admin_subscriptions] lifetime {subscription_id} by {actor.actor_id}")
    return subscriptions.set_lifetime(subscription_id, actor_id=actor.actor_id)
