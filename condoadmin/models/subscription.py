"""
condoadmin/models/subscription.py

Subscription record: one condominium's billing state.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from condoadmin.core.dates import ensure_utc
from condoadmin.models.plan import LIMIT_FIELDS, UNLIMITED, PlanSlug


class Subscription(BaseModel):
    """
    Snapshot of a subscription row.

    Invariants:
    - lifetime subscriptions are never on trial and carry no trial expiry
    - current_period_end is strictly after current_period_start
    """
    model_config = ConfigDict(frozen=True)

    id: str
    condominium_id: str
    plan: PlanSlug
    active: bool = True

    notifications_limit: int = 0
    notifications_used: int = 0
    warnings_limit: int = 0
    warnings_used: int = 0
    fines_limit: int = 0
    fines_used: int = 0
    package_notifications_limit: int = 0
    package_notifications_used: int = 0
    package_notifications_extra: int = 0

    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None

    is_trial: bool = False
    trial_ends_at: Optional[datetime] = None
    is_lifetime: bool = False

    mercadopago_preapproval_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "current_period_start",
        "current_period_end",
        "trial_ends_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Subscription":
        if self.is_lifetime and (self.is_trial or self.trial_ends_at is not None):
            raise ValueError("lifetime subscription cannot be on trial")
        if (
            self.current_period_start is not None
            and self.current_period_end is not None
            and self.current_period_end <= self.current_period_start
        ):
            raise ValueError("current_period_end must be after current_period_start")
        return self

    def limits(self) -> dict[str, int]:
        return {field: getattr(self, field) for field in LIMIT_FIELDS}


class SubscriptionUpdate(BaseModel):
    """Super-admin edit of plan, active flag and limits."""

    plan: Optional[PlanSlug] = None
    active: Optional[bool] = None
    notifications_limit: Optional[int] = Field(default=None, ge=UNLIMITED)
    warnings_limit: Optional[int] = Field(default=None, ge=UNLIMITED)
    fines_limit: Optional[int] = Field(default=None, ge=UNLIMITED)
    package_notifications_limit: Optional[int] = Field(default=None, ge=UNLIMITED)
    package_notifications_extra: Optional[int] = Field(default=None, ge=0)


class SubscriptionStatus(BaseModel):
    """Access status of a condominium, derived from its subscriptions."""
    model_config = ConfigDict(frozen=True)

    condominium_id: str
    subscription: Optional[Subscription] = None
    is_active: bool = False
    is_lifetime: bool = False
    is_trial: bool = False
    is_trial_expired: bool = False
    is_paid_active: bool = False
