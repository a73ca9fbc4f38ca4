"""
condoadmin/models/trial.py

Trial state and remaining-time display models.
"""

from enum import Enum
from typing import Literal
from pydantic import BaseModel, ConfigDict


class TrialState(str, Enum):
    NO_TRIAL = "no_trial"
    TRIAL_ACTIVE = "trial_active"
    TRIAL_EXPIRED = "trial_expired"
    LIFETIME = "lifetime"


RemainingStatus = Literal["normal", "urgent", "critical", "expired"]


class RemainingTime(BaseModel):
    """Time left on a trial, with Portuguese display strings."""
    model_config = ConfigDict(frozen=True)

    is_expired: bool
    is_urgent: bool
    is_last_day: bool
    days_remaining: int = 0
    hours_remaining: int = 0
    status: RemainingStatus
    display_text: str
    short_text: str

