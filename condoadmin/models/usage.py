"""
condoadmin/models/usage.py

Per-resource usage of a subscription within its current period.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class PeriodUsage(BaseModel):
    """Counted occurrences inside a billing period."""
    model_config = ConfigDict(frozen=True)

    notifications: int = 0
    warnings: int = 0
    fines: int = 0


class ResourceUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    used: int
    limit: int
    remaining: Optional[int] = None  # None when unlimited
    percentage: float
    unlimited: bool


class UsageSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    subscription_id: str
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    notifications: ResourceUsage
    warnings: ResourceUsage
    fines: ResourceUsage
    package_notifications: ResourceUsage
