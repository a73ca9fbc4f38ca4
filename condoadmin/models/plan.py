"""
condoadmin/models/plan.py

Plan catalog models.

Plans are immutable reference data looked up by slug.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


UNLIMITED = -1

LIMIT_FIELDS = (
    "notifications_limit",
    "warnings_limit",
    "fines_limit",
    "package_notifications_limit",
)


class PlanSlug(str, Enum):
    """Plan tiers, cheapest first."""

    START = "start"
    ESSENCIAL = "essencial"
    PROFISSIONAL = "profissional"
    ENTERPRISE = "enterprise"


# Tier granted by the lifetime toggle
TOP_TIER = PlanSlug.ENTERPRISE


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


class Plan(BaseModel):
    """
    Plan represents a priced tier with per-resource monthly limits.

    A limit of -1 means unlimited.
    """
    model_config = ConfigDict(frozen=True)

    slug: PlanSlug
    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0, description="Monthly price in BRL")
    notifications_limit: int
    warnings_limit: int
    fines_limit: int
    package_notifications_limit: int
    display_order: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    def limits(self) -> dict[str, int]:
        return {field: getattr(self, field) for field in LIMIT_FIELDS}
