"""Plan catalog router."""

from typing import List

from fastapi import APIRouter

from condoadmin.features.plans.service import list_plans
from condoadmin.models.plan import Plan

router = APIRouter(prefix="/v1", tags=["plans"])


@router.get("/plans", response_model=List[Plan])
def get_plans():
    """Active plans in display order."""
    return list_plans(active_only=True)
