"""
condoadmin/features/plans/service.py

Plan catalog service.

Handles:
- Plan seeding (start, essencial, profissional, enterprise)
- Plan lookup by slug
- Catalog listing in display order
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union
from sqlalchemy import select, insert

from condoadmin.core.database import get_db_session, plans
from condoadmin.core.errors import NotFoundError
from condoadmin.models.plan import Plan, PlanSlug, UNLIMITED


# Default plan configurations
DEFAULT_PLANS = {
    PlanSlug.START: {
        "name": "Start",
        "description": "Plano gratuito para começar",
        "price": Decimal("0.00"),
        "notifications_limit": 10,
        "warnings_limit": 10,
        "fines_limit": 0,
        "package_notifications_limit": 20,
        "display_order": 1,
    },
    PlanSlug.ESSENCIAL: {
        "name": "Essencial",
        "description": "Para condomínios pequenos",
        "price": Decimal("49.90"),
        "notifications_limit": 50,
        "warnings_limit": 50,
        "fines_limit": 25,
        "package_notifications_limit": 100,
        "display_order": 2,
    },
    PlanSlug.PROFISSIONAL: {
        "name": "Profissional",
        "description": "Para condomínios médios",
        "price": Decimal("99.90"),
        "notifications_limit": 200,
        "warnings_limit": 200,
        "fines_limit": 100,
        "package_notifications_limit": 500,
        "display_order": 3,
    },
    PlanSlug.ENTERPRISE: {
        "name": "Enterprise",
        "description": "Para grandes condomínios e administradoras",
        "price": Decimal("299.90"),
        "notifications_limit": UNLIMITED,
        "warnings_limit": UNLIMITED,
        "fines_limit": UNLIMITED,
        "package_notifications_limit": UNLIMITED,
        "display_order": 4,
    },
}


def _row_to_plan(row) -> Plan:
    return Plan(
        slug=row.slug,
        name=row.name,
        description=row.description,
        price=Decimal(str(row.price)),
        notifications_limit=row.notifications_limit,
        warnings_limit=row.warnings_limit,
        fines_limit=row.fines_limit,
        package_notifications_limit=row.package_notifications_limit,
        display_order=row.display_order,
        is_active=row.is_active,
        created_at=row.created_at,
    )


def seed_plans() -> None:
    """
    Seed default plans into database (idempotent).

    Existing rows are left untouched so prices edited by the super-admin survive.
    """
    now = datetime.now(timezone.utc)

    with get_db_session() as session:
        for slug, config in DEFAULT_PLANS.items():
            existing = session.execute(
                select(plans.c.slug).where(plans.c.slug == slug.value)
            ).first()

            if not existing:
                session.execute(
                    insert(plans).values(
                        slug=slug.value,
                        is_active=True,
                        created_at=now,
                        **config,
                    )
                )


def get_plan(slug: Union[str, PlanSlug], session=None) -> Optional[Plan]:
    """Look up a plan by slug; None when absent."""
    value = slug.value if isinstance(slug, PlanSlug) else str(slug)
    stmt = select(plans).where(plans.c.slug == value)
    if session is not None:
        row = session.execute(stmt).first()
    else:
        with get_db_session() as own_session:
            row = own_session.execute(stmt).first()
    return _row_to_plan(row) if row else None


def require_plan(slug: Union[str, PlanSlug], session=None) -> Plan:
    plan = get_plan(slug, session=session)
    if plan is None:
        value = slug.value if isinstance(slug, PlanSlug) else slug
        raise NotFoundError(f"Plan not found: {value}")
    return plan


def list_plans(active_only: bool = True) -> list[Plan]:
    """All plans ordered by display_order."""
    stmt = select(plans).order_by(plans.c.display_order, plans.c.slug)
    if active_only:
        stmt = stmt.where(plans.c.is_active == True)  # noqa: E712
    with get_db_session() as session:
        return [_row_to_plan(row) for row in session.execute(stmt)]
