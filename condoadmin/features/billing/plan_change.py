"""
Plan change: quote, then confirm.

Confirmation updates the subscription and issues the pro-rated invoice in
one transaction. The audit row is written afterwards, best-effort.
"""
from datetime import datetime, timedelta
from typing import Optional, Union

from condoadmin.core.config import settings
from condoadmin.core.database import get_db_session
from condoadmin.core.dates import ensure_utc, utc_now
from condoadmin.core.errors import ConflictError
from condoadmin.core.logging import log_event
from condoadmin.features.audit import service as audit
from condoadmin.features.billing.invoices import issue_invoice
from condoadmin.features.billing.proration import calculate_proration
from condoadmin.features.plans.service import require_plan
from condoadmin.features.subscriptions.service import (
    merge_subscription,
    require_subscription,
    write_subscription,
)
from condoadmin.models.billing import PlanChangeQuote, PlanChangeResult
from condoadmin.models.plan import PlanSlug


def _build_quote(session, subscription_id: str, new_plan: Union[str, PlanSlug], now: datetime):
    subscription = require_subscription(subscription_id, session=session)
    old_plan = require_plan(subscription.plan, session=session)
    target = require_plan(new_plan, session=session)
    if subscription.is_lifetime:
        raise ConflictError("Lifetime subscriptions cannot change plan", subscription_id=subscription.id)

    proration = calculate_proration(
        subscription.current_period_start,
        subscription.current_period_end,
        old_plan.price,
        target.price,
        now,
    )
    quote = PlanChangeQuote(
        subscription_id=subscription.id,
        old_plan=old_plan.slug,
        new_plan=target.slug,
        old_plan_name=old_plan.name,
        new_plan_name=target.name,
        old_price=old_plan.price,
        new_price=target.price,
        proration=proration,
    )
    return subscription, target, quote


def quote_plan_change(
    subscription_id: str,
    new_plan: Union[str, PlanSlug],
    now: Optional[datetime] = None,
) -> PlanChangeQuote:
    """Amount due and remaining days for display before confirmation."""
    now = ensure_utc(now) if now else utc_now()
    with get_db_session() as session:
        _, _, quote = _build_quote(session, subscription_id, new_plan, now)
    return quote


def change_plan(
    subscription_id: str,
    new_plan: Union[str, PlanSlug],
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PlanChangeResult:
    """
    Switch a subscription to new_plan immediately.

    Limits follow the new plan right away. When the pro-rated amount is
    positive an invoice due in UPGRADE_INVOICE_DUE_DAYS calendar days is
    issued for [today, period_end].

    Raises:
        NotFoundError: subscription or either plan is unknown (nothing written)
        ConflictError: the subscription is lifetime
    """
    now = ensure_utc(now) if now else utc_now()
    invoice = None

    with get_db_session() as session:
        current, target, quote = _build_quote(session, subscription_id, new_plan, now)
        values = {"plan": target.slug.value, **target.limits()}
        updated = merge_subscription(current, values)
        write_subscription(session, subscription_id, values, now)

        proration = quote.proration
        if proration.amount_due > 0:
            invoice = issue_invoice(
                session,
                subscription_id=current.id,
                condominium_id=current.condominium_id,
                amount=proration.amount_due,
                due_date=(now + timedelta(days=settings.UPGRADE_INVOICE_DUE_DAYS)).date(),
                period_start=now.date(),
                period_end=current.current_period_end.date() if current.current_period_end else None,
                description=(
                    f"Upgrade de {quote.old_plan_name} para {quote.new_plan_name}"
                    f" - Proporcional {proration.days_remaining} dias restantes"
                ),
                now=now,
            )

    if invoice is not None:
        message = f"Plano alterado para {quote.new_plan_name}. Fatura proporcional gerada."
    else:
        message = f"Plano alterado para {quote.new_plan_name}."

    audit.record_audit_log(
        action=audit.PLAN_CHANGE,
        record_id=subscription_id,
        user_id=actor_id,
        old_data={"plan": quote.old_plan, **current.limits()},
        new_data={
            "plan": quote.new_plan,
            **target.limits(),
            "amount_due": quote.proration.amount_due,
            "days_remaining": quote.proration.days_remaining,
            "invoice_id": invoice.id if invoice else None,
        },
        now=now,
    )
    log_event(
        "info",
        "subscription.plan_changed",
        subscription_id=subscription_id,
        condominium_id=current.condominium_id,
        invoice_id=invoice.id if invoice else None,
        extra={"old_plan": quote.old_plan.value, "new_plan": quote.new_plan.value},
    )

    return PlanChangeResult(subscription=updated, quote=quote, invoice=invoice, message=message)
