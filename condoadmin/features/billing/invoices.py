"""
Invoice issuer.

Invoices are created pending, inside the caller's transaction, and only ever
move to paid through the payment webhook.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import insert, select, update

from condoadmin.core.database import get_db_session, invoices
from condoadmin.core.dates import ensure_utc, utc_now
from condoadmin.core.errors import NotFoundError, ValidationError
from condoadmin.core.logging import log_event
from condoadmin.models.billing import round_money
from condoadmin.models.invoice import Invoice, InvoiceStatus


def _row_to_invoice(row) -> Invoice:
    data = dict(row._mapping)
    data["amount"] = Decimal(str(data["amount"]))
    return Invoice.model_validate(data)


def issue_invoice(
    session,
    *,
    subscription_id: str,
    condominium_id: str,
    amount: Decimal,
    due_date: date,
    period_start: Optional[date],
    period_end: Optional[date],
    description: str,
    now: Optional[datetime] = None,
) -> Invoice:
    """Insert exactly one pending invoice using the caller's session."""
    amount = round_money(amount)
    if amount < 0:
        raise ValidationError("Invoice amount must be >= 0")

    created_at = ensure_utc(now) if now else utc_now()
    values = {
        "id": str(uuid.uuid4()),
        "subscription_id": subscription_id,
        "condominium_id": condominium_id,
        "amount": amount,
        "status": InvoiceStatus.PENDING.value,
        "description": description,
        "due_date": due_date,
        "period_start": period_start,
        "period_end": period_end,
        "created_at": created_at,
        "updated_at": created_at,
    }
    session.execute(insert(invoices).values(**values))

    log_event(
        "info",
        "invoice.issued",
        subscription_id=subscription_id,
        condominium_id=condominium_id,
        invoice_id=values["id"],
        extra={"amount": amount, "due_date": due_date},
    )
    return Invoice.model_validate(values)


def get_invoice(invoice_id: str, session=None) -> Optional[Invoice]:
    stmt = select(invoices).where(invoices.c.id == invoice_id)
    if session is not None:
        row = session.execute(stmt).first()
    else:
        with get_db_session() as own_session:
            row = own_session.execute(stmt).first()
    return _row_to_invoice(row) if row else None


def find_latest_pending_invoice(condominium_id: str, session=None) -> Optional[Invoice]:
    """Most recent pending invoice of a condominium, by due date."""
    stmt = (
        select(invoices)
        .where(invoices.c.condominium_id == condominium_id)
        .where(invoices.c.status == InvoiceStatus.PENDING.value)
        .order_by(invoices.c.due_date.desc(), invoices.c.created_at.desc())
        .limit(1)
    )
    if session is not None:
        row = session.execute(stmt).first()
    else:
        with get_db_session() as own_session:
            row = own_session.execute(stmt).first()
    return _row_to_invoice(row) if row else None


def list_invoices(condominium_id: str, limit: int = 50) -> list[Invoice]:
    stmt = (
        select(invoices)
        .where(invoices.c.condominium_id == condominium_id)
        .order_by(invoices.c.due_date.desc(), invoices.c.created_at.desc())
        .limit(limit)
    )
    with get_db_session() as session:
        return [_row_to_invoice(row) for row in session.execute(stmt)]


def mark_invoice_paid(
    invoice_id: str,
    payment_method: str,
    payment_reference: str,
    now: Optional[datetime] = None,
) -> Invoice:
    """
    Transition a pending invoice to paid.

    Paying an already-paid invoice is a no-op and returns it unchanged.
    """
    now = ensure_utc(now) if now else utc_now()
    with get_db_session() as session:
        current = get_invoice(invoice_id, session=session)
        if current is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}", invoice_id=invoice_id)
        if current.is_paid:
            log_event(
                "info",
                "invoice.already_paid",
                invoice_id=invoice_id,
                condominium_id=current.condominium_id,
            )
            return current

        session.execute(
            update(invoices)
            .where(invoices.c.id == invoice_id)
            .where(invoices.c.status == InvoiceStatus.PENDING.value)
            .values(
                status=InvoiceStatus.PAID.value,
                paid_at=now,
                payment_method=payment_method,
                payment_reference=payment_reference,
                updated_at=now,
            )
        )
        paid = get_invoice(invoice_id, session=session)

    log_event(
        "info",
        "invoice.paid",
        invoice_id=invoice_id,
        subscription_id=paid.subscription_id,
        condominium_id=paid.condominium_id,
        extra={"payment_method": payment_method, "payment_reference": payment_reference},
    )
    return paid
