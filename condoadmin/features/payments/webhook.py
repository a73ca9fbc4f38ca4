"""
MercadoPago notification processing.

Boundary errors (bad JSON, bad signature) are raised as WebhookRejected so
the route can answer 400/401. Everything after that is acknowledged with
200 to avoid gateway retry storms; failures only reach the logs and the
webhook_events row.
"""
import hashlib
import json
import re
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import insert, update

from condoadmin.core.config import settings
from condoadmin.core.database import get_db_session, webhook_events
from condoadmin.core.dates import add_months, ensure_utc, parse_iso_datetime, utc_now
from condoadmin.core.logging import log_event
from condoadmin.features.billing.invoices import (
    find_latest_pending_invoice,
    get_invoice,
    mark_invoice_paid,
)
from condoadmin.features.notifications.whatsapp import notify_payment_confirmed
from condoadmin.features.payments import mercadopago
from condoadmin.features.subscriptions.service import (
    find_by_preapproval_id,
    merge_subscription,
    write_subscription,
)
from condoadmin.models.invoice import Invoice

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

PAYMENT = "payment"
PREAPPROVAL_TYPES = ("subscription_preapproval", "subscription_authorized_payment")


class WebhookRejected(Exception):
    def __init__(self, status_code: int, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details


def parse_notification(body: bytes) -> Dict[str, Any]:
    try:
        notification = json.loads(body or b"")
    except (ValueError, UnicodeDecodeError) as exc:
        raise WebhookRejected(400, "Invalid JSON body") from exc
    if not isinstance(notification, dict):
        raise WebhookRejected(400, "Invalid JSON body")
    return notification


def _data_id(notification: Dict[str, Any]) -> Optional[str]:
    data = notification.get("data")
    if isinstance(data, dict) and data.get("id") is not None:
        return str(data["id"])
    return None


def check_signature(notification: Dict[str, Any], headers: Mapping[str, str]) -> None:
    """Verify x-signature when a secret is configured and data.id is present."""
    secret = settings.MERCADOPAGO_WEBHOOK_SECRET
    data_id = _data_id(notification)
    if not secret or not data_id:
        return
    valid, reason = mercadopago.verify_signature(
        secret,
        data_id,
        headers.get("x-signature"),
        headers.get("x-request-id"),
    )
    if not valid:
        raise WebhookRejected(401, "Invalid signature", details=reason)


def _record_event(body: bytes, event_type: Optional[str], data_id: Optional[str], now: datetime) -> Optional[int]:
    try:
        with get_db_session() as session:
            result = session.execute(
                insert(webhook_events).values(
                    provider="mercadopago",
                    event_type=event_type,
                    data_id=data_id,
                    payload_hash=hashlib.sha256(body).hexdigest(),
                    received_at=now,
                    processed=False,
                )
            )
            return result.inserted_primary_key[0]
    except Exception as exc:
        log_event("warning", "webhook.record_failed", event_type=event_type, error_code="webhook_record_failed", extra={"error": exc})
        return None


def _finish_event(event_id: Optional[int], now: datetime, error: Optional[str]) -> None:
    if event_id is None:
        return
    try:
        with get_db_session() as session:
            session.execute(
                update(webhook_events)
                .where(webhook_events.c.id == event_id)
                .values(processed=error is None, processed_at=now, error=error)
            )
    except Exception as exc:
        log_event("warning", "webhook.finish_failed", error_code="webhook_record_failed", extra={"error": exc})


def resolve_invoice(external_reference: str) -> Optional[Invoice]:
    """
    Find the invoice a payment refers to.

    A UUID is tried as an invoice id first; any reference that is not an
    invoice id is treated as a condominium id and resolves to its latest
    pending invoice.
    """
    if UUID_RE.match(external_reference):
        invoice = get_invoice(external_reference)
        if invoice is not None:
            return invoice
    return find_latest_pending_invoice(external_reference)


def handle_payment(payment_id: str, client: mercadopago.MercadoPagoClient, now: datetime) -> Optional[Invoice]:
    payment = client.get_payment(payment_id)
    if not payment.is_approved:
        log_event("info", "webhook.payment_not_approved", event_type=PAYMENT, extra={"payment_id": payment_id, "status": payment.status})
        return None
    if not payment.external_reference:
        log_event("warning", "webhook.payment_without_reference", event_type=PAYMENT, extra={"payment_id": payment_id})
        return None

    invoice = resolve_invoice(payment.external_reference)
    if invoice is None:
        log_event("warning", "webhook.invoice_not_found", event_type=PAYMENT, extra={"external_reference": payment.external_reference})
        return None
    if invoice.is_paid:
        log_event("info", "webhook.invoice_already_paid", invoice_id=invoice.id, event_type=PAYMENT)
        return invoice

    paid = mark_invoice_paid(
        invoice.id,
        payment_method=f"mercadopago_{payment.method}",
        payment_reference=str(payment_id),
        now=now,
    )
    notice = paid
    if payment.transaction_amount is not None:
        notice = paid.model_copy(update={"amount": payment.transaction_amount})
    notify_payment_confirmed(notice, payment.method, now=now)
    return paid


def handle_preapproval(preapproval_id: str, client: mercadopago.MercadoPagoClient, now: datetime) -> Optional[str]:
    """Sync a subscription's active flag and period with its gateway preapproval."""
    preapproval = client.get_preapproval(preapproval_id)
    start = parse_iso_datetime(preapproval.next_payment_date)
    values = {
        "active": preapproval.is_authorized,
        "current_period_start": start,
        "current_period_end": add_months(start, 1) if start else None,
    }

    with get_db_session() as session:
        current = find_by_preapproval_id(preapproval_id, session=session)
        if current is None:
            log_event("warning", "webhook.preapproval_unknown", extra={"preapproval_id": preapproval_id})
            return None
        merge_subscription(current, values)
        write_subscription(session, current.id, values, now)

    log_event(
        "info",
        "webhook.preapproval_synced",
        subscription_id=current.id,
        condominium_id=current.condominium_id,
        extra={"status": preapproval.status},
    )
    return current.id


def process_webhook(body: bytes, headers: Mapping[str, str], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Process one gateway notification.

    Raises WebhookRejected for malformed JSON (400) or a bad signature (401).
    Otherwise always returns a {"received": True, ...} acknowledgement.
    """
    now = ensure_utc(now) if now else utc_now()
    notification = parse_notification(body)
    check_signature(notification, headers)

    event_type = notification.get("type")
    data_id = _data_id(notification)
    event_id = _record_event(body, event_type, data_id, now)
    response: Dict[str, Any] = {"received": True}

    try:
        if data_id and (event_type == PAYMENT or event_type in PREAPPROVAL_TYPES):
            client = mercadopago.get_client()
            if event_type == PAYMENT:
                invoice = handle_payment(data_id, client, now)
                if invoice is not None:
                    response["invoice_id"] = invoice.id
            else:
                subscription_id = handle_preapproval(data_id, client, now)
                if subscription_id is not None:
                    response["subscription_id"] = subscription_id
        else:
            log_event("info", "webhook.ignored", event_type=event_type)
        _finish_event(event_id, now, None)
    except Exception as exc:
        log_event(
            "error",
            "webhook.processing_failed",
            event_type=event_type,
            error_code="webhook_processing_failed",
            extra={"error": exc, "data_id": data_id},
        )
        _finish_event(event_id, now, str(exc))
        response["error"] = str(exc)

    return response
