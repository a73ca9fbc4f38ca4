"""
WhatsApp payment confirmations.

Best-effort: every failure is logged and swallowed so a payer never sees
an error caused by messaging.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy import select

from condoadmin.core.config import settings
from condoadmin.core.database import condominiums, get_db_session, profiles
from condoadmin.core.dates import utc_now
from condoadmin.models.billing import format_brl
from condoadmin.models.invoice import Invoice

logger = logging.getLogger("condoadmin.notifications")

PAYMENT_METHOD_LABELS = {
    "bank_transfer": "PIX",
    "pix": "PIX",
    "ticket": "Boleto",
    "bolbradesco": "Boleto",
    "credit_card": "Cartão de Crédito",
    "debit_card": "Cartão de Débito",
}


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def payment_method_label(method: Optional[str]) -> str:
    if not method:
        return "-"
    return PAYMENT_METHOD_LABELS.get(method, method)


def send_whatsapp_message(phone: str, message: str) -> SendResult:
    """Send a text message through the configured provider (Z-PRO)."""
    provider = (settings.WHATSAPP_PROVIDER or "zpro").lower()
    if provider != "zpro":
        return SendResult(success=False, error=f"Provider {provider} not supported")
    if not settings.WHATSAPP_API_URL or not settings.WHATSAPP_API_KEY:
        return SendResult(success=False, error="WhatsApp not configured")

    base_url = settings.WHATSAPP_API_URL.rstrip("/")
    params = {
        "body": message,
        "number": re.sub(r"\D", "", phone),
        "externalKey": settings.WHATSAPP_API_KEY,
        "bearertoken": settings.WHATSAPP_API_KEY,
        "isClosed": "false",
    }
    try:
        with httpx.Client(timeout=settings.WHATSAPP_TIMEOUT_SECONDS) as client:
            response = client.get(f"{base_url}/params/", params=params)
    except httpx.HTTPError as exc:
        return SendResult(success=False, error=f"Connection error: {exc}")

    if response.status_code >= 300:
        return SendResult(success=False, error=f"HTTP {response.status_code}")
    try:
        data = response.json()
    except ValueError:
        return SendResult(success=True)
    message_id = data.get("id") or data.get("messageId") or (data.get("key") or {}).get("id")
    return SendResult(success=True, message_id=str(message_id) if message_id else None)


def build_payment_message(
    condominium_name: str,
    owner_name: Optional[str],
    invoice: Invoice,
    method_label: str,
    paid_at: datetime,
) -> str:
    if invoice.description:
        reference = invoice.description
    elif invoice.period_start and invoice.period_end:
        reference = f"Período {invoice.period_start:%d/%m/%Y} - {invoice.period_end:%d/%m/%Y}"
    else:
        reference = invoice.id
    return (
        "💰 *Pagamento Confirmado!*\n\n"
        f"🏢 *{condominium_name}*\n\n"
        f"Olá, *{owner_name or 'síndico'}*!\n\n"
        "Um pagamento foi confirmado:\n"
        f"📋 Fatura: {reference}\n"
        f"💳 Método: *{method_label}*\n"
        f"💵 Valor: *{format_brl(invoice.amount)}*\n"
        f"📅 Data: {paid_at:%d/%m/%Y} às {paid_at:%H:%M:%S}\n\n"
        "✅ A fatura foi marcada como paga automaticamente."
    )


def notify_payment_confirmed(invoice: Invoice, payment_method: Optional[str], now: Optional[datetime] = None) -> bool:
    """Tell the condominium owner that an invoice was paid. Returns True when sent."""
    try:
        with get_db_session() as session:
            condo = session.execute(
                select(condominiums).where(condominiums.c.id == invoice.condominium_id)
            ).first()
            if not condo:
                logger.error("Condominium not found for invoice %s", invoice.id)
                return False
            profile = None
            if condo.owner_id:
                profile = session.execute(
                    select(profiles).where(profiles.c.user_id == condo.owner_id)
                ).first()

        if not profile:
            logger.error("Owner profile not found for condominium %s", condo.id)
            return False
        if not profile.phone:
            logger.info("Owner has no phone number, skipping WhatsApp notification")
            return False

        message = build_payment_message(
            condominium_name=condo.name,
            owner_name=profile.full_name,
            invoice=invoice,
            method_label=payment_method_label(payment_method),
            paid_at=now or utc_now(),
        )
        result = send_whatsapp_message(profile.phone, message)
        if not result.success:
            logger.error("Failed to send payment notification: %s", result.error)
            return False
        logger.info("Payment notification sent: %s", result.message_id)
        return True
    except Exception as exc:
        logger.error("Error sending payment notification: %s", exc, exc_info=True)
        return False
