"""
MercadoPago gateway client.

Only the read APIs the payment webhook needs: payments and preapprovals.
Checkout and preference creation are handled elsewhere.
"""
import hashlib
import hmac
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

import httpx

from condoadmin.core.config import settings


class MercadoPagoError(Exception):
    """Base exception for gateway errors."""
    pass


class MercadoPagoNotConfigured(MercadoPagoError):
    pass


@dataclass
class MercadoPagoPayment:
    id: str
    status: Optional[str]
    external_reference: Optional[str]
    payment_type_id: Optional[str]
    payment_method_id: Optional[str]
    transaction_amount: Optional[Decimal]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"

    @property
    def method(self) -> Optional[str]:
        return self.payment_type_id or self.payment_method_id


@dataclass
class MercadoPagoPreapproval:
    id: str
    status: Optional[str]
    next_payment_date: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_authorized(self) -> bool:
        return self.status == "authorized"


class MercadoPagoClient:
    def __init__(self, access_token: str, base_url: str = "https://api.mercadopago.com", timeout: float = 10.0):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise MercadoPagoError(f"MercadoPago request failed: {exc}") from exc
        if response.status_code >= 300:
            raise MercadoPagoError(f"MercadoPago GET {path} failed: {response.status_code}")
        return response.json()

    def get_payment(self, payment_id: str) -> MercadoPagoPayment:
        data = self._get(f"/v1/payments/{payment_id}")
        amount = data.get("transaction_amount")
        return MercadoPagoPayment(
            id=str(data.get("id", payment_id)),
            status=data.get("status"),
            external_reference=data.get("external_reference"),
            payment_type_id=data.get("payment_type_id"),
            payment_method_id=data.get("payment_method_id"),
            transaction_amount=Decimal(str(amount)) if amount is not None else None,
            raw=data,
        )

    def get_preapproval(self, preapproval_id: str) -> MercadoPagoPreapproval:
        data = self._get(f"/preapproval/{preapproval_id}")
        return MercadoPagoPreapproval(
            id=str(data.get("id", preapproval_id)),
            status=data.get("status"),
            next_payment_date=data.get("next_payment_date"),
            raw=data,
        )


def get_client() -> MercadoPagoClient:
    if not settings.MERCADOPAGO_ACCESS_TOKEN:
        raise MercadoPagoNotConfigured("MERCADOPAGO_ACCESS_TOKEN is not configured")
    return MercadoPagoClient(
        access_token=settings.MERCADOPAGO_ACCESS_TOKEN,
        base_url=settings.MERCADOPAGO_API_URL,
        timeout=settings.MERCADOPAGO_TIMEOUT_SECONDS,
    )


def parse_signature_header(header: str) -> Tuple[Optional[str], Optional[str]]:
    """Split "ts=...,v1=..." into (ts, v1)."""
    parts: Dict[str, str] = {}
    for part in header.split(","):
        key, sep, value = part.partition("=")
        if sep and key.strip() and value.strip():
            parts[key.strip()] = value.strip()
    return parts.get("ts"), parts.get("v1")


def build_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def sign_manifest(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def verify_signature(
    secret: str,
    data_id: str,
    x_signature: Optional[str],
    x_request_id: Optional[str],
) -> Tuple[bool, Optional[str]]:
    """
    Verify the x-signature header of a notification.

    Returns (valid, reason). A missing x-signature header is accepted;
    a missing x-request-id or a malformed header is not.
    """
    if not x_signature:
        return True, None
    if not x_request_id:
        return False, "Missing x-request-id header"

    ts, received = parse_signature_header(x_signature)
    if not ts or not received:
        return False, "Invalid signature format"

    expected = sign_manifest(secret, build_manifest(data_id, x_request_id, ts))
    if not hmac.compare_digest(expected, received):
        return False, "Signature mismatch"
    return True, None
