"""
condoadmin/models/invoice.py
Invoice models: created pending by the issuer, moved to paid by the payment webhook.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from condoadmin.core.dates import ensure_utc


class InvoiceStatus(str, Enum):
    """Invoice lifecycle: pending -> paid"""

    PENDING = "pending"
    PAID = "paid"


class Invoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    subscription_id: str
    condominium_id: str
    amount: Decimal
    status: InvoiceStatus = InvoiceStatus.PENDING
    description: Optional[str] = None
    due_date: date
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("paid_at", "created_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID
