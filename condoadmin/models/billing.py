"""
condoadmin/models/billing.py

Billing value objects: money helpers, discounts, pro-ration quotes and the
results of plan changes and trial ends.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from condoadmin.models.invoice import Invoice
from condoadmin.models.plan import PlanSlug
from condoadmin.models.subscription import Subscription


CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_brl(value: Decimal) -> str:
    """Format as Brazilian currency, e.g. R$ 1.234,56."""
    text = f"{round_money(value):,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


class PercentageDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["percentage"] = "percentage"
    value: Decimal = Field(ge=0, le=100)

    def amount_for(self, price: Decimal) -> Decimal:
        return round_money(Decimal(price) * self.value / Decimal(100))

    def label(self) -> str:
        return f"{self.value.normalize():f}%"


class FixedDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["fixed"] = "fixed"
    value: Decimal = Field(ge=0)

    def amount_for(self, price: Decimal) -> Decimal:
        return round_money(self.value)

    def label(self) -> str:
        return format_brl(self.value)


Discount = Annotated[Union[PercentageDiscount, FixedDiscount], Field(discriminator="type")]


def apply_discount(price: Decimal, discount: Optional[Discount]) -> Decimal:
    """Final amount after discount, floored at zero."""
    if discount is None:
        return round_money(price)
    return max(ZERO, round_money(Decimal(price) - discount.amount_for(price)))


class ProrationQuote(BaseModel):
    """
    Amount owed to switch plans immediately.

    prorated is False for downgrades, lateral moves and upgrades whose
    period bounds are missing or already consumed; amount_due is then zero.
    """
    model_config = ConfigDict(frozen=True)

    is_upgrade: bool
    amount_due: Decimal = ZERO
    days_remaining: int = 0
    total_days: int = 0
    old_credit: Decimal = ZERO
    new_charge: Decimal = ZERO
    prorated: bool = False


class PlanChangeQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    subscription_id: str
    old_plan: PlanSlug
    new_plan: PlanSlug
    old_plan_name: str
    new_plan_name: str
    old_price: Decimal
    new_price: Decimal
    proration: ProrationQuote


class PlanChangeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    subscription: Subscription
    quote: PlanChangeQuote
    invoice: Optional[Invoice] = None
    message: str


class TrialEndResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    subscription: Subscription
    original_price: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    due_date: date
    invoice: Optional[Invoice] = None
