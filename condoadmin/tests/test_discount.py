"""
Tests for discounts and money helpers.
"""
from decimal import Decimal

import pytest
from pydantic import TypeAdapter, ValidationError

from condoadmin.models.billing import (
    Discount,
    FixedDiscount,
    PercentageDiscount,
    apply_discount,
    format_brl,
    round_money,
)


def test_percentage_discount():
    discount = PercentageDiscount(value=Decimal("10"))

    assert discount.amount_for(Decimal("49.90")) == Decimal("4.99")
    assert apply_discount(Decimal("49.90"), discount) == Decimal("44.91")
    assert discount.label() == "10%"


def test_percentage_discount_rounds_half_up():
    discount = PercentageDiscount(value=Decimal("15"))

    assert discount.amount_for(Decimal("49.90")) == Decimal("7.49")
    assert apply_discount(Decimal("49.90"), discount) == Decimal("42.41")


def test_fixed_discount():
    discount = FixedDiscount(value=Decimal("20"))

    assert apply_discount(Decimal("99.90"), discount) == Decimal("79.90")
    assert discount.label() == "R$ 20,00"


def test_discount_larger_than_price_floors_at_zero():
    assert apply_discount(Decimal("49.90"), FixedDiscount(value=Decimal("100"))) == Decimal("0.00")


def test_no_discount_keeps_price():
    assert apply_discount(Decimal("49.9"), None) == Decimal("49.90")


def test_percentage_out_of_range_rejected():
    with pytest.raises(ValidationError):
        PercentageDiscount(value=Decimal("150"))
    with pytest.raises(ValidationError):
        FixedDiscount(value=Decimal("-1"))


def test_discount_union_dispatches_on_type():
    adapter = TypeAdapter(Discount)

    assert isinstance(adapter.validate_python({"type": "fixed", "value": "5"}), FixedDiscount)
    assert isinstance(adapter.validate_python({"type": "percentage", "value": 5}), PercentageDiscount)
    with pytest.raises(ValidationError):
        adapter.validate_python({"type": "coupon", "value": 5})


def test_money_helpers():
    assert round_money(Decimal("0.005")) == Decimal("0.01")
    assert format_brl(Decimal("1234.5")) == "R$ 1.234,50"
    assert format_brl(Decimal("49.9")) == "R$ 49,90"
