from decimal import Decimal

import pytest
from pydantic import ValidationError

from scanpay.models.payment import DriverReference, MerchantReference, PaymentIntent
from scanpay.models.scan import ScanCategory
from scanpay.services.intent_builder import DEFAULT_TICKET_FEE, IntentBuilder, clamp_quantity


@pytest.fixture
def builder():
    return IntentBuilder()


def driver_ref(fee=None):
    return DriverReference(token_id="tok-1", driver_id="d1", ticket_fee=fee)


def test_driver_total_is_fee_times_quantity(builder):
    intent = builder.build(driver_ref(Decimal("750")), quantity=3)
    assert intent.category == ScanCategory.DRIVER
    assert intent.reference_id == "tok-1"
    assert intent.counterparty_id == "d1"
    assert intent.unit_amount == Decimal("750")
    assert intent.total_amount == Decimal("2250")
    assert intent.amount_editable is False


def test_driver_without_fee_uses_default(builder):
    intent = builder.build(driver_ref())
    assert intent.unit_amount == DEFAULT_TICKET_FEE
    assert intent.quantity == 1
    assert intent.total_amount == Decimal("500")


def test_configured_default_fee():
    intent = IntentBuilder(default_ticket_fee=Decimal("300")).build(driver_ref(), quantity=2)
    assert intent.total_amount == Decimal("600")


def test_quantity_steps_never_go_below_one(builder):
    ref = driver_ref(Decimal("500"))
    quantity = 1
    quantity = builder.increment(quantity)
    quantity = builder.increment(quantity)
    assert builder.build(ref, quantity).total_amount == Decimal("1500")

    for _ in range(5):
        quantity = builder.decrement(quantity)
    assert quantity == 1
    assert builder.build(ref, quantity).total_amount == Decimal("500")


def test_clamp_quantity():
    assert clamp_quantity(0) == 1
    assert clamp_quantity(-3) == 1
    assert clamp_quantity(None) == 1
    assert clamp_quantity("4") == 4
    assert clamp_quantity("many") == 1
    assert clamp_quantity(True) == 1


def test_merchant_fixed_amount_is_not_editable(builder):
    ref = MerchantReference(merchant_id="m1", fixed_amount=Decimal("2000"))
    intent = builder.build(ref, quantity=4, entered_amount="99")
    assert intent.quantity == 1
    assert intent.total_amount == Decimal("2000")
    assert intent.amount_editable is False
    assert intent.reference_id == "m1"


def test_merchant_entered_amount(builder):
    ref = MerchantReference(merchant_id="m1")
    intent = builder.build(ref, entered_amount="1250.5")
    assert intent.amount_editable is True
    assert intent.total_amount == Decimal("1250.5")
    assert intent.is_valid


def test_merchant_invalid_entry_is_not_submittable(builder):
    ref = MerchantReference(merchant_id="m1")
    for entry in (None, "", "abc", "0", "-10"):
        intent = builder.build(ref, entered_amount=entry)
        assert intent.total_amount is None, entry
        assert not intent.is_valid


def test_intent_rejects_inconsistent_total():
    with pytest.raises(ValidationError):
        PaymentIntent(
            category=ScanCategory.DRIVER,
            reference_id="tok-1",
            counterparty_id="d1",
            unit_amount=Decimal("500"),
            quantity=2,
            total_amount=Decimal("500"),
        )


def test_intent_rejects_unknown_category():
    with pytest.raises(ValidationError):
        PaymentIntent(category=ScanCategory.UNKNOWN, reference_id="x", counterparty_id="x")


def test_intent_is_immutable(builder):
    intent = builder.build(driver_ref())
    with pytest.raises(ValidationError):
        intent.quantity = 5
