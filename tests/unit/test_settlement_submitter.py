import asyncio
from decimal import Decimal

import pytest

from scanpay.models.payment import PaymentIntent, SettlementOutcome
from scanpay.models.scan import ScanCategory
from scanpay.services.settlement_submitter import SUCCESS_MESSAGE, SettlementSubmitter
from scanpay.utils.exceptions import InvalidIntentError
from tests.helpers import FakeSettlementBackend


def driver_intent(quantity=2):
    return PaymentIntent(
        category=ScanCategory.DRIVER,
        reference_id="tok-1",
        counterparty_id="d1",
        unit_amount=Decimal("500"),
        quantity=quantity,
        total_amount=Decimal("500") * quantity,
    )


def merchant_intent(total=Decimal("2000")):
    return PaymentIntent(
        category=ScanCategory.MERCHANT,
        reference_id="m1",
        counterparty_id="m1",
        unit_amount=total,
        total_amount=total,
        amount_editable=total is None,
    )


def test_driver_settlement_call_carries_token_and_quantity():
    backend = FakeSettlementBackend()
    result = asyncio.run(SettlementSubmitter(backend).submit(driver_intent(), "payer-1"))
    assert result.outcome == SettlementOutcome.SUCCESS
    assert result.message == SUCCESS_MESSAGE
    assert backend.calls == [{
        "procedure": "transport",
        "payer_id": "payer-1",
        "driver_id": "d1",
        "amount": Decimal("1000"),
        "token_id": "tok-1",
        "quantity": 2,
    }]


def test_merchant_settlement_call():
    backend = FakeSettlementBackend()
    asyncio.run(SettlementSubmitter(backend).submit(merchant_intent(), "payer-1"))
    assert backend.calls == [{
        "procedure": "merchant",
        "payer_id": "payer-1",
        "merchant_id": "m1",
        "amount": Decimal("2000"),
    }]


def test_domain_error_message_is_verbatim():
    backend = FakeSettlementBackend(rows=[{"error_message": "Insufficient balance"}])
    result = asyncio.run(SettlementSubmitter(backend).submit(driver_intent(), "payer-1"))
    assert result.outcome == SettlementOutcome.DOMAIN_ERROR
    assert result.message == "Insufficient balance"


def test_transport_failure_is_terminal():
    backend = FakeSettlementBackend()
    backend.fail = True
    result = asyncio.run(SettlementSubmitter(backend).submit(driver_intent(), "payer-1"))
    assert result.outcome == SettlementOutcome.TRANSPORT_ERROR
    assert result.message == "Payment failed"
    assert len(backend.calls) == 1


def test_empty_result_set_is_transport_error():
    backend = FakeSettlementBackend(rows=[])
    result = asyncio.run(SettlementSubmitter(backend).submit(merchant_intent(), "payer-1"))
    assert result.outcome == SettlementOutcome.TRANSPORT_ERROR


def test_invalid_intent_makes_no_call():
    backend = FakeSettlementBackend()
    with pytest.raises(InvalidIntentError):
        asyncio.run(SettlementSubmitter(backend).submit(merchant_intent(total=None), "payer-1"))
    assert backend.calls == []


def test_attempt_and_outcome_are_logged(isolated_event_log):
    asyncio.run(SettlementSubmitter(FakeSettlementBackend()).submit(driver_intent(), "payer-1"))
    content = isolated_event_log.read_text(encoding="utf-8")
    assert '"status": "attempted"' in content
    assert '"status": "success"' in content
