import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from scanpay.models.merchant_token import MerchantTokenRequest
from scanpay.models.scan import MerchantScan
from scanpay.services.merchant_token_service import MerchantTokenService
from scanpay.services.payload_classifier import classify
from scanpay.services.token_decoder import decode
from scanpay.utils.exceptions import InvalidIntentError


@pytest.fixture
def service():
    return MerchantTokenService(clock_ms=lambda: 1760000000000)


def test_generate_builds_compact_payload(service):
    token = service.generate(MerchantTokenRequest(merchant_id="m1", amount="2000", business_name="Corner Shop"))
    assert token.amount == Decimal("2000")
    assert token.payload == {
        "type": "merchant_payment",
        "merchant_id": "m1",
        "amount": 2000,
        "business_name": "Corner Shop",
        "description": None,
        "timestamp": 1760000000000,
    }
    assert " " not in token.qr_data.replace("Corner Shop", "")
    assert json.loads(token.qr_data) == token.payload


def test_generated_text_scans_as_fixed_amount_merchant(service):
    token = service.generate(MerchantTokenRequest(merchant_id="m1", amount="12.5"))
    scan = classify(decode(token.qr_data))
    assert isinstance(scan, MerchantScan)
    assert scan.merchant_id == "m1"
    assert scan.amount == Decimal("12.5")


@pytest.mark.parametrize("merchant_id,amount", [("", "100"), ("m1", ""), ("m1", "abc"), ("m1", "0"), ("m1", "-4")])
def test_generate_rejects_bad_input(service, merchant_id, amount):
    with pytest.raises(InvalidIntentError):
        service.generate(MerchantTokenRequest(merchant_id=merchant_id, amount=amount))


def test_is_usable_respects_expiry(service):
    token = service.generate(MerchantTokenRequest(
        merchant_id="m1", amount="5", expires_at=datetime(2026, 11, 1, tzinfo=timezone.utc),
    ))
    assert service.is_usable(token, datetime(2026, 10, 31, tzinfo=timezone.utc))
    assert not service.is_usable(token, datetime(2026, 11, 2, tzinfo=timezone.utc))
    assert not service.is_usable(token.model_copy(update={"is_active": False}), datetime(2026, 10, 1, tzinfo=timezone.utc))


def test_export_writes_payload(service, tmp_path):
    token = service.generate(MerchantTokenRequest(merchant_id="m1", amount="300"))
    path = service.export(token, tmp_path / "exports")
    assert path.name == f"merchant-qr-{token.token_id}.json"
    assert json.loads(path.read_text(encoding="utf-8")) == token.payload


def test_created_at_is_timezone_aware(service):
    token = service.generate(MerchantTokenRequest(merchant_id="m1", amount="10"))
    assert token.created_at.tzinfo is not None
