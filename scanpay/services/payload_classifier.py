"""Assign a category to a decoded payload.

Rules, first match wins:
  1. ``type == "driver"`` or a ``driver_id`` is present  -> driver
  2. ``type == "merchant"`` or a ``merchant_id`` is present -> merchant
  3. otherwise -> unknown

Only the fields the category defines are copied onto the scan.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from scanpay.models.payment import Notice, NoticeLevel
from scanpay.models.scan import (
    ClassifiedScan,
    DecodedPayload,
    DriverScan,
    MerchantScan,
    ScanCategory,
    UnknownScan,
)
from scanpay.utils.exceptions import UnclassifiablePayloadError

NoticeSink = Callable[[Notice], None]

DRIVER_ID_FIELD = "driver_id"
MERCHANT_ID_FIELD = "merchant_id"
CATEGORY_FIELD = "type"


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_positive_amount(value: Any) -> Optional[Decimal]:
    """Return ``value`` as a Decimal when it is a finite number > 0, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


class PayloadClassifier:
    """Pure classifier; the optional sink receives the unknown-format notice."""

    def __init__(self, notify: Optional[NoticeSink] = None):
        self.notify = notify

    def category_of(self, payload: DecodedPayload) -> ScanCategory:
        declared = payload.get(CATEGORY_FIELD)
        if declared == ScanCategory.DRIVER.value or payload.get(DRIVER_ID_FIELD):
            return ScanCategory.DRIVER
        if declared == ScanCategory.MERCHANT.value or payload.get(MERCHANT_ID_FIELD):
            return ScanCategory.MERCHANT
        return ScanCategory.UNKNOWN

    def classify(self, payload: DecodedPayload) -> ClassifiedScan:
        category = self.category_of(payload)

        if category == ScanCategory.DRIVER:
            return DriverScan(
                raw=payload.raw,
                driver_id=_optional_str(payload.get(DRIVER_ID_FIELD)),
            )

        if category == ScanCategory.MERCHANT:
            return MerchantScan(
                raw=payload.raw,
                merchant_id=_optional_str(payload.get(MERCHANT_ID_FIELD) or payload.get("user_id")),
                amount=parse_positive_amount(payload.get("amount")),
                business_name=_optional_str(payload.get("business_name")),
                description=_optional_str(payload.get("description")),
            )

        if self.notify is not None:
            self.notify(Notice(level=NoticeLevel.ERROR, message=UnclassifiablePayloadError.notice))
        return UnknownScan(raw=payload.raw)


def classify(payload: DecodedPayload) -> ClassifiedScan:
    """Classify without emitting notices."""
    return PayloadClassifier().classify(payload)


__all__ = ["PayloadClassifier", "classify", "parse_positive_amount"]
