"""Models package for the scan-to-settlement pipeline."""

from scanpay.models.merchant_token import MerchantToken, MerchantTokenRequest
from scanpay.models.payment import (
    DriverReference,
    MerchantReference,
    Notice,
    NoticeLevel,
    PaymentIntent,
    ResolvedReference,
    SettlementOutcome,
    SettlementResult,
    WalletSnapshot,
)
from scanpay.models.scan import (
    ClassifiedScan,
    DecodedPayload,
    DriverScan,
    MerchantScan,
    RawCapture,
    ScanCategory,
    UnknownScan,
)

__all__ = [
    "RawCapture",
    "DecodedPayload",
    "ScanCategory",
    "ClassifiedScan",
    "DriverScan",
    "MerchantScan",
    "UnknownScan",
    "DriverReference",
    "MerchantReference",
    "ResolvedReference",
    "PaymentIntent",
    "WalletSnapshot",
    "SettlementOutcome",
    "SettlementResult",
    "Notice",
    "NoticeLevel",
    "MerchantToken",
    "MerchantTokenRequest",
]
