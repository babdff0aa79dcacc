"""Scan models: decoded payloads and the classified scan union.

A RawCapture is whatever text the camera or the manual entry field
produced. Decoding never fails: non-JSON text, and JSON that is not an
object, is wrapped under the ``raw`` sentinel key. Classification turns
the decoded mapping into one of three immutable scan types, each carrying
only the fields its category defines. The open-ended mapping does not
travel past the classifier.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

RawCapture = str

FALLBACK_KEY = "raw"


class ScanCategory(str, Enum):
    """Payload categories, in classification priority order."""

    DRIVER = "driver"
    MERCHANT = "merchant"
    UNKNOWN = "unknown"


class DecodedPayload(BaseModel):
    """Result of decoding one RawCapture.

    Attributes:
        fields: Parsed JSON object, or ``{"raw": <original text>}`` for the fallback form
        structured: False when the fallback wrapper was produced
    """

    model_config = ConfigDict(frozen=True)

    raw: RawCapture = Field(..., description="Text the payload was decoded from")
    fields: Dict[str, Any] = Field(default_factory=dict)
    structured: bool = True

    @classmethod
    def fallback(cls, raw: RawCapture) -> DecodedPayload:
        return cls(raw=raw, fields={FALLBACK_KEY: raw}, structured=False)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


class _ScanBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: RawCapture = Field(..., description="Exact text that was decoded")


class DriverScan(_ScanBase):
    """Transport fare token shown by a driver."""

    category: Literal[ScanCategory.DRIVER] = ScanCategory.DRIVER
    driver_id: Optional[str] = None


class MerchantScan(_ScanBase):
    """Merchant payment token; self-describing, amount optional."""

    category: Literal[ScanCategory.MERCHANT] = ScanCategory.MERCHANT
    merchant_id: Optional[str] = None
    amount: Optional[Decimal] = Field(
        default=None,
        description="Fixed amount embedded in the token (only kept when > 0)",
    )
    business_name: Optional[str] = None
    description: Optional[str] = None


class UnknownScan(_ScanBase):
    category: Literal[ScanCategory.UNKNOWN] = ScanCategory.UNKNOWN


ClassifiedScan = Union[DriverScan, MerchantScan, UnknownScan]
