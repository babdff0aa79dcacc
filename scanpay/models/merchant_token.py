"""Merchant payment token model (what a merchant's printed code carries)."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

MERCHANT_TOKEN_TYPE = "merchant_payment"


class MerchantTokenRequest(BaseModel):
    """Form input for generating a merchant token.

    ``amount`` stays a string here because it comes straight from a text
    field; MerchantTokenService parses and validates it.
    """

    merchant_id: str = ""
    amount: str = ""
    business_name: Optional[str] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None


class MerchantToken(BaseModel):
    token_id: str = Field(default_factory=lambda: str(uuid4()))
    merchant_id: str
    amount: Decimal
    payload: Dict[str, Any] = Field(..., description="Decoded form of qr_data")
    qr_data: str = Field(..., description="Compact JSON text encoded in the printed code")
    is_active: bool = True
    expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
