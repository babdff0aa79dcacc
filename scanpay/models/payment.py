"""Payment models: resolved references, intents, wallet and settlement.

PaymentIntent is always derived, never edited: every change to quantity
or entered amount goes back through IntentBuilder which produces a new
instance. ``total_amount == unit_amount * quantity`` is checked on
construction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from scanpay.models.scan import ScanCategory


class DriverReference(BaseModel):
    """Active fare token joined with the driver's profile and service data."""

    model_config = ConfigDict(frozen=True)

    category: Literal[ScanCategory.DRIVER] = ScanCategory.DRIVER
    token_id: str = Field(..., description="Primary key of the payment-token record")
    driver_id: str
    full_name: Optional[str] = None
    ticket_fee: Optional[Decimal] = Field(
        default=None,
        description="Configured fee per ticket; None when the profile has none",
    )
    route_name: Optional[str] = None
    vehicle_type: Optional[str] = None
    expires_at: Optional[datetime] = None


class MerchantReference(BaseModel):
    """Synthesized straight from the merchant payload (no lookup)."""

    model_config = ConfigDict(frozen=True)

    category: Literal[ScanCategory.MERCHANT] = ScanCategory.MERCHANT
    merchant_id: str
    fixed_amount: Optional[Decimal] = None
    business_name: Optional[str] = None
    description: Optional[str] = None


ResolvedReference = Union[DriverReference, MerchantReference]


class PaymentIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: ScanCategory
    reference_id: str = Field(..., description="Token id for drivers, merchant id for merchants")
    counterparty_id: str = Field(..., description="Driver or merchant receiving the payment")
    unit_amount: Optional[Decimal] = None
    quantity: int = Field(default=1, ge=1)
    total_amount: Optional[Decimal] = None
    amount_editable: bool = False

    @model_validator(mode="after")
    def _check_total(self) -> PaymentIntent:
        if self.category == ScanCategory.UNKNOWN:
            raise ValueError("unknown scans cannot produce a payment intent")
        if self.category == ScanCategory.MERCHANT and self.quantity != 1:
            raise ValueError("merchant intents have a fixed quantity of 1")
        if self.unit_amount is None:
            if self.total_amount is not None:
                raise ValueError("total_amount requires unit_amount")
        elif self.total_amount != self.unit_amount * self.quantity:
            raise ValueError("total_amount must equal unit_amount * quantity")
        return self

    @property
    def is_valid(self) -> bool:
        """Whether submission is permitted (total strictly positive)."""
        return self.total_amount is not None and self.total_amount > 0


class WalletSnapshot(BaseModel):
    """Point-in-time read of the payer's wallet."""

    model_config = ConfigDict(frozen=True)

    balance: Decimal = Decimal("0")
    currency: str = "SYP"
    is_frozen: bool = False


class SettlementOutcome(str, Enum):
    SUCCESS = "success"
    DOMAIN_ERROR = "domainError"
    TRANSPORT_ERROR = "transportError"


class SettlementResult(BaseModel):
    """Terminal result of one submission; never retried automatically."""

    model_config = ConfigDict(frozen=True)

    outcome: SettlementOutcome
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == SettlementOutcome.SUCCESS


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Notice(BaseModel):
    """User-visible message produced at the pipeline boundary."""

    model_config = ConfigDict(frozen=True)

    level: NoticeLevel
    message: str
