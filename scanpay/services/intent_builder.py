"""Build PaymentIntents from resolved references.

Every recomputation is a pure function of (reference, quantity, entered
amount): callers keep those inputs and rebuild instead of mutating the
intent.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from scanpay.models.payment import DriverReference, MerchantReference, PaymentIntent, ResolvedReference
from scanpay.models.scan import ScanCategory
from scanpay.services.payload_classifier import parse_positive_amount

DEFAULT_TICKET_FEE = Decimal("500")
MIN_QUANTITY = 1


def clamp_quantity(quantity: Any) -> int:
    """Coerce to an integer ticket count with a floor of 1."""
    if quantity is None or isinstance(quantity, bool):
        return MIN_QUANTITY
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        return MIN_QUANTITY
    return max(MIN_QUANTITY, value)


class IntentBuilder:
    def __init__(self, default_ticket_fee: Decimal = DEFAULT_TICKET_FEE):
        self.default_ticket_fee = default_ticket_fee

    def build(
        self,
        ref: ResolvedReference,
        quantity: Optional[int] = None,
        entered_amount: Any = None,
    ) -> PaymentIntent:
        """Derive the intent for the current inputs.

        Drivers: unit = ticket fee (or the default), total = unit * quantity.
        Merchants: quantity is always 1; a fixed amount from the token wins
        and is not editable, otherwise ``entered_amount`` must parse as a
        number > 0. An unparsable entry yields an intent with no total,
        which ``PaymentIntent.is_valid`` reports as not submittable.
        """
        if isinstance(ref, DriverReference):
            unit = ref.ticket_fee or self.default_ticket_fee
            count = clamp_quantity(quantity)
            return PaymentIntent(
                category=ScanCategory.DRIVER,
                reference_id=ref.token_id,
                counterparty_id=ref.driver_id,
                unit_amount=unit,
                quantity=count,
                total_amount=unit * count,
                amount_editable=False,
            )

        if isinstance(ref, MerchantReference):
            if ref.fixed_amount is not None:
                unit = ref.fixed_amount
                editable = False
            else:
                unit = parse_positive_amount(entered_amount)
                editable = True
            return PaymentIntent(
                category=ScanCategory.MERCHANT,
                reference_id=ref.merchant_id,
                counterparty_id=ref.merchant_id,
                unit_amount=unit,
                quantity=1,
                total_amount=unit,
                amount_editable=editable,
            )

        raise TypeError(f"Unsupported reference type: {type(ref).__name__}")

    @staticmethod
    def increment(quantity: int) -> int:
        return clamp_quantity(quantity) + 1

    @staticmethod
    def decrement(quantity: int) -> int:
        return clamp_quantity(clamp_quantity(quantity) - 1)


__all__ = ["IntentBuilder", "DEFAULT_TICKET_FEE", "clamp_quantity"]
