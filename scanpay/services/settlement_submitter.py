"""Invoke the settlement procedure once per confirmed intent.

Results are terminal. A domain error (insufficient funds, inactive token)
carries the backend's message verbatim; anything without a structured
result is a transport error. Nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from scanpay.integrations.contracts import SettlementBackend
from scanpay.models.payment import PaymentIntent, SettlementOutcome, SettlementResult
from scanpay.models.scan import ScanCategory
from scanpay.utils.exceptions import InvalidIntentError, SettlementTransportError
from scanpay.utils.logging_utils import log_settlement_event

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Payment successful"


class SettlementSubmitter:
    def __init__(self, backend: SettlementBackend):
        self.backend = backend

    async def submit(self, intent: PaymentIntent, payer_id: str) -> SettlementResult:
        """Issue exactly one settlement call for ``intent``.

        Raises:
            InvalidIntentError: if the intent has no strictly positive total
                (checked before any remote call)
        """
        if not intent.is_valid:
            raise InvalidIntentError(f"Refusing to submit intent with total {intent.total_amount}")

        log_settlement_event({
            "status": "attempted",
            "category": intent.category.value,
            "reference_id": intent.reference_id,
            "total_amount": str(intent.total_amount),
            "quantity": intent.quantity,
        })

        try:
            rows = await self._call(intent, payer_id)
        except SettlementTransportError as exc:
            logger.error(f"Settlement transport failure for {intent.reference_id}: {exc}")
            return self._record(intent, SettlementResult(
                outcome=SettlementOutcome.TRANSPORT_ERROR,
                message=SettlementTransportError.notice,
            ))
        except Exception:
            logger.exception("Unexpected settlement failure for %s", intent.reference_id)
            return self._record(intent, SettlementResult(
                outcome=SettlementOutcome.TRANSPORT_ERROR,
                message=SettlementTransportError.notice,
            ))

        return self._record(intent, self.interpret(rows))

    @staticmethod
    def interpret(rows: List[Dict[str, Any]]) -> SettlementResult:
        if not rows:
            return SettlementResult(
                outcome=SettlementOutcome.TRANSPORT_ERROR,
                message=SettlementTransportError.notice,
            )
        first = rows[0] if isinstance(rows[0], dict) else {}
        error_message = first.get("error_message")
        if error_message:
            return SettlementResult(outcome=SettlementOutcome.DOMAIN_ERROR, message=str(error_message))
        return SettlementResult(outcome=SettlementOutcome.SUCCESS, message=SUCCESS_MESSAGE)

    async def _call(self, intent: PaymentIntent, payer_id: str) -> List[Dict[str, Any]]:
        if intent.category == ScanCategory.DRIVER:
            return await self.backend.process_transport_payment(
                payer_id=payer_id,
                driver_id=intent.counterparty_id,
                amount=intent.total_amount,
                token_id=intent.reference_id,
                quantity=intent.quantity,
            )
        return await self.backend.process_merchant_payment(
            payer_id=payer_id,
            merchant_id=intent.counterparty_id,
            amount=intent.total_amount,
        )

    @staticmethod
    def _record(intent: PaymentIntent, result: SettlementResult) -> SettlementResult:
        log_settlement_event({
            "status": result.outcome.value,
            "category": intent.category.value,
            "reference_id": intent.reference_id,
            "message": result.message,
        })
        return result
