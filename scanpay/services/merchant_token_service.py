"""Merchant payment token generation and export.

A merchant prints a code whose text is the compact JSON payload built here.
Scanning that text back through decode + classify yields a merchant scan
with the same fixed amount.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from scanpay.models.merchant_token import MERCHANT_TOKEN_TYPE, MerchantToken, MerchantTokenRequest
from scanpay.services.payload_classifier import parse_positive_amount
from scanpay.utils.exceptions import InvalidIntentError
from scanpay.utils.helpers.date_utils import is_expired

logger = logging.getLogger(__name__)


class MerchantTokenService:
    def __init__(self, clock_ms: Optional[Callable[[], int]] = None):
        self.clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    def generate(self, request: MerchantTokenRequest) -> MerchantToken:
        """Build a merchant token from form input.

        Raises:
            InvalidIntentError: missing merchant id, or amount not a number > 0
        """
        if not request.merchant_id or not str(request.amount).strip():
            raise InvalidIntentError("Merchant id and amount are required")

        amount = parse_positive_amount(request.amount)
        if amount is None:
            raise InvalidIntentError(f"invalid amount: {request.amount!r}")

        payload: Dict[str, Any] = {
            "type": MERCHANT_TOKEN_TYPE,
            "merchant_id": request.merchant_id,
            "amount": int(amount) if amount == amount.to_integral_value() else float(amount),
            "business_name": request.business_name or None,
            "description": request.description or None,
            "timestamp": self.clock_ms(),
        }
        token = MerchantToken(
            merchant_id=request.merchant_id,
            amount=amount,
            payload=payload,
            qr_data=json.dumps(payload, separators=(",", ":"), ensure_ascii=False),
            expires_at=request.expires_at,
        )
        logger.info("Generated merchant token %s for %s", token.token_id, token.merchant_id)
        return token

    @staticmethod
    def is_usable(token: MerchantToken, now: Optional[datetime] = None) -> bool:
        return token.is_active and not is_expired(token.expires_at, now)

    def export(self, token: MerchantToken, export_dir: str | Path) -> Path:
        """Write the token payload to ``merchant-qr-<id>.json`` and return the path."""
        output_path = Path(export_dir) / f"merchant-qr-{token.token_id}.json"
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(token.payload, f, ensure_ascii=False, indent=2)

        logger.info(f"Exported merchant token to {output_path}")
        return output_path
