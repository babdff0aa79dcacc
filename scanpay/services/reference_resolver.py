"""Resolve a classified scan to the record it references.

Driver scans need a lookup: the exact scanned text must match an active,
unexpired token row. Merchant scans are self-describing and resolve
without touching the store.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from scanpay.integrations.contracts import ReferenceStore
from scanpay.models.payment import DriverReference, MerchantReference, ResolvedReference
from scanpay.models.scan import ClassifiedScan, DriverScan, MerchantScan
from scanpay.services.payload_classifier import parse_positive_amount
from scanpay.utils.exceptions import (
    ResolutionNotFoundError,
    ScanPipelineError,
    ServiceUnavailableError,
    UnclassifiablePayloadError,
)
from scanpay.utils.helpers.date_utils import is_expired

logger = logging.getLogger(__name__)

INACTIVE_TOKEN_MESSAGE = "Invalid or inactive driver QR code"


def _embedded(row: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Embedded relations come back as an object, a one-item list, or null."""
    value = row.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


class ReferenceResolver:
    """Turns ClassifiedScan into ResolvedReference (no retries, no fallbacks)."""

    def __init__(self, store: ReferenceStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock

    async def resolve(self, scan: ClassifiedScan) -> ResolvedReference:
        """Resolve ``scan`` or raise.

        Raises:
            UnclassifiablePayloadError: for unknown scans
            ResolutionNotFoundError: no active, unexpired driver token
            ServiceUnavailableError: the reference store could not be reached
        """
        if isinstance(scan, DriverScan):
            return await self._resolve_driver(scan)
        if isinstance(scan, MerchantScan):
            return self._resolve_merchant(scan)
        raise UnclassifiablePayloadError("Cannot resolve a scan of unknown category")

    async def _resolve_driver(self, scan: DriverScan) -> DriverReference:
        try:
            row = await self.store.fetch_active_token(scan.raw)
        except ScanPipelineError:
            raise
        except Exception as exc:
            logger.error("Driver token lookup failed: %s", type(exc).__name__)
            raise ServiceUnavailableError(f"Driver token lookup failed: {type(exc).__name__}") from exc

        if not row or row.get("is_active") is False:
            raise ResolutionNotFoundError(INACTIVE_TOKEN_MESSAGE)

        try:
            expired = is_expired(row.get("expires_at"), self.clock() if self.clock else None)
        except ValueError:
            logger.warning("Unparsable expiry on token %s, treating as expired", row.get("id"))
            expired = True
        if expired:
            raise ResolutionNotFoundError(INACTIVE_TOKEN_MESSAGE)

        driver_id = row.get("driver_id") or scan.driver_id
        token_id = row.get("id")
        if not driver_id or token_id is None:
            raise ResolutionNotFoundError(INACTIVE_TOKEN_MESSAGE)

        service = _embedded(row, "driver_profile")
        profile = _embedded(row, "profile")
        return DriverReference(
            token_id=str(token_id),
            driver_id=str(driver_id),
            full_name=profile.get("full_name"),
            ticket_fee=parse_positive_amount(service.get("ticket_fee")),
            route_name=service.get("route_name"),
            vehicle_type=service.get("vehicle_type"),
            expires_at=row.get("expires_at") or None,
        )

    def _resolve_merchant(self, scan: MerchantScan) -> MerchantReference:
        if not scan.merchant_id:
            raise ResolutionNotFoundError(
                "Merchant QR code carries no merchant id", notice="Invalid merchant QR code"
            )
        return MerchantReference(
            merchant_id=scan.merchant_id,
            fixed_amount=scan.amount,
            business_name=scan.business_name,
            description=scan.description,
        )


__all__ = ["ReferenceResolver", "INACTIVE_TOKEN_MESSAGE"]
