"""
Collaborator contracts for the scan-to-settlement pipeline.

The pipeline never talks to storage or the settlement procedures directly;
it depends on these protocols. The hosted REST client in
``wallet_backend.py`` implements all three, tests use in-memory fakes.

Rows are plain dicts in the shape the hosted data store returns them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol


class ReferenceStore(Protocol):
    async def fetch_active_token(self, qr_data: str) -> Optional[Dict[str, Any]]:
        """Return the active token row whose payload text equals ``qr_data``.

        The row is joined with the owner's profile (``profile.full_name``)
        and service metadata (``driver_profile.ticket_fee``, ``route_name``,
        ``vehicle_type``). Returns None when nothing matches.

        Raises:
            ServiceUnavailableError: on transport failure
        """
        ...


class WalletStore(Protocol):
    async def fetch_wallet(self, user_id: str) -> Dict[str, Any]:
        """Return ``{"balance", "currency", "is_frozen"}`` for the user.

        Raises:
            ServiceUnavailableError: on transport failure
        """
        ...


class SettlementBackend(Protocol):
    async def process_transport_payment(
        self,
        *,
        payer_id: str,
        driver_id: str,
        amount: Decimal,
        token_id: str,
        quantity: int,
    ) -> List[Dict[str, Any]]:
        """Run the driver settlement procedure.

        Returns the result rows; a row with ``error_message`` is a domain error.

        Raises:
            SettlementTransportError: when no structured result came back
        """
        ...

    async def process_merchant_payment(
        self,
        *,
        payer_id: str,
        merchant_id: str,
        amount: Decimal,
    ) -> List[Dict[str, Any]]:
        """Run the merchant settlement procedure (same result contract)."""
        ...
