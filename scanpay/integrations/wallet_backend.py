"""
Hosted wallet backend client.

Talks to the REST front of the hosted data store (PostgREST-style table
endpoints under ``/rest/v1`` plus ``/rest/v1/rpc/<procedure>`` for the
settlement procedures). Implements ReferenceStore, WalletStore and
SettlementBackend from ``contracts.py``.

Calls are blocking ``requests`` calls pushed onto a worker thread so the
pipeline can await them. Nothing here retries: one call, one answer.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
import asyncio
import logging

import requests

from scanpay.utils.exceptions import ServiceUnavailableError, SettlementTransportError

logger = logging.getLogger(__name__)

DRIVER_TOKEN_SELECT = (
    "*,"
    "driver_profile:driver_profiles!qr_codes_driver_id_fkey(ticket_fee,route_name,vehicle_type),"
    "profile:profiles!qr_codes_driver_id_fkey(full_name)"
)


def _json_amount(amount: Decimal) -> Any:
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _describe(exc: Exception) -> str:
    """Status code or exception class only; request URLs carry the scanned text."""
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "status_code", None) is not None:
        return f"HTTP {response.status_code}"
    return type(exc).__name__


class WalletBackendClient:
    """
    Client for the hosted wallet backend.

    Disabled (every call fails as unavailable) until a base URL is configured.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.enabled = bool(self.base_url)
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })
        self.session.headers.update({"Accept": "application/json"})

    # -----------------
    # Reference / wallet reads
    # -----------------
    async def fetch_active_token(self, qr_data: str) -> Optional[Dict[str, Any]]:
        rows = await self._read(
            "qr_codes",
            {"select": DRIVER_TOKEN_SELECT, "qr_data": f"eq.{qr_data}", "is_active": "eq.true"},
        )
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning("Multiple active tokens matched one payload; using first")
        return rows[0]

    async def fetch_wallet(self, user_id: str) -> Dict[str, Any]:
        rows = await self._read("wallets", {"select": "*", "user_id": f"eq.{user_id}"})
        if not rows:
            raise ServiceUnavailableError(f"No wallet found for user {user_id}")
        return rows[0]

    # -----------------
    # Settlement procedures
    # -----------------
    async def process_transport_payment(
        self,
        *,
        payer_id: str,
        driver_id: str,
        amount: Decimal,
        token_id: str,
        quantity: int,
    ) -> List[Dict[str, Any]]:
        return await self._rpc("process_transport_payment", {
            "p_passenger_id": payer_id,
            "p_driver_id": driver_id,
            "p_amount": _json_amount(amount),
            "p_qr_code_id": token_id,
            "p_quantity": quantity,
        })

    async def process_merchant_payment(
        self,
        *,
        payer_id: str,
        merchant_id: str,
        amount: Decimal,
    ) -> List[Dict[str, Any]]:
        return await self._rpc("process_merchant_payment", {
            "p_passenger_id": payer_id,
            "p_merchant_id": merchant_id,
            "p_amount": _json_amount(amount),
        })

    # -----------------
    # Internal helpers
    # -----------------
    async def _read(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        if not self.enabled:
            logger.warning("Wallet backend not configured - lookups unavailable")
            raise ServiceUnavailableError("Wallet backend not configured")
        try:
            return await asyncio.to_thread(self._get, table, params)
        except (requests.RequestException, ValueError) as exc:
            reason = _describe(exc)
            logger.error(f"Backend read from {table} failed: {reason}")
            raise ServiceUnavailableError(f"Backend read from {table} failed: {reason}") from exc

    async def _rpc(self, procedure: str, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.enabled:
            logger.warning("Wallet backend not configured - settlement unavailable")
            raise SettlementTransportError("Wallet backend not configured")
        try:
            return await asyncio.to_thread(self._post, procedure, body)
        except (requests.RequestException, ValueError) as exc:
            reason = _describe(exc)
            logger.error(f"Settlement procedure {procedure} failed: {reason}")
            raise SettlementTransportError(f"Settlement procedure {procedure} failed: {reason}") from exc

    def _get(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        response = self.session.get(f"{self.base_url}/rest/v1/{table}", params=params, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict):
            return [data]
        return list(data or [])

    def _post(self, procedure: str, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = self.session.post(f"{self.base_url}/rest/v1/rpc/{procedure}", json=body, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise ValueError(f"Unexpected {procedure} response: {data!r}")
        return data
