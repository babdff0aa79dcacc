"""In-memory collaborators and sample payloads shared by the tests."""

import asyncio
from typing import Any, Dict, List, Optional

from scanpay.utils.exceptions import ServiceUnavailableError, SettlementTransportError

DRIVER_QR = '{"type":"driver","driver_id":"d1"}'
MERCHANT_FIXED_QR = '{"type":"merchant","merchant_id":"m1","amount":2000}'
MERCHANT_OPEN_QR = '{"type":"merchant","merchant_id":"m1","business_name":"Corner Shop"}'


class FakeReferenceStore:
    """Token rows keyed by payload text; ``gate`` holds lookups until set."""

    def __init__(self, rows: Optional[Dict[str, Dict[str, Any]]] = None):
        self.rows = rows or {}
        self.calls: List[str] = []
        self.fail = False
        self.gate: Optional[asyncio.Event] = None

    async def fetch_active_token(self, qr_data: str) -> Optional[Dict[str, Any]]:
        self.calls.append(qr_data)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ServiceUnavailableError("store offline")
        return self.rows.get(qr_data)


class FakeWalletStore:
    def __init__(self, balance: str = "10000", is_frozen: bool = False):
        self.row = {"balance": balance, "currency": "SYP", "is_frozen": is_frozen}
        self.calls = 0

    async def fetch_wallet(self, user_id: str) -> Dict[str, Any]:
        self.calls += 1
        return dict(self.row)


class FakeSettlementBackend:
    """Records calls; ``gate`` (an asyncio.Event) holds calls until set."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows = rows if rows is not None else [{"transaction_id": "t1"}]
        self.calls: List[Dict[str, Any]] = []
        self.fail = False
        self.gate: Optional[asyncio.Event] = None

    async def _answer(self, call: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise SettlementTransportError("connection reset")
        return self.rows

    async def process_transport_payment(self, *, payer_id, driver_id, amount, token_id, quantity):
        return await self._answer({
            "procedure": "transport",
            "payer_id": payer_id,
            "driver_id": driver_id,
            "amount": amount,
            "token_id": token_id,
            "quantity": quantity,
        })

    async def process_merchant_payment(self, *, payer_id, merchant_id, amount):
        return await self._answer({
            "procedure": "merchant",
            "payer_id": payer_id,
            "merchant_id": merchant_id,
            "amount": amount,
        })


class FakeHandle:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.released = 0

    async def release(self) -> None:
        self.released += 1
        if self.fail:
            raise RuntimeError("camera busy")


class FakeCaptureSource:
    def __init__(self, fail_release: bool = False):
        self.fail_release = fail_release
        self.handles: List[FakeHandle] = []
        self.on_decoded = None
        self.on_error = None

    def open(self, on_decoded, on_error):
        self.on_decoded = on_decoded
        self.on_error = on_error
        handle = FakeHandle(fail=self.fail_release)
        self.handles.append(handle)
        return handle

    async def emit(self, text: str) -> None:
        await self.on_decoded(text)


def driver_row(fee: Any = 500, **overrides: Any) -> Dict[str, Any]:
    row = {
        "id": "tok-1",
        "driver_id": "d1",
        "qr_data": DRIVER_QR,
        "is_active": True,
        "expires_at": None,
        "driver_profile": {"ticket_fee": fee, "route_name": "Route 7", "vehicle_type": "Minibus"},
        "profile": {"full_name": "Sami Haddad"},
    }
    row.update(overrides)
    return row


class BrokenCaptureSource:
    """Source whose camera cannot be opened."""

    def __init__(self, error: Exception):
        self.error = error
        self.attempts = 0

    def open(self, on_decoded, on_error):
        self.attempts += 1
        raise self.error
