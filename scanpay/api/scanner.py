"""Scanner API Endpoints

FastAPI routes over the scan-to-settlement pipeline (no UI).

Endpoints:
- POST   /api/scanner/{payer_id}/scan                 - Manual entry of token text
- POST   /api/scanner/{payer_id}/quantity/increment   - One more ticket
- POST   /api/scanner/{payer_id}/quantity/decrement   - One fewer ticket (floor 1)
- PUT    /api/scanner/{payer_id}/amount               - Typed merchant amount
- POST   /api/scanner/{payer_id}/confirm              - Submit the open intent once
- DELETE /api/scanner/{payer_id}/cycle                - Dismiss the confirmation view
- GET    /api/scanner/{payer_id}/history              - Recent scans, newest first
- GET    /api/scanner/{payer_id}/wallet               - Wallet snapshot
- POST   /api/scanner/merchant-tokens                 - Generate a merchant token

Pipeline failures come back as notices in a 200 response; 409 means the
call needs an open confirmation cycle and there is none.
"""

from __future__ import annotations

from threading import Lock
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from scanpay.integrations.wallet_backend import WalletBackendClient
from scanpay.models.merchant_token import MerchantTokenRequest
from scanpay.models.payment import Notice, PaymentIntent
from scanpay.pipeline.scan_pipeline import ScanPipeline
from scanpay.repositories.audit_repository import AuditRepository
from scanpay.services.audit_logger import AuditLogger
from scanpay.services.config_service import ConfigService, ScannerSettings
from scanpay.services.merchant_token_service import MerchantTokenService
from scanpay.utils.exceptions import InvalidIntentError
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scanner", tags=["scanner"])


class PipelineRegistry:
    """One ScanPipeline per payer, sharing a backend client and audit logger."""

    def __init__(
        self,
        settings: ScannerSettings,
        backend: Any = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.settings = settings
        self.backend = backend or WalletBackendClient(
            settings.backend_url, settings.api_key, timeout=settings.request_timeout
        )
        self.audit_logger = audit_logger or AuditLogger(AuditRepository(settings.audit_db_path))
        self._pipelines: Dict[str, ScanPipeline] = {}
        self._lock = Lock()

    def get(self, payer_id: str) -> ScanPipeline:
        with self._lock:
            pipeline = self._pipelines.get(payer_id)
            if pipeline is None:
                pipeline = ScanPipeline(
                    payer_id,
                    reference_store=self.backend,
                    wallet_store=self.backend,
                    settlement_backend=self.backend,
                    settings=self.settings,
                    audit_logger=self.audit_logger,
                )
                self._pipelines[payer_id] = pipeline
            return pipeline


_registry: Optional[PipelineRegistry] = None


def get_registry() -> PipelineRegistry:
    """Get or create the PipelineRegistry singleton."""
    global _registry
    if _registry is None:
        _registry = PipelineRegistry(ConfigService().get_settings())
    return _registry


# ============================================================================
# Request/Response Models
# ============================================================================

class ScanRequest(BaseModel):
    text: str = Field(..., description="Token text as typed or pasted")


class AmountRequest(BaseModel):
    amount: Optional[str] = Field(None, description="Amount exactly as typed by the user")


class PipelineResponse(BaseModel):
    state: str
    scan: Optional[Dict[str, Any]] = None
    confirmation: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    notices: List[Notice] = Field(default_factory=list)


def _respond(pipeline: ScanPipeline, **extra: Any) -> PipelineResponse:
    return PipelineResponse(
        state=pipeline.state.value,
        confirmation=pipeline.confirmation_view(),
        notices=pipeline.drain_notices(),
        **extra,
    )


def _require_intent(pipeline: ScanPipeline, intent: Optional[PaymentIntent]) -> PipelineResponse:
    if intent is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No open confirmation for this operation",
        )
    return _respond(pipeline)


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/{payer_id}/scan", response_model=PipelineResponse)
async def scan_token(payer_id: str, body: ScanRequest, registry: PipelineRegistry = Depends(get_registry)):
    pipeline = registry.get(payer_id)
    scan = await pipeline.submit_manual(body.text)
    return _respond(pipeline, scan=scan.model_dump(mode="json") if scan else None)


@router.post("/{payer_id}/quantity/increment", response_model=PipelineResponse)
async def increment_quantity(payer_id: str, registry: PipelineRegistry = Depends(get_registry)):
    pipeline = registry.get(payer_id)
    return _require_intent(pipeline, pipeline.increment_quantity())


@router.post("/{payer_id}/quantity/decrement", response_model=PipelineResponse)
async def decrement_quantity(payer_id: str, registry: PipelineRegistry = Depends(get_registry)):
    pipeline = registry.get(payer_id)
    return _require_intent(pipeline, pipeline.decrement_quantity())


@router.put("/{payer_id}/amount", response_model=PipelineResponse)
async def set_amount(payer_id: str, body: AmountRequest, registry: PipelineRegistry = Depends(get_registry)):
    pipeline = registry.get(payer_id)
    return _require_intent(pipeline, pipeline.set_entered_amount(body.amount))


@router.post("/{payer_id}/confirm", response_model=PipelineResponse)
async def confirm_payment(payer_id: str, registry: PipelineRegistry = Depends(get_registry)):
    pipeline = registry.get(payer_id)
    if pipeline.cycle is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No open confirmation")
    result = await pipeline.confirm()
    return _respond(pipeline, result=result.model_dump(mode="json") if result else None)


@router.delete("/{payer_id}/cycle", response_model=PipelineResponse)
async def dismiss_cycle(payer_id: str, registry: PipelineRegistry = Depends(get_registry)):
    pipeline = registry.get(payer_id)
    pipeline.dismiss()
    return _respond(pipeline)


@router.get("/{payer_id}/history")
async def get_history(payer_id: str, registry: PipelineRegistry = Depends(get_registry)):
    return registry.get(payer_id).history.get_recent_scans()


@router.get("/{payer_id}/wallet")
async def get_wallet(payer_id: str, registry: PipelineRegistry = Depends(get_registry)):
    pipeline = registry.get(payer_id)
    wallet = await pipeline.refresh_wallet()
    if wallet is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Wallet unavailable")
    return wallet.model_dump(mode="json")


@router.post("/merchant-tokens", status_code=status.HTTP_201_CREATED)
async def create_merchant_token(body: MerchantTokenRequest):
    try:
        token = MerchantTokenService().generate(body)
    except InvalidIntentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.notice)
    return token.model_dump(mode="json")
