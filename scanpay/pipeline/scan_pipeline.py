"""Scan-to-settlement pipeline controller.

Drives one payer's session:

    capture/manual text -> decode -> classify -> resolve -> build intent
        -> (user confirms) -> balance guard -> settle -> notices + history

The controller is the error boundary: every ScanPipelineError raised by a
stage becomes a Notice and control returns to an interactive state.

Ownership:
    - The open ConfirmationCycle (scan, reference, inputs, intent) belongs
      to this controller and is dropped when the cycle ends.
    - The wallet snapshot is refreshed after every settlement attempt.
    - Settlement runs as a detached task. If the cycle is dismissed while
      the call is in flight, the call still completes (and is audited) but
      its notice is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set
from uuid import UUID, uuid4

from scanpay.capture.session_controller import CaptureSessionController, CaptureSource
from scanpay.history.scan_history import ScanHistoryLedger
from scanpay.integrations.contracts import ReferenceStore, SettlementBackend, WalletStore
from scanpay.models.audit import AuditEventType
from scanpay.models.payment import (
    DriverReference,
    Notice,
    NoticeLevel,
    PaymentIntent,
    ResolvedReference,
    SettlementOutcome,
    SettlementResult,
    WalletSnapshot,
)
from scanpay.models.scan import ClassifiedScan, ScanCategory, UnknownScan
from scanpay.services.audit_logger import AuditLogger
from scanpay.services.balance_guard import BalanceGuard
from scanpay.services.config_service import ScannerSettings
from scanpay.services.intent_builder import IntentBuilder
from scanpay.services.payload_classifier import PayloadClassifier
from scanpay.services.reference_resolver import ReferenceResolver
from scanpay.services.settlement_submitter import SettlementSubmitter
from scanpay.services.token_decoder import decode
from scanpay.utils.currency import format_currency
from scanpay.utils.exceptions import (
    CaptureSessionError,
    InvalidIntentError,
    ScanPipelineError,
    WalletFrozenError,
)
from scanpay.utils.logging_utils import log_pipeline_event

logger = logging.getLogger(__name__)

NoticeSink = Callable[[Notice], None]


class PipelineState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"


@dataclass
class ConfirmationCycle:
    scan: ClassifiedScan
    reference: ResolvedReference
    intent: PaymentIntent
    quantity: int = 1
    entered_amount: Optional[str] = None
    in_flight: bool = False
    closed: bool = False
    cycle_id: UUID = field(default_factory=uuid4)


class ScanPipeline:
    """Per-payer controller for the scan-to-settlement flow."""

    def __init__(
        self,
        payer_id: str,
        reference_store: ReferenceStore,
        wallet_store: WalletStore,
        settlement_backend: SettlementBackend,
        *,
        settings: ScannerSettings | None = None,
        notify: NoticeSink | None = None,
        history: ScanHistoryLedger | None = None,
        audit_logger: AuditLogger | None = None,
        capture_source: CaptureSource | None = None,
    ):
        self.payer_id = payer_id
        self.settings = settings or ScannerSettings()
        self.wallet_store = wallet_store
        self.notify = notify
        self.notices: List[Notice] = []

        self.classifier = PayloadClassifier(notify=self._deliver_notice)
        self.resolver = ReferenceResolver(reference_store)
        self.builder = IntentBuilder(default_ticket_fee=self.settings.default_ticket_fee)
        self.guard = BalanceGuard()
        self.submitter = SettlementSubmitter(settlement_backend)
        self.history = history or ScanHistoryLedger(limit=self.settings.history_limit)
        self.audit_logger = audit_logger or AuditLogger()
        self.capture = (
            CaptureSessionController(capture_source, self.process_capture)
            if capture_source is not None
            else None
        )

        self.state = PipelineState.IDLE
        self.wallet: Optional[WalletSnapshot] = None
        self.cycle: Optional[ConfirmationCycle] = None
        self._settlements: Set[asyncio.Task] = set()

    # -----------------
    # Notices
    # -----------------
    def _deliver_notice(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self.notify is not None:
            try:
                self.notify(notice)
            except Exception as exc:
                logger.warning(f"Notice sink failed: {exc}")

    def _post(self, level: NoticeLevel, message: str) -> None:
        self._deliver_notice(Notice(level=level, message=message))

    def drain_notices(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def _audit(self, event_type: AuditEventType, cycle: ConfirmationCycle | None = None, **data: Any) -> None:
        self.audit_logger.log(
            event_type=event_type,
            actor=self.payer_id,
            cycle_id=cycle.cycle_id if cycle else None,
            data=data,
        )

    async def _audit_async(self, event_type: AuditEventType, cycle: ConfirmationCycle | None = None, **data: Any) -> None:
        """Same as _audit, with the database write kept off the event loop."""
        await self.audit_logger.log_async(
            event_type=event_type,
            actor=self.payer_id,
            cycle_id=cycle.cycle_id if cycle else None,
            data=data,
        )

    # -----------------
    # Wallet
    # -----------------
    async def refresh_wallet(self) -> Optional[WalletSnapshot]:
        """Re-read the wallet; keeps the previous snapshot if the read fails."""
        try:
            row = await self.wallet_store.fetch_wallet(self.payer_id)
            self.wallet = WalletSnapshot(
                balance=Decimal(str(row.get("balance") or 0)),
                currency=row.get("currency") or self.settings.currency,
                is_frozen=bool(row.get("is_frozen")),
            )
        except (ScanPipelineError, InvalidOperation, AttributeError) as exc:
            logger.error("Error fetching wallet data: %s", exc)
        except Exception:
            logger.exception("Unexpected error fetching wallet data")
        return self.wallet

    # -----------------
    # Capture
    # -----------------
    def start_capture(self) -> bool:
        """Open the capture session; False when it cannot start right now.

        Capture stays off until the pipeline is back at IDLE. A source
        that fails to open posts a notice.
        """
        if self.capture is None:
            logger.warning("No capture source configured")
            return False
        if self.state != PipelineState.IDLE:
            logger.info("Capture not started: pipeline is %s", self.state.value)
            return False
        try:
            self.capture.start()
        except CaptureSessionError as exc:
            logger.warning("Capture not started: %s", exc)
            self._post(NoticeLevel.ERROR, exc.notice)
            return False
        return True

    async def stop_capture(self) -> None:
        if self.capture is not None:
            await self.capture.stop()

    async def submit_manual(self, text: str) -> Optional[ClassifiedScan]:
        """Manual entry bypasses the capture session entirely."""
        raw = (text or "").strip()
        if not raw:
            return None
        return await self.process_capture(raw)

    # -----------------
    # Scan -> confirmation
    # -----------------
    async def process_capture(self, raw: str) -> ClassifiedScan:
        """Decode, classify and, where possible, open a confirmation cycle."""
        if self.cycle is not None:
            self.dismiss()

        scan = self.classifier.classify(decode(raw))
        self.history.record(scan)
        self.state = PipelineState.RESOLVING
        await self._audit_async(AuditEventType.SCAN_CLASSIFIED, category=scan.category)
        log_pipeline_event({"event_type": "scan", "category": scan.category.value})

        if isinstance(scan, UnknownScan):
            self.state = PipelineState.IDLE
            return scan

        try:
            reference = await self.resolver.resolve(scan)
        except ScanPipelineError as exc:
            logger.info("Resolution failed for %s scan: %s", scan.category.value, type(exc).__name__)
            self._post(NoticeLevel.ERROR, exc.notice)
            # exception text can carry the lookup URL, which embeds the scanned text
            await self._audit_async(
                AuditEventType.RESOLUTION_FAILED, category=scan.category, reason=type(exc).__name__
            )
            self.state = PipelineState.IDLE
            return scan

        cycle = ConfirmationCycle(scan=scan, reference=reference, intent=self.builder.build(reference))
        self.cycle = cycle
        self.state = PipelineState.CONFIRMING
        await self._audit_async(
            AuditEventType.CYCLE_OPENED,
            cycle,
            category=scan.category,
            reference_id=cycle.intent.reference_id,
            total_amount=cycle.intent.total_amount,
        )
        # each cycle reads its own snapshot; a failed read leaves none
        self.wallet = None
        await self.refresh_wallet()
        return scan

    def _rebuild(self, cycle: ConfirmationCycle) -> PaymentIntent:
        cycle.intent = self.builder.build(cycle.reference, cycle.quantity, cycle.entered_amount)
        return cycle.intent

    def increment_quantity(self) -> Optional[PaymentIntent]:
        cycle = self.cycle
        if cycle is None or cycle.intent.category != ScanCategory.DRIVER:
            return None
        cycle.quantity = self.builder.increment(cycle.quantity)
        return self._rebuild(cycle)

    def decrement_quantity(self) -> Optional[PaymentIntent]:
        cycle = self.cycle
        if cycle is None or cycle.intent.category != ScanCategory.DRIVER:
            return None
        cycle.quantity = self.builder.decrement(cycle.quantity)
        return self._rebuild(cycle)

    def set_entered_amount(self, amount: Optional[str]) -> Optional[PaymentIntent]:
        """Update the typed merchant amount; ignored when the token fixes it."""
        cycle = self.cycle
        if cycle is None or cycle.intent.category != ScanCategory.MERCHANT:
            return None
        if cycle.intent.amount_editable:
            cycle.entered_amount = amount
        return self._rebuild(cycle)

    # -----------------
    # Confirmation -> settlement
    # -----------------
    @property
    def submission_in_flight(self) -> bool:
        return any(not task.done() for task in self._settlements)

    @property
    def can_confirm(self) -> bool:
        cycle = self.cycle
        return (
            cycle is not None
            and not self.submission_in_flight
            and self.guard.check(self.wallet)
            and cycle.intent.is_valid
        )

    async def confirm(self) -> Optional[SettlementResult]:
        """Handle one press of the confirm control.

        Returns the settlement result, or None when nothing was submitted
        (no open cycle, a submission already in flight, or a local block).
        """
        cycle = self.cycle
        if cycle is None:
            return None
        if self.submission_in_flight:
            logger.info("Confirm ignored: a submission is already in flight")
            return None

        intent = cycle.intent
        try:
            self.guard.ensure_allowed(self.wallet)
            if not intent.is_valid:
                raise InvalidIntentError(f"Intent total {intent.total_amount} is not payable")
        except (WalletFrozenError, InvalidIntentError) as exc:
            self._post(NoticeLevel.ERROR, exc.notice)
            await self._audit_async(AuditEventType.SUBMISSION_BLOCKED, cycle, reason=type(exc).__name__)
            return None

        # no await between the in-flight check and registering the task
        cycle.in_flight = True
        self.state = PipelineState.SUBMITTING
        task = asyncio.ensure_future(self._settle(cycle, intent))
        self._settlements.add(task)
        task.add_done_callback(self._settlements.discard)
        return await asyncio.shield(task)

    async def _settle(self, cycle: ConfirmationCycle, intent: PaymentIntent) -> SettlementResult:
        await self._audit_async(
            AuditEventType.SETTLEMENT_ATTEMPTED,
            cycle,
            category=intent.category,
            reference_id=intent.reference_id,
            quantity=intent.quantity,
            total_amount=intent.total_amount,
        )
        try:
            result = await self.submitter.submit(intent, self.payer_id)
        except ScanPipelineError as exc:
            result = SettlementResult(outcome=SettlementOutcome.TRANSPORT_ERROR, message=exc.notice)
        await self.refresh_wallet()
        await self._deliver_result(cycle, intent, result)
        return result

    async def _deliver_result(self, cycle: ConfirmationCycle, intent: PaymentIntent, result: SettlementResult) -> None:
        cycle.in_flight = False
        event_type = {
            SettlementOutcome.SUCCESS: AuditEventType.SETTLEMENT_SUCCEEDED,
            SettlementOutcome.DOMAIN_ERROR: AuditEventType.SETTLEMENT_REJECTED,
            SettlementOutcome.TRANSPORT_ERROR: AuditEventType.SETTLEMENT_FAILED,
        }[result.outcome]
        await self._audit_async(event_type, cycle, total_amount=intent.total_amount, message=result.message)

        if cycle.closed or cycle is not self.cycle:
            logger.info("Settlement result for dismissed cycle %s dropped", cycle.cycle_id)
            return

        if result.succeeded:
            amount = format_currency(intent.total_amount, self._currency, self.settings.locale)
            self._post(NoticeLevel.SUCCESS, f"{result.message}: {amount}")
            cycle.closed = True
            self.cycle = None
            self.state = PipelineState.IDLE
        else:
            self._post(NoticeLevel.ERROR, result.message or "Payment failed")
            self.state = PipelineState.CONFIRMING

    def dismiss(self) -> None:
        """Close the confirmation view; an in-flight settlement runs on detached."""
        cycle = self.cycle
        if cycle is None:
            return
        cycle.closed = True
        self.cycle = None
        self.state = PipelineState.IDLE
        self.wallet = None
        self._audit(AuditEventType.CYCLE_DISMISSED, cycle, in_flight=cycle.in_flight)

    async def shutdown(self) -> None:
        """Stop capture and let detached settlements finish."""
        await self.stop_capture()
        pending = [task for task in self._settlements if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # -----------------
    # Presentation data
    # -----------------
    @property
    def _currency(self) -> str:
        return self.wallet.currency if self.wallet else self.settings.currency

    def _money(self, amount: Optional[Decimal]) -> Optional[str]:
        if amount is None:
            return None
        return format_currency(amount, self._currency, self.settings.locale)

    def confirmation_view(self) -> Optional[Dict[str, Any]]:
        """Summary of the open cycle for the confirmation view."""
        cycle = self.cycle
        if cycle is None:
            return None
        intent = cycle.intent
        ref = cycle.reference
        view: Dict[str, Any] = {
            "cycle_id": str(cycle.cycle_id),
            "category": intent.category.value,
            "unit_amount": intent.unit_amount,
            "quantity": intent.quantity,
            "total_amount": intent.total_amount,
            "total_display": self._money(intent.total_amount),
            "amount_editable": intent.amount_editable,
            "entered_amount": cycle.entered_amount,
            "balance": self.wallet.balance if self.wallet else None,
            "balance_display": self._money(self.wallet.balance) if self.wallet else None,
            "wallet_frozen": bool(self.wallet and self.wallet.is_frozen),
            "in_flight": self.submission_in_flight,
            "can_confirm": self.can_confirm,
        }
        if isinstance(ref, DriverReference):
            view.update({
                "counterparty": ref.full_name or "Unknown Driver",
                "route": ref.route_name or "City Route",
                "vehicle": ref.vehicle_type or "Bus",
            })
        else:
            view.update({
                "counterparty": ref.business_name or "Local Store",
                "description": ref.description,
            })
        return view
