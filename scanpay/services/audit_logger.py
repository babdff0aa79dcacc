"""Best-effort audit event logging for confirmation cycles.

Key Principles:
- Audit failures NEVER block payment operations
- All exceptions are caught and logged as warnings
- Uses the payer id as actor, "SYSTEM" when none is known
- Stores only safe metadata (never the raw scanned text)
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from scanpay.models.audit import AuditEvent, AuditEventType
from scanpay.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)


def _serialize_for_audit(obj: Any) -> Any:
    """Convert objects to JSON-serializable format for audit data.

    Handles Decimal (as string, no float rounding of money), UUID, Enum,
    datetime, and recursively dicts and lists.
    """
    if isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, dict):
        return {key: _serialize_for_audit(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize_for_audit(item) for item in obj]
    else:
        return obj


class AuditLogger:
    """Error boundary around AuditRepository.

    Example:
        audit_logger.log(
            event_type=AuditEventType.SETTLEMENT_SUCCEEDED,
            actor=payer_id,
            cycle_id=cycle.cycle_id,
            data={"total_amount": intent.total_amount},
        )
    """

    DEFAULT_ACTOR = "SYSTEM"

    def __init__(self, repository: Optional[AuditRepository] = None):
        self.repository = repository or AuditRepository()

    def log(
        self,
        event_type: AuditEventType,
        actor: Optional[str] = None,
        cycle_id: Optional[UUID] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log an audit event (best-effort, never raises)."""
        try:
            event = AuditEvent(
                event_type=event_type,
                actor=actor or self.DEFAULT_ACTOR,
                cycle_id=cycle_id,
                data=_serialize_for_audit(data or {}),
            )
            self.repository.save_event(event)

        except Exception as exc:
            # Audit failure must NOT interrupt payment operations
            logger.warning(
                f"Audit logging failed for event_type={event_type}, "
                f"cycle_id={cycle_id}: {exc}"
            )

    async def log_async(
        self,
        event_type: AuditEventType,
        actor: Optional[str] = None,
        cycle_id: Optional[UUID] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Run log() on a worker thread so the SQLite write never blocks the event loop."""
        await asyncio.to_thread(self.log, event_type, actor, cycle_id, data)
