"""Audit event model for the scan-to-settlement pipeline.

Key Principles:
- Append-only (no updates or deletes)
- Events are never modified after creation
- Captures who did what, when, and with what outcome
- Never stores the raw scanned text
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class AuditEventType(str, Enum):
    """Audit event types for one confirmation cycle."""

    SCAN_CLASSIFIED = "SCAN_CLASSIFIED"
    """A capture was decoded and assigned a category."""

    RESOLUTION_FAILED = "RESOLUTION_FAILED"
    """Driver token lookup found nothing or the store was unreachable."""

    CYCLE_OPENED = "CYCLE_OPENED"
    """Confirmation view opened with a built payment intent."""

    SUBMISSION_BLOCKED = "SUBMISSION_BLOCKED"
    """Confirm pressed but blocked locally (frozen wallet, invalid amount)."""

    SETTLEMENT_ATTEMPTED = "SETTLEMENT_ATTEMPTED"

    SETTLEMENT_SUCCEEDED = "SETTLEMENT_SUCCEEDED"

    SETTLEMENT_REJECTED = "SETTLEMENT_REJECTED"
    """Backend returned a structured domain error."""

    SETTLEMENT_FAILED = "SETTLEMENT_FAILED"
    """Transport failure, no structured result."""

    CYCLE_DISMISSED = "CYCLE_DISMISSED"


class AuditEvent(BaseModel):
    """Immutable audit event record.

    Attributes:
        event_id: Unique identifier for this audit event
        event_type: Type of operation being audited
        timestamp: When the event occurred (UTC)
        actor: Payer id, or "SYSTEM"
        cycle_id: Confirmation cycle the event belongs to (None outside a cycle)
        data: Event-specific context
        created_at: When this audit record was persisted
    """

    event_id: UUID = Field(default_factory=uuid4)
    event_type: AuditEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor: str
    cycle_id: Optional[UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(use_enum_values=False)
