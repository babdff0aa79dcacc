"""SQLite store for pipeline audit events.

Events go to their own database file (scanpay/data/audit.db by default) and
are only ever inserted. Each call opens and closes its own connection, so
one repository can be shared between the request threads of the API and
the pipeline tasks. Inserts retry briefly when another writer holds the
database lock.
"""

from __future__ import annotations

import json
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Tuple
from uuid import UUID

from scanpay.models.audit import AuditEvent, AuditEventType

_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_events (
    event_id TEXT PRIMARY KEY,
    event_type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    actor TEXT NOT NULL,
    cycle_id TEXT,
    data_json TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_cycle_id ON audit_events(cycle_id);
CREATE INDEX IF NOT EXISTS idx_audit_event_type ON audit_events(event_type);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_events(timestamp);
"""

_COLUMNS = "event_id, event_type, timestamp, actor, cycle_id, data_json, created_at"


class AuditRepository:
    """Append-only audit_events table with JSON-encoded event data."""

    MAX_RETRIES = 3
    RETRY_DELAY_MS = 100

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: SQLite file to use; defaults to scanpay/data/audit.db
        """
        if db_path is None:
            data_dir = Path(__file__).parent.parent / "data"
            data_dir.mkdir(exist_ok=True)
            db_path = str(data_dir / "audit.db")

        self.db_path = db_path
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def save_event(self, event: AuditEvent) -> None:
        """Insert one event.

        Raises:
            sqlite3.OperationalError: if the database stays locked for every attempt,
                or on any other write failure
        """
        row = (
            str(event.event_id),
            event.event_type.value,
            event.timestamp.isoformat(),
            event.actor,
            str(event.cycle_id) if event.cycle_id else None,
            json.dumps(event.data),
            event.created_at.isoformat(),
        )

        attempt = 0
        while True:
            attempt += 1
            try:
                with self._connect() as conn:
                    conn.execute(f"INSERT INTO audit_events ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)", row)
                return
            except sqlite3.OperationalError as exc:
                if "locked" not in str(exc).lower():
                    raise
                if attempt >= self.MAX_RETRIES:
                    raise sqlite3.OperationalError(
                        f"Database locked after {self.MAX_RETRIES} attempts: {exc}"
                    ) from exc
                time.sleep(self.RETRY_DELAY_MS / 1000.0)

    def get_events_for_cycle(self, cycle_id: UUID, limit: int = 200) -> List[AuditEvent]:
        """Events of one confirmation cycle, newest first."""
        return self._select("WHERE cycle_id = ?", (str(cycle_id),), limit)

    def get_recent_events(self, limit: int = 200) -> List[AuditEvent]:
        return self._select("", (), limit)

    def get_events_by_type(self, event_type: AuditEventType, limit: int = 200) -> List[AuditEvent]:
        """Events of one type, newest first.

        Example:
            >>> rejected = repo.get_events_by_type(AuditEventType.SETTLEMENT_REJECTED)
        """
        return self._select("WHERE event_type = ?", (event_type.value,), limit)

    def count_events(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM audit_events").fetchone()[0]

    def _select(self, where: str, params: Tuple, limit: int) -> List[AuditEvent]:
        query = f"SELECT {_COLUMNS} FROM audit_events {where} ORDER BY timestamp DESC LIMIT ?"
        with self._connect() as conn:
            rows = conn.execute(query, (*params, limit)).fetchall()
        return [self._to_event(row) for row in rows]

    @staticmethod
    def _to_event(row: sqlite3.Row) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(row["event_id"]),
            event_type=AuditEventType(row["event_type"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            actor=row["actor"],
            cycle_id=UUID(row["cycle_id"]) if row["cycle_id"] else None,
            data=json.loads(row["data_json"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
