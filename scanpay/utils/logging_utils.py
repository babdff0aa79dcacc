"""Append-only JSON-lines event log for the scan pipeline.

One object per line under artifacts/logs/pipeline.log. Records are meant for
operators tracing a session, so anything that could carry the scanned text
or a credential is stripped before it reaches disk.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)

LOG_DIR = Path(__file__).resolve().parents[2] / "artifacts" / "logs"
LOG_FILE = LOG_DIR / "pipeline.log"
SENSITIVE_KEYS = frozenset({"raw", "raw_text", "payload", "api_key"})


def _utc_stamp() -> str:
	now = datetime.now(timezone.utc)
	return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def redact(event: Mapping[Any, Any]) -> Dict[str, Any]:
	"""Copy ``event`` with string keys, minus the sensitive ones (case-insensitive)."""

	return {
		str(key): value
		for key, value in event.items()
		if key is not None and str(key).lower() not in SENSITIVE_KEYS
	}


def log_pipeline_event(event: Mapping[Any, Any], log_file: Path | None = None) -> None:
	"""Append one redacted, timestamped record; I/O failures are logged and dropped."""

	# resolved at call time so tests can point LOG_FILE elsewhere
	target = log_file or LOG_FILE
	record = {"timestamp": _utc_stamp(), **redact(event)}
	line = json.dumps(record, ensure_ascii=False, default=str)

	try:
		target.parent.mkdir(parents=True, exist_ok=True)
		with target.open("a", encoding="utf-8") as handle:
			handle.write(line + "\n")
	except OSError as exc:
		logger.debug("Failed to write pipeline log %s: %s", target, exc, exc_info=True)


def _tagged(kind: str, event: Mapping[Any, Any]) -> None:
	log_pipeline_event({"event_type": kind, **event})


def log_capture_event(event: Mapping[Any, Any]) -> None:
	"""Capture session lifecycle: started, released, open_failed."""

	_tagged("capture", event)


def log_settlement_event(event: Mapping[Any, Any]) -> None:
	"""Settlement attempts and their outcomes."""

	_tagged("settlement", event)
