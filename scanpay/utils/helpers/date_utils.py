"""Date helpers for token expiry."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Naive values are taken as UTC. A trailing ``Z`` is accepted. Returns
    None for empty input; raises ValueError for garbage.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_expired(expires_at: Union[str, datetime, None], now: Optional[datetime] = None) -> bool:
    """True only when an expiry is set and lies strictly in the past."""
    expiry = parse_timestamp(expires_at)
    if expiry is None:
        return False
    current = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    return expiry < current
