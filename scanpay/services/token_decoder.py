"""Turn raw captured text into a DecodedPayload.

Parse failure is a normal outcome here, not an error: anything that is not
a JSON object comes back wrapped under the ``raw`` key.
"""

from __future__ import annotations

import json
import logging

from scanpay.models.scan import DecodedPayload, RawCapture

logger = logging.getLogger(__name__)


def decode(raw: RawCapture) -> DecodedPayload:
    """Decode one capture; never raises."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        return DecodedPayload.fallback(raw)

    if not isinstance(parsed, dict):
        # JSON scalars and arrays carry no category markers
        logger.debug("Capture parsed to %s, using fallback wrapper", type(parsed).__name__)
        return DecodedPayload.fallback(raw)

    return DecodedPayload(raw=raw, fields=parsed, structured=True)


__all__ = ["decode"]
