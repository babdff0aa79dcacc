"""Live capture session state machine.

    IDLE --start()--> CAPTURING --decode--> DECODED --handler returns--> IDLE
                          |
                          +----stop()----> STOPPED --release--> IDLE

Only one capture handle may exist at a time. A decode releases the handle
before the text is handed on, and the session stays DECODED until the
downstream handler returns, so capture never overlaps with the
classification of a previous result. Releasing the handle may fail; the
failure is logged and the state still ends at IDLE.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from scanpay.utils.exceptions import CaptureSessionError
from scanpay.utils.logging_utils import log_capture_event

logger = logging.getLogger(__name__)

DecodedHandler = Callable[[str], Awaitable[None]]
ErrorHandler = Callable[[Exception], None]

CAMERA_UNAVAILABLE_MESSAGE = "Unable to start the camera"


class CaptureHandle(Protocol):
    async def release(self) -> None:
        ...


class CaptureSource(Protocol):
    def open(self, on_decoded: DecodedHandler, on_error: ErrorHandler) -> CaptureHandle:
        """Start producing captures; returns the handle that stops them."""
        ...


class CaptureState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DECODED = "decoded"
    STOPPED = "stopped"


class CaptureSessionController:
    """Owns the single capture handle and feeds decoded text downstream."""

    def __init__(self, source: CaptureSource, on_capture: DecodedHandler):
        self.source = source
        self.on_capture = on_capture
        self.state = CaptureState.IDLE
        self._handle: Optional[CaptureHandle] = None

    @property
    def is_capturing(self) -> bool:
        return self.state == CaptureState.CAPTURING

    def start(self) -> None:
        """Open a capture handle.

        Raises:
            CaptureSessionError: if a session is already active, or the
                source could not be opened (state stays IDLE)
        """
        if self.state != CaptureState.IDLE:
            raise CaptureSessionError(f"Cannot start capture while {self.state.value}")
        try:
            handle = self.source.open(self._on_decoded, self._on_error)
        except Exception as exc:
            logger.error("Error starting scanner: %s", exc)
            log_capture_event({"status": "open_failed", "error": type(exc).__name__})
            raise CaptureSessionError(
                f"Capture source failed to open: {type(exc).__name__}",
                notice=CAMERA_UNAVAILABLE_MESSAGE,
            ) from exc
        self._handle = handle
        self.state = CaptureState.CAPTURING
        log_capture_event({"status": "started"})

    async def stop(self) -> None:
        """Stop an active session; a no-op when nothing is capturing."""
        if self.state != CaptureState.CAPTURING:
            return
        self.state = CaptureState.STOPPED
        try:
            await self._release()
        finally:
            self.state = CaptureState.IDLE

    async def _on_decoded(self, text: str) -> None:
        if self.state != CaptureState.CAPTURING:
            # late frame from a handle that is already being released
            logger.debug("Ignoring capture delivered in state %s", self.state.value)
            return
        self.state = CaptureState.DECODED
        try:
            await self._release()
            await self.on_capture(text)
        finally:
            self.state = CaptureState.IDLE

    def _on_error(self, error: Exception) -> None:
        # source errors fire on nearly every frame without a code in view
        logger.debug("Capture source error: %s", error)

    async def _release(self) -> None:
        handle, self._handle = self._handle, None
        try:
            if handle is not None:
                await handle.release()
        except Exception as exc:
            logger.error("Error stopping scanner: %s", exc)
        log_capture_event({"status": "released", "reason": self.state.value})
