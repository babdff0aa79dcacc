"""Error taxonomy for the scan-to-settlement pipeline.

Components raise these; ScanPipeline is the only place that catches them
and turns them into user-visible notices.
"""


class ScanPipelineError(Exception):
    """Base class for pipeline failures that end in a user notice."""

    notice = "Something went wrong"

    def __init__(self, message: str | None = None, notice: str | None = None):
        super().__init__(message or notice or self.notice)
        if notice:
            self.notice = notice


class UnclassifiablePayloadError(ScanPipelineError):
    """Decoded payload matched neither the driver nor the merchant shape."""

    notice = "Unrecognized QR code format"


class ResolutionNotFoundError(ScanPipelineError):
    """No active, unexpired token record matched the scanned payload."""

    notice = "Invalid or inactive driver QR code"


class ServiceUnavailableError(ScanPipelineError):
    """Transport failure while reading from the reference or wallet store."""

    notice = "Invalid QR code or service unavailable"


class InvalidIntentError(ScanPipelineError):
    """Amount missing, unparsable or not strictly positive."""

    notice = "Please enter a valid amount"


class WalletFrozenError(ScanPipelineError):
    notice = "Your wallet is frozen. You cannot make payments at this time."


class CaptureSessionError(ScanPipelineError):
    """Illegal capture session transition (e.g. a second start)."""

    notice = "Scanner is already running"


class SettlementTransportError(ScanPipelineError):
    """Settlement call returned no structured result."""

    notice = "Payment failed"
