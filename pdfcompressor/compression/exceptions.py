from pdfcompressor.compression.models import BackendFailure, FailureReason


class CompressorError(Exception):
    """Base exception for all compression errors.

    `category` is the actionable, user-facing classification of the error.
    """

    category = "internal_error"


class ValidationError(CompressorError):
    """Raised when a request is rejected before any backend is invoked."""

    category = "invalid_request"


class BackendError(CompressorError):
    """Raised by a backend adapter when a compression attempt fails."""

    category = "backend_failed"

    def __init__(self, backend_id: str, reason: FailureReason, message: str) -> None:
        super().__init__(f"{backend_id}: {message}")
        self.backend_id = backend_id
        self.reason = reason
        self.message = message

    def to_failure(self) -> BackendFailure:
        return BackendFailure(
            backend_id=self.backend_id,
            reason=self.reason,
            message=self.message,
        )


class ExhaustionError(CompressorError):
    """Raised when no configured backend produced a result."""

    def __init__(
        self,
        failures: list[BackendFailure],
        no_backend_configured: bool = False,
    ) -> None:
        self.failures = list(failures)
        self.no_backend_configured = no_backend_configured
        if no_backend_configured:
            message = "No compression backend configured"
        else:
            reasons = ", ".join(f"{f.backend_id}={f.reason.value}" for f in self.failures)
            message = f"All compression backends failed ({reasons})"
        super().__init__(message)

    @property
    def category(self) -> str:  # type: ignore[override]
        if self.no_backend_configured:
            return "no_backend_configured"
        return "all_backends_failed"


class ArtifactError(CompressorError):
    """Raised when scratch or output storage cannot be read or written."""

    category = "storage_unavailable"


class RequestCancelledError(CompressorError):
    """Raised when the caller cancelled the request between passes."""

    category = "cancelled"
