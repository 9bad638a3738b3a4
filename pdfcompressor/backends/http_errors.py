"""Translation of httpx responses and exceptions into BackendError."""

from typing import Any

import httpx

from pdfcompressor.compression.exceptions import BackendError
from pdfcompressor.compression.models import FailureReason

_AUTH_STATUSES = frozenset({401, 403})
_TRANSIENT_STATUSES = frozenset({408, 429})

# InvalidURL is not an HTTPError; it surfaces when a response carries a bad link.
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


def reason_for_status(status_code: int) -> FailureReason:
    if status_code in _AUTH_STATUSES:
        return FailureReason.AUTH
    if status_code in _TRANSIENT_STATUSES or status_code >= 500:
        return FailureReason.NETWORK
    return FailureReason.MALFORMED_RESPONSE


def ensure_status(
    backend_id: str,
    response: httpx.Response,
    step: str,
    expected: tuple[int, ...] = (200,),
) -> None:
    """Raise BackendError unless the response status is one of ``expected``."""
    if response.status_code in expected:
        return
    raise BackendError(
        backend_id,
        reason_for_status(response.status_code),
        f"{step} failed with HTTP {response.status_code}",
    )


def translate_transport_error(
    backend_id: str, exc: httpx.HTTPError | httpx.InvalidURL, step: str
) -> BackendError:
    """Map an httpx exception to a BackendError; the caller raises it."""
    if isinstance(exc, httpx.InvalidURL):
        return BackendError(
            backend_id, FailureReason.MALFORMED_RESPONSE, f"{step} received an invalid URL"
        )
    if isinstance(exc, httpx.TimeoutException):
        return BackendError(backend_id, FailureReason.TIMEOUT, f"{step} timed out")
    return BackendError(backend_id, FailureReason.NETWORK, f"{step} connection failed: {exc}")


def parse_json(backend_id: str, response: httpx.Response, step: str) -> dict[str, Any]:
    """Decode a JSON object body or raise a malformed-response BackendError."""
    try:
        payload = response.json()
    except ValueError as exc:
        raise BackendError(
            backend_id,
            FailureReason.MALFORMED_RESPONSE,
            f"{step} returned invalid JSON",
        ) from exc
    if not isinstance(payload, dict):
        raise BackendError(
            backend_id,
            FailureReason.MALFORMED_RESPONSE,
            f"{step} returned a non-object JSON payload",
        )
    return payload
