import threading
from dataclasses import dataclass

from pdfcompressor.backends.base import BaseCompressionBackend
from pdfcompressor.compression.artifacts import ScratchArena, ScratchArtifact
from pdfcompressor.compression.convergence import ConvergenceLoop, ConvergenceOutcome
from pdfcompressor.compression.exceptions import (
    BackendError,
    ExhaustionError,
    RequestCancelledError,
)
from pdfcompressor.compression.models import BackendFailure
from pdfcompressor.logging.logger import Log


@dataclass(frozen=True)
class FallbackOutcome:
    """Convergence outcome plus the backend that produced it."""

    convergence: ConvergenceOutcome
    backend: BaseCompressionBackend
    is_fallback: bool
    failures: tuple[BackendFailure, ...] = ()


def order_backends(
    backends: tuple[BaseCompressionBackend, ...],
    preferred_backend: str,
) -> list[BaseCompressionBackend]:
    """Preferred backend first, then the rest in their configured order."""
    preferred = [b for b in backends if b.backend_id == preferred_backend]
    others = [b for b in backends if b.backend_id != preferred_backend]
    return preferred + others


class FallbackChain:
    """Tries backends one after another until one of them succeeds.

    Only hard failures advance the chain; a backend that ran out of passes
    above the target still counts as a success. Backends are never raced.
    """

    def __init__(
        self,
        backends: tuple[BaseCompressionBackend, ...],
        preferred_backend: str,
        loop: ConvergenceLoop | None = None,
    ) -> None:
        self._ordered = order_backends(backends, preferred_backend)
        self._loop = loop if loop is not None else ConvergenceLoop()

    def compress_with_fallback(
        self,
        arena: ScratchArena,
        source: ScratchArtifact,
        original_size_bytes: int,
        target_size_kb: int,
        cancel_event: threading.Event | None = None,
    ) -> FallbackOutcome:
        """Run the convergence loop on each configured backend in order.

        Raises:
            ExhaustionError: if nothing is configured or every backend failed.
            RequestCancelledError: if cancelled before a backend or pass starts.
        """
        failures: list[BackendFailure] = []
        attempted = 0

        for backend in self._ordered:
            if not backend.is_configured():
                Log.debug(
                    f"Skipping {backend.display_name}: not configured",
                    request_id=arena.request_id,
                )
                continue
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError(
                    f"Request {arena.request_id} cancelled before {backend.backend_id}"
                )

            attempted += 1
            try:
                outcome = self._loop.run(
                    arena,
                    source,
                    original_size_bytes,
                    target_size_kb,
                    backend,
                    cancel_event=cancel_event,
                )
            except BackendError as exc:
                failures.append(exc.to_failure())
                Log.warning(
                    f"{backend.display_name} failed ({exc.reason.value}): {exc.message}",
                    request_id=arena.request_id,
                )
                continue

            return FallbackOutcome(
                convergence=outcome,
                backend=backend,
                is_fallback=attempted > 1,
                failures=tuple(failures),
            )

        error = ExhaustionError(failures, no_backend_configured=attempted == 0)
        Log.error(str(error), request_id=arena.request_id)
        raise error
