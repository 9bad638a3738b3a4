import threading
from dataclasses import dataclass

from pdfcompressor.backends.base import BaseCompressionBackend
from pdfcompressor.compression.artifacts import ScratchArena, ScratchArtifact
from pdfcompressor.compression.exceptions import (
    ArtifactError,
    BackendError,
    RequestCancelledError,
)
from pdfcompressor.compression.models import FailureReason, ParameterSet
from pdfcompressor.compression.presets import max_passes, select_parameters
from pdfcompressor.logging.logger import Log


@dataclass(frozen=True)
class PassResult:
    """Output of one pass: the candidate artifact and its measured size."""

    artifact: ScratchArtifact
    size_bytes: int
    pass_index: int


@dataclass(frozen=True)
class ConvergenceOutcome:
    """Smallest pass seen during a run and how many passes were spent."""

    best: PassResult
    passes_used: int


class ConvergenceLoop:
    """Drives one backend through escalating passes until the target is met.

    A bounded greedy search: each pass uses strictly more aggressive parameters
    and takes the smallest output so far as its input. Every attempt counts
    towards the pass budget. Only the best artifact and the pass in flight
    are ever live.
    """

    def run(
        self,
        arena: ScratchArena,
        source: ScratchArtifact,
        original_size_bytes: int,
        target_size_kb: int,
        backend: BaseCompressionBackend,
        cancel_event: threading.Event | None = None,
    ) -> ConvergenceOutcome:
        """Run passes on ``backend``.

        Raises:
            BackendError: on the first failed pass; intermediates are released.
            RequestCancelledError: if cancelled between passes.
        """
        budget = max_passes(target_size_kb)
        target_bytes = target_size_kb * 1024

        Log.info(
            f"Starting {backend.display_name}: {original_size_bytes} bytes -> "
            f"{target_bytes} bytes, up to {budget} passes",
            request_id=arena.request_id,
        )
        best = self._run_pass(arena, backend, source, select_parameters(target_size_kb, 1), 1)
        passes_used = 1
        try:
            for pass_index in range(2, budget + 1):
                if best.size_bytes <= target_bytes:
                    break
                if cancel_event is not None and cancel_event.is_set():
                    raise RequestCancelledError(
                        f"Request {arena.request_id} cancelled before pass {pass_index}"
                    )
                params = select_parameters(target_size_kb, pass_index)
                candidate = self._run_pass(arena, backend, best.artifact, params, pass_index)
                passes_used = pass_index

                if candidate.size_bytes < best.size_bytes:
                    arena.release(best.artifact)
                    best = candidate
                else:
                    Log.info(
                        f"Pass {pass_index} did not improve on pass {best.pass_index} "
                        f"({candidate.size_bytes} >= {best.size_bytes} bytes)",
                        request_id=arena.request_id,
                    )
                    arena.release(candidate.artifact)
        except Exception:
            arena.release(best.artifact)
            raise

        Log.info(
            f"{backend.display_name} converged at {best.size_bytes} bytes "
            f"(best pass {best.pass_index} of {passes_used})",
            request_id=arena.request_id,
        )
        return ConvergenceOutcome(best=best, passes_used=passes_used)

    @staticmethod
    def _run_pass(
        arena: ScratchArena,
        backend: BaseCompressionBackend,
        current_input: ScratchArtifact,
        params: ParameterSet,
        pass_index: int,
    ) -> PassResult:
        output = arena.allocate(f"{backend.backend_id}-pass-{pass_index}")
        try:
            backend.compress(current_input.path, output.path, params)
            size_bytes = output.size()
            if size_bytes == 0:
                raise BackendError(
                    backend.backend_id,
                    FailureReason.MALFORMED_RESPONSE,
                    f"pass {pass_index} produced an empty file",
                )
        except ArtifactError as exc:
            arena.release(output)
            raise BackendError(
                backend.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                f"scratch storage error on pass {pass_index}: {exc}",
            ) from exc
        except Exception:
            arena.release(output)
            raise

        Log.info(
            f"Pass {pass_index}: {size_bytes} bytes ({params.describe()})",
            request_id=arena.request_id,
            backend=backend.backend_id,
        )
        return PassResult(artifact=output, size_bytes=size_bytes, pass_index=pass_index)
