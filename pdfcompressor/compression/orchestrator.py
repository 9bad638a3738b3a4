import threading
import uuid
from dataclasses import dataclass

from pdfcompressor.backends.base import BaseCompressionBackend
from pdfcompressor.backends.factory import BackendFactory
from pdfcompressor.compression.artifacts import ArtifactManager
from pdfcompressor.compression.fallback import FallbackChain
from pdfcompressor.compression.models import CompressionResult, compression_ratio
from pdfcompressor.compression.validation import validate_target_size
from pdfcompressor.config.settings import Settings
from pdfcompressor.logging.logger import Log


@dataclass(frozen=True)
class OrchestratorConfig:
    """Read-only backend configuration shared by all requests."""

    backends: tuple[BaseCompressionBackend, ...]
    preferred_backend: str


class Orchestrator:
    """Compresses one document towards a size budget.

    Flow: validate -> ingest into a fresh arena -> fallback chain ->
    promote the winner. The arena is closed on every exit path, so only the
    promoted output survives the call.
    """

    def __init__(self, config: OrchestratorConfig, artifacts: ArtifactManager) -> None:
        self._config = config
        self._artifacts = artifacts
        self._chain = FallbackChain(config.backends, config.preferred_backend)

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    def compress(
        self,
        document: bytes,
        target_size_kb: int,
        filename: str = "document.pdf",
        cancel_event: threading.Event | None = None,
    ) -> CompressionResult:
        """Compress ``document`` as close to ``target_size_kb`` as the backends allow.

        Raises:
            ValidationError: if the target is out of range; no backend is called.
            ArtifactError: if scratch or output storage is unavailable.
            ExhaustionError: if no backend is configured or all of them failed.
            RequestCancelledError: if ``cancel_event`` was set mid-run.
        """
        validate_target_size(target_size_kb)
        request_id = uuid.uuid4().hex
        original_size = len(document)
        Log.info(
            f"Compressing {filename}: {original_size} bytes, target {target_size_kb}KB",
            request_id=request_id,
        )

        with self._artifacts.open_arena(request_id) as arena:
            source = arena.ingest("original", document)
            outcome = self._chain.compress_with_fallback(
                arena,
                source,
                original_size,
                target_size_kb,
                cancel_event=cancel_event,
            )
            best = outcome.convergence.best
            output_path = arena.promote(best.artifact, f"{request_id}_compressed.pdf")

        backend = outcome.backend
        backend_used = backend.display_name
        if outcome.is_fallback:
            backend_used = f"{backend_used} (Fallback)"

        result = CompressionResult(
            request_id=request_id,
            original_size_bytes=original_size,
            compressed_size_bytes=best.size_bytes,
            compression_ratio_percent=compression_ratio(original_size, best.size_bytes),
            backend_id=backend.backend_id,
            backend_used=backend_used,
            passes_used=outcome.convergence.passes_used,
            target_size_kb=target_size_kb,
            output_path=output_path,
        )
        Log.info(
            f"Compression successful using {backend_used}: "
            f"{result.original_size_bytes} -> {result.compressed_size_bytes} bytes "
            f"({result.compression_ratio_percent}%) in {result.passes_used} passes",
            request_id=request_id,
        )
        return result


def build_orchestrator(settings: Settings) -> Orchestrator:
    """Build an Orchestrator with the backends configured in settings."""
    config = OrchestratorConfig(
        backends=tuple(BackendFactory.create_all(settings)),
        preferred_backend=settings.preferred_backend.lower(),
    )
    artifacts = ArtifactManager(settings.scratch_dir, settings.output_dir)
    return Orchestrator(config, artifacts)
