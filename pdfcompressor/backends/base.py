from abc import ABC, abstractmethod
from pathlib import Path

from pdfcompressor.compression.exceptions import ArtifactError, BackendError
from pdfcompressor.compression.models import FailureReason, ParameterSet

DEFAULT_TIMEOUT_SECONDS = 120


class BaseCompressionBackend(ABC):
    """Contract for all compression backend adapters."""

    backend_id: str = ""
    display_name: str = ""

    def __init__(self, timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> int:
        return self._timeout_seconds

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True when credentials or tooling for this backend exist."""

    @abstractmethod
    def compress(self, source: Path, destination: Path, params: ParameterSet) -> None:
        """Compress the PDF at ``source`` into ``destination``.

        Args:
            source: Input PDF on scratch storage.
            destination: Scratch path owned by the caller; the only file the
                backend may create.
            params: Parameters for this pass.

        Raises:
            BackendError: on any failure, including timeouts.
        """

    def _read_source(self, source: Path) -> bytes:
        try:
            return source.read_bytes()
        except OSError as exc:
            raise ArtifactError(f"Cannot read input {source.name}: {exc}") from exc

    def _write_output(self, destination: Path, content: bytes) -> None:
        if not content:
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                "backend returned an empty document",
            )
        try:
            destination.write_bytes(content)
        except OSError as exc:
            raise ArtifactError(f"Cannot write output {destination.name}: {exc}") from exc

    def __repr__(self) -> str:
        return f"{type(self).__name__}(backend_id={self.backend_id!r})"
