"""Scratch artifact lifecycle.

Every byte sequence materialized during a request lives in a per-request arena
(``<scratch_root>/<request_id>/``). An artifact is settled exactly once: either
promoted to the output directory or released (deleted). Closing the arena
releases whatever is still live, so all exit paths leave nothing behind.
"""

import shutil
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import TracebackType

from pdfcompressor.compression.exceptions import ArtifactError
from pdfcompressor.logging.logger import Log


class ArtifactState(str, Enum):
    LIVE = "live"
    PROMOTED = "promoted"
    RELEASED = "released"


@dataclass(eq=False)
class ScratchArtifact:
    """Handle to one file inside an arena."""

    request_id: str
    label: str
    path: Path
    state: ArtifactState = field(default=ArtifactState.LIVE)

    def size(self) -> int:
        """Size of the artifact on disk in bytes."""
        try:
            return self.path.stat().st_size
        except OSError as exc:
            raise ArtifactError(f"Cannot stat artifact {self.label}: {exc}") from exc

    def read_bytes(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise ArtifactError(f"Cannot read artifact {self.label}: {exc}") from exc

    def write_bytes(self, data: bytes) -> None:
        try:
            self.path.write_bytes(data)
        except OSError as exc:
            raise ArtifactError(f"Cannot write artifact {self.label}: {exc}") from exc


class ArtifactManager:
    """Creates arenas and keeps process-wide artifact accounting.

    The counters are shared by all arenas so tests (and operators) can check
    that ``allocated == released + promoted`` once requests have finished.
    """

    def __init__(self, scratch_root: Path, output_dir: Path) -> None:
        self._scratch_root = scratch_root
        self._output_dir = output_dir
        self._lock = threading.Lock()
        self.allocated_count = 0
        self.released_count = 0
        self.promoted_count = 0

    @property
    def scratch_root(self) -> Path:
        return self._scratch_root

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def live_count(self) -> int:
        with self._lock:
            return self.allocated_count - self.released_count - self.promoted_count

    def open_arena(self, request_id: str) -> "ScratchArena":
        """Create the scratch directory for a request.

        Raises:
            ArtifactError: if the scratch directory cannot be created.
        """
        arena = ScratchArena(self, request_id, self._scratch_root / request_id)
        arena.open()
        return arena

    def _count(self, state: ArtifactState | None) -> None:
        with self._lock:
            if state is None:
                self.allocated_count += 1
            elif state is ArtifactState.PROMOTED:
                self.promoted_count += 1
            else:
                self.released_count += 1


class ScratchArena:
    """Scoped owner of all artifacts of one request."""

    def __init__(self, manager: ArtifactManager, request_id: str, root: Path) -> None:
        self._manager = manager
        self._request_id = request_id
        self._root = root
        self._live: dict[int, ScratchArtifact] = {}
        self._sequence = 0
        self._closed = False

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def root(self) -> Path:
        return self._root

    @property
    def live_artifacts(self) -> list[ScratchArtifact]:
        return list(self._live.values())

    def open(self) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise ArtifactError(
                f"Cannot create scratch area {self._root}: {exc}"
            ) from exc

    def allocate(self, label: str) -> ScratchArtifact:
        """Reserve a new scratch path. Nothing is written yet."""
        if self._closed:
            raise ArtifactError(f"Arena {self._request_id} is closed")
        self._sequence += 1
        path = self._root / f"{self._sequence:03d}-{label}.pdf"
        artifact = ScratchArtifact(request_id=self._request_id, label=label, path=path)
        self._live[id(artifact)] = artifact
        self._manager._count(None)
        return artifact

    def ingest(self, label: str, data: bytes) -> ScratchArtifact:
        """Allocate an artifact and write ``data`` into it."""
        artifact = self.allocate(label)
        try:
            artifact.write_bytes(data)
        except ArtifactError:
            self.release(artifact)
            raise
        return artifact

    def promote(self, artifact: ScratchArtifact, filename: str) -> Path:
        """Move a live artifact to the output directory and hand it off.

        On failure the artifact stays live and is released on close.
        """
        self._require_live(artifact)
        destination = self._manager.output_dir / filename
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(artifact.path), str(destination))
        except OSError as exc:
            raise ArtifactError(f"Cannot promote artifact {artifact.label}: {exc}") from exc
        self._settle(artifact, ArtifactState.PROMOTED)
        Log.debug(
            f"Promoted artifact {artifact.label}",
            request_id=self._request_id,
            path=destination,
        )
        return destination

    def release(self, artifact: ScratchArtifact) -> None:
        """Delete a live artifact. Deletion errors are logged, not raised."""
        self._require_live(artifact)
        try:
            artifact.path.unlink(missing_ok=True)
        except OSError as exc:
            Log.warning(
                f"Failed to delete artifact {artifact.label}: {exc}",
                request_id=self._request_id,
            )
        self._settle(artifact, ArtifactState.RELEASED)

    def close(self) -> None:
        """Release every live artifact and remove the arena directory."""
        for artifact in list(self._live.values()):
            self.release(artifact)
        self._closed = True
        try:
            shutil.rmtree(self._root)
        except FileNotFoundError:
            pass
        except OSError as exc:
            Log.warning(
                f"Failed to remove scratch area {self._root}: {exc}",
                request_id=self._request_id,
            )

    def __enter__(self) -> "ScratchArena":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _require_live(self, artifact: ScratchArtifact) -> None:
        if self._live.get(id(artifact)) is not artifact:
            raise ArtifactError(
                f"Artifact {artifact.label} is not live in arena {self._request_id} "
                f"(state: {artifact.state.value})"
            )

    def _settle(self, artifact: ScratchArtifact, state: ArtifactState) -> None:
        del self._live[id(artifact)]
        artifact.state = state
        self._manager._count(state)
