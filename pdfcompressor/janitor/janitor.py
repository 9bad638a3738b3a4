"""Background cleanup of abandoned artifacts and old usage records.

Arenas are always closed by the orchestrator, so anything left in the scratch
directory belongs to a crashed process. Promoted outputs are kept for the
retention window so callers can download them.
"""

import shutil
import time
from dataclasses import dataclass
from pathlib import Path

from pdfcompressor.database.repositories.compression_record_repository import (
    CompressionRecordRepository,
)
from pdfcompressor.logging.logger import Log


@dataclass
class JanitorReport:
    files_deleted: int = 0
    arenas_deleted: int = 0
    records_deleted: int = 0


class Janitor:
    """Deletes stale scratch arenas, expired outputs and old usage records."""

    def __init__(
        self,
        scratch_dir: Path,
        output_dir: Path,
        file_retention_seconds: int,
        record_retention_days: int,
        record_repo: CompressionRecordRepository | None = None,
    ) -> None:
        self._scratch_dir = scratch_dir
        self._output_dir = output_dir
        self._file_retention_seconds = file_retention_seconds
        self._record_retention_days = record_retention_days
        self._record_repo = record_repo

    def run(self, now: float | None = None) -> JanitorReport:
        cutoff = (now if now is not None else time.time()) - self._file_retention_seconds
        report = JanitorReport()
        report.arenas_deleted = self._purge_arenas(cutoff)
        report.files_deleted = self._purge_outputs(cutoff)
        if self._record_repo is not None:
            report.records_deleted = self._record_repo.delete_older_than(
                self._record_retention_days
            )
        Log.info(
            f"Cleanup finished: {report.arenas_deleted} arenas, "
            f"{report.files_deleted} files, {report.records_deleted} records removed"
        )
        return report

    def _purge_arenas(self, cutoff: float) -> int:
        if not self._scratch_dir.is_dir():
            return 0
        deleted = 0
        for entry in self._scratch_dir.iterdir():
            if not self._is_expired(entry, cutoff):
                continue
            try:
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
            except OSError as exc:
                Log.warning(f"Failed to delete stale scratch entry {entry}: {exc}")
                continue
            deleted += 1
        return deleted

    def _purge_outputs(self, cutoff: float) -> int:
        if not self._output_dir.is_dir():
            return 0
        deleted = 0
        for entry in self._output_dir.iterdir():
            if not entry.is_file() or not self._is_expired(entry, cutoff):
                continue
            try:
                entry.unlink()
            except OSError as exc:
                Log.warning(f"Failed to delete expired output {entry}: {exc}")
                continue
            deleted += 1
        return deleted

    @staticmethod
    def _is_expired(entry: Path, cutoff: float) -> bool:
        try:
            return entry.stat().st_mtime < cutoff
        except FileNotFoundError:
            return False
