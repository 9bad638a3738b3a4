import threading
from pathlib import Path

from pdfcompressor.compression.models import CompressionResult
from pdfcompressor.compression.orchestrator import Orchestrator, build_orchestrator
from pdfcompressor.compression.validation import build_request, format_file_size
from pdfcompressor.config.settings import Settings
from pdfcompressor.database.models import CompressionRecord
from pdfcompressor.database.repositories.compression_record_repository import (
    CompressionRecordRepository,
)
from pdfcompressor.logging.logger import Log
from pdfcompressor.service.file_loader import FileLoader


class CompressionService:
    """Caller-facing entry point: load -> validate -> compress -> record usage."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        file_loader: FileLoader,
        record_repo: CompressionRecordRepository | None = None,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ) -> None:
        self._orchestrator = orchestrator
        self._file_loader = file_loader
        self._record_repo = record_repo
        self._max_upload_bytes = max_upload_bytes

    def compress_file(
        self,
        path: Path,
        target: str,
        custom_kb: int | None = None,
        filename: str | None = None,
        client_address: str = "unknown",
        cancel_event: threading.Event | None = None,
    ) -> CompressionResult:
        """Compress the PDF at ``path`` and record the outcome."""
        original_name = filename or path.name
        data = self._file_loader.load(path)
        return self.compress_bytes(
            data,
            target,
            custom_kb=custom_kb,
            filename=original_name,
            client_address=client_address,
            cancel_event=cancel_event,
        )

    def compress_bytes(
        self,
        data: bytes,
        target: str,
        custom_kb: int | None = None,
        filename: str = "document.pdf",
        client_address: str = "unknown",
        cancel_event: threading.Event | None = None,
    ) -> CompressionResult:
        request = build_request(
            data,
            target,
            custom_kb=custom_kb,
            filename=filename,
            max_upload_bytes=self._max_upload_bytes,
        )
        Log.info(
            f"File received: {request.filename}, {format_file_size(len(data))}, "
            f"target {request.target_size_kb}KB ({request.target_class.value})"
        )
        result = self._orchestrator.compress(
            request.document,
            request.target_size_kb,
            filename=request.filename,
            cancel_event=cancel_event,
        )
        self._record(result, request.filename, client_address)
        return result

    def _record(self, result: CompressionResult, filename: str, client_address: str) -> None:
        """Persist usage statistics; a failed insert never fails the request."""
        if self._record_repo is None:
            return
        record = CompressionRecord.from_result(result, filename, user_ip=client_address)
        try:
            record_id = self._record_repo.save(record)
        except Exception as exc:
            Log.warning(
                f"Database save failed, but compression succeeded: {exc}",
                request_id=result.request_id,
            )
            return
        Log.debug(f"Saved compression record {record_id}", request_id=result.request_id)


def build_service(settings: Settings) -> CompressionService:
    """Build a CompressionService with all required collaborators."""
    record_repo = CompressionRecordRepository() if settings.record_usage else None
    return CompressionService(
        orchestrator=build_orchestrator(settings),
        file_loader=FileLoader(settings.max_upload_bytes),
        record_repo=record_repo,
        max_upload_bytes=settings.max_upload_bytes,
    )
