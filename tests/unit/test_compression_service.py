from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from backend_stubs import StubBackend, fixed_sizes

from pdfcompressor.compression.artifacts import ArtifactManager
from pdfcompressor.compression.exceptions import ExhaustionError, ValidationError
from pdfcompressor.compression.orchestrator import Orchestrator, OrchestratorConfig
from pdfcompressor.config.settings import Settings
from pdfcompressor.database.models import CompressionRecord
from pdfcompressor.service.compression_service import CompressionService, build_service
from pdfcompressor.service.file_loader import FileLoader


def _service(
    manager: ArtifactManager,
    backend: StubBackend,
    record_repo: MagicMock | None = None,
) -> CompressionService:
    config = OrchestratorConfig(backends=(backend,), preferred_backend=backend.backend_id)
    return CompressionService(
        orchestrator=Orchestrator(config, manager),
        file_loader=FileLoader(),
        record_repo=record_repo,
    )


class TestCompressBytes:
    def test_compresses_tier_target(
        self, artifact_manager: ArtifactManager, sample_pdf_bytes: bytes
    ) -> None:
        backend = StubBackend("stub", fixed_sizes(500))
        service = _service(artifact_manager, backend)

        result = service.compress_bytes(sample_pdf_bytes, "180", filename="a.pdf")

        assert result.target_size_kb == 180
        assert result.compressed_size_bytes == 500
        assert result.output_path.exists()

    def test_custom_target(
        self, artifact_manager: ArtifactManager, sample_pdf_bytes: bytes
    ) -> None:
        service = _service(artifact_manager, StubBackend("stub", fixed_sizes(500)))

        result = service.compress_bytes(sample_pdf_bytes, "custom", custom_kb=250)

        assert result.target_size_kb == 250

    def test_invalid_document_is_rejected_before_compression(
        self, artifact_manager: ArtifactManager
    ) -> None:
        backend = StubBackend("stub", fixed_sizes(500))
        service = _service(artifact_manager, backend)

        with pytest.raises(ValidationError, match="Invalid PDF"):
            service.compress_bytes(b"GIF89a", "150", filename="a.pdf")

        assert backend.calls == []
        assert artifact_manager.allocated_count == 0

    def test_upload_limit(self, artifact_manager: ArtifactManager, sample_pdf_bytes: bytes) -> None:
        config = OrchestratorConfig(
            backends=(StubBackend("stub", fixed_sizes(500)),), preferred_backend="stub"
        )
        service = CompressionService(
            orchestrator=Orchestrator(config, artifact_manager),
            file_loader=FileLoader(),
            max_upload_bytes=16,
        )
        with pytest.raises(ValidationError, match="exceeds"):
            service.compress_bytes(sample_pdf_bytes, "150")


class TestUsageRecording:
    def test_records_successful_compression(
        self, artifact_manager: ArtifactManager, sample_pdf_bytes: bytes
    ) -> None:
        repo = MagicMock()
        repo.save.return_value = 1
        service = _service(artifact_manager, StubBackend("stub", fixed_sizes(500)), repo)

        result = service.compress_bytes(
            sample_pdf_bytes, "150", filename="scan.pdf", client_address="10.1.2.3"
        )

        record = repo.save.call_args.args[0]
        assert isinstance(record, CompressionRecord)
        assert record.original_filename == "scan.pdf"
        assert record.compressed_filename == result.output_path.name
        assert record.target_size == "150KB"
        assert record.compression_method == "STUB"
        assert record.user_ip == "10.1.2.3"

    def test_database_failure_does_not_fail_request(
        self, artifact_manager: ArtifactManager, sample_pdf_bytes: bytes
    ) -> None:
        repo = MagicMock()
        repo.save.side_effect = RuntimeError("connection refused")
        service = _service(artifact_manager, StubBackend("stub", fixed_sizes(500)), repo)

        with patch("pdfcompressor.service.compression_service.Log") as mock_log:
            result = service.compress_bytes(sample_pdf_bytes, "150")

        assert result.compressed_size_bytes == 500
        mock_log.warning.assert_called_once()
        assert "compression succeeded" in mock_log.warning.call_args.args[0]

    def test_failed_compression_is_not_recorded(
        self, artifact_manager: ArtifactManager, sample_pdf_bytes: bytes
    ) -> None:
        repo = MagicMock()
        service = _service(artifact_manager, StubBackend("stub", fixed_sizes(0)), repo)

        with pytest.raises(ExhaustionError):
            service.compress_bytes(sample_pdf_bytes, "150")

        repo.save.assert_not_called()


class TestCompressFile:
    def test_loads_and_compresses(
        self, artifact_manager: ArtifactManager, sample_pdf_bytes: bytes, tmp_path: Path
    ) -> None:
        path = tmp_path / "upload.pdf"
        path.write_bytes(sample_pdf_bytes)
        repo = MagicMock()
        service = _service(artifact_manager, StubBackend("stub", fixed_sizes(500)), repo)

        result = service.compress_file(path, "100")

        assert result.original_size_bytes == len(sample_pdf_bytes)
        assert repo.save.call_args.args[0].original_filename == "upload.pdf"

    def test_missing_file(self, artifact_manager: ArtifactManager, tmp_path: Path) -> None:
        service = _service(artifact_manager, StubBackend("stub", fixed_sizes(500)))
        with pytest.raises(FileNotFoundError):
            service.compress_file(tmp_path / "nope.pdf", "150")


class TestBuildService:
    def test_without_usage_recording(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, scratch_dir=tmp_path / "s", output_dir=tmp_path / "o")
        service = build_service(settings)
        assert isinstance(service, CompressionService)
        assert service._record_repo is None

    def test_with_usage_recording(self, tmp_path: Path) -> None:
        settings = Settings(
            _env_file=None,
            scratch_dir=tmp_path / "s",
            output_dir=tmp_path / "o",
            record_usage=True,
        )
        assert build_service(settings)._record_repo is not None
