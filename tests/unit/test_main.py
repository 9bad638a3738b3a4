import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from pdfcompressor.compression.exceptions import ExhaustionError, ValidationError
from pdfcompressor.compression.models import BackendFailure, CompressionResult, FailureReason
from pdfcompressor.config.settings import Settings
from pdfcompressor.main import build_parser, main


@pytest.fixture(autouse=True)
def mock_log() -> Iterator[MagicMock]:
    """Keep log lines out of the JSON printed on stdout."""
    with patch("pdfcompressor.main.Log") as mock:
        yield mock


def _settings(tmp_path: Path, **overrides: object) -> Settings:
    return Settings(
        _env_file=None,
        scratch_dir=tmp_path / "scratch",
        output_dir=tmp_path / "output",
        **overrides,
    )


def _result(tmp_path: Path) -> CompressionResult:
    return CompressionResult(
        request_id="abc",
        original_size_bytes=5_000_000,
        compressed_size_bytes=93_750,
        compression_ratio_percent=98.12,
        backend_id="ghostscript",
        backend_used="Ghostscript (Fallback)",
        passes_used=6,
        target_size_kb=150,
        output_path=tmp_path / "output" / "abc_compressed.pdf",
    )


class TestParser:
    def test_compress_defaults(self) -> None:
        args = build_parser().parse_args(["compress", "in.pdf"])
        assert args.command == "compress"
        assert args.file == Path("in.pdf")
        assert args.target == "150"
        assert args.custom_kb is None
        assert args.backend is None

    def test_custom_target(self) -> None:
        args = build_parser().parse_args(
            ["compress", "in.pdf", "--target", "custom", "--custom-kb", "250"]
        )
        assert (args.target, args.custom_kb) == ("custom", 250)

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMainCompress:
    def test_prints_result(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        service = MagicMock()
        service.compress_file.return_value = _result(tmp_path)
        with (
            patch("pdfcompressor.main.Settings", return_value=_settings(tmp_path)),
            patch("pdfcompressor.main.build_service", return_value=service),
        ):
            code = main(["compress", "in.pdf", "--target", "150"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["success"] is True
        assert output["compression_method"] == "Ghostscript (Fallback)"
        assert output["compression_ratio"] == 98.12
        assert output["passes_used"] == 6
        service.compress_file.assert_called_once_with(Path("in.pdf"), "150", custom_kb=None)

    def test_backend_override(self, tmp_path: Path) -> None:
        service = MagicMock()
        service.compress_file.return_value = _result(tmp_path)
        with (
            patch("pdfcompressor.main.Settings", return_value=_settings(tmp_path)),
            patch("pdfcompressor.main.build_service", return_value=service) as mock_build,
        ):
            main(["compress", "in.pdf", "--backend", "pymupdf"])

        assert mock_build.call_args.args[0].preferred_backend == "pymupdf"

    def test_unknown_backend_override(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("pdfcompressor.main.Settings", return_value=_settings(tmp_path)):
            code = main(["compress", "in.pdf", "--backend", "smallpdf"])

        assert code == 2
        assert json.loads(capsys.readouterr().out)["error"] == "invalid_configuration"

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (ValidationError("Invalid target size 30KB"), "invalid_request"),
            (ExhaustionError([]), "all_backends_failed"),
            (ExhaustionError([], no_backend_configured=True), "no_backend_configured"),
            (
                ExhaustionError([BackendFailure("convertapi", FailureReason.AUTH)]),
                "all_backends_failed",
            ),
        ],
    )
    def test_reports_error_category(
        self,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
        error: Exception,
        category: str,
    ) -> None:
        service = MagicMock()
        service.compress_file.side_effect = error
        with (
            patch("pdfcompressor.main.Settings", return_value=_settings(tmp_path)),
            patch("pdfcompressor.main.build_service", return_value=service),
        ):
            code = main(["compress", "in.pdf"])

        assert code == 1
        output = json.loads(capsys.readouterr().out)
        assert output == {"success": False, "error": category, "message": str(error)}

    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("pdfcompressor.main.Settings", return_value=_settings(tmp_path)):
            code = main(["compress", str(tmp_path / "missing.pdf")])

        assert code == 1
        assert json.loads(capsys.readouterr().out)["error"] == "file_not_found"


class TestMainUsageRecording:
    def test_initializes_and_closes_pool(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path, record_usage=True)
        with (
            patch("pdfcompressor.main.Settings", return_value=settings),
            patch("pdfcompressor.main.init_pool") as mock_init,
            patch("pdfcompressor.main.close_pool") as mock_close,
            patch("pdfcompressor.main.CompressionRecordRepository") as mock_repo_cls,
            patch("pdfcompressor.main.Janitor") as mock_janitor_cls,
        ):
            code = main(["cleanup"])

        assert code == 0
        mock_init.assert_called_once_with(settings)
        mock_repo_cls.return_value.ensure_schema.assert_called_once()
        mock_janitor_cls.return_value.run.assert_called_once()
        assert mock_janitor_cls.call_args.kwargs["record_repo"] is mock_repo_cls.return_value
        mock_close.assert_called_once()

    def test_skips_pool_when_disabled(self, tmp_path: Path) -> None:
        with (
            patch("pdfcompressor.main.Settings", return_value=_settings(tmp_path)),
            patch("pdfcompressor.main.init_pool") as mock_init,
        ):
            code = main(["cleanup"])

        assert code == 0
        mock_init.assert_not_called()

    def test_unreachable_database_disables_recording(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path, record_usage=True)
        with (
            patch("pdfcompressor.main.Settings", return_value=settings),
            patch("pdfcompressor.main.init_pool"),
            patch("pdfcompressor.main.close_pool") as mock_close,
            patch("pdfcompressor.main.CompressionRecordRepository") as mock_repo_cls,
            patch("pdfcompressor.main.Janitor") as mock_janitor_cls,
        ):
            mock_repo_cls.return_value.ensure_schema.side_effect = psycopg.OperationalError(
                "connection refused"
            )
            code = main(["cleanup"])

        assert code == 0
        assert mock_janitor_cls.call_args.kwargs["record_repo"] is None
        mock_janitor_cls.return_value.run.assert_called_once()
        mock_close.assert_called()

    def test_compress_runs_without_database(self, tmp_path: Path) -> None:
        service = MagicMock()
        service.compress_file.return_value = _result(tmp_path)
        settings = _settings(tmp_path, record_usage=True)
        with (
            patch("pdfcompressor.main.Settings", return_value=settings),
            patch("pdfcompressor.main.init_pool", side_effect=psycopg.OperationalError("down")),
            patch("pdfcompressor.main.close_pool") as mock_close,
            patch("pdfcompressor.main.build_service", return_value=service) as mock_build,
        ):
            code = main(["compress", "in.pdf"])

        assert code == 0
        assert mock_build.call_args.args[0].record_usage is False
        mock_close.assert_called()
