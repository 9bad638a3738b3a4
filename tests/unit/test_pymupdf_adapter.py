import io
import random
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from unittest.mock import MagicMock, patch

import pymupdf
import pytest
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from pdfcompressor.backends.pymupdf_adapter import PyMuPdfBackend
from pdfcompressor.compression.exceptions import BackendError
from pdfcompressor.compression.models import FailureReason
from pdfcompressor.compression.presets import select_parameters


def _image_pdf_bytes() -> bytes:
    """One page holding a large, noisy embedded raster image."""
    side = 1200
    samples = random.Random(7).randbytes(side * side * 3)
    pixmap = pymupdf.Pixmap(pymupdf.csRGB, side, side, samples, False)
    image = ImageReader(io.BytesIO(pixmap.tobytes("png")))
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawImage(image, 72, 200, width=300, height=300)
    c.drawString(72, 720, "Scanned page")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def source(tmp_path: Path) -> Path:
    path = tmp_path / "in.pdf"
    path.write_bytes(_image_pdf_bytes())
    return path


class TestPyMuPdfBackend:
    def test_rewrites_pdf(self, source: Path, tmp_path: Path) -> None:
        destination = tmp_path / "out.pdf"

        PyMuPdfBackend().compress(source, destination, select_parameters(150))

        output = destination.read_bytes()
        assert output.startswith(b"%PDF")
        assert len(output) < source.stat().st_size
        with pymupdf.open(destination) as doc:
            assert doc.page_count == 1
            assert "Scanned page" in doc[0].get_text()

    def test_text_only_pdf(self, sample_pdf_bytes: bytes, tmp_path: Path) -> None:
        source = tmp_path / "text.pdf"
        source.write_bytes(sample_pdf_bytes)
        destination = tmp_path / "out.pdf"

        PyMuPdfBackend().compress(source, destination, select_parameters(1000))

        with pymupdf.open(destination) as doc:
            assert "Hello PDF World" in doc[0].get_text()

    def test_grayscale_pass(self, multi_page_pdf_bytes: bytes, tmp_path: Path) -> None:
        source = tmp_path / "multi.pdf"
        source.write_bytes(multi_page_pdf_bytes)
        destination = tmp_path / "out.pdf"

        PyMuPdfBackend().compress(source, destination, select_parameters(100, 3))

        with pymupdf.open(destination) as doc:
            assert doc.page_count == 3

    def test_unreadable_input(self, tmp_path: Path) -> None:
        source = tmp_path / "broken.pdf"
        source.write_bytes(b"%PDF-1.4 this is not really a pdf")
        destination = tmp_path / "out.pdf"

        with pytest.raises(BackendError) as exc_info:
            PyMuPdfBackend().compress(source, destination, select_parameters(150))

        assert exc_info.value.reason in (
            FailureReason.UNSUPPORTED,
            FailureReason.MALFORMED_RESPONSE,
        )
        assert not destination.exists()

    def test_timeout(self, source: Path, tmp_path: Path) -> None:
        future = MagicMock()
        future.result.side_effect = FutureTimeoutError()
        executor = MagicMock()
        executor.submit.return_value = future
        destination = tmp_path / "out.pdf"

        with patch(
            "pdfcompressor.backends.pymupdf_adapter.ThreadPoolExecutor",
            return_value=executor,
        ):
            with pytest.raises(BackendError) as exc_info:
                PyMuPdfBackend(timeout_seconds=2).compress(
                    source, destination, select_parameters(150)
                )

        assert exc_info.value.reason is FailureReason.TIMEOUT
        future.result.assert_called_once_with(timeout=2)
        executor.shutdown.assert_called_once_with(wait=False)
        assert not destination.exists()

    def test_rewrite_failure(self, source: Path, tmp_path: Path) -> None:
        with patch.object(PyMuPdfBackend, "_rewrite", side_effect=RuntimeError("bad xref")):
            with pytest.raises(BackendError, match="bad xref") as exc_info:
                PyMuPdfBackend().compress(source, tmp_path / "out.pdf", select_parameters(150))
        assert exc_info.value.reason is FailureReason.MALFORMED_RESPONSE

    def test_can_be_disabled(self) -> None:
        assert PyMuPdfBackend(enabled=False).is_configured() is False
        assert PyMuPdfBackend().is_configured() is True
