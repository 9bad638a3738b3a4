import io
from pathlib import Path

import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from pdfcompressor.compression.artifacts import ArtifactManager


@pytest.fixture()
def artifact_manager(tmp_path: Path) -> ArtifactManager:
    return ArtifactManager(tmp_path / "scratch", tmp_path / "output")


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Hello PDF World")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a three-page PDF with text and a filled shape on every page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for page in range(1, 4):
        c.drawString(72, 720, f"Page {page} content")
        c.setFillColorRGB(0.2 * page, 0.4, 0.6)
        c.rect(72, 400, 300, 200, fill=1)
        c.showPage()
    c.save()
    return buf.getvalue()
