from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path

import pymupdf

from pdfcompressor.backends.base import DEFAULT_TIMEOUT_SECONDS, BaseCompressionBackend
from pdfcompressor.compression.exceptions import BackendError
from pdfcompressor.compression.models import ColorStrategy, FailureReason, ParameterSet


class PyMuPdfBackend(BaseCompressionBackend):
    """Compresses PDFs in-process with PyMuPDF.

    Images above the target DPI are resampled and re-encoded, then the document
    is saved with garbage collection and deflate. The rewrite runs on a helper
    thread so the call can give up after ``timeout_seconds``; the output is
    only written when the rewrite finished in time.
    """

    backend_id = "pymupdf"
    display_name = "PyMuPDF"

    def __init__(
        self,
        *,
        enabled: bool = True,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(timeout_seconds)
        self._enabled = enabled

    def is_configured(self) -> bool:
        return self._enabled

    def compress(self, source: Path, destination: Path, params: ParameterSet) -> None:
        document = self._read_source(source)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pymupdf")
        future = executor.submit(self._rewrite, document, params)
        try:
            content = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as exc:
            raise BackendError(
                self.backend_id,
                FailureReason.TIMEOUT,
                f"rewrite exceeded {self.timeout_seconds}s",
            ) from exc
        except pymupdf.FileDataError as exc:
            raise BackendError(
                self.backend_id,
                FailureReason.UNSUPPORTED,
                f"document cannot be opened: {exc}",
            ) from exc
        except Exception as exc:
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                f"rewrite failed: {exc}",
            ) from exc
        finally:
            executor.shutdown(wait=False)
        self._write_output(destination, content)

    @staticmethod
    def _rewrite(document: bytes, params: ParameterSet) -> bytes:
        with pymupdf.open(stream=document, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
            doc.rewrite_images(
                dpi_threshold=params.image_dpi + 8,
                dpi_target=params.image_dpi,
                quality=params.image_quality,
                set_to_gray=params.color_strategy is ColorStrategy.GRAYSCALE,
            )
            if params.aggressive:
                doc.set_metadata({})
            return doc.tobytes(
                garbage=4 if params.aggressive else 3,
                deflate=True,
                deflate_images=True,
                deflate_fonts=True,
                clean=True,
            )
