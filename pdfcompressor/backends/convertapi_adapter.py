import base64
import binascii
from pathlib import Path
from typing import ClassVar

import httpx

from pdfcompressor.backends.base import DEFAULT_TIMEOUT_SECONDS, BaseCompressionBackend
from pdfcompressor.backends.http_errors import (
    TRANSPORT_ERRORS,
    ensure_status,
    parse_json,
    translate_transport_error,
)
from pdfcompressor.compression.exceptions import BackendError
from pdfcompressor.compression.models import FailureReason, ParameterSet, QualityTier


class ConvertApiBackend(BaseCompressionBackend):
    """Compresses PDFs with a single multipart request to ConvertAPI."""

    backend_id = "convertapi"
    display_name = "ConvertAPI"

    PRESETS: ClassVar[dict[QualityTier, str]] = {
        QualityTier.SCREEN: "web",
        QualityTier.EBOOK: "ebook",
        QualityTier.PRINTER: "printer",
        QualityTier.DEFAULT: "archive",
    }

    def __init__(
        self,
        *,
        secret: str,
        base_url: str = "https://v2.convertapi.com",
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout_seconds)
        self._secret = secret
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._secret)

    def compress(self, source: Path, destination: Path, params: ParameterSet) -> None:
        document = self._read_source(source)
        try:
            with httpx.Client(
                base_url=self._base_url,
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(
                    "/convert/pdf/to/compress",
                    headers={"Authorization": f"Bearer {self._secret}"},
                    files={"File": ("document.pdf", document, "application/pdf")},
                    data=self._form_fields(params),
                )
                ensure_status(self.backend_id, response, "compress")
                payload = parse_json(self.backend_id, response, "compress")
                content = self._extract_content(client, payload)
        except TRANSPORT_ERRORS as exc:
            raise translate_transport_error(self.backend_id, exc, "compress") from exc
        self._write_output(destination, content)

    def _form_fields(self, params: ParameterSet) -> dict[str, str]:
        remove_extras = "true" if params.aggressive else "false"
        return {
            "Preset": self.PRESETS[params.quality_tier],
            "ImageQuality": str(params.image_quality),
            "ImageResolution": str(params.image_dpi),
            "CompressImages": "true",
            "OptimizeFonts": "true",
            "RemoveForms": remove_extras,
            "RemoveMetadata": remove_extras,
            "RemoveAnnotations": remove_extras,
        }

    def _extract_content(self, client: httpx.Client, payload: dict[str, object]) -> bytes:
        files = payload.get("Files")
        if not isinstance(files, list) or not files or not isinstance(files[0], dict):
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                "response is missing Files",
            )
        first = files[0]
        if "FileData" in first:
            try:
                return base64.b64decode(str(first["FileData"]), validate=True)
            except binascii.Error as exc:
                raise BackendError(
                    self.backend_id,
                    FailureReason.MALFORMED_RESPONSE,
                    "FileData is not valid base64",
                ) from exc
        if "Url" in first:
            download = client.get(str(first["Url"]))
            ensure_status(self.backend_id, download, "download")
            return download.content
        raise BackendError(
            self.backend_id,
            FailureReason.MALFORMED_RESPONSE,
            "response has neither FileData nor Url",
        )
