import json
from pathlib import Path

import httpx

from pdfcompressor.backends.base import DEFAULT_TIMEOUT_SECONDS, BaseCompressionBackend
from pdfcompressor.backends.http_errors import (
    TRANSPORT_ERRORS,
    ensure_status,
    parse_json,
    translate_transport_error,
)
from pdfcompressor.compression.exceptions import BackendError
from pdfcompressor.compression.models import FailureReason, ParameterSet


class PdfCoBackend(BaseCompressionBackend):
    """Compresses PDFs through PDF.co: presigned upload, compress, download."""

    backend_id = "pdfco"
    display_name = "PDF.co"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.pdf.co",
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout_seconds)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def compress(self, source: Path, destination: Path, params: ParameterSet) -> None:
        document = self._read_source(source)
        step = "upload"
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                file_url = self._upload(client, document)
                step = "compress"
                result_url = self._compress(client, file_url, params)
                step = "download"
                download = client.get(result_url)
                ensure_status(self.backend_id, download, step)
                content = download.content
        except TRANSPORT_ERRORS as exc:
            raise translate_transport_error(self.backend_id, exc, step) from exc
        self._write_output(destination, content)

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._api_key}

    def _upload(self, client: httpx.Client, document: bytes) -> str:
        presign = client.get(
            f"{self._base_url}/v1/file/upload/get-presigned-url",
            params={"name": "document.pdf", "contenttype": "application/pdf"},
            headers=self._headers(),
        )
        ensure_status(self.backend_id, presign, "presign")
        payload = parse_json(self.backend_id, presign, "presign")
        presigned_url = payload.get("presignedUrl")
        file_url = payload.get("url")
        if payload.get("error") or not presigned_url or not file_url:
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                f"presign rejected: {payload.get('message', 'missing presignedUrl')}",
            )
        upload = client.put(
            str(presigned_url),
            content=document,
            headers={"Content-Type": "application/pdf"},
        )
        ensure_status(self.backend_id, upload, "upload")
        return str(file_url)

    def _compress(self, client: httpx.Client, file_url: str, params: ParameterSet) -> str:
        profiles = {
            "CompressImages": True,
            "ImageQuality": params.image_quality,
            "RemoveAnnotations": params.aggressive,
            "OptimizeFonts": True,
        }
        response = client.post(
            f"{self._base_url}/v1/pdf/compress",
            json={"url": file_url, "profiles": json.dumps(profiles), "async": False},
            headers=self._headers(),
        )
        ensure_status(self.backend_id, response, "compress")
        payload = parse_json(self.backend_id, response, "compress")
        result_url = payload.get("url")
        if payload.get("error") or not result_url:
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                f"compress rejected: {payload.get('message', 'missing url')}",
            )
        return str(result_url)
