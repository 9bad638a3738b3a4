import time
from pathlib import Path
from typing import Any

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
from pdfcompressor.logging.logger import Log

_TOKEN_SCOPE = "openid,AdobeID,DCAPI"


class AdobeBackend(BaseCompressionBackend):
    """Compresses PDFs with Adobe PDF Services.

    Sequence: client-credentials token -> create asset -> upload -> start a
    compresspdf job -> poll the job until done -> download the result. The
    whole sequence shares one deadline of ``timeout_seconds``.
    """

    backend_id = "adobe"
    display_name = "Adobe PDF Services"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        organization_id: str,
        base_url: str = "https://pdf-services.adobe.io",
        ims_url: str = "https://ims-na1.adobelogin.com/ims/token/v3",
        poll_interval_seconds: float = 2.0,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout_seconds)
        self._client_id = client_id
        self._client_secret = client_secret
        self._organization_id = organization_id
        self._base_url = base_url.rstrip("/")
        self._ims_url = ims_url
        self._poll_interval_seconds = poll_interval_seconds
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret and self._organization_id)

    @staticmethod
    def compression_level(params: ParameterSet) -> str:
        if params.extreme or params.quality_tier is QualityTier.SCREEN:
            return "HIGH"
        if params.quality_tier is QualityTier.EBOOK:
            return "MEDIUM"
        return "LOW"

    def compress(self, source: Path, destination: Path, params: ParameterSet) -> None:
        document = self._read_source(source)
        deadline = time.monotonic() + self.timeout_seconds
        step = "authenticate"
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                token = self._access_token(client)
                headers = self._headers(token)
                step = "upload"
                asset_id = self._upload(client, headers, document)
                step = "compress"
                job_url = self._start_job(client, headers, asset_id, params)
                step = "poll"
                download_uri = self._wait_for_job(client, headers, job_url, deadline)
                step = "download"
                download = client.get(download_uri)
                ensure_status(self.backend_id, download, step)
                content = download.content
        except TRANSPORT_ERRORS as exc:
            raise translate_transport_error(self.backend_id, exc, step) from exc
        self._write_output(destination, content)

    def _access_token(self, client: httpx.Client) -> str:
        response = client.post(
            self._ims_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "scope": _TOKEN_SCOPE,
            },
        )
        if response.status_code in (400, 401, 403):
            raise BackendError(
                self.backend_id,
                FailureReason.AUTH,
                f"authentication failed with HTTP {response.status_code}",
            )
        ensure_status(self.backend_id, response, "authenticate")
        token = parse_json(self.backend_id, response, "authenticate").get("access_token")
        if not token:
            raise BackendError(
                self.backend_id,
                FailureReason.AUTH,
                "authentication response has no access_token",
            )
        return str(token)

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "x-api-key": self._client_id,
            "x-gw-ims-org-id": self._organization_id,
        }

    def _upload(self, client: httpx.Client, headers: dict[str, str], document: bytes) -> str:
        response = client.post(
            f"{self._base_url}/assets",
            json={"mediaType": "application/pdf"},
            headers=headers,
        )
        ensure_status(self.backend_id, response, "create asset")
        payload = parse_json(self.backend_id, response, "create asset")
        upload_uri = payload.get("uploadUri")
        asset_id = payload.get("assetID")
        if not upload_uri or not asset_id:
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                "create asset response is missing uploadUri or assetID",
            )
        upload = client.put(
            str(upload_uri),
            content=document,
            headers={"Content-Type": "application/pdf"},
        )
        ensure_status(self.backend_id, upload, "upload")
        return str(asset_id)

    def _start_job(
        self,
        client: httpx.Client,
        headers: dict[str, str],
        asset_id: str,
        params: ParameterSet,
    ) -> str:
        level = self.compression_level(params)
        response = client.post(
            f"{self._base_url}/operation/compresspdf",
            json={"assetID": asset_id, "compressionLevel": level},
            headers=headers,
        )
        ensure_status(self.backend_id, response, "compress", expected=(201,))
        location = response.headers.get("location")
        if not location:
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                "compress response has no job location",
            )
        Log.debug(f"Adobe compresspdf job started with level {level}")
        return location

    def _wait_for_job(
        self,
        client: httpx.Client,
        headers: dict[str, str],
        job_url: str,
        deadline: float,
    ) -> str:
        while True:
            response = client.get(job_url, headers=headers)
            ensure_status(self.backend_id, response, "poll")
            payload = parse_json(self.backend_id, response, "poll")
            status = str(payload.get("status", "")).lower()
            if status == "done":
                return self._download_uri(payload)
            if status == "failed":
                error = payload.get("error") or {}
                message = error.get("message", "job failed") if isinstance(error, dict) else error
                raise BackendError(
                    self.backend_id,
                    FailureReason.MALFORMED_RESPONSE,
                    f"compress job failed: {message}",
                )
            if time.monotonic() + self._poll_interval_seconds > deadline:
                raise BackendError(
                    self.backend_id,
                    FailureReason.TIMEOUT,
                    "compress job did not finish before the deadline",
                )
            time.sleep(self._poll_interval_seconds)

    def _download_uri(self, payload: dict[str, Any]) -> str:
        asset = payload.get("asset")
        uri = asset.get("downloadUri") if isinstance(asset, dict) else None
        if not uri:
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                "finished job has no downloadUri",
            )
        return str(uri)
