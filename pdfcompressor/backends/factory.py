from collections.abc import Callable
from typing import ClassVar

from pdfcompressor.backends.adobe_adapter import AdobeBackend
from pdfcompressor.backends.base import BaseCompressionBackend
from pdfcompressor.backends.convertapi_adapter import ConvertApiBackend
from pdfcompressor.backends.ghostscript_adapter import GhostscriptBackend
from pdfcompressor.backends.pdfco_adapter import PdfCoBackend
from pdfcompressor.backends.pymupdf_adapter import PyMuPdfBackend
from pdfcompressor.config.settings import Settings


def _convertapi(settings: Settings) -> BaseCompressionBackend:
    return ConvertApiBackend(
        secret=settings.convertapi_secret,
        base_url=settings.convertapi_base_url,
        timeout_seconds=settings.backend_timeout_seconds,
    )


def _pdfco(settings: Settings) -> BaseCompressionBackend:
    return PdfCoBackend(
        api_key=settings.pdfco_api_key,
        base_url=settings.pdfco_base_url,
        timeout_seconds=settings.backend_timeout_seconds,
    )


def _adobe(settings: Settings) -> BaseCompressionBackend:
    return AdobeBackend(
        client_id=settings.adobe_client_id,
        client_secret=settings.adobe_client_secret,
        organization_id=settings.adobe_organization_id,
        base_url=settings.adobe_base_url,
        ims_url=settings.adobe_ims_url,
        poll_interval_seconds=settings.adobe_poll_interval_seconds,
        timeout_seconds=settings.backend_timeout_seconds,
    )


def _ghostscript(settings: Settings) -> BaseCompressionBackend:
    return GhostscriptBackend(
        binary=settings.ghostscript_binary,
        timeout_seconds=settings.backend_timeout_seconds,
    )


def _pymupdf(settings: Settings) -> BaseCompressionBackend:
    return PyMuPdfBackend(
        enabled=settings.pymupdf_enabled,
        timeout_seconds=settings.backend_timeout_seconds,
    )


class BackendFactory:
    """Creates the compression backends named in settings."""

    BUILDERS: ClassVar[dict[str, Callable[[Settings], BaseCompressionBackend]]] = {
        "convertapi": _convertapi,
        "pdfco": _pdfco,
        "adobe": _adobe,
        "ghostscript": _ghostscript,
        "pymupdf": _pymupdf,
    }

    @classmethod
    def create(cls, backend_id: str, settings: Settings) -> BaseCompressionBackend:
        builder = cls.BUILDERS.get(backend_id.lower())
        if builder is None:
            raise ValueError(
                f"Unknown compression backend '{backend_id}'. Choose from: {list(cls.BUILDERS)}"
            )
        return builder(settings)

    @classmethod
    def create_all(cls, settings: Settings) -> list[BaseCompressionBackend]:
        """Create every backend in ``backend_order``, preserving that order.

        Backends without credentials are still created; the fallback chain
        skips them at request time.
        """
        backend_ids = list(dict.fromkeys(settings.backend_ids))
        preferred = settings.preferred_backend.lower()
        if preferred not in backend_ids:
            raise ValueError(
                f"Preferred backend '{preferred}' is not listed in backend_order {backend_ids}"
            )
        return [cls.create(backend_id, settings) for backend_id in backend_ids]
