from pdfcompressor.backends.base import BaseCompressionBackend
from pdfcompressor.backends.factory import BackendFactory

__all__ = ["BackendFactory", "BaseCompressionBackend"]
