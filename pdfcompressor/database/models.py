from dataclasses import dataclass
from datetime import datetime

from pdfcompressor.compression.models import CompressionResult


@dataclass
class CompressionRecord:
    """Represents a row from the pdf_compression_records table."""

    original_filename: str
    compressed_filename: str
    original_size: int
    compressed_size: int
    compression_ratio: float
    target_size: str
    compression_method: str
    passes_used: int
    user_ip: str = "unknown"
    id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_result(
        cls,
        result: CompressionResult,
        original_filename: str,
        user_ip: str = "unknown",
    ) -> "CompressionRecord":
        return cls(
            original_filename=original_filename,
            compressed_filename=result.output_path.name,
            original_size=result.original_size_bytes,
            compressed_size=result.compressed_size_bytes,
            compression_ratio=result.compression_ratio_percent,
            target_size=f"{result.target_size_kb}KB",
            compression_method=result.backend_used,
            passes_used=result.passes_used,
            user_ip=user_ip,
        )
