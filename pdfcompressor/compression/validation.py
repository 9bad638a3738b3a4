"""Caller-facing request validation."""

from pathlib import PurePath

from pdfcompressor.compression.exceptions import ValidationError
from pdfcompressor.compression.models import CompressionRequest, TargetClass

MIN_TARGET_KB = 50
MAX_TARGET_KB = 5000
DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024
PDF_MAGIC = b"%PDF"

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def validate_target_size(target_size_kb: int) -> int:
    """Raises ValidationError unless the target is within [50, 5000] KB."""
    if isinstance(target_size_kb, bool) or not isinstance(target_size_kb, int):
        raise ValidationError(f"Target size must be an integer, got {target_size_kb!r}")
    if not MIN_TARGET_KB <= target_size_kb <= MAX_TARGET_KB:
        raise ValidationError(
            f"Invalid target size {target_size_kb}KB: "
            f"must be between {MIN_TARGET_KB}KB and {MAX_TARGET_KB}KB"
        )
    return target_size_kb


def resolve_target(target: str, custom_kb: int | None = None) -> tuple[TargetClass, int]:
    """Map a tier name (``"150"``) or ``"custom"`` plus a KB value to a target."""
    try:
        target_class = TargetClass(str(target).strip().lower())
    except ValueError as exc:
        choices = [t.value for t in TargetClass]
        raise ValidationError(
            f"Unknown target size '{target}'. Choose from: {choices}"
        ) from exc
    if target_class is TargetClass.CUSTOM:
        if custom_kb is None:
            raise ValidationError("A custom target requires a size in KB")
        return target_class, validate_target_size(custom_kb)
    return target_class, int(target_class.value)


def validate_document(
    data: bytes,
    filename: str = "document.pdf",
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """Reject empty, oversized, misnamed or non-PDF uploads."""
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > max_upload_bytes:
        raise ValidationError(
            f"File size exceeds {format_file_size(max_upload_bytes)} limit"
        )
    if PurePath(filename).suffix.lower() != ".pdf":
        raise ValidationError("Invalid file extension: only .pdf files are allowed")
    if not data.startswith(PDF_MAGIC):
        raise ValidationError("Invalid PDF file")


def build_request(
    data: bytes,
    target: str,
    custom_kb: int | None = None,
    filename: str = "document.pdf",
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> CompressionRequest:
    """Validate raw caller input and build a CompressionRequest."""
    target_class, target_size_kb = resolve_target(target, custom_kb)
    validate_document(data, filename, max_upload_bytes)
    return CompressionRequest(
        document=data,
        target_size_kb=target_size_kb,
        target_class=target_class,
        filename=filename,
    )


def format_file_size(size_bytes: int) -> str:
    """Human-readable size, e.g. ``format_file_size(1536) == "1.5 KB"``."""
    value = float(max(size_bytes, 0))
    power = 0
    while value >= 1024 and power < len(_SIZE_UNITS) - 1:
        value /= 1024
        power += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[power]}"
