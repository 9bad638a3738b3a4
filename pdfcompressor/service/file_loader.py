from pathlib import Path

from pdfcompressor.compression.exceptions import ValidationError
from pdfcompressor.compression.validation import DEFAULT_MAX_UPLOAD_BYTES, format_file_size


class FileLoader:
    """Reads an uploaded PDF from disk, refusing files above the upload limit."""

    def __init__(self, max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
        self._max_upload_bytes = max_upload_bytes

    def load(self, path: Path) -> bytes:
        """Read document bytes from disk.

        Raises:
            FileNotFoundError: if the file does not exist.
            ValidationError: if the file is larger than the upload limit.
        """
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        size = path.stat().st_size
        if size > self._max_upload_bytes:
            raise ValidationError(
                f"File size {format_file_size(size)} exceeds "
                f"{format_file_size(self._max_upload_bytes)} limit"
            )
        return path.read_bytes()
