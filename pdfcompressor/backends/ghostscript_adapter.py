import shutil
import subprocess
from pathlib import Path

from pdfcompressor.backends.base import DEFAULT_TIMEOUT_SECONDS, BaseCompressionBackend
from pdfcompressor.compression.exceptions import BackendError
from pdfcompressor.compression.models import ColorStrategy, FailureReason, ParameterSet
from pdfcompressor.logging.logger import Log

_STDERR_TAIL = 500


class GhostscriptBackend(BaseCompressionBackend):
    """Compresses PDFs locally with the Ghostscript pdfwrite device."""

    backend_id = "ghostscript"
    display_name = "Ghostscript"

    def __init__(
        self,
        *,
        binary: str = "gs",
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(timeout_seconds)
        self._binary = binary

    def is_configured(self) -> bool:
        return shutil.which(self._binary) is not None

    def build_command(self, source: Path, destination: Path, params: ParameterSet) -> list[str]:
        dpi = params.image_dpi
        command = [
            self._binary,
            "-sDEVICE=pdfwrite",
            "-dCompatibilityLevel=1.4",
            f"-dPDFSETTINGS=/{params.quality_tier.value}",
            "-dNOPAUSE",
            "-dQUIET",
            "-dBATCH",
            "-dSAFER",
            "-dDownsampleColorImages=true",
            "-dDownsampleGrayImages=true",
            "-dDownsampleMonoImages=true",
            f"-dColorImageResolution={dpi}",
            f"-dGrayImageResolution={dpi}",
            f"-dMonoImageResolution={dpi}",
            "-dColorImageDownsampleType=/Bicubic",
            "-dGrayImageDownsampleType=/Bicubic",
            "-dMonoImageDownsampleType=/Bicubic",
            f"-dJPEGQ={params.image_quality}",
        ]
        if params.color_strategy is ColorStrategy.GRAYSCALE:
            command += ["-sColorConversionStrategy=Gray", "-dProcessColorModel=/DeviceGray"]
        elif params.color_strategy is ColorStrategy.RGB:
            command += ["-sColorConversionStrategy=RGB"]
        if params.aggressive:
            command += ["-dDetectDuplicateImages=true", "-dCompressFonts=true"]
        if params.extreme:
            command += ["-dSubsetFonts=true", "-dEmbedAllFonts=false"]
        command += [f"-sOutputFile={destination}", str(source)]
        return command

    def compress(self, source: Path, destination: Path, params: ParameterSet) -> None:
        command = self.build_command(source, destination, params)
        Log.debug(f"Running Ghostscript: {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as exc:
            raise BackendError(
                self.backend_id,
                FailureReason.UNSUPPORTED,
                f"Ghostscript binary '{self._binary}' not found",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BackendError(
                self.backend_id,
                FailureReason.TIMEOUT,
                f"Ghostscript exceeded {self.timeout_seconds}s",
            ) from exc
        except OSError as exc:
            raise BackendError(
                self.backend_id,
                FailureReason.UNSUPPORTED,
                f"Ghostscript could not be started: {exc}",
            ) from exc

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL:]
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                f"Ghostscript exited with code {completed.returncode}: {stderr.strip()}",
            )
        if not destination.exists():
            raise BackendError(
                self.backend_id,
                FailureReason.MALFORMED_RESPONSE,
                "Ghostscript did not create an output file",
            )
