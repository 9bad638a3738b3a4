from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class TargetClass(str, Enum):
    """Size budgets offered to callers; CUSTOM takes an explicit KB value."""

    TIER_100 = "100"
    TIER_150 = "150"
    TIER_180 = "180"
    TIER_400 = "400"
    CUSTOM = "custom"


class QualityTier(str, Enum):
    """Output quality profile, ordered from most to least aggressive."""

    SCREEN = "screen"
    EBOOK = "ebook"
    PRINTER = "printer"
    DEFAULT = "default"


class ColorStrategy(str, Enum):
    PRESERVE = "preserve"
    RGB = "rgb"
    GRAYSCALE = "grayscale"


class FailureReason(str, Enum):
    AUTH = "auth"
    NETWORK = "network"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed-response"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ParameterSet:
    """Compression parameters for a single pass."""

    quality_tier: QualityTier
    image_dpi: int
    image_quality: int
    color_strategy: ColorStrategy
    aggressive: bool = False
    extreme: bool = False

    def describe(self) -> str:
        return (
            f"tier={self.quality_tier.value}, dpi={self.image_dpi}, "
            f"quality={self.image_quality}, color={self.color_strategy.value}, "
            f"aggressive={self.aggressive}, extreme={self.extreme}"
        )


@dataclass(frozen=True)
class CompressionRequest:
    """A validated request: the PDF bytes and the resolved size budget."""

    document: bytes = field(repr=False)
    target_size_kb: int
    target_class: TargetClass = TargetClass.CUSTOM
    filename: str = "document.pdf"

    @property
    def target_size_bytes(self) -> int:
        return self.target_size_kb * 1024


@dataclass(frozen=True)
class BackendFailure:
    """Diagnostic record of one failed backend attempt."""

    backend_id: str
    reason: FailureReason
    message: str = ""


@dataclass(frozen=True)
class CompressionResult:
    """Outcome of a successful request. The caller owns output_path."""

    request_id: str
    original_size_bytes: int
    compressed_size_bytes: int
    compression_ratio_percent: float
    backend_id: str
    backend_used: str
    passes_used: int
    target_size_kb: int
    output_path: Path

    @property
    def within_target(self) -> bool:
        return self.compressed_size_bytes <= self.target_size_kb * 1024


def compression_ratio(original_size_bytes: int, compressed_size_bytes: int) -> float:
    """Percentage saved, rounded to two decimals; 0.0 for an empty original."""
    if original_size_bytes <= 0:
        return 0.0
    saved = original_size_bytes - compressed_size_bytes
    return round(saved / original_size_bytes * 100, 2)
