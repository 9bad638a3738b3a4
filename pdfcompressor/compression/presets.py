"""Preset policy: target size -> compression parameters.

Pure functions with no disk or network access. The base tiers follow the
Ghostscript presets the service has always shipped; escalation lowers DPI and
image quality by fixed steps down to hard floors.
"""

from pdfcompressor.compression.models import ColorStrategy, ParameterSet, QualityTier

MIN_DPI = 24
MIN_IMAGE_QUALITY = 5
DPI_STEP = 24
IMAGE_QUALITY_STEP = 10

# (upper bound KB, base parameters); first match wins.
_TIERS: tuple[tuple[int, ParameterSet], ...] = (
    (
        100,
        ParameterSet(
            quality_tier=QualityTier.SCREEN,
            image_dpi=72,
            image_quality=30,
            color_strategy=ColorStrategy.GRAYSCALE,
            aggressive=True,
            extreme=True,
        ),
    ),
    (
        150,
        ParameterSet(
            quality_tier=QualityTier.SCREEN,
            image_dpi=96,
            image_quality=40,
            color_strategy=ColorStrategy.RGB,
            aggressive=True,
        ),
    ),
    (
        180,
        ParameterSet(
            quality_tier=QualityTier.EBOOK,
            image_dpi=150,
            image_quality=50,
            color_strategy=ColorStrategy.RGB,
        ),
    ),
    (
        400,
        ParameterSet(
            quality_tier=QualityTier.PRINTER,
            image_dpi=200,
            image_quality=60,
            color_strategy=ColorStrategy.PRESERVE,
        ),
    ),
)

_DEFAULT_PARAMETERS = ParameterSet(
    quality_tier=QualityTier.DEFAULT,
    image_dpi=150,
    image_quality=50,
    color_strategy=ColorStrategy.PRESERVE,
)

# (upper bound KB, pass budget); larger targets get a single pass.
_PASS_BUDGETS: tuple[tuple[int, int], ...] = (
    (50, 8),
    (150, 6),
)

# Escalation path for quality tiers, one step per pass.
_NEXT_TIER = {
    QualityTier.DEFAULT: QualityTier.PRINTER,
    QualityTier.PRINTER: QualityTier.EBOOK,
    QualityTier.EBOOK: QualityTier.SCREEN,
    QualityTier.SCREEN: QualityTier.SCREEN,
}


def base_parameters(target_size_kb: int) -> ParameterSet:
    """Return the first-pass parameters for a target size."""
    for upper_kb, params in _TIERS:
        if target_size_kb <= upper_kb:
            return params
    return _DEFAULT_PARAMETERS


def escalate(params: ParameterSet) -> ParameterSet:
    """Derive the next, more aggressive parameter set.

    DPI and image quality drop by a fixed step and are clamped at their floors.
    Once either floor is reached the set becomes extreme and grayscale.
    """
    dpi = max(MIN_DPI, params.image_dpi - DPI_STEP)
    quality = max(MIN_IMAGE_QUALITY, params.image_quality - IMAGE_QUALITY_STEP)
    at_floor = dpi == MIN_DPI or quality == MIN_IMAGE_QUALITY
    extreme = params.extreme or at_floor
    return ParameterSet(
        quality_tier=_NEXT_TIER[params.quality_tier],
        image_dpi=dpi,
        image_quality=quality,
        color_strategy=ColorStrategy.GRAYSCALE if extreme else params.color_strategy,
        aggressive=True,
        extreme=extreme,
    )


def select_parameters(target_size_kb: int, pass_index: int = 1) -> ParameterSet:
    """Return the parameters for a given pass of a run.

    Pass 1 uses the tier's base parameters; every later pass applies one more
    escalation step.
    """
    if pass_index < 1:
        raise ValueError(f"pass_index must be >= 1, got {pass_index}")
    params = base_parameters(target_size_kb)
    for _ in range(pass_index - 1):
        params = escalate(params)
    return params


def max_passes(target_size_kb: int) -> int:
    """Upper bound on the number of passes for one backend."""
    for upper_kb, budget in _PASS_BUDGETS:
        if target_size_kb <= upper_kb:
            return budget
    return 1
