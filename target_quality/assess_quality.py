"""
Pre-detection quality assessment for photographed shooting targets.
1. Split the target into its dark and light halves (steepest column-mean jump).
2. Measure sharpness (Laplacian variance), contrast (P95 - P5), noise (MAD).
3. Measure exposure of each half and texture (variance) of the dark half.

Nothing here raises on small or flat images: degenerate input gives 0 scores,
which the quality gate treats as "re-capture".
"""
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List

import numpy as np
import cv2

from . import config as cfg
from .grid import PixelGrid, as_grid, extract_region

logger = logging.getLogger(__name__)


class ExposureLevel(Enum):
    UNDEREXPOSED = "underexposed"
    GOOD = "good"
    OVEREXPOSED = "overexposed"


@dataclass(frozen=True)
class QualityAssessment:
    """Quality metrics of one target photo."""
    sharpness: float         # Laplacian variance (higher = sharper)
    contrast: float          # (P95 - P5) / 255, in [0, 1]
    white_exposure: float    # mean intensity of the light region [0, 255]
    black_exposure: float    # mean intensity of the dark region [0, 255]
    black_visibility: float  # variance of the dark region (hole visibility)
    noise_level: float       # MAD-based noise estimate
    transition_x: float      # normalized split column [0, 1]

    def is_acceptable(
        self,
        min_sharpness: float | None = None,
        min_contrast: float | None = None,
    ) -> bool:
        """Quality gate: sharp enough and contrasty enough for hole detection."""
        if min_sharpness is None:
            min_sharpness = cfg.GATE_CONFIG["min_sharpness"]
        if min_contrast is None:
            min_contrast = cfg.GATE_CONFIG["min_contrast"]
        return self.sharpness > min_sharpness and self.contrast > min_contrast

    def classify_exposure(
        self,
        min_white_exposure: float | None = None,
        max_black_exposure: float | None = None,
    ) -> ExposureLevel:
        """Too dark when the light half is dim, too bright when the dark half washes out."""
        if min_white_exposure is None:
            min_white_exposure = cfg.GATE_CONFIG["min_white_exposure"]
        if max_black_exposure is None:
            max_black_exposure = cfg.GATE_CONFIG["max_black_exposure"]
        if self.white_exposure < min_white_exposure:
            return ExposureLevel.UNDEREXPOSED
        if self.black_exposure > max_black_exposure:
            return ExposureLevel.OVEREXPOSED
        return ExposureLevel.GOOD

    def guidance(self, gate_config: dict | None = None) -> List[str]:
        """
        Reasons to re-capture, empty when nothing is wrong.
        Keys missing from gate_config fall back to GATE_CONFIG.
        """
        gate = {**cfg.GATE_CONFIG, **(gate_config or {})}
        issues = []  # type: List[str]

        if not self.sharpness > gate["min_sharpness"]:
            issues.append("Image is blurry - hold camera steadier or move closer")
        if not self.contrast > gate["min_contrast"]:
            issues.append("Low contrast - ensure good lighting on target")
        exposure = self.classify_exposure(gate["min_white_exposure"], gate["max_black_exposure"])
        if exposure is ExposureLevel.UNDEREXPOSED:
            issues.append("Image is too dark - add more light")
        elif exposure is ExposureLevel.OVEREXPOSED:
            issues.append("Image is too bright - reduce direct light or shadows")
        if self.noise_level > gate["max_noise"]:
            issues.append("High noise - try better lighting conditions")
        return issues

    def to_dict(self) -> Dict[str, Any]:
        return {k: float(v) for k, v in asdict(self).items()}


def _laplacian(gray: PixelGrid) -> np.ndarray:
    """4-neighbour Laplacian (top + bottom + left + right - 4 * center), float64."""
    # ksize=1 is the [0 1 0; 1 -4 1; 0 1 0] aperture
    return cv2.Laplacian(gray, cv2.CV_64F, ksize=1)


def find_transition_x(
    grid,
    *,
    window: int | None = None,
    min_gradient: float | None = None,
) -> int:
    """
    Column where the dark half meets the light half.
    Compares the mean of up to `window` column means on each side of every
    interior column and keeps the first column with the largest jump. Falls back
    to W // 2 when no jump reaches `min_gradient` (uniform target assumed).
    """
    if window is None:
        window = cfg.SEGMENT_CONFIG["window"]
    if min_gradient is None:
        min_gradient = cfg.SEGMENT_CONFIG["min_gradient"]

    gray = as_grid(grid)
    h, w = gray.shape
    if h == 0 or w < 3:
        return w // 2

    column_means = gray.mean(axis=0, dtype=np.float64)

    max_gradient = 0.0
    transition_x = w // 2
    for x in range(1, w - 1):
        size = max(1, min(window, x, w - x - 1))
        left_mean = column_means[x - size:x].sum() / size
        right_mean = column_means[x:x + size].sum() / size
        gradient = abs(right_mean - left_mean)
        if gradient > max_gradient:
            max_gradient = gradient
            transition_x = x

    if max_gradient < min_gradient:
        logger.debug(
            "No clear split (max gradient %.1f < %.1f); using center column %d",
            max_gradient, min_gradient, w // 2,
        )
        return w // 2
    return transition_x


def is_left_side_black(grid, transition_x: int) -> bool:
    """True when the columns left of the split are darker than the rest."""
    gray = as_grid(grid)
    w = gray.shape[1]
    left = compute_mean(extract_region(gray, 0, transition_x))
    right = compute_mean(extract_region(gray, transition_x, w))
    return left < right


def compute_sharpness(grid) -> float:
    """Population variance of the Laplacian over interior pixels; 0 below 3x3."""
    gray = as_grid(grid)
    h, w = gray.shape
    if h < 3 or w < 3:
        return 0.0
    lap = _laplacian(gray)[1:-1, 1:-1]
    mean = lap.mean()
    return float((lap * lap).mean() - mean * mean)


def compute_contrast(grid, *, min_pixels: int | None = None) -> float:
    """(P95 - P5) / 255 from the sorted intensities; 0 for tiny images."""
    if min_pixels is None:
        min_pixels = cfg.CONTRAST_CONFIG["min_pixels"]
    flat = np.sort(as_grid(grid), axis=None)
    count = flat.size
    if count < min_pixels:
        return 0.0
    p5 = int(flat[count // 20])
    p95 = int(flat[count * 19 // 20])
    return (p95 - p5) / 255.0


def compute_mean(region) -> float:
    region = np.asarray(region)
    if region.size == 0:
        return 0.0
    return float(region.mean(dtype=np.float64))


def compute_variance(region) -> float:
    """Population variance (denominator n); 0 for empty or single-pixel regions."""
    region = np.asarray(region)
    if region.size < 2:
        return 0.0
    return float(region.var(dtype=np.float64))


def estimate_noise(
    grid,
    *,
    step: int | None = None,
    offset: int | None = None,
    mad_scale: float | None = None,
) -> float:
    """
    Robust noise estimate: |Laplacian| sampled every `step` pixels (both axes)
    starting at `offset`, then median absolute deviation / `mad_scale`.
    Medians take the upper middle element (sorted[n // 2]).
    """
    if step is None:
        step = cfg.NOISE_CONFIG["step"]
    if offset is None:
        offset = cfg.NOISE_CONFIG["offset"]
    if mad_scale is None:
        mad_scale = cfg.NOISE_CONFIG["mad_scale"]
    step = max(1, int(step))

    gray = as_grid(grid)
    h, w = gray.shape
    if h - 2 <= offset or w - 2 <= offset:
        return 0.0

    samples = np.abs(_laplacian(gray)[offset:h - 2:step, offset:w - 2:step]).ravel()
    if samples.size == 0:
        return 0.0

    samples.sort()
    median = samples[samples.size // 2]
    deviations = np.sort(np.abs(samples - median))
    mad = deviations[deviations.size // 2]
    return float(mad / mad_scale)


def assess_quality(grid) -> QualityAssessment:
    """
    Full assessment: split -> per-region exposure/visibility, and sharpness,
    contrast and noise over the whole image. Never raises.
    """
    gray = as_grid(grid)
    h, w = gray.shape

    transition_x = find_transition_x(gray)
    white_region = extract_region(gray, transition_x, w)
    black_region = extract_region(gray, 0, transition_x)

    assessment = QualityAssessment(
        sharpness=compute_sharpness(gray),
        contrast=compute_contrast(gray),
        white_exposure=compute_mean(white_region),
        black_exposure=compute_mean(black_region),
        black_visibility=compute_variance(black_region),
        noise_level=estimate_noise(gray),
        transition_x=transition_x / w if w > 0 else 0.0,
    )
    logger.debug(
        "Assessed %dx%d: sharpness=%.1f contrast=%.3f noise=%.2f split=%.3f",
        w, h, assessment.sharpness, assessment.contrast,
        assessment.noise_level, assessment.transition_x,
    )
    return assessment
