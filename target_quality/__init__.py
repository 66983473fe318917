"""Shooting-target photo quality gate and preprocessing (split, metrics, CLAHE, Sobel, opening)."""
from .assess_quality import (
    ExposureLevel,
    QualityAssessment,
    assess_quality,
    compute_contrast,
    compute_mean,
    compute_sharpness,
    compute_variance,
    estimate_noise,
    find_transition_x,
    is_left_side_black,
)
from .grid import PixelGrid, as_grid, extract_region
from .preprocess_target import (
    LocalBackground,
    PreprocessResult,
    apply_clahe,
    build_tile_lut,
    estimate_local_background,
    morphological_open,
    preprocess_target,
    sobel_magnitude,
    to_grayscale,
)

__all__ = [
    "PixelGrid",
    "as_grid",
    "extract_region",
    "ExposureLevel",
    "QualityAssessment",
    "assess_quality",
    "compute_contrast",
    "compute_mean",
    "compute_sharpness",
    "compute_variance",
    "estimate_noise",
    "find_transition_x",
    "is_left_side_black",
    "LocalBackground",
    "PreprocessResult",
    "apply_clahe",
    "build_tile_lut",
    "estimate_local_background",
    "morphological_open",
    "preprocess_target",
    "sobel_magnitude",
    "to_grayscale",
]
