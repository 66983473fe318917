"""
Target preprocessing for hole detection (no training).
1. Ingest: decoded image -> linear grayscale grid, longer edge <= 1200 px.
2. Gate: assess quality; reject blurry / flat photos.
3. Enhance: tile-local CLAHE (no blending between tiles).
4. Edges (Sobel magnitude) and background (disk opening) for the hole detector.

All steps return new arrays; inputs are never modified.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import cv2

from . import config as cfg
from .assess_quality import QualityAssessment, assess_quality
from .grid import PixelGrid, as_grid

logger = logging.getLogger(__name__)

# Rec. 709 luminance weights in BGR order
_LUMA_BGR = np.array([0.0722, 0.7152, 0.2126], dtype=np.float32)

# Smaller (zero or negative) Sobel scales saturate every edge at 255
_MIN_SOBEL_SCALE = 1e-6


def _srgb_to_linear_lut() -> np.ndarray:
    c = np.arange(256, dtype=np.float64) / 255.0
    lin = np.where(c <= 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)
    return lin.astype(np.float32)


_SRGB_TO_LINEAR = _srgb_to_linear_lut()


def downscale_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """Proportional (width, height) with the longer edge <= max_dimension."""
    scale = min(1.0, max_dimension / max(width, height))
    return max(1, int(width * scale)), max(1, int(height * scale))


def to_grayscale(
    img: np.ndarray,
    *,
    max_dimension: int | None = None,
    linear: bool | None = None,
) -> PixelGrid:
    """
    Decoded image (gray, BGR or BGRA uint8) -> uint8 grayscale grid.
    With linear=True channels are decoded from sRGB to linear light before the
    luminance sum, so the result is non-gamma-corrected gray.
    """
    if max_dimension is None:
        max_dimension = cfg.INGEST_CONFIG["max_dimension"]
    if linear is None:
        linear = cfg.INGEST_CONFIG["linear"]

    arr = np.asarray(img)
    if arr.size == 0:
        return np.zeros((0, 0), dtype=np.uint8)
    if arr.ndim not in (2, 3) or (arr.ndim == 3 and arr.shape[2] not in (1, 3, 4)):
        raise ValueError(f"Unsupported image shape: {arr.shape}")
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)

    h, w = arr.shape[:2]
    new_w, new_h = downscale_size(w, h, max_dimension)
    resize = (new_w, new_h) != (w, h)
    if resize:
        logger.debug("Downscaling %dx%d -> %dx%d", w, h, new_w, new_h)

    if not linear:
        gray = as_grid(arr)
        if resize:
            gray = cv2.resize(gray, (new_w, new_h), interpolation=cv2.INTER_AREA)
        return gray

    lin = _SRGB_TO_LINEAR[arr]
    if lin.ndim == 3:
        if lin.shape[2] == 1:
            lin = np.ascontiguousarray(lin[:, :, 0])
        else:
            lin = lin[:, :, :3] @ _LUMA_BGR
    if resize:
        lin = cv2.resize(lin, (new_w, new_h), interpolation=cv2.INTER_AREA)
    return np.clip(np.rint(lin * 255.0), 0, 255).astype(np.uint8)


def build_tile_lut(tile: np.ndarray, clip_limit: float) -> np.ndarray:
    """
    Clipped-histogram equalization LUT for one tile.
    The clipped overflow is spread as overflow // 256 per bin; the remainder is
    dropped, so the CDF may end below the tile's pixel count.
    """
    tile_pixels = tile.size
    hist = np.bincount(tile.ravel(), minlength=256).astype(np.int64)

    clip_threshold = int(clip_limit * tile_pixels / 256.0)
    excess = hist - clip_threshold
    clipped = int(excess[excess > 0].sum())
    hist = np.minimum(hist, clip_threshold)
    hist += clipped // 256

    cdf = np.cumsum(hist)
    nonzero = np.flatnonzero(cdf > 0)
    cdf_min = int(cdf[nonzero[0]]) if nonzero.size else 0
    denominator = max(1, tile_pixels - cdf_min)

    lut = (cdf - cdf_min) * 255 // denominator
    return np.clip(lut, 0, 255).astype(np.uint8)


def apply_clahe(
    grid,
    *,
    clip_limit: float | None = None,
    tile_size: int | None = None,
) -> PixelGrid:
    """
    Tile-local CLAHE on a copy of the grid.
    Tiles are tile_size squares on a max(1, dim // tile_size) grid; pixels past
    the last full tile keep their value. Not idempotent.
    """
    if clip_limit is None:
        clip_limit = cfg.CLAHE_CONFIG["clip_limit"]
    if tile_size is None:
        tile_size = cfg.CLAHE_CONFIG["tile_size"]
    tile_size = max(1, int(tile_size))

    out = as_grid(grid).copy()
    h, w = out.shape
    if h == 0 or w == 0:
        return out

    tiles_x = max(1, w // tile_size)
    tiles_y = max(1, h // tile_size)
    for ty in range(tiles_y):
        for tx in range(tiles_x):
            x0, y0 = tx * tile_size, ty * tile_size
            tile = out[y0:min(y0 + tile_size, h), x0:min(x0 + tile_size, w)]
            tile[...] = build_tile_lut(tile, clip_limit)[tile]
    return out


def sobel_magnitude(grid, *, scale: float | None = None) -> PixelGrid:
    """
    3x3 Sobel gradient magnitude, divided by `scale` and clamped to 255.
    Border pixels are 0.
    """
    if scale is None:
        scale = cfg.SOBEL_CONFIG["scale"]
    scale = max(float(scale), _MIN_SOBEL_SCALE)

    gray = as_grid(grid)
    h, w = gray.shape
    edges = np.zeros((h, w), dtype=np.uint8)
    if h < 3 or w < 3:
        return edges

    gx = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
    magnitude = np.sqrt(gx * gx + gy * gy)[1:-1, 1:-1]
    edges[1:-1, 1:-1] = np.minimum(255.0, np.floor(magnitude / scale)).astype(np.uint8)
    return edges


def disk_kernel(radius: int) -> np.ndarray:
    """Structuring element: dx^2 + dy^2 <= radius^2."""
    dy, dx = np.ogrid[-radius:radius + 1, -radius:radius + 1]
    return (dx * dx + dy * dy <= radius * radius).astype(np.uint8)


def _interior(img: np.ndarray, radius: int) -> np.ndarray:
    """Copy of img with the border band of width `radius` set to 0."""
    h, w = img.shape
    out = np.zeros_like(img)
    out[radius:h - radius, radius:w - radius] = img[radius:h - radius, radius:w - radius]
    return out


def morphological_open(grid, radius: int) -> PixelGrid:
    """
    Background estimate: disk erosion then disk dilation over the interior
    band [radius, dim - radius). The border band of width `radius` is 0, also
    in the eroded image the dilation reads from.
    """
    gray = as_grid(grid)
    h, w = gray.shape
    radius = max(0, int(radius))
    if h <= 2 * radius or w <= 2 * radius:
        return np.zeros((h, w), dtype=np.uint8)

    # Interior neighbourhoods never leave the image, so OpenCV's border mode is irrelevant
    kernel = disk_kernel(radius)
    eroded = _interior(cv2.erode(gray, kernel), radius)
    return _interior(cv2.dilate(eroded, kernel), radius)


@dataclass(frozen=True)
class LocalBackground:
    """Intensity statistics of the paper around a candidate hole."""
    mean_intensity: float
    std_dev: float

    def is_dark_enough(self, candidate_intensity: float, sigma_threshold: float | None = None) -> bool:
        if sigma_threshold is None:
            sigma_threshold = cfg.LOCAL_BACKGROUND_CONFIG["sigma_threshold"]
        return candidate_intensity < self.mean_intensity - self.std_dev * sigma_threshold

    def z_score(self, intensity: float) -> float:
        """How many std the intensity sits below the background (0 for flat background)."""
        if self.std_dev <= 0:
            return 0.0
        return (self.mean_intensity - intensity) / self.std_dev


def estimate_local_background(
    grid,
    center: Tuple[float, float],
    inner_radius: int,
    outer_radius: int,
) -> LocalBackground:
    """
    Mean and population std of pixels in the annulus inner <= d <= outer around
    center (x, y), clipped to the image.
    """
    gray = as_grid(grid)
    h, w = gray.shape
    cx, cy = int(center[0]), int(center[1])

    dy, dx = np.mgrid[-outer_radius:outer_radius + 1, -outer_radius:outer_radius + 1]
    dist = np.sqrt(dx * dx + dy * dy)
    xs, ys = cx + dx, cy + dy
    mask = (
        (dist >= inner_radius) & (dist <= outer_radius)
        & (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
    )
    samples = gray[ys[mask], xs[mask]].astype(np.float64)
    if samples.size == 0:
        return LocalBackground(
            mean_intensity=cfg.LOCAL_BACKGROUND_CONFIG["fallback_mean"],
            std_dev=cfg.LOCAL_BACKGROUND_CONFIG["fallback_std"],
        )
    return LocalBackground(mean_intensity=float(samples.mean()), std_dev=float(samples.std()))


@dataclass
class PreprocessResult:
    assessment: QualityAssessment
    gray: PixelGrid
    enhanced: Optional[PixelGrid] = None
    edges: Optional[PixelGrid] = None
    background: Optional[PixelGrid] = None
    guidance: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.enhanced is not None


def preprocess_target(
    img: np.ndarray,
    *,
    radius: int,
    ingest_config: dict | None = None,
    gate_config: dict | None = None,
    clahe_config: dict | None = None,
    sobel_config: dict | None = None,
    force: bool = False,
) -> PreprocessResult:
    """
    Full pipeline: ingest -> assess -> gate -> CLAHE -> Sobel edges and
    opened background (both from the enhanced grid). A rejected photo returns
    only the gray grid and its assessment, unless force=True.
    """
    ingest_config = ingest_config or cfg.INGEST_CONFIG
    gate_config = gate_config or cfg.GATE_CONFIG
    clahe_config = clahe_config or cfg.CLAHE_CONFIG
    sobel_config = sobel_config or cfg.SOBEL_CONFIG

    gray = to_grayscale(
        img,
        max_dimension=ingest_config.get("max_dimension"),
        linear=ingest_config.get("linear"),
    )
    assessment = assess_quality(gray)
    accepted = assessment.is_acceptable(
        min_sharpness=gate_config.get("min_sharpness"),
        min_contrast=gate_config.get("min_contrast"),
    )
    guidance = assessment.guidance(gate_config)
    if not accepted and not force:
        logger.info(
            "Rejected target photo: sharpness=%.1f contrast=%.3f (%s)",
            assessment.sharpness, assessment.contrast, "; ".join(guidance),
        )
        return PreprocessResult(assessment=assessment, gray=gray, guidance=guidance)

    enhanced = apply_clahe(
        gray,
        clip_limit=clahe_config.get("clip_limit"),
        tile_size=clahe_config.get("tile_size"),
    )
    edges = sobel_magnitude(enhanced, scale=sobel_config.get("scale"))
    background = morphological_open(enhanced, radius)
    return PreprocessResult(
        assessment=assessment,
        gray=gray,
        enhanced=enhanced,
        edges=edges,
        background=background,
        guidance=guidance,
    )
