"""
Target quality config: ingestion, region split, quality metrics, quality gate,
and preprocessing (CLAHE, Sobel, morphological opening) for photographed
shooting targets (dark half + light half).
"""

# --- Ingestion: decoded image -> linear grayscale grid ---
INGEST_CONFIG = {
    # Longer edge is proportionally downscaled to at most this many pixels
    "max_dimension": 1200,
    # Linear (non-gamma) gray like the capture app; False = plain OpenCV luma
    "linear": True,
}

# --- Region split: column where the dark half meets the light half ---
SEGMENT_CONFIG = {
    # Max columns averaged on each side of a candidate split
    "window": 10,
    # Below this column-mean jump (0-255 scale) the split falls back to W // 2
    "min_gradient": 30.0,
}

# --- Contrast: (P95 - P5) / 255 ---
CONTRAST_CONFIG = {
    # Fewer pixels than this -> contrast 0
    "min_pixels": 21,
}

# --- Noise: MAD of sparse Laplacian samples ---
NOISE_CONFIG = {
    "step": 4,
    "offset": 2,
    # MAD -> Gaussian sigma
    "mad_scale": 1.4826,
}

# --- Quality gate: accept the photo for hole detection ---
GATE_CONFIG = {
    "min_sharpness": 50.0,
    "min_contrast": 0.3,
    # Light half darker than 25% of full scale -> underexposed
    "min_white_exposure": 64.0,
    # Dark half brighter than 75% of full scale -> overexposed
    "max_black_exposure": 191.0,
    # Noise level (MAD sigma, 0-255 scale) above this -> "noisy" guidance
    "max_noise": 10.0,
}

# --- CLAHE: tile-local equalization, no blending between tiles ---
CLAHE_CONFIG = {
    "clip_limit": 2.0,
    "tile_size": 32,
}

# --- Sobel: gradient magnitude is divided by this before clamping to 255 ---
SOBEL_CONFIG = {
    "scale": 4.0,
}

# --- Local background around a candidate hole (annulus statistics) ---
LOCAL_BACKGROUND_CONFIG = {
    # Returned when the annulus has no pixels inside the grid
    "fallback_mean": 128.0,
    "fallback_std": 30.0,
    # Candidate must be this many std below the background mean
    "sigma_threshold": 2.0,
}
