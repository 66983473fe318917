"""Pixel grid helpers shared by the quality metrics and the preprocessing steps."""
from typing import TypeAlias

import cv2
import numpy as np

# Row-major (H, W) uint8 intensities, indexed grid[y, x]
PixelGrid: TypeAlias = np.ndarray


def as_grid(grid) -> PixelGrid:
    """
    Coerce an intensity array (or nested lists) to a contiguous uint8 (H, W) grid.
    Colour input is reduced with OpenCV's BGR luma; use to_grayscale() for the
    linear conversion the capture path expects.
    """
    arr = np.asarray(grid)
    if arr.size == 0:
        return np.zeros((0, 0), dtype=np.uint8)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 3:
        if arr.shape[2] == 1:
            arr = arr[:, :, 0]
        elif arr.shape[2] == 4:
            arr = cv2.cvtColor(arr, cv2.COLOR_BGRA2GRAY)
        else:
            arr = cv2.cvtColor(arr, cv2.COLOR_BGR2GRAY)
    return np.ascontiguousarray(arr)


def extract_region(grid: PixelGrid, start_x: int, end_x: int) -> PixelGrid:
    """Vertical strip of columns [start_x, end_x); empty when the range is empty."""
    w = grid.shape[1]
    start_x = max(0, start_x)
    end_x = min(w, end_x)
    if start_x >= end_x:
        return grid[:, :0]
    return grid[:, start_x:end_x]
