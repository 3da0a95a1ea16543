"""
Pixel implementations of the filter functions.

Each function takes and returns a float32 RGB image in the 0-1 range and
follows the CSS filter-effects definitions: brightness is a linear
multiply, contrast pivots around 0.5, saturate/grayscale/sepia are the
W3C colour matrices and blur is a Gaussian with sigma equal to the radius.
Results are clamped after every step.
"""

import numpy as np
import cv2
from typing import Callable, Dict
import logging

from .filter_chain import FilterChain, FilterTerm

logger = logging.getLogger(__name__)


def to_float01(rgb8: np.ndarray) -> np.ndarray:
    if rgb8.dtype != np.uint8:
        raise TypeError(f"Expected uint8 image, got {rgb8.dtype}")
    return rgb8.astype(np.float32) / 255.0


def to_uint8(rgb01: np.ndarray) -> np.ndarray:
    rgb01 = np.clip(rgb01, 0.0, 1.0)
    return (rgb01 * 255.0 + 0.5).astype(np.uint8)


def _apply_matrix(rgb01: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    out = rgb01 @ matrix.T.astype(np.float32)
    return np.clip(out, 0.0, 1.0)


def apply_brightness(rgb01: np.ndarray, amount: float) -> np.ndarray:
    return np.clip(rgb01 * np.float32(amount), 0.0, 1.0)


def apply_contrast(rgb01: np.ndarray, amount: float) -> np.ndarray:
    a = np.float32(amount)
    return np.clip((rgb01 - 0.5) * a + 0.5, 0.0, 1.0)


def apply_saturate(rgb01: np.ndarray, amount: float) -> np.ndarray:
    s = float(amount)
    matrix = np.array([
        [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
    ])
    return _apply_matrix(rgb01, matrix)


def apply_grayscale(rgb01: np.ndarray, amount: float) -> np.ndarray:
    g = 1.0 - min(max(float(amount), 0.0), 1.0)
    matrix = np.array([
        [0.2126 + 0.7874 * g, 0.7152 - 0.7152 * g, 0.0722 - 0.0722 * g],
        [0.2126 - 0.2126 * g, 0.7152 + 0.2848 * g, 0.0722 - 0.0722 * g],
        [0.2126 - 0.2126 * g, 0.7152 - 0.7152 * g, 0.0722 + 0.9278 * g],
    ])
    return _apply_matrix(rgb01, matrix)


def apply_sepia(rgb01: np.ndarray, amount: float) -> np.ndarray:
    g = 1.0 - min(max(float(amount), 0.0), 1.0)
    matrix = np.array([
        [0.393 + 0.607 * g, 0.769 - 0.769 * g, 0.189 - 0.189 * g],
        [0.349 - 0.349 * g, 0.686 + 0.314 * g, 0.168 - 0.168 * g],
        [0.272 - 0.272 * g, 0.534 - 0.534 * g, 0.131 + 0.869 * g],
    ])
    return _apply_matrix(rgb01, matrix)


def apply_blur(rgb01: np.ndarray, radius: float) -> np.ndarray:
    if radius <= 0:
        return rgb01
    return cv2.GaussianBlur(rgb01, (0, 0), sigmaX=float(radius), sigmaY=float(radius))


FILTER_FUNCTIONS: Dict[str, Callable[[np.ndarray, float], np.ndarray]] = {
    'brightness': apply_brightness,
    'contrast': apply_contrast,
    'saturate': apply_saturate,
    'grayscale': apply_grayscale,
    'sepia': apply_sepia,
    'blur': apply_blur,
}


def apply_term(rgb01: np.ndarray, term: FilterTerm) -> np.ndarray:
    try:
        fn = FILTER_FUNCTIONS[term.function]
    except KeyError:
        raise ValueError(f"Unsupported filter function: {term.function}") from None
    return fn(rgb01, term.amount)


def apply_filter_chain(rgb8: np.ndarray, chain: FilterChain) -> np.ndarray:
    """
    Apply a filter chain to an RGB image

    Args:
        rgb8: HxWx3 uint8 RGB image
        chain: Terms to apply, in order

    Returns:
        New HxWx3 uint8 RGB image of the same size
    """
    if rgb8.ndim != 3 or rgb8.shape[2] != 3:
        raise ValueError("Expected HxWx3 RGB array")

    working = to_float01(rgb8)
    for term in chain:
        working = apply_term(working, term)
    return to_uint8(working)
