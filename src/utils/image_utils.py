"""Helpers for turning the various image handles into numpy pixel buffers."""

import io
from typing import Any, Optional

import numpy as np
from PIL import Image

from models.data_models import RasterImage


def as_pixel_array(image: Any) -> Optional[np.ndarray]:
    """
    Get a uint8 pixel buffer from a RasterImage, PIL image, numpy array or bytes.

    Args:
        image: Image handle

    Returns:
        Array of shape (H, W), (H, W, 3) or (H, W, 4), or None if empty
    """
    if image is None:
        return None

    if isinstance(image, RasterImage):
        pixels = image.pixels
    elif isinstance(image, Image.Image):
        if image.mode not in ("L", "RGB", "RGBA"):
            image = image.convert("RGB")
        pixels = np.array(image)
    elif isinstance(image, (bytes, bytearray)):
        pixels = np.array(Image.open(io.BytesIO(image)).convert("RGB"))
    else:
        pixels = np.asarray(image)

    if pixels.ndim not in (2, 3) or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        return None
    if pixels.dtype != np.uint8:
        pixels = np.clip(pixels, 0, 255).astype(np.uint8)
    return pixels


def luminance_mean(pixels: np.ndarray) -> np.ndarray:
    """Per-pixel average of R, G and B (alpha ignored) as float32."""
    if pixels.ndim == 2:
        return pixels.astype(np.float32)
    return pixels[:, :, :3].astype(np.float32).mean(axis=2)


def to_rgb(pixels: np.ndarray) -> np.ndarray:
    """Expand gray or RGBA buffers to RGB."""
    if pixels.ndim == 2:
        return np.stack([pixels] * 3, axis=2)
    return pixels[:, :, :3]
