"""Image enhancement applied to page images before OCR."""

import logging
from typing import Any, Optional

import numpy as np

from services.morphology_loader import MorphologyEngineLoader
from utils.image_utils import as_pixel_array, luminance_mean, to_rgb


logger = logging.getLogger(__name__)


class ImagePreprocessor:
    """Improves contrast and binarizes scans so OCR reads them more reliably."""

    def __init__(self, loader: Optional[MorphologyEngineLoader] = None):
        """
        Args:
            loader: Morphology engine loader; without a ready engine the
                basic contrast lift is used
        """
        self._loader = loader

    def preprocess(self, image: Any, enhance: bool = True) -> Optional[np.ndarray]:
        """
        Prepare an image for OCR.

        Args:
            image: RasterImage, PIL image or numpy array
            enhance: When False the pixels are returned unchanged

        Returns:
            RGB uint8 array, or None when the image is empty
        """
        pixels = as_pixel_array(image)
        if pixels is None or not enhance:
            return pixels

        if self._loader is not None and self._loader.is_ready:
            try:
                return self._enhance_with_engine(self._loader.engine, pixels)
            except Exception as e:
                logger.warning(f"Engine preprocessing failed, using basic enhancement: {e}")
        return self.enhance_basic(pixels)

    def _enhance_with_engine(self, cv: Any, pixels: np.ndarray) -> np.ndarray:
        rgb = np.ascontiguousarray(to_rgb(pixels))
        gray = cv.cvtColor(rgb, cv.COLOR_RGB2GRAY)
        processed = cv.GaussianBlur(gray, (3, 3), 0)
        processed = cv.convertScaleAbs(processed, alpha=1.2, beta=10)
        processed = cv.adaptiveThreshold(
            processed,
            255,
            cv.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv.THRESH_BINARY,
            11,
            2,
        )
        kernel = cv.getStructuringElement(cv.MORPH_RECT, (1, 1))
        processed = cv.morphologyEx(processed, cv.MORPH_OPEN, kernel)
        logger.debug("Enhanced image with morphology engine")
        return to_rgb(processed)

    @staticmethod
    def enhance_basic(pixels: np.ndarray) -> np.ndarray:
        """Grayscale and lift contrast: min(255, gray * 1.2 + 10)."""
        gray = luminance_mean(pixels)
        enhanced = np.minimum(255.0, gray * 1.2 + 10.0).astype(np.uint8)
        return to_rgb(enhanced)
