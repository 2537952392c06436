"""Pytest configuration and shared fixtures."""

import pytest
import sys
from pathlib import Path

import numpy as np

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from models.data_models import BoundingBox, BoxKind, Dimensions, RasterImage, Unit
from models.config import AnnotatorConfig
from services.bbox_store import BoundingBoxStore
from services.coordinate_converter import CoordinateConverter
from services.morphology_loader import MorphologyEngineLoader


GRID_SIZE = 400
# Three 3px rules on each axis, spanning 50..352
GRID_RULES = (50, 200, 350)


def make_grid_pixels(size: int = GRID_SIZE, rules=GRID_RULES, thickness: int = 3) -> np.ndarray:
    """White RGB image with a ruled 2x2 table."""
    pixels = np.full((size, size, 3), 255, dtype=np.uint8)
    start, end = rules[0], rules[-1] + thickness
    for position in rules:
        pixels[position:position + thickness, start:end] = 0
        pixels[start:end, position:position + thickness] = 0
    return pixels


def failing_source():
    raise ImportError("engine not installed")


@pytest.fixture
def converter():
    """Converter for 300 DPI rasters."""
    return CoordinateConverter(raster_dpi=300)


@pytest.fixture
def grid_pixels():
    return make_grid_pixels()


@pytest.fixture
def grid_image(grid_pixels):
    return RasterImage(pixels=grid_pixels, dpi=300)


@pytest.fixture
def blank_image():
    return RasterImage(pixels=np.full((400, 400, 3), 255, dtype=np.uint8), dpi=300)


@pytest.fixture
def unavailable_loader():
    """Loader whose only source fails, forcing the pixel-scan fallback."""
    return MorphologyEngineLoader(sources=(failing_source,), timeout=1.0)


@pytest.fixture
def sample_boxes():
    """One box of each kind plus one without a kind."""
    return [
        BoundingBox(id="m1", x=10, y=20, width=100, height=50, kind=BoxKind.MANUAL),
        BoundingBox(id="o1", x=30, y=40, width=60, height=12, kind=BoxKind.OCR),
        BoundingBox(id="t1", x=72, y=72, width=144, height=72, kind=BoxKind.TABLE),
        BoundingBox(id="u1", x=0, y=0, width=96, height=96, unit=Unit.PIXEL),
    ]


@pytest.fixture
def store(sample_boxes):
    return BoundingBoxStore(sample_boxes)


@pytest.fixture
def page_dimensions():
    """Letter page at 300 DPI and a half-size display."""
    return Dimensions(2550, 3300), Dimensions(1275, 1650)


@pytest.fixture
def sample_config():
    """Config that never tries to import OpenCV."""
    return AnnotatorConfig(morphology_sources=(failing_source,), morphology_timeout=1.0)
