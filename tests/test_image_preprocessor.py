"""Tests for image enhancement before OCR."""

import types

import numpy as np
import pytest

from conftest import failing_source, make_grid_pixels
from models.data_models import RasterImage
from services.image_preprocessor import ImagePreprocessor
from services.morphology_loader import REQUIRED_PRIMITIVES, MorphologyEngineLoader


def broken_engine():
    def fail(*args, **kwargs):
        raise RuntimeError("engine crashed")

    engine = types.SimpleNamespace(**{name: fail for name in REQUIRED_PRIMITIVES})
    engine.GaussianBlur = fail
    engine.convertScaleAbs = fail
    return engine


def ready_loader(source):
    loader = MorphologyEngineLoader(sources=(source,))
    loader.load()
    return loader


@pytest.fixture
def pixels():
    return np.array([
        [[100, 100, 100], [200, 250, 210]],
        [[0, 0, 0], [50, 50, 50]],
    ], dtype=np.uint8)


class TestBasicEnhancement:

    def test_contrast_lift(self, pixels):
        enhanced = ImagePreprocessor.enhance_basic(pixels)
        assert enhanced.shape == (2, 2, 3)
        assert enhanced.dtype == np.uint8
        # min(255, gray * 1.2 + 10) with gray the RGB mean
        assert enhanced[:, :, 0].tolist() == [[130, 255], [10, 70]]
        assert (enhanced[:, :, 0] == enhanced[:, :, 2]).all()

    def test_used_without_engine(self, pixels):
        processed = ImagePreprocessor().preprocess(pixels)
        assert np.array_equal(processed, ImagePreprocessor.enhance_basic(pixels))

    def test_used_when_engine_unavailable(self, pixels):
        loader = MorphologyEngineLoader(sources=(failing_source,))
        loader.load()
        processed = ImagePreprocessor(loader).preprocess(RasterImage(pixels=pixels))
        assert np.array_equal(processed, ImagePreprocessor.enhance_basic(pixels))


class TestPreprocess:

    def test_disabled_returns_pixels_unchanged(self, pixels):
        processed = ImagePreprocessor(ready_loader(broken_engine)).preprocess(pixels, enhance=False)
        assert np.array_equal(processed, pixels)

    def test_empty_image(self):
        assert ImagePreprocessor().preprocess(None) is None

    def test_engine_failure_falls_back_to_basic(self, pixels):
        loader = ready_loader(broken_engine)
        assert loader.is_ready
        processed = ImagePreprocessor(loader).preprocess(pixels)
        assert np.array_equal(processed, ImagePreprocessor.enhance_basic(pixels))

    def test_engine_binarizes(self):
        pytest.importorskip("cv2")
        loader = MorphologyEngineLoader(sources=("cv2",))
        loader.load()
        if not loader.is_ready:
            pytest.skip("OpenCV could not be loaded")

        page = make_grid_pixels(thickness=6)
        processed = ImagePreprocessor(loader).preprocess(page)

        assert processed.shape == page.shape
        assert set(np.unique(processed).tolist()) <= {0, 255}
        assert not np.array_equal(processed, ImagePreprocessor.enhance_basic(page))
