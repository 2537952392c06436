"""Tests for the coordinate converter."""

import pytest

from models.data_models import BoundingBox, Dimensions, Unit
from services.coordinate_converter import CoordinateConverter


class TestRasterToPoint:

    def test_dpi_scale(self, converter):
        assert converter.dpi_scale == pytest.approx(300 / 72)

    def test_one_inch_square(self, converter):
        coords = converter.raster_to_point(300, 300, 300, 300)
        assert coords.pt.to_dict() == {"x": 72.0, "y": 72.0, "width": 72.0, "height": 72.0}
        assert coords.px.width == 96.0
        assert coords.mm.width == 25.4

    def test_values_rounded_to_two_places(self, converter):
        coords = converter.raster_to_point(1, 1, 1, 1)
        assert coords.pt.x == 0.24
        assert coords.px.x == 0.32
        assert coords.mm.x == 0.08

    def test_origin_stays_top_left(self, converter):
        coords = converter.raster_to_point(0, 0, 10, 10)
        assert coords.pt.x == 0
        assert coords.pt.y == 0

    def test_in_unit(self, converter):
        coords = converter.raster_to_point(300, 0, 300, 300)
        assert coords.in_unit(Unit.PIXEL) is coords.px

    def test_invalid_dpi(self):
        with pytest.raises(ValueError):
            CoordinateConverter(raster_dpi=0)


class TestDisplaySpace:

    def test_display_to_raster_scales_per_axis(self, converter):
        rect = converter.display_to_raster(10, 20, 30, 40, Dimensions(1000, 2000), Dimensions(500, 500))
        assert rect.to_tuple() == (20, 80, 60, 160)

    def test_unmeasured_display_returns_none(self, converter):
        assert converter.display_to_raster(0, 0, 10, 10, Dimensions(100, 100), Dimensions(0, 100)) is None
        assert converter.display_to_raster(0, 0, 10, 10, None, Dimensions(100, 100)) is None
        assert converter.display_to_point(0, 0, 10, 10, Dimensions(100, 100), None) is None

    def test_display_to_point(self, converter, page_dimensions):
        raster, display = page_dimensions
        coords = converter.display_to_point(150, 150, 150, 75, raster, display)
        assert coords.pt.to_dict() == {"x": 72.0, "y": 72.0, "width": 72.0, "height": 36.0}

    def test_point_display_round_trip(self, converter, page_dimensions):
        raster, display = page_dimensions
        rect = converter.point_to_display(72, 144, 36, 18, raster, display)
        assert rect.x == pytest.approx(150)
        assert rect.y == pytest.approx(300)
        back = converter.display_to_point(*rect.to_tuple(), raster, display)
        assert back.pt.to_dict() == {"x": 72.0, "y": 144.0, "width": 36.0, "height": 18.0}

    def test_box_in_other_unit_is_normalized(self, converter, page_dimensions):
        raster, display = page_dimensions
        in_pixels = BoundingBox(id="a", x=96, y=96, width=96, height=96, unit=Unit.PIXEL)
        in_points = BoundingBox(id="b", x=72, y=72, width=72, height=72)
        assert converter.box_to_display(in_pixels, raster, display).to_tuple() == pytest.approx(
            converter.box_to_display(in_points, raster, display).to_tuple()
        )
