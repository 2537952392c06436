"""Tests for the drag-to-draw gesture."""

from models.data_models import BoxKind, Dimensions, Unit
from services.drawing_session import DrawingSession, normalize_drag


class TestNormalizeDrag:

    def test_any_direction(self):
        rect = normalize_drag(100, 80, 40, 20)
        assert rect.to_tuple() == (40, 20, 60, 60)


class TestDrawingSession:

    def test_drag_produces_manual_point_box(self, converter, page_dimensions):
        raster, display = page_dimensions
        session = DrawingSession(converter)
        session.begin(150, 150)
        assert session.is_drawing
        session.move(200, 180)
        box = session.end(300, 225, raster, display)

        assert not session.is_drawing
        assert box.kind == BoxKind.MANUAL
        assert box.unit == Unit.POINT
        assert box.id.startswith("bbox-")
        assert (box.x, box.y, box.width, box.height) == (72.0, 72.0, 72.0, 36.0)

    def test_reverse_drag(self, converter, page_dimensions):
        raster, display = page_dimensions
        session = DrawingSession(converter)
        session.begin(300, 225)
        box = session.end(150, 150, raster, display)
        assert (box.x, box.y) == (72.0, 72.0)

    def test_preview_follows_pointer(self, converter):
        session = DrawingSession(converter)
        assert session.move(10, 10) is None
        session.begin(10, 10)
        assert session.move(4, 30).to_tuple() == (4, 10, 6, 20)
        assert session.preview.to_tuple() == (4, 10, 6, 20)

    def test_small_rectangles_discarded(self, converter, page_dimensions):
        raster, display = page_dimensions
        session = DrawingSession(converter, min_size=5)
        session.begin(0, 0)
        assert session.end(5, 100, raster, display) is None
        session.begin(0, 0)
        assert session.end(100, 4, raster, display) is None
        session.begin(0, 0)
        assert session.end(6, 6, raster, display) is not None

    def test_unmeasured_display(self, converter, page_dimensions):
        raster, _ = page_dimensions
        session = DrawingSession(converter)
        session.begin(0, 0)
        assert session.end(100, 100, raster, Dimensions(0, 0)) is None

    def test_end_without_begin(self, converter, page_dimensions):
        raster, display = page_dimensions
        assert DrawingSession(converter).end(100, 100, raster, display) is None

    def test_cancel(self, converter):
        session = DrawingSession(converter)
        session.begin(1, 1)
        session.cancel()
        assert not session.is_drawing
        assert session.preview is None
