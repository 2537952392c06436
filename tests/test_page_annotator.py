"""Tests for the page annotator orchestrator and the CLI."""

import json

import fitz
import pytest

from models.config import AnnotatorConfig, OCRSettings
from models.data_models import BoxKind, BoxRole, CapabilityStatus, DetectionMode, OCRLevel
from services.exporter import ExportError
from services.ocr_engine import OCRError, build_hierarchy
from services.page_annotator import PageAnnotator
from services.pdf_rasterizer import PDFRasterError, PDFRasterizer
from utils.error_handler import ErrorType


PAGE_SIZE = 400
RULES = (50, 200, 350)


def make_pdf(pages: int = 2) -> bytes:
    """PDF whose first page holds a ruled 2x2 table."""
    doc = fitz.open()
    for index in range(pages):
        page = doc.new_page(width=PAGE_SIZE, height=PAGE_SIZE)
        if index == 0:
            for position in RULES:
                page.draw_line((RULES[0], position), (RULES[-1], position), color=(0, 0, 0), width=2)
                page.draw_line((position, RULES[0]), (position, RULES[-1]), color=(0, 0, 0), width=2)
    data = doc.tobytes()
    doc.close()
    return data


class FakeOCREngine:
    """Returns fixed lines given in raster pixels."""

    def __init__(self, lines=None, error=None):
        self.lines = lines if lines is not None else [
            {"text": "Invoice total", "confidence": 92.0, "bbox": {"x0": 72, "y0": 72, "x1": 202, "y1": 92}},
            {"text": "faint", "confidence": 30.0, "bbox": {"x0": 72, "y0": 96, "x1": 122, "y1": 116}},
        ]
        self.error = error
        self.calls = []

    def recognize(self, image, language=None):
        self.calls.append(language)
        if self.error:
            raise self.error
        return build_hierarchy(self.lines)


@pytest.fixture
def config(sample_config):
    # 72 DPI keeps raster pixels equal to points
    sample_config.raster_dpi = 72
    return sample_config


@pytest.fixture
def ocr_engine():
    return FakeOCREngine()


@pytest.fixture
def annotator(config, ocr_engine):
    annotator = PageAnnotator(config, ocr_engine=ocr_engine)
    annotator.load_pdf(make_pdf(), "table.pdf")
    return annotator


class TestRasterizer:

    def test_validate(self):
        rasterizer = PDFRasterizer()
        assert rasterizer.validate_pdf(make_pdf()) == (True, None)
        assert rasterizer.validate_pdf(b"")[0] is False
        assert rasterizer.validate_pdf(b"not a pdf")[0] is False

    def test_render_page_size(self):
        rasterizer = PDFRasterizer(dpi=144)
        assert rasterizer.load_document(make_pdf()) == 2
        raster = rasterizer.render_page(0)
        assert (raster.width, raster.height) == (800, 800)
        assert raster.pixels.shape == (800, 800, 3)

    def test_render_out_of_range(self):
        rasterizer = PDFRasterizer()
        with pytest.raises(PDFRasterError):
            rasterizer.render_page(0)
        rasterizer.load_document(make_pdf(1))
        with pytest.raises(PDFRasterError):
            rasterizer.render_page(1)


class TestDocumentState:

    def test_load(self, annotator):
        info = annotator.info
        assert info.is_loaded
        assert info.file_name == "table.pdf"
        assert (info.current_page, info.total_pages) == (1, 2)
        assert (info.original_dimensions.width, info.original_dimensions.height) == (PAGE_SIZE, PAGE_SIZE)

    def test_reload_resets_boxes(self, annotator):
        annotator.set_display_size(PAGE_SIZE, PAGE_SIZE)
        annotator.add_display_rectangle(10, 10, 50, 50)
        annotator.load_pdf(make_pdf(1), "other.pdf")
        assert len(annotator.store) == 0
        assert annotator.info.total_pages == 1

    def test_invalid_pdf(self, config):
        annotator = PageAnnotator(config)
        with pytest.raises(PDFRasterError):
            annotator.load_pdf(b"garbage", "bad.pdf")
        assert annotator.error_handler.has_fatal_errors()
        assert not annotator.info.is_loaded

    def test_page_navigation(self, annotator):
        assert not annotator.go_to_page(3)
        assert not annotator.go_to_page(0)
        assert annotator.info.current_page == 1
        assert annotator.go_to_page(2)
        assert annotator.info.current_page == 2


class TestDrawing:

    def test_display_rectangle_becomes_manual_box(self, annotator):
        annotator.set_display_size(PAGE_SIZE / 2, PAGE_SIZE / 2)
        box = annotator.add_display_rectangle(50, 50, 50, 25)
        assert box.kind == BoxKind.MANUAL
        assert (box.x, box.y, box.width, box.height) == (100, 100, 100, 50)
        assert annotator.store.get(box.id) is box

    def test_gesture(self, annotator):
        annotator.set_display_size(PAGE_SIZE, PAGE_SIZE)
        annotator.begin_drawing(100, 100)
        assert annotator.move_drawing(120, 90).to_tuple() == (100, 90, 20, 10)
        assert annotator.end_drawing(103, 103) is None
        assert len(annotator.store) == 0

    def test_display_not_measured(self, annotator):
        assert annotator.add_display_rectangle(10, 10, 100, 100) is None

    def test_boxes_on_display(self, annotator):
        annotator.set_display_size(PAGE_SIZE / 2, PAGE_SIZE / 2)
        annotator.add_display_rectangle(50, 50, 50, 25)
        [(box, rect)] = annotator.display_rects()
        assert rect.to_tuple() == pytest.approx((50, 50, 50, 25))
        [(_, in_mm)] = annotator.boxes_in_unit("mm")
        assert in_mm.width == 35.28


class TestTableDetection:

    def test_cells_with_fallback(self, annotator):
        boxes = annotator.detect_tables(DetectionMode.CELLS)

        assert annotator.capability_status == CapabilityStatus.FAILED
        assert annotator.last_strategy == "pixel_scan"
        assert len(boxes) == 4
        assert all(box.role == BoxRole.CELL for box in boxes)
        assert len(annotator.store.get_by_kind(BoxKind.TABLE)) == 4
        dependency_errors = [e for e in annotator.error_handler.get_errors() if e.error_type == ErrorType.DEPENDENCY]
        assert len(dependency_errors) == 1

    def test_clear_table_boxes_keeps_others(self, annotator):
        annotator.set_display_size(PAGE_SIZE, PAGE_SIZE)
        annotator.add_display_rectangle(10, 10, 50, 50)
        annotator.detect_tables("regions")
        annotator.clear_table_boxes()
        assert [box.effective_kind for box in annotator.store] == [BoxKind.MANUAL]

    def test_busy_request_ignored(self, annotator):
        annotator.is_processing = True
        assert annotator.detect_tables() == []
        assert annotator.run_ocr() is None

    def test_no_page(self, config):
        annotator = PageAnnotator(config)
        assert annotator.detect_tables() == []
        assert annotator.error_handler.get_errors()[0].error_type == ErrorType.INVALID_INPUT


class TestOCR:

    def test_word_boxes_above_threshold(self, annotator, ocr_engine):
        data = annotator.run_ocr(OCRSettings(min_confidence=60))

        assert ocr_engine.calls
        assert [item.text for item in data.words] == ["Invoice", "total", "faint"]
        ocr_boxes = annotator.store.get_by_kind(BoxKind.OCR)
        assert len(ocr_boxes) == 2
        assert ocr_boxes[0].x == 72
        assert not annotator.is_processing

    def test_line_level(self, annotator):
        annotator.run_ocr(OCRSettings(level=OCRLevel.LINE, min_confidence=0))
        assert len(annotator.store.get_by_kind(BoxKind.OCR)) == 2

    def test_engine_failure(self, config):
        annotator = PageAnnotator(config, ocr_engine=FakeOCREngine(error=OCRError("model missing")))
        annotator.load_pdf(make_pdf(), "table.pdf")
        with pytest.raises(OCRError):
            annotator.run_ocr()
        assert not annotator.is_processing
        assert annotator.text_data is None
        assert annotator.error_handler.get_errors()[-1].error_type == ErrorType.OCR

    def test_rerun_replaces_ocr_boxes(self, annotator):
        annotator.run_ocr(OCRSettings(min_confidence=60))
        annotator.run_ocr(OCRSettings(min_confidence=60))
        assert len(annotator.store.get_by_kind(BoxKind.OCR)) == 2

    def test_failed_rerun_keeps_previous_results(self, annotator, ocr_engine):
        data = annotator.run_ocr(OCRSettings(min_confidence=60))
        previous = [box.id for box in annotator.store.get_by_kind(BoxKind.OCR)]

        ocr_engine.error = OCRError("model missing")
        with pytest.raises(OCRError):
            annotator.run_ocr(OCRSettings(min_confidence=0))

        assert [box.id for box in annotator.store.get_by_kind(BoxKind.OCR)] == previous
        assert annotator.text_data is data


class TestExport:

    def test_export_boxes(self, annotator):
        annotator.detect_tables(DetectionMode.CELLS)
        payload = annotator.export_boxes()
        assert payload["filename"] == "table.pdf"
        assert payload["dpi"] == 72
        assert payload["metadata"]["totalBoundingBoxes"] == 4

    def test_export_ocr_requires_results(self, annotator):
        with pytest.raises(ExportError):
            annotator.export_ocr()
        annotator.run_ocr()
        assert annotator.export_ocr()["ocrResults"]["text"] == "Invoice total\nfaint"


class TestAnnotateFile:

    def test_summary(self, tmp_path, config, ocr_engine):
        path = tmp_path / "table.pdf"
        path.write_bytes(make_pdf())
        summary = PageAnnotator(config, ocr_engine=ocr_engine).annotate_file(
            path, mode=DetectionMode.CELLS, run_ocr=True
        )
        assert summary.success
        assert summary.table_boxes == 4
        assert summary.strategy == "pixel_scan"
        assert summary.ocr_boxes == 2

    def test_missing_page(self, tmp_path, config):
        path = tmp_path / "table.pdf"
        path.write_bytes(make_pdf())
        summary = PageAnnotator(config).annotate_file(path, page=5, mode=DetectionMode.REGIONS)
        assert not summary.success

    def test_missing_file(self, tmp_path, config):
        summary = PageAnnotator(config).annotate_file(tmp_path / "nope.pdf")
        assert not summary.success


class TestCLI:

    @pytest.fixture(autouse=True)
    def environment(self, monkeypatch):
        monkeypatch.setenv("ANNOTATOR_DPI", "72")
        monkeypatch.setenv("ANNOTATOR_MORPHOLOGY_SOURCES", "no_such_morphology_module")

    def test_detect_and_export(self, tmp_path):
        import main

        pdf = tmp_path / "table.pdf"
        pdf.write_bytes(make_pdf())
        output = tmp_path / "boxes.json"

        assert main.main([str(pdf), "--mode", "cells", "--output", str(output), "--quiet"]) == 0
        payload = json.loads(output.read_text(encoding="utf-8"))
        assert payload["metadata"]["totalBoundingBoxes"] == 4

    def test_rejects_missing_input(self, tmp_path):
        import main

        assert main.main([str(tmp_path / "missing.pdf"), "--quiet"]) == 1

    def test_build_config(self):
        import main

        args = main.parse_args(["in.pdf", "--level", "block", "--min-confidence", "10", "--no-enhance"])
        config = main.build_config(args)
        assert config.ocr.level == OCRLevel.BLOCK
        assert config.ocr.min_confidence == 10
        assert not config.ocr.enhance_image
        assert config.raster_dpi == 72
        assert isinstance(config, AnnotatorConfig)


class TestWebApp:

    def test_kind_counts_use_plain_names(self, annotator):
        pytest.importorskip("streamlit")
        import app

        annotator.set_display_size(PAGE_SIZE, PAGE_SIZE)
        annotator.add_display_rectangle(10, 10, 50, 50)
        annotator.run_ocr(OCRSettings(min_confidence=60))

        assert app.format_kind_counts(annotator.store.stats()) == "manual: 1, ocr: 2"
