"""Page Annotator orchestrator - owns the document state and the bounding box store."""

import time
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from models.config import AnnotatorConfig, AnnotationSummary, OCRSettings
from models.data_models import (
    BoundingBox,
    BoxKind,
    CapabilityStatus,
    DetectionMode,
    Dimensions,
    OCRTextData,
    PDFDocumentInfo,
    Rect,
    Unit,
    UnitRect,
)
from services.bbox_store import BoundingBoxStore
from services.coordinate_converter import CoordinateConverter
from services.drawing_session import DrawingSession
from services.exporter import build_export_payload, build_ocr_export_payload
from services.image_preprocessor import ImagePreprocessor
from services.morphology_loader import MorphologyEngineLoader
from services.ocr_engine import OCREngine, OCRError
from services.ocr_normalizer import (
    filter_by_confidence,
    items_for_level,
    items_to_boxes,
    normalize_ocr_result,
    text_data_summary,
)
from services.pdf_rasterizer import PDFRasterizer, PDFRasterError
from services.table_detector import TableDetector, TableDetectionError, parse_mode
from services.unit_converter import rect_in_unit
from utils.error_handler import ErrorHandler


logger = logging.getLogger(__name__)


class PageAnnotator:
    """Coordinates rasterizing, drawing, table detection, OCR and export for one document."""

    def __init__(
        self,
        config: Optional[AnnotatorConfig] = None,
        rasterizer: Optional[PDFRasterizer] = None,
        ocr_engine: Optional[OCREngine] = None,
        loader: Optional[MorphologyEngineLoader] = None,
    ):
        """
        Initialize the annotator.

        Args:
            config: AnnotatorConfig (defaults apply when omitted)
            rasterizer: PDF rasterizer; created from the config when omitted
            ocr_engine: OCR engine; created lazily on first OCR run
            loader: Morphology engine loader shared by detection and OCR
                preprocessing
        """
        self._config = config or AnnotatorConfig()
        self._converter = CoordinateConverter(raster_dpi=self._config.raster_dpi)
        self._rasterizer = rasterizer or PDFRasterizer(dpi=self._config.raster_dpi)
        self._ocr_engine = ocr_engine
        self._loader = loader or MorphologyEngineLoader(
            sources=self._config.morphology_sources,
            timeout=self._config.morphology_timeout,
        )
        self._detector = TableDetector(converter=self._converter, loader=self._loader)
        self._preprocessor = ImagePreprocessor(loader=self._loader)
        self._drawing = DrawingSession(self._converter, min_size=self._config.min_draw_size)
        self._error_handler = ErrorHandler()

        self.store = BoundingBoxStore()
        self.info = PDFDocumentInfo()
        self.text_data: Optional[OCRTextData] = None
        self.display_dimensions: Optional[Dimensions] = None
        self.is_processing = False

    @property
    def config(self) -> AnnotatorConfig:
        return self._config

    @property
    def converter(self) -> CoordinateConverter:
        return self._converter

    @property
    def error_handler(self) -> ErrorHandler:
        return self._error_handler

    @property
    def capability_status(self) -> CapabilityStatus:
        return self._loader.status

    @property
    def last_strategy(self) -> Optional[str]:
        return self._detector.last_strategy

    def initialize_engines(self) -> CapabilityStatus:
        """Load the morphology engine up front and record it if unavailable."""
        if self._loader.status == CapabilityStatus.LOADING:
            status = self._loader.load()
            if status == CapabilityStatus.FAILED:
                self._error_handler.handle_dependency_unavailable("Morphology engine", self._loader.errors)
        return self._loader.status

    # ------------------------------------------------------------------
    # Document and page state
    # ------------------------------------------------------------------

    def load_pdf(self, data: bytes, file_name: Optional[str] = None) -> PDFDocumentInfo:
        """
        Load a new document and rasterize its first page.

        Args:
            data: Raw PDF bytes
            file_name: Name shown in exports

        Returns:
            The new PDFDocumentInfo

        Raises:
            PDFRasterError: If the document cannot be opened or rendered
        """
        self.info = PDFDocumentInfo(file_name=file_name)
        self.store.clear()
        self.text_data = None
        self._drawing.cancel()

        try:
            self.info.total_pages = self._rasterizer.load_document(data)
            self.info.is_loaded = True
            self._render(1)
        except PDFRasterError as e:
            self._error_handler.handle_rasterize_error(e, file_name or "<memory>")
            raise

        logger.info(f"Loaded {file_name or 'PDF'} with {self.info.total_pages} pages")
        return self.info

    def load_pdf_file(self, path: Union[str, Path]) -> PDFDocumentInfo:
        path = Path(path)
        return self.load_pdf(path.read_bytes(), path.name)

    def go_to_page(self, page_number: int) -> bool:
        """
        Rasterize another page (1-indexed).

        Returns:
            False when the page does not exist; the current page is kept

        Raises:
            PDFRasterError: If rendering fails
        """
        if not self.info.has_page(page_number):
            self._error_handler.handle_invalid_input(
                f"Page {page_number} is outside 1..{self.info.total_pages}"
            )
            return False

        try:
            self._render(page_number)
        except PDFRasterError as e:
            self._error_handler.handle_rasterize_error(e, self.info.file_name or "<memory>", page_number)
            raise
        self.text_data = None
        return True

    def _render(self, page_number: int) -> None:
        raster = self._rasterizer.render_page(page_number - 1, self._converter.dpi_scale)
        self.info.current_page = page_number
        self.info.raster_image = raster
        self.info.original_dimensions = raster.dimensions
        logger.info(f"Page {page_number} rasterized at {raster.width}x{raster.height}px")

    def set_display_size(self, width: float, height: float) -> None:
        """Record the measured size of the on-screen page image."""
        self.display_dimensions = Dimensions(width=width, height=height)

    # ------------------------------------------------------------------
    # Manual drawing
    # ------------------------------------------------------------------

    def begin_drawing(self, x: float, y: float) -> None:
        if self.info.raster_image is None:
            return
        self._drawing.begin(x, y)

    def move_drawing(self, x: float, y: float) -> Optional[Rect]:
        return self._drawing.move(x, y)

    def end_drawing(self, x: float, y: float) -> Optional[BoundingBox]:
        """Finish a drag and store the resulting manual box, if any."""
        box = self._drawing.end(x, y, self.info.original_dimensions, self.display_dimensions)
        if box is not None:
            self.store.add(box)
            logger.info(f"Added manual box {box.id}")
        return box

    def add_display_rectangle(self, x: float, y: float, width: float, height: float) -> Optional[BoundingBox]:
        """Store a rectangle given in display pixels, as if it had been dragged."""
        self.begin_drawing(x, y)
        return self.end_drawing(x + width, y + height)

    # ------------------------------------------------------------------
    # Automated detection
    # ------------------------------------------------------------------

    def detect_tables(self, mode: Union[DetectionMode, str, None] = None) -> List[BoundingBox]:
        """
        Run table detection on the current page and store the boxes.

        Args:
            mode: Detection mode; defaults to the configured one

        Returns:
            The boxes that were added (empty when busy, no page or nothing found)

        Raises:
            TableDetectionError: If the detection engine fails
        """
        if self.is_processing:
            logger.warning("Detection already in progress, request ignored")
            return []
        if self.info.raster_image is None:
            self._error_handler.handle_invalid_input("No page image for table detection")
            return []

        mode = parse_mode(mode) if mode is not None else self._config.detection_mode
        self.initialize_engines()
        self.is_processing = True
        try:
            boxes = self._detector.detect(self.info.raster_image, mode)
        except TableDetectionError as e:
            self._error_handler.handle_table_detection_error(e, self.info.current_page)
            raise
        finally:
            self.is_processing = False

        self.store.add_many(boxes)
        return boxes

    def run_ocr(self, settings: Optional[OCRSettings] = None) -> Optional[OCRTextData]:
        """
        Recognize text on the current page and store OCR boxes.

        OCR boxes from an earlier run are replaced only when this run
        succeeds.

        Args:
            settings: OCR options; defaults to the configured ones

        Returns:
            OCRTextData, or None when busy or no page is loaded

        Raises:
            OCRError: If the OCR engine fails
        """
        if self.is_processing:
            logger.warning("OCR requested while processing, request ignored")
            return None
        if self.info.raster_image is None:
            self._error_handler.handle_invalid_input("No page image for OCR")
            return None

        settings = settings or self._config.ocr
        self._config.ocr = settings
        self.initialize_engines()
        self.is_processing = True
        try:
            if self._ocr_engine is None:
                self._ocr_engine = OCREngine(use_gpu=self._config.use_gpu, language=settings.language)
            pixels = self._preprocessor.preprocess(self.info.raster_image, settings.enhance_image)
            raw = self._ocr_engine.recognize(pixels, settings.language)
        except OCRError as e:
            self._error_handler.handle_ocr_error(e, self.info.current_page)
            raise
        finally:
            self.is_processing = False

        self.text_data = normalize_ocr_result(raw, self._converter.raster_to_point)
        logger.info(f"OCR finished: {text_data_summary(self.text_data)}")

        # A new run replaces the boxes of the previous one
        self.store.remove_by_kind(BoxKind.OCR)
        self.store.add_many(self.ocr_boxes(settings))
        return self.text_data

    def ocr_boxes(self, settings: Optional[OCRSettings] = None) -> List[BoundingBox]:
        """Boxes for the selected OCR level that pass the confidence filter."""
        if self.text_data is None:
            return []
        settings = settings or self._config.ocr
        items = filter_by_confidence(items_for_level(self.text_data, settings.level), settings.min_confidence)
        return items_to_boxes(items, settings.level)

    def clear_table_boxes(self) -> None:
        self.store.remove_by_kind(BoxKind.TABLE)

    # ------------------------------------------------------------------
    # Presentation and export
    # ------------------------------------------------------------------

    def boxes_in_unit(self, unit: Union[Unit, str]) -> List[Tuple[BoundingBox, UnitRect]]:
        """Every stored box with its rectangle converted for display."""
        return [
            (box, rect_in_unit(box.x, box.y, box.width, box.height, box.unit, unit))
            for box in self.store
        ]

    def display_rects(self) -> List[Tuple[BoundingBox, Optional[Rect]]]:
        """Every stored box placed on the display element (None if unmeasured)."""
        return [
            (box, self._converter.box_to_display(box, self.info.original_dimensions, self.display_dimensions))
            for box in self.store
        ]

    def export_boxes(self) -> dict:
        return build_export_payload(self.store.boxes, self.info, self._config.ocr, self._config.raster_dpi)

    def export_ocr(self) -> dict:
        """
        Raises:
            ExportError: If OCR has not been run
        """
        return build_ocr_export_payload(self.text_data, self.info, self._config.ocr, self._config.raster_dpi)

    def annotate_file(
        self,
        path: Union[str, Path],
        page: int = 1,
        mode: Optional[DetectionMode] = None,
        run_ocr: bool = False,
    ) -> AnnotationSummary:
        """
        Run the automated detectors on one page of a PDF file.

        Args:
            path: PDF file path
            page: Page number (1-indexed)
            mode: Table detection mode, or None to skip table detection
            run_ocr: Whether to run OCR as well

        Returns:
            AnnotationSummary with counts and errors
        """
        start_time = time.time()
        summary = AnnotationSummary(input_file=str(path), page=page)

        try:
            logger.info(f"Loading PDF: {path}")
            self.load_pdf_file(path)
            if page != 1 and not self.go_to_page(page):
                summary.add_error(f"Page {page} does not exist (document has {self.info.total_pages} pages)")
                return summary

            if mode is not None:
                logger.info("Detecting tables...")
                summary.table_boxes = len(self.detect_tables(mode))
                summary.strategy = self.last_strategy

            if run_ocr:
                logger.info("Running OCR...")
                self.run_ocr()
                summary.ocr_boxes = len(self.store.get_by_kind(BoxKind.OCR))

        except (OSError, PDFRasterError, TableDetectionError, OCRError) as e:
            summary.add_error(str(e))
        finally:
            summary.processing_time_seconds = time.time() - start_time

        summary.manual_boxes = len(self.store.get_by_kind(BoxKind.MANUAL))
        return summary
