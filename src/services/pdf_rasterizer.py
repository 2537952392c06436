"""PDF Rasterizer component rendering document pages to bitmaps with PyMuPDF."""

import logging
from typing import Optional, Tuple

import fitz  # PyMuPDF
import numpy as np

from models.data_models import RasterImage


logger = logging.getLogger(__name__)

REFERENCE_DPI = 72.0
DEFAULT_DPI = 300.0


class PDFRasterError(Exception):
    """Exception raised when a PDF cannot be opened or rendered."""
    pass


class PDFRasterizer:
    """Opens PDF bytes and renders single pages at a fixed resolution."""

    def __init__(self, dpi: float = DEFAULT_DPI):
        """
        Args:
            dpi: Render resolution; the zoom factor is dpi / 72
        """
        self._dpi = dpi
        self._doc: Optional[fitz.Document] = None

    @property
    def resolution_ratio(self) -> float:
        return self._dpi / REFERENCE_DPI

    @property
    def page_count(self) -> int:
        return self._doc.page_count if self._doc is not None else 0

    def validate_pdf(self, data: bytes) -> Tuple[bool, Optional[str]]:
        """
        Validate PDF bytes and return (is_valid, error_message).

        Args:
            data: Raw PDF file content

        Returns:
            Tuple of (is_valid, error_message). error_message is None if valid.
        """
        if not data:
            return False, "PDF data is empty"

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except fitz.FileDataError as e:
            return False, f"Corrupted or invalid PDF: {str(e)}"
        except Exception as e:
            return False, f"Error opening PDF: {str(e)}"

        try:
            if doc.page_count == 0:
                return False, "PDF has no pages"
            return True, None
        finally:
            doc.close()

    def load_document(self, data: bytes) -> int:
        """
        Open a document, replacing any previously loaded one.

        Args:
            data: Raw PDF file content

        Returns:
            Number of pages

        Raises:
            PDFRasterError: If the PDF is invalid
        """
        is_valid, error_msg = self.validate_pdf(data)
        if not is_valid:
            raise PDFRasterError(error_msg)

        self.close()
        try:
            self._doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise PDFRasterError(f"Error loading PDF: {str(e)}") from e

        logger.info(f"PDF loaded with {self._doc.page_count} pages")
        return self._doc.page_count

    def render_page(self, page_index: int, resolution_ratio: Optional[float] = None) -> RasterImage:
        """
        Render one page to an RGB bitmap.

        Args:
            page_index: Page number (0-indexed)
            resolution_ratio: Zoom relative to 72 DPI; defaults to dpi / 72

        Returns:
            RasterImage with the rendered pixels

        Raises:
            PDFRasterError: If no document is loaded, the index is out of
                range or rendering fails
        """
        if self._doc is None:
            raise PDFRasterError("No document loaded")
        if page_index < 0 or page_index >= self._doc.page_count:
            raise PDFRasterError(
                f"Invalid page index {page_index} (document has {self._doc.page_count} pages)"
            )

        zoom = resolution_ratio or self.resolution_ratio
        try:
            page = self._doc[page_index]
            pixmap = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            pixels = np.frombuffer(pixmap.samples, dtype=np.uint8).reshape(
                pixmap.height, pixmap.width, pixmap.n
            )
        except Exception as e:
            raise PDFRasterError(f"Error rendering page {page_index + 1}: {str(e)}") from e

        logger.debug(
            f"Rendered page {page_index + 1}: {page.rect.width:.1f}x{page.rect.height:.1f}pt "
            f"-> {pixmap.width}x{pixmap.height}px"
        )
        return RasterImage(pixels=pixels[:, :, :3].copy(), dpi=zoom * REFERENCE_DPI)

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None
