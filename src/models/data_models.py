"""Core data models for the PDF Page Annotator system."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Any
from enum import Enum

import numpy as np


class Unit(Enum):
    """Length unit a bounding box is expressed in."""
    PIXEL = "px"
    MILLIMETER = "mm"
    POINT = "pt"

    @classmethod
    def parse(cls, value: Any) -> 'Unit':
        """Accept a Unit, a short code ("px") or a long name ("pixel")."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _UNIT_ALIASES:
            return _UNIT_ALIASES[key]
        raise ValueError(f"Unknown unit: {value!r}")


_UNIT_ALIASES: Dict[str, Unit] = {
    "px": Unit.PIXEL, "pixel": Unit.PIXEL, "pixels": Unit.PIXEL,
    "mm": Unit.MILLIMETER, "millimeter": Unit.MILLIMETER, "millimeters": Unit.MILLIMETER,
    "pt": Unit.POINT, "point": Unit.POINT, "points": Unit.POINT,
}


class BoxKind(Enum):
    """Provenance of a bounding box."""
    MANUAL = "manual"
    OCR = "ocr"
    TABLE = "table"


class BoxRole(Enum):
    """Structural role of a table-derived box."""
    REGION = "region"
    HORIZONTAL_LINE = "horizontal_line"
    VERTICAL_LINE = "vertical_line"
    CELL = "cell"


class DetectionMode(Enum):
    """What the table detector looks for."""
    REGIONS = "regions"
    LINES = "lines"
    CELLS = "cells"


class LineOrientation(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class OCRLevel(Enum):
    """Granularity of OCR items turned into boxes."""
    WORD = "word"
    LINE = "line"
    PARAGRAPH = "paragraph"
    BLOCK = "block"


class OCRLanguage(Enum):
    ENGLISH = "eng"
    JAPANESE = "jpn"
    ENGLISH_JAPANESE = "eng+jpn"


class CapabilityStatus(Enum):
    """Availability of an optional runtime engine."""
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class Rect:
    """Plain rectangle in some coordinate space (top-left origin)."""
    x: float
    y: float
    width: float
    height: float

    def to_tuple(self) -> Tuple[float, float, float, float]:
        """Convert to tuple format (x, y, width, height)."""
        return (self.x, self.y, self.width, self.height)


@dataclass
class Dimensions:
    """Width/height pair of an image or on-screen element."""
    width: float
    height: float

    @property
    def is_measurable(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass
class UnitRect:
    """Rectangle expressed in one physical unit."""
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class CoordinateConversion:
    """The same rectangle in points, 96-DPI pixels and millimeters."""
    pt: UnitRect
    px: UnitRect
    mm: UnitRect

    def in_unit(self, unit: Unit) -> UnitRect:
        """Get the rectangle for the given unit."""
        return {Unit.POINT: self.pt, Unit.PIXEL: self.px, Unit.MILLIMETER: self.mm}[unit]

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {"pt": self.pt.to_dict(), "px": self.px.to_dict(), "mm": self.mm.to_dict()}


@dataclass
class BoundingBox:
    """An annotated rectangle stored in a single declared unit."""
    id: str
    x: float
    y: float
    width: float
    height: float
    unit: Unit = Unit.POINT
    kind: Optional[BoxKind] = None
    role: Optional[BoxRole] = None
    row: Optional[int] = None
    col: Optional[int] = None

    def __post_init__(self):
        self.unit = Unit.parse(self.unit)
        if self.kind is not None and not isinstance(self.kind, BoxKind):
            self.kind = BoxKind(self.kind)
        if self.role is not None and not isinstance(self.role, BoxRole):
            self.role = BoxRole(self.role)
        # Drag gestures may report a negative extent
        if self.width < 0:
            self.x += self.width
            self.width = -self.width
        if self.height < 0:
            self.y += self.height
            self.height = -self.height

    @property
    def effective_kind(self) -> BoxKind:
        """Kind used for counting and filtering; absent means manual."""
        return self.kind or BoxKind.MANUAL

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


@dataclass
class RasterImage:
    """A rasterized page bitmap (RGB, uint8)."""
    pixels: np.ndarray
    dpi: float = 300.0

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(width=self.width, height=self.height)


@dataclass
class PDFDocumentInfo:
    """State of the loaded document and its current page."""
    file_name: Optional[str] = None
    current_page: int = 1
    total_pages: int = 0
    raster_image: Optional[RasterImage] = None
    original_dimensions: Optional[Dimensions] = None
    is_loaded: bool = False

    def has_page(self, page_number: int) -> bool:
        """Check whether a 1-indexed page number exists."""
        return 1 <= page_number <= self.total_pages


@dataclass
class TableRegion:
    """Detected table area in image-pixel space."""
    x: int
    y: int
    width: int
    height: int


@dataclass
class TableLine:
    """Detected rule line in image-pixel space."""
    x: int
    y: int
    orientation: LineOrientation
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class TableCell:
    """Grid cell between two consecutive rules on each axis."""
    x: int
    y: int
    width: int
    height: int
    row: int
    col: int


@dataclass
class CornerBox:
    """Corner-form box as emitted by the OCR engine."""
    x0: float
    y0: float
    x1: float
    y1: float

    def to_dict(self) -> Dict[str, float]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}


@dataclass
class OCRBox:
    """Original engine box plus its converted forms (None when unavailable)."""
    original: CornerBox
    pt: Optional[UnitRect] = None
    px: Optional[UnitRect] = None
    mm: Optional[UnitRect] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original.to_dict(),
            "pt": self.pt.to_dict() if self.pt else None,
            "px": self.px.to_dict() if self.px else None,
            "mm": self.mm.to_dict() if self.mm else None,
        }


@dataclass
class OCRItem:
    """A recognized word, line, paragraph or block."""
    id: str
    text: str
    confidence: Optional[float]
    bbox: OCRBox

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "confidence": self.confidence,
            "bbox": self.bbox.to_dict(),
        }


@dataclass
class OCRTextData:
    """Hierarchical OCR output for one page."""
    text: str = ""
    confidence: float = 0.0
    words: List[OCRItem] = field(default_factory=list)
    lines: List[OCRItem] = field(default_factory=list)
    paragraphs: List[OCRItem] = field(default_factory=list)
    blocks: List[OCRItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "words": [item.to_dict() for item in self.words],
            "lines": [item.to_dict() for item in self.lines],
            "paragraphs": [item.to_dict() for item in self.paragraphs],
            "blocks": [item.to_dict() for item in self.blocks],
        }


@dataclass
class BoxStats:
    """Aggregate counts over the bounding box store."""
    total: int
    counts_by_kind: Dict[BoxKind, int] = field(default_factory=dict)

    @property
    def has_ocr(self) -> bool:
        return self.counts_by_kind.get(BoxKind.OCR, 0) > 0

    @property
    def has_table(self) -> bool:
        return self.counts_by_kind.get(BoxKind.TABLE, 0) > 0

    @property
    def has_manual(self) -> bool:
        return self.counts_by_kind.get(BoxKind.MANUAL, 0) > 0
