# Models package
from .data_models import (
    Unit,
    BoxKind,
    BoxRole,
    DetectionMode,
    LineOrientation,
    OCRLevel,
    OCRLanguage,
    CapabilityStatus,
    Rect,
    Dimensions,
    UnitRect,
    CoordinateConversion,
    BoundingBox,
    RasterImage,
    PDFDocumentInfo,
    TableRegion,
    TableLine,
    TableCell,
    CornerBox,
    OCRBox,
    OCRItem,
    OCRTextData,
    BoxStats,
)
from .config import AnnotatorConfig, OCRSettings, AnnotationSummary

__all__ = [
    "Unit",
    "BoxKind",
    "BoxRole",
    "DetectionMode",
    "LineOrientation",
    "OCRLevel",
    "OCRLanguage",
    "CapabilityStatus",
    "Rect",
    "Dimensions",
    "UnitRect",
    "CoordinateConversion",
    "BoundingBox",
    "RasterImage",
    "PDFDocumentInfo",
    "TableRegion",
    "TableLine",
    "TableCell",
    "CornerBox",
    "OCRBox",
    "OCRItem",
    "OCRTextData",
    "BoxStats",
    "AnnotatorConfig",
    "OCRSettings",
    "AnnotationSummary",
]
