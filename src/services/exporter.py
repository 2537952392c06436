"""Export of bounding boxes and OCR results as JSON payloads."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from models.config import OCRSettings
from models.data_models import BoundingBox, OCRTextData, PDFDocumentInfo, Unit
from services.unit_converter import rect_in_unit


logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "unknown.pdf"


class ExportError(Exception):
    """Exception raised when an export cannot be produced or written."""
    pass


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def box_entry(box: BoundingBox, index: int) -> Dict[str, Any]:
    """Serialize one box with its point, pixel and millimeter forms."""
    values = (box.x, box.y, box.width, box.height)
    return {
        "id": box.id,
        "index": index,
        "kind": box.kind.value if box.kind else None,
        "role": box.role.value if box.role else None,
        "pt": rect_in_unit(*values, box.unit, Unit.POINT).to_dict(),
        "px": rect_in_unit(*values, box.unit, Unit.PIXEL).to_dict(),
        "mm": rect_in_unit(*values, box.unit, Unit.MILLIMETER).to_dict(),
    }


def build_export_payload(
    boxes: List[BoundingBox],
    info: PDFDocumentInfo,
    ocr_settings: OCRSettings,
    dpi: float = 300.0,
) -> Dict[str, Any]:
    """
    Build the bounding-box export document.

    Args:
        boxes: Boxes in store order
        info: Current document state
        ocr_settings: OCR options recorded in the metadata
        dpi: Raster resolution

    Returns:
        JSON-serializable dict; every box carries pt, px and mm forms
    """
    return {
        "filename": info.file_name or DEFAULT_FILENAME,
        "page": info.current_page,
        "dpi": dpi,
        "timestamp": _timestamp(),
        "metadata": {
            "ocrLanguage": ocr_settings.language.value,
            "ocrLevel": ocr_settings.level.value,
            "ocrMinConfidence": ocr_settings.min_confidence,
            "ocrEnhanceImage": ocr_settings.enhance_image,
            "totalBoundingBoxes": len(boxes),
        },
        "boundingBoxes": [box_entry(box, index) for index, box in enumerate(boxes, start=1)],
    }


def build_ocr_export_payload(
    text_data: Optional[OCRTextData],
    info: PDFDocumentInfo,
    ocr_settings: OCRSettings,
    dpi: float = 300.0,
) -> Dict[str, Any]:
    """
    Build the OCR export document.

    Raises:
        ExportError: If OCR has not been run
    """
    if text_data is None:
        raise ExportError("No OCR results to export; run OCR first")

    return {
        "filename": info.file_name or DEFAULT_FILENAME,
        "page": info.current_page,
        "dpi": dpi,
        "timestamp": _timestamp(),
        "ocrSettings": ocr_settings.to_dict(),
        "ocrResults": text_data.to_dict(),
    }


def export_filename(info: PDFDocumentInfo, suffix: str) -> str:
    """Download name such as "report.pdf-bboxes-2.json"."""
    return f"{info.file_name or 'pdf'}-{suffix}-{info.current_page}.json"


def to_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def write_json(payload: Dict[str, Any], path: Union[str, Path]) -> Path:
    """
    Write a payload to disk.

    Raises:
        ExportError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(to_json(payload), encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Cannot write {path}: {e}") from e

    logger.info(f"Exported {path}")
    return path
