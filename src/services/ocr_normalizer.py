"""OCR Result Normalizer mapping raw engine output onto the bounding-box schema."""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Union

from models.data_models import (
    BoundingBox,
    BoxKind,
    CoordinateConversion,
    CornerBox,
    OCRBox,
    OCRItem,
    OCRLevel,
    OCRTextData,
    Unit,
)


logger = logging.getLogger(__name__)

RasterToPoint = Callable[[float, float, float, float], Optional[CoordinateConversion]]

LEVEL_KEYS = (
    (OCRLevel.WORD, "words"),
    (OCRLevel.LINE, "lines"),
    (OCRLevel.PARAGRAPH, "paragraphs"),
    (OCRLevel.BLOCK, "blocks"),
)


def _field(source: Any, name: str, default: Any = None) -> Any:
    if source is None:
        return default
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


def _number(value: Any) -> float:
    return float(value) if value is not None else 0.0


def normalize_item(raw_item: Any, item_id: str, convert: RasterToPoint) -> OCRItem:
    """
    Normalize one engine item.

    Args:
        raw_item: Mapping with text, confidence and a corner-form bbox
        item_id: Id to assign
        convert: Raster-to-point converter; may return None

    Returns:
        OCRItem keeping the original corner box next to its conversions
    """
    bbox = _field(raw_item, "bbox")
    corner = CornerBox(
        x0=_number(_field(bbox, "x0")),
        y0=_number(_field(bbox, "y0")),
        x1=_number(_field(bbox, "x1")),
        y1=_number(_field(bbox, "y1")),
    )
    # The engine occasionally emits zero-area boxes
    width = max(1.0, corner.x1 - corner.x0)
    height = max(1.0, corner.y1 - corner.y0)

    coords = convert(corner.x0, corner.y0, width, height)
    confidence = _field(raw_item, "confidence")

    return OCRItem(
        id=item_id,
        text=_field(raw_item, "text") or "",
        confidence=float(confidence) if confidence is not None else None,
        bbox=OCRBox(
            original=corner,
            pt=coords.pt if coords else None,
            px=coords.px if coords else None,
            mm=coords.mm if coords else None,
        ),
    )


def normalize_ocr_result(raw: Any, convert: RasterToPoint) -> OCRTextData:
    """
    Convert a hierarchical engine result into OCRTextData.

    Args:
        raw: Mapping with text, confidence and words/lines/paragraphs/blocks
        convert: Raster-to-point converter applied to every item

    Returns:
        OCRTextData with one OCRItem per engine item, order preserved
    """
    token = uuid.uuid4().hex[:8]
    data = OCRTextData(
        text=_field(raw, "text") or "",
        confidence=_number(_field(raw, "confidence")),
    )

    for level, key in LEVEL_KEYS:
        raw_items = _field(raw, key) or []
        items = [
            normalize_item(raw_item, f"ocr-{level.value}-{token}-{index}", convert)
            for index, raw_item in enumerate(raw_items)
        ]
        setattr(data, key, items)
        logger.debug(f"Normalized {len(items)} OCR {key}")

    return data


def filter_by_confidence(items: List[OCRItem], min_confidence: float) -> List[OCRItem]:
    """Keep items whose confidence (missing counts as 0) reaches the threshold."""
    return [
        item for item in items
        if (item.confidence if item.confidence is not None else 0.0) >= min_confidence
    ]


def items_for_level(data: OCRTextData, level: Union[OCRLevel, str]) -> List[OCRItem]:
    """Get the items of one hierarchy level (words by default)."""
    level = level if isinstance(level, OCRLevel) else OCRLevel(level)
    return {
        OCRLevel.WORD: data.words,
        OCRLevel.LINE: data.lines,
        OCRLevel.PARAGRAPH: data.paragraphs,
        OCRLevel.BLOCK: data.blocks,
    }.get(level, data.words)


def items_to_boxes(items: List[OCRItem], level: Union[OCRLevel, str] = OCRLevel.WORD) -> List[BoundingBox]:
    """
    Turn OCR items into point-space bounding boxes.

    Items without a point conversion are skipped.
    """
    level = level if isinstance(level, OCRLevel) else OCRLevel(level)
    token = uuid.uuid4().hex[:8]
    boxes: List[BoundingBox] = []

    for index, item in enumerate(items):
        pt = item.bbox.pt
        if pt is None:
            logger.debug(f"Skipping OCR item {item.id}: no point coordinates")
            continue
        boxes.append(BoundingBox(
            id=f"ocr-{level.value}-bbox-{token}-{index}",
            x=pt.x,
            y=pt.y,
            width=pt.width,
            height=pt.height,
            unit=Unit.POINT,
            kind=BoxKind.OCR,
        ))
    return boxes


def text_data_summary(data: OCRTextData) -> Dict[str, int]:
    return {key: len(getattr(data, key)) for _, key in LEVEL_KEYS}
