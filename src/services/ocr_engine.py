"""OCR Engine component producing hierarchical text results with PaddleOCR."""

import logging
from typing import Any, Dict, List, Optional

import numpy as np

from models.data_models import OCRLanguage
from utils.image_utils import as_pixel_array, to_rgb


logger = logging.getLogger(__name__)

# PaddleOCR's Japanese model also covers Latin script
PADDLE_LANGUAGES = {
    OCRLanguage.ENGLISH: "en",
    OCRLanguage.JAPANESE: "japan",
    OCRLanguage.ENGLISH_JAPANESE: "japan",
}

PARAGRAPH_GAP_RATIO = 0.8
BLOCK_GAP_RATIO = 2.0


class OCRError(Exception):
    """Exception raised when OCR processing fails."""
    pass


class OCREngine:
    """Runs PaddleOCR and reshapes its line detections into words/lines/paragraphs/blocks."""

    def __init__(self, use_gpu: bool = False, language: OCRLanguage = OCRLanguage.ENGLISH):
        """
        Initialize the engine wrapper; PaddleOCR itself loads lazily.

        Args:
            use_gpu: Whether to use GPU acceleration
            language: Recognition language
        """
        self._use_gpu = use_gpu and self.is_gpu_available()
        self._language = language
        self._ocr = None
        self._initialized = False

    def _initialize_ocr(self) -> None:
        """Lazy initialization of PaddleOCR."""
        if self._initialized:
            return

        try:
            from paddleocr import PaddleOCR

            self._ocr = PaddleOCR(
                use_angle_cls=True,
                lang=PADDLE_LANGUAGES[self._language],
                use_gpu=self._use_gpu,
                show_log=False,
            )
            self._initialized = True

        except ImportError:
            raise OCRError("PaddleOCR is not installed. Install with: pip install paddleocr")
        except Exception as e:
            raise OCRError(f"Failed to initialize PaddleOCR: {str(e)}")

    def is_gpu_available(self) -> bool:
        """
        Check if GPU is available for processing.

        Returns:
            True if GPU is available
        """
        try:
            import paddle
            return paddle.device.is_compiled_with_cuda() and paddle.device.cuda.device_count() > 0
        except ImportError:
            return False
        except Exception:
            return False

    def set_language(self, language: OCRLanguage) -> None:
        """Switch language; the model reloads on next use."""
        if language != self._language:
            self._language = language
            self._initialized = False
            self._ocr = None

    def recognize(self, image: Any, language: Optional[OCRLanguage] = None) -> Dict[str, Any]:
        """
        Recognize text on a page image.

        Args:
            image: RasterImage, PIL image or numpy array
            language: Optional language override

        Returns:
            Dict with text, confidence (0-100) and words/lines/paragraphs/blocks,
            each item being {text, confidence, bbox: {x0, y0, x1, y1}}

        Raises:
            OCRError: If the engine cannot be loaded or fails
        """
        if language is not None:
            self.set_language(language)
        self._initialize_ocr()

        pixels = as_pixel_array(image)
        if pixels is None:
            return build_hierarchy([])

        try:
            result = self._ocr.ocr(to_rgb(pixels), cls=True)
        except Exception as e:
            raise OCRError(f"OCR recognition failed: {str(e)}") from e

        return build_hierarchy(parse_paddle_result(result))


def parse_paddle_result(result: Any) -> List[Dict[str, Any]]:
    """
    Parse PaddleOCR output into line items.

    Args:
        result: Raw PaddleOCR result, [[[polygon, (text, confidence)], ...]]

    Returns:
        Line items in reading order with confidence on a 0-100 scale
    """
    lines: List[Dict[str, Any]] = []

    if not result or not result[0]:
        return lines

    for entry in result[0]:
        if not entry or len(entry) < 2:
            continue

        polygon, text_info = entry[0], entry[1]
        if not polygon or not text_info:
            continue

        if isinstance(text_info, (list, tuple)):
            text = str(text_info[0])
            confidence = float(text_info[1]) if len(text_info) > 1 else 0.0
        else:
            text = str(text_info)
            confidence = 0.0

        text = text.strip()
        if not text:
            continue

        lines.append({
            "text": text,
            "confidence": round(confidence * 100, 2),
            "bbox": polygon_to_corners(polygon),
        })

    return sort_by_reading_order(lines)


def polygon_to_corners(points: List[List[float]]) -> Dict[str, float]:
    """Convert a polygon to its enclosing corner box."""
    if not points:
        return {"x0": 0.0, "y0": 0.0, "x1": 0.0, "y1": 0.0}

    xs = [float(p[0]) for p in points]
    ys = [float(p[1]) for p in points]
    return {"x0": min(xs), "y0": min(ys), "x1": max(xs), "y1": max(ys)}


def sort_by_reading_order(items: List[Dict[str, Any]], tolerance: float = 10.0) -> List[Dict[str, Any]]:
    """Sort items top to bottom, then left to right."""
    def get_sort_key(item: Dict[str, Any]):
        y_rounded = round(item["bbox"]["y0"] / tolerance) * tolerance
        return (y_rounded, item["bbox"]["x0"])

    return sorted(items, key=get_sort_key)


def split_words(line: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Split a line into words, spreading its width by character count.

    Args:
        line: Line item with text and corner bbox

    Returns:
        Word items sharing the line's confidence and vertical extent
    """
    text = line["text"]
    box = line["bbox"]
    if not text:
        return []

    char_width = (box["x1"] - box["x0"]) / len(text)
    words = []
    offset = 0
    for token in text.split():
        start = text.index(token, offset)
        offset = start + len(token)
        words.append({
            "text": token,
            "confidence": line["confidence"],
            "bbox": {
                "x0": box["x0"] + start * char_width,
                "y0": box["y0"],
                "x1": box["x0"] + offset * char_width,
                "y1": box["y1"],
            },
        })
    return words


def group_lines(lines: List[Dict[str, Any]], gap_ratio: float) -> List[Dict[str, Any]]:
    """
    Merge vertically adjacent items into larger units.

    Two consecutive items join the same group when the vertical gap between
    them is below gap_ratio times the median item height.
    """
    if not lines:
        return []

    heights = sorted(item["bbox"]["y1"] - item["bbox"]["y0"] for item in lines)
    median_height = max(1.0, heights[len(heights) // 2])
    max_gap = median_height * gap_ratio

    groups: List[List[Dict[str, Any]]] = [[lines[0]]]
    for item in lines[1:]:
        previous = groups[-1][-1]
        gap = item["bbox"]["y0"] - previous["bbox"]["y1"]
        if gap < max_gap:
            groups[-1].append(item)
        else:
            groups.append([item])

    return [_merge(group) for group in groups]


def _merge(items: List[Dict[str, Any]]) -> Dict[str, Any]:
    confidences = [item["confidence"] for item in items]
    return {
        "text": "\n".join(item["text"] for item in items),
        "confidence": round(float(np.mean(confidences)), 2),
        "bbox": {
            "x0": min(item["bbox"]["x0"] for item in items),
            "y0": min(item["bbox"]["y0"] for item in items),
            "x1": max(item["bbox"]["x1"] for item in items),
            "y1": max(item["bbox"]["y1"] for item in items),
        },
    }


def build_hierarchy(lines: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Assemble the full word/line/paragraph/block result from line items."""
    words = [word for line in lines for word in split_words(line)]
    paragraphs = group_lines(lines, PARAGRAPH_GAP_RATIO)
    blocks = group_lines(paragraphs, BLOCK_GAP_RATIO)
    confidence = round(float(np.mean([line["confidence"] for line in lines])), 2) if lines else 0.0

    return {
        "text": "\n".join(line["text"] for line in lines),
        "confidence": confidence,
        "words": words,
        "lines": lines,
        "paragraphs": paragraphs,
        "blocks": blocks,
    }
