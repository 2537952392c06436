"""Configuration and summary models for the PDF Page Annotator."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Any

from .data_models import DetectionMode, OCRLanguage, OCRLevel


ENV_PREFIX = "ANNOTATOR_"


@dataclass
class OCRSettings:
    """User-selectable OCR options."""
    language: OCRLanguage = OCRLanguage.ENGLISH
    level: OCRLevel = OCRLevel.WORD
    min_confidence: float = 60.0
    enhance_image: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language.value,
            "level": self.level.value,
            "minConfidence": self.min_confidence,
            "enhanceImage": self.enhance_image,
        }


@dataclass
class AnnotatorConfig:
    """Configuration for the annotation pipeline."""
    raster_dpi: float = 300.0
    ocr: OCRSettings = field(default_factory=OCRSettings)
    detection_mode: DetectionMode = DetectionMode.REGIONS
    morphology_sources: Tuple[str, ...] = ("cv2",)
    morphology_timeout: float = 20.0
    min_draw_size: float = 5.0
    use_gpu: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'AnnotatorConfig':
        """
        Build a config from ANNOTATOR_* environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            AnnotatorConfig with defaults for unset variables
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value else None

        config = cls()
        if get("DPI"):
            config.raster_dpi = float(get("DPI"))
        if get("DETECTION_MODE"):
            config.detection_mode = DetectionMode(get("DETECTION_MODE"))
        if get("MORPHOLOGY_SOURCES"):
            config.morphology_sources = tuple(
                s.strip() for s in get("MORPHOLOGY_SOURCES").split(",") if s.strip()
            )
        if get("MORPHOLOGY_TIMEOUT"):
            config.morphology_timeout = float(get("MORPHOLOGY_TIMEOUT"))
        if get("MIN_DRAW_SIZE"):
            config.min_draw_size = float(get("MIN_DRAW_SIZE"))
        if get("USE_GPU"):
            config.use_gpu = get("USE_GPU").lower() in ("1", "true", "yes")
        if get("OCR_LANGUAGE"):
            config.ocr.language = OCRLanguage(get("OCR_LANGUAGE"))
        if get("OCR_LEVEL"):
            config.ocr.level = OCRLevel(get("OCR_LEVEL"))
        if get("OCR_MIN_CONFIDENCE"):
            config.ocr.min_confidence = float(get("OCR_MIN_CONFIDENCE"))
        if get("OCR_ENHANCE"):
            config.ocr.enhance_image = get("OCR_ENHANCE").lower() in ("1", "true", "yes")
        return config


@dataclass
class AnnotationSummary:
    """Summary of an annotation run over one page."""
    input_file: str
    page: int
    table_boxes: int = 0
    ocr_boxes: int = 0
    manual_boxes: int = 0
    strategy: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    processing_time_seconds: float = 0.0
    success: bool = True

    def add_error(self, error: str) -> None:
        """Add an error message to the summary."""
        self.errors.append(error)
        self.success = False
