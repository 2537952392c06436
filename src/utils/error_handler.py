"""Error handling utilities for the PDF Page Annotator system."""

import logging
import time
from typing import Optional, Callable, Any, List
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Types of errors in the annotation pipeline."""
    RASTERIZE = "rasterize"
    OCR = "ocr"
    TABLE_DETECTION = "table_detection"
    DEPENDENCY = "dependency"
    INVALID_INPUT = "invalid_input"
    EXPORT = "export"
    UNKNOWN = "unknown"


@dataclass
class ProcessingError:
    """Represents an error that occurred during processing."""
    error_type: ErrorType
    message: str
    page_number: Optional[int] = None
    recoverable: bool = True
    original_exception: Optional[Exception] = None
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        location = ""
        if self.page_number is not None:
            location += f" (page {self.page_number})"
        return f"[{self.error_type.value}]{location}: {self.message}"


class ErrorHandler:
    """Records and logs errors across the annotation pipeline."""

    def __init__(self):
        """Initialize the error handler."""
        self._errors: List[ProcessingError] = []

    def record(self, processing_error: ProcessingError) -> ProcessingError:
        """Store an error and log it at a level matching its severity."""
        self._errors.append(processing_error)
        if processing_error.recoverable:
            logger.warning(str(processing_error))
        else:
            logger.error(str(processing_error))
        return processing_error

    def handle_rasterize_error(
        self,
        error: Exception,
        file_name: str,
        page_number: Optional[int] = None
    ) -> ProcessingError:
        """
        Handle PDF loading and rendering errors.

        Args:
            error: The exception that occurred
            file_name: Name of the PDF file
            page_number: Optional page number where error occurred

        Returns:
            ProcessingError object
        """
        return self.record(ProcessingError(
            error_type=ErrorType.RASTERIZE,
            message=f"PDF error for '{file_name}': {str(error)}",
            page_number=page_number,
            recoverable=False,
            original_exception=error,
        ))

    def handle_ocr_error(
        self,
        error: Exception,
        page_number: Optional[int] = None
    ) -> ProcessingError:
        """
        Handle OCR processing errors.

        The page stays usable and OCR can be retried.
        """
        return self.record(ProcessingError(
            error_type=ErrorType.OCR,
            message=f"OCR error: {str(error)}",
            page_number=page_number,
            recoverable=True,
            original_exception=error,
        ))

    def handle_table_detection_error(
        self,
        error: Exception,
        page_number: Optional[int] = None
    ) -> ProcessingError:
        """Handle table detection errors; detection can be retried."""
        return self.record(ProcessingError(
            error_type=ErrorType.TABLE_DETECTION,
            message=f"Table detection error: {str(error)}",
            page_number=page_number,
            recoverable=True,
            original_exception=error,
        ))

    def handle_dependency_unavailable(
        self,
        engine: str,
        reasons: List[str]
    ) -> ProcessingError:
        """
        Handle an optional engine that could not be loaded.

        Args:
            engine: Name of the engine
            reasons: One message per failed source

        Returns:
            ProcessingError object (always recoverable, a fallback exists)
        """
        detail = "; ".join(reasons) if reasons else "no source available"
        return self.record(ProcessingError(
            error_type=ErrorType.DEPENDENCY,
            message=f"{engine} unavailable, using fallback: {detail}",
            recoverable=True,
        ))

    def handle_invalid_input(
        self,
        message: str,
        page_number: Optional[int] = None
    ) -> ProcessingError:
        """Handle a skipped operation caused by missing or unusable input."""
        return self.record(ProcessingError(
            error_type=ErrorType.INVALID_INPUT,
            message=message,
            page_number=page_number,
            recoverable=True,
        ))

    def handle_export_error(self, error: Exception) -> ProcessingError:
        return self.record(ProcessingError(
            error_type=ErrorType.EXPORT,
            message=f"Export error: {str(error)}",
            recoverable=True,
            original_exception=error,
        ))

    def get_errors(self) -> List[ProcessingError]:
        """Get all recorded errors."""
        return self._errors.copy()

    def get_error_summary(self) -> dict:
        """
        Get summary of errors by type.

        Returns:
            Dict with error counts by type
        """
        summary = {}
        for error in self._errors:
            error_type = error.error_type.value
            if error_type not in summary:
                summary[error_type] = {"count": 0, "recoverable": 0, "fatal": 0}
            summary[error_type]["count"] += 1
            if error.recoverable:
                summary[error_type]["recoverable"] += 1
            else:
                summary[error_type]["fatal"] += 1
        return summary

    def clear_errors(self) -> None:
        """Clear all recorded errors."""
        self._errors.clear()

    def has_fatal_errors(self) -> bool:
        """Check if any non-recoverable errors occurred."""
        return any(not e.recoverable for e in self._errors)


def safe_execute(
    func: Callable,
    error_handler: ErrorHandler,
    error_type: ErrorType,
    default_value: Any = None,
    **error_context
) -> Any:
    """
    Safely execute a function and handle errors.

    Args:
        func: Function to execute
        error_handler: ErrorHandler instance
        error_type: Type of error to record
        default_value: Value to return on error
        **error_context: Additional context for error (page_number)

    Returns:
        Function result or default_value on error
    """
    try:
        return func()
    except Exception as e:
        error_handler.record(ProcessingError(
            error_type=error_type,
            message=str(e),
            page_number=error_context.get("page_number"),
            recoverable=True,
            original_exception=e,
        ))
        return default_value
