"""Discovery of the optional morphological image-processing engine (OpenCV)."""

import importlib
import logging
import threading
from typing import Any, Callable, List, Optional, Sequence, Union

from models.data_models import CapabilityStatus


logger = logging.getLogger(__name__)

# Primitives the morphological table strategy calls
REQUIRED_PRIMITIVES = (
    "cvtColor",
    "adaptiveThreshold",
    "getStructuringElement",
    "erode",
    "dilate",
    "morphologyEx",
    "bitwise_or",
    "bitwise_and",
    "findContours",
    "boundingRect",
)

EngineSource = Union[str, Callable[[], Any]]


class MorphologyEngineLoader:
    """
    Tries an ordered list of sources for the morphology engine.

    Each source is a module name or a zero-argument callable returning an
    engine object. Sources are attempted once each, in order, with no
    backoff; every attempt is bounded by a timeout. The outcome is exposed
    as a tri-state status.
    """

    def __init__(self, sources: Sequence[EngineSource] = ("cv2",), timeout: float = 20.0):
        """
        Initialize the loader.

        Args:
            sources: Module names or factories, highest priority first
            timeout: Seconds to wait for each attempt
        """
        self._sources = list(sources)
        self._timeout = timeout
        self._status = CapabilityStatus.LOADING
        self._engine: Optional[Any] = None
        self._errors: List[str] = []
        self._attempted = False

    @property
    def status(self) -> CapabilityStatus:
        return self._status

    @property
    def engine(self) -> Optional[Any]:
        return self._engine

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    @property
    def is_ready(self) -> bool:
        return self._status == CapabilityStatus.READY

    def load(self) -> CapabilityStatus:
        """
        Attempt every source until one yields a usable engine.

        Returns:
            READY when an engine was found, FAILED otherwise
        """
        if self._attempted:
            return self._status
        self._attempted = True

        for source in self._sources:
            label = source if isinstance(source, str) else getattr(source, "__name__", repr(source))
            logger.info(f"Trying morphology engine source: {label}")
            try:
                engine = self._attempt(source)
            except TimeoutError:
                self._errors.append(f"{label}: timed out after {self._timeout:.1f}s")
                logger.warning(f"Morphology engine source {label} timed out")
                continue
            except Exception as e:
                self._errors.append(f"{label}: {e}")
                logger.warning(f"Morphology engine source {label} failed: {e}")
                continue

            missing = [name for name in REQUIRED_PRIMITIVES if not hasattr(engine, name)]
            if missing:
                self._errors.append(f"{label}: missing {', '.join(missing)}")
                logger.warning(f"Morphology engine from {label} lacks {missing}")
                continue

            self._engine = engine
            self._status = CapabilityStatus.READY
            logger.info(f"Morphology engine ready from {label}")
            return self._status

        self._status = CapabilityStatus.FAILED
        logger.warning("No morphology engine available, pixel-scan fallback will be used")
        return self._status

    def _attempt(self, source: EngineSource) -> Any:
        """
        Run one source on a daemon thread so a hung import is bounded.

        A source that never returns is abandoned; being a daemon, its thread
        does not keep the interpreter alive at exit.

        Raises:
            TimeoutError: If the source does not finish within the timeout
        """
        loader = (lambda: importlib.import_module(source)) if isinstance(source, str) else source
        outcome = {}

        def run():
            try:
                outcome["engine"] = loader()
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=run, name="morphology-engine-loader", daemon=True)
        worker.start()
        worker.join(self._timeout)

        if worker.is_alive():
            raise TimeoutError(f"source did not finish within {self._timeout:.1f}s")
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("engine")
