"""Drawing session turning a press-drag-release gesture into a manual box."""

import logging
import uuid
from typing import Optional

from models.data_models import BoundingBox, BoxKind, Dimensions, Rect, Unit
from services.coordinate_converter import CoordinateConverter


logger = logging.getLogger(__name__)


def normalize_drag(start_x: float, start_y: float, end_x: float, end_y: float) -> Rect:
    """Rectangle between two drag points: min corner, absolute extent."""
    return Rect(
        x=min(start_x, end_x),
        y=min(start_y, end_y),
        width=abs(end_x - start_x),
        height=abs(end_y - start_y),
    )


class DrawingSession:
    """Tracks one drag gesture in display coordinates."""

    def __init__(self, converter: CoordinateConverter, min_size: float = 5.0):
        """
        Args:
            converter: Used to map the released rectangle to points
            min_size: Display extent a rectangle must exceed on both axes
        """
        self._converter = converter
        self._min_size = min_size
        self._start: Optional[tuple] = None
        self._preview: Optional[Rect] = None

    @property
    def is_drawing(self) -> bool:
        return self._start is not None

    @property
    def preview(self) -> Optional[Rect]:
        return self._preview

    def begin(self, x: float, y: float) -> None:
        self._start = (x, y)
        self._preview = Rect(x, y, 0.0, 0.0)

    def move(self, x: float, y: float) -> Optional[Rect]:
        """Update the rubber-band rectangle; None when no gesture is active."""
        if self._start is None:
            return None
        self._preview = normalize_drag(self._start[0], self._start[1], x, y)
        return self._preview

    def cancel(self) -> None:
        self._start = None
        self._preview = None

    def end(
        self,
        x: float,
        y: float,
        raster_dims: Optional[Dimensions],
        display_dims: Optional[Dimensions],
    ) -> Optional[BoundingBox]:
        """
        Finish the gesture.

        Args:
            x, y: Release position in display pixels
            raster_dims: Size of the raster image
            display_dims: Measured size of the on-screen image

        Returns:
            Manual point-space box, or None when no gesture was active, the
            rectangle is too small or the coordinates cannot be converted
        """
        if self._start is None:
            return None

        rect = normalize_drag(self._start[0], self._start[1], x, y)
        self.cancel()

        if rect.width <= self._min_size or rect.height <= self._min_size:
            logger.debug(f"Ignoring drag of {rect.width:.1f}x{rect.height:.1f}px")
            return None

        coords = self._converter.display_to_point(*rect.to_tuple(), raster_dims, display_dims)
        if coords is None:
            logger.warning("Cannot convert drawn rectangle: image size unknown")
            return None

        return BoundingBox(
            id=f"bbox-{uuid.uuid4().hex[:12]}",
            x=coords.pt.x,
            y=coords.pt.y,
            width=coords.pt.width,
            height=coords.pt.height,
            unit=Unit.POINT,
            kind=BoxKind.MANUAL,
        )
