"""Coordinate Converter mapping rectangles between raster, display and point space."""

import logging
from typing import Optional

from models.data_models import (
    BoundingBox,
    CoordinateConversion,
    Dimensions,
    Rect,
    Unit,
    UnitRect,
)
from services.unit_converter import (
    points_to_millimeters,
    points_to_pixels,
    round_half_away,
    to_points,
)


logger = logging.getLogger(__name__)

REFERENCE_DPI = 72.0
DEFAULT_RASTER_DPI = 300.0


def _measurable(dims: Optional[Dimensions]) -> bool:
    return dims is not None and dims.is_measurable


class CoordinateConverter:
    """
    Converts rectangles between the three coordinate spaces.

    Raster space is the page bitmap at raster_dpi, display space is the
    on-screen rendering of that bitmap at any scale, and point space is the
    canonical storage space (72 units per inch). All spaces share a top-left
    origin; the y axis is never flipped.
    """

    def __init__(self, raster_dpi: float = DEFAULT_RASTER_DPI, reference_dpi: float = REFERENCE_DPI):
        """
        Initialize the converter.

        Args:
            raster_dpi: Resolution the page was rasterized at
            reference_dpi: Resolution of the point space (72 for PDF)
        """
        if raster_dpi <= 0 or reference_dpi <= 0:
            raise ValueError("DPI values must be positive")
        self._raster_dpi = raster_dpi
        self._reference_dpi = reference_dpi

    @property
    def raster_dpi(self) -> float:
        return self._raster_dpi

    @property
    def dpi_scale(self) -> float:
        """Raster pixels per point."""
        return self._raster_dpi / self._reference_dpi

    def raster_to_point(self, x: float, y: float, width: float, height: float) -> CoordinateConversion:
        """
        Convert a raster-space rectangle to points, with pixel and mm siblings.

        Args:
            x, y, width, height: Rectangle in raster pixels

        Returns:
            CoordinateConversion with every field rounded to 2 decimals
        """
        scale = self.dpi_scale
        pt = (x / scale, y / scale, width / scale, height / scale)

        def build(transform) -> UnitRect:
            return UnitRect(*(round_half_away(transform(v)) for v in pt))

        return CoordinateConversion(
            pt=build(lambda v: v),
            px=build(points_to_pixels),
            mm=build(points_to_millimeters),
        )

    def point_to_raster(self, x: float, y: float, width: float, height: float) -> Rect:
        """Convert a point-space rectangle to raster pixels (full precision)."""
        scale = self.dpi_scale
        return Rect(x * scale, y * scale, width * scale, height * scale)

    def display_to_raster(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        raster_dims: Optional[Dimensions],
        display_dims: Optional[Dimensions],
    ) -> Optional[Rect]:
        """
        Scale a display-space rectangle into raster space.

        Args:
            x, y, width, height: Rectangle in display pixels
            raster_dims: Size of the raster image
            display_dims: Measured size of the on-screen element

        Returns:
            Raster-space Rect, or None when either size is unknown
        """
        if not (_measurable(raster_dims) and _measurable(display_dims)):
            logger.debug("display_to_raster unavailable: image or element not measured")
            return None

        scale_x = raster_dims.width / display_dims.width
        scale_y = raster_dims.height / display_dims.height
        return Rect(x * scale_x, y * scale_y, width * scale_x, height * scale_y)

    def raster_to_display(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        raster_dims: Optional[Dimensions],
        display_dims: Optional[Dimensions],
    ) -> Optional[Rect]:
        """Scale a raster-space rectangle onto the display element."""
        if not (_measurable(raster_dims) and _measurable(display_dims)):
            return None

        scale_x = display_dims.width / raster_dims.width
        scale_y = display_dims.height / raster_dims.height
        return Rect(x * scale_x, y * scale_y, width * scale_x, height * scale_y)

    def point_to_display(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        raster_dims: Optional[Dimensions],
        display_dims: Optional[Dimensions],
    ) -> Optional[Rect]:
        """Compose point -> raster -> display."""
        raster = self.point_to_raster(x, y, width, height)
        return self.raster_to_display(*raster.to_tuple(), raster_dims, display_dims)

    def display_to_point(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        raster_dims: Optional[Dimensions],
        display_dims: Optional[Dimensions],
    ) -> Optional[CoordinateConversion]:
        """Compose display -> raster -> point, used for drawn rectangles."""
        raster = self.display_to_raster(x, y, width, height, raster_dims, display_dims)
        if raster is None:
            return None
        return self.raster_to_point(*raster.to_tuple())

    def box_to_display(
        self,
        box: BoundingBox,
        raster_dims: Optional[Dimensions],
        display_dims: Optional[Dimensions],
    ) -> Optional[Rect]:
        """
        Place a stored box on the display element.

        Boxes stored in a unit other than points are normalized to points
        first.
        """
        if box.unit == Unit.POINT:
            values = (box.x, box.y, box.width, box.height)
        else:
            values = tuple(to_points(v, box.unit) for v in (box.x, box.y, box.width, box.height))
        return self.point_to_display(*values, raster_dims, display_dims)
