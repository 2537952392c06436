"""Unit conversion between pixels, millimeters and PDF points."""

import math
from typing import Optional, Union

from models.data_models import Unit, UnitRect


# 96-DPI display pixels against PDF's 72 points per inch
POINTS_PER_PIXEL = 0.75
POINTS_PER_MILLIMETER = 2.834645669
DISPLAY_PLACES = 2

UnitLike = Union[Unit, str]


def round_half_away(value: float, places: int = DISPLAY_PLACES) -> float:
    """
    Round to a number of decimal places, halves away from zero.

    Args:
        value: Value to round
        places: Decimal places to keep

    Returns:
        Rounded value
    """
    factor = 10 ** places
    return math.copysign(math.floor(abs(value) * factor + 0.5) / factor, value)


def points_to_pixels(points: float) -> float:
    return points / POINTS_PER_PIXEL


def pixels_to_points(pixels: float) -> float:
    return pixels * POINTS_PER_PIXEL


def points_to_millimeters(points: float) -> float:
    return points / POINTS_PER_MILLIMETER


def millimeters_to_points(millimeters: float) -> float:
    return millimeters * POINTS_PER_MILLIMETER


def to_points(value: float, unit: UnitLike) -> float:
    """Convert a length in any unit to points, at full precision."""
    unit = Unit.parse(unit)
    if unit == Unit.PIXEL:
        return pixels_to_points(value)
    if unit == Unit.MILLIMETER:
        return millimeters_to_points(value)
    return value


def from_points(points: float, unit: UnitLike) -> float:
    """Convert a length in points to any unit, at full precision."""
    unit = Unit.parse(unit)
    if unit == Unit.PIXEL:
        return points_to_pixels(points)
    if unit == Unit.MILLIMETER:
        return points_to_millimeters(points)
    return points


def convert(
    value: float,
    from_unit: UnitLike,
    to_unit: UnitLike,
    places: Optional[int] = None,
) -> float:
    """
    Convert a length between units through points.

    Args:
        value: Length in from_unit
        from_unit: Source unit
        to_unit: Target unit
        places: Decimal places to round to; None keeps full precision

    Returns:
        Length in to_unit. Same-unit conversions return value untouched.
    """
    from_unit = Unit.parse(from_unit)
    to_unit = Unit.parse(to_unit)
    if from_unit == to_unit:
        return value

    result = from_points(to_points(value, from_unit), to_unit)
    if places is not None:
        result = round_half_away(result, places)
    return result


def to_display(value: float, from_unit: UnitLike, to_unit: UnitLike) -> float:
    """Convert for presentation, rounded to two decimals."""
    return convert(value, from_unit, to_unit, places=DISPLAY_PLACES)


def rect_in_unit(
    x: float,
    y: float,
    width: float,
    height: float,
    from_unit: UnitLike,
    to_unit: UnitLike,
    places: Optional[int] = DISPLAY_PLACES,
) -> UnitRect:
    """Convert all four scalars of a rectangle at once."""
    return UnitRect(
        x=convert(x, from_unit, to_unit, places),
        y=convert(y, from_unit, to_unit, places),
        width=convert(width, from_unit, to_unit, places),
        height=convert(height, from_unit, to_unit, places),
    )
