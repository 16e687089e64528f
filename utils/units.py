"""Physical unit to pixel/point conversions for badge geometry."""

from typing import Tuple

from config import PIXELS_PER_INCH, POINTS_PER_INCH

# Units per inch; anything else is taken to be pixels already
_PER_INCH = {"in": 1.0, "cm": 2.54, "mm": 25.4}


def to_pixels(value: float, unit: str) -> float:
    """Convert a physical length to reference pixels (100 px per inch)."""
    value = value or 0
    per_inch = _PER_INCH.get(unit)
    if per_inch is None:
        return value
    return value * (PIXELS_PER_INCH / per_inch)


def badge_pixel_size(width: float, height: float, unit: str) -> Tuple[float, float]:
    return (to_pixels(width, unit), to_pixels(height, unit))


def pixels_to_points(px: float) -> float:
    return px / PIXELS_PER_INCH * POINTS_PER_INCH
