"""
Utility Functions for Activity Heatmap Generation

This module provides coordinate rounding and validation helpers used by every
track source and by the aggregation stage.
"""

import math
from typing import Optional, Tuple

import numpy as np

from . import constants

Coordinate = Tuple[float, float]


def round_half_away(value: float) -> float:
    """
    Round to the nearest integer, with halves rounded away from zero.

    Python's built-in ``round`` rounds halves to even, which would snap
    0.5 and 1.5 to different sides of the grid.

    Args:
        value: Value to round.

    Returns:
        The rounded value as a float.
    """
    return math.copysign(math.floor(abs(value) + 0.5), value)


def round_coordinate(value: float, digits: int = constants.COORDINATE_DECIMALS) -> float:
    """Round a degree value to ``digits`` decimals (5 decimals is ~1.1 m), halves away from zero."""
    scale = 10 ** digits
    return round_half_away(float(value) * scale) / scale


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """
    Check whether a latitude/longitude pair is a plausible GPS fix.

    Rejects NaN or infinite values, values outside [-90, 90] / [-180, 180],
    and the (0, 0) pair that receivers emit when they have no fix.

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.

    Returns:
        True if the pair may be accepted into a track.
    """
    if not (np.isfinite(lat) and np.isfinite(lon)):
        return False
    if lat < -90.0 or lat > 90.0:
        return False
    if lon < -180.0 or lon > 180.0:
        return False
    if lat == 0.0 and lon == 0.0:
        return False
    return True


def make_coordinate(lat, lon) -> Optional[Coordinate]:
    """
    Round a raw latitude/longitude pair and return it if it is valid.

    Args:
        lat: Raw latitude (anything convertible to float).
        lon: Raw longitude (anything convertible to float).

    Returns:
        A rounded (lat, lon) tuple, or None if the pair is missing or invalid.
    """
    if lat is None or lon is None:
        return None
    try:
        lat = round_coordinate(lat)
        lon = round_coordinate(lon)
    except (TypeError, ValueError, OverflowError):
        return None
    if not is_valid_coordinate(lat, lon):
        return None
    return (lat, lon)
