"""
Distance Metrics for Activity Heatmap Generation

This module computes great-circle and planar distances between coordinates,
used by the trajectory cleaner and the track simplifier.
"""

import numpy as np

from . import constants
from .utils import Coordinate


def haversine_km(a: Coordinate, b: Coordinate, radius_km: float = constants.EARTH_RADIUS_KM) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula to compute distance along the surface of a sphere.

    Args:
        a: (lat, lon) of the first point in degrees.
        b: (lat, lon) of the second point in degrees.
        radius_km: Sphere radius. Defaults to the mean Earth radius.

    Returns:
        Distance in kilometres between the two points.
    """
    lat1_rad, lon1_rad = np.deg2rad(a[0]), np.deg2rad(a[1])
    lat2_rad, lon2_rad = np.deg2rad(b[0]), np.deg2rad(b[1])

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    h = np.sin(dlat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))

    return float(radius_km * c)


def planar_distance_deg(a: Coordinate, b: Coordinate) -> float:
    """Euclidean distance in degree space, ignoring Earth's curvature."""
    return float(np.hypot(b[0] - a[0], b[1] - a[1]))
