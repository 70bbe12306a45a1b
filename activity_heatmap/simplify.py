"""
Track Simplification for Activity Heatmap Generation

Greedy tolerance-based point reduction. Unlike Ramer-Douglas-Peucker this is
a single O(n) pass, which is enough for heatmap rendering resolution.
"""

from typing import List, Sequence

from . import constants
from . import metrics
from .utils import Coordinate


def simplify_track(
    points: Sequence[Coordinate],
    tolerance: float = constants.SIMPLIFY_TOLERANCE_DEG,
) -> List[Coordinate]:
    """
    Drop points that sit within ``tolerance`` of the last retained point.

    The first and last points are always retained. Distances are measured
    in degree space, not on the sphere.

    Args:
        points: Cleaned coordinates in order.
        tolerance: Minimum planar distance, in degrees, between retained points.

    Returns:
        The retained subsequence.
    """
    if len(points) <= 2:
        return list(points)

    last_index = len(points) - 1
    retained = [points[0]]
    for index in range(1, len(points)):
        point = points[index]
        if index == last_index or metrics.planar_distance_deg(retained[-1], point) > tolerance:
            retained.append(point)
    return retained
