"""
Trajectory Cleaning for Activity Heatmap Generation

This module removes GPS jumps from a raw track. A point farther than the
jump threshold from the last kept point is either a transient glitch (a
nearby point follows shortly after), a discontinuity that the track later
recovers from, or the end of usable data.

The recovery policy is a small state machine:

- CLEAN: points within the threshold are kept.
- BRIDGING: a jump was seen; look ahead for a point that bridges it.
- SALVAGING: no bridge exists; after resuming at the first point back in
  range, points are filtered one by one with no further bridging.
- TERMINATED: nothing more can be kept.
"""

from enum import Enum
from typing import List, Optional, Sequence

from loguru import logger

from . import constants
from . import metrics
from .utils import Coordinate


class CleanerState(Enum):
    CLEAN = "clean"
    BRIDGING = "bridging"
    SALVAGING = "salvaging"
    TERMINATED = "terminated"


class TrajectoryCleaner:
    """
    Forward-only, single-pass GPS jump filter.

    Args:
        threshold_km: Largest accepted step between consecutive kept points.
        bridge_factor: Multiple of the threshold a look-ahead point may be
            from the last kept point to count as bridging a glitch.
        max_bad_streak: Consecutive jumps tolerated before giving up.
        lookahead: Number of points examined when looking for a bridge.
    """

    def __init__(
        self,
        threshold_km: float = constants.JUMP_THRESHOLD_KM,
        bridge_factor: float = constants.BRIDGE_FACTOR,
        max_bad_streak: int = constants.MAX_BAD_STREAK,
        lookahead: int = constants.LOOKAHEAD_WINDOW,
    ):
        self.threshold_km = threshold_km
        self.bridge_km = threshold_km * bridge_factor
        self.max_bad_streak = max_bad_streak
        self.lookahead = lookahead

    def clean(self, points: Sequence[Coordinate]) -> List[Coordinate]:
        """
        Drop GPS jumps from a track.

        Args:
            points: Validated coordinates in recording order.

        Returns:
            The kept points. Fewer than two points means the track should be
            discarded.
        """
        if not points:
            return []

        kept = [points[0]]
        state = CleanerState.CLEAN
        bad_streak = 0
        index = 1

        while index < len(points) and state is not CleanerState.TERMINATED:
            point = points[index]
            within = metrics.haversine_km(kept[-1], point) <= self.threshold_km

            if state is CleanerState.SALVAGING:
                if within:
                    kept.append(point)
                index += 1
                continue

            if state is CleanerState.CLEAN:
                if within:
                    kept.append(point)
                    bad_streak = 0
                    index += 1
                    continue
                bad_streak += 1
                if bad_streak > self.max_bad_streak:
                    logger.debug(f"Track truncated after {bad_streak} consecutive GPS jumps")
                    state = CleanerState.TERMINATED
                else:
                    state = CleanerState.BRIDGING
                continue

            # BRIDGING: the point at ``index`` is a jump.
            if self._find_bridge(points, index, kept[-1]) is not None:
                index += 1
                state = CleanerState.CLEAN
                continue

            resume = self._find_continuation(points, index, kept[-1])
            if resume is None:
                logger.debug(f"Track truncated at point {index}: no valid continuation")
                state = CleanerState.TERMINATED
            else:
                kept.append(points[resume])
                index = resume + 1
                state = CleanerState.SALVAGING

        return kept

    def _find_bridge(self, points: Sequence[Coordinate], index: int, anchor: Coordinate) -> Optional[int]:
        end = min(index + 1 + self.lookahead, len(points))
        for candidate in range(index + 1, end):
            if metrics.haversine_km(anchor, points[candidate]) <= self.bridge_km:
                return candidate
        return None

    def _find_continuation(self, points: Sequence[Coordinate], index: int, anchor: Coordinate) -> Optional[int]:
        for candidate in range(index, len(points)):
            if metrics.haversine_km(anchor, points[candidate]) <= self.threshold_km:
                return candidate
        return None


def clean_track(points: Sequence[Coordinate], **kwargs) -> List[Coordinate]:
    """Clean a track with a default-configured TrajectoryCleaner; keyword arguments override thresholds."""
    return TrajectoryCleaner(**kwargs).clean(points)
