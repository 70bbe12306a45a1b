"""
Heatmap Aggregation for Activity Heatmap Generation

This module counts how often each path segment recurs across all simplified
tracks and turns those counts into one frequency per track. Segment
endpoints are snapped to a grid first so that the same road recorded on
different days, or in opposite directions, lands on the same key.
"""

from collections import Counter
from typing import List, Sequence, Tuple

import numpy as np

from . import constants
from . import utils
from .models import HeatmapResult, HeatmapTrack
from .utils import Coordinate


def snap_to_grid(value: float, tolerance: float = constants.GRID_TOLERANCE_DEG) -> float:
    """Snap a degree value to the nearest multiple of ``tolerance``."""
    # + 0.0 turns -0.0 into 0.0 so both sides of zero format the same
    return utils.round_half_away(value / tolerance) * tolerance + 0.0


def segment_key(
    a: Coordinate,
    b: Coordinate,
    tolerance: float = constants.GRID_TOLERANCE_DEG,
    decimals: int = constants.SEGMENT_KEY_DECIMALS,
) -> str:
    """
    Build a direction-independent key for the segment between two points.

    Args:
        a: First endpoint (lat, lon).
        b: Second endpoint (lat, lon).
        tolerance: Grid spacing in degrees.
        decimals: Decimals used when formatting snapped values.

    Returns:
        "lat,lon|lat,lon" with the lexicographically smaller endpoint first,
        so ``segment_key(a, b) == segment_key(b, a)``.
    """
    start = (snap_to_grid(a[0], tolerance), snap_to_grid(a[1], tolerance))
    end = (snap_to_grid(b[0], tolerance), snap_to_grid(b[1], tolerance))
    if end < start:
        start, end = end, start
    return (
        f"{start[0]:.{decimals}f},{start[1]:.{decimals}f}"
        f"|{end[0]:.{decimals}f},{end[1]:.{decimals}f}"
    )


def iter_segments(track: Sequence[Coordinate]):
    """Yield consecutive (a, b) point pairs of a track."""
    for index in range(len(track) - 1):
        yield track[index], track[index + 1]


def count_segment_usage(tracks: Sequence[Sequence[Coordinate]], **key_kwargs) -> Counter:
    """
    Count every segment of every track under its grid-snapped key.

    Args:
        tracks: Simplified tracks.
        **key_kwargs: Passed through to segment_key (tolerance, decimals).

    Returns:
        Counter mapping segment key to number of occurrences.
    """
    usage = Counter()
    for track in tracks:
        for a, b in iter_segments(track):
            usage[segment_key(a, b, **key_kwargs)] += 1
    return usage


def track_frequency(track: Sequence[Coordinate], usage: Counter, **key_kwargs) -> int:
    """
    Average the usage counts of a track's segments.

    Args:
        track: Simplified track.
        usage: Counter from count_segment_usage.
        **key_kwargs: Passed through to segment_key.

    Returns:
        Mean segment count rounded to the nearest integer, or 1 when the
        track has no segments.
    """
    counts = [usage[segment_key(a, b, **key_kwargs)] for a, b in iter_segments(track)]
    if not counts:
        return 1
    return max(int(utils.round_half_away(float(np.mean(counts)))), 1)


def build_heatmap(tracks: Sequence[Sequence[Coordinate]], **key_kwargs) -> HeatmapResult:
    """
    Aggregate simplified tracks into a heatmap result.

    Tracks with fewer than two points are ignored. The usage pass must see
    every track before any frequency is computed.

    Args:
        tracks: Simplified tracks from all input files, in order.
        **key_kwargs: Passed through to segment_key.

    Returns:
        HeatmapResult with tracks in input order and the highest frequency
        (0 when no track qualified).
    """
    eligible: List[Tuple[Coordinate, ...]] = [tuple(t) for t in tracks if len(t) >= 2]
    usage = count_segment_usage(eligible, **key_kwargs)

    heatmap_tracks = []
    max_frequency = 0
    for track in eligible:
        frequency = track_frequency(track, usage, **key_kwargs)
        max_frequency = max(max_frequency, frequency)
        heatmap_tracks.append(HeatmapTrack(coordinates=track, frequency=frequency))

    return HeatmapResult(tracks=tuple(heatmap_tracks), max_frequency=max_frequency)
