"""
Heatmap Pipeline for Activity Heatmap Generation

This module orchestrates the complete pipeline, from raw file contents to the
heatmap result:

1. Detects the file format by trying each track source in order
2. Validates, cleans and simplifies each raw track
3. Aggregates all simplified tracks into segment frequencies

No input can make the pipeline fail: a file no source recognizes, or a track
that does not survive cleaning, simply contributes nothing.
"""

from typing import Callable, Iterable, List, Optional, Sequence

from loguru import logger

from . import cleaning
from . import constants
from . import heatmap
from . import simplify
from . import utils
from .fit_decoder import read_fit_tracks
from .gpx_source import read_gpx_tracks
from .models import HeatmapResult
from .polyline_source import read_polyline_track
from .utils import Coordinate

TrackSource = Callable[[bytes], Optional[List[List[Coordinate]]]]

# Tried in order; the first source that does not answer None owns the file.
DEFAULT_SOURCES: Sequence[TrackSource] = (read_gpx_tracks, read_fit_tracks)


def extract_tracks(data: bytes, sources: Sequence[TrackSource] = DEFAULT_SOURCES) -> List[List[Coordinate]]:
    """
    Decode a file's raw tracks with the first track source that accepts it.

    Args:
        data: Raw file contents.
        sources: Track sources in priority order.

    Returns:
        Raw tracks, or an empty list if no source recognizes the file.
    """
    for source in sources:
        tracks = source(data)
        if tracks is not None:
            return tracks
    return []


def prepare_track(
    raw_track: Sequence[Coordinate],
    cleaner: Optional[cleaning.TrajectoryCleaner] = None,
    tolerance: float = constants.SIMPLIFY_TOLERANCE_DEG,
) -> Optional[List[Coordinate]]:
    """
    Validate, clean and simplify one raw track.

    Args:
        raw_track: Coordinates as decoded.
        cleaner: TrajectoryCleaner to use. Defaults to standard thresholds.
        tolerance: Simplification tolerance in degrees.

    Returns:
        The simplified track, or None if fewer than two points survive.
    """
    cleaner = cleaner or cleaning.TrajectoryCleaner()
    valid = [point for point in raw_track if utils.is_valid_coordinate(*point)]

    cleaned = cleaner.clean(valid)
    if len(cleaned) < 2:
        return None

    simplified = simplify.simplify_track(cleaned, tolerance)
    if len(simplified) < 2:
        return None
    return simplified


def _prepare_all(raw_tracks: Iterable[Sequence[Coordinate]], cleaner, tolerance) -> List[List[Coordinate]]:
    prepared = []
    for raw_track in raw_tracks:
        track = prepare_track(raw_track, cleaner, tolerance)
        if track is not None:
            prepared.append(track)
    return prepared


def process_files(
    buffers: Iterable[bytes],
    sources: Sequence[TrackSource] = DEFAULT_SOURCES,
    cleaner: Optional[cleaning.TrajectoryCleaner] = None,
    tolerance: float = constants.SIMPLIFY_TOLERANCE_DEG,
) -> HeatmapResult:
    """
    Build a heatmap from raw activity file contents.

    Each file is fully decoded, cleaned and simplified before the next one;
    aggregation starts only after every file has been processed.

    Args:
        buffers: File contents (GPX or FIT), one bytes object per file.
        sources: Track sources in priority order.
        cleaner: TrajectoryCleaner to use. Defaults to standard thresholds.
        tolerance: Simplification tolerance in degrees.

    Returns:
        HeatmapResult for all files.
    """
    cleaner = cleaner or cleaning.TrajectoryCleaner()
    tracks = []
    file_count = 0
    skipped = 0

    for index, data in enumerate(buffers):
        file_count += 1
        raw_tracks = extract_tracks(data, sources)
        if not raw_tracks:
            skipped += 1
            logger.debug(f"File {index} contributed no tracks")
            continue
        tracks.extend(_prepare_all(raw_tracks, cleaner, tolerance))

    result = heatmap.build_heatmap(tracks)
    logger.info(
        f"Heatmap built from {file_count} file(s) ({skipped} without tracks): "
        f"{len(result)} track(s), max frequency {result.max_frequency}"
    )
    return result


def process_polylines(
    polylines: Iterable[str],
    cleaner: Optional[cleaning.TrajectoryCleaner] = None,
    tolerance: float = constants.SIMPLIFY_TOLERANCE_DEG,
) -> HeatmapResult:
    """
    Build a heatmap from activity polylines.

    Args:
        polylines: Encoded polylines or JSON arrays of [lat, lon] pairs.
        cleaner: TrajectoryCleaner to use. Defaults to standard thresholds.
        tolerance: Simplification tolerance in degrees.

    Returns:
        HeatmapResult for all polylines; undecodable ones are skipped.
    """
    cleaner = cleaner or cleaning.TrajectoryCleaner()
    raw_tracks = []
    for index, text in enumerate(polylines):
        track = read_polyline_track(text)
        if track is None:
            logger.debug(f"Polyline {index} could not be decoded")
            continue
        raw_tracks.append(track)

    result = heatmap.build_heatmap(_prepare_all(raw_tracks, cleaner, tolerance))
    logger.info(
        f"Heatmap built from {len(raw_tracks)} polyline(s): "
        f"{len(result)} track(s), max frequency {result.max_frequency}"
    )
    return result
