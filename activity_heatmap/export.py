"""
Export Functions for Activity Heatmap Generation

This module converts heatmap results into GeoJSON and into a per-segment
table (CSV) for external analysis or map rendering.
"""

from typing import Dict, Tuple

import pandas as pd

from . import heatmap
from .models import HeatmapResult
from .utils import Coordinate

SEGMENT_COLUMNS = ["start_lat", "start_lon", "end_lat", "end_lon", "count"]


def parse_segment_key(key: str) -> Tuple[Coordinate, Coordinate]:
    """
    Split a segment key back into its two snapped endpoints.

    Args:
        key: Key produced by heatmap.segment_key ("lat,lon|lat,lon").

    Returns:
        ((start_lat, start_lon), (end_lat, end_lon)).

    Raises:
        ValueError: If the key is not in segment-key form.
    """
    try:
        start_text, end_text = key.split("|")
        start_lat, start_lon = (float(v) for v in start_text.split(","))
        end_lat, end_lon = (float(v) for v in end_text.split(","))
    except ValueError as exc:
        raise ValueError(f"Malformed segment key: {key!r}") from exc
    return (start_lat, start_lon), (end_lat, end_lon)


def segments_to_dataframe(result: HeatmapResult) -> pd.DataFrame:
    """
    Tabulate every distinct segment of a heatmap result with its usage count.

    Args:
        result: HeatmapResult from the pipeline.

    Returns:
        DataFrame with columns start_lat, start_lon, end_lat, end_lon and
        count, sorted by count (highest first) then by position.
    """
    usage = heatmap.count_segment_usage([track.coordinates for track in result.tracks])

    rows = []
    for key, count in usage.items():
        (start_lat, start_lon), (end_lat, end_lon) = parse_segment_key(key)
        rows.append([start_lat, start_lon, end_lat, end_lon, count])

    df = pd.DataFrame(rows, columns=SEGMENT_COLUMNS)
    if df.empty:
        return df
    df = df.sort_values(
        ["count", "start_lat", "start_lon", "end_lat", "end_lon"],
        ascending=[False, True, True, True, True],
    )
    return df.reset_index(drop=True)


def export_segments_csv(result: HeatmapResult) -> str:
    """
    Export the segment table to CSV format.

    Args:
        result: HeatmapResult from the pipeline.

    Returns:
        CSV string with a header row.
    """
    return segments_to_dataframe(result).to_csv(index=False)


def result_to_geojson(result: HeatmapResult) -> Dict:
    """
    Convert a heatmap result to a GeoJSON FeatureCollection.

    Each heatmap track becomes a LineString feature (coordinates in GeoJSON
    [lon, lat] order) with its frequency and a 0-1 intensity relative to the
    highest frequency.

    Args:
        result: HeatmapResult from the pipeline.

    Returns:
        GeoJSON FeatureCollection with an extra top-level "max_frequency".
    """
    features = []
    for track in result.tracks:
        intensity = track.frequency / result.max_frequency if result.max_frequency else 0.0
        features.append({
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                "coordinates": [[lon, lat] for lat, lon in track.coordinates],
            },
            "properties": {
                "frequency": track.frequency,
                "intensity": round(intensity, 3),
                "pointCount": len(track.coordinates),
            },
        })

    return {
        "type": "FeatureCollection",
        "features": features,
        "max_frequency": result.max_frequency,
    }
