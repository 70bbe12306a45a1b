"""
Activity Heatmap Generation

This package turns GPX and FIT activity recordings (and activity polylines)
into a heatmap: simplified tracks annotated with how often their segments
recur across all inputs.

The public functions of the individual modules are re-exported here.
"""

# Import constants
from .constants import DATA_DIR, LOG_LEVEL, MAX_UPLOAD_FILES

# Import utility functions
from .utils import (
    Coordinate,
    is_valid_coordinate,
    make_coordinate,
    round_coordinate,
)

# Import binary decoding
from .binary_cursor import BinaryCursor, EndOfBuffer
from .fit_decoder import (
    TelemetryDecoder,
    decode_fit,
    has_fit_signature,
    read_fit_tracks,
)

# Import other track sources
from .gpx_source import read_gpx_tracks
from .polyline_source import decode_polyline, read_polyline_track

# Import track processing
from .metrics import haversine_km
from .cleaning import TrajectoryCleaner, clean_track
from .simplify import simplify_track

# Import aggregation
from .models import HeatmapResult, HeatmapTrack
from .heatmap import (
    build_heatmap,
    count_segment_usage,
    segment_key,
)

# Import pipeline
from .pipeline import (
    extract_tracks,
    prepare_track,
    process_files,
    process_polylines,
)

# Import export functions
from .export import (
    export_segments_csv,
    parse_segment_key,
    result_to_geojson,
    segments_to_dataframe,
)

__all__ = [
    # Constants
    "DATA_DIR",
    "LOG_LEVEL",
    "MAX_UPLOAD_FILES",
    # Utilities
    "Coordinate",
    "is_valid_coordinate",
    "make_coordinate",
    "round_coordinate",
    # Binary decoding
    "BinaryCursor",
    "EndOfBuffer",
    "TelemetryDecoder",
    "decode_fit",
    "has_fit_signature",
    "read_fit_tracks",
    # Track sources
    "read_gpx_tracks",
    "decode_polyline",
    "read_polyline_track",
    # Track processing
    "haversine_km",
    "TrajectoryCleaner",
    "clean_track",
    "simplify_track",
    # Aggregation
    "HeatmapResult",
    "HeatmapTrack",
    "build_heatmap",
    "count_segment_usage",
    "segment_key",
    # Pipeline
    "extract_tracks",
    "prepare_track",
    "process_files",
    "process_polylines",
    # Export
    "export_segments_csv",
    "parse_segment_key",
    "result_to_geojson",
    "segments_to_dataframe",
]
