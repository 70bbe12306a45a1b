"""
Constants for Activity Heatmap Generation

This module defines the binary-format layout values, geometric thresholds and
environment-driven settings used throughout the heatmap pipeline.
"""

import os
from pathlib import Path


def getenv_or_default(name: str, default):
    """Return the environment variable ``name``, or ``default`` when it is unset or empty."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


# ============================================================================
# ENVIRONMENT SETTINGS
# ============================================================================

LOG_LEVEL = getenv_or_default("LOG_LEVEL", "INFO")

# Activity files folder is one level up from activity_heatmap/
DATA_DIR = Path(getenv_or_default("HEATMAP_DATA_DIR", Path(__file__).parent.parent / "activities"))
MAX_UPLOAD_FILES = int(getenv_or_default("HEATMAP_MAX_UPLOAD_FILES", 500))

ACTIVITY_SUFFIXES = (".gpx", ".fit")


# ============================================================================
# BINARY TELEMETRY FORMAT
# ============================================================================

FIT_SIGNATURE = b".FIT"
MIN_HEADER_SIZE = 12
HEADER_SIZE_WITH_CRC = 14
CRC_SIZE = 2

DEFINITION_FLAG = 0x40
DEVELOPER_DATA_FLAG = 0x20
COMPRESSED_HEADER_FLAG = 0x80
LOCAL_TYPE_MASK = 0x0F

RECORD_MSG_NUM = 20   # Per-second record carrying position_lat/position_long
SESSION_MSG_NUM = 18  # Session summary, sometimes carries start/end positions
LAP_MSG_NUM = 19      # Lap summary, same ambiguity as session

LATITUDE_FIELD = 0
LONGITUDE_FIELD = 1
COORDINATE_FIELD_SIZE = 4

MAX_FIELD_COUNT = 100
MAX_FIELD_SIZE = 100
MAX_SKIPPABLE_MESSAGE_SIZE = 1000
MAX_CONSECUTIVE_ERRORS = 100
SALVAGE_MIN_COORDINATES = 100

INVALID_SINT32 = 0x7FFFFFFF  # Sentinel for "no GPS fix"
SEMICIRCLES_TO_DEG = 180.0 / (2**31)


# ============================================================================
# GEOMETRY
# ============================================================================

COORDINATE_DECIMALS = 5  # ~1.1 m
EARTH_RADIUS_KM = 6371.0

JUMP_THRESHOLD_KM = 100.0
BRIDGE_FACTOR = 1.5
MAX_BAD_STREAK = 10
LOOKAHEAD_WINDOW = 20

SIMPLIFY_TOLERANCE_DEG = 0.00005
GRID_TOLERANCE_DEG = 0.001  # ~100 m
SEGMENT_KEY_DECIMALS = 4

POLYLINE_PRECISION = 5
