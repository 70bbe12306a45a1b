"""
Polyline Track Source for Activity Heatmap Generation

Activities fetched from third-party services arrive as polylines: either
Google encoded polyline strings or JSON arrays of [lat, lon] pairs. This
module turns both into raw tracks.
"""

import json
from typing import List, Optional, Tuple

from . import constants
from . import utils
from .utils import Coordinate


def _decode_value(encoded: str, index: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Encoded polyline ended inside a value")
        if not 63 <= ord(encoded[index]) <= 126:
            raise ValueError(f"Invalid polyline character {encoded[index]!r} at {index}")
        chunk = ord(encoded[index]) - 63
        index += 1
        result |= (chunk & 0x1F) << shift
        shift += 5
        if chunk < 0x20:
            break
    delta = ~(result >> 1) if result & 1 else result >> 1
    return delta, index


def decode_polyline(encoded: str, precision: int = constants.POLYLINE_PRECISION) -> List[Coordinate]:
    """
    Decode a Google encoded polyline string.

    Args:
        encoded: Encoded polyline.
        precision: Number of decimals encoded (5 for Google/Strava, 6 for OSRM).

    Returns:
        List of (lat, lon) tuples rounded to 5 decimals.

    Raises:
        ValueError: If the string is truncated or contains characters
            outside the encoding alphabet.
    """
    factor = 10 ** precision
    coordinates: List[Coordinate] = []
    index = 0
    lat = 0
    lon = 0

    while index < len(encoded):
        lat_change, index = _decode_value(encoded, index)
        lon_change, index = _decode_value(encoded, index)
        lat += lat_change
        lon += lon_change
        coordinates.append(
            (utils.round_coordinate(lat / factor), utils.round_coordinate(lon / factor))
        )

    return coordinates


def _read_json_track(text: str) -> Optional[List[Coordinate]]:
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, list):
        return None

    points = []
    for item in payload:
        if not isinstance(item, (list, tuple)) or len(item) < 2:
            continue
        coordinate = utils.make_coordinate(item[0], item[1])
        if coordinate is not None:
            points.append(coordinate)
    return points


def read_polyline_track(text: str) -> Optional[List[Coordinate]]:
    """
    Turn one polyline string into a raw track.

    Args:
        text: JSON array of [lat, lon] pairs, or an encoded polyline.

    Returns:
        Valid coordinates in order, or None if the text cannot be decoded.
    """
    if not isinstance(text, str):
        return None
    text = text.strip()
    if not text:
        return None
    if text.startswith("["):
        return _read_json_track(text)

    try:
        decoded = decode_polyline(text)
    except ValueError:
        return None
    return [c for c in decoded if utils.is_valid_coordinate(*c)]
