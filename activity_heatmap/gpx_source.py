"""
GPX Track Source for Activity Heatmap Generation

This module reads GPX files with gpxpy and flattens them into raw tracks,
one per track segment.
"""

from typing import List, Optional

import gpxpy
from gpxpy.gpx import GPXException
from loguru import logger

from . import utils
from .utils import Coordinate


def read_gpx_tracks(data: bytes) -> Optional[List[List[Coordinate]]]:
    """
    Track source for GPX files.

    Each segment of each track becomes one raw track. Points are rounded to
    5 decimals and invalid points (out of range, NaN, or 0,0) are dropped.

    Args:
        data: Raw file contents.

    Returns:
        List of raw tracks, or None if the bytes are not well-formed GPX.
    """
    try:
        gpx = gpxpy.parse(bytes(data).decode("utf-8"))
    except (GPXException, ValueError) as exc:
        logger.debug(f"Not a GPX document: {exc}")
        return None

    tracks = []
    for track in gpx.tracks:
        for segment in track.segments:
            points = []
            for point in segment.points:
                coordinate = utils.make_coordinate(point.latitude, point.longitude)
                if coordinate is not None:
                    points.append(coordinate)
            tracks.append(points)
    return tracks
