"""
Result Structures for Activity Heatmap Generation

This module defines the heatmap result returned to hosts and its plain
dictionary form, which is what the web API and CLI serialize.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from .utils import Coordinate


@dataclass(frozen=True)
class HeatmapTrack:
    """A simplified track and how often its segments recur across all inputs."""

    coordinates: Tuple[Coordinate, ...]
    frequency: int

    def to_dict(self) -> Dict:
        return {
            "coordinates": [[lat, lon] for lat, lon in self.coordinates],
            "frequency": self.frequency,
        }


@dataclass(frozen=True)
class HeatmapResult:
    """All heatmap tracks of one pipeline run plus the highest frequency among them."""

    tracks: Tuple[HeatmapTrack, ...] = ()
    max_frequency: int = 0

    def __len__(self) -> int:
        return len(self.tracks)

    def to_dict(self) -> Dict:
        """
        Convert to the structure consumed by hosts.

        Returns:
            Dictionary with "tracks" (list of {"coordinates": [[lat, lon], ...],
            "frequency": int}) and "max_frequency" (int, 0 when empty).
        """
        return {
            "tracks": [track.to_dict() for track in self.tracks],
            "max_frequency": self.max_frequency,
        }
