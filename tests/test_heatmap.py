from activity_heatmap.heatmap import (
    build_heatmap,
    count_segment_usage,
    segment_key,
    snap_to_grid,
    track_frequency,
)
from activity_heatmap.models import HeatmapResult, HeatmapTrack

A = (45.0, 7.0)
B = (45.01, 7.0)
C = (45.02, 7.0)
D = (45.03, 7.0)


class TestSegmentKey:
    """Grid-snapped, direction-independent segment keys."""

    def test_symmetric(self):
        assert segment_key(A, B) == segment_key(B, A)
        assert segment_key((-33.86, 151.2), (51.5, -0.12)) == segment_key((51.5, -0.12), (-33.86, 151.2))

    def test_format(self):
        assert segment_key(B, A) == "45.0000,7.0000|45.0100,7.0000"

    def test_noise_within_grid_merges(self):
        noisy_a = (45.00031, 6.99972)
        noisy_b = (45.01018, 7.00044)
        assert segment_key(noisy_a, noisy_b) == segment_key(A, B)

    def test_distinct_segments_differ(self):
        assert segment_key(A, B) != segment_key(B, C)

    def test_negative_zero_is_normalized(self):
        key = segment_key((-0.0004, 10.0), (0.0003, 10.01))
        assert "-0.0000" not in key
        assert key == segment_key((0.0003, 10.01), (-0.0004, 10.0))

    def test_snap_to_grid(self):
        assert abs(snap_to_grid(12.3456) - 12.346) < 1e-9
        assert abs(snap_to_grid(-12.3454) + 12.345) < 1e-9


class TestUsageAndFrequency:
    """Segment usage counting and per-track frequencies."""

    def test_retraced_path_counts_twice(self):
        result = build_heatmap([[A, B], [A, B]])
        assert count_segment_usage([[A, B], [A, B]])[segment_key(A, B)] == 2
        assert [t.frequency for t in result.tracks] == [2, 2]
        assert result.max_frequency == 2

    def test_opposite_direction_counts_as_same_segment(self):
        result = build_heatmap([[A, B, C], [C, B, A]])
        assert [t.frequency for t in result.tracks] == [2, 2]

    def test_unshared_track_has_frequency_one(self):
        result = build_heatmap([[A, B, C]])
        assert result.tracks[0].frequency == 1
        assert result.max_frequency == 1

    def test_mean_is_rounded_half_away_from_zero(self):
        usage = count_segment_usage([[A, B, C], [A, B]])
        assert track_frequency([A, B, C], usage) == 2  # mean of 2 and 1
        assert track_frequency([A, B], usage) == 2

    def test_mean_rounds_down_below_half(self):
        tracks = [[A, B, C, D], [A, B]]
        result = build_heatmap(tracks)
        # segments: A-B used twice, B-C and C-D once -> mean 4/3
        assert [t.frequency for t in result.tracks] == [1, 2]
        assert result.max_frequency == 2

    def test_track_without_segments_defaults_to_one(self):
        assert track_frequency([A], count_segment_usage([])) == 1

    def test_short_tracks_are_ignored(self):
        result = build_heatmap([[A], [], [A, B]])
        assert len(result) == 1
        assert result.tracks[0].coordinates == (A, B)

    def test_empty_input(self):
        result = build_heatmap([])
        assert result == HeatmapResult()
        assert result.max_frequency == 0

    def test_max_frequency_matches_tracks(self):
        tracks = [[A, B], [A, B], [A, B, C], [C, D]]
        result = build_heatmap(tracks)
        assert result.max_frequency == max(t.frequency for t in result.tracks)
        assert all(t.frequency >= 1 for t in result.tracks)

    def test_point_order_is_preserved(self):
        result = build_heatmap([[C, B, A]])
        assert result.tracks[0].coordinates == (C, B, A)


class TestResultDict:
    """Host-facing dictionary form."""

    def test_to_dict(self):
        result = HeatmapResult(tracks=(HeatmapTrack(coordinates=(A, B), frequency=3),), max_frequency=3)
        assert result.to_dict() == {
            "tracks": [{"coordinates": [[45.0, 7.0], [45.01, 7.0]], "frequency": 3}],
            "max_frequency": 3,
        }

    def test_empty_to_dict(self):
        assert HeatmapResult().to_dict() == {"tracks": [], "max_frequency": 0}
