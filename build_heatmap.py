"""
Build an activity heatmap from GPX and FIT files.

This script aggregates every activity file given on the command line (files
or directories) and writes the heatmap as JSON, GeoJSON, or a segment CSV.

Usage:
    python3 build_heatmap.py activities/
    python3 build_heatmap.py ride1.gpx ride2.fit --format geojson --output heatmap.geojson
    python3 build_heatmap.py activities/ --format segments --output segments.csv
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

import activity_heatmap
from activity_heatmap import constants


def collect_activity_files(inputs: List[str]) -> List[Path]:
    """
    Expand command-line inputs into a sorted list of activity files.

    Args:
        inputs: File and directory paths. Directories are scanned (not
            recursively) for .gpx and .fit files.

    Returns:
        Existing files, directories expanded, in command-line order.
    """
    files = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            files.extend(sorted(
                p for p in path.iterdir()
                if p.is_file() and p.suffix.lower() in constants.ACTIVITY_SUFFIXES
            ))
        elif path.is_file():
            files.append(path)
        else:
            print(f"Warning: Skipping missing path: {path}", file=sys.stderr)
    return files


def render_result(result: activity_heatmap.HeatmapResult, output_format: str) -> str:
    """
    Serialize a heatmap result.

    Args:
        result: HeatmapResult from the pipeline.
        output_format: "json", "geojson" or "segments".

    Returns:
        The serialized result as text.
    """
    if output_format == "geojson":
        return json.dumps(activity_heatmap.result_to_geojson(result), indent=2)
    if output_format == "segments":
        return activity_heatmap.export_segments_csv(result)
    return json.dumps(result.to_dict(), indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Build an activity heatmap from GPX and FIT files"
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        help="Activity files or directories containing .gpx/.fit files"
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["json", "geojson", "segments"],
        default="json",
        help="Output format (default: json)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output file (default: stdout)"
    )
    parser.add_argument(
        "--jump-km",
        type=float,
        default=constants.JUMP_THRESHOLD_KM,
        help=f"GPS jump threshold in km (default: {constants.JUMP_THRESHOLD_KM})"
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=constants.SIMPLIFY_TOLERANCE_DEG,
        help=f"Simplification tolerance in degrees (default: {constants.SIMPLIFY_TOLERANCE_DEG})"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log per-file decoding details"
    )

    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else constants.LOG_LEVEL)

    files = collect_activity_files(args.inputs)
    if not files:
        print("Error: No activity files found.", file=sys.stderr)
        return 1

    cleaner = activity_heatmap.TrajectoryCleaner(threshold_km=args.jump_km)
    result = activity_heatmap.process_files(
        (path.read_bytes() for path in files),
        cleaner=cleaner,
        tolerance=args.tolerance,
    )
    body = render_result(result, args.output_format)

    if args.output:
        Path(args.output).write_text(body, encoding="utf-8")
        print(f"Files read: {len(files)}", file=sys.stderr)
        print(f"Heatmap tracks: {len(result)}", file=sys.stderr)
        print(f"Max frequency: {result.max_frequency}", file=sys.stderr)
        print(f"Saved to: {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(body)
        if not body.endswith("\n"):
            sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
