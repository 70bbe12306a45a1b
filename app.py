"""
FastAPI Web Application for Activity Heatmaps

This module provides a REST API for building activity heatmaps from GPX and
FIT files (uploaded or stored in the data directory) and from activity
polylines, and for exporting the results as GeoJSON or CSV.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import PlainTextResponse
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import BaseModel

import activity_heatmap


# ============================================================================
# APPLICATION SETUP
# ============================================================================

logger.remove()
logger.add(sys.stdout, level=activity_heatmap.LOG_LEVEL)

app = FastAPI(title="Activity Heatmap")


class PolylineRequest(BaseModel):
    polylines: List[str]


# ============================================================================
# DATASET DISCOVERY
# ============================================================================

def get_available_datasets() -> list:
    """
    Discover activity files in the data directory.

    Scans the data directory for .gpx and .fit files (case-insensitive) and
    returns them sorted by filename.

    Returns:
        List of dictionaries with 'filename', 'format' and 'size_bytes' keys.
    """
    data_dir = activity_heatmap.DATA_DIR
    datasets = []

    if not data_dir.exists():
        return datasets

    for file_path in data_dir.iterdir():
        suffix = file_path.suffix.lower()
        if not file_path.is_file() or suffix not in activity_heatmap.constants.ACTIVITY_SUFFIXES:
            continue
        datasets.append({
            "filename": file_path.name,
            "format": suffix.lstrip("."),
            "size_bytes": file_path.stat().st_size,
        })

    datasets.sort(key=lambda x: x["filename"])
    return datasets


def resolve_dataset(dataset: str) -> Path:
    """
    Map a dataset filename to a file inside the data directory.

    Raises:
        HTTPException: If the name is not a plain filename or the file does
            not exist (status 404).
    """
    if Path(dataset).name != dataset:
        raise HTTPException(status_code=404, detail=f"Dataset not found: {dataset}")
    data_file = activity_heatmap.DATA_DIR / dataset
    if not data_file.is_file():
        raise HTTPException(status_code=404, detail=f"Dataset not found: {dataset}")
    return data_file


# ============================================================================
# HEATMAP LOADING & CACHING
# ============================================================================

# Cache for data directory heatmaps (dataset name or None -> (file fingerprint, result))
heatmap_cache: Dict[Optional[str], Tuple[Tuple, activity_heatmap.HeatmapResult]] = {}


def load_heatmap(dataset: Optional[str] = None) -> activity_heatmap.HeatmapResult:
    """
    Build the heatmap for one dataset, or for every file in the data directory.

    Results are cached per dataset (None for the whole directory). Each entry
    remembers the name, size and modification time of the files it was built
    from and is rebuilt when any of them changes.

    Args:
        dataset: Optional dataset filename. If None, uses every dataset.

    Returns:
        HeatmapResult for the selected files.
    """
    if dataset is None:
        paths = [activity_heatmap.DATA_DIR / d["filename"] for d in get_available_datasets()]
    else:
        paths = [resolve_dataset(dataset)]

    fingerprint = tuple(
        (p.name, p.stat().st_size, p.stat().st_mtime_ns) for p in paths
    )
    cached = heatmap_cache.get(dataset)
    if cached is not None and cached[0] == fingerprint:
        return cached[1]

    result = activity_heatmap.process_files(p.read_bytes() for p in paths)
    heatmap_cache[dataset] = (fingerprint, result)
    return result


async def read_uploads(files: List[UploadFile]) -> List[bytes]:
    """
    Read uploaded files into memory.

    Raises:
        HTTPException: If no files or too many files were sent (status 400).
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > activity_heatmap.MAX_UPLOAD_FILES:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files: {len(files)} (limit {activity_heatmap.MAX_UPLOAD_FILES})",
        )
    buffers = []
    for upload in files:
        buffers.append(await upload.read())
    logger.debug(f"Received {len(buffers)} upload(s)")
    return buffers


# ============================================================================
# API ROUTES - DATASET MANAGEMENT
# ============================================================================

@app.get("/api/datasets")
def get_datasets():
    """
    Get list of available datasets.

    Returns:
        List of dictionaries with 'filename', 'format' and 'size_bytes' keys.
    """
    return get_available_datasets()


# ============================================================================
# API ROUTES - HEATMAPS
# ============================================================================

@app.get("/api/heatmap")
def get_heatmap(dataset: Optional[str] = Query(None, description="Dataset filename to load")):
    """
    Get the heatmap for stored activity files.

    Args:
        dataset: Optional dataset filename. If not provided, every file in
            the data directory is aggregated together.

    Returns:
        Dictionary with 'tracks' and 'max_frequency'.
    """
    return load_heatmap(dataset).to_dict()


@app.post("/api/heatmap")
async def create_heatmap(files: List[UploadFile] = File(...)):
    """
    Build a heatmap from uploaded GPX/FIT files.

    Files that are neither GPX nor FIT are ignored.

    Returns:
        Dictionary with 'tracks' and 'max_frequency'.
    """
    buffers = await read_uploads(files)
    result = await run_in_threadpool(activity_heatmap.process_files, buffers)
    return result.to_dict()


@app.post("/api/heatmap/polylines")
def create_polyline_heatmap(request: PolylineRequest):
    """
    Build a heatmap from activity polylines.

    Each entry is an encoded polyline or a JSON array of [lat, lon] pairs;
    entries that cannot be decoded are ignored.

    Returns:
        Dictionary with 'tracks' and 'max_frequency'.
    """
    return activity_heatmap.process_polylines(request.polylines).to_dict()


@app.get("/api/polyline/decode")
def get_decoded_polyline(
    encoded: str = Query(..., description="Encoded polyline"),
    precision: int = Query(5, ge=1, le=7, description="Encoded decimal precision"),
):
    """
    Decode a single encoded polyline.

    Returns:
        List of [lat, lon] pairs.

    Raises:
        HTTPException: If the polyline is malformed (status 400).
    """
    try:
        coordinates = activity_heatmap.decode_polyline(encoded, precision)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [[lat, lon] for lat, lon in coordinates]


# ============================================================================
# API ROUTES - EXPORT
# ============================================================================

@app.post("/api/export/geojson")
async def export_geojson(files: List[UploadFile] = File(...)):
    """
    Build a heatmap from uploaded files and return it as GeoJSON.

    Returns:
        GeoJSON FeatureCollection of LineString features with frequencies.
    """
    buffers = await read_uploads(files)
    result = await run_in_threadpool(activity_heatmap.process_files, buffers)
    return activity_heatmap.result_to_geojson(result)


@app.post("/api/export/segments")
async def export_segments(files: List[UploadFile] = File(...)):
    """
    Build a heatmap from uploaded files and export its segment table as CSV.

    Returns:
        PlainTextResponse: CSV file with Content-Disposition header
        for download. Filename: heatmap_segments.csv
    """
    buffers = await read_uploads(files)
    result = await run_in_threadpool(activity_heatmap.process_files, buffers)
    csv_body = activity_heatmap.export_segments_csv(result)

    headers = {"Content-Disposition": "attachment; filename=heatmap_segments.csv"}
    return PlainTextResponse(
        csv_body,
        media_type="text/csv",
        headers=headers
    )


# ============================================================================
# RUN INSTRUCTIONS
# ============================================================================
# Run with: uvicorn app:app --reload
