import asyncio

import pytest
from fastapi.testclient import TestClient

import activity_heatmap
import app as web_app
from builders import fit_track, gpx_document

PATH = [(45.0, 7.0), (45.01, 7.0), (45.02, 7.0)]


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(activity_heatmap, "DATA_DIR", tmp_path)
    web_app.heatmap_cache.clear()
    yield tmp_path
    web_app.heatmap_cache.clear()


@pytest.fixture
def client(data_dir):
    return TestClient(web_app.app)


def upload(name, data):
    return ("files", (name, data, "application/octet-stream"))


class TestDatasets:
    """Dataset discovery in the data directory."""

    def test_lists_activity_files(self, client, data_dir):
        (data_dir / "b.FIT").write_bytes(fit_track(PATH))
        (data_dir / "a.gpx").write_bytes(gpx_document(PATH))
        (data_dir / "notes.txt").write_text("not an activity")
        (data_dir / "nested.gpx").mkdir()

        response = client.get("/api/datasets")

        assert response.status_code == 200
        datasets = response.json()
        assert [d["filename"] for d in datasets] == ["a.gpx", "b.FIT"]
        assert [d["format"] for d in datasets] == ["gpx", "fit"]
        assert datasets[0]["size_bytes"] == len(gpx_document(PATH))

    def test_missing_directory(self, client, data_dir, monkeypatch):
        monkeypatch.setattr(activity_heatmap, "DATA_DIR", data_dir / "missing")
        assert client.get("/api/datasets").json() == []


class TestStoredHeatmap:
    """Heatmaps built from the data directory."""

    def test_all_datasets(self, client, data_dir):
        (data_dir / "a.gpx").write_bytes(gpx_document(PATH))
        (data_dir / "b.fit").write_bytes(fit_track(PATH))

        body = client.get("/api/heatmap").json()

        assert body["max_frequency"] == 2
        assert len(body["tracks"]) == 2
        assert body["tracks"][0]["coordinates"] == [[45.0, 7.0], [45.01, 7.0], [45.02, 7.0]]

    def test_single_dataset(self, client, data_dir):
        (data_dir / "a.gpx").write_bytes(gpx_document(PATH))
        (data_dir / "b.fit").write_bytes(fit_track(PATH))

        body = client.get("/api/heatmap", params={"dataset": "b.fit"}).json()

        assert body["max_frequency"] == 1
        assert len(body["tracks"]) == 1

    def test_empty_directory(self, client):
        assert client.get("/api/heatmap").json() == {"tracks": [], "max_frequency": 0}

    def test_unknown_dataset(self, client):
        response = client.get("/api/heatmap", params={"dataset": "missing.gpx"})
        assert response.status_code == 404

    def test_path_outside_data_directory_is_rejected(self, client, data_dir):
        (data_dir.parent / "outside.gpx").write_bytes(gpx_document(PATH))
        response = client.get("/api/heatmap", params={"dataset": "../outside.gpx"})
        assert response.status_code == 404

    def test_changed_file_is_reloaded(self, client, data_dir):
        target = data_dir / "a.gpx"
        target.write_bytes(gpx_document(PATH))
        assert client.get("/api/heatmap").json()["max_frequency"] == 1

        target.write_bytes(gpx_document(PATH, PATH, [(46.0, 8.0), (46.01, 8.0)]))
        body = client.get("/api/heatmap").json()
        assert len(body["tracks"]) == 3
        assert body["max_frequency"] == 2
        assert len(web_app.heatmap_cache) == 1

    def test_repeated_edits_replace_the_cache_entry(self, client, data_dir):
        target = data_dir / "a.gpx"
        for copies in range(1, 6):
            target.write_bytes(gpx_document(*([PATH] * copies)))
            assert client.get("/api/heatmap").json()["max_frequency"] == copies
        client.get("/api/heatmap", params={"dataset": "a.gpx"})

        assert set(web_app.heatmap_cache) == {None, "a.gpx"}


class TestUploads:
    """Heatmaps built from uploaded files."""

    def test_upload_gpx_and_fit(self, client):
        response = client.post(
            "/api/heatmap",
            files=[upload("ride.gpx", gpx_document(PATH)), upload("ride.fit", fit_track(PATH))],
        )
        assert response.status_code == 200
        body = response.json()
        assert [t["frequency"] for t in body["tracks"]] == [2, 2]
        assert body["max_frequency"] == 2

    def test_unrecognized_upload_is_ignored(self, client):
        response = client.post("/api/heatmap", files=[upload("notes.txt", b"hello")])
        assert response.status_code == 200
        assert response.json() == {"tracks": [], "max_frequency": 0}

    def test_pipeline_runs_off_the_event_loop(self, client, monkeypatch):
        process_files = activity_heatmap.process_files
        loops = []

        def spy(buffers):
            try:
                loops.append(asyncio.get_running_loop())
            except RuntimeError:
                loops.append(None)
            return process_files(buffers)

        monkeypatch.setattr(activity_heatmap, "process_files", spy)
        files = [upload("ride.gpx", gpx_document(PATH))]

        assert client.post("/api/heatmap", files=files).status_code == 200
        assert client.post("/api/export/geojson", files=files).status_code == 200
        assert client.post("/api/export/segments", files=files).status_code == 200
        assert loops == [None, None, None]

    def test_too_many_files(self, client, monkeypatch):
        monkeypatch.setattr(activity_heatmap, "MAX_UPLOAD_FILES", 1)
        response = client.post(
            "/api/heatmap",
            files=[upload("a.gpx", gpx_document(PATH)), upload("b.gpx", gpx_document(PATH))],
        )
        assert response.status_code == 400
        assert "Too many files" in response.json()["detail"]

    def test_missing_files_field(self, client):
        assert client.post("/api/heatmap").status_code == 422


class TestPolylines:
    """Polyline endpoints."""

    def test_polyline_heatmap(self, client):
        track = "[[45.0, 7.0], [45.01, 7.0], [45.02, 7.0]]"
        response = client.post("/api/heatmap/polylines", json={"polylines": [track, track, "[oops"]})
        assert response.status_code == 200
        assert response.json()["max_frequency"] == 2

    def test_decode(self, client):
        response = client.get("/api/polyline/decode", params={"encoded": "_p~iF~ps|U_ulLnnqC_mqNvxq`@"})
        assert response.status_code == 200
        assert response.json() == [[38.5, -120.2], [40.7, -120.95], [43.252, -126.453]]

    def test_decode_malformed(self, client):
        response = client.get("/api/polyline/decode", params={"encoded": "_p~iF~ps|"})
        assert response.status_code == 400

    def test_decode_precision_out_of_range(self, client):
        response = client.get("/api/polyline/decode", params={"encoded": "_p~iF~ps|U", "precision": 9})
        assert response.status_code == 422


class TestExports:
    """GeoJSON and CSV export endpoints."""

    def test_geojson(self, client):
        response = client.post("/api/export/geojson", files=[upload("ride.gpx", gpx_document(PATH))])
        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "FeatureCollection"
        assert body["features"][0]["geometry"]["coordinates"][0] == [7.0, 45.0]

    def test_segments_csv(self, client):
        response = client.post(
            "/api/export/segments",
            files=[upload("a.gpx", gpx_document(PATH)), upload("b.gpx", gpx_document(PATH))],
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "heatmap_segments.csv" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == "start_lat,start_lon,end_lat,end_lon,count"
        assert len(lines) == 3
        assert lines[1].endswith(",2")
