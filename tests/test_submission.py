"""Tests for the analysis submission pipeline against a mocked analyzer."""

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from form_checker.errors import (
    DownloadError,
    MalformedResponseError,
    PipelineError,
    SubmissionError,
    UploadError,
)
from form_checker.geometry import Rectangle
from form_checker.state import TrimSelection
from form_checker.submission import AnalysisSubmissionPipeline

API_BASE = "https://analyzer.test"
PROCESSED_BYTES = b"\x00\x00\x00\x18ftypmp42processed"


# ============================================================================
# Fixtures
# ============================================================================

class FakeAnalyzer:
    """Scriptable stand-in for the analyzer HTTP API."""

    def __init__(self):
        self.calls: list[str] = []
        self.metadata_payload = None
        self.upload_body = b""
        self.upload_status = 200
        self.upload_json = {"fileUrl": "./uploads/2024-01-01T00-00-00_lift.mp4"}
        self.metadata_status = 200
        self.metadata_json = {"video_url": "/processed/abcdefghij.mp4", "averages": [0.5, -1, 4, -4, 0, 2]}
        self.download_status = 200
        self.raise_on = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        if self.raise_on == path:
            raise httpx.ConnectError("connection refused", request=request)
        if path == "/upload/video":
            self.upload_body = request.content
            return httpx.Response(self.upload_status, json=self.upload_json)
        if path == "/upload/metadata":
            self.metadata_payload = json.loads(request.content)
            return httpx.Response(self.metadata_status, json=self.metadata_json)
        if path.startswith("/processed/"):
            return httpx.Response(self.download_status, content=PROCESSED_BYTES)
        return httpx.Response(404)


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def video(tmp_path) -> Path:
    path = tmp_path / "lift.mp4"
    path.write_bytes(b"raw-video-bytes")
    return path


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def pipeline(analyzer, cache_dir):
    return AnalysisSubmissionPipeline(
        api_base=API_BASE,
        cache_dir=cache_dir,
        transport=httpx.MockTransport(analyzer),
    )


TRIM = TrimSelection(start_time=2.0, end_time=5.0, video_duration=8.0, frame_ref="frame.jpg")
REGION = Rectangle(x=120.0, y=340.5, width=80.0, height=40.0)


def _submit(pipeline, video):
    return asyncio.run(pipeline.submit(str(video), TRIM, REGION, "bench"))


# ============================================================================
# Test: Success path
# ============================================================================

class TestSubmitSuccess:

    def test_full_chain(self, pipeline, analyzer, video):
        result = _submit(pipeline, video)

        assert analyzer.calls == ["/upload/video", "/upload/metadata", "/processed/abcdefghij.mp4"]
        assert result.phase_signal == (0.5, -1.0, 4.0, -4.0, 0.0, 2.0)
        assert Path(result.processed_media_ref).read_bytes() == PROCESSED_BYTES

    def test_upload_is_multipart_video_field(self, pipeline, analyzer, video):
        _submit(pipeline, video)
        assert b'name="video"' in analyzer.upload_body
        assert b'filename="lift.mp4"' in analyzer.upload_body
        assert b"raw-video-bytes" in analyzer.upload_body

    def test_metadata_payload(self, pipeline, analyzer, video):
        _submit(pipeline, video)
        assert analyzer.metadata_payload == {
            "exercise": "bench",
            "start_time": 2.0,
            "end_time": 5.0,
            "barbell_area": {"x": 120.0, "y": 340.5, "width": 80.0, "height": 40.0},
            "video_url": "./uploads/2024-01-01T00-00-00_lift.mp4",
        }

    def test_each_success_gets_fresh_cache_file(self, pipeline, video, cache_dir):
        first = _submit(pipeline, video)
        second = _submit(pipeline, video)
        assert first.processed_media_ref != second.processed_media_ref
        assert Path(first.processed_media_ref).parent == cache_dir

    def test_file_uri_source(self, pipeline, analyzer, video):
        result = asyncio.run(pipeline.submit(video.as_uri(), TRIM, REGION, "bench"))
        assert result.processed_media_ref


# ============================================================================
# Test: Failures
# ============================================================================

class TestSubmitFailures:

    def test_upload_status_error(self, pipeline, analyzer, video, cache_dir):
        analyzer.upload_status = 500
        with pytest.raises(UploadError) as info:
            _submit(pipeline, video)
        assert info.value.status_code == 500
        assert analyzer.calls == ["/upload/video"]
        assert not cache_dir.exists()

    def test_upload_missing_file_url(self, pipeline, analyzer, video):
        analyzer.upload_json = {}
        with pytest.raises(UploadError, match="fileUrl"):
            _submit(pipeline, video)
        assert analyzer.calls == ["/upload/video"]

    def test_unreadable_source_video(self, pipeline, analyzer, tmp_path):
        with pytest.raises(UploadError):
            asyncio.run(pipeline.submit(str(tmp_path / "missing.mp4"), TRIM, REGION, "bench"))
        assert analyzer.calls == []

    def test_transport_error_is_chained(self, pipeline, analyzer, video):
        analyzer.raise_on = "/upload/video"
        with pytest.raises(UploadError) as info:
            _submit(pipeline, video)
        assert isinstance(info.value.__cause__, httpx.ConnectError)

    def test_metadata_status_error(self, pipeline, analyzer, video):
        analyzer.metadata_status = 500
        with pytest.raises(SubmissionError) as info:
            _submit(pipeline, video)
        assert info.value.status_code == 500
        assert analyzer.calls == ["/upload/video", "/upload/metadata"]

    def test_short_averages_skip_download(self, pipeline, analyzer, video, cache_dir):
        analyzer.metadata_json = {"video_url": "/processed/x.mp4", "averages": [0, 0, 0, 0, 0]}
        with pytest.raises(MalformedResponseError):
            _submit(pipeline, video)
        assert analyzer.calls == ["/upload/video", "/upload/metadata"]
        assert not cache_dir.exists()

    def test_long_averages_malformed(self, pipeline, analyzer, video):
        analyzer.metadata_json = {"video_url": "/processed/x.mp4", "averages": [0] * 7}
        with pytest.raises(MalformedResponseError):
            _submit(pipeline, video)

    def test_missing_video_url_malformed(self, pipeline, analyzer, video):
        analyzer.metadata_json = {"averages": [0] * 6}
        with pytest.raises(MalformedResponseError):
            _submit(pipeline, video)
        assert analyzer.calls == ["/upload/video", "/upload/metadata"]

    def test_unparseable_video_url_malformed(self, pipeline, analyzer, video, cache_dir):
        analyzer.metadata_json = {"video_url": "http://[::1", "averages": [0] * 6}
        with pytest.raises(MalformedResponseError, match="video_url"):
            _submit(pipeline, video)
        assert analyzer.calls == ["/upload/video", "/upload/metadata"]
        assert not cache_dir.exists()

    def test_download_error_caches_nothing(self, pipeline, analyzer, video, cache_dir):
        analyzer.download_status = 404
        with pytest.raises(DownloadError) as info:
            _submit(pipeline, video)
        assert info.value.status_code == 404
        assert not cache_dir.exists() or not any(cache_dir.iterdir())

    def test_all_failures_are_pipeline_errors(self, pipeline, analyzer, video):
        analyzer.download_status = 503
        with pytest.raises(PipelineError, match=r"\[download\]"):
            _submit(pipeline, video)
