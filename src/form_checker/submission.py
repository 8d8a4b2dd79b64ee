"""
Analysis submission pipeline.

One call to :meth:`AnalysisSubmissionPipeline.submit` runs five strictly
ordered steps against the analyzer API:

    Step 1: Upload raw video (multipart, field ``video``) -> remote locator
    Step 2: Submit metadata (trim window, barbell area, exercise)
    Step 3: Validate response (processed video locator + 6 phase averages)
    Step 4: Download processed video
    Step 5: Persist it to the local cache

The first failing step aborts the call with its ``PipelineError``; nothing
partial is returned or cached. No retries happen here.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from .acquisition import media_path
from .config import (
    API_BASE,
    CACHE_DIR,
    PHASE_SIGNAL_LENGTH,
    REQUEST_TIMEOUT_SECONDS,
    UPLOAD_FIELD_NAME,
    UPLOAD_METADATA_PATH,
    UPLOAD_VIDEO_PATH,
)
from .errors import (
    CacheWriteError,
    DownloadError,
    MalformedResponseError,
    SubmissionError,
    UploadError,
)
from .geometry import Rectangle
from .state import AnalysisRequest, AnalysisResult, TrimSelection

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------

class _UploadResponse(BaseModel):
    fileUrl: Optional[str] = None


class _MetadataResponse(BaseModel):
    video_url: str = Field(min_length=1)
    averages: list[float] = Field(
        min_length=PHASE_SIGNAL_LENGTH, max_length=PHASE_SIGNAL_LENGTH
    )

    @field_validator("video_url")
    @classmethod
    def _parseable_url(cls, value: str) -> str:
        # Step 4 fetches this locator; reject it here as a malformed response.
        try:
            httpx.URL(value)
        except httpx.InvalidURL as exc:
            raise ValueError(f"Invalid video_url {value!r}: {exc}") from exc
        return value


class AnalysisSubmissionPipeline:
    """Submits one annotated clip to the analyzer and fetches the result.

    Args:
        api_base: Analyzer base URL; relative locators resolve against it.
        cache_dir: Where processed videos are written.
        transport: Optional ``httpx`` transport (tests use ``MockTransport``).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_base: str = API_BASE,
        cache_dir: Path = CACHE_DIR,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.api_base = api_base.rstrip("/")
        self.cache_dir = Path(cache_dir)
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            transport=self.transport,
            timeout=self.timeout,
        )

    async def submit(
        self,
        source_media_ref: str,
        trim: TrimSelection,
        region: Rectangle,
        exercise_kind: str,
    ) -> AnalysisResult:
        """Run the full chain for one submission attempt.

        Args:
            source_media_ref: Local reference to the acquired video.
            trim: Confirmed trim window.
            region: Barbell area in source-media pixels.
            exercise_kind: Exercise identifier, e.g. ``"bench"``.

        Returns:
            ``AnalysisResult`` with the cached processed video path and
            the phase signal.

        Raises:
            UploadError, SubmissionError, MalformedResponseError,
            DownloadError, CacheWriteError: first failing step.
        """
        request = AnalysisRequest(
            exercise_kind=exercise_kind,
            start_time=trim.start_time,
            end_time=trim.end_time,
            region_of_interest=region,
            source_media_ref=source_media_ref,
        )
        t0 = time.time()

        async with self._client() as client:
            # ── STEP 1: Upload raw video ─────────────────────────────────
            remote_ref = await self._upload_video(client, request.source_media_ref)

            # ── STEP 2 + 3: Submit metadata, validate response ───────────
            processed_url, averages = await self._submit_metadata(
                client, request, remote_ref
            )

            # ── STEP 4: Download processed video ─────────────────────────
            content = await self._download(client, processed_url)

        # ── STEP 5: Persist locally ──────────────────────────────────────
        local_ref = await asyncio.to_thread(self._persist, content)

        logger.info(
            "Submission complete in %.2fs: %s -> %s",
            time.time() - t0, request.source_media_ref, local_ref,
        )
        return AnalysisResult(
            processed_media_ref=local_ref, phase_signal=tuple(averages)
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _upload_video(self, client: httpx.AsyncClient, source_media_ref: str) -> str:
        path = media_path(source_media_ref)
        logger.info("Starting upload: %s", path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise UploadError(f"Could not read video {path}: {exc}") from exc

        files = {UPLOAD_FIELD_NAME: (path.name, data, "video/mp4")}
        try:
            response = await client.post(UPLOAD_VIDEO_PATH, files=files)
        except httpx.HTTPError as exc:
            raise UploadError(f"Video upload failed: {exc}") from exc

        if response.status_code != 200:
            raise UploadError("Video upload failed", status_code=response.status_code)
        try:
            body = _UploadResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise UploadError(f"Unreadable upload response: {exc}") from exc
        if not body.fileUrl:
            raise UploadError("Upload response has no fileUrl")

        logger.info("Upload complete: %d bytes -> %s", len(data), body.fileUrl)
        return body.fileUrl

    async def _submit_metadata(
        self,
        client: httpx.AsyncClient,
        request: AnalysisRequest,
        remote_ref: str,
    ) -> tuple[str, list[float]]:
        payload = request.to_payload(remote_ref)
        logger.info(
            "Submitting metadata: exercise=%s window=%.2f-%.2fs area=%s",
            request.exercise_kind, request.start_time, request.end_time,
            payload["barbell_area"],
        )
        try:
            response = await client.post(UPLOAD_METADATA_PATH, json=payload)
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Metadata upload failed: {exc}") from exc

        if response.status_code != 200:
            raise SubmissionError("Metadata upload failed", status_code=response.status_code)

        try:
            body = _MetadataResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MalformedResponseError(f"Unexpected analyzer response: {exc}") from exc

        logger.info("Analyzer returned %s averages=%s", body.video_url, body.averages)
        return body.video_url, body.averages

    async def _download(self, client: httpx.AsyncClient, processed_url: str) -> bytes:
        logger.info("Downloading processed video: %s", processed_url)
        try:
            response = await client.get(processed_url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DownloadError(f"Video download failed: {exc}") from exc

        if response.status_code != 200:
            raise DownloadError("Video download failed", status_code=response.status_code)
        return response.content

    def _persist(self, content: bytes) -> str:
        out_path = self.cache_dir / f"processed_{uuid.uuid4().hex[:12]}.mp4"
        tmp_path = out_path.with_suffix(".part")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(content)
            tmp_path.replace(out_path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise CacheWriteError(f"Could not cache processed video: {exc}") from exc
        return str(out_path)
