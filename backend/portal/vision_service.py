"""Vision lab: prompt-to-video generation.

Generation is asynchronous on the provider side: a job is started, then
polled every ``POLL_INTERVAL_SECONDS`` until it completes or fails.  The
provider is hidden behind :class:`VideoProvider` so the polling loop and
the API routes can be exercised without a real model.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from portal.models.assistant import VideoJob
from portal.openai_provider import OpenAIClient, get_video_model

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 8.0
MAX_POLL_ATTEMPTS = 45

DONE_STATUSES = ("completed", "failed")

_SIZES = {"16:9": "1280x720", "9:16": "720x1280"}


class VisionError(Exception):
    """Video generation failed or never finished."""


def media_path(video_id: str) -> str:
    """API path that streams the finished video."""
    return f"/api/v1/vision/videos/{video_id}/content"


class VideoProvider(Protocol):
    def start(self, prompt: str, aspect_ratio: str) -> VideoJob: ...

    def poll(self, video_id: str) -> VideoJob: ...

    def download(self, video_id: str) -> bytes: ...


class OpenAIVideoProvider:
    """:class:`VideoProvider` backed by the OpenAI videos API."""

    def __init__(self, client: OpenAIClient, model: Optional[str] = None):
        self.client = client
        self.model = model or get_video_model()

    @staticmethod
    def _to_job(video) -> VideoJob:
        error = getattr(video, "error", None)
        job = VideoJob(
            video_id=video.id,
            status=video.status,
            progress=getattr(video, "progress", None),
            error=getattr(error, "message", None) if error else None,
        )
        if job.status == "completed":
            job.media_url = media_path(job.video_id)
        return job

    def start(self, prompt: str, aspect_ratio: str) -> VideoJob:
        video = self.client.videos.create(
            model=self.model,
            prompt=prompt,
            size=_SIZES.get(aspect_ratio, _SIZES["16:9"]),
        )
        logger.info(f"Video job {video.id} started ({self.model})")
        return self._to_job(video)

    def poll(self, video_id: str) -> VideoJob:
        return self._to_job(self.client.videos.retrieve(video_id))

    def download(self, video_id: str) -> bytes:
        return self.client.videos.download_content(video_id).read()


async def generate_video(
    provider: VideoProvider,
    prompt: str,
    aspect_ratio: str = "16:9",
    interval: float = POLL_INTERVAL_SECONDS,
    max_attempts: int = MAX_POLL_ATTEMPTS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> VideoJob:
    """Start a job and poll it until it finishes.

    Used by the ``grant-portal vision`` command.  The HTTP API instead
    exposes start and poll separately so browsers drive their own polling.

    Returns:
        The completed job, with ``media_url`` set.

    Raises:
        VisionError: The job failed, or was still running after
            ``max_attempts`` polls.
    """
    job = await asyncio.to_thread(provider.start, prompt, aspect_ratio)
    attempts = 0
    while job.status not in DONE_STATUSES:
        if attempts >= max_attempts:
            raise VisionError(
                f"Video {job.video_id} not ready after {attempts} polls"
            )
        await sleep(interval)
        attempts += 1
        job = await asyncio.to_thread(provider.poll, job.video_id)
        logger.debug(f"Video {job.video_id}: {job.status} ({job.progress}%)")

    if job.status == "failed":
        raise VisionError(job.error or "Generation failed")
    if not job.media_url:
        raise VisionError("No video URI returned from the model.")
    return job
