"""AI assistant router: chat, vProfile narrative polishing and vision lab videos.

All routes answer 503 when no OpenAI credentials are configured.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from portal.assistant_service import AssistantService
from portal.deps import OpenAIClient, limiter, require_openai_client, _safe_error
from portal.models.assistant import (
    ChatRequest,
    ChatResponse,
    NarrativeRequest,
    NarrativeResponse,
    VideoJob,
    VideoRequest,
)
from portal.vision_service import OpenAIVideoProvider, VideoProvider

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["assistant"])


def get_assistant(
    client: OpenAIClient = Depends(require_openai_client),
) -> AssistantService:
    return AssistantService(client)


def get_video_provider(
    client: OpenAIClient = Depends(require_openai_client),
) -> VideoProvider:
    return OpenAIVideoProvider(client)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post("/assistant/chat", response_model=ChatResponse)
@limiter.limit("20/minute")
async def chat(
    request: Request,
    body: ChatRequest,
    assistant: AssistantService = Depends(get_assistant),
):
    """Answer a question about the grant programs."""
    reply = await assistant.reply(body.message, body.history)
    return ChatResponse(reply=reply)


# ---------------------------------------------------------------------------
# Narrative
# ---------------------------------------------------------------------------


@router.post("/profile/narrative", response_model=NarrativeResponse)
@limiter.limit("10/minute")
async def polish_narrative(
    request: Request,
    body: NarrativeRequest,
    assistant: AssistantService = Depends(get_assistant),
):
    """Rewrite vProfile notes into a formal grant narrative."""
    try:
        polished = await assistant.polish_narrative(
            body.narrative_raw, body.business_type, body.annual_revenue
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_safe_error("narrative generation", e),
        ) from e
    return NarrativeResponse(narrative_polished=polished)


# ---------------------------------------------------------------------------
# Vision lab
# ---------------------------------------------------------------------------


@router.post("/vision/videos", response_model=VideoJob, status_code=202)
@limiter.limit("5/minute")
async def start_video(
    request: Request,
    body: VideoRequest,
    provider: VideoProvider = Depends(get_video_provider),
):
    """Start a video job; poll ``GET /vision/videos/{video_id}`` for progress."""
    try:
        return await asyncio.to_thread(provider.start, body.prompt, body.aspect_ratio)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_safe_error("video generation", e),
        ) from e


@router.get("/vision/videos/{video_id}", response_model=VideoJob)
async def get_video(
    video_id: str,
    provider: VideoProvider = Depends(get_video_provider),
):
    try:
        return await asyncio.to_thread(provider.poll, video_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_safe_error("video status", e),
        ) from e


@router.get("/vision/videos/{video_id}/content")
async def get_video_content(
    video_id: str,
    provider: VideoProvider = Depends(get_video_provider),
):
    """Stream the finished MP4."""
    try:
        data = await asyncio.to_thread(provider.download, video_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_safe_error("video download", e),
        ) from e
    return Response(content=data, media_type="video/mp4")
