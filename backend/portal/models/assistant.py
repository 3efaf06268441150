"""
AI Assistant Models

Pydantic models for the AI-assisted endpoints:
- ChatRequest / ChatResponse: grant assistant conversation turn
- NarrativeRequest / NarrativeResponse: vProfile narrative polishing
- VideoRequest / VideoJob: vision lab video generation
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(BaseModel):
    """One prior turn of the conversation."""

    role: Literal["user", "model"]
    text: str


class ChatRequest(BaseModel):
    """Request body for the grant assistant."""

    message: str = Field(..., min_length=1, max_length=4000)
    history: List[ChatMessage] = Field(
        default=[], description="Earlier turns, oldest first"
    )


class ChatResponse(BaseModel):
    """Assistant reply; always present, even when the model call failed."""

    reply: str


class NarrativeRequest(BaseModel):
    """vProfile bullet points to be rewritten as a formal summary."""

    model_config = _CAMEL

    narrative_raw: str = Field(..., max_length=4000)
    business_type: Optional[str] = ""
    annual_revenue: Optional[str] = ""


class NarrativeResponse(BaseModel):
    model_config = _CAMEL

    narrative_polished: str


class VideoRequest(BaseModel):
    """Prompt for a generated video."""

    model_config = _CAMEL

    prompt: str = Field(..., min_length=1, max_length=2000)
    aspect_ratio: Literal["16:9", "9:16"] = "16:9"


class VideoJob(BaseModel):
    """State of a video generation job.

    ``status`` is one of queued, in_progress, completed or failed.
    ``media_url`` is set once the job completed.
    """

    model_config = _CAMEL

    video_id: str
    status: str
    progress: Optional[int] = None
    media_url: Optional[str] = None
    error: Optional[str] = None
