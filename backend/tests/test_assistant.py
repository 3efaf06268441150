"""
Tests for the AI Assistant, Narrative and Vision Features

The OpenAI SDK is never called: services get a fake client object and the
routes get their dependencies overridden.

Usage:
    cd backend && pytest tests/test_assistant.py -v
"""

import asyncio
import os
import sys
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi.testclient import TestClient

from portal import database, openai_provider
from portal.assistant_service import APOLOGY_REPLY, AssistantService, build_system_prompt
from portal.main import app
from portal.models.assistant import ChatMessage, VideoJob
from portal.routers.assistant import get_assistant, get_video_provider
from portal.security import limiter
from portal.vision_service import (
    POLL_INTERVAL_SECONDS,
    VisionError,
    generate_video,
    media_path,
)


# ============================================================================
# FAKES
# ============================================================================

class FakeCompletions:
    """Stands in for ``client.chat.completions``."""

    def __init__(self, reply: Optional[str] = "Happy to help.", error: Exception = None):
        self.reply = reply
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_openai_client(**kwargs):
    completions = FakeCompletions(**kwargs)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class FakeVideoProvider:
    """Scripted job states: start() returns the first, each poll() the next."""

    def __init__(self, statuses: List[str], error: Optional[str] = None):
        self.statuses = list(statuses)
        self.error = error
        self.polls = 0

    def _job(self, status: str) -> VideoJob:
        job = VideoJob(video_id="video_1", status=status)
        if status == "completed":
            job.media_url = media_path("video_1")
        if status == "failed":
            job.error = self.error
        return job

    def start(self, prompt: str, aspect_ratio: str) -> VideoJob:
        return self._job(self.statuses.pop(0))

    def poll(self, video_id: str) -> VideoJob:
        self.polls += 1
        return self._job(self.statuses.pop(0))

    def download(self, video_id: str) -> bytes:
        return b"\x00\x00\x00\x18ftypmp42"


# ============================================================================
# ASSISTANT SERVICE
# ============================================================================

class TestAssistantService:

    def test_system_prompt_contains_catalog(self):
        prompt = build_system_prompt()
        assert "Official Virtual Assistant" in prompt
        assert "SBA Small Business Assistance" in prompt
        assert "Rolling Basis" in prompt

    def test_reply_sends_history_in_order(self):
        client, completions = make_openai_client()
        service = AssistantService(client, model="chat-model")
        history = [
            ChatMessage(role="user", text="Hi"),
            ChatMessage(role="model", text="Hello, how can I help?"),
        ]

        reply = asyncio.run(service.reply("Which grants are open?", history))

        assert reply == "Happy to help."
        messages = completions.calls[0]["messages"]
        assert completions.calls[0]["model"] == "chat-model"
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "Which grants are open?"

    def test_model_failure_returns_apology(self):
        client, _ = make_openai_client(error=RuntimeError("upstream timeout"))
        reply = asyncio.run(AssistantService(client, model="m").reply("hello"))
        assert reply == APOLOGY_REPLY

    def test_empty_model_reply_returns_apology(self):
        client, _ = make_openai_client(reply="")
        assert asyncio.run(AssistantService(client, model="m").reply("hello")) == APOLOGY_REPLY

    def test_polish_narrative_includes_context(self):
        client, completions = make_openai_client(reply="A formal summary.")
        service = AssistantService(client, model="m")

        result = asyncio.run(
            service.polish_narrative("we bake bread", "Bakery", "$250,000")
        )

        assert result == "A formal summary."
        prompt = completions.calls[0]["messages"][0]["content"]
        assert "we bake bread" in prompt
        assert "Bakery" in prompt
        assert "$250,000" in prompt

    def test_polish_narrative_rejects_empty_input(self):
        client, completions = make_openai_client()
        with pytest.raises(ValueError):
            asyncio.run(AssistantService(client, model="m").polish_narrative("   "))
        assert completions.calls == []


# ============================================================================
# VISION SERVICE
# ============================================================================

class TestGenerateVideo:

    @staticmethod
    def _run(provider, max_attempts=10):
        waits = []

        async def fake_sleep(seconds):
            waits.append(seconds)

        job = asyncio.run(
            generate_video(provider, "a sunrise", max_attempts=max_attempts, sleep=fake_sleep)
        )
        return job, waits

    def test_polls_until_completed(self):
        provider = FakeVideoProvider(["queued", "in_progress", "completed"])

        job, waits = self._run(provider)

        assert job.status == "completed"
        assert job.media_url == "/api/v1/vision/videos/video_1/content"
        assert provider.polls == 2
        assert waits == [POLL_INTERVAL_SECONDS, POLL_INTERVAL_SECONDS]

    def test_poll_interval_is_eight_seconds(self):
        assert POLL_INTERVAL_SECONDS == 8.0

    def test_failed_job_raises_with_provider_message(self):
        provider = FakeVideoProvider(["queued", "failed"], error="content policy")
        with pytest.raises(VisionError, match="content policy"):
            self._run(provider)

    def test_gives_up_after_max_attempts(self):
        provider = FakeVideoProvider(["queued"] * 10)
        with pytest.raises(VisionError, match="not ready"):
            self._run(provider, max_attempts=3)
        assert provider.polls == 3


# ============================================================================
# API ROUTES
# ============================================================================

@pytest.fixture
def client(tmp_path):
    database.configure_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    limiter.enabled = False
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def unconfigured_openai(monkeypatch):
    for name in ("OPENAI_API_KEY", "AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_KEY"):
        monkeypatch.delenv(name, raising=False)
    openai_provider.reset_client()
    yield
    openai_provider.reset_client()


class TestAssistantRoutes:

    def test_chat(self, client):
        fake, _ = make_openai_client(reply="The SBA program is open.")
        app.dependency_overrides[get_assistant] = lambda: AssistantService(fake, model="m")

        response = client.post(
            "/api/v1/assistant/chat",
            json={"message": "What is open?", "history": [{"role": "user", "text": "Hi"}]},
        )

        assert response.status_code == 200
        assert response.json() == {"reply": "The SBA program is open."}

    def test_chat_requires_message(self, client):
        fake, _ = make_openai_client()
        app.dependency_overrides[get_assistant] = lambda: AssistantService(fake, model="m")
        response = client.post("/api/v1/assistant/chat", json={"message": ""})
        assert response.status_code == 422

    def test_narrative(self, client):
        fake, _ = make_openai_client(reply="Polished.")
        app.dependency_overrides[get_assistant] = lambda: AssistantService(fake, model="m")

        response = client.post(
            "/api/v1/profile/narrative",
            json={"narrativeRaw": "we bake", "businessType": "Bakery"},
        )

        assert response.status_code == 200
        assert response.json() == {"narrativePolished": "Polished."}

    def test_empty_narrative_is_400(self, client):
        fake, _ = make_openai_client()
        app.dependency_overrides[get_assistant] = lambda: AssistantService(fake, model="m")
        response = client.post("/api/v1/profile/narrative", json={"narrativeRaw": " "})
        assert response.status_code == 400

    def test_video_start_and_poll(self, client):
        provider = FakeVideoProvider(["queued", "completed"])
        app.dependency_overrides[get_video_provider] = lambda: provider

        started = client.post("/api/v1/vision/videos", json={"prompt": "a sunrise"})
        assert started.status_code == 202
        assert started.json()["videoId"] == "video_1"
        assert started.json()["status"] == "queued"

        polled = client.get("/api/v1/vision/videos/video_1")
        assert polled.json()["status"] == "completed"
        assert polled.json()["mediaUrl"] == "/api/v1/vision/videos/video_1/content"

    def test_video_content(self, client):
        app.dependency_overrides[get_video_provider] = lambda: FakeVideoProvider([])
        response = client.get("/api/v1/vision/videos/video_1/content")
        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp4"

    def test_invalid_aspect_ratio_is_422(self, client):
        app.dependency_overrides[get_video_provider] = lambda: FakeVideoProvider(["queued"])
        response = client.post(
            "/api/v1/vision/videos", json={"prompt": "x", "aspectRatio": "4:3"}
        )
        assert response.status_code == 422

    def test_unconfigured_ai_returns_503(self, client, unconfigured_openai):
        assert client.post("/api/v1/assistant/chat", json={"message": "hi"}).status_code == 503
        assert client.get("/api/v1/vision/videos/video_1").status_code == 503
