"""Grant assistant and narrative polishing on top of the OpenAI chat API.

The assistant answers applicant questions using the static grant catalog as
its only database.  The narrative helper rewrites a vProfile's raw bullet
points into a short formal summary.  Both run the blocking SDK call in a
worker thread.
"""

import asyncio
import json
import logging
from typing import Iterable, List, Optional

from portal.catalog import GRANTS
from portal.models.assistant import ChatMessage
from portal.openai_provider import OpenAIClient, get_chat_model

logger = logging.getLogger(__name__)

APOLOGY_REPLY = "I apologize, I am unable to process your request."

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

NARRATIVE_PROMPT = """You are a professional grant writer.
Rewrite the following user input into a compelling, formal, and persuasive 3-4 sentence professional summary suitable for a federal grant application.
Focus on impact, stability, and need.

User Input: "{raw}"
Business Type: "{business_type}"
Revenue: "{annual_revenue}"
"""


def build_system_prompt() -> str:
    """System instruction carrying the whole catalog as JSON."""
    context = json.dumps(
        [
            {
                "title": g.title,
                "category": g.category,
                "amount": g.amount,
                "deadline": g.deadline,
                "desc": g.description,
                "eligibility": list(g.eligibility),
            }
            for g in GRANTS
        ]
    )
    return (
        "You are the Official Virtual Assistant for the US National Grant "
        f"Assistance Portal. Tone: Professional. Database: {context}"
    )


def _to_openai_messages(history: Iterable[ChatMessage], message: str) -> List[dict]:
    messages = [{"role": "system", "content": build_system_prompt()}]
    for turn in history:
        role = "assistant" if turn.role == "model" else "user"
        messages.append({"role": role, "content": turn.text})
    messages.append({"role": "user", "content": message})
    return messages


class AssistantService:
    """Chat and narrative calls against one OpenAI client."""

    def __init__(self, client: OpenAIClient, model: Optional[str] = None):
        self.client = client
        self.model = model or get_chat_model()

    async def reply(self, message: str, history: Iterable[ChatMessage] = ()) -> str:
        """Answer one user message.

        Model failures never propagate: the caller gets the fixed apology
        text instead.
        """
        try:
            response = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=self.model,
                messages=_to_openai_messages(history, message),
                temperature=0.4,
                max_tokens=800,
            )
            text = (response.choices[0].message.content or "").strip()
        except Exception as e:
            logger.error(f"Chat Error: {e}")
            return APOLOGY_REPLY
        return text or APOLOGY_REPLY

    async def polish_narrative(
        self,
        raw: str,
        business_type: Optional[str] = "",
        annual_revenue: Optional[str] = "",
    ) -> str:
        """Rewrite raw narrative notes into a 3-4 sentence formal summary.

        Raises:
            ValueError: ``raw`` is empty.
            RuntimeError: The model returned no text.
        """
        if not raw or not raw.strip():
            raise ValueError("Narrative input is empty.")

        prompt = NARRATIVE_PROMPT.format(
            raw=raw.strip(),
            business_type=business_type or "",
            annual_revenue=annual_revenue or "",
        )
        response = await asyncio.to_thread(
            self.client.chat.completions.create,
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.7,
            max_tokens=400,
        )
        polished = (response.choices[0].message.content or "").strip()
        if not polished:
            raise RuntimeError("Narrative model returned no text")
        return polished
