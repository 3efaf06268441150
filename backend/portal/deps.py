"""Shared dependencies for all Grant Portal API routers.

Centralises the database session dependency, the notifier and OpenAI
client dependencies, the rate-limiter reference, and small utility
helpers so that every router module can ``from portal.deps import …``
without pulling in the ``main`` module.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status

from portal.database import get_db
from portal.notification_service import EmailNotifier, get_notifier
from portal.openai_provider import OpenAIClient, get_openai_client
from portal.security import get_rate_limiter, log_security_event, get_client_ip

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------
limiter = get_rate_limiter()


# ---------------------------------------------------------------------------
# AI client dependency
# ---------------------------------------------------------------------------


def require_openai_client() -> OpenAIClient:
    """Return the OpenAI client or answer 503 when AI is not configured."""
    client: Optional[OpenAIClient] = get_openai_client()
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI features are not configured on this server.",
        )
    return client


# ---------------------------------------------------------------------------
# Small utility helpers
# ---------------------------------------------------------------------------


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details.

    This prevents leaking stack traces, file paths, or database internals
    to API consumers while preserving full diagnostics in server logs.
    """
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."


__all__ = [
    "EmailNotifier",
    "OpenAIClient",
    "get_client_ip",
    "get_db",
    "get_notifier",
    "limiter",
    "log_security_event",
    "require_openai_client",
    "_safe_error",
]
