"""Health-check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text

from portal import __version__, database
from portal.notification_service import SmtpSettings
from portal.openai_provider import get_config

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/api/v1/health")
async def health_check():
    """Health check with database reachability and optional-feature status."""
    capabilities = ["catalog", "submissions"]
    degraded = []

    db_ok = True
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")
        db_ok = False
        degraded.append("database")

    if SmtpSettings.from_env().configured:
        capabilities.append("email_notifications")
    else:
        degraded.append("email_notifications")

    if get_config().configured:
        capabilities.append("ai_assistant")
    else:
        degraded.append("ai_assistant")

    return {
        "status": "healthy" if db_ok else "unhealthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "capabilities": capabilities,
        "degraded": degraded,
    }
