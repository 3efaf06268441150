"""
Grant Portal API - FastAPI backend for the National Grant Assistance Portal
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from portal import __version__
from portal.database import init_models
from portal.security import setup_security

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

from portal.routers import (  # noqa: E402
    applications,
    assistant,
    frontend,
    grants,
    health,
    submissions,
)


# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup."""
    await init_models()
    logger.info("Grant Portal API started")
    yield
    logger.info("Grant Portal API shutdown complete")


app = FastAPI(
    title="National Grant Assistance Portal API",
    description="Grant catalog, application intake and AI assistant",
    version=__version__,
    lifespan=lifespan,
)

# =============================================================================
# CORS Configuration
# =============================================================================
# Production requires explicit HTTPS origins; development accepts any origin.

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

if ENVIRONMENT == "production":
    ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS", "").split(",")

    ALLOWED_ORIGINS = []
    for origin in ALLOWED_ORIGINS_RAW:
        origin = origin.strip()
        if not origin:
            continue
        if not origin.startswith("https://"):
            logger.warning(f"[CORS] Rejecting non-HTTPS origin in production: {origin}")
            continue
        if "localhost" in origin or "127.0.0.1" in origin:
            logger.warning(f"[CORS] Rejecting localhost origin in production: {origin}")
            continue
        ALLOWED_ORIGINS.append(origin)

    if not ALLOWED_ORIGINS:
        logger.warning("[CORS] No valid origins configured; cross-origin requests are refused")
else:
    ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
        if origin.strip()
    ] or ["*"]

logger.info(f"[CORS] Environment: {ENVIRONMENT}")
logger.info(f"[CORS] Allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)

# Compresses responses larger than 500 bytes
app.add_middleware(GZipMiddleware, minimum_size=500)

# =============================================================================
# Security Middleware Setup
# =============================================================================
# Must run after the CORS middleware is added
setup_security(app, ALLOWED_ORIGINS)

# =============================================================================
# Routers
# =============================================================================
app.include_router(health.router)
app.include_router(submissions.router)
app.include_router(applications.router)
app.include_router(grants.router)
app.include_router(assistant.router)
# Catch-all SPA fallback; keep last
app.include_router(frontend.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
