"""Static frontend router.

Serves the built single-page app from ``FRONTEND_DIST``.  Any GET that is
not an API route and does not name an existing file gets ``index.html`` so
the client-side hash router can take over.  Must be registered last.
"""

import logging
import os
from pathlib import Path

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse, JSONResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["frontend"])


def get_dist_dir() -> Path:
    return Path(os.getenv("FRONTEND_DIST", "frontend/dist")).resolve()


def _resolve_static(dist: Path, path: str):
    """Existing file under ``dist`` for ``path``; None for misses and traversal."""
    if not path:
        return None
    candidate = (dist / path).resolve()
    if dist not in candidate.parents:
        return None
    return candidate if candidate.is_file() else None


@router.get("/{full_path:path}", include_in_schema=False)
async def serve_frontend(full_path: str):
    if full_path == "api" or full_path.startswith("api/"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    dist = get_dist_dir()
    if static_file := _resolve_static(dist, full_path):
        return FileResponse(static_file)

    index = dist / "index.html"
    if index.is_file():
        return FileResponse(index)

    logger.warning(f"Frontend build not found at {dist}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "Frontend build not found"},
    )
