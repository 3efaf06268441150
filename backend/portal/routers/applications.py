"""Application status router.

Lets an applicant look up a stored application by the reference id returned
from ``POST /submit``.  Only non-sensitive fields are exposed.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import get_db, _safe_error
from portal.models.application_models import ApplicationStatusResponse
from portal.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["applications"])


# ---------------------------------------------------------------------------
# GET  /applications/{reference_id}
# ---------------------------------------------------------------------------


@router.get("/applications/{reference_id}", response_model=ApplicationStatusResponse)
async def get_application_status(
    reference_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Return grant id, status and submission time for a reference id."""
    try:
        application_id = uuid.UUID(reference_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Application not found"
        ) from e

    try:
        application = await SubmissionService.get_application(db, application_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("application lookup", e),
        ) from e

    if application is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Application not found"
        )

    return ApplicationStatusResponse(
        reference_id=str(application.id),
        grant_id=application.grant_id,
        status=application.status,
        submitted_at=application.submitted_at,
    )
