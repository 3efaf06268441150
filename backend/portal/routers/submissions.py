"""Application submission router.

``POST /submit`` is the path the form posts to; ``/api/v1/submit`` is the
same handler under the versioned prefix.  Every outcome is reported as
``{success, message}`` with the matching status code.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from portal.deps import (
    EmailNotifier,
    get_db,
    get_notifier,
    limiter,
    log_security_event,
)
from portal.exceptions import FraudSuspected, SubmissionError, ValidationFailed
from portal.models.application_models import SubmissionResponse
from portal.security import SUBMIT_RATE_LIMIT
from portal.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["submissions"])

SUCCESS_MESSAGE = "Application securely archived."


def _error_response(exc: SubmissionError) -> JSONResponse:
    body = SubmissionResponse(success=False, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.post("/submit", response_model=SubmissionResponse)
@router.post("/api/v1/submit", response_model=SubmissionResponse)
@limiter.limit(SUBMIT_RATE_LIMIT)
async def submit_application(
    request: Request,
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """Validate and persist one grant application, then notify the operator."""
    try:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationFailed("Validation Failed: request body is not valid JSON.") from e

        application = await SubmissionService.submit(db, payload, notifier)
    except FraudSuspected as e:
        log_security_event(
            "submission_flagged",
            request,
            {"grant_id": payload.get("grantId") if isinstance(payload, dict) else None},
        )
        return _error_response(e)
    except SubmissionError as e:
        return _error_response(e)
    except Exception:
        logger.exception("Unexpected error while handling submission")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Internal Server Error"},
        )

    return SubmissionResponse(
        success=True, message=SUCCESS_MESSAGE, reference_id=str(application.id)
    )
