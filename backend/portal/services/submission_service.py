"""Business logic for grant application submission.

The submission handler is the authoritative check for every application:
it re-runs the placeholder heuristics, validates required fields, verifies
the typed signature, persists the record and finally emails the operator.
Whatever the client already checked is not trusted.
"""

import logging
import uuid
from typing import Any, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.exceptions import (
    DuplicateSubmission,
    FraudSuspected,
    InternalError,
    NotificationFailed,
    SignatureMismatch,
    ValidationFailed,
)
from portal.fraud_checks import is_suspicious, signature_matches
from portal.models.application_models import ApplicationSubmission
from portal.models.db.application import Application
from portal.notification_service import EmailNotifier

logger = logging.getLogger(__name__)


def _invalid_fields(exc: ValidationError) -> str:
    fields = []
    for err in exc.errors():
        name = str(err["loc"][0]) if err.get("loc") else "body"
        if name not in fields:
            fields.append(name)
    return ", ".join(fields)


class SubmissionService:
    """Service layer for application submission."""

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    @staticmethod
    async def submit(
        db: AsyncSession,
        payload: Mapping[str, Any],
        notifier: EmailNotifier,
    ) -> Application:
        """Validate, persist and announce one application.

        Args:
            db: Async database session.
            payload: Raw JSON object as posted by the client.
            notifier: Operator notifier; failures are logged, not raised.

        Returns:
            The persisted Application.

        Raises:
            ValidationFailed: Payload is not an object or a required field
                is missing/invalid.
            FraudSuspected: A value matched a placeholder heuristic.
            SignatureMismatch: Signature does not equal the full name.
            DuplicateSubmission: Same (email, grant) already stored.
            InternalError: Unexpected persistence fault.
        """
        if not isinstance(payload, Mapping):
            raise ValidationFailed("Validation Failed: request body must be a JSON object.")

        if is_suspicious(payload):
            logger.warning(
                "Submission rejected by heuristic scan (grant=%s)",
                payload.get("grantId"),
            )
            raise FraudSuspected()

        try:
            submission = ApplicationSubmission.model_validate(dict(payload))
        except ValidationError as e:
            fields = _invalid_fields(e)
            logger.info("Submission rejected: invalid fields %s", fields)
            raise ValidationFailed(
                f"Validation Failed: missing or invalid field(s): {fields}."
            ) from e

        if not signature_matches(submission.signature, submission.full_name):
            logger.info(
                "Submission rejected: signature mismatch (grant=%s)",
                submission.grant_id,
            )
            raise SignatureMismatch()

        application = Application(
            grant_id=submission.grant_id,
            full_name=submission.full_name,
            dob=submission.dob,
            phone=submission.phone,
            email=submission.email,
            address=submission.address,
            ssn=submission.ssn,
            bank_name=submission.bank_name,
            # The form posts the routing number as "branch"
            routing_number=submission.branch,
            account_name=submission.account_name,
            account_number=submission.account_number,
            certification=submission.certification,
            signature=submission.signature,
        )
        db.add(application)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.info(
                "Duplicate submission for grant=%s", submission.grant_id
            )
            raise DuplicateSubmission() from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("Error saving application")
            raise InternalError() from e

        reference_id = str(application.id)
        logger.info(
            "Application %s stored (grant=%s)", reference_id, application.grant_id
        )

        try:
            await notifier.notify_application(
                full_name=application.full_name,
                grant_id=application.grant_id,
                signature=application.signature,
                reference_id=reference_id,
            )
        except NotificationFailed as e:
            logger.warning("Email failed to send for %s: %s", reference_id, e)

        return application

    # ------------------------------------------------------------------
    # get_application
    # ------------------------------------------------------------------

    @staticmethod
    async def get_application(
        db: AsyncSession, application_id: uuid.UUID
    ) -> Optional[Application]:
        """Fetch a stored application by its reference id."""
        result = await db.execute(
            select(Application).where(Application.id == application_id)
        )
        return result.scalar_one_or_none()
