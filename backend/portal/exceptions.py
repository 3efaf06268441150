"""Submission failure taxonomy.

Each exception carries the HTTP status the submission endpoint answers with
and a message that is safe to show the applicant.
"""

from typing import Optional


class SubmissionError(Exception):
    """Base class for all application submission failures."""

    status_code: int = 400
    default_message: str = "Submission failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(SubmissionError):
    """A required field is missing or a field has the wrong type."""

    status_code = 400
    default_message = "Validation Failed: required application fields are missing or invalid."


class FraudSuspected(SubmissionError):
    """The payload matched a placeholder/test-data heuristic."""

    status_code = 400
    default_message = (
        "Submission flagged for invalid or test data. "
        "Please provide verifiable information."
    )


class SignatureMismatch(SubmissionError):
    """The typed signature does not equal the applicant's full name."""

    status_code = 400
    default_message = (
        "Certification Failed: Digital Signature does not match the "
        "applicant's full legal name."
    )


class DuplicateSubmission(SubmissionError):
    """An application for this grant already exists for this email."""

    status_code = 409
    default_message = (
        "Duplicate Application: An application for this Grant ID has already "
        "been submitted with this email address."
    )


class InternalError(SubmissionError):
    """Unexpected persistence fault; fatal to the request."""

    status_code = 500
    default_message = "Internal Server Error"


class NotificationFailed(Exception):
    """Operator email could not be sent. Never fatal to a submission."""


class NetworkUnreachable(SubmissionError):
    """Client side: the submission endpoint could not be reached."""

    status_code = 503
    default_message = "The application service is unreachable. Please try again later."
