"""HTTP client for the submission endpoint.

Turns a ``POST /submit`` exchange into either a reference id or one of the
submission exceptions, keeping explicit business rejections (4xx) apart
from connectivity and server faults so the form controller can apply its
offline policy to the latter only.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from portal.exceptions import (
    DuplicateSubmission,
    InternalError,
    NetworkUnreachable,
    SubmissionError,
)

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/submit"


class SubmissionRejected(SubmissionError):
    """The server refused the application (fraud, signature, validation)."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class SubmissionClient:
    """Thin httpx wrapper around ``POST /submit``.

    ``timeout`` defaults to None: the request waits on the transport's own
    behaviour, matching the browser client.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SubmissionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def submit(self, payload: Dict[str, Any]) -> Optional[str]:
        """POST the application and return the server reference id.

        Raises:
            NetworkUnreachable: The request never got a response.
            DuplicateSubmission: HTTP 409.
            SubmissionRejected: Any other 4xx.
            InternalError: 5xx or a malformed success body.
        """
        try:
            response = self._client.post(SUBMIT_PATH, json=payload)
        except httpx.TransportError as e:
            logger.warning("Submission endpoint unreachable at %s: %s", self.base_url, e)
            raise NetworkUnreachable() from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        status_code = response.status_code
        message = body.get("message") or f"Submission failed (HTTP {status_code})"

        if response.is_success:
            if body.get("success"):
                return body.get("referenceId")
            raise InternalError(message)
        if status_code == 409:
            raise DuplicateSubmission(message)
        if 400 <= status_code < 500:
            raise SubmissionRejected(message, status_code)
        raise InternalError(message)
