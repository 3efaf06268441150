"""Pydantic request/response schemas for application submission and tracking.

Wire payloads use the camelCase keys the portal frontend sends (``grantId``,
``fullName``, ...).  Note that the frontend sends the routing number under
``branch``; the submission service copies it into ``routing_number``.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApplicationSubmission(BaseModel):
    """Request body for ``POST /submit``.

    Only ``grantId``, ``fullName``, ``email`` and ``signature`` are required;
    unknown extra keys are tolerated (older frontends send ``debt``,
    ``propertyOwned`` and similar).
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    grant_id: str = Field(..., max_length=200)
    full_name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=320)
    signature: str = Field(..., max_length=200)

    dob: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    ssn: Optional[str] = None
    ein: Optional[str] = None
    bank_name: Optional[str] = None
    branch: Optional[str] = Field(None, description="Routing number as sent by the form")
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    certification: Optional[bool] = None
    narrative: Optional[str] = Field(None, max_length=10000)

    @field_validator("grant_id", "full_name", "email", "signature")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        local, _, domain = v.strip().partition("@")
        if not local or "." not in domain:
            raise ValueError("must be a valid email address")
        return v.strip()


class SubmissionResponse(BaseModel):
    """Body of every ``POST /submit`` response."""

    model_config = _CAMEL

    success: bool
    message: str
    reference_id: Optional[str] = None


class ApplicationStatusResponse(BaseModel):
    """Non-sensitive projection of a stored application."""

    model_config = _CAMEL

    reference_id: str
    grant_id: str
    status: str
    submitted_at: datetime


class DisplayApplicationRecord(BaseModel):
    """Client-local dashboard row derived from a submission.

    A cache/projection only; the server's stored application is the source
    of truth.
    """

    model_config = _CAMEL

    id: str
    title: str
    status: str
    date: str = Field(..., description="MM/DD/YYYY")
    grant_type: str
    grant_id: Optional[str] = None
    server_reference: Optional[str] = None
    offline: bool = False
    is_static: bool = False


class VProfile(BaseModel):
    """Reusable applicant profile used to pre-fill new applications."""

    model_config = _CAMEL

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    business_name: str = ""
    business_type: str = ""
    ein: str = ""
    annual_revenue: str = ""
    narrative_raw: str = ""
    narrative_polished: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DashboardStats(BaseModel):
    """Derived dashboard figures, recomputed on every render."""

    approved_count: int = 0
    under_review_count: int = 0
    total_funding: int = 0


class DashboardView(BaseModel):
    """Merged, sorted dashboard rows with stats."""

    records: List[DisplayApplicationRecord]
    stats: DashboardStats
    sort_order: str = "date"
    has_vprofile: bool = False
