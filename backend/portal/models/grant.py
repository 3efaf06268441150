"""Grant catalog models for the portal API.

Models for grant programs, FAQ entries and downloadable resources served
from the static catalog.
"""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class Grant(BaseModel):
    """A funding program shown to applicants."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    category: str
    amount: str = Field(..., description="Free-text range, e.g. '$5,000 - $50,000'")
    deadline: str = Field(..., description="Free-text date, or 'Rolling'/'Open'")
    description: str
    eligibility: List[str] = []


class FAQItem(BaseModel):
    """Frequently asked question."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    answer: str


class ResourceItem(BaseModel):
    """Downloadable applicant resource."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    type: Literal["PDF", "DOCX", "XLSX"]
    size: str
    url: str


class GrantListResponse(BaseModel):
    """Filtered and sorted grant listing."""

    grants: List[Grant]
    total: int
    categories: List[str]
