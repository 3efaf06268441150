"""Application ORM model.

Maps to the ``applications`` table.  One row per submitted grant
application; the ``(email, grant_id)`` pair is unique so a second submission
for the same grant by the same email is rejected by the database itself.
Status is advanced by reviewers outside this service.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.db.base import Base

__all__ = ["Application", "DEFAULT_STATUS"]

DEFAULT_STATUS = "Pending Review"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("email", "grant_id", name="uq_applications_email_grant"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    grant_id: Mapped[str] = mapped_column(Text, nullable=False)

    # Applicant identity
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    dob: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ssn: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Banking
    bank_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    routing_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Certification
    certification: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    signature: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=DEFAULT_STATUS, server_default=DEFAULT_STATUS
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
