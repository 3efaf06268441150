"""Multi-step grant application form controller.

Drives the four-step application flow::

    PROGRAM -> PERSONAL -> BANKING -> CERTIFY -> SUBMITTED

Forward moves validate only the current step's fields; backward moves are
always allowed from step 2 onwards.  Each passed step is frozen into a
step-specific struct, and editing a field invalidates the struct for its
step and every later one, so certified data can never sit on top of an
unvalidated personal step.

Client-side checks mirror the server's but are not authoritative; the
submission endpoint re-verifies everything.  The local duplicate check is
advisory only.
"""

import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, Optional

from portal import catalog
from portal.exceptions import (
    DuplicateSubmission,
    InternalError,
    NetworkUnreachable,
    SubmissionError,
)
from portal.fraud_checks import (
    PLACEHOLDER_FIELDS,
    SEQUENTIAL_FIELDS,
    find_placeholder,
    is_sequential_digits,
    signature_matches,
)
from portal.local_store import LocalStateStore
from portal.models.application_models import DisplayApplicationRecord, VProfile
from portal.models.grant import Grant
from portal.navigation import resolve
from portal.services.dashboard_service import classify_grant_type
from portal.submission_client import SubmissionClient

logger = logging.getLogger(__name__)


class Step(IntEnum):
    PROGRAM = 1
    PERSONAL = 2
    BANKING = 3
    CERTIFY = 4
    SUBMITTED = 5


STEP_FIELDS: Dict[Step, tuple] = {
    Step.PROGRAM: ("grantId",),
    Step.PERSONAL: ("fullName", "dob", "phone", "email", "address", "ssn", "ein"),
    Step.BANKING: ("bankName", "routingNumber", "accountName", "accountNumber"),
    Step.CERTIFY: ("certification", "signature", "narrative"),
}

REQUIRED_FIELDS: Dict[Step, tuple] = {
    Step.PROGRAM: ("grantId",),
    Step.PERSONAL: ("fullName", "dob", "phone", "email", "address"),
    Step.BANKING: ("bankName", "routingNumber", "accountName", "accountNumber"),
    Step.CERTIFY: ("signature",),
}

FIELD_LABELS = {
    "grantId": "Grant program",
    "fullName": "Full legal name",
    "dob": "Date of birth",
    "phone": "Phone number",
    "email": "Email address",
    "address": "Address",
    "ssn": "SSN",
    "ein": "EIN",
    "bankName": "Bank name",
    "routingNumber": "Routing number",
    "accountName": "Account holder name",
    "accountNumber": "Account number",
    "certification": "Certification",
    "signature": "Digital signature",
    "narrative": "Narrative",
}

_FIELD_STEP = {f: step for step, fields in STEP_FIELDS.items() for f in fields}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_ROUTING_RE = re.compile(r"^\d{9}$")
_ACCOUNT_RE = re.compile(r"^\d{4,17}$")
_NINE_DIGITS_RE = re.compile(r"^\d{9}$")
_NON_DIGIT_RE = re.compile(r"\D")

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def _fields_in(step: Step, fields) -> list:
    return [f for f in fields if f in STEP_FIELDS[step]]


def empty_draft() -> Dict[str, Any]:
    draft: Dict[str, Any] = {f: "" for fields in STEP_FIELDS.values() for f in fields}
    draft["certification"] = False
    return draft


# ---------------------------------------------------------------------------
# Validated step structs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgramStep:
    grant: Grant


@dataclass(frozen=True)
class PersonalStep:
    full_name: str
    dob: str
    phone: str
    email: str
    address: str
    ssn: str = ""
    ein: str = ""


@dataclass(frozen=True)
class BankingStep:
    bank_name: str
    routing_number: str
    account_name: str
    account_number: str


@dataclass(frozen=True)
class CertifyStep:
    signature: str
    narrative: str = ""


@dataclass(frozen=True)
class ValidatedApplication:
    program: ProgramStep
    personal: PersonalStep
    banking: BankingStep
    certify: CertifyStep

    def to_payload(self) -> Dict[str, Any]:
        """Wire payload for ``POST /submit`` (routing number travels as ``branch``)."""
        return {
            "grantId": self.program.grant.id,
            "fullName": self.personal.full_name,
            "dob": self.personal.dob,
            "phone": self.personal.phone,
            "email": self.personal.email,
            "address": self.personal.address,
            "ssn": self.personal.ssn,
            "ein": self.personal.ein,
            "bankName": self.banking.bank_name,
            "branch": self.banking.routing_number,
            "accountName": self.banking.account_name,
            "accountNumber": self.banking.account_number,
            "certification": True,
            "signature": self.certify.signature,
            "narrative": self.certify.narrative,
        }


class SubmissionOutcome(str, Enum):
    SUBMITTED = "submitted"
    RECORDED_OFFLINE = "recorded_offline"


@dataclass(frozen=True)
class SubmissionResult:
    outcome: SubmissionOutcome
    record: DisplayApplicationRecord
    server_reference: Optional[str] = None


class FormValidationError(ValueError):
    """The current step has field errors."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


def generate_reference_id(grant: Grant, now: Optional[datetime] = None) -> str:
    """Display reference such as ``SBA-2026-7KQ2``."""
    now = now or datetime.now()
    prefix = grant.id.split("-")[0].upper()
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
    return f"{prefix}-{now.year}-{suffix}"


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class ApplicationFormController:
    """State machine behind the application form.

    Args:
        store: Local state store for submitted records and the vProfile.
        client: Submission endpoint client; None behaves as unreachable.
        offline_fallback: Record the application locally when the server
            cannot be reached (reported as ``RECORDED_OFFLINE``).  When
            False, :class:`NetworkUnreachable` is raised instead.
        today: Clock for the display date, injectable for tests.
    """

    def __init__(
        self,
        store: LocalStateStore,
        client: Optional[SubmissionClient] = None,
        offline_fallback: bool = True,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.client = client
        self.offline_fallback = offline_fallback
        self._today = today

        self.step = Step.PROGRAM
        self.draft: Dict[str, Any] = empty_draft()
        self.errors: Dict[str, str] = {}
        self.submit_error: Optional[str] = None
        self.is_submitting = False
        self._validated: Dict[Step, Any] = {}

    # ------------------------------------------------------------------
    # draft lifecycle
    # ------------------------------------------------------------------

    def start(
        self, route_hash: Optional[str] = None, profile: Optional[VProfile] = None
    ) -> None:
        """Reset the draft, pre-filling from the vProfile and the route query."""
        self.step = Step.PROGRAM
        self.draft = empty_draft()
        self.errors = {}
        self.submit_error = None
        self._validated = {}

        profile = profile or self.store.get_profile()
        if profile is not None:
            self.draft.update(
                fullName=profile.full_name,
                email=profile.email,
                phone=profile.phone,
                address=profile.address,
                ein=profile.ein,
                narrative=profile.narrative_polished or profile.narrative_raw,
            )

        if route_hash:
            route = resolve(route_hash)
            if grant_id := route.params.get("preselectedGrant"):
                self.draft["grantId"] = grant_id

    def set_field(self, name: str, value: Any) -> None:
        """Update one draft field.

        Raises:
            KeyError: Unknown field.
            ValueError: The application was already submitted.
        """
        if name not in _FIELD_STEP:
            raise KeyError(f"Unknown form field: {name}")
        if self.step == Step.SUBMITTED:
            raise ValueError("Application already submitted")
        self.draft[name] = value
        self.errors.pop(name, None)
        owner = _FIELD_STEP[name]
        for step in list(self._validated):
            if step >= owner:
                del self._validated[step]

    def update(self, **fields: Any) -> None:
        for name, value in fields.items():
            self.set_field(name, value)

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------

    def next_step(self) -> bool:
        """Validate the current step and advance; False if blocked."""
        if self.is_submitting or self.step >= Step.CERTIFY:
            return False
        errors = self.validate_step()
        if errors:
            return False
        self.step = Step(self.step + 1)
        return True

    def previous_step(self) -> bool:
        if self.is_submitting or self.step in (Step.PROGRAM, Step.SUBMITTED):
            return False
        self.step = Step(self.step - 1)
        self.errors = {}
        return True

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    def validate_step(self, step: Optional[Step] = None) -> Dict[str, str]:
        """Validate one step's fields, recording errors and the step struct."""
        step = step or self.step
        validator = {
            Step.PROGRAM: self._validate_program,
            Step.PERSONAL: self._validate_personal,
            Step.BANKING: self._validate_banking,
            Step.CERTIFY: self._validate_certify,
        }.get(step)
        if validator is None:
            return {}

        errors: Dict[str, str] = {}
        for name in REQUIRED_FIELDS.get(step, ()):
            if not str(self.draft.get(name) or "").strip():
                errors[name] = f"{FIELD_LABELS[name]} is required."

        struct = validator(errors)
        for name in STEP_FIELDS[step]:
            self.errors.pop(name, None)
        self.errors.update(errors)
        if errors:
            self._validated.pop(step, None)
        else:
            self._validated[step] = struct
        return errors

    def _value(self, name: str) -> str:
        return str(self.draft.get(name) or "").strip()

    def _validate_program(self, errors: Dict[str, str]) -> Optional[ProgramStep]:
        grant_id = self._value("grantId")
        grant = catalog.get_grant(grant_id) if grant_id else None
        if grant_id and grant is None:
            errors["grantId"] = "Please select a valid grant program."
        return ProgramStep(grant=grant) if grant else None

    def _check_placeholders(self, errors: Dict[str, str], fields) -> None:
        for name in fields:
            if name in errors:
                continue
            if found := find_placeholder(self._value(name)):
                errors[name] = (
                    f"{FIELD_LABELS[name]} looks like placeholder data "
                    f"(\"{found}\"). Please enter verifiable information."
                )

    def _check_sequences(self, errors: Dict[str, str], fields) -> None:
        for name in fields:
            if name in errors:
                continue
            if is_sequential_digits(self._value(name)):
                errors[name] = f"{FIELD_LABELS[name]} appears implausible."

    def _validate_personal(self, errors: Dict[str, str]) -> Optional[PersonalStep]:
        email = self._value("email")
        if "email" not in errors and not _EMAIL_RE.match(email):
            errors["email"] = "Please enter a valid email address."

        dob = self._value("dob")
        if "dob" not in errors:
            try:
                born = date.fromisoformat(dob)
            except ValueError:
                errors["dob"] = "Date of birth must be in YYYY-MM-DD format."
            else:
                if born >= self._today():
                    errors["dob"] = "Date of birth must be in the past."

        phone = self._value("phone")
        if "phone" not in errors and len(_NON_DIGIT_RE.sub("", phone)) < 10:
            errors["phone"] = "Please enter a valid, active phone number."

        for name in ("ssn", "ein"):
            value = self._value(name)
            if value and not _NINE_DIGITS_RE.match(_NON_DIGIT_RE.sub("", value)):
                errors[name] = f"{FIELD_LABELS[name]} must contain 9 digits."

        self._check_placeholders(errors, _fields_in(Step.PERSONAL, PLACEHOLDER_FIELDS))
        self._check_sequences(errors, _fields_in(Step.PERSONAL, SEQUENTIAL_FIELDS))

        if errors:
            return None
        return PersonalStep(
            full_name=self._value("fullName"),
            dob=dob,
            phone=phone,
            email=email,
            address=self._value("address"),
            ssn=self._value("ssn"),
            ein=self._value("ein"),
        )

    def _validate_banking(self, errors: Dict[str, str]) -> Optional[BankingStep]:
        routing = self._value("routingNumber")
        if "routingNumber" not in errors and not _ROUTING_RE.match(routing):
            errors["routingNumber"] = "Routing number must be exactly 9 digits."

        account = self._value("accountNumber")
        if "accountNumber" not in errors and not _ACCOUNT_RE.match(account):
            errors["accountNumber"] = "Account number must be 4 to 17 digits."

        self._check_sequences(errors, _fields_in(Step.BANKING, SEQUENTIAL_FIELDS))

        if errors:
            return None
        return BankingStep(
            bank_name=self._value("bankName"),
            routing_number=routing,
            account_name=self._value("accountName"),
            account_number=account,
        )

    def _validate_certify(self, errors: Dict[str, str]) -> Optional[CertifyStep]:
        if self.draft.get("certification") is not True:
            errors["certification"] = "You must certify that the information is accurate."

        personal = self._validated.get(Step.PERSONAL)
        if personal is None:
            errors.setdefault("fullName", "Personal details must be completed first.")
        elif "signature" not in errors and not signature_matches(
            self._value("signature"), personal.full_name
        ):
            errors["signature"] = (
                "Signature must match your full legal name exactly: "
                f"\"{personal.full_name}\"."
            )

        if errors:
            return None
        return CertifyStep(
            signature=self._value("signature"),
            narrative=self._value("narrative"),
        )

    # ------------------------------------------------------------------
    # submission
    # ------------------------------------------------------------------

    def _assemble(self) -> ValidatedApplication:
        for step in (Step.PROGRAM, Step.PERSONAL, Step.BANKING, Step.CERTIFY):
            if step not in self._validated:
                raise ValueError(f"Step {step.name} has not been validated")
        return ValidatedApplication(
            program=self._validated[Step.PROGRAM],
            personal=self._validated[Step.PERSONAL],
            banking=self._validated[Step.BANKING],
            certify=self._validated[Step.CERTIFY],
        )

    def submit(self) -> SubmissionResult:
        """Certify, run the advisory duplicate check and submit.

        Raises:
            ValueError: Not on the certify step, or already submitting.
            FormValidationError: The certify step has errors.
            DuplicateSubmission: A local record for this grant exists, or
                the server reported a duplicate.
            SubmissionRejected: The server refused the application.
            NetworkUnreachable / InternalError: Server unavailable and the
                offline fallback is disabled.
        """
        if self.step != Step.CERTIFY:
            raise ValueError("Applications can only be submitted from the certify step")
        if self.is_submitting:
            raise ValueError("A submission is already in progress")

        self.submit_error = None
        errors = self.validate_step(Step.CERTIFY)
        if errors:
            raise FormValidationError(errors)
        application = self._assemble()
        grant = application.program.grant

        try:
            if self.store.has_application_titled(grant.title):
                raise DuplicateSubmission(
                    "Duplicate Application: You have already submitted an "
                    f"application for {grant.title}."
                )

            self.is_submitting = True
            outcome = SubmissionOutcome.SUBMITTED
            server_reference = None
            try:
                if self.client is None:
                    raise NetworkUnreachable()
                server_reference = self.client.submit(application.to_payload())
            except (NetworkUnreachable, InternalError) as e:
                if not self.offline_fallback:
                    raise
                logger.warning(
                    "Submission endpoint unavailable (%s); recording %s locally",
                    e.message,
                    grant.id,
                )
                outcome = SubmissionOutcome.RECORDED_OFFLINE
        except SubmissionError as e:
            self.submit_error = e.message
            raise
        finally:
            self.is_submitting = False

        record = DisplayApplicationRecord(
            id=generate_reference_id(grant),
            title=grant.title,
            status="Pending Review",
            date=self._today().strftime("%m/%d/%Y"),
            grant_type=classify_grant_type(grant.category),
            grant_id=grant.id,
            server_reference=server_reference,
            offline=outcome is SubmissionOutcome.RECORDED_OFFLINE,
        )
        if not record.offline and self.store.discard_offline(grant.title):
            logger.info("Replaced offline record for %s after resubmission", grant.id)
        self.store.add_application(record)

        self.step = Step.SUBMITTED
        self.draft = empty_draft()
        self._validated = {}
        self.errors = {}
        return SubmissionResult(outcome, record, server_reference)
