"""
Unit Tests for the Application Form Controller

Tests the four-step form state machine:
- Step navigation and per-step validation
- Client-side placeholder and sequence detectors
- Invalidation of validated steps when fields change
- Submission outcomes: server success, explicit rejections, offline fallback
- The advisory local duplicate check

The submission endpoint is replaced by an httpx.MockTransport.

Usage:
    cd backend && pytest tests/test_form_controller.py -v
"""

import json
import os
import sys
from datetime import date
from typing import Any, Dict, List

import httpx
import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from portal.exceptions import DuplicateSubmission, NetworkUnreachable
from portal.form_controller import (
    ApplicationFormController,
    FormValidationError,
    Step,
    SubmissionOutcome,
    generate_reference_id,
)
from portal.catalog import get_grant
from portal.local_store import LocalStateStore
from portal.models.application_models import VProfile
from portal.submission_client import SubmissionClient, SubmissionRejected


TODAY = date(2026, 1, 15)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_draft(**overrides: Any) -> Dict[str, Any]:
    """Factory for a complete, valid form draft."""
    draft = {
        "grantId": "sba-biz-2026",
        "fullName": "Alex Mercer",
        "dob": "1985-03-12",
        "phone": "(217) 555-0142",
        "email": "alex@x.com",
        "address": "42 Oak Avenue, Springfield, IL",
        "ssn": "412-55-7890",
        "bankName": "First Federal Bank",
        "routingNumber": "021000021",
        "accountName": "Alex Mercer",
        "accountNumber": "4455667788",
        "certification": True,
        "signature": "Alex Mercer",
    }
    draft.update(overrides)
    return draft


def make_client(status_code: int = 200, body: Dict[str, Any] = None, requests: List = None):
    """SubmissionClient whose transport answers every POST with one response."""
    if body is None:
        body = {"success": True, "message": "ok", "referenceId": "ref-1"}

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(json.loads(request.content))
        return httpx.Response(status_code, json=body)

    return SubmissionClient("http://portal.local", transport=httpx.MockTransport(handler))


def make_unreachable_client():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return SubmissionClient("http://portal.local", transport=httpx.MockTransport(handler))


def advance_to_certify(controller: ApplicationFormController) -> None:
    for _ in range(3):
        assert controller.next_step(), controller.errors
    assert controller.step == Step.CERTIFY


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store(tmp_path):
    return LocalStateStore(tmp_path / "state.json")


@pytest.fixture
def controller(store):
    ctrl = ApplicationFormController(store, client=make_client(), today=lambda: TODAY)
    ctrl.start()
    return ctrl


# ============================================================================
# NAVIGATION
# ============================================================================

class TestNavigation:
    """Forward moves validate; backward moves do not."""

    def test_starts_on_program_step_with_empty_draft(self, controller):
        assert controller.step == Step.PROGRAM
        assert controller.draft["grantId"] == ""
        assert controller.draft["certification"] is False

    def test_cannot_advance_without_grant(self, controller):
        assert controller.next_step() is False
        assert controller.step == Step.PROGRAM
        assert "grantId" in controller.errors

    def test_unknown_grant_is_rejected(self, controller):
        controller.set_field("grantId", "no-such-grant")
        assert controller.next_step() is False
        assert "grantId" in controller.errors

    def test_full_walk_reaches_certify(self, controller):
        controller.update(**make_draft())
        advance_to_certify(controller)

    def test_previous_step_is_always_allowed(self, controller):
        controller.update(**make_draft())
        controller.next_step()
        controller.set_field("email", "broken")
        assert controller.previous_step() is True
        assert controller.step == Step.PROGRAM

    def test_previous_step_from_first_step_is_noop(self, controller):
        assert controller.previous_step() is False
        assert controller.step == Step.PROGRAM

    def test_unknown_field_raises(self, controller):
        with pytest.raises(KeyError):
            controller.set_field("favouriteColour", "blue")

    def test_route_preselects_grant(self, store):
        ctrl = ApplicationFormController(store, today=lambda: TODAY)
        ctrl.start(route_hash="#/apply?preselectedGrant=home-equity-24")
        assert ctrl.draft["grantId"] == "home-equity-24"

    def test_profile_prefills_personal_fields(self, store):
        profile = VProfile(
            first_name="Dana",
            last_name="Whitfield",
            email="dana@whitfield.co",
            phone="(312) 555-0199",
            address="9 Lake Shore Dr",
            ein="12-3456780",
        )
        ctrl = ApplicationFormController(store, today=lambda: TODAY)
        ctrl.start(profile=profile)

        assert ctrl.draft["fullName"] == "Dana Whitfield"
        assert ctrl.draft["email"] == "dana@whitfield.co"
        assert ctrl.draft["ein"] == "12-3456780"


# ============================================================================
# STEP VALIDATION
# ============================================================================

class TestPersonalValidation:
    """Personal details: format checks plus placeholder detectors."""

    def _errors_for(self, controller, **overrides):
        controller.update(**make_draft(**overrides))
        controller.next_step()
        return controller.validate_step(Step.PERSONAL)

    def test_valid_personal_step_passes(self, controller):
        assert self._errors_for(controller) == {}

    def test_invalid_email(self, controller):
        assert "email" in self._errors_for(controller, email="alex-at-x")

    def test_future_date_of_birth(self, controller):
        assert "dob" in self._errors_for(controller, dob="2030-01-01")

    def test_malformed_date_of_birth(self, controller):
        assert "dob" in self._errors_for(controller, dob="12/03/1985")

    def test_short_phone(self, controller):
        assert "phone" in self._errors_for(controller, phone="555-0142")

    def test_placeholder_name(self, controller):
        errors = self._errors_for(controller, fullName="John Doe")
        assert "placeholder" in errors["fullName"]

    def test_placeholder_address(self, controller):
        assert "address" in self._errors_for(controller, address="123 Main St")

    def test_sequential_ssn(self, controller):
        assert "ssn" in self._errors_for(controller, ssn="123-45-6789")

    def test_ssn_is_optional(self, controller):
        assert self._errors_for(controller, ssn="") == {}


class TestBankingValidation:
    """Routing and account number formats plus sequence detection."""

    def _errors_for(self, controller, **overrides):
        controller.update(**make_draft(**overrides))
        controller.next_step()
        controller.next_step()
        return controller.validate_step(Step.BANKING)

    def test_valid_banking_step_passes(self, controller):
        assert self._errors_for(controller) == {}

    def test_routing_number_must_be_nine_digits(self, controller):
        assert "routingNumber" in self._errors_for(controller, routingNumber="02100002")

    def test_account_number_must_be_digits(self, controller):
        assert "accountNumber" in self._errors_for(controller, accountNumber="44-55")

    def test_all_zero_routing_number(self, controller):
        assert "routingNumber" in self._errors_for(controller, routingNumber="000000000")

    def test_descending_account_number(self, controller):
        assert "accountNumber" in self._errors_for(controller, accountNumber="987654321")


class TestCertification:
    """Certify step: checkbox and signature match."""

    def test_signature_must_match_validated_name(self, controller):
        controller.update(**make_draft(signature="Al Mercer"))
        advance_to_certify(controller)

        with pytest.raises(FormValidationError) as exc_info:
            controller.submit()
        assert "Alex Mercer" in exc_info.value.errors["signature"]
        assert controller.step == Step.CERTIFY

    def test_certification_must_be_checked(self, controller):
        controller.update(**make_draft(certification=False))
        advance_to_certify(controller)

        with pytest.raises(FormValidationError) as exc_info:
            controller.submit()
        assert "certification" in exc_info.value.errors

    def test_editing_name_invalidates_later_steps(self, controller):
        controller.update(**make_draft())
        advance_to_certify(controller)

        controller.set_field("fullName", "Alexandra Mercer")

        with pytest.raises(FormValidationError) as exc_info:
            controller.submit()
        assert "fullName" in exc_info.value.errors

    def test_submit_only_from_certify_step(self, controller):
        controller.update(**make_draft())
        with pytest.raises(ValueError):
            controller.submit()


# ============================================================================
# SUBMISSION
# ============================================================================

class TestSubmission:
    """Outcomes of submit() with different server behaviours."""

    def test_successful_submission_records_locally(self, store):
        sent = []
        ctrl = ApplicationFormController(
            store, client=make_client(requests=sent), today=lambda: TODAY
        )
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)

        result = ctrl.submit()

        assert result.outcome is SubmissionOutcome.SUBMITTED
        assert result.server_reference == "ref-1"
        assert ctrl.step == Step.SUBMITTED
        assert ctrl.draft["fullName"] == ""

        records = store.list_applications()
        assert len(records) == 1
        record = records[0]
        assert record.title == "SBA Small Business Assistance"
        assert record.status == "Pending Review"
        assert record.date == "01/15/2026"
        assert record.grant_type == "business"
        assert record.offline is False

    def test_payload_uses_branch_for_routing_number(self, store):
        sent = []
        ctrl = ApplicationFormController(
            store, client=make_client(requests=sent), today=lambda: TODAY
        )
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)
        ctrl.submit()

        assert sent[0]["branch"] == "021000021"
        assert "routingNumber" not in sent[0]
        assert sent[0]["certification"] is True

    def test_server_duplicate_propagates_without_local_record(self, store):
        client = make_client(409, {"success": False, "message": "Duplicate Application: exists"})
        ctrl = ApplicationFormController(store, client=client, today=lambda: TODAY)
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)

        with pytest.raises(DuplicateSubmission):
            ctrl.submit()
        assert ctrl.submit_error == "Duplicate Application: exists"
        assert store.list_applications() == []
        assert ctrl.step == Step.CERTIFY

    def test_server_rejection_propagates(self, store):
        client = make_client(400, {"success": False, "message": "Submission flagged"})
        ctrl = ApplicationFormController(store, client=client, today=lambda: TODAY)
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)

        with pytest.raises(SubmissionRejected):
            ctrl.submit()
        assert store.list_applications() == []
        assert ctrl.is_submitting is False

    def test_unreachable_server_records_offline(self, store):
        ctrl = ApplicationFormController(
            store, client=make_unreachable_client(), today=lambda: TODAY
        )
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)

        result = ctrl.submit()

        assert result.outcome is SubmissionOutcome.RECORDED_OFFLINE
        assert result.server_reference is None
        assert store.list_applications()[0].offline is True

    def test_server_error_records_offline(self, store):
        client = make_client(500, {"success": False, "message": "Internal Server Error"})
        ctrl = ApplicationFormController(store, client=client, today=lambda: TODAY)
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)

        assert ctrl.submit().outcome is SubmissionOutcome.RECORDED_OFFLINE

    def test_offline_fallback_can_be_disabled(self, store):
        ctrl = ApplicationFormController(
            store,
            client=make_unreachable_client(),
            offline_fallback=False,
            today=lambda: TODAY,
        )
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)

        with pytest.raises(NetworkUnreachable):
            ctrl.submit()
        assert store.list_applications() == []

    def test_local_duplicate_blocks_second_submission(self, store):
        for expected in (None, DuplicateSubmission):
            ctrl = ApplicationFormController(store, client=make_client(), today=lambda: TODAY)
            ctrl.start()
            ctrl.update(**make_draft())
            advance_to_certify(ctrl)
            if expected is None:
                ctrl.submit()
            else:
                with pytest.raises(expected) as exc_info:
                    ctrl.submit()
                assert "SBA Small Business Assistance" in exc_info.value.message

        assert len(store.list_applications()) == 1

    def test_offline_record_does_not_block_resubmission(self, store):
        first = ApplicationFormController(
            store, client=make_unreachable_client(), today=lambda: TODAY
        )
        first.start()
        first.update(**make_draft())
        advance_to_certify(first)
        assert first.submit().outcome is SubmissionOutcome.RECORDED_OFFLINE

        sent = []
        retry = ApplicationFormController(
            store, client=make_client(requests=sent), today=lambda: TODAY
        )
        retry.start()
        retry.update(**make_draft())
        advance_to_certify(retry)
        result = retry.submit()

        assert result.outcome is SubmissionOutcome.SUBMITTED
        assert len(sent) == 1
        records = store.list_applications()
        assert len(records) == 1
        assert records[0].offline is False
        assert records[0].server_reference == "ref-1"

    def test_navigation_and_resubmit_refused_while_in_flight(self, store):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["submitting"] = ctrl.is_submitting
            seen["previous"] = ctrl.previous_step()
            seen["next"] = ctrl.next_step()
            with pytest.raises(ValueError, match="already in progress"):
                ctrl.submit()
            return httpx.Response(
                200, json={"success": True, "message": "ok", "referenceId": "ref-1"}
            )

        client = SubmissionClient("http://portal.local", transport=httpx.MockTransport(handler))
        ctrl = ApplicationFormController(store, client=client, today=lambda: TODAY)
        ctrl.start()
        ctrl.update(**make_draft())
        advance_to_certify(ctrl)

        result = ctrl.submit()

        assert seen == {"submitting": True, "previous": False, "next": False}
        assert result.outcome is SubmissionOutcome.SUBMITTED
        assert ctrl.is_submitting is False
        assert len(store.list_applications()) == 1

    def test_field_edits_after_submission_are_refused(self, controller):
        controller.update(**make_draft())
        advance_to_certify(controller)
        controller.submit()

        with pytest.raises(ValueError):
            controller.set_field("fullName", "Someone")


class TestReferenceId:

    def test_reference_uses_grant_prefix_and_year(self):
        from datetime import datetime

        ref = generate_reference_id(get_grant("home-equity-24"), datetime(2026, 2, 1))
        prefix, year, suffix = ref.split("-")
        assert prefix == "HOME"
        assert year == "2026"
        assert len(suffix) == 4
