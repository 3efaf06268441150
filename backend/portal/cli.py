"""Command-line client for the grant portal.

Usage:
    python -m portal.cli grants [--search TEXT] [--category NAME] [--sort MODE]
    python -m portal.cli apply draft.json [--route '#/apply?preselectedGrant=ID']
    python -m portal.cli dashboard [--sort date|status]
    python -m portal.cli profile profile.json
    python -m portal.cli vision "a sunrise over wheat fields" -o vision.mp4

``apply`` drives the same four-step form as the web app: each step is
validated in order and the first failing step's errors are printed.
Submitted records and the saved vProfile live in the local state file
(``PORTAL_STATE_PATH``).
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from portal import catalog, openai_provider
from portal.exceptions import SubmissionError
from portal.form_controller import (
    FIELD_LABELS,
    ApplicationFormController,
    FormValidationError,
    Step,
    SubmissionOutcome,
)
from portal.local_store import LocalStateStore, ProfileInvalid
from portal.models.application_models import VProfile
from portal.services.dashboard_service import SORT_ORDERS, build_dashboard
from portal.submission_client import SubmissionClient
from portal.vision_service import OpenAIVideoProvider, VisionError, generate_video

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000"
DEFAULT_STATE_PATH = "~/.grant_portal/state.json"


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def _print_errors(errors: Dict[str, str]) -> None:
    for name, message in errors.items():
        print(f"  - {FIELD_LABELS.get(name, name)}: {message}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_grants(args: argparse.Namespace) -> int:
    try:
        grants = catalog.search_catalog(args.search, args.category, args.sort)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if not grants:
        print("No grants match your filters.")
        return 0
    for grant in grants:
        print(f"{grant.id:<20} {grant.title}")
        print(f"{'':<20} {grant.category} | {grant.amount} | Deadline: {grant.deadline}")
    print(f"\n{len(grants)} grant(s)")
    return 0


def cmd_apply(args: argparse.Namespace) -> int:
    try:
        draft = _load_json(args.draft)
    except (OSError, ValueError) as e:
        print(f"Error: cannot read draft: {e}", file=sys.stderr)
        return 2
    # Accept the wire name for the routing number too
    if "branch" in draft and "routingNumber" not in draft:
        draft["routingNumber"] = draft.pop("branch")

    store = LocalStateStore(args.state)
    with SubmissionClient(args.api_url, timeout=args.timeout) as client:
        controller = ApplicationFormController(
            store, client=client, offline_fallback=not args.no_offline_fallback
        )
        controller.start(route_hash=args.route)
        try:
            controller.update(**{k: v for k, v in draft.items() if v is not None})
        except KeyError as e:
            print(f"Error: {e.args[0]}", file=sys.stderr)
            return 2

        while controller.step < Step.CERTIFY:
            if not controller.next_step():
                print(f"Step {controller.step.name.title()} has errors:", file=sys.stderr)
                _print_errors(controller.errors)
                return 1

        try:
            result = controller.submit()
        except FormValidationError as e:
            print("Certification has errors:", file=sys.stderr)
            _print_errors(e.errors)
            return 1
        except SubmissionError as e:
            print(f"Submission failed: {e.message}", file=sys.stderr)
            return 1

    record = result.record
    if result.outcome is SubmissionOutcome.RECORDED_OFFLINE:
        print(
            f"Server unreachable: application {record.id} for {record.title} was "
            "recorded locally only and has NOT been received by the portal."
        )
    else:
        print(f"Application {record.id} submitted for {record.title}.")
        print(f"Server reference: {result.server_reference}")
    return 0


def cmd_dashboard(args: argparse.Namespace) -> int:
    store = LocalStateStore(args.state)
    view = build_dashboard(
        store.list_applications(), args.sort, has_vprofile=store.has_profile()
    )

    if not view.has_vprofile:
        print("Tip: save a vProfile to pre-fill future applications.\n")
    for record in view.records:
        flags = " (offline)" if record.offline else ""
        print(f"{record.id:<16} {record.date:<11} {record.status:<15} {record.title}{flags}")

    stats = view.stats
    print(
        f"\nApproved: {stats.approved_count}  "
        f"Under review: {stats.under_review_count}  "
        f"Total funding: ${stats.total_funding:,}"
    )
    return 0


def cmd_profile(args: argparse.Namespace) -> int:
    store = LocalStateStore(args.state)
    if args.profile is None:
        profile = store.get_profile()
        if profile is None:
            print("No vProfile saved.")
            return 0
        print(json.dumps(profile.model_dump(by_alias=True), indent=2))
        return 0

    try:
        profile = VProfile.model_validate(_load_json(args.profile))
    except (OSError, ValueError, ValidationError) as e:
        print(f"Error: cannot read profile: {e}", file=sys.stderr)
        return 2
    try:
        store.save_profile(profile)
    except ProfileInvalid as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"vProfile saved for {profile.full_name}.")
    return 0


def make_video_provider() -> Optional[OpenAIVideoProvider]:
    client = openai_provider.get_openai_client()
    if client is None:
        return None
    return OpenAIVideoProvider(client)


def cmd_vision(args: argparse.Namespace) -> int:
    provider = make_video_provider()
    if provider is None:
        print(
            "Error: AI features are not configured "
            "(set OPENAI_API_KEY or AZURE_OPENAI_ENDPOINT/AZURE_OPENAI_KEY).",
            file=sys.stderr,
        )
        return 2

    print("Generating video; this usually takes a few minutes...")
    try:
        job = asyncio.run(generate_video(provider, args.prompt, args.aspect_ratio))
    except VisionError as e:
        print(f"Video generation failed: {e}", file=sys.stderr)
        return 1

    output = Path(args.output).expanduser()
    output.write_bytes(provider.download(job.video_id))
    print(f"Video {job.video_id} saved to {output}")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grant-portal",
        description="National Grant Assistance Portal client",
    )
    parser.add_argument(
        "--state",
        default=os.getenv("PORTAL_STATE_PATH", DEFAULT_STATE_PATH),
        help="Local state file (default: $PORTAL_STATE_PATH or %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("grants", help="List grant programs")
    p.add_argument("--search", help="Text to find in title or description")
    p.add_argument("--category", help="Exact category name")
    p.add_argument("--sort", default="deadline", choices=catalog.SORT_MODES)
    p.set_defaults(func=cmd_grants)

    p = sub.add_parser("apply", help="Submit an application from a JSON draft")
    p.add_argument("draft", help="JSON file with form fields (camelCase)")
    p.add_argument("--route", help="Hash route, e.g. '#/apply?preselectedGrant=sba-biz-2026'")
    p.add_argument(
        "--api-url",
        default=os.getenv("PORTAL_API_URL", DEFAULT_API_URL),
        help="Portal server base URL (default: $PORTAL_API_URL or %(default)s)",
    )
    p.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    p.add_argument(
        "--no-offline-fallback",
        action="store_true",
        help="Fail instead of recording locally when the server is unreachable",
    )
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("dashboard", help="Show submitted applications and stats")
    p.add_argument("--sort", default="date", choices=SORT_ORDERS)
    p.set_defaults(func=cmd_dashboard)

    p = sub.add_parser("profile", help="Show or save the vProfile")
    p.add_argument("profile", nargs="?", help="JSON file with vProfile fields")
    p.set_defaults(func=cmd_profile)

    p = sub.add_parser("vision", help="Generate a short video from a prompt")
    p.add_argument("prompt", help="Description of the scene")
    p.add_argument("--aspect-ratio", default="16:9", choices=("16:9", "9:16"))
    p.add_argument("-o", "--output", default="vision.mp4", help="MP4 file to write")
    p.set_defaults(func=cmd_vision)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args.state = str(Path(args.state).expanduser())
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
