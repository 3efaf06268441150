"""Hash-route resolution for the single-page frontend.

The SPA switches pages on ``window.location.hash``; anything unrecognised
falls back to the home route.
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qsl

HOME = "#/"

ROUTES = (
    "#/",
    "#/about",
    "#/grants",
    "#/apply",
    "#/resources",
    "#/contact",
    "#/refunds",
    "#/eligibility",
    "#/login",
    "#/dashboard",
    "#/visionlab",
    "#/vprofile",
)


@dataclass(frozen=True)
class Route:
    path: str
    params: Dict[str, str] = field(default_factory=dict)


def resolve(hash_value: str) -> Route:
    """Resolve ``#/apply?preselectedGrant=x`` style hashes to a Route."""
    raw = (hash_value or "").strip()
    if not raw.startswith("#"):
        raw = "#" + raw
    path, _, query = raw.partition("?")
    if path == "#":
        path = HOME
    if len(path) > 2 and path.endswith("/"):
        path = path.rstrip("/")
    if path not in ROUTES:
        return Route(HOME)
    return Route(path, dict(parse_qsl(query)))


def apply_route(grant_id: str) -> str:
    """Hash for the application form with a grant preselected."""
    return f"#/apply?preselectedGrant={grant_id}"
