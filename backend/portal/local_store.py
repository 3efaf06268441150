"""Client-side application state store.

Holds what the browser build kept in ambient local storage: the list of
submitted application display records and the saved vProfile.  The store is
an explicit object handed to the form controller and the dashboard, backed by
one JSON document with a schema version::

    {"schema_version": 1, "user_applications": [...], "vprofile": {...}}

Writes are read-modify-write of the whole document and are not atomic
across processes; two clients appending at once can lose one update.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from portal.models.application_models import DisplayApplicationRecord, VProfile

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

APPLICATIONS_KEY = "user_applications"
PROFILE_KEY = "vprofile"

_PLACEHOLDER_NAME_RE = re.compile(r"^test$|^123$|^fake$", re.IGNORECASE)


class ProfileInvalid(ValueError):
    """The vProfile failed its save-time checks."""


def validate_profile(profile: VProfile) -> Optional[str]:
    """Return an error message for an unusable profile, or None."""
    if _PLACEHOLDER_NAME_RE.search(profile.first_name) or _PLACEHOLDER_NAME_RE.search(
        profile.last_name
    ):
        return "Please enter a valid legal name."
    if "555-555" in profile.phone or len(profile.phone) < 10:
        return "Please enter a valid, active phone number."
    return None


class LocalStateStore:
    """JSON-file repository for client-local portal state."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    # ------------------------------------------------------------------
    # document I/O
    # ------------------------------------------------------------------

    def _empty(self) -> Dict[str, Any]:
        return {"schema_version": SCHEMA_VERSION, APPLICATIONS_KEY: [], PROFILE_KEY: None}

    def load(self) -> Dict[str, Any]:
        """Read the state document, upgrading unversioned documents."""
        if not self.path.exists():
            return self._empty()
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to parse local state %s: %s", self.path, e)
            return self._empty()
        if not isinstance(doc, dict):
            logger.error("Local state %s is not an object; ignoring it", self.path)
            return self._empty()

        version = doc.get("schema_version", 0)
        if version > SCHEMA_VERSION:
            raise RuntimeError(
                f"Local state schema {version} is newer than supported ({SCHEMA_VERSION})"
            )
        if version == 0:
            doc = {
                "schema_version": SCHEMA_VERSION,
                APPLICATIONS_KEY: doc.get(APPLICATIONS_KEY) or [],
                PROFILE_KEY: doc.get(PROFILE_KEY),
            }
        doc.setdefault(APPLICATIONS_KEY, [])
        doc.setdefault(PROFILE_KEY, None)
        return doc

    def save(self, doc: Dict[str, Any]) -> None:
        doc["schema_version"] = SCHEMA_VERSION
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(doc, indent=2), encoding="utf-8")

    # ------------------------------------------------------------------
    # applications
    # ------------------------------------------------------------------

    def list_applications(self) -> List[DisplayApplicationRecord]:
        records = []
        for raw in self.load()[APPLICATIONS_KEY]:
            try:
                records.append(DisplayApplicationRecord.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed stored application: %r", raw)
        return records

    def add_application(self, record: DisplayApplicationRecord) -> None:
        """Append a record (read-modify-write of the whole list)."""
        doc = self.load()
        doc[APPLICATIONS_KEY].append(record.model_dump(by_alias=True))
        self.save(doc)

    def has_application_titled(self, title: str) -> bool:
        """True if a record the server received carries this grant title.

        Records kept only offline never reached the portal and do not count.
        """
        return any(
            r.title == title and not r.offline for r in self.list_applications()
        )

    def discard_offline(self, title: str) -> int:
        """Drop offline-only records for a grant title; return how many."""
        doc = self.load()
        kept, dropped = [], 0
        for raw in doc[APPLICATIONS_KEY]:
            if isinstance(raw, dict) and raw.get("title") == title and raw.get("offline"):
                dropped += 1
            else:
                kept.append(raw)
        if dropped:
            doc[APPLICATIONS_KEY] = kept
            self.save(doc)
        return dropped

    # ------------------------------------------------------------------
    # vProfile
    # ------------------------------------------------------------------

    def get_profile(self) -> Optional[VProfile]:
        raw = self.load()[PROFILE_KEY]
        if not raw:
            return None
        try:
            return VProfile.model_validate(raw)
        except ValidationError:
            logger.warning("Stored vProfile is malformed; ignoring it")
            return None

    def has_profile(self) -> bool:
        return self.get_profile() is not None

    def save_profile(self, profile: VProfile) -> None:
        """Validate and store the vProfile.

        Raises:
            ProfileInvalid: If the name or phone is a placeholder.
        """
        if error := validate_profile(profile):
            raise ProfileInvalid(error)
        doc = self.load()
        doc[PROFILE_KEY] = profile.model_dump(by_alias=True)
        self.save(doc)
