"""Applicant dashboard aggregation.

Merges the locally recorded applications with a fixed set of sample records
and sorts them for display.  Stats are derived from the merged list every
time; nothing here is persisted.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from portal.models.application_models import (
    DashboardStats,
    DashboardView,
    DisplayApplicationRecord,
)

logger = logging.getLogger(__name__)

SORT_ORDERS = ("date", "status")

# Higher sorts first; anything unlisted ranks 0.
STATUS_PRIORITY: dict[str, int] = {
    "Approved": 4,
    "Under Review": 3,
    "Pending Review": 2,
    "Incomplete": 1,
}

UNDER_REVIEW_STATUSES = {"Under Review", "Pending Review"}

FUNDING_BASE = 15000
FUNDING_PER_APPROVAL = 5000

SAMPLE_RECORDS: List[DisplayApplicationRecord] = [
    DisplayApplicationRecord(
        id="SBA-2025-X992",
        title="SBA Small Business Assistance",
        grant_type="business",
        status="Approved",
        date="01/12/2025",
        is_static=True,
    ),
    DisplayApplicationRecord(
        id="HE-24-881",
        title="Homeowner Repair Grant",
        grant_type="home",
        status="Under Review",
        date="01/14/2025",
        is_static=True,
    ),
    DisplayApplicationRecord(
        id="PH-00-112",
        title="Personal Hardship Relief",
        grant_type="personal",
        status="Incomplete",
        date="01/10/2025",
        is_static=True,
    ),
]

_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%B %d, %Y", "%b %d, %Y", "%m/%d/%y")


def classify_grant_type(text: str) -> str:
    """Map a grant category or title to business/home/personal."""
    t = (text or "").lower()
    if "business" in t:
        return "business"
    if "home" in t:
        return "home"
    return "personal"


def parse_display_date(value: str) -> Optional[datetime]:
    """Loosely parse a display date string; None when unrecognised."""
    value = (value or "").strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _date_key(record: DisplayApplicationRecord) -> tuple[bool, float]:
    parsed = parse_display_date(record.date)
    if parsed is None:
        return (True, 0.0)
    return (False, -parsed.replace(tzinfo=None).timestamp())


def sort_records(
    records: Iterable[DisplayApplicationRecord], sort_order: str = "date"
) -> List[DisplayApplicationRecord]:
    """Sort newest-first by date, or by status rank.

    The sort is stable; equal keys keep their input order. Unparseable dates
    go last.

    Raises:
        ValueError: If ``sort_order`` is not "date" or "status".
    """
    if sort_order == "date":
        return sorted(records, key=_date_key)
    if sort_order == "status":
        return sorted(records, key=lambda r: -STATUS_PRIORITY.get(r.status, 0))
    raise ValueError(f"Invalid sort order: {sort_order}. Valid: {list(SORT_ORDERS)}")


def compute_stats(records: Iterable[DisplayApplicationRecord]) -> DashboardStats:
    """Approved and under-review counts plus the synthetic funding figure."""
    records = list(records)
    approved = sum(1 for r in records if r.status == "Approved")
    under_review = sum(1 for r in records if r.status in UNDER_REVIEW_STATUSES)
    return DashboardStats(
        approved_count=approved,
        under_review_count=under_review,
        total_funding=FUNDING_BASE + (approved - 1) * FUNDING_PER_APPROVAL,
    )


def build_dashboard(
    local_records: Iterable[DisplayApplicationRecord],
    sort_order: str = "date",
    has_vprofile: bool = False,
) -> DashboardView:
    """Merge local records ahead of the samples, sort, and derive stats."""
    merged = [*local_records, *SAMPLE_RECORDS]
    ordered = sort_records(merged, sort_order)
    return DashboardView(
        records=ordered,
        stats=compute_stats(ordered),
        sort_order=sort_order,
        has_vprofile=has_vprofile,
    )
