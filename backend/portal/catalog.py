"""Static grant catalog.

The catalog is a fixed in-memory table loaded at import time. It backs the
grant listing endpoints, the application form (grant lookup and title for the
duplicate check) and the AI assistant's system context.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional

from portal.models.grant import FAQItem, Grant, ResourceItem

GRANTS: List[Grant] = [
    Grant(
        id="sba-biz-2026",
        title="SBA Small Business Assistance",
        category="Business Support",
        amount="$10,000 - $150,000",
        deadline="Open Enrollment",
        description=(
            "Federal assistance program for US small businesses. Provides capital "
            "for operational expansion, payroll support, and equipment purchase. "
            "Administered according to Small Business Administration guidelines."
        ),
        eligibility=["US-Based Business", "Under 500 Employees", "Valid Tax ID"],
    ),
    Grant(
        id="home-equity-24",
        title="Homeowner Repair & Equity Grant",
        category="Home Relief",
        amount="$5,000 - $50,000",
        deadline="April 15, 2026",
        description=(
            "Funding for primary residence homeowners to perform critical repairs, "
            "safety upgrades, and energy efficiency improvements. Helps stabilize "
            "property value and ensure safe housing."
        ),
        eligibility=["US Homeowner", "Primary Residence", "Property Tax Current"],
    ),
    Grant(
        id="personal-hardship",
        title="Personal Financial Hardship Relief",
        category="Personal Support",
        amount="$2,000 - $15,000",
        deadline="Rolling Basis",
        description=(
            "Direct financial aid for individuals and families experiencing economic "
            "hardship. Funds can be used for rent, utilities, food, and essential "
            "debt management."
        ),
        eligibility=["US Citizen/Resident", "Proof of Hardship", "18+ Years Old"],
    ),
    Grant(
        id="health-care-assist",
        title="Medical Assistance Program",
        category="Health",
        amount="$5,000 - $25,000",
        deadline="May 30, 2026",
        description=(
            "Supplementary funding to assist with high out-of-pocket medical "
            "expenses, prescription costs, and necessary medical procedures not "
            "fully covered by insurance."
        ),
        eligibility=["Income Qualified", "Documented Medical Need"],
    ),
]

FAQS: List[FAQItem] = [
    FAQItem(
        id="q1",
        question="How do I know if I qualify?",
        answer=(
            "Eligibility varies by program. Generally, you must be a US resident or "
            "citizen. Business grants require a registered business entity. Check "
            "specific grant details for more info."
        ),
    ),
    FAQItem(
        id="q2",
        question="Is there a cost to apply?",
        answer=(
            "No. The National Grant Assistance Portal never charges an application "
            "fee. All programs listed are publicly funded or subsidized."
        ),
    ),
    FAQItem(
        id="q3",
        question="How long does the review process take?",
        answer=(
            "Most applications are reviewed within 5-7 business days. You will be "
            "notified via email regarding your status."
        ),
    ),
]

RESOURCES: List[ResourceItem] = [
    ResourceItem(
        id="r1",
        title="Required Documents Checklist",
        description="A list of identification and financial documents needed for your application.",
        type="PDF",
        size="150 KB",
        url="#",
    ),
    ResourceItem(
        id="r2",
        title="SBA Eligibility Guide",
        description="Official criteria for Small Business Administration assistance.",
        type="PDF",
        size="1.2 MB",
        url="#",
    ),
    ResourceItem(
        id="r3",
        title="Income Verification Worksheet",
        description="Form to help you calculate and report household income accurately.",
        type="DOCX",
        size="45 KB",
        url="#",
    ),
]

_GRANTS_BY_ID: Dict[str, Grant] = {g.id: g for g in GRANTS}

SORT_MODES = ("deadline", "amount-high", "amount-low", "name")

_AMOUNT_RE = re.compile(r"\$(\d{1,3}(?:,\d{3})*)")
_DEADLINE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%m/%d/%Y", "%Y-%m-%d")


def get_grant(grant_id: str) -> Optional[Grant]:
    """Return the grant with ``grant_id`` or None."""
    return _GRANTS_BY_ID.get(grant_id)


def list_categories() -> List[str]:
    """Distinct categories in catalog order."""
    return list(dict.fromkeys(g.category for g in GRANTS))


def max_amount(amount: str) -> int:
    """Largest dollar figure in an amount string ("$10,000 - $50,000" -> 50000)."""
    matches = _AMOUNT_RE.findall(amount)
    if not matches:
        return 0
    return int(matches[-1].replace(",", ""))


def deadline_value(deadline: str) -> float:
    """Sortable timestamp for a deadline; rolling/open programs sort last."""
    if "Rolling" in deadline or "Open" in deadline:
        return float("inf")
    for fmt in _DEADLINE_FORMATS:
        try:
            return datetime.strptime(deadline.strip(), fmt).timestamp()
        except ValueError:
            continue
    return float("inf")


def filter_grants(
    search: Optional[str] = None,
    category: Optional[str] = None,
    grants: Optional[List[Grant]] = None,
) -> List[Grant]:
    """Case-insensitive title/description search plus exact category match."""
    term = (search or "").lower()
    result = []
    for grant in GRANTS if grants is None else grants:
        matches_search = term in grant.title.lower() or term in grant.description.lower()
        matches_category = grant.category == category if category else True
        if matches_search and matches_category:
            result.append(grant)
    return result


def sort_grants(grants: List[Grant], mode: str = "deadline") -> List[Grant]:
    """Sort grants by one of SORT_MODES.

    Raises:
        ValueError: If ``mode`` is not a known sort mode.
    """
    if mode == "deadline":
        return sorted(grants, key=lambda g: deadline_value(g.deadline))
    if mode == "amount-high":
        return sorted(grants, key=lambda g: max_amount(g.amount), reverse=True)
    if mode == "amount-low":
        return sorted(grants, key=lambda g: max_amount(g.amount))
    if mode == "name":
        return sorted(grants, key=lambda g: g.title.lower())
    raise ValueError(f"Invalid sort mode: {mode}. Valid: {list(SORT_MODES)}")


def search_catalog(
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort_by: str = "deadline",
) -> List[Grant]:
    """Filter then sort, as the grant listing page does."""
    return sort_grants(filter_grants(search, category), sort_by)
