"""
Plan catalog for the paywall.
Defines audit, site and page limits per plan.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .errors import UnknownPlan


# -1 means "no ceiling". Never compare it numerically, use is_unlimited().
UNLIMITED = -1

FREE_PLAN_ID = "free"


def is_unlimited(value: int) -> bool:
    return value == UNLIMITED


@dataclass(frozen=True)
class PlanLimits:
    """Limits for a plan."""
    max_sites: int
    max_pages_per_site: int
    max_audits_per_window: int
    window_seconds: int
    # Per audited page URL within the same window. None means no per-page cap.
    max_audits_per_resource_per_window: Optional[int] = None


@dataclass(frozen=True)
class Plan:
    """A purchasable (or free) plan."""
    id: str
    name: str
    limits: PlanLimits
    price: float = 0.0
    description: str = ""
    features: List[str] = field(default_factory=list)

    @property
    def is_free(self) -> bool:
        return self.price == 0

    def describe_window(self) -> str:
        """Human-readable audit window, e.g. '2 audits per 86400-second window (1 day)'."""
        limit = self.limits.max_audits_per_window
        if is_unlimited(limit):
            return "unlimited audits"
        noun = "audit" if limit == 1 else "audits"
        return f"{limit} {noun} per {self.limits.window_seconds}-second window ({humanize_seconds(self.limits.window_seconds)})"

    def describe_resource_window(self) -> str:
        limit = self.limits.max_audits_per_resource_per_window
        if limit is None or is_unlimited(limit):
            return "unlimited audits per page"
        noun = "audit" if limit == 1 else "audits"
        return f"{limit} {noun} per page per {self.limits.window_seconds}-second window ({humanize_seconds(self.limits.window_seconds)})"


def humanize_seconds(seconds: int) -> str:
    """Render a window length in the largest whole unit."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size and seconds % size == 0:
            count = seconds // size
            return f"{count} {unit}" + ("" if count == 1 else "s")
    return f"{seconds} second" + ("" if seconds == 1 else "s")


# Default catalog
# - free: 1 audit every 3 days, 1 site with up to 5 pages
# - basic: 2 audits per day and per page, 1 site with up to 5 pages
# - pro: unlimited audits, 5 sites with up to 20 pages
DEFAULT_PLANS = [
    Plan(
        id=FREE_PLAN_ID,
        name="Free Tier",
        price=0.0,
        description="Perfect for getting started with basic SEO analysis",
        features=[
            "1 page audit every 3 days",
            "1 site with up to 5 pages",
            "Basic SEO metrics",
        ],
        limits=PlanLimits(
            max_sites=1,
            max_pages_per_site=5,
            max_audits_per_window=1,
            window_seconds=3 * 86400,
        ),
    ),
    Plan(
        id="basic",
        name="Basic Plan",
        price=9.99,
        description="Perfect for small websites and personal projects",
        features=[
            "2 audits per day",
            "2 audits per page per day",
            "1 site with up to 5 pages",
            "Historical data & charts",
        ],
        limits=PlanLimits(
            max_sites=1,
            max_pages_per_site=5,
            max_audits_per_window=2,
            window_seconds=86400,
            max_audits_per_resource_per_window=2,
        ),
    ),
    Plan(
        id="pro",
        name="Pro Plan",
        price=49.99,
        description="Ideal for growing businesses and agencies",
        features=[
            "Unlimited page audits",
            "5 sites with up to 20 pages",
            "Priority support",
        ],
        limits=PlanLimits(
            max_sites=5,
            max_pages_per_site=20,
            max_audits_per_window=UNLIMITED,
            window_seconds=86400,
        ),
    ),
]


class PlanCatalog:
    """Immutable lookup table from plan id to Plan."""

    def __init__(self, plans: Iterable[Plan] = DEFAULT_PLANS, free_plan_id: str = FREE_PLAN_ID):
        self._plans: Dict[str, Plan] = {}
        for plan in plans:
            if plan.id in self._plans:
                raise ValueError(f"Duplicate plan id in catalog: {plan.id}")
            self._plans[plan.id] = plan
        if free_plan_id not in self._plans:
            raise ValueError(f"Plan catalog must define the free plan '{free_plan_id}'")
        self.free_plan_id = free_plan_id

    def get(self, plan_id: str) -> Optional[Plan]:
        return self._plans.get(plan_id)

    def lookup(self, plan_id: str) -> Plan:
        """Get a plan or raise UnknownPlan."""
        plan = self._plans.get(plan_id)
        if plan is None:
            raise UnknownPlan(plan_id)
        return plan

    def contains(self, plan_id: str) -> bool:
        return plan_id in self._plans

    @property
    def free_plan(self) -> Plan:
        return self._plans[self.free_plan_id]

    def plans(self) -> List[Plan]:
        return list(self._plans.values())
