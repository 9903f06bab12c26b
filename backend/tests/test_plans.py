"""
Tests for the plan catalog.
"""
import pytest

from auditgate.core.errors import UnknownPlan
from auditgate.core.plans import (
    DEFAULT_PLANS,
    UNLIMITED,
    Plan,
    PlanCatalog,
    PlanLimits,
    humanize_seconds,
    is_unlimited,
)


def test_default_catalog_lookup(catalog):
    free = catalog.lookup("free")
    assert free.limits.max_audits_per_window == 1
    assert free.limits.window_seconds == 259200
    assert free.limits.max_sites == 1

    basic = catalog.lookup("basic")
    assert basic.limits.max_audits_per_window == 2
    assert basic.limits.window_seconds == 86400

    pro = catalog.lookup("pro")
    assert is_unlimited(pro.limits.max_audits_per_window)
    assert pro.limits.max_sites == 5
    assert pro.limits.max_pages_per_site == 20


def test_lookup_unknown_plan_raises(catalog):
    with pytest.raises(UnknownPlan) as exc_info:
        catalog.lookup("enterprise")
    assert exc_info.value.plan_id == "enterprise"
    assert catalog.get("enterprise") is None
    assert not catalog.contains("enterprise")


def test_free_plan_is_required():
    paid_only = Plan(id="pro", name="Pro", price=10, limits=PlanLimits(5, 20, UNLIMITED, 86400))
    with pytest.raises(ValueError):
        PlanCatalog([paid_only])


def test_duplicate_plan_ids_rejected():
    with pytest.raises(ValueError):
        PlanCatalog([DEFAULT_PLANS[0], DEFAULT_PLANS[0]])


def test_unlimited_sentinel_is_not_a_numeric_limit():
    assert is_unlimited(-1)
    assert not is_unlimited(0)
    assert not is_unlimited(5)


def test_describe_window():
    plan = Plan(id="basic", name="Basic", price=9.99, limits=PlanLimits(1, 5, 5, 259200))
    assert plan.describe_window() == "5 audits per 259200-second window (3 days)"

    single = Plan(id="free", name="Free", limits=PlanLimits(1, 5, 1, 3600))
    assert single.describe_window() == "1 audit per 3600-second window (1 hour)"


def test_describe_resource_window():
    limits = PlanLimits(1, 5, 5, 86400, max_audits_per_resource_per_window=2)
    plan = Plan(id="basic", name="Basic", price=9.99, limits=limits)
    assert plan.describe_resource_window() == "2 audits per page per 86400-second window (1 day)"


def test_default_basic_plan_caps_each_page(catalog):
    assert catalog.lookup("basic").limits.max_audits_per_resource_per_window == 2
    assert catalog.lookup("free").limits.max_audits_per_resource_per_window is None
    assert catalog.lookup("pro").limits.max_audits_per_resource_per_window is None


@pytest.mark.parametrize("seconds,expected", [
    (86400, "1 day"),
    (259200, "3 days"),
    (7200, "2 hours"),
    (180, "3 minutes"),
    (45, "45 seconds"),
    (90, "90 seconds"),
])
def test_humanize_seconds(seconds, expected):
    assert humanize_seconds(seconds) == expected
