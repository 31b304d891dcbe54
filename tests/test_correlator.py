"""
Tests for the ResourceCorrelator module.
"""

from conftest import make_app, make_function, make_plan
from planaudit.core.correlator import ResourceCorrelator, correlate
from planaudit.core.models import ComputeApplication, HostingPlan


def _apps(records, subscription):
    return [ComputeApplication.from_record(r, subscription) for r in records]


def _plans(records, subscription):
    return [HostingPlan.from_record(r, subscription) for r in records]


class TestResourceCorrelator:
    """Tests for ResourceCorrelator class."""

    def test_counts_function_and_web_apps(self, subscription):
        """Test that occupancy separates function and web apps."""
        plans = _plans([make_plan("plan-a")], subscription)
        functions = _apps([make_function("f1", plan="plan-a")], subscription)
        webs = _apps(
            [make_app("w1", plan="plan-a"), make_app("w2", plan="plan-a")], subscription
        )

        occupancy = correlate(plans, functions, webs)
        entry = occupancy[plans[0].id]

        assert entry.function_app_count == 1
        assert entry.web_app_count == 2
        assert entry.total_count == 3
        assert not entry.is_empty

    def test_every_plan_has_an_entry(self, subscription):
        """Test that unmatched plans get a zero entry."""
        plans = _plans([make_plan("plan-a"), make_plan("plan-b")], subscription)
        webs = _apps([make_app("w1", plan="plan-a")], subscription)

        occupancy = correlate(plans, [], webs)

        assert set(occupancy) == {p.id for p in plans}
        assert occupancy[plans[1].id].is_empty

    def test_apps_without_plan_are_not_counted(self, subscription):
        """Test that apps with no plan reference are excluded from occupancy."""
        plans = _plans([make_plan("plan-a")], subscription)
        webs = _apps([make_app("w1", server_farm_id=None)], subscription)

        correlator = ResourceCorrelator(plans)
        occupancy = correlator.correlate([], webs)

        assert occupancy[plans[0].id].is_empty
        assert correlator.unattached(webs) == []

    def test_plan_name_match_is_case_sensitive(self, subscription):
        """Test that plan short names must match exactly."""
        plans = _plans([make_plan("Plan-A")], subscription)
        webs = _apps([make_app("w1", plan="plan-a")], subscription)

        occupancy = correlate(plans, [], webs)

        assert occupancy[plans[0].id].is_empty

    def test_resource_group_match_is_case_insensitive(self, subscription):
        """Test that resource group casing differences still match."""
        plans = _plans([make_plan("plan-a", resource_group="RG-Web")], subscription)
        webs = _apps([make_app("w1", resource_group="rg-web", plan="plan-a")], subscription)

        occupancy = correlate(plans, [], webs)

        assert occupancy[plans[0].id].web_app_count == 1

    def test_same_plan_name_in_two_resource_groups(self, subscription):
        """Test that identically named plans are not cross-attributed."""
        plans = _plans(
            [
                make_plan("shared-plan", resource_group="rg-one"),
                make_plan("shared-plan", resource_group="rg-two"),
            ],
            subscription,
        )
        webs = _apps(
            [make_app("w1", resource_group="rg-one", plan="shared-plan")], subscription
        )

        occupancy = correlate(plans, [], webs)

        assert occupancy[plans[0].id].web_app_count == 1
        assert occupancy[plans[1].id].is_empty

    def test_bare_plan_name_uses_app_resource_group(self, subscription):
        """Test that a short-name reference is scoped to the app's resource group."""
        plans = _plans(
            [
                make_plan("shared-plan", resource_group="rg-one"),
                make_plan("shared-plan", resource_group="rg-two"),
            ],
            subscription,
        )
        webs = _apps(
            [make_app("w1", resource_group="rg-two", server_farm_id="shared-plan")],
            subscription,
        )

        occupancy = correlate(plans, [], webs)

        assert occupancy[plans[0].id].is_empty
        assert occupancy[plans[1].id].web_app_count == 1

    def test_cross_resource_group_reference(self, subscription):
        """Test that a full plan id in another resource group is honored."""
        plans = _plans([make_plan("plan-a", resource_group="rg-plans")], subscription)
        record = make_app("w1", resource_group="rg-apps")
        record["server_farm_id"] = plans[0].id
        webs = _apps([record], subscription)

        occupancy = correlate(plans, [], webs)

        assert occupancy[plans[0].id].web_app_count == 1

    def test_unattached_apps(self, subscription):
        """Test that apps pointing at unknown plans are reported."""
        plans = _plans([make_plan("plan-a")], subscription)
        webs = _apps(
            [make_app("w1", plan="plan-a"), make_app("w2", plan="plan-gone")],
            subscription,
        )

        dangling = ResourceCorrelator(plans).unattached(webs)

        assert [app.name for app in dangling] == ["w2"]
