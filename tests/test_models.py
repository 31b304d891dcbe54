"""
Tests for the domain models and record normalization.
"""

from decimal import Decimal

import pytest

from conftest import SUB_ID, make_app, make_function, make_plan, site_id
from planaudit.core.exceptions import MalformedRecordError
from planaudit.core.models import (
    AppKind,
    AppState,
    ComputeApplication,
    CostEstimate,
    EmptyPlanFinding,
    ErrorEntry,
    FtpsPolicy,
    HostingPlan,
    IdentityKind,
    OSType,
    PlanTier,
    RiskFinding,
    parse_resource_group,
    resolve_owner,
    short_name,
)


class TestHelpers:
    """Tests for identifier parsing helpers."""

    def test_parse_resource_group(self):
        """Test extracting the resource group from a resource id."""
        assert parse_resource_group(site_id("rg-web", "orders-api")) == "rg-web"

    def test_parse_resource_group_case_insensitive_segment(self):
        """Test that the resourcegroups segment name is matched in any case."""
        rid = "/subscriptions/s/resourcegroups/RG-Data/providers/Microsoft.Web/sites/x"
        assert parse_resource_group(rid) == "RG-Data"

    def test_parse_resource_group_without_segment(self):
        """Test that bare names have no resource group."""
        assert parse_resource_group("plan-a") == ""
        assert parse_resource_group(None) == ""

    def test_short_name(self):
        """Test reducing a reference to its trailing segment."""
        assert short_name("/a/b/serverfarms/plan-a") == "plan-a"
        assert short_name("plan-a/") == "plan-a"
        assert short_name("") == ""


class TestOwnerResolution:
    """Tests for ordered, case-insensitive owner tag resolution."""

    def test_first_candidate_wins(self):
        """Test that the earliest alias in the list wins."""
        tags = {"team": "data", "Owner": "alice"}
        assert resolve_owner(tags) == "alice"

    def test_case_insensitive_keys(self):
        """Test that tag keys match in any case."""
        assert resolve_owner({"CREATEDBY": "bob"}) == "bob"

    def test_blank_values_are_skipped(self):
        """Test that an empty owner tag falls through to the next alias."""
        assert resolve_owner({"owner": "  ", "team": "payments"}) == "payments"

    def test_custom_candidates(self):
        """Test resolution with a custom alias list."""
        tags = {"owner": "alice", "cost-center": "cc-42"}
        assert resolve_owner(tags, ["cost-center", "owner"]) == "cc-42"

    def test_no_owner(self):
        """Test that None is returned without a matching tag."""
        assert resolve_owner({"env": "prod"}) is None


class TestEnumParsing:
    """Tests for tolerant enum parsing."""

    def test_state(self):
        assert AppState.parse("stopped") is AppState.STOPPED
        assert AppState.parse("Deleting") is AppState.UNKNOWN
        assert AppState.parse(None) is AppState.UNKNOWN

    def test_ftps(self):
        assert FtpsPolicy.parse("AllAllowed") is FtpsPolicy.ALL_ALLOWED
        assert FtpsPolicy.parse(None) is None

    def test_identity(self):
        assert IdentityKind.parse("SystemAssigned, UserAssigned") is IdentityKind.BOTH
        assert IdentityKind.parse("UserAssigned") is IdentityKind.USER_ASSIGNED
        assert IdentityKind.parse(None) is IdentityKind.NONE

    def test_os_falls_back_to_kind(self):
        assert OSType.parse(None, "functionapp,linux") is OSType.LINUX
        assert OSType.parse(None, "app") is OSType.WINDOWS
        assert OSType.parse(None, None) is OSType.UNKNOWN

    def test_tier(self):
        assert PlanTier.parse("premiumv3") is PlanTier.PREMIUM_V3
        assert PlanTier.parse("Dynamic") is PlanTier.DYNAMIC
        assert PlanTier.parse("Mystery") is PlanTier.OTHER

    def test_kind(self):
        assert AppKind.from_kind("functionapp,linux") is AppKind.FUNCTION
        assert AppKind.from_kind("app,linux") is AppKind.WEB


class TestComputeApplication:
    """Tests for application normalization."""

    def test_from_record(self, subscription):
        """Test normalizing a complete record."""
        app = ComputeApplication.from_record(
            make_app("orders-api", plan="plan-a", tags={"Owner": "payments"}),
            subscription,
        )

        assert app.name == "orders-api"
        assert app.resource_group == "rg-web"
        assert app.kind is AppKind.WEB
        assert app.state is AppState.RUNNING
        assert app.https_only is True
        assert app.min_tls_version == "1.2"
        assert app.ftps_policy is FtpsPolicy.DISABLED
        assert app.identity is IdentityKind.SYSTEM_ASSIGNED
        assert short_name(app.plan_reference) == "plan-a"
        assert app.owner == "payments"
        assert app.subscription_id == SUB_ID
        assert app.subscription_name == "Production"

    def test_kind_override(self, subscription):
        """Test that the caller's kind wins over the record's kind string."""
        app = ComputeApplication.from_record(
            make_app("x", kind="app"), subscription, kind=AppKind.FUNCTION
        )
        assert app.kind is AppKind.FUNCTION

    def test_function_kind_from_record(self, subscription):
        """Test that functionapp kinds are detected."""
        app = ComputeApplication.from_record(make_function("f"), subscription)
        assert app.kind is AppKind.FUNCTION

    def test_tags_are_read_only(self, subscription):
        """Test that applications cannot be mutated through their tags."""
        app = ComputeApplication.from_record(make_app("x"), subscription)
        with pytest.raises(TypeError):
            app.tags["owner"] = "mallory"

    def test_missing_plan_reference(self, subscription):
        """Test that an empty plan reference becomes None."""
        app = ComputeApplication.from_record(make_app("x", server_farm_id=""), subscription)
        assert app.plan_reference is None

    def test_https_only_from_string(self, subscription):
        """Test that string booleans are accepted."""
        app = ComputeApplication.from_record(make_app("x", https_only="false"), subscription)
        assert app.https_only is False

    def test_missing_https_only_is_unknown(self, subscription):
        """Test that an unreported https_only stays None rather than False."""
        record = make_app("x")
        del record["https_only"]

        app = ComputeApplication.from_record(record, subscription)

        assert app.https_only is None
        assert app.to_dict()["https_only"] is None

    def test_missing_name(self, subscription):
        """Test that a record without a name is malformed."""
        record = make_app("x")
        del record["name"]
        with pytest.raises(MalformedRecordError):
            ComputeApplication.from_record(record, subscription)

    def test_invalid_boolean(self, subscription):
        """Test that an unusable https_only value is malformed."""
        with pytest.raises(MalformedRecordError):
            ComputeApplication.from_record(make_app("x", https_only="maybe"), subscription)

    def test_not_a_mapping(self, subscription):
        """Test that non-dict records are malformed."""
        with pytest.raises(MalformedRecordError):
            ComputeApplication.from_record(["orders-api"], subscription)

    def test_runtime_label_default(self, subscription):
        """Test that a missing runtime is labelled Unknown."""
        app = ComputeApplication.from_record(make_app("x", runtime=None), subscription)
        assert app.runtime_label == "Unknown"


class TestHostingPlan:
    """Tests for hosting-plan normalization."""

    def test_from_record(self, subscription):
        """Test normalizing a plan record."""
        plan = HostingPlan.from_record(
            make_plan("plan-a", tier="PremiumV3", size="P1v3", capacity=2), subscription
        )

        assert plan.name == "plan-a"
        assert plan.resource_group == "rg-web"
        assert plan.sku.tier is PlanTier.PREMIUM_V3
        assert plan.sku.size == "P1v3"
        assert plan.sku.capacity == 2
        assert plan.sku.label == "PremiumV3/P1v3 x2"

    def test_resource_group_from_id(self, subscription):
        """Test that the resource group falls back to the id."""
        record = make_plan("plan-a", resource_group="rg-data")
        record["resource_group"] = None
        assert HostingPlan.from_record(record, subscription).resource_group == "rg-data"

    def test_zero_capacity_is_one(self, subscription):
        """Test that capacity is at least one worker."""
        plan = HostingPlan.from_record(make_plan("y", capacity=0), subscription)
        assert plan.sku.capacity == 1

    def test_missing_capacity_is_one(self, subscription):
        """Test that an absent capacity defaults to one worker."""
        record = make_plan("y")
        del record["sku"]["capacity"]
        assert HostingPlan.from_record(record, subscription).sku.capacity == 1

    @pytest.mark.parametrize("capacity", ["lots", True, 1.5j])
    def test_invalid_capacity(self, subscription, capacity):
        """Test that a non-integer capacity is malformed."""
        with pytest.raises(MalformedRecordError):
            HostingPlan.from_record(make_plan("y", capacity=capacity), subscription)


class TestDerivedEntities:
    """Tests for the consistency checks of derived entities."""

    def test_cost_estimate_annual(self):
        """Test that annual cost is exactly twelve months."""
        assert CostEstimate(Decimal("54.75")).annual_usd == Decimal("657.00")

    def test_cost_estimate_rejects_negative(self):
        """Test that negative costs are rejected."""
        with pytest.raises(ValueError):
            CostEstimate(Decimal("-1"))

    def test_empty_plan_finding_rejects_occupied_plan(self, subscription):
        """Test that a finding cannot be built for a plan with apps."""
        plan = HostingPlan.from_record(make_plan("plan-a"), subscription)
        with pytest.raises(ValueError):
            EmptyPlanFinding(plan, CostEstimate(Decimal("73")), web_app_count=1)

    def test_risk_finding_requires_issue(self, subscription):
        """Test that a risk finding needs at least one issue."""
        app = ComputeApplication.from_record(make_app("x"), subscription)
        with pytest.raises(ValueError):
            RiskFinding(app, (), 0)

    def test_error_entry_str(self):
        """Test the one-line form of error entries."""
        entry = ErrorEntry.resource("sub-1", site_id("rg", "orders-api"), "boom")
        assert str(entry) == "[resource] sub-1 orders-api: boom"
        assert str(ErrorEntry.run("stopped")) == "[run] run: stopped"
