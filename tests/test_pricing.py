"""
Tests for the PricingTable module.
"""

import json
from decimal import Decimal

import pytest

from planaudit.core.exceptions import PricingConfigError
from planaudit.core.models import PlanTier, SkuDescriptor
from planaudit.core.pricing import PricingTable


class TestPricingLookup:
    """Tests for cost lookup and rounding."""

    def test_exact_size_match(self, pricing):
        """Test that a known tier and size uses the table price."""
        assert pricing.estimate_monthly_cost("Standard", "S1", 1) == Decimal("73.00")

    def test_size_match_is_case_insensitive(self, pricing):
        """Test that size codes match regardless of case."""
        assert pricing.base_unit_cost(PlanTier.PREMIUM_V3, "p1V3") == Decimal("124.10")

    def test_unknown_size_uses_tier_default(self, pricing):
        """Test fallback to the tier default for an unknown size."""
        assert pricing.estimate_monthly_cost("Basic", "B9", 1) == Decimal("54.75")

    def test_unknown_tier_uses_global_default(self, pricing):
        """Test fallback to the global default for an unknown tier."""
        assert pricing.estimate_monthly_cost("Mystery", "M1", 1) == Decimal("50.00")

    @pytest.mark.parametrize("size", ["Y1", "FC1", "S1"])
    def test_unknown_tier_ignores_listed_sizes(self, pricing, size):
        """Test that a size listed under another tier does not price an unknown tier."""
        assert pricing.estimate_monthly_cost("Mystery", size, 1) == Decimal("50.00")

    def test_consumption_plan_is_free(self, pricing):
        """Test that consumption (Dynamic/Y1) plans cost nothing."""
        assert pricing.estimate_monthly_cost("Dynamic", "Y1", 0) == Decimal("0.00")
        assert pricing.estimate_monthly_cost("FlexConsumption", "FC1", 1) == Decimal("0.00")

    def test_capacity_multiplies_unit_cost(self, pricing):
        """Test that cost scales with worker count."""
        assert pricing.estimate_monthly_cost("Standard", "S1", 3) == Decimal("219.00")

    def test_capacity_below_one_counts_as_one(self, pricing):
        """Test that zero or negative capacity is treated as one worker."""
        assert pricing.estimate_monthly_cost("Standard", "S1", 0) == Decimal("73.00")
        assert pricing.estimate_monthly_cost("Standard", "S1", -4) == Decimal("73.00")

    def test_unusable_capacity_counts_as_one(self, pricing):
        """Test that a non-numeric capacity never fails the estimate."""
        assert pricing.estimate_monthly_cost("Standard", "S1", "many") == Decimal("73.00")

    def test_rounding_is_half_away_from_zero(self):
        """Test that half cents round up."""
        table = PricingTable({"Basic": {"sizes": {"B1": "10.005"}}})
        assert table.estimate_monthly_cost("Basic", "B1", 1) == Decimal("10.01")

    def test_estimate_returns_cost_with_annual_amount(self, pricing):
        """Test the S1 scenario: 73.00 per month, 876.00 per year."""
        cost = pricing.estimate(SkuDescriptor(tier=PlanTier.STANDARD, size="S1"))
        assert cost.monthly_usd == Decimal("73.00")
        assert cost.annual_usd == Decimal("876.00")

    @pytest.mark.parametrize(
        "tier,size",
        [
            ("Free", "F1"),
            ("Basic", "B3"),
            ("PremiumV3", "P2v3"),
            ("ElasticPremium", "EP1"),
            ("IsolatedV2", "I1v2"),
            ("Unknown", "X1"),
        ],
    )
    def test_non_negative_and_monotonic_in_capacity(self, pricing, tier, size):
        """Test that cost never drops as capacity grows."""
        costs = [pricing.estimate_monthly_cost(tier, size, n) for n in range(0, 12)]
        assert all(cost >= 0 for cost in costs)
        assert costs == sorted(costs)

    def test_rows_list_defaults_and_sizes(self, pricing):
        """Test the tabular view of the price list."""
        rows = pricing.rows()
        assert ("Standard", "*", Decimal("73.00")) in rows
        assert ("Standard", "S1", Decimal("73.00")) in rows


class TestPricingLoading:
    """Tests for loading price lists."""

    def test_default_table_is_versioned(self, pricing):
        """Test that the bundled table carries a version."""
        assert pricing.version == "2024-06"
        assert pricing.currency == "USD"

    def test_from_file(self, tmp_path):
        """Test loading a custom price list."""
        path = tmp_path / "pricing.json"
        path.write_text(
            json.dumps(
                {
                    "version": "custom",
                    "default_monthly_usd": "20",
                    "tiers": {"Standard": {"default": "80", "sizes": {"S1": "80"}}},
                }
            )
        )

        table = PricingTable.from_file(path)

        assert table.version == "custom"
        assert table.estimate_monthly_cost("Standard", "S1", 1) == Decimal("80.00")
        assert table.estimate_monthly_cost("Basic", "B1", 1) == Decimal("20.00")

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises PricingConfigError."""
        with pytest.raises(PricingConfigError):
            PricingTable.from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        """Test that unparseable JSON raises PricingConfigError."""
        path = tmp_path / "pricing.json"
        path.write_text("{not json")
        with pytest.raises(PricingConfigError):
            PricingTable.from_file(path)

    def test_missing_tiers_section(self):
        """Test that a document without tiers is rejected."""
        with pytest.raises(PricingConfigError):
            PricingTable.from_dict({"version": "x"})

    def test_unknown_tier_rejected(self):
        """Test that misspelled tier names are caught at load time."""
        with pytest.raises(PricingConfigError) as exc_info:
            PricingTable({"Standrad": {"default": "73"}})
        assert exc_info.value.details["tier"] == "Standrad"

    def test_other_tier_cannot_be_priced(self):
        """Test that the catch-all tier is not a valid price list entry."""
        with pytest.raises(PricingConfigError):
            PricingTable({"Other": {"sizes": {"Y1": "0"}}})

    def test_negative_amount_rejected(self):
        """Test that negative prices are rejected."""
        with pytest.raises(PricingConfigError):
            PricingTable({"Basic": {"sizes": {"B1": "-1"}}})

    def test_non_usd_currency_rejected(self):
        """Test that only USD price lists are accepted."""
        with pytest.raises(PricingConfigError):
            PricingTable({}, currency="EUR")
