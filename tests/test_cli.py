"""
Tests for the command-line interface.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import SUB_ID
from planaudit import __version__
from planaudit.core.exceptions import CredentialsError
from planaudit.core.models import Subscription
from planaudit.main import EXIT_FATAL, _select_subscriptions, cli


@pytest.fixture
def runner():
    return CliRunner()


class TestAuditCommand:
    """Tests for the audit command."""

    def test_cli_output(self, runner, inventory_file):
        """Test a terminal report from an inventory export."""
        result = runner.invoke(cli, ["audit", "--inventory-file", str(inventory_file)])

        assert result.exit_code == 0, result.output
        assert "Hosting Plan Audit Report" in result.output
        assert "Top Empty Plans" in result.output
        assert "Audit complete!" in result.output

    def test_json_output(self, runner, inventory_file, tmp_path):
        """Test exporting the report to JSON."""
        output = tmp_path / "audit.json"

        result = runner.invoke(
            cli,
            ["audit", "-i", str(inventory_file), "--format", "json", "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        summary = data["report"]["summary"]
        assert summary["subscriptions"] == 2
        assert summary["empty_plans"] == 2
        assert summary["empty_plan_monthly_usd"] == "197.10"
        assert data["metadata"]["pricing_version"] == "2024-06"
        assert data["report"]["top_risks"][0]["name"] == "orders-api"

    def test_csv_by_extension(self, runner, inventory_file, tmp_path):
        """Test that a .csv output path selects the CSV reporter."""
        output = tmp_path / "audit.csv"

        result = runner.invoke(cli, ["audit", "-i", str(inventory_file), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "# Empty Plans" in output.read_text(encoding="utf-8")

    def test_subscription_filter(self, runner, inventory_file, tmp_path):
        """Test auditing one subscription of the export."""
        output = tmp_path / "audit.json"

        result = runner.invoke(
            cli,
            ["audit", "-i", str(inventory_file), "-s", SUB_ID, "-f", "json", "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        summary = json.loads(output.read_text(encoding="utf-8"))["report"]["summary"]
        assert summary["subscriptions"] == 1
        assert summary["empty_plan_monthly_usd"] == "73.00"

    def test_skip_empty_plans(self, runner, inventory_file):
        """Test the skip flag."""
        result = runner.invoke(
            cli, ["audit", "-i", str(inventory_file), "--skip-empty-plans"]
        )

        assert result.exit_code == 0, result.output
        assert "Empty plan analysis was skipped." in result.output

    def test_invalid_pricing_file(self, runner, inventory_file, tmp_path):
        """Test that a broken price list is fatal."""
        pricing_file = tmp_path / "pricing.json"
        pricing_file.write_text('{"version": "x"}', encoding="utf-8")

        result = runner.invoke(
            cli,
            ["audit", "-i", str(inventory_file), "--pricing-file", str(pricing_file)],
        )

        assert result.exit_code == EXIT_FATAL
        assert "Error" in result.output

    def test_negative_top_is_rejected(self, runner, inventory_file):
        """Test option validation."""
        result = runner.invoke(cli, ["audit", "-i", str(inventory_file), "--top", "-1"])

        assert result.exit_code == 2

    def test_authentication_failure(self, runner):
        """Test that rejected Azure credentials stop the run."""
        with patch("planaudit.main.AzureClient") as client_class:
            client_class.return_value.validate_credentials.side_effect = CredentialsError(
                "Azure credentials were rejected"
            )

            result = runner.invoke(cli, ["audit"])

        assert result.exit_code == EXIT_FATAL
        assert "Authentication Error" in result.output


class TestOtherCommands:
    """Tests for the subscriptions, pricing and version commands."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_subscriptions(self, runner, inventory_file):
        """Test listing subscriptions of an export."""
        result = runner.invoke(cli, ["subscriptions", "-i", str(inventory_file)])

        assert result.exit_code == 0, result.output
        assert "Production" in result.output
        assert "Staging" in result.output

    def test_pricing(self, runner):
        """Test showing the bundled price list."""
        result = runner.invoke(cli, ["pricing"])

        assert result.exit_code == 0, result.output
        assert "2024-06" in result.output
        assert "73.00" in result.output


class TestSelectSubscriptions:
    """Tests for subscription selection."""

    def test_no_filter(self):
        discovered = [Subscription(id="a", sequence=0), Subscription(id="b", sequence=1)]

        assert _select_subscriptions(discovered, ()) == discovered

    def test_filter_keeps_requested_order(self):
        """Test that requested ids are renumbered in request order."""
        discovered = [
            Subscription(id="a", name="A", sequence=0),
            Subscription(id="b", name="B", sequence=1),
        ]

        selected = _select_subscriptions(discovered, ("B", "a", "b"))

        assert [(s.id, s.name, s.sequence) for s in selected] == [("b", "B", 0), ("a", "A", 1)]

    def test_unknown_ids_are_kept(self):
        """Test that an undiscovered id is still audited."""
        selected = _select_subscriptions([], ("missing",))

        assert [s.id for s in selected] == ["missing"]
