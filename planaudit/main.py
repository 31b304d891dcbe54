"""
Plan-Audit CLI - Azure Hosting Plan Auditor

Main entry point for the command-line interface.
"""

import sys
from typing import List, Optional, Sequence, Tuple

import click
from rich.console import Console

from . import __version__
from .core.azure_client import AzureClient
from .core.exceptions import (
    AzureClientError,
    ConfigurationError,
    NoSubscriptionsError,
    PlanAuditError,
)
from .core.inventory import AzureInventorySource, FileInventorySource, InventorySource
from .core.logging import setup_logging
from .core.models import Subscription
from .core.pricing import PricingTable
from .core.subscription_auditor import SubscriptionAuditor
from .core.subscription_manager import SubscriptionManager
from .reporters.cli_reporter import CLIReporter
from .reporters.csv_reporter import CSVReporter
from .reporters.json_reporter import JSONReporter


console = Console()

EXIT_FATAL = 1
EXIT_INTERRUPTED = 130

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _load_pricing(pricing_file: Optional[str]) -> PricingTable:
    if pricing_file:
        return PricingTable.from_file(pricing_file)
    return PricingTable.default()


def _open_source(inventory_file: Optional[str]) -> Tuple[InventorySource, Optional[AzureClient]]:
    """Build the inventory source; Azure credentials are validated up front."""
    if inventory_file:
        return FileInventorySource(inventory_file), None

    client = AzureClient()
    client.validate_credentials()
    return AzureInventorySource(client), client


def _select_subscriptions(
    discovered: Sequence[Subscription],
    requested: Sequence[str],
) -> List[Subscription]:
    """
    Narrow discovered subscriptions to the requested ids.

    Requested ids that were not discovered are still audited so that their
    failure shows up as a subscription-level error in the report.
    """
    if not requested:
        return list(discovered)

    by_id = {s.id.lower(): s for s in discovered}
    selected: List[Subscription] = []
    seen = set()
    for sub_id in requested:
        if sub_id.lower() in seen:
            continue
        seen.add(sub_id.lower())
        known = by_id.get(sub_id.lower())
        selected.append(
            Subscription(
                id=known.id if known else sub_id,
                name=known.name if known else "",
                sequence=len(selected),
            )
        )
    return selected


@click.group()
@click.version_option(version=__version__, prog_name="plan-audit")
def cli():
    """
    Plan-Audit: Azure Hosting Plan Cost & Risk Auditor

    Audits App Service and Functions inventory across subscriptions to find
    hosting plans that are billed while running no applications, and ranks
    applications by operational and security risk.
    """
    pass


@cli.command("audit")
@click.option(
    "--subscription",
    "-s",
    "subscription_ids",
    multiple=True,
    help="Subscription ID to audit (repeatable; default: all enabled subscriptions)",
)
@click.option(
    "--inventory-file",
    "-i",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Read inventory from a JSON export instead of Azure",
)
@click.option(
    "--skip-empty-plans",
    is_flag=True,
    help="Skip empty hosting plan detection",
)
@click.option(
    "--top",
    default=10,
    type=click.IntRange(min=0),
    help="Number of entries in the top risk and top waste lists (default: 10)",
)
@click.option(
    "--max-workers",
    default=None,
    type=click.IntRange(min=1),
    help="Maximum parallel subscription audits (default: min(subscriptions, 8))",
)
@click.option(
    "--timeout",
    default=None,
    type=click.FloatRange(min=0, min_open=True),
    help="Per-subscription timeout in seconds (default: none)",
)
@click.option(
    "--pricing-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Price list JSON to use instead of the bundled one",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["cli", "csv", "json"]),
    default="cli",
    help="Output format (default: cli)",
)
@click.option(
    "--output",
    "-o",
    default=None,
    help="Output file path (auto-detects format from extension)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging level (default: WARNING)",
)
@click.option(
    "--log-file",
    default=None,
    help="Also write logs to this file",
)
def audit(
    subscription_ids: Tuple[str, ...],
    inventory_file: Optional[str],
    skip_empty_plans: bool,
    top: int,
    max_workers: Optional[int],
    timeout: Optional[float],
    pricing_file: Optional[str],
    output_format: str,
    output: Optional[str],
    log_level: str,
    log_file: Optional[str],
):
    """
    Audit hosting plans and applications.

    Finds hosting plans with no function or web apps attached and
    estimates what they cost, and scores every application for risk:
    stopped (20), HTTP allowed (15), TLS 1.0/1.1 (10), FTP allowed (5).

    Examples:

        # Audit every enabled subscription
        plan-audit audit

        # Audit specific subscriptions
        plan-audit audit -s 00000000-0000-0000-0000-000000000001 -s 00000000-...

        # Audit an exported inventory
        plan-audit audit --inventory-file inventory.json

        # Export to CSV
        plan-audit audit --output audit.csv

        # Export to JSON with a per-subscription timeout
        plan-audit audit --format json -o audit.json --timeout 300
    """
    setup_logging(level=log_level, log_file=log_file)
    cli_reporter = CLIReporter(console)
    client: Optional[AzureClient] = None

    try:
        try:
            pricing = _load_pricing(pricing_file)
            source, client = _open_source(inventory_file)
        except AzureClientError as e:
            console.print(f"\n[red bold]Authentication Error:[/red bold] {e}")
            sys.exit(EXIT_FATAL)

        subscriptions = _select_subscriptions(source.subscriptions(), subscription_ids)
        if not subscriptions:
            raise NoSubscriptionsError("No subscriptions found to audit")

        cli_reporter.print_auditing_message(subscriptions)

        manager = SubscriptionManager(
            source,
            auditor=SubscriptionAuditor(pricing=pricing),
            max_workers=max_workers,
            timeout=timeout,
        )
        report = _run_audit(manager, subscriptions, skip_empty_plans, top, cli_reporter)

        _output_report(report, cli_reporter, output, output_format, pricing.version)

        if report.interrupted:
            console.print("\n[yellow]Audit cancelled by user.[/yellow]")
            sys.exit(EXIT_INTERRUPTED)

    except PlanAuditError as e:
        cli_reporter.print_error(str(e))
        sys.exit(EXIT_FATAL)
    except KeyboardInterrupt:
        console.print("\n[yellow]Audit cancelled by user.[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    finally:
        if client is not None:
            client.close()


def _run_audit(
    manager: SubscriptionManager,
    subscriptions: List[Subscription],
    skip_empty_plans: bool,
    top: int,
    cli_reporter: CLIReporter,
):
    """Run the audit with a progress bar."""
    finished = set()
    names = {s.id: s.display_name for s in subscriptions}

    with cli_reporter.create_progress() as progress:
        task = progress.add_task("Auditing subscriptions...", total=len(subscriptions))

        def progress_callback(subscription_id: str, status: str):
            if status == "scanning":
                return
            if status == "error":
                progress.console.print(f"  [yellow]Error auditing: {names[subscription_id]}[/yellow]")
            elif status == "timeout":
                progress.console.print(f"  [yellow]Timed out: {names[subscription_id]}[/yellow]")
            finished.add(subscription_id)
            progress.update(task, completed=len(finished))

        return manager.audit(
            subscriptions,
            skip_empty_plan_analysis=skip_empty_plans,
            top_n=top,
            progress_callback=progress_callback,
        )


def _output_report(report, cli_reporter, output, output_format, pricing_version):
    """Handle output of the audit report."""
    output_file = None

    if output_format == "cli" and not output:
        cli_reporter.report(report)
    elif output_format == "csv" or (output and output.endswith(".csv")):
        output_file = CSVReporter(output_path=output).report(report)
        # Also show CLI summary
        cli_reporter.report(report)
    elif output_format == "json" or (output and output.endswith(".json")):
        json_reporter = JSONReporter(output_path=output, pricing_version=pricing_version)
        output_file = json_reporter.report(report)
        # Also show CLI summary
        cli_reporter.report(report)
    else:
        # cli format with an output file of unknown extension: save as CSV
        cli_reporter.report(report)
        output_file = CSVReporter(output_path=output).report(report)

    cli_reporter.print_completion_message(output_file)


@cli.command("subscriptions")
@click.option(
    "--inventory-file",
    "-i",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="List subscriptions of a JSON export instead of Azure",
)
def list_subscriptions(inventory_file: Optional[str]):
    """List the subscriptions that would be audited."""
    client: Optional[AzureClient] = None
    try:
        source, client = _open_source(inventory_file)
        subscriptions = source.subscriptions()

        console.print(f"\n[bold]Subscriptions ({len(subscriptions)} total):[/bold]")
        CLIReporter(console).print_subscriptions(subscriptions)
        console.print()

    except PlanAuditError as e:
        console.print(f"\n[red bold]Error:[/red bold] {e}")
        sys.exit(EXIT_FATAL)
    finally:
        if client is not None:
            client.close()


@cli.command("validate")
def validate_credentials():
    """Validate Azure credentials and show visible subscriptions."""
    try:
        with AzureClient() as client:
            client.validate_credentials()
            subscriptions = client.list_subscriptions()

        console.print("\n[green bold]Azure credentials are valid![/green bold]")
        console.print(f"\n  Enabled subscriptions: {len(subscriptions)}")
        console.print()

    except AzureClientError as e:
        console.print(f"\n[red bold]Validation Failed:[/red bold] {e}")
        sys.exit(EXIT_FATAL)


@cli.command("pricing")
@click.option(
    "--pricing-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Price list JSON to show instead of the bundled one",
)
def show_pricing(pricing_file: Optional[str]):
    """Show the hosting plan price list used for estimates."""
    try:
        table = _load_pricing(pricing_file)
    except ConfigurationError as e:
        console.print(f"\n[red bold]Invalid price list:[/red bold] {e}")
        sys.exit(EXIT_FATAL)

    rows = [(tier, size, f"{amount:.2f}") for tier, size, amount in table.rows()]
    CLIReporter(console).print_pricing(rows, table.version)
    console.print(
        f"\n[dim]Unknown tiers are estimated at ${table.default_monthly_usd:.2f}/month.[/dim]\n"
    )


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
