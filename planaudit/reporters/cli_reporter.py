"""
CLI Reporter Module
===================

Provides rich terminal output for audit reports using the Rich library.

This module creates terminal displays with:
- A summary panel with totals and estimated waste
- Distribution tables for governance and posture
- Top risk and top waste tables
- Error highlighting and warnings

Classes
-------
CLIReporter
    Main reporter class for terminal output.

Example
-------
>>> from planaudit.reporters import CLIReporter
>>>
>>> reporter = CLIReporter()
>>> reporter.report(audit_report)

Notes
-----
Resource names are escaped before printing, so names containing square
brackets are not read as Rich markup.

See Also
--------
rich : Python library for rich text and formatting.
CSVReporter : For data export.
JSONReporter : For programmatic access.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from planaudit.core.aggregator import AuditReport
from planaudit.core.models import EmptyPlanFinding, ErrorEntry, RiskFinding, Subscription

# Module logger
logger = logging.getLogger(__name__)

DISTRIBUTION_TITLES: Dict[str, str] = {
    "state": "State",
    "os": "Operating System",
    "tls": "Minimum TLS",
    "identity": "Managed Identity",
    "ftps": "FTPS Policy",
    "https": "HTTPS",
    "owner": "Owner Tag",
}

MAX_ERRORS_SHOWN = 20


class CLIReporter:
    """
    Reporter for displaying audit reports in the terminal.

    Parameters
    ----------
    console : Console, optional
        Rich Console instance. If not provided, creates a new one.

    Examples
    --------
    >>> reporter = CLIReporter()
    >>> reporter.report(report)

    Displaying progress:

    >>> with reporter.create_progress() as progress:
    ...     task = progress.add_task("Auditing...", total=3)
    ...     progress.update(task, advance=1)
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        logger.debug("Initialized CLIReporter")

    def report(self, report: AuditReport) -> None:
        """
        Display a full audit report.

        Parameters
        ----------
        report : AuditReport
            The report to display.
        """
        self._print_header(report)
        self._print_summary(report)
        self._print_distributions(report.distributions)

        if report.top_empty_plans:
            self._print_empty_plans_table(report.top_empty_plans, report.empty_plan_count)
        elif report.empty_plan_analysis_skipped:
            self.console.print("\n[dim]Empty plan analysis was skipped.[/dim]")
        else:
            self.console.print("\n[green]No empty hosting plans found.[/green]")

        if report.top_risks:
            self._print_risks_table(report.top_risks, report.risk_count)
        else:
            self.console.print("\n[green]No risky applications found.[/green]")

        if report.apps_per_subscription:
            self._print_subscription_counts(report)

        if report.apps_per_runtime:
            self._print_counts_table(
                "Applications per Runtime", "Runtime", report.apps_per_runtime
            )

        if report.errors:
            self._print_errors(report.errors)

        if report.interrupted:
            self.print_warning(
                "The audit was interrupted; only completed subscriptions are included."
            )

    # =========================================================================
    # Private Methods: Output Formatting
    # =========================================================================

    def _print_header(self, report: AuditReport) -> None:
        header_text = Text()
        header_text.append("\nHosting Plan Audit Report\n", style="bold blue")
        header_text.append(
            f"Subscriptions: {report.subscription_count}", style="dim"
        )
        self.console.print(Panel(header_text, border_style="blue"))

    def _print_summary(self, report: AuditReport) -> None:
        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Metric", style="cyan")
        summary.add_column("Value", style="white")

        summary.add_row(
            "Applications:",
            f"{report.application_count} "
            f"({report.function_app_count} function, {report.web_app_count} web)",
        )
        summary.add_row("Hosting Plans:", str(report.plan_count))

        # Color-code waste based on value
        empty_style = "red" if report.empty_plan_count > 0 else "green"
        summary.add_row(
            "Empty Plans:", f"[{empty_style}]{report.empty_plan_count}[/]"
        )
        summary.add_row(
            "Estimated Waste:",
            f"[{empty_style}]${report.empty_plan_monthly_usd:,.2f}/month "
            f"(${report.empty_plan_annual_usd:,.2f}/year)[/]",
        )

        risk_style = "yellow" if report.risk_count > 0 else "green"
        summary.add_row("Risky Applications:", f"[{risk_style}]{report.risk_count}[/]")

        if report.unattached_count:
            summary.add_row("Unattached Applications:", str(report.unattached_count))
        summary.add_row("Duration:", f"{report.elapsed_seconds:.1f}s")

        if report.errors:
            summary.add_row("Errors:", f"[yellow]{report.error_count}[/]")

        self.console.print("\n")
        self.console.print(summary)

    def _print_distributions(self, distributions: Mapping[str, Mapping[str, int]]) -> None:
        table = Table(title="\nDistributions", title_style="bold", show_lines=False)
        table.add_column("Category", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")
        table.add_column("Applications", justify="right")

        for name, counts in distributions.items():
            title = DISTRIBUTION_TITLES.get(name, name.title())
            for index, (label, count) in enumerate(counts.items()):
                table.add_row(title if index == 0 else "", escape(label), str(count))

        self.console.print(table)

    def _print_empty_plans_table(
        self,
        findings: Sequence[EmptyPlanFinding],
        total: int,
    ) -> None:
        table = Table(
            title=f"\nTop Empty Plans ({len(findings)} of {total})",
            title_style="bold",
            show_lines=False,
        )

        table.add_column("Subscription", style="yellow", no_wrap=True)
        table.add_column("Resource Group", style="dim")
        table.add_column("Plan", style="cyan")
        table.add_column("SKU", style="white")
        table.add_column("Monthly", justify="right", style="red")
        table.add_column("Annual", justify="right", style="red")

        for finding in findings:
            plan = finding.plan
            table.add_row(
                escape(self._truncate(plan.subscription_name, 30)),
                escape(plan.resource_group),
                escape(plan.name),
                escape(plan.sku.label),
                f"${finding.monthly_usd:,.2f}",
                f"${finding.annual_usd:,.2f}",
            )

        self.console.print(table)

    def _print_risks_table(self, findings: Sequence[RiskFinding], total: int) -> None:
        table = Table(
            title=f"\nTop Risky Applications ({len(findings)} of {total})",
            title_style="bold",
            show_lines=False,
        )

        table.add_column("Score", justify="right", style="bold")
        table.add_column("Application", style="cyan")
        table.add_column("Kind", style="dim")
        table.add_column("Subscription", style="yellow")
        table.add_column("Issues", style="white", max_width=50)

        for finding in findings:
            app = finding.application
            score_style = "red" if finding.score >= 30 else "yellow"
            table.add_row(
                f"[{score_style}]{finding.score}[/]",
                escape(app.name),
                app.kind.value,
                escape(self._truncate(app.subscription_name, 30)),
                ", ".join(finding.issues),
            )

        self.console.print(table)

    def _print_counts_table(self, title: str, label: str, counts: Mapping[str, int]) -> None:
        table = Table(title=f"\n{title}", title_style="bold")
        table.add_column(label, style="cyan")
        table.add_column("Applications", justify="right")
        for key, count in counts.items():
            table.add_row(escape(key), str(count))
        self.console.print(table)

    def _print_subscription_counts(self, report: AuditReport) -> None:
        table = Table(title="\nApplications per Subscription", title_style="bold")
        table.add_column("Subscription", style="yellow")
        table.add_column("Subscription ID", style="dim", no_wrap=True)
        table.add_column("Applications", justify="right")
        for subscription_id, count in report.apps_per_subscription.items():
            name = report.subscription_names.get(subscription_id, subscription_id)
            table.add_row(
                escape(self._truncate(name, 30)), subscription_id, str(count)
            )
        self.console.print(table)

    def _print_errors(self, errors: Sequence[ErrorEntry]) -> None:
        self.console.print(
            f"\n[yellow bold]Errors encountered ({len(errors)}):[/yellow bold]"
        )
        for error in errors[:MAX_ERRORS_SHOWN]:
            self.console.print(f"  [red]• {escape(str(error))}[/red]")
        if len(errors) > MAX_ERRORS_SHOWN:
            self.console.print(
                f"  [dim]... and {len(errors) - MAX_ERRORS_SHOWN} more[/dim]"
            )

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        """Truncate text to maximum length with ellipsis."""
        if len(text) <= max_length:
            return text
        return text[:max_length - 3] + "..."

    # =========================================================================
    # Public Methods: Progress and Messages
    # =========================================================================

    def create_progress(self) -> Progress:
        """
        Create a progress indicator for the subscription audits.

        Returns
        -------
        Progress
            Rich Progress instance with spinner and counter.
        """
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=self.console,
            transient=True,
        )

    def print_auditing_message(self, subscriptions: List[Subscription]) -> None:
        """Print a message about the subscriptions being audited."""
        if len(subscriptions) == 1:
            self.console.print(
                f"\n[bold]Auditing subscription {escape(subscriptions[0].display_name)}...[/bold]"
            )
            return

        preview = ", ".join(s.display_name for s in subscriptions[:5])
        if len(subscriptions) > 5:
            preview += f"... ({len(subscriptions)} total)"
        self.console.print(
            f"\n[bold]Auditing {len(subscriptions)} subscriptions...[/bold]"
        )
        self.console.print(f"[dim]Subscriptions: {escape(preview)}[/dim]")

    def print_subscriptions(self, subscriptions: Sequence[Subscription]) -> None:
        """Print a table of discovered subscriptions."""
        table = Table(title="\nSubscriptions", title_style="bold")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Subscription ID", style="cyan", no_wrap=True)
        table.add_column("Name", style="white")
        for subscription in subscriptions:
            table.add_row(
                str(subscription.sequence + 1),
                subscription.id,
                escape(subscription.name or "-"),
            )
        self.console.print(table)

    def print_pricing(self, rows: Sequence[Sequence[str]], version: str) -> None:
        """Print the price list as a table of tier, size and monthly cost."""
        table = Table(title=f"\nPricing (version {version})", title_style="bold")
        table.add_column("Tier", style="cyan")
        table.add_column("Size", style="white")
        table.add_column("Monthly (USD)", justify="right")
        for tier, size, monthly in rows:
            table.add_row(tier, size, monthly)
        self.console.print(table)

    def print_completion_message(self, output_file: Optional[str] = None) -> None:
        """Print audit completion message."""
        self.console.print("\n[green bold]Audit complete![/green bold]")
        if output_file:
            self.console.print(f"[dim]Results saved to: {output_file}[/dim]")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"\n[red bold]Error:[/red bold] {escape(message)}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"\n[yellow bold]Warning:[/yellow bold] {escape(message)}")

    def __repr__(self) -> str:
        return "CLIReporter()"
