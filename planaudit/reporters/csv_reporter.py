"""
CSV Reporter Module
===================

Exports audit reports to CSV format for spreadsheet analysis.

Classes
-------
CSVReporter
    Main reporter class for CSV export.

Example
-------
>>> from planaudit.reporters import CSVReporter
>>>
>>> reporter = CSVReporter(output_path="audit.csv")
>>> filepath = reporter.report(audit_report)
>>> print(f"Results saved to: {filepath}")

Output Format
-------------
The CSV file includes:
1. Metadata header rows (prefixed with #)
2. An applications section: one row per application
3. An empty plans section: one row per empty hosting plan

Example output::

    # Audit Metadata
    # Generated:,2024-06-01T10:30:00
    # Subscriptions:,2
    # Applications:,14
    # Empty Plans:,1
    # Monthly Waste (USD):,73.00

    # Applications
    Subscription,Resource Group,Name,Kind,State,...
    Production,rg-web,orders-api,web,Running,...

    # Empty Plans
    Subscription,Resource Group,Plan,Tier,Size,Capacity,Monthly (USD),Annual (USD)
    Production,rg-old,plan-a,Standard,S1,1,73.00,876.00

See Also
--------
CLIReporter : For terminal display.
JSONReporter : For programmatic access.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from planaudit.core.aggregator import AuditReport
from planaudit.core.models import ComputeApplication, EmptyPlanFinding, RiskFinding

# Module logger
logger = logging.getLogger(__name__)


class CSVReporter:
    """
    Reporter for exporting audit reports to CSV format.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, generates a
        timestamped filename in the current directory.

    Examples
    --------
    >>> reporter = CSVReporter(output_path="./reports/audit.csv")
    >>> filepath = reporter.report(report)

    Auto-generate filename:

    >>> filepath = CSVReporter().report(report)
    >>> print(filepath)  # e.g., 'plan_audit_20240115_103000.csv'
    """

    APPLICATION_COLUMNS = [
        "Subscription",
        "Resource Group",
        "Name",
        "Kind",
        "State",
        "OS",
        "Runtime",
        "Location",
        "Plan",
        "HTTPS Only",
        "Min TLS",
        "FTPS",
        "Identity",
        "Owner",
        "Risk Score",
        "Issues",
        "Tags",
    ]

    EMPTY_PLAN_COLUMNS = [
        "Subscription",
        "Resource Group",
        "Plan",
        "Location",
        "Tier",
        "Size",
        "Capacity",
        "Monthly (USD)",
        "Annual (USD)",
    ]

    def __init__(self, output_path: Optional[str] = None) -> None:
        self.output_path = output_path
        logger.debug(f"Initialized CSVReporter (output_path={output_path})")

    def _get_output_path(self) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"plan_audit_{timestamp}.csv")

    def report(self, report: AuditReport) -> str:
        """
        Export an audit report to CSV.

        Parameters
        ----------
        report : AuditReport
            The report to export.

        Returns
        -------
        str
            Path to the created CSV file.
        """
        output_path = self._get_output_path()
        if output_path.parent and not output_path.parent.exists():
            output_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(
            f"Exporting {report.application_count} applications and "
            f"{report.empty_plan_count} empty plans to {output_path}"
        )

        with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
            self.write(report, csvfile)

        logger.info(f"CSV export complete: {output_path}")
        return str(output_path)

    def to_string(self, report: AuditReport) -> str:
        """Render the report as CSV text."""
        buffer = io.StringIO()
        self.write(report, buffer)
        return buffer.getvalue()

    def write(self, report: AuditReport, stream: TextIO) -> None:
        """Write the report as CSV to an open text stream."""
        writer = csv.writer(stream, quoting=csv.QUOTE_MINIMAL)

        self._write_metadata(writer, report)

        writer.writerow(["# Applications"])
        writer.writerow(self.APPLICATION_COLUMNS)
        risks = {finding.application.id: finding for finding in report.risk_findings}
        for app in report.applications:
            writer.writerow(self._format_application_row(app, risks.get(app.id)))
        writer.writerow([])

        writer.writerow(["# Empty Plans"])
        writer.writerow(self.EMPTY_PLAN_COLUMNS)
        for finding in report.empty_plans:
            writer.writerow(self._format_empty_plan_row(finding))

    def _write_metadata(self, writer: Any, report: AuditReport) -> None:
        writer.writerow(["# Audit Metadata"])
        writer.writerow(["# Generated:", datetime.now().isoformat(timespec="seconds")])
        writer.writerow(["# Subscriptions:", report.subscription_count])
        writer.writerow(["# Applications:", report.application_count])
        writer.writerow(["# Hosting Plans:", report.plan_count])
        writer.writerow(["# Empty Plans:", report.empty_plan_count])
        writer.writerow(["# Monthly Waste (USD):", f"{report.empty_plan_monthly_usd:.2f}"])
        writer.writerow(["# Annual Waste (USD):", f"{report.empty_plan_annual_usd:.2f}"])
        writer.writerow(["# Risky Applications:", report.risk_count])
        writer.writerow(["# Errors:", report.error_count])
        if report.interrupted:
            writer.writerow(["# Interrupted:", "true"])
        writer.writerow([])  # Empty row for separation

    def _format_application_row(
        self,
        app: ComputeApplication,
        risk: Optional[RiskFinding],
    ) -> List[Any]:
        return [
            app.subscription_name,
            app.resource_group,
            app.name,
            app.kind.value,
            app.state.value,
            app.os_type.value,
            app.runtime_label,
            app.location,
            app.plan_reference or "",
            "" if app.https_only is None else app.https_only,
            app.min_tls_version or "",
            app.ftps_policy.value if app.ftps_policy else "",
            app.identity.value,
            app.owner or "",
            risk.score if risk else 0,
            "; ".join(risk.issues) if risk else "",
            self._format_tags(app.tags),
        ]

    @staticmethod
    def _format_empty_plan_row(finding: EmptyPlanFinding) -> List[Any]:
        plan = finding.plan
        return [
            plan.subscription_name,
            plan.resource_group,
            plan.name,
            plan.location,
            plan.sku.tier_label or plan.sku.tier.value,
            plan.sku.size,
            plan.sku.capacity,
            f"{finding.monthly_usd:.2f}",
            f"{finding.annual_usd:.2f}",
        ]

    @staticmethod
    def _format_tags(tags: Dict[str, str]) -> str:
        """Format tags as ``key1=value1; key2=value2``."""
        if not tags:
            return ""
        return "; ".join(f"{k}={v}" for k, v in sorted(tags.items()))

    def __repr__(self) -> str:
        return f"CSVReporter(output_path={self.output_path!r})"
