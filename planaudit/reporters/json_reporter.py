"""
JSON Reporter Module
====================

Exports audit reports to JSON format for programmatic access and pipelines.

Classes
-------
JSONReporter
    Main reporter class for JSON export.

Example
-------
>>> from planaudit.reporters import JSONReporter
>>>
>>> reporter = JSONReporter(output_path="audit.json")
>>> filepath = reporter.report(audit_report)
>>>
>>> # Or get as string
>>> json_str = reporter.to_string(audit_report)

Output Structure
----------------
::

    {
      "metadata": {
        "tool": "plan-audit",
        "version": "0.1.0",
        "generated_at": "2024-06-01T10:30:00",
        "pricing_version": "2024-06"
      },
      "report": {
        "summary": {...},
        "distributions": {"state": {"Running": 12, "Stopped": 2}, ...},
        "top_risks": [...],
        "top_empty_plans": [...],
        ...
      }
    }

Money amounts are strings with two decimal places, so totals survive a
round trip through JSON without floating point drift.

See Also
--------
CLIReporter : For terminal display.
CSVReporter : For spreadsheet export.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from planaudit import __version__
from planaudit.core.aggregator import AuditReport

# Module logger
logger = logging.getLogger(__name__)


class JSONReporter:
    """
    Reporter for exporting audit reports to JSON format.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, generates a
        timestamped filename in the current directory.
    indent : int, default=2
        JSON indentation level. Set to None for compact output.
    pricing_version : str, optional
        Price list version recorded in the metadata.

    Examples
    --------
    >>> reporter = JSONReporter(output_path="audit.json")
    >>> filepath = reporter.report(report)

    Compact output:

    >>> json_str = JSONReporter(indent=None).to_string(report)
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        indent: Optional[int] = 2,
        pricing_version: Optional[str] = None,
    ) -> None:
        self.output_path = output_path
        self.indent = indent
        self.pricing_version = pricing_version
        logger.debug(f"Initialized JSONReporter (output_path={output_path})")

    def _get_output_path(self) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"plan_audit_{timestamp}.json")

    def report(self, report: AuditReport) -> str:
        """
        Export an audit report to a JSON file.

        Returns
        -------
        str
            Path to the created JSON file.
        """
        output_path = self._get_output_path()
        if output_path.parent and not output_path.parent.exists():
            output_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Exporting audit report to {output_path}")

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(report), f, indent=self.indent, default=str)

        logger.info(f"JSON export complete: {output_path}")
        return str(output_path)

    def to_string(self, report: AuditReport) -> str:
        """
        Convert an audit report to a JSON string without writing a file.

        Example
        -------
        >>> data = json.loads(JSONReporter().to_string(report))
        >>> data["report"]["summary"]["empty_plan_monthly_usd"]
        '73.00'
        """
        return json.dumps(self.to_dict(report), indent=self.indent, default=str)

    def to_dict(self, report: AuditReport) -> Dict[str, Any]:
        """Wrap the report's dictionary form with run metadata."""
        metadata: Dict[str, Any] = {
            "tool": "plan-audit",
            "version": __version__,
            "generated_at": datetime.now().isoformat(timespec="seconds"),
        }
        if self.pricing_version:
            metadata["pricing_version"] = self.pricing_version
        return {"metadata": metadata, "report": report.to_dict()}

    def __repr__(self) -> str:
        return f"JSONReporter(output_path={self.output_path!r}, indent={self.indent})"
