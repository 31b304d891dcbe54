"""
Report Generators
=================

This module provides output formatters for audit reports.

Each reporter renders an :class:`~planaudit.core.aggregator.AuditReport`
in a format suited to a different use case (terminal review, spreadsheet
analysis, pipelines).

Available Reporters
-------------------
CLIReporter
    Rich terminal output with summary, distributions and top-N tables.
CSVReporter
    CSV export with one row per application and one per empty plan.
JSONReporter
    JSON export of the complete report.

Example
-------
>>> from planaudit.reporters import CLIReporter, CSVReporter, JSONReporter
>>>
>>> CLIReporter().report(report)
>>> filepath = CSVReporter(output_path="./reports/audit.csv").report(report)
>>> json_str = JSONReporter().to_string(report)

See Also
--------
planaudit.core.aggregator.AuditReport : Input data structure.
"""

from planaudit.reporters.cli_reporter import CLIReporter
from planaudit.reporters.csv_reporter import CSVReporter
from planaudit.reporters.json_reporter import JSONReporter

__all__ = [
    "CLIReporter",
    "CSVReporter",
    "JSONReporter",
]
