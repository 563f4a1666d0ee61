"""
Report Generators
=================

Output formatters for aggregated results and cost breakdowns.

Available Reporters
-------------------
CLIReporter
    Rich terminal output with formatted tables and progress indicators.
CSVReporter
    CSV export of findings for spreadsheet analysis.
JSONReporter
    JSON export for pipelines and programmatic access.

Example
-------
>>> from fleet_audit.reporters import CLIReporter, JSONReporter
>>>
>>> CLIReporter().report_audit(result)
>>> json_str = JSONReporter().to_string(result)
"""

from fleet_audit.reporters.cli_reporter import CLIReporter
from fleet_audit.reporters.csv_reporter import CSVReporter
from fleet_audit.reporters.json_reporter import JSONReporter

__all__ = [
    "CLIReporter",
    "CSVReporter",
    "JSONReporter",
]
