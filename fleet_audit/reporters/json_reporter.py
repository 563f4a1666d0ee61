"""
JSON Reporter Module
====================

Exports results to JSON for programmatic access and pipelines.

Classes
-------
JSONReporter
    Serializes an :class:`AggregateResult` or :class:`CostBreakdown`.

Example
-------
>>> reporter = JSONReporter(output_path="audit.json")
>>> filepath = reporter.report(result)
>>>
>>> # Or get as string for stdout
>>> json_str = reporter.to_string(result)

Output Structure
----------------
Waste or security scan::

    {
      "scan_type": "waste",
      "units_scanned": ["eu-west-1", "us-east-1"],
      "total_potential_savings": 42.5,
      "findings": {
        "volume": {"count": 2, "monthly_cost": 12.0, "items": [...]},
        ...
      },
      "label_counts": {...},
      "skipped": [...],
      "errors": [...]
    }

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
from typing import Any, Dict, Optional, Union

from fleet_audit.core.aggregator import AggregateResult, CostBreakdown

# Module logger
logger = logging.getLogger(__name__)

Reportable = Union[AggregateResult, CostBreakdown]


class JSONReporter:
    """
    Reporter for exporting results to JSON.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, a timestamped filename
        in the current directory is used.
    indent : int, default=2
        JSON indentation level. Set to None for compact output.

    Examples
    --------
    >>> reporter = JSONReporter(indent=None)
    >>> json_str = reporter.to_string(breakdown)
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        indent: Optional[int] = 2,
    ) -> None:
        self.output_path = output_path
        self.indent = indent
        logger.debug(f"Initialized JSONReporter (output_path={output_path})")

    def _get_output_path(self, report_name: str) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"fleet_audit_{report_name}_{timestamp}.json")

    @staticmethod
    def _report_name(result: Reportable) -> str:
        if isinstance(result, CostBreakdown):
            return "cost"
        return result.scan_type

    def report(self, result: Reportable) -> str:
        """
        Write the result to a JSON file.

        Parameters
        ----------
        result : AggregateResult or CostBreakdown
            Result to export.

        Returns
        -------
        str
            Path to the created JSON file.
        """
        output_path = self._get_output_path(self._report_name(result))
        logger.info(f"Exporting {self._report_name(result)} report to {output_path}")

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(result), f, indent=self.indent, default=str)

        logger.info(f"JSON export complete: {output_path}")
        return str(output_path)

    def to_string(self, result: Reportable) -> str:
        """Convert the result to a JSON string without writing a file."""
        return json.dumps(self.to_dict(result), indent=self.indent, default=str)

    def to_dict(self, result: Reportable) -> Dict[str, Any]:
        return result.to_dict()

    def __repr__(self) -> str:
        return f"JSONReporter(output_path={self.output_path!r}, indent={self.indent})"
