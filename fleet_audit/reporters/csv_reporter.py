"""
CSV Reporter Module
===================

Exports audit findings to CSV for spreadsheet analysis.

Classes
-------
CSVReporter
    One row per finding.

Example
-------
>>> reporter = CSVReporter(output_path="audit.csv")
>>> filepath = reporter.report(result)

Output Format
-------------
Metadata rows prefixed with ``#`` (file output only), an empty separator
row, the column headers, then the data rows::

    # Scan Metadata
    # Scan Type:,waste
    # Regions Scanned:,2
    # Total Findings:,3
    # Potential Savings:,18.60
    # Scan Time:,2024-01-15T10:30:00+00:00

    Region,Type,Resource ID,Details,Monthly Cost
    us-east-1,EBS Volume,vol-0abc,100GB gp2,10.00

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
from typing import Any, List, Optional

from fleet_audit.core.aggregator import AggregateResult
from fleet_audit.core.findings import Finding
from fleet_audit.core.taxonomy import ResourceKind

# Module logger
logger = logging.getLogger(__name__)

# Short resource type names for the Type column
TYPE_NAMES = {
    ResourceKind.VOLUME: "EBS Volume",
    ResourceKind.INSTANCE: "EC2 Instance",
    ResourceKind.SNAPSHOT: "EBS Snapshot",
    ResourceKind.ELASTIC_IP: "Elastic IP",
    ResourceKind.DATABASE: "RDS Instance",
    ResourceKind.SECURITY_GROUP: "Security Group",
    ResourceKind.BUCKET: "S3 Bucket",
}


class CSVReporter:
    """
    Reporter for exporting findings to CSV.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, a timestamped filename
        in the current directory is used.

    Examples
    --------
    >>> reporter = CSVReporter()
    >>> print(reporter.to_string(result))
    """

    COLUMNS = [
        "Region",
        "Type",
        "Resource ID",
        "Details",
        "Monthly Cost",
    ]

    def __init__(self, output_path: Optional[str] = None) -> None:
        self.output_path = output_path
        logger.debug(f"Initialized CSVReporter (output_path={output_path})")

    def _get_output_path(self, scan_type: str) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"fleet_audit_{scan_type}_{timestamp}.csv")

    def report(self, result: AggregateResult) -> str:
        """
        Export findings to a CSV file with a metadata header.

        Returns
        -------
        str
            Path to the created CSV file.
        """
        output_path = self._get_output_path(result.scan_type)

        logger.info(f"Exporting {len(result.findings)} findings to {output_path}")

        with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile, quoting=csv.QUOTE_MINIMAL)
            self._write_metadata(writer, result)
            self._write_rows(writer, result)

        logger.info(f"CSV export complete: {output_path}")
        return str(output_path)

    def to_string(self, result: AggregateResult) -> str:
        """Render the header row and findings as CSV text."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL)
        self._write_rows(writer, result)
        return buffer.getvalue()

    def _write_metadata(self, writer, result: AggregateResult) -> None:
        writer.writerow(["# Scan Metadata"])
        writer.writerow(["# Scan Type:", result.scan_type])
        writer.writerow(["# Regions Scanned:", len(result.units)])
        if len(result.units) <= 5:
            writer.writerow(["# Region List:", ", ".join(result.units)])
        writer.writerow(["# Total Findings:", len(result.findings)])
        writer.writerow(["# Potential Savings:", f"{result.total_potential_savings:.2f}"])
        writer.writerow(["# Scan Time:", result.scan_time.isoformat()])
        writer.writerow([])

    def _write_rows(self, writer, result: AggregateResult) -> None:
        writer.writerow(self.COLUMNS)
        for finding in result.findings:
            writer.writerow(self._format_row(finding))

    @staticmethod
    def _format_row(finding: Finding) -> List[Any]:
        return [
            finding.unit,
            TYPE_NAMES.get(finding.kind, finding.kind.display_name),
            finding.resource_id,
            finding.details(),
            "" if finding.monthly_cost is None else f"{finding.monthly_cost:.2f}",
        ]

    def __repr__(self) -> str:
        return f"CSVReporter(output_path={self.output_path!r})"
