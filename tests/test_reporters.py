"""
Tests for the Reporter modules.
"""

import csv
import json
from datetime import datetime, timezone

import pytest
from rich.console import Console

from fleet_audit.core.aggregator import CostBreakdown, merge_results
from fleet_audit.core.base_scanner import ScanUnitResult, SkippedRecord
from fleet_audit.core.exceptions import ResourceFetchError
from fleet_audit.core.findings import (
    CertificateFinding,
    DisruptionBudgetFinding,
    OpenSecurityGroupFinding,
    PodFinding,
    PublicBucketFinding,
    UnattachedVolumeFinding,
    UnusedElasticIPFinding,
)
from fleet_audit.core.taxonomy import (
    CertificateStatus,
    DisruptionBudgetStatus,
    PodStatus,
    ResourceKind,
    Severity,
)
from fleet_audit.reporters.cli_reporter import CLIReporter
from fleet_audit.reporters.csv_reporter import CSVReporter
from fleet_audit.reporters.json_reporter import JSONReporter


@pytest.fixture
def waste_result():
    """Two regions of waste findings and one failed region."""
    east = ScanUnitResult(
        unit="us-east-1",
        scan_type="waste",
        findings=(
            UnattachedVolumeFinding(
                resource_id="vol-0abc", unit="us-east-1", monthly_cost=10.0, label=None,
                size_gb=100, volume_type="gp2", availability_zone="us-east-1a", age_days=12,
            ),
            UnusedElasticIPFinding(
                resource_id="eipalloc-1", unit="us-east-1", monthly_cost=3.6, label=None,
                public_ip="203.0.113.7",
            ),
        ),
        scanned={ResourceKind.VOLUME: 4, ResourceKind.ELASTIC_IP: 2},
    )
    west = ScanUnitResult(
        unit="us-west-2",
        scan_type="waste",
        findings=(
            UnattachedVolumeFinding(
                resource_id="vol-0def", unit="us-west-2", monthly_cost=5.0, label=None,
                size_gb=50, volume_type="gp2", availability_zone="us-west-2b",
            ),
        ),
        scanned={ResourceKind.VOLUME: 1},
        skipped=(SkippedRecord(ResourceKind.VOLUME, "vol-bad", "missing Size", "us-west-2"),),
    )
    failures = {"eu-west-1": ResourceFetchError("Failed to fetch volumes")}
    return merge_results("waste", [east, west], failures)


@pytest.fixture
def empty_result():
    return merge_results(
        "waste", [ScanUnitResult(unit="us-east-1", scan_type="waste")]
    )


@pytest.fixture
def security_result():
    unit = ScanUnitResult(
        unit="us-east-1",
        scan_type="security",
        findings=(
            PublicBucketFinding(
                resource_id="open-bucket", unit="us-east-1", monthly_cost=None,
                label=Severity.HIGH, reason="ACL grants public access",
            ),
            OpenSecurityGroupFinding(
                resource_id="sg-123", unit="us-east-1", monthly_cost=None,
                label=Severity.CRITICAL, group_name="bastion", port=22,
                port_name="SSH", protocol="TCP", cidr="0.0.0.0/0",
            ),
        ),
        scanned={ResourceKind.BUCKET: 3, ResourceKind.SECURITY_GROUP: 5},
    )
    return merge_results("security", [unit])


@pytest.fixture
def breakdown():
    return CostBreakdown.from_amounts(
        "SERVICE",
        {"Amazon EC2": 120.0, "Amazon S3": 30.0},
        daily={"2024-01-01": 70.0, "2024-01-02": 80.0},
        start_date="2024-01-01",
        end_date="2024-01-03",
    )


@pytest.fixture
def reporter():
    return CLIReporter(console=Console(record=True, width=200))


class TestCLIReporter:
    """Tests for CLIReporter class."""

    def test_audit_report(self, reporter, waste_result):
        """Test waste tables, savings and diagnostics."""
        reporter.report_audit(waste_result)
        output = reporter.console.export_text()

        assert "Unattached EBS Volumes (2)" in output
        assert "vol-0abc" in output
        assert "Unused Elastic IPs (1)" in output
        assert "$18.60" in output
        assert "Annual Savings:" in output
        assert "$223.20" in output
        assert "Errors encountered:" in output
        assert "Failed to fetch volumes" in output
        assert "Skipped records:" in output
        assert "vol-bad" in output

    def test_audit_report_empty(self, reporter, empty_result):
        """Test the message shown when nothing is wasted."""
        reporter.report_audit(empty_result)
        output = reporter.console.export_text()

        assert "No wasteful resources found." in output
        assert "Annual Savings:" not in output
        assert "Errors encountered:" not in output

    def test_security_report(self, reporter, security_result):
        """Test bucket and security group tables with the severity summary."""
        reporter.report_security(security_result)
        output = reporter.console.export_text()

        assert "Public S3 Buckets" in output
        assert "open-bucket" in output
        assert "sg-123 (bastion)" in output
        assert "22 SSH" in output
        assert "critical" in output
        assert "Summary" in output

    def test_security_report_clean(self, reporter):
        """Test the empty security messages."""
        result = merge_results(
            "security", [ScanUnitResult(unit="us-east-1", scan_type="security")]
        )
        reporter.report_security(result)
        output = reporter.console.export_text()

        assert "No public buckets found." in output
        assert "No risky security groups found." in output

    def test_cost_report(self, reporter, breakdown):
        """Test the cost table and daily trend."""
        reporter.report_cost(breakdown)
        output = reporter.console.export_text()

        assert "Total Cost: $150.00 USD" in output
        assert "Cost Breakdown by SERVICE" in output
        assert "80.0%" in output
        assert "Daily Spending Trend" in output
        assert "2024-01-02" in output

    def test_cost_report_empty(self, reporter):
        """Test a period without spend."""
        reporter.report_cost(CostBreakdown.from_amounts("SERVICE", {}))
        output = reporter.console.export_text()

        assert "Total Cost: $0.00" in output
        assert "No cost data for this period." in output
        assert "Daily Spending Trend" not in output

    def test_certificate_report(self, reporter):
        """Test the certificate table and the status summary."""
        cert = CertificateFinding(
            resource_id="prod/web-tls", unit="prod", monthly_cost=None,
            label=CertificateStatus.CRITICAL, secret_name="web-tls",
            common_name="example.com", dns_names=("example.com", "www.example.com"),
            issuer="Test CA", not_after=datetime(2024, 6, 5, tzinfo=timezone.utc),
            days_remaining=3,
        )
        result = merge_results(
            "cluster",
            [
                ScanUnitResult(
                    unit="prod",
                    scan_type="cluster",
                    findings=(cert,),
                    scanned={ResourceKind.CERTIFICATE: 4},
                    status_counts={
                        ResourceKind.CERTIFICATE: {"critical": 1, "valid": 3}
                    },
                )
            ],
        )
        reporter.report_certificates(result, expiry_days=30)
        output = reporter.console.export_text()

        assert "1 certificate(s) expiring within 30 days (scanned 4 TLS secrets)" in output
        assert "web-tls" in output
        assert "2024-06-05 00:00" in output
        assert "example.com, www.example.com" in output

    def test_certificate_report_none_expiring(self, reporter):
        """Test the message shown when nothing is inside the window."""
        result = merge_results(
            "cluster",
            [
                ScanUnitResult(
                    unit="default",
                    scan_type="cluster",
                    scanned={ResourceKind.CERTIFICATE: 2},
                    status_counts={ResourceKind.CERTIFICATE: {"valid": 2}},
                )
            ],
        )
        reporter.report_certificates(result, expiry_days=14)
        output = reporter.console.export_text()

        assert "No certificates expiring within 14 days (scanned 2 TLS secrets)." in output

    def test_disruption_budget_report(self, reporter):
        """Test the PodDisruptionBudget table."""
        pdb = DisruptionBudgetFinding(
            resource_id="prod/api", unit="prod", monthly_cost=None,
            label=DisruptionBudgetStatus.CRITICAL, name="api", min_available="2",
            expected_pods=3, current_healthy=2, desired_healthy=2,
            disruptions_allowed=0, message="Zero disruptions allowed and unhealthy pods",
        )
        result = merge_results(
            "cluster", [ScanUnitResult(unit="prod", scan_type="cluster", findings=(pdb,))]
        )
        reporter.report_disruption_budgets(result)
        output = reporter.console.export_text()

        assert "PodDisruptionBudgets" in output
        assert "2/2" in output
        assert "Zero disruptions allowed and unhealthy pods" in output

    def test_health_report(self, reporter):
        """Test the pod table and the unhealthy count."""
        pod = PodFinding(
            resource_id="prod/api-1", unit="prod", monthly_cost=None,
            label=PodStatus.NOT_READY, name="api-1", phase="Running",
            ready_containers=1, total_containers=2, restarts=4, node_name="node-a",
        )
        result = merge_results(
            "cluster", [ScanUnitResult(unit="prod", scan_type="cluster", findings=(pod,))]
        )
        reporter.report_health(result)
        output = reporter.console.export_text()

        assert "Pods" in output
        assert "api-1" in output
        assert "1/2" in output
        assert "No warning events in the last hour." in output
        assert "Unhealthy objects: 1" in output

    def test_scanning_message(self, reporter):
        """Test the multi-unit preview."""
        units = [f"region-{i}" for i in range(7)]
        reporter.print_scanning_message("AWS resources", units)
        output = reporter.console.export_text()

        assert "across 7 units" in output
        assert "(7 total)" in output


class TestJSONReporter:
    """Tests for JSONReporter class."""

    def test_report_to_file(self, waste_result, tmp_path):
        """Test writing a waste result to the given path."""
        output_path = tmp_path / "audit.json"
        filepath = JSONReporter(output_path=str(output_path)).report(waste_result)

        assert filepath == str(output_path)
        data = json.loads(output_path.read_text())
        assert data["scan_type"] == "waste"
        assert data["units_scanned"] == ["eu-west-1", "us-east-1", "us-west-2"]
        assert data["successful_units"] == ["us-east-1", "us-west-2"]
        assert data["total_potential_savings"] == 18.6
        assert data["findings"]["volume"]["count"] == 2
        assert data["errors"][0]["unit"] == "eu-west-1"
        assert data["skipped"][0]["resource_id"] == "vol-bad"

    def test_default_filename(self, breakdown, tmp_path, monkeypatch):
        """Test the timestamped default name for a cost report."""
        monkeypatch.chdir(tmp_path)
        filepath = JSONReporter().report(breakdown)

        assert filepath.startswith("fleet_audit_cost_")
        assert filepath.endswith(".json")
        assert (tmp_path / filepath).exists()

    def test_to_string(self, breakdown):
        """Test serializing without writing a file."""
        data = json.loads(JSONReporter(indent=None).to_string(breakdown))

        assert data["group_by"] == "SERVICE"
        assert data["total"] == 150.0
        assert [i["key"] for i in data["items"]] == ["Amazon EC2", "Amazon S3"]

    def test_security_counts(self, security_result):
        """Test that security output carries severity counts."""
        data = JSONReporter().to_dict(security_result)
        assert data["count_by_severity"] == {"critical": 1, "high": 1, "medium": 0}


class TestCSVReporter:
    """Tests for CSVReporter class."""

    def test_report_to_file(self, waste_result, tmp_path):
        """Test the metadata block followed by the rows."""
        output_path = tmp_path / "audit.csv"
        CSVReporter(output_path=str(output_path)).report(waste_result)

        with open(output_path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))

        assert rows[0] == ["# Scan Metadata"]
        assert ["# Scan Type:", "waste"] in rows
        assert ["# Potential Savings:", "18.60"] in rows
        header_index = rows.index(CSVReporter.COLUMNS)
        assert rows[header_index - 1] == []
        assert rows[header_index + 1] == [
            "us-east-1", "EBS Volume", "vol-0abc", "100GB gp2", "10.00",
        ]
        assert len(rows) - header_index - 1 == 3

    def test_to_string(self, security_result):
        """Test rows without metadata and the blank cost cell."""
        rows = list(csv.reader(CSVReporter().to_string(security_result).splitlines()))

        assert rows[0] == CSVReporter.COLUMNS
        assert rows[1] == [
            "us-east-1", "S3 Bucket", "open-bucket", "ACL grants public access", "",
        ]
        assert rows[2][1] == "Security Group"
