"""
Tests for the command-line interface.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from fleet_audit import __version__
from fleet_audit.core.aggregator import CostBreakdown, merge_results
from fleet_audit.core.base_scanner import ScanUnitResult
from fleet_audit.core.exceptions import CredentialsError, NotificationError, ResourceFetchError
from fleet_audit.core.findings import DisruptionBudgetFinding, UnattachedVolumeFinding
from fleet_audit.core.taxonomy import (
    SECURITY_KINDS,
    WASTE_KINDS,
    DisruptionBudgetStatus,
    ResourceKind,
)
from fleet_audit.main import cli
from fleet_audit.scanners.cluster_scanner import CLUSTER_UNIT
from fleet_audit.scanners.security_scanner import SecurityScanner
from fleet_audit.scanners.waste_scanner import WasteScanner


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("fleet_audit.main.setup_logging"):
        yield


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def aws_mocks():
    with patch("fleet_audit.main.RegionManager") as manager_cls, patch(
        "fleet_audit.main.AWSClient"
    ) as client_cls:
        yield manager_cls, client_cls


@pytest.fixture
def waste_result():
    volume = UnattachedVolumeFinding(
        resource_id="vol-1", unit="us-east-1", monthly_cost=10.0, label=None,
        size_gb=100, volume_type="gp2",
    )
    return merge_results(
        "waste", [ScanUnitResult(unit="us-east-1", scan_type="waste", findings=(volume,))]
    )


def budget_result(*namespaces):
    return merge_results(
        "cluster",
        [
            ScanUnitResult(
                unit=ns,
                scan_type="cluster",
                findings=(
                    DisruptionBudgetFinding(
                        resource_id=f"{ns}/api", unit=ns, monthly_cost=None,
                        label=DisruptionBudgetStatus.AT_RISK, name="api",
                        min_available="2", expected_pods=3, current_healthy=2,
                        desired_healthy=2, disruptions_allowed=0,
                        message="Zero disruptions allowed",
                    ),
                ),
            )
            for ns in namespaces
        ],
    )


def scanned_config(manager_cls):
    return manager_cls.return_value.scan_regions.call_args.kwargs["config"]


class TestCLI:
    """Tests for the top-level group."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_groups(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("aws", "cost", "k8s", "regions", "validate"):
            assert name in result.output


class TestAwsAudit:
    """Tests for the aws audit command."""

    def test_json_to_stdout(self, runner, aws_mocks, waste_result):
        """Test that JSON goes to stdout and every waste check runs."""
        manager_cls, client_cls = aws_mocks
        manager_cls.return_value.scan_regions.return_value = waste_result

        result = runner.invoke(cli, ["aws", "audit", "--regions", "us-east-1", "--format", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["total_potential_savings"] == 10.0
        client_cls.assert_called_once_with(region="us-east-1", profile=None)
        client_cls.return_value.validate_credentials.assert_called_once_with()
        call = manager_cls.return_value.scan_regions.call_args
        assert call.args[0] is WasteScanner
        assert call.kwargs["regions"] == ["us-east-1"]
        assert call.kwargs["progress_callback"] is None
        assert scanned_config(manager_cls).enabled_checks == frozenset(WASTE_KINDS)

    def test_toggles(self, runner, aws_mocks, waste_result):
        """Test that --no-* flags disable checks."""
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = waste_result

        result = runner.invoke(
            cli, ["aws", "audit", "-r", "us-east-1", "-f", "json", "--no-rds", "--no-ec2"]
        )

        assert result.exit_code == 0, result.output
        assert scanned_config(manager_cls).enabled_checks == frozenset(
            {ResourceKind.VOLUME, ResourceKind.SNAPSHOT, ResourceKind.ELASTIC_IP}
        )

    def test_checks_override_toggles(self, runner, aws_mocks, waste_result):
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = waste_result

        result = runner.invoke(
            cli, ["aws", "audit", "-r", "us-east-1", "-f", "json", "--checks", "volume", "--no-ebs"]
        )

        assert result.exit_code == 0, result.output
        assert scanned_config(manager_cls).enabled_checks == frozenset({ResourceKind.VOLUME})

    def test_unknown_check(self, runner, aws_mocks):
        result = runner.invoke(cli, ["aws", "audit", "-r", "us-east-1", "--checks", "lambda"])
        assert result.exit_code == 2
        assert "Unknown check" in result.output

    def test_bad_format(self, runner, aws_mocks):
        result = runner.invoke(cli, ["aws", "audit", "-r", "us-east-1", "--format", "xml"])
        assert result.exit_code == 2
        assert "Unsupported output format" in result.output

    def test_all_regions(self, runner, aws_mocks, waste_result):
        """Test that --all-regions asks the manager for the region list."""
        manager_cls, client_cls = aws_mocks
        manager = manager_cls.return_value
        manager.get_all_regions.return_value = ["eu-west-1", "us-east-1"]
        manager.scan_regions.return_value = waste_result

        result = runner.invoke(cli, ["aws", "audit", "--all-regions", "-f", "json"])

        assert result.exit_code == 0, result.output
        assert manager.scan_regions.call_args.kwargs["regions"] == ["eu-west-1", "us-east-1"]
        client_cls.assert_called_once_with(region="eu-west-1", profile=None)

    def test_every_region_failed(self, runner, aws_mocks):
        """Test exit code 1 when no region could be scanned."""
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = merge_results(
            "waste", [], {"us-east-1": ResourceFetchError("Failed to fetch volumes")}
        )

        result = runner.invoke(cli, ["aws", "audit", "-r", "us-east-1"])

        assert result.exit_code == 1
        assert "every scan unit failed" in result.output
        assert "Failed to fetch volumes" in result.output

    def test_invalid_credentials(self, runner, aws_mocks):
        """Test that a library error prints and exits 1."""
        _, client_cls = aws_mocks
        client_cls.return_value.validate_credentials.side_effect = CredentialsError(
            "No AWS credentials found"
        )

        result = runner.invoke(cli, ["aws", "audit", "-r", "us-east-1"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "No AWS credentials found" in result.output

    def test_unexpected_error(self, runner, aws_mocks):
        """Test that a non-library error prints and exits 1."""
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.side_effect = RuntimeError("boom")

        result = runner.invoke(cli, ["aws", "audit", "-r", "us-east-1"])

        assert result.exit_code == 1
        assert "Unexpected error:" in result.output
        assert "boom" in result.output

    def test_table_output(self, runner, aws_mocks, waste_result, tmp_path):
        """Test the table report plus a JSON copy on disk."""
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = waste_result
        output = tmp_path / "audit.json"

        result = runner.invoke(cli, ["aws", "audit", "-r", "us-east-1", "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Scanning AWS resources in us-east-1" in result.output
        assert "vol-1" in result.output
        assert json.loads(output.read_text())["findings"]["volume"]["count"] == 1

    def test_csv_to_stdout(self, runner, aws_mocks, waste_result):
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = waste_result

        result = runner.invoke(cli, ["aws", "audit", "-r", "us-east-1", "-f", "csv"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "Region,Type,Resource ID,Details,Monthly Cost"
        assert lines[1] == "us-east-1,EBS Volume,vol-1,100GB gp2,10.00"

    def test_slack_alert(self, runner, aws_mocks, waste_result):
        """Test that the alert uses the threshold."""
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = waste_result

        with patch("fleet_audit.main.SlackNotifier") as notifier_cls:
            notifier_cls.return_value.send_audit_alert.return_value = True
            result = runner.invoke(
                cli,
                [
                    "aws", "audit", "-r", "us-east-1",
                    "--slack-webhook", "https://hooks.slack.com/x",
                    "--alert-threshold", "5",
                ],
            )

        assert result.exit_code == 0, result.output
        notifier_cls.assert_called_once_with("https://hooks.slack.com/x")
        notifier_cls.return_value.send_audit_alert.assert_called_once_with(waste_result, 5.0)
        assert "Slack alert sent successfully!" in result.output

    def test_slack_failure_only_warns(self, runner, aws_mocks, waste_result):
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = waste_result

        with patch("fleet_audit.main.SlackNotifier") as notifier_cls:
            notifier_cls.return_value.send_audit_alert.side_effect = NotificationError(
                "Slack returned non-OK status: 500"
            )
            result = runner.invoke(
                cli, ["aws", "audit", "-r", "us-east-1", "--slack-webhook", "https://x"]
            )

        assert result.exit_code == 0
        assert "Warning:" in result.output
        assert "non-OK status: 500" in result.output


class TestAwsSecurity:
    """Tests for the aws security command."""

    def test_single_region(self, runner, aws_mocks):
        manager_cls, _ = aws_mocks
        manager_cls.return_value.scan_regions.return_value = merge_results(
            "security", [ScanUnitResult(unit="eu-west-1", scan_type="security")]
        )

        result = runner.invoke(cli, ["aws", "security", "--region", "eu-west-1"])

        assert result.exit_code == 0, result.output
        call = manager_cls.return_value.scan_regions.call_args
        assert call.args[0] is SecurityScanner
        assert call.kwargs["regions"] == ["eu-west-1"]
        assert call.kwargs["config"].enabled_checks == frozenset(SECURITY_KINDS)
        assert "No public buckets found." in result.output


class TestCostReport:
    """Tests for the cost report command."""

    @pytest.fixture
    def analyzer(self):
        with patch("fleet_audit.main.CostAnalyzer") as analyzer_cls, patch(
            "fleet_audit.main.AWSClient"
        ):
            analyzer = analyzer_cls.return_value
            analyzer.get_cost_breakdown.return_value = CostBreakdown.from_amounts(
                "REGION", {"us-east-1": 80.0, "eu-west-1": 15.0, "us-west-2": 5.0}
            )
            yield analyzer

    def test_json_top_n(self, runner, analyzer):
        """Test grouping, the day count and the Other row."""
        result = runner.invoke(
            cli,
            ["cost", "report", "--days", "14", "--group-by", "region", "--top", "1", "-f", "json"],
        )

        assert result.exit_code == 0, result.output
        analyzer.get_cost_breakdown.assert_called_once_with(days=14, group_by="REGION")
        data = json.loads(result.output)
        assert [(i["key"], i["amount"]) for i in data["items"]] == [
            ("us-east-1", 80.0),
            ("Other", 20.0),
        ]

    def test_table(self, runner, analyzer):
        result = runner.invoke(cli, ["cost", "report"])
        assert result.exit_code == 0, result.output
        assert "Total Cost: $100.00 USD" in result.output
        analyzer.get_cost_breakdown.assert_called_once_with(days=7, group_by="SERVICE")

    @pytest.mark.parametrize(
        "args",
        [["--days", "0"], ["--top", "0"], ["--group-by", "account"]],
    )
    def test_invalid_options(self, runner, analyzer, args):
        result = runner.invoke(cli, ["cost", "report", *args])
        assert result.exit_code == 2
        analyzer.get_cost_breakdown.assert_not_called()


class TestKubernetes:
    """Tests for the k8s commands."""

    @pytest.fixture
    def kube(self):
        with patch("fleet_audit.main.KubeClient") as kube_cls:
            kube_cls.return_value.list_namespaces.return_value = ["default", "prod"]
            yield kube_cls

    @pytest.fixture
    def unit_runner(self):
        with patch("fleet_audit.main.UnitRunner") as runner_cls:
            yield runner_cls.return_value

    def test_pdb_all_namespaces(self, runner, kube, unit_runner):
        """Test that every namespace is scanned and the group options reach the client."""
        unit_runner.run.return_value = budget_result("default", "prod")

        result = runner.invoke(
            cli, ["k8s", "--context", "staging", "--timeout", "5", "pdb", "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        kube.assert_called_once_with(kubeconfig=None, context="staging", timeout=5)
        assert unit_runner.run.call_args.args[0] == ["default", "prod"]
        assert unit_runner.run.call_args.kwargs["scan_type"] == "cluster"
        data = json.loads(result.output)
        assert data["label_counts"]["disruption_budget"] == {"at-risk": 2}

    def test_pdb_table(self, runner, kube, unit_runner):
        unit_runner.run.return_value = budget_result("prod")

        result = runner.invoke(cli, ["k8s", "pdb", "--namespace", "prod"])

        assert result.exit_code == 0, result.output
        assert unit_runner.run.call_args.args[0] == ["prod"]
        kube.return_value.list_namespaces.assert_not_called()
        assert "PodDisruptionBudget Status" in result.output

    def test_health_includes_nodes(self, runner, kube, unit_runner):
        """Test that the node unit is appended unless --no-nodes is given."""
        unit_runner.run.return_value = budget_result("default")

        result = runner.invoke(cli, ["k8s", "health", "-f", "json"])
        assert result.exit_code == 0, result.output
        assert unit_runner.run.call_args.args[0] == ["default", "prod", CLUSTER_UNIT]

        result = runner.invoke(cli, ["k8s", "health", "-n", "default", "--no-nodes", "-f", "json"])
        assert result.exit_code == 0, result.output
        assert unit_runner.run.call_args.args[0] == ["default"]

    def test_certs_window(self, runner, kube, unit_runner):
        """Test that --expiry-days reaches the scanner configuration."""
        unit_runner.run.return_value = merge_results(
            "cluster", [ScanUnitResult(unit="default", scan_type="cluster")]
        )

        with patch("fleet_audit.main.cluster_scanner_factory") as factory:
            result = runner.invoke(cli, ["k8s", "certs", "--expiry-days", "60"])

        assert result.exit_code == 0, result.output
        config = factory.call_args.args[1]
        assert config.enabled_checks == frozenset({ResourceKind.CERTIFICATE})
        assert config.thresholds.certificate_expiry_days == 60
        assert "No certificates expiring within 60 days" in result.output

    def test_every_namespace_failed(self, runner, kube, unit_runner):
        unit_runner.run.return_value = merge_results(
            "cluster",
            [],
            {
                "default": ResourceFetchError("Failed to list pods"),
                "prod": ResourceFetchError("Failed to list pods"),
            },
        )

        result = runner.invoke(cli, ["k8s", "pdb"])

        assert result.exit_code == 1
        assert "every scan unit failed" in result.output


class TestAccountCommands:
    """Tests for the regions and validate commands."""

    def test_regions(self, runner, aws_mocks):
        manager_cls, _ = aws_mocks
        manager_cls.return_value.get_all_regions.return_value = ["eu-west-1", "us-east-1"]

        result = runner.invoke(cli, ["regions"])

        assert result.exit_code == 0, result.output
        assert "Available AWS Regions (2 total)" in result.output
        assert "eu-west-1" in result.output

    def test_validate(self, runner, aws_mocks):
        _, client_cls = aws_mocks
        client_cls.return_value.get_account_id.return_value = "123456789012"

        result = runner.invoke(cli, ["validate", "--region", "eu-west-1"])

        assert result.exit_code == 0, result.output
        assert "AWS credentials are valid!" in result.output
        assert "123456789012" in result.output

    def test_validate_failure(self, runner, aws_mocks):
        _, client_cls = aws_mocks
        client_cls.return_value.validate_credentials.side_effect = CredentialsError(
            "Invalid AWS credentials"
        )

        result = runner.invoke(cli, ["validate"])

        assert result.exit_code == 1
        assert "Validation Failed" in result.output
