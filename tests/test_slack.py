"""
Tests for the Slack notifier.
"""

from unittest.mock import MagicMock

import pytest
import requests

from fleet_audit.core.aggregator import merge_results
from fleet_audit.core.base_scanner import ScanUnitResult
from fleet_audit.core.exceptions import NotificationError
from fleet_audit.core.findings import (
    CertificateFinding,
    DisruptionBudgetFinding,
    OpenSecurityGroupFinding,
    UnattachedVolumeFinding,
)
from fleet_audit.core.taxonomy import CertificateStatus, DisruptionBudgetStatus, Severity
from fleet_audit.notifiers.slack import SlackNotifier, savings_color

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXX"


def waste(*costs):
    findings = tuple(
        UnattachedVolumeFinding(
            resource_id=f"vol-{i}", unit="us-east-1", monthly_cost=cost, label=None,
            size_gb=10, volume_type="gp2",
        )
        for i, cost in enumerate(costs)
    )
    return merge_results(
        "waste", [ScanUnitResult(unit="us-east-1", scan_type="waste", findings=findings)]
    )


def cluster(*findings):
    return merge_results(
        "cluster", [ScanUnitResult(unit="prod", scan_type="cluster", findings=findings)]
    )


def budget(name, status, message):
    return DisruptionBudgetFinding(
        resource_id=f"prod/{name}", unit="prod", monthly_cost=None, label=status,
        name=name, message=message,
    )


@pytest.fixture
def session():
    session = MagicMock()
    session.post.return_value.status_code = 200
    return session


@pytest.fixture
def notifier(session):
    return SlackNotifier(WEBHOOK, session=session, timeout=5)


class TestSlackNotifier:
    """Tests for SlackNotifier class."""

    def test_empty_webhook(self):
        """Test that an empty URL is rejected."""
        with pytest.raises(NotificationError):
            SlackNotifier("")

    def test_send_message(self, notifier, session):
        """Test posting a payload as JSON with the timeout."""
        notifier.send_message({"text": "hello"})
        session.post.assert_called_once_with(WEBHOOK, json={"text": "hello"}, timeout=5)

    def test_non_200_response(self, notifier, session):
        """Test that an error status raises NotificationError."""
        session.post.return_value.status_code = 404
        session.post.return_value.text = "no_service"

        with pytest.raises(NotificationError) as exc_info:
            notifier.send_message({"text": "hello"})
        assert exc_info.value.details["status_code"] == 404

    def test_transport_error(self, notifier, session):
        """Test that a requests failure raises NotificationError."""
        session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(NotificationError, match="refused"):
            notifier.send_message({"text": "hello"})


class TestAuditAlert:
    """Tests for the waste alert."""

    def test_below_threshold(self, notifier, session):
        """Test that savings at the threshold do not alert."""
        assert notifier.send_audit_alert(waste(60.0, 40.0), alert_threshold=100.0) is False
        session.post.assert_not_called()

    def test_above_threshold(self, notifier, session):
        """Test the message posted when savings exceed the threshold."""
        assert notifier.send_audit_alert(waste(600.0), alert_threshold=100.0) is True

        message = session.post.call_args.kwargs["json"]
        attachment = message["attachments"][0]
        assert "us-east-1" in message["text"]
        assert attachment["color"] == "warning"
        assert "Unattached EBS Volumes:* 1" in attachment["text"]
        assert attachment["fields"][0]["value"] == "*$600.00/month*"

    def test_savings_color(self):
        """Test the colour bands."""
        assert savings_color(100.0) == "good"
        assert savings_color(500.0) == "good"
        assert savings_color(500.01) == "warning"
        assert savings_color(1000.01) == "danger"


class TestSecurityAlert:
    """Tests for the security alert."""

    def test_no_findings(self, notifier, session):
        """Test that a clean scan does not alert."""
        result = merge_results(
            "security", [ScanUnitResult(unit="us-east-1", scan_type="security")]
        )
        assert notifier.send_security_alert(result) is False
        session.post.assert_not_called()

    def test_critical_is_danger(self, notifier):
        """Test the message for an open SSH port."""
        finding = OpenSecurityGroupFinding(
            resource_id="sg-1", unit="us-east-1", monthly_cost=None,
            label=Severity.CRITICAL, group_name="web", port=22, port_name="SSH",
            protocol="TCP", cidr="0.0.0.0/0",
        )
        result = merge_results(
            "security",
            [ScanUnitResult(unit="us-east-1", scan_type="security", findings=(finding,))],
        )
        attachment = notifier.build_security_message(result)["attachments"][0]

        assert attachment["color"] == "danger"
        assert "Port 22 (SSH) open to 0.0.0.0/0" in attachment["text"]
        assert attachment["fields"][0]["value"] == "1"


class TestClusterAlerts:
    """Tests for the certificate and PodDisruptionBudget alerts."""

    def test_certificate_alert(self, notifier, session):
        """Test the certificate expiry message."""
        cert = CertificateFinding(
            resource_id="prod/web-tls", unit="prod", monthly_cost=None,
            label=CertificateStatus.EXPIRING_SOON, secret_name="web-tls",
            dns_names=("example.com",), days_remaining=20,
        )
        assert notifier.send_certificate_alert(cluster(cert), expiry_days=30) is True

        message = session.post.call_args.kwargs["json"]
        attachment = message["attachments"][0]
        assert "expiring within 30 days" in message["text"]
        assert attachment["color"] == "warning"
        assert "*prod/web-tls* - 20 days remaining (example.com)" in attachment["text"]

    def test_certificate_alert_empty(self, notifier, session):
        """Test that nothing is sent without certificates in the window."""
        assert notifier.send_certificate_alert(cluster(), expiry_days=30) is False
        session.post.assert_not_called()

    def test_pdb_alert_healthy(self, notifier, session):
        """Test that healthy budgets do not alert."""
        result = cluster(budget("api", DisruptionBudgetStatus.HEALTHY, "1 disruption(s) allowed"))
        assert notifier.send_pdb_alert(result) is False
        session.post.assert_not_called()

    def test_pdb_alert_lists_only_issues(self, notifier, session):
        """Test that only non-healthy budgets are listed."""
        result = cluster(
            budget("api", DisruptionBudgetStatus.HEALTHY, "1 disruption(s) allowed"),
            budget("db", DisruptionBudgetStatus.CRITICAL, "Zero disruptions allowed and unhealthy pods"),
            budget("cache", DisruptionBudgetStatus.NO_PODS, "No matching pods found"),
        )
        assert notifier.send_pdb_alert(result) is True

        message = session.post.call_args.kwargs["json"]
        attachment = message["attachments"][0]
        assert "Found 2 PodDisruptionBudget issue(s)" in message["text"]
        assert attachment["color"] == "danger"
        assert "prod/api" not in attachment["text"]
        assert "*prod/db*" in attachment["text"]
        assert attachment["fields"][0]["value"] == "3"
