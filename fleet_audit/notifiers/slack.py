"""
Slack Notifier Module
=====================

Posts audit summaries to a Slack incoming webhook.

Classes
-------
SlackNotifier
    Builds attachment-style messages and posts them with ``requests``.

Example
-------
>>> notifier = SlackNotifier("https://hooks.slack.com/services/T000/B000/XXX")
>>> if notifier.send_audit_alert(result, alert_threshold=100.0):
...     print("alert sent")

Notes
-----
Every ``send_*`` method returns False without posting when there is nothing
to alert on, and True after a successful post.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from fleet_audit.core.aggregator import AggregateResult
from fleet_audit.core.exceptions import NotificationError
from fleet_audit.core.taxonomy import (
    WASTE_KINDS,
    CertificateStatus,
    DisruptionBudgetStatus,
    ResourceKind,
    Severity,
)

# Module logger
logger = logging.getLogger(__name__)

# Savings above these amounts turn the attachment yellow, then red
WARNING_SAVINGS = 500.0
DANGER_SAVINGS = 1000.0

_KIND_EMOJI = {
    ResourceKind.VOLUME: ":package:",
    ResourceKind.INSTANCE: ":computer:",
    ResourceKind.SNAPSHOT: ":camera:",
    ResourceKind.ELASTIC_IP: ":globe_with_meridians:",
    ResourceKind.DATABASE: ":card_file_box:",
}

_CERT_MARKERS = {
    CertificateStatus.EXPIRED.value: ":red_circle: EXPIRED",
    CertificateStatus.CRITICAL.value: ":large_orange_circle: CRITICAL",
    CertificateStatus.EXPIRING_SOON.value: ":large_yellow_circle: EXPIRING SOON",
    CertificateStatus.VALID.value: ":large_green_circle: VALID",
}

_PDB_MARKERS = {
    DisruptionBudgetStatus.CRITICAL.value: ":red_circle: CRITICAL",
    DisruptionBudgetStatus.AT_RISK.value: ":large_yellow_circle: AT-RISK",
    DisruptionBudgetStatus.NO_PODS.value: ":white_circle: NO-PODS",
}


def _field(title: str, value: Any, short: bool = True) -> Dict[str, Any]:
    return {"title": title, "value": str(value), "short": short}


def savings_color(savings: float) -> str:
    if savings > DANGER_SAVINGS:
        return "danger"
    if savings > WARNING_SAVINGS:
        return "warning"
    return "good"


class SlackNotifier:
    """
    Slack incoming-webhook client.

    Parameters
    ----------
    webhook_url : str
        Incoming webhook URL.
    session : requests.Session, optional
        Session used for posting; a new one is created if omitted.
    timeout : float, default=10
        Request timeout in seconds.

    Raises
    ------
    NotificationError
        If ``webhook_url`` is empty.
    """

    def __init__(
        self,
        webhook_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10,
    ) -> None:
        if not webhook_url:
            raise NotificationError("Slack webhook URL is empty")
        self.webhook_url = webhook_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def send_message(self, message: Dict[str, Any]) -> None:
        """
        Post a raw webhook payload.

        Raises
        ------
        NotificationError
            On a transport failure or a non-200 response.
        """
        try:
            response = self.session.post(
                self.webhook_url, json=message, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise NotificationError(f"Failed to send request to Slack: {e}")

        if response.status_code != 200:
            raise NotificationError(
                f"Slack returned non-OK status: {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:200]},
            )
        logger.info("Slack alert sent")

    # =========================================================================
    # Alerts
    # =========================================================================

    def send_audit_alert(
        self, result: AggregateResult, alert_threshold: float = 0.0
    ) -> bool:
        """
        Alert on waste findings when savings exceed ``alert_threshold``.

        Returns
        -------
        bool
            True if a message was posted.
        """
        savings = result.total_potential_savings
        if savings <= alert_threshold:
            logger.info(
                f"Savings ${savings:.2f} below threshold ${alert_threshold:.2f}; no alert sent"
            )
            return False
        self.send_message(self.build_audit_message(result))
        return True

    def build_audit_message(self, result: AggregateResult) -> Dict[str, Any]:
        savings = result.total_potential_savings
        lines: List[str] = []
        for kind in WASTE_KINDS:
            findings = result.findings_of(kind)
            if findings:
                lines.append(
                    f"{_KIND_EMOJI[kind]} *{kind.display_name}:* {len(findings)} "
                    f"(Est. ${result.cost_of(kind):.2f}/mo)"
                )
        text = "\n".join(lines) or (
            ":white_check_mark: No issues found! Your AWS environment looks clean."
        )
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        return {
            "text": (
                ":mag: *AWS Audit Report*\n"
                f"AWS audit completed for regions: {', '.join(result.successful_units)}"
            ),
            "attachments": [
                {
                    "color": savings_color(savings),
                    "text": text,
                    "fields": [
                        _field(":moneybag: Total Potential Savings", f"*${savings:.2f}/month*"),
                        _field(":calendar: Timestamp", timestamp),
                        _field(":clipboard: Total Resources Found", len(result.findings)),
                    ],
                }
            ],
        }

    def send_security_alert(self, result: AggregateResult) -> bool:
        """Alert when the security scan produced any finding."""
        if not result.findings:
            logger.info("No security findings; no alert sent")
            return False
        self.send_message(self.build_security_message(result))
        return True

    def build_security_message(self, result: AggregateResult) -> Dict[str, Any]:
        counts = result.count_by_severity()
        color = "good"
        if counts[Severity.HIGH] or counts[Severity.MEDIUM]:
            color = "warning"
        if counts[Severity.CRITICAL]:
            color = "danger"

        lines: List[str] = []
        buckets = result.findings_of(ResourceKind.BUCKET)
        if buckets:
            lines.append(f":bucket: *Public S3 Buckets:* {len(buckets)}")
            lines.extend(f"  • `{b.resource_id}` ({b.reason})" for b in buckets)
        groups = result.findings_of(ResourceKind.SECURITY_GROUP)
        if groups:
            lines.append(f":shield: *Open Security Groups:* {len(groups)}")
            lines.extend(
                f"  • `{g.resource_id}` - Port {g.port} ({g.port_name}) open to {g.cidr}"
                for g in groups
            )

        return {
            "text": (
                ":lock: *AWS Security Audit Report*\n"
                f"Region: {', '.join(result.successful_units)}"
            ),
            "attachments": [
                {
                    "color": color,
                    "text": "\n".join(lines),
                    "fields": [
                        _field(":red_circle: Critical", counts[Severity.CRITICAL]),
                        _field(":large_yellow_circle: High", counts[Severity.HIGH]),
                    ],
                }
            ],
        }

    def send_certificate_alert(self, result: AggregateResult, expiry_days: int) -> bool:
        """Alert when any certificate falls inside the expiry window."""
        certs = result.findings_of(ResourceKind.CERTIFICATE)
        if not certs:
            logger.info(f"No certificates expiring within {expiry_days} days; no alert sent")
            return False
        self.send_message(self.build_certificate_message(result, expiry_days))
        return True

    def build_certificate_message(
        self, result: AggregateResult, expiry_days: int
    ) -> Dict[str, Any]:
        certs = result.findings_of(ResourceKind.CERTIFICATE)
        counts = result.label_counts(ResourceKind.CERTIFICATE)
        expired = counts.get(CertificateStatus.EXPIRED.value, 0)
        critical = counts.get(CertificateStatus.CRITICAL.value, 0)
        expiring = counts.get(CertificateStatus.EXPIRING_SOON.value, 0)

        color = "good"
        if expired or critical:
            color = "danger"
        elif expiring:
            color = "warning"

        text = "\n".join(
            f"{_CERT_MARKERS.get(c.label_value, c.label_value)} *{c.resource_id}* - "
            f"{c.days_remaining} days remaining ({', '.join(c.dns_names)})"
            for c in certs
        )
        return {
            "text": (
                ":lock: *Kubernetes TLS Certificate Expiry Alert*\n"
                f"Found {len(certs)} TLS certificate(s) expiring within {expiry_days} days"
            ),
            "attachments": [
                {
                    "color": color,
                    "text": text,
                    "fields": [
                        _field(":calendar: Certificates Found", len(certs)),
                        _field(":warning: Critical (<7 days)", critical),
                        _field(":hourglass: Expiring Soon (<30 days)", expiring),
                        _field(":x: Expired", expired),
                    ],
                }
            ],
        }

    def send_pdb_alert(self, result: AggregateResult) -> bool:
        """Alert when any disruption budget is critical, at-risk or has no pods."""
        counts = result.label_counts(ResourceKind.DISRUPTION_BUDGET)
        issues = sum(counts.get(status, 0) for status in _PDB_MARKERS)
        if not issues:
            logger.info("All PodDisruptionBudgets are healthy; no alert sent")
            return False
        self.send_message(self.build_pdb_message(result))
        return True

    def build_pdb_message(self, result: AggregateResult) -> Dict[str, Any]:
        budgets = result.findings_of(ResourceKind.DISRUPTION_BUDGET)
        counts = result.label_counts(ResourceKind.DISRUPTION_BUDGET)
        critical = counts.get(DisruptionBudgetStatus.CRITICAL.value, 0)
        at_risk = counts.get(DisruptionBudgetStatus.AT_RISK.value, 0)
        no_pods = counts.get(DisruptionBudgetStatus.NO_PODS.value, 0)

        color = "good"
        if critical:
            color = "danger"
        elif at_risk or no_pods:
            color = "warning"

        text = "\n".join(
            f"{_PDB_MARKERS[b.label_value]} *{b.resource_id}* - {b.message}"
            for b in budgets
            if b.label_value in _PDB_MARKERS
        )
        return {
            "text": (
                ":shield: *Kubernetes PodDisruptionBudget Alert*\n"
                f"Found {critical + at_risk + no_pods} PodDisruptionBudget issue(s)"
            ),
            "attachments": [
                {
                    "color": color,
                    "text": text,
                    "fields": [
                        _field(":clipboard: Total PDBs", len(budgets)),
                        _field(":warning: At-Risk", at_risk),
                        _field(":red_circle: Critical", critical),
                        _field(":x: No Matching Pods", no_pods),
                    ],
                }
            ],
        }

    def __repr__(self) -> str:
        return f"SlackNotifier(timeout={self.timeout})"
