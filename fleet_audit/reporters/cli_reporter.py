"""
CLI Reporter Module
===================

Provides rich terminal output for audit results using the Rich library.

Classes
-------
CLIReporter
    Renders waste audits, security audits, cost breakdowns, certificate
    expiry, disruption budgets and cluster health as tables and panels.

Example
-------
>>> reporter = CLIReporter()
>>> reporter.report_audit(result)
>>> reporter.report_cost(breakdown)

Notes
-----
Every report ends with the "Errors encountered" and "Skipped records"
sections when the result carries failed units or skipped records.

See Also
--------
JSONReporter : For programmatic access.
CSVReporter : For spreadsheet export.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from fleet_audit.core.aggregator import AggregateResult, CostBreakdown
from fleet_audit.core.findings import Finding
from fleet_audit.core.taxonomy import (
    UNHEALTHY_LABELS,
    WASTE_KINDS,
    CertificateStatus,
    DisruptionBudgetStatus,
    ResourceKind,
    Severity,
)

# Module logger
logger = logging.getLogger(__name__)

# Label value to Rich style
LABEL_STYLES: Dict[str, str] = {
    Severity.CRITICAL.value: "red bold",
    Severity.HIGH.value: "yellow",
    Severity.MEDIUM.value: "dark_orange",
    CertificateStatus.EXPIRED.value: "red bold",
    CertificateStatus.EXPIRING_SOON.value: "yellow",
    CertificateStatus.VALID.value: "green",
    DisruptionBudgetStatus.AT_RISK.value: "yellow",
    DisruptionBudgetStatus.NO_PODS.value: "dim",
    DisruptionBudgetStatus.HEALTHY.value: "green",
}

_UNHEALTHY_VALUES = frozenset(label.value for label in UNHEALTHY_LABELS)


def _money(amount: Optional[float]) -> str:
    return "-" if amount is None else f"${amount:,.2f}"


def _styled(label_value: Optional[str]) -> str:
    if label_value is None:
        return "-"
    style = LABEL_STYLES.get(label_value)
    if style is None:
        style = "red" if label_value in _UNHEALTHY_VALUES else "green"
    return f"[{style}]{label_value}[/]"


def _age(created: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Compact age such as ``3d4h``; ``-`` when unknown."""
    if created is None:
        return "-"
    now = now or datetime.now(timezone.utc)
    hours = int((now - created).total_seconds() // 3600)
    days, hours = divmod(max(hours, 0), 24)
    return f"{days}d{hours}h" if days else f"{hours}h"


class CLIReporter:
    """
    Reporter for displaying results in the terminal.

    Parameters
    ----------
    console : Console, optional
        Rich Console instance. If not provided, creates a new one.

    Examples
    --------
    >>> from rich.console import Console
    >>> reporter = CLIReporter(console=Console(record=True, width=120))
    >>> reporter.report_security(result)
    >>> text = reporter.console.export_text()
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        logger.debug("Initialized CLIReporter")

    # =========================================================================
    # AWS Reports
    # =========================================================================

    def report_audit(self, result: AggregateResult) -> None:
        """
        Report waste findings, one table per resource kind, then the savings.

        Parameters
        ----------
        result : AggregateResult
            Aggregated waste scan.
        """
        self._print_header("AWS Waste Audit", result.units)

        found_any = False
        for kind in WASTE_KINDS:
            findings = result.findings_of(kind)
            if not findings:
                continue
            found_any = True
            self._print_waste_table(kind, findings, result.cost_of(kind))

        if not found_any:
            self.console.print("\n[green]No wasteful resources found.[/green]")

        savings = result.total_potential_savings
        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Metric", style="cyan")
        summary.add_column("Value", style="white")
        summary.add_row("Regions Scanned:", str(len(result.successful_units)))
        summary.add_row("Findings:", str(len(result.findings)))
        savings_style = "red" if savings > 0 else "green"
        summary.add_row("Monthly Savings:", f"[{savings_style}]{_money(savings)}[/]")
        if savings > 0:
            summary.add_row("Annual Savings:", _money(savings * 12))

        self.console.print(Panel(summary, title="Potential Savings", border_style="green"))
        self._print_diagnostics(result)

    def _print_waste_table(
        self, kind: ResourceKind, findings: Sequence[Finding], subtotal: float
    ) -> None:
        columns, rows = self._waste_rows(kind, findings)
        table = Table(
            title=f"\n{kind.display_name} ({len(findings)})",
            title_style="bold",
            caption=f"Subtotal: {_money(subtotal)}/month",
        )
        table.add_column("Region", style="yellow", no_wrap=True)
        table.add_column("Resource ID", style="cyan", no_wrap=True)
        for column in columns:
            table.add_column(column)
        table.add_column("Monthly Cost", justify="right")

        for finding, row in zip(findings, rows):
            table.add_row(
                finding.unit, finding.resource_id, *row, _money(finding.monthly_cost)
            )
        self.console.print(table)

    @staticmethod
    def _waste_rows(kind: ResourceKind, findings: Sequence[Finding]):
        if kind is ResourceKind.VOLUME:
            columns = ["Size (GB)", "Type", "AZ", "Age (days)"]
            rows = [
                [str(f.size_gb), f.volume_type, f.availability_zone,
                 "-" if f.age_days is None else str(f.age_days)]
                for f in findings
            ]
        elif kind is ResourceKind.INSTANCE:
            columns = ["Name", "Type", "Avg CPU %"]
            rows = [[f.name or "-", f.instance_type, f"{f.avg_cpu:.2f}%"] for f in findings]
        elif kind is ResourceKind.SNAPSHOT:
            columns = ["Volume ID", "Size (GB)", "Age (days)"]
            rows = [
                [f.volume_id, str(f.size_gb),
                 "-" if f.age_days is None else str(f.age_days)]
                for f in findings
            ]
        elif kind is ResourceKind.ELASTIC_IP:
            columns = ["Public IP"]
            rows = [[f.public_ip] for f in findings]
        else:
            columns = ["Class", "Engine", "Avg CPU %"]
            rows = [[f.instance_class, f.engine, f"{f.avg_cpu:.2f}%"] for f in findings]
        return columns, rows

    def report_security(self, result: AggregateResult) -> None:
        """Report public buckets and open security groups with a severity summary."""
        self._print_header("AWS Security Audit", result.units)

        buckets = result.findings_of(ResourceKind.BUCKET)
        if buckets:
            table = Table(title="\nPublic S3 Buckets", title_style="bold")
            table.add_column("Region", style="yellow", no_wrap=True)
            table.add_column("Bucket", style="cyan")
            table.add_column("Reason")
            table.add_column("Severity")
            for finding in buckets:
                table.add_row(
                    finding.unit,
                    finding.resource_id,
                    finding.reason,
                    _styled(finding.label_value),
                )
            self.console.print(table)
        else:
            self.console.print("\n[green]No public buckets found.[/green]")

        groups = result.findings_of(ResourceKind.SECURITY_GROUP)
        if groups:
            table = Table(
                title="\nOpen Security Groups (risky ports exposed to the internet)",
                title_style="bold",
            )
            table.add_column("Region", style="yellow", no_wrap=True)
            table.add_column("Security Group", style="cyan")
            table.add_column("Port", justify="right")
            table.add_column("Protocol")
            table.add_column("Source")
            table.add_column("Severity")
            for finding in groups:
                table.add_row(
                    finding.unit,
                    f"{finding.resource_id} ({self._truncate(finding.group_name, 20)})",
                    f"{finding.port} {finding.port_name}",
                    finding.protocol,
                    finding.cidr,
                    _styled(finding.label_value),
                )
            self.console.print(table)
        else:
            self.console.print("\n[green]No risky security groups found.[/green]")

        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Severity", style="cyan")
        summary.add_column("Count", justify="right")
        for severity, count in sorted(
            result.count_by_severity().items(), key=lambda kv: -kv[0].rank
        ):
            summary.add_row(_styled(severity.value), str(count))
        self.console.print(Panel(summary, title="Summary", border_style="blue"))
        self._print_diagnostics(result)

    def report_cost(self, breakdown: CostBreakdown) -> None:
        """Report a cost breakdown with percentages and the daily trend."""
        header = Text()
        header.append("\nCost Report\n", style="bold blue")
        header.append(f"{breakdown.start_date} to {breakdown.end_date}", style="dim")
        self.console.print(Panel(header, border_style="blue"))

        self.console.print(
            f"\n[bold]Total Cost:[/bold] {_money(breakdown.total)} {breakdown.currency}"
        )

        if breakdown.items:
            table = Table(title=f"\nCost Breakdown by {breakdown.group_by}", title_style="bold")
            table.add_column(breakdown.group_by, style="cyan")
            table.add_column("Cost", justify="right")
            table.add_column("% of Total", justify="right")
            for item in breakdown.items:
                table.add_row(item.key, _money(item.amount), f"{item.percentage:.1f}%")
            self.console.print(table)
        else:
            self.console.print("\n[yellow]No cost data for this period.[/yellow]")

        if breakdown.daily:
            trend = Table(title="\nDaily Spending Trend", title_style="bold")
            trend.add_column("Date", style="cyan")
            trend.add_column("Daily Cost", justify="right")
            for day in breakdown.daily:
                trend.add_row(day.date, _money(day.amount))
            self.console.print(trend)

    # =========================================================================
    # Kubernetes Reports
    # =========================================================================

    def report_certificates(self, result: AggregateResult, expiry_days: int) -> None:
        """
        Report certificates expiring within ``expiry_days``.

        Parameters
        ----------
        result : AggregateResult
            Aggregated certificate scan.
        expiry_days : int
            Window used to select the listed certificates.
        """
        scanned = result.scanned_count(ResourceKind.CERTIFICATE)
        certs = result.findings_of(ResourceKind.CERTIFICATE)
        self._print_header("TLS Certificate Expiry", result.units, unit_label="Namespaces")

        if not certs:
            self.console.print(
                f"\n[green]No certificates expiring within {expiry_days} days "
                f"(scanned {scanned} TLS secrets).[/green]"
            )
        else:
            table = Table(
                title=(
                    f"\n{len(certs)} certificate(s) expiring within {expiry_days} days "
                    f"(scanned {scanned} TLS secrets)"
                ),
                title_style="bold",
            )
            table.add_column("Secret", style="cyan")
            table.add_column("Namespace", style="yellow")
            table.add_column("Days Remaining", justify="right")
            table.add_column("DNS Names", max_width=40)
            table.add_column("Expiry Date")
            table.add_column("Status")
            for cert in certs:
                table.add_row(
                    self._truncate(cert.secret_name, 28),
                    cert.unit,
                    str(cert.days_remaining),
                    ", ".join(cert.dns_names),
                    cert.not_after.strftime("%Y-%m-%d %H:%M") if cert.not_after else "-",
                    _styled(cert.label_value),
                )
            self.console.print(table)

        counts = result.status_counts(ResourceKind.CERTIFICATE)
        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Status", style="cyan")
        summary.add_column("Count", justify="right")
        for status in CertificateStatus:
            summary.add_row(_styled(status.value), str(counts.get(status.value, 0)))
        self.console.print(Panel(summary, title="Summary", border_style="blue"))
        self._print_diagnostics(result)

    def report_disruption_budgets(self, result: AggregateResult) -> None:
        """Report every PodDisruptionBudget with its status and reason."""
        budgets = result.findings_of(ResourceKind.DISRUPTION_BUDGET)
        self._print_header("PodDisruptionBudget Status", result.units, unit_label="Namespaces")

        if not budgets:
            self.console.print(
                f"\nNo PodDisruptionBudgets found "
                f"(scanned {len(result.successful_units)} namespaces)."
            )
        else:
            table = Table(title="\nPodDisruptionBudgets", title_style="bold")
            table.add_column("Namespace", style="yellow")
            table.add_column("Name", style="cyan")
            table.add_column("Min Avail", justify="right")
            table.add_column("Max Unavail", justify="right")
            table.add_column("Current", justify="right")
            table.add_column("Allowed", justify="right")
            table.add_column("Status")
            table.add_column("Message")
            for pdb in budgets:
                table.add_row(
                    pdb.unit,
                    self._truncate(pdb.name, 30),
                    pdb.min_available,
                    pdb.max_unavailable,
                    f"{pdb.current_healthy}/{pdb.desired_healthy}",
                    str(pdb.disruptions_allowed),
                    _styled(pdb.label_value),
                    pdb.message,
                )
            self.console.print(table)

            counts = result.label_counts(ResourceKind.DISRUPTION_BUDGET)
            summary = Table(show_header=False, box=None, padding=(0, 2))
            summary.add_column("Status", style="cyan")
            summary.add_column("Count", justify="right")
            for status in DisruptionBudgetStatus:
                summary.add_row(_styled(status.value), str(counts.get(status.value, 0)))
            self.console.print(Panel(summary, title="Summary", border_style="blue"))

        self._print_diagnostics(result)

    def report_health(self, result: AggregateResult) -> None:
        """Report pod, deployment and node health plus recent Warning events."""
        self._print_header("Kubernetes Cluster Health", result.units, unit_label="Units")

        pods = result.findings_of(ResourceKind.POD)
        if pods:
            table = Table(title="\nPods", title_style="bold")
            for column in ("Namespace", "Name", "Ready", "Phase", "Restarts", "Node", "Status"):
                table.add_column(column)
            for pod in pods:
                table.add_row(
                    pod.unit, pod.name, pod.ready, pod.phase, str(pod.restarts),
                    pod.node_name or "-", _styled(pod.label_value),
                )
            self.console.print(table)

        deployments = result.findings_of(ResourceKind.DEPLOYMENT)
        if deployments:
            table = Table(title="\nDeployments", title_style="bold")
            for column in ("Namespace", "Name", "Ready", "Up-to-date", "Available", "Status"):
                table.add_column(column)
            for dep in deployments:
                table.add_row(
                    dep.unit, dep.name, dep.ready, str(dep.updated_replicas),
                    str(dep.available_replicas), _styled(dep.label_value),
                )
            self.console.print(table)

        nodes = result.findings_of(ResourceKind.NODE)
        if nodes:
            table = Table(title="\nNodes", title_style="bold")
            for column in ("Name", "Status", "Roles", "Version", "CPU", "Memory", "Pods"):
                table.add_column(column)
            for node in nodes:
                table.add_row(
                    node.resource_id, _styled(node.label_value), ",".join(node.roles),
                    node.kubelet_version, node.cpu_capacity, node.memory_capacity,
                    node.pod_capacity,
                )
            self.console.print(table)

        events = result.findings_of(ResourceKind.EVENT)
        if events:
            table = Table(title="\nRecent Warning Events (last hour)", title_style="bold")
            for column in ("Namespace", "Kind", "Name", "Reason", "Count", "Age"):
                table.add_column(column)
            for event in events:
                table.add_row(
                    event.unit, event.object_kind, event.object_name, event.reason,
                    str(event.count), _age(event.last_seen),
                )
            self.console.print(table)
        else:
            self.console.print("\n[green]No warning events in the last hour.[/green]")

        unhealthy = sum(
            1 for f in result.findings
            if f.label is not None and f.label in UNHEALTHY_LABELS
        )
        style = "red" if unhealthy else "green"
        self.console.print(f"\n[bold]Unhealthy objects:[/bold] [{style}]{unhealthy}[/]")
        self._print_diagnostics(result)

    # =========================================================================
    # Private Methods: Output Formatting
    # =========================================================================

    def _print_header(
        self, title: str, units: List[str], unit_label: str = "Regions"
    ) -> None:
        unit_text = ", ".join(units) if len(units) <= 5 else f"{len(units)} {unit_label.lower()}"

        header_text = Text()
        header_text.append(f"\n{title}\n", style="bold blue")
        header_text.append(f"{unit_label}: {unit_text or '-'}", style="dim")

        self.console.print(Panel(header_text, border_style="blue"))

    def _print_diagnostics(self, result: AggregateResult) -> None:
        if result.failures:
            self.console.print("\n[yellow bold]Errors encountered:[/yellow bold]")
            for failure in result.failures:
                self.console.print(f"\n[yellow]{failure.unit}:[/yellow]")
                self.console.print(f"  [red]• {failure.error_type}: {failure.error}[/red]")

        if result.skipped:
            self.console.print("\n[yellow bold]Skipped records:[/yellow bold]")
            for skipped in result.skipped:
                self.console.print(
                    f"  [dim]• {skipped.kind.value} {skipped.resource_id}: {skipped.reason}[/dim]"
                )

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        if len(text) <= max_length:
            return text
        return text[:max_length - 3] + "..."

    # =========================================================================
    # Public Methods: Messages
    # =========================================================================

    def print_scanning_message(self, what: str, units: List[str]) -> None:
        """
        Print a message about the units being scanned.

        Example
        -------
        >>> reporter.print_scanning_message("AWS resources", ["us-east-1", "eu-west-1"])
        """
        if len(units) == 1:
            self.console.print(f"\n[bold]Scanning {what} in {units[0]}...[/bold]")
            return
        preview = ", ".join(units[:5])
        if len(units) > 5:
            preview += f"... ({len(units)} total)"
        self.console.print(f"\n[bold]Scanning {what} across {len(units)} units...[/bold]")
        self.console.print(f"[dim]{preview}[/dim]")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"\n[yellow bold]Warning:[/yellow bold] {message}")

    def print_info(self, message: str) -> None:
        self.console.print(f"\n[blue]Info:[/blue] {message}")

    def __repr__(self) -> str:
        return "CLIReporter()"
