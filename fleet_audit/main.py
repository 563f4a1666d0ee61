"""
Fleet Audit CLI

Main entry point for the command-line interface.
"""

import functools
import sys
from typing import Callable, FrozenSet, List, Optional

import click
from rich.console import Console

from fleet_audit import __version__
from fleet_audit.core.aggregator import AggregateResult
from fleet_audit.core.aws_client import AWSClient
from fleet_audit.core.config import (
    DEFAULT_REGION,
    ENV_PROFILE,
    ENV_REGION,
    ENV_SLACK_WEBHOOK,
    GROUP_BY_DIMENSIONS,
    OUTPUT_FORMATS,
    AuditConfig,
    Thresholds,
    parse_checks,
    validate_group_by,
    validate_output_format,
    validate_top_n,
)
from fleet_audit.core.exceptions import (
    ConfigurationError,
    FleetAuditError,
    NotificationError,
)
from fleet_audit.core.kube_client import KubeClient
from fleet_audit.core.logging import setup_logging
from fleet_audit.core.region_manager import RegionManager, UnitRunner
from fleet_audit.core.taxonomy import SECURITY_KINDS, ResourceKind
from fleet_audit.notifiers.slack import SlackNotifier
from fleet_audit.reporters.cli_reporter import CLIReporter
from fleet_audit.reporters.csv_reporter import CSVReporter
from fleet_audit.reporters.json_reporter import JSONReporter
from fleet_audit.scanners.cluster_scanner import CLUSTER_UNIT, cluster_scanner_factory
from fleet_audit.scanners.cost_scanner import (
    DEFAULT_DAYS,
    DEFAULT_TOP_N,
    CostAnalyzer,
)
from fleet_audit.scanners.security_scanner import SecurityScanner
from fleet_audit.scanners.waste_scanner import WasteScanner


console = Console()

HEALTH_KINDS = (ResourceKind.POD, ResourceKind.DEPLOYMENT, ResourceKind.EVENT)


def validate_regions(ctx, param, value: Optional[str]) -> Optional[List[str]]:
    """Validate and parse comma-separated region list."""
    if value is None:
        return None
    regions = [r.strip() for r in value.split(",") if r.strip()]
    if not regions:
        raise click.BadParameter("No valid regions specified")
    return regions


def _checked(validator: Callable) -> Callable:
    """Turn a ConfigurationError-raising validator into a click callback."""

    def callback(ctx, param, value):
        if value is None:
            return None
        try:
            return validator(value)
        except ConfigurationError as e:
            raise click.BadParameter(e.message)

    return callback


def _validated(config: AuditConfig) -> AuditConfig:
    try:
        config.validate()
    except ConfigurationError as e:
        raise click.BadParameter(e.message)
    return config


def handle_errors(func: Callable) -> Callable:
    """Print errors and exit 1; exit 130 on Ctrl-C. Usage errors pass through to click."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except FleetAuditError as e:
            console.print(f"\n[red bold]Error:[/red bold] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Scan cancelled by user.[/yellow]")
            sys.exit(130)
        except click.ClickException:
            raise
        except Exception as e:
            console.print(f"\n[red bold]Unexpected error:[/red bold] {e}")
            sys.exit(1)

    return wrapper


def _progress_printer(total: int) -> Callable[[str, str], None]:
    completed = set()

    def progress_callback(unit: str, status: str) -> None:
        if status == "complete":
            completed.add(unit)
            console.print(f"  [dim]Completed: {unit} ({len(completed)}/{total})[/dim]")
        elif status == "error":
            console.print(f"  [yellow]Error scanning: {unit}[/yellow]")

    return progress_callback


def _exit_if_all_failed(result: AggregateResult) -> None:
    if result.all_failed:
        for failure in result.failures:
            console.print(f"  [red]• {failure.unit}: {failure.error}[/red]")
        console.print("\n[red bold]Error:[/red bold] every scan unit failed")
        sys.exit(1)


def _emit(
    result,
    output_format: str,
    output: Optional[str],
    render_table: Callable[[], None],
) -> None:
    """Render to the terminal, stdout or a file depending on the format."""
    if output_format == "json":
        if output:
            console.print(f"[dim]Results saved to: {JSONReporter(output_path=output).report(result)}[/dim]")
        else:
            click.echo(JSONReporter().to_string(result))
    elif output_format == "csv":
        if output:
            console.print(f"[dim]Results saved to: {CSVReporter(output_path=output).report(result)}[/dim]")
        else:
            click.echo(CSVReporter().to_string(result), nl=False)
    else:
        render_table()
        if output:
            reporter = JSONReporter(output_path=output)
            console.print(f"[dim]Results saved to: {reporter.report(result)}[/dim]")


def _notify(send: Callable[[SlackNotifier], bool], webhook: Optional[str]) -> None:
    """Send a Slack alert; delivery failures only warn."""
    if not webhook:
        return
    reporter = CLIReporter(console)
    try:
        notifier = SlackNotifier(webhook)
        if send(notifier):
            console.print("\n[green]Slack alert sent successfully![/green]")
        else:
            reporter.print_info("Slack webhook configured but nothing to alert on - no alert sent")
    except NotificationError as e:
        reporter.print_warning(f"Failed to send Slack alert: {e}")


@click.group()
@click.version_option(version=__version__, prog_name="fleet-audit")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level (default: WARNING)",
)
@click.option("--log-file", default=None, help="Also write logs to this file")
def cli(log_level: str, log_file: Optional[str]):
    """
    Fleet Audit: cloud and cluster auditing

    Finds wasted AWS spend, internet-exposed resources, expiring TLS
    certificates and unhealthy Kubernetes workloads.
    """
    setup_logging(level=log_level, log_file=log_file)


# =============================================================================
# AWS Commands
# =============================================================================


@cli.group("aws")
def aws():
    """AWS resource auditing."""
    pass


def _regions_for(
    regions: Optional[List[str]], all_regions: bool, manager: RegionManager
) -> List[str]:
    if all_regions:
        return manager.get_all_regions()
    return regions or [DEFAULT_REGION]


@aws.command("audit")
@click.option(
    "--regions",
    "-r",
    envvar=ENV_REGION,
    callback=validate_regions,
    help="Comma-separated regions to audit (default: $AWS_REGION or us-east-1)",
)
@click.option("--all-regions", is_flag=True, help="Audit every enabled region")
@click.option("--profile", "-p", envvar=ENV_PROFILE, default=None, help="AWS profile name")
@click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    callback=_checked(validate_output_format),
    help=f"Output format: {', '.join(OUTPUT_FORMATS)} (default: table)",
)
@click.option("--output", "-o", default=None, help="Write JSON/CSV output to this file")
@click.option("--ec2/--no-ec2", default=True, help="Include EC2 instance analysis")
@click.option("--ebs/--no-ebs", default=True, help="Include EBS volume analysis")
@click.option("--snapshots/--no-snapshots", default=True, help="Include snapshot analysis")
@click.option("--eips/--no-eips", default=True, help="Include Elastic IP analysis")
@click.option("--rds/--no-rds", default=True, help="Include RDS instance analysis")
@click.option(
    "--checks",
    default=None,
    help="Comma-separated checks to run (e.g. volume,elastic_ip); overrides the toggles",
)
@click.option(
    "--slack-webhook",
    envvar=ENV_SLACK_WEBHOOK,
    default=None,
    help="Slack webhook URL for alerts",
)
@click.option(
    "--alert-threshold",
    type=float,
    default=0.0,
    help="Minimum monthly savings that triggers a Slack alert (default: 0)",
)
@click.option("--max-workers", default=10, type=int, help="Maximum parallel region scans")
@click.option("--fail-fast", is_flag=True, help="Stop at the first region that fails")
@handle_errors
def aws_audit(
    regions: Optional[List[str]],
    all_regions: bool,
    profile: Optional[str],
    output_format: str,
    output: Optional[str],
    ec2: bool,
    ebs: bool,
    snapshots: bool,
    eips: bool,
    rds: bool,
    checks: Optional[str],
    slack_webhook: Optional[str],
    alert_threshold: float,
    max_workers: int,
    fail_fast: bool,
):
    """
    Audit AWS resources for waste.

    Finds unattached EBS volumes, underutilized EC2 instances (< 5% CPU),
    orphaned snapshots, unused Elastic IPs and underutilized RDS instances
    (< 10% CPU), with estimated monthly cost.

    Examples:

        fleet-audit aws audit --regions us-east-1,eu-west-1

        fleet-audit aws audit --all-regions --format json -o audit.json

        fleet-audit aws audit --no-rds --slack-webhook https://hooks.slack.com/...
    """
    if checks:
        try:
            enabled: FrozenSet[ResourceKind] = parse_checks(checks.split(","))
        except ConfigurationError as e:
            raise click.BadParameter(e.message, param_hint="--checks")
    else:
        toggles = {
            ResourceKind.INSTANCE: ec2,
            ResourceKind.VOLUME: ebs,
            ResourceKind.SNAPSHOT: snapshots,
            ResourceKind.ELASTIC_IP: eips,
            ResourceKind.DATABASE: rds,
        }
        enabled = frozenset(kind for kind, on in toggles.items() if on)

    config = _validated(
        AuditConfig(enabled_checks=enabled, max_workers=max_workers, fail_fast=fail_fast)
    )

    manager = RegionManager(profile=profile, max_workers=max_workers, fail_fast=fail_fast)
    target_regions = _regions_for(regions, all_regions, manager)
    AWSClient(region=target_regions[0], profile=profile).validate_credentials()

    reporter = CLIReporter(console)
    if output_format == "table":
        reporter.print_scanning_message("AWS resources", target_regions)
    result = manager.scan_regions(
        WasteScanner,
        regions=target_regions,
        config=config,
        progress_callback=_progress_printer(len(target_regions)) if output_format == "table" else None,
    )
    _exit_if_all_failed(result)

    _emit(result, output_format, output, lambda: reporter.report_audit(result))
    _notify(lambda n: n.send_audit_alert(result, alert_threshold), slack_webhook)


@aws.command("security")
@click.option(
    "--region",
    "-r",
    envvar=ENV_REGION,
    default=DEFAULT_REGION,
    help="AWS region to audit (default: $AWS_REGION or us-east-1)",
)
@click.option("--regions", callback=validate_regions, help="Comma-separated regions to audit")
@click.option("--all-regions", is_flag=True, help="Audit every enabled region")
@click.option("--profile", "-p", envvar=ENV_PROFILE, default=None, help="AWS profile name")
@click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    callback=_checked(validate_output_format),
    help=f"Output format: {', '.join(OUTPUT_FORMATS)} (default: table)",
)
@click.option("--output", "-o", default=None, help="Write JSON/CSV output to this file")
@click.option("--slack-webhook", envvar=ENV_SLACK_WEBHOOK, default=None, help="Slack webhook URL")
@click.option("--max-workers", default=10, type=int, help="Maximum parallel region scans")
@click.option("--fail-fast", is_flag=True, help="Stop at the first region that fails")
@handle_errors
def aws_security(
    region: str,
    regions: Optional[List[str]],
    all_regions: bool,
    profile: Optional[str],
    output_format: str,
    output: Optional[str],
    slack_webhook: Optional[str],
    max_workers: int,
    fail_fast: bool,
):
    """
    Audit AWS security configuration.

    Finds public S3 buckets and security groups exposing SSH, RDP, MySQL,
    PostgreSQL or MongoDB to 0.0.0.0/0 or ::/0.

    Examples:

        fleet-audit aws security --region eu-west-1

        fleet-audit aws security --all-regions --format json
    """
    config = _validated(
        AuditConfig(
            enabled_checks=frozenset(SECURITY_KINDS),
            max_workers=max_workers,
            fail_fast=fail_fast,
        )
    )
    manager = RegionManager(profile=profile, max_workers=max_workers, fail_fast=fail_fast)
    target_regions = _regions_for(regions or [region], all_regions, manager)
    AWSClient(region=target_regions[0], profile=profile).validate_credentials()

    reporter = CLIReporter(console)
    if output_format == "table":
        reporter.print_scanning_message("security configuration", target_regions)
    result = manager.scan_regions(
        SecurityScanner,
        regions=target_regions,
        config=config,
        progress_callback=_progress_printer(len(target_regions)) if output_format == "table" else None,
    )
    _exit_if_all_failed(result)

    _emit(result, output_format, output, lambda: reporter.report_security(result))
    _notify(lambda n: n.send_security_alert(result), slack_webhook)


# =============================================================================
# Cost Commands
# =============================================================================


@cli.group("cost")
def cost():
    """AWS spend analysis."""
    pass


@cost.command("report")
@click.option(
    "--days",
    "-d",
    type=click.IntRange(min=1),
    default=DEFAULT_DAYS,
    help=f"Number of days to analyze (default: {DEFAULT_DAYS})",
)
@click.option(
    "--group-by",
    "-g",
    default="service",
    callback=_checked(validate_group_by),
    help=f"Group costs by: {', '.join(GROUP_BY_DIMENSIONS)} (default: service)",
)
@click.option(
    "--top",
    "-t",
    type=int,
    default=DEFAULT_TOP_N,
    callback=_checked(validate_top_n),
    help=f"Show the top N items, folding the rest into Other (default: {DEFAULT_TOP_N})",
)
@click.option("--profile", "-p", envvar=ENV_PROFILE, default=None, help="AWS profile name")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format (default: table)",
)
@click.option("--output", "-o", default=None, help="Write JSON output to this file")
@handle_errors
def cost_report(
    days: int,
    group_by: str,
    top: int,
    profile: Optional[str],
    output_format: str,
    output: Optional[str],
):
    """
    Report AWS spend from Cost Explorer.

    Examples:

        fleet-audit cost report --days 30

        fleet-audit cost report --group-by region --top 5 --format json
    """
    analyzer = CostAnalyzer(AWSClient(profile=profile))
    breakdown = analyzer.get_cost_breakdown(days=days, group_by=group_by)
    breakdown = breakdown.limit_to_top_n(top)

    reporter = CLIReporter(console)
    _emit(breakdown, output_format, output, lambda: reporter.report_cost(breakdown))


# =============================================================================
# Kubernetes Commands
# =============================================================================


@cli.group("k8s")
@click.option("--kubeconfig", envvar="KUBECONFIG", default=None, help="Path to a kubeconfig file")
@click.option("--context", "kube_context", default=None, help="Kubeconfig context to use")
@click.option("--timeout", default=30, type=int, help="API request timeout in seconds")
@click.pass_context
def k8s(ctx, kubeconfig: Optional[str], kube_context: Optional[str], timeout: int):
    """Kubernetes cluster checks."""
    ctx.obj = KubeClient(kubeconfig=kubeconfig, context=kube_context, timeout=timeout)


def _run_cluster_scan(
    kube: KubeClient,
    namespace: Optional[str],
    config: AuditConfig,
    include_nodes: bool = False,
    show_progress: bool = True,
) -> AggregateResult:
    units = [namespace] if namespace else kube.list_namespaces()
    if include_nodes:
        units = units + [CLUSTER_UNIT]
    if show_progress:
        CLIReporter(console).print_scanning_message("the cluster", units)
    runner = UnitRunner(max_workers=config.max_workers, fail_fast=config.fail_fast)
    result = runner.run(
        units,
        cluster_scanner_factory(kube, config),
        scan_type="cluster",
        progress_callback=_progress_printer(len(units)) if show_progress else None,
    )
    _exit_if_all_failed(result)
    return result


k8s_namespace_option = click.option(
    "--namespace", "-n", default=None, help="Namespace to check (default: all namespaces)"
)
k8s_format_option = click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format (default: table)",
)
k8s_workers_option = click.option(
    "--max-workers", default=10, type=int, help="Maximum namespaces scanned in parallel"
)


@k8s.command("health")
@k8s_namespace_option
@click.option("--nodes/--no-nodes", default=True, help="Include node health check")
@k8s_format_option
@click.option("--output", "-o", default=None, help="Write JSON output to this file")
@k8s_workers_option
@click.pass_obj
@handle_errors
def k8s_health(
    kube: KubeClient,
    namespace: Optional[str],
    nodes: bool,
    output_format: str,
    output: Optional[str],
    max_workers: int,
):
    """
    Check pod, deployment and node health plus recent Warning events.

    Examples:

        fleet-audit k8s health

        fleet-audit k8s health --namespace default --no-nodes
    """
    kinds = set(HEALTH_KINDS)
    if nodes:
        kinds.add(ResourceKind.NODE)
    config = _validated(AuditConfig(enabled_checks=frozenset(kinds), max_workers=max_workers))

    with kube:
        result = _run_cluster_scan(
            kube, namespace, config, include_nodes=nodes, show_progress=output_format == "table"
        )
    reporter = CLIReporter(console)
    _emit(result, output_format, output, lambda: reporter.report_health(result))


@k8s.command("certs")
@k8s_namespace_option
@click.option(
    "--expiry-days",
    type=click.IntRange(min=0),
    default=30,
    help="Show certificates expiring within N days (default: 30)",
)
@click.option("--slack-webhook", envvar=ENV_SLACK_WEBHOOK, default=None, help="Slack webhook URL")
@k8s_format_option
@click.option("--output", "-o", default=None, help="Write JSON output to this file")
@k8s_workers_option
@click.pass_obj
@handle_errors
def k8s_certs(
    kube: KubeClient,
    namespace: Optional[str],
    expiry_days: int,
    slack_webhook: Optional[str],
    output_format: str,
    output: Optional[str],
    max_workers: int,
):
    """
    Check TLS certificate expiry in kubernetes.io/tls secrets.

    Examples:

        fleet-audit k8s certs --expiry-days 60

        fleet-audit k8s certs --namespace ingress --slack-webhook https://hooks.slack.com/...
    """
    config = _validated(
        AuditConfig(
            enabled_checks=frozenset({ResourceKind.CERTIFICATE}),
            thresholds=Thresholds(certificate_expiry_days=expiry_days),
            max_workers=max_workers,
        )
    )
    with kube:
        result = _run_cluster_scan(
            kube, namespace, config, show_progress=output_format == "table"
        )
    reporter = CLIReporter(console)
    _emit(
        result,
        output_format,
        output,
        lambda: reporter.report_certificates(result, expiry_days),
    )
    _notify(lambda n: n.send_certificate_alert(result, expiry_days), slack_webhook)


@k8s.command("pdb")
@k8s_namespace_option
@click.option("--slack-webhook", envvar=ENV_SLACK_WEBHOOK, default=None, help="Slack webhook URL")
@k8s_format_option
@click.option("--output", "-o", default=None, help="Write JSON output to this file")
@k8s_workers_option
@click.pass_obj
@handle_errors
def k8s_pdb(
    kube: KubeClient,
    namespace: Optional[str],
    slack_webhook: Optional[str],
    output_format: str,
    output: Optional[str],
    max_workers: int,
):
    """
    Check PodDisruptionBudget status.

    Examples:

        fleet-audit k8s pdb

        fleet-audit k8s pdb --namespace production
    """
    config = _validated(
        AuditConfig(
            enabled_checks=frozenset({ResourceKind.DISRUPTION_BUDGET}),
            max_workers=max_workers,
        )
    )
    with kube:
        result = _run_cluster_scan(
            kube, namespace, config, show_progress=output_format == "table"
        )
    reporter = CLIReporter(console)
    _emit(result, output_format, output, lambda: reporter.report_disruption_budgets(result))
    _notify(lambda n: n.send_pdb_alert(result), slack_webhook)


# =============================================================================
# Account Commands
# =============================================================================


@cli.command("regions")
@click.option("--profile", "-p", envvar=ENV_PROFILE, default=None, help="AWS profile name")
@handle_errors
def list_regions(profile: Optional[str]):
    """List all available AWS regions."""
    region_manager = RegionManager(profile=profile)
    regions = region_manager.get_all_regions()

    console.print(f"\n[bold]Available AWS Regions ({len(regions)} total):[/bold]\n")
    for region in regions:
        console.print(f"  • {region}")
    console.print()


@cli.command("validate")
@click.option("--profile", "-p", envvar=ENV_PROFILE, default=None, help="AWS profile name")
@click.option(
    "--region",
    "-r",
    envvar=ENV_REGION,
    default=DEFAULT_REGION,
    help="AWS region to use for validation",
)
def validate_credentials(profile: Optional[str], region: str):
    """Validate AWS credentials and show account info."""
    try:
        client = AWSClient(region=region, profile=profile)
        client.validate_credentials()
        account_id = client.get_account_id()
    except FleetAuditError as e:
        console.print(f"\n[red bold]Validation Failed:[/red bold] {e}")
        sys.exit(1)

    console.print("\n[green bold]AWS credentials are valid![/green bold]")
    console.print(f"\n  Account ID: {account_id}")
    console.print(f"  Region: {region}")
    if profile:
        console.print(f"  Profile: {profile}")
    console.print()


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
