"""
Run Configuration
=================

Immutable run options handed to every scanner in place of process-wide flags.

Classes
-------
Thresholds
    Classification thresholds and metric window settings.
AuditConfig
    Enabled checks, thresholds, price table and concurrency options.

Constants
---------
OUTPUT_FORMATS
    Output formats understood by the CLI.
GROUP_BY_DIMENSIONS
    Cost Explorer grouping options and the dimension key each maps to.
RISKY_PORTS
    Default ports flagged when open to the internet, in report order.

Example
-------
>>> config = AuditConfig(
...     enabled_checks=frozenset({ResourceKind.VOLUME, ResourceKind.ELASTIC_IP}),
...     max_workers=4,
... )
>>> config.validate()
>>> config.is_enabled(ResourceKind.INSTANCE)
False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping

from fleet_audit.core.exceptions import ConfigurationError
from fleet_audit.core.pricing import PriceTable
from fleet_audit.core.taxonomy import (
    CERT_EXPIRING_DAYS,
    DATABASE_CPU_THRESHOLD,
    INSTANCE_CPU_THRESHOLD,
    WASTE_KINDS,
    ResourceKind,
)

OUTPUT_FORMATS = ("table", "json", "csv")

GROUP_BY_DIMENSIONS: Mapping[str, str] = MappingProxyType(
    {
        "service": "SERVICE",
        "region": "REGION",
        "instance-type": "INSTANCE_TYPE",
    }
)

RISKY_PORTS: Mapping[int, str] = MappingProxyType(
    {
        22: "SSH",
        3389: "RDP",
        3306: "MySQL",
        5432: "PostgreSQL",
        27017: "MongoDB",
    }
)

DEFAULT_REGION = "us-east-1"

# Environment variables read by the CLI
ENV_REGION = "AWS_REGION"
ENV_PROFILE = "AWS_PROFILE"
ENV_SLACK_WEBHOOK = "SLACK_WEBHOOK_URL"


@dataclass(frozen=True)
class Thresholds:
    """
    Classification thresholds.

    Parameters
    ----------
    instance_cpu_percent : float, default=5.0
        Instances averaging below this CPU are underutilized.
    database_cpu_percent : float, default=10.0
        Databases averaging below this CPU are underutilized.
    metric_lookback_days : int, default=7
        Width of the utilization window.
    metric_period_seconds : int, default=3600
        Datapoint period inside the window.
    certificate_expiry_days : int, default=30
        Certificates with this many days left or fewer are listed.
    risky_ports : mapping of int to str
        Ports reported when reachable from a public range.
    """

    instance_cpu_percent: float = INSTANCE_CPU_THRESHOLD
    database_cpu_percent: float = DATABASE_CPU_THRESHOLD
    metric_lookback_days: int = 7
    metric_period_seconds: int = 3600
    certificate_expiry_days: int = CERT_EXPIRING_DAYS
    risky_ports: Mapping[int, str] = field(default_factory=lambda: RISKY_PORTS)


@dataclass(frozen=True)
class AuditConfig:
    """
    Options for one scan-and-report pass.

    Parameters
    ----------
    enabled_checks : frozenset of ResourceKind
        Kinds whose classifiers run. Defaults to every waste check.
    thresholds : Thresholds
        Classification thresholds.
    prices : PriceTable
        Cost estimate tables.
    max_workers : int, default=10
        Maximum scan units processed in parallel.
    fail_fast : bool, default=False
        Cancel the remaining units on the first unit failure.
    """

    enabled_checks: FrozenSet[ResourceKind] = frozenset(WASTE_KINDS)
    thresholds: Thresholds = field(default_factory=Thresholds)
    prices: PriceTable = field(default_factory=PriceTable)
    max_workers: int = 10
    fail_fast: bool = False

    def is_enabled(self, kind: ResourceKind) -> bool:
        return kind in self.enabled_checks

    def validate(self) -> None:
        """
        Check the options before any unit runs.

        Raises
        ------
        ConfigurationError
            If no check is enabled or a numeric option is out of range.
        """
        if not self.enabled_checks:
            raise ConfigurationError("No checks enabled")
        if self.max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be at least 1, got {self.max_workers}"
            )
        if self.thresholds.metric_lookback_days < 1:
            raise ConfigurationError(
                "metric_lookback_days must be at least 1",
                details={"value": self.thresholds.metric_lookback_days},
            )
        if self.thresholds.metric_period_seconds < 60:
            raise ConfigurationError(
                "metric_period_seconds must be at least 60",
                details={"value": self.thresholds.metric_period_seconds},
            )
        if self.thresholds.certificate_expiry_days < 0:
            raise ConfigurationError(
                "certificate_expiry_days cannot be negative",
                details={"value": self.thresholds.certificate_expiry_days},
            )


def parse_checks(names: Iterable[str]) -> FrozenSet[ResourceKind]:
    """
    Turn check names (``volume``, ``elastic_ip``, ...) into ResourceKinds.

    Raises
    ------
    ConfigurationError
        For an unknown name.
    """
    kinds = set()
    known = {kind.value: kind for kind in ResourceKind}
    for name in names:
        key = name.strip().lower().replace("-", "_")
        if key not in known:
            raise ConfigurationError(
                f"Unknown check: {name}",
                details={"allowed": sorted(known)},
            )
        kinds.add(known[key])
    return frozenset(kinds)


def validate_output_format(output_format: str) -> str:
    """Return the normalized format or raise ConfigurationError."""
    normalized = output_format.lower()
    if normalized not in OUTPUT_FORMATS:
        raise ConfigurationError(
            f"Unsupported output format: {output_format}",
            details={"allowed": list(OUTPUT_FORMATS)},
        )
    return normalized


def validate_group_by(group_by: str) -> str:
    """
    Map a grouping option to its Cost Explorer dimension key.

    Accepts either the CLI spelling (``instance-type``) or the dimension key
    itself (``INSTANCE_TYPE``).
    """
    key = group_by.strip().lower().replace("_", "-")
    if key not in GROUP_BY_DIMENSIONS:
        raise ConfigurationError(
            f"Unsupported group-by option: {group_by}",
            details={"allowed": list(GROUP_BY_DIMENSIONS)},
        )
    return GROUP_BY_DIMENSIONS[key]


def validate_top_n(top_n: int) -> int:
    if top_n < 1:
        raise ConfigurationError(
            f"top must be a positive integer, got {top_n}",
        )
    return top_n
