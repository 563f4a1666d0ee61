"""
Findings
========

A finding is one classified resource or object judged wasteful, insecure,
expiring or unhealthy. Findings form a small tagged hierarchy: every subclass
fixes its :class:`~fleet_audit.core.taxonomy.ResourceKind` in the ``kind``
class attribute and adds the fields its reporters need.

Common fields
-------------
resource_id : str
    Provider identifier, or ``namespace/name`` for cluster objects.
unit : str
    Scan unit the finding came from (region or namespace).
monthly_cost : float or None
    Estimated monthly USD impact; None when unknown or not applicable.
label : Enum or None
    Taxonomy label (severity or status band); None for pure waste findings.

Example
-------
>>> finding = UnusedElasticIPFinding(
...     resource_id="eipalloc-1",
...     unit="us-east-1",
...     monthly_cost=3.6,
...     label=None,
...     public_ip="203.0.113.10",
... )
>>> finding.kind
<ResourceKind.ELASTIC_IP: 'elastic_ip'>
>>> finding.details()
'203.0.113.10'
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple

from fleet_audit.core.taxonomy import ResourceKind


def _plain(value: Any) -> Any:
    """Convert a field value into something JSON can encode."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class Finding:
    """
    Base class for all findings.

    Subclasses must set ``kind`` and may override :meth:`details`.
    """

    kind: ClassVar[ResourceKind]

    resource_id: str
    unit: str
    monthly_cost: Optional[float]
    label: Optional[Enum]

    @property
    def label_value(self) -> Optional[str]:
        return self.label.value if self.label is not None else None

    def details(self) -> str:
        """One-line human description used by the CSV and Slack outputs."""
        return ""

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the finding to a dictionary for serialization.

        Returns
        -------
        dict
            Common fields first, then the subclass fields in declaration order.
        """
        data: Dict[str, Any] = {"kind": self.kind.value}
        for f in fields(self):
            data[f.name] = _plain(getattr(self, f.name))
        return data


# =============================================================================
# Waste Findings
# =============================================================================


@dataclass(frozen=True)
class UnattachedVolumeFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.VOLUME

    size_gb: int = 0
    volume_type: str = ""
    availability_zone: str = ""
    age_days: Optional[int] = None

    def details(self) -> str:
        return f"{self.size_gb}GB {self.volume_type}"


@dataclass(frozen=True)
class UnderutilizedInstanceFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.INSTANCE

    instance_type: str = ""
    avg_cpu: float = 0.0
    name: str = ""

    def details(self) -> str:
        return f"{self.instance_type} (CPU: {self.avg_cpu:.1f}%)"


@dataclass(frozen=True)
class OrphanedSnapshotFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.SNAPSHOT

    volume_id: str = ""
    size_gb: int = 0
    age_days: Optional[int] = None

    def details(self) -> str:
        return f"{self.size_gb}GB (vol: {self.volume_id})"


@dataclass(frozen=True)
class UnusedElasticIPFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.ELASTIC_IP

    public_ip: str = ""

    def details(self) -> str:
        return self.public_ip


@dataclass(frozen=True)
class UnderutilizedDatabaseFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.DATABASE

    instance_class: str = ""
    engine: str = ""
    avg_cpu: float = 0.0

    def details(self) -> str:
        return f"{self.instance_class} {self.engine} (CPU: {self.avg_cpu:.1f}%)"


# =============================================================================
# Security Findings
# =============================================================================


@dataclass(frozen=True)
class OpenSecurityGroupFinding(Finding):
    """One publicly reachable risky port on one source range."""

    kind: ClassVar[ResourceKind] = ResourceKind.SECURITY_GROUP

    group_name: str = ""
    port: int = 0
    port_name: str = ""
    protocol: str = ""
    cidr: str = ""

    @property
    def description(self) -> str:
        return f"{self.port_name} port {self.port} open to {self.cidr}"

    def details(self) -> str:
        return f"{self.group_name}: {self.description} ({self.protocol})"


@dataclass(frozen=True)
class PublicBucketFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.BUCKET

    reason: str = ""

    def details(self) -> str:
        return self.reason


# =============================================================================
# Cluster Findings
# =============================================================================


@dataclass(frozen=True)
class CertificateFinding(Finding):
    """A parsed TLS certificate; ``label`` is its CertificateStatus."""

    kind: ClassVar[ResourceKind] = ResourceKind.CERTIFICATE

    secret_name: str = ""
    common_name: str = ""
    dns_names: Tuple[str, ...] = ()
    issuer: str = ""
    not_after: Optional[datetime] = None
    days_remaining: int = 0

    def details(self) -> str:
        names = ", ".join(self.dns_names)
        return f"{names} ({self.days_remaining} days)"


@dataclass(frozen=True)
class DisruptionBudgetFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.DISRUPTION_BUDGET

    name: str = ""
    min_available: str = "-"
    max_unavailable: str = "-"
    expected_pods: int = 0
    current_healthy: int = 0
    desired_healthy: int = 0
    disruptions_allowed: int = 0
    message: str = ""

    def details(self) -> str:
        return self.message


@dataclass(frozen=True)
class PodFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.POD

    name: str = ""
    phase: str = ""
    ready_containers: int = 0
    total_containers: int = 0
    restarts: int = 0
    node_name: str = ""

    @property
    def ready(self) -> str:
        return f"{self.ready_containers}/{self.total_containers}"

    def details(self) -> str:
        return f"{self.phase} {self.ready} ready, {self.restarts} restarts"


@dataclass(frozen=True)
class DeploymentFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.DEPLOYMENT

    name: str = ""
    desired_replicas: int = 0
    ready_replicas: int = 0
    updated_replicas: int = 0
    available_replicas: int = 0

    @property
    def ready(self) -> str:
        return f"{self.ready_replicas}/{self.desired_replicas}"

    def details(self) -> str:
        return f"{self.ready} ready"


@dataclass(frozen=True)
class NodeFinding(Finding):
    kind: ClassVar[ResourceKind] = ResourceKind.NODE

    roles: Tuple[str, ...] = ()
    kubelet_version: str = ""
    cpu_capacity: str = ""
    memory_capacity: str = ""
    pod_capacity: str = ""

    def details(self) -> str:
        return f"{','.join(self.roles)} {self.kubelet_version}"


@dataclass(frozen=True)
class EventFinding(Finding):
    """A recent Warning event; carries no label."""

    kind: ClassVar[ResourceKind] = ResourceKind.EVENT

    object_kind: str = ""
    object_name: str = ""
    reason: str = ""
    message: str = ""
    count: int = 1
    last_seen: Optional[datetime] = None

    def details(self) -> str:
        return f"{self.object_kind}/{self.object_name}: {self.reason}"
