"""
Status and Severity Taxonomy
============================

Closed enumerations shared by every classifier, together with the rules
that derive a label from raw facts.

Enumerations
------------
ResourceKind
    Every resource or object kind a classifier can report on.
Severity
    Security severity, ordered ``critical > high > medium``.
CertificateStatus
    TLS certificate expiry band.
DisruptionBudgetStatus
    PodDisruptionBudget health.
PodStatus, DeploymentStatus, NodeStatus
    Workload and node health.

Derivation Rules
----------------
Certificate bands, from whole days remaining ``d``::

    d < 0        -> expired
    0 <= d < 7   -> critical
    7 <= d < 30  -> expiring-soon
    d >= 30      -> valid

Disruption budgets are checked in a fixed order; "no pods" wins over
every other rule.

Example
-------
>>> certificate_status(7)
<CertificateStatus.EXPIRING_SOON: 'expiring-soon'>
>>> disruption_budget_status(0, 0, 1, 0)[0]
<DisruptionBudgetStatus.NO_PODS: 'no-pods'>
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

# Threshold constants, overridable through Thresholds in config
INSTANCE_CPU_THRESHOLD = 5.0
DATABASE_CPU_THRESHOLD = 10.0
CERT_CRITICAL_DAYS = 7
CERT_EXPIRING_DAYS = 30


class ResourceKind(Enum):
    """Kinds of resources and cluster objects that produce findings."""

    VOLUME = "volume"
    INSTANCE = "instance"
    SNAPSHOT = "snapshot"
    ELASTIC_IP = "elastic_ip"
    DATABASE = "database"
    SECURITY_GROUP = "security_group"
    BUCKET = "bucket"
    POD = "pod"
    DEPLOYMENT = "deployment"
    NODE = "node"
    DISRUPTION_BUDGET = "disruption_budget"
    CERTIFICATE = "certificate"
    EVENT = "event"

    @property
    def display_name(self) -> str:
        return _KIND_TITLES[self]


_KIND_TITLES = {
    ResourceKind.VOLUME: "Unattached EBS Volumes",
    ResourceKind.INSTANCE: "Underutilized EC2 Instances",
    ResourceKind.SNAPSHOT: "Orphaned Snapshots",
    ResourceKind.ELASTIC_IP: "Unused Elastic IPs",
    ResourceKind.DATABASE: "Underutilized RDS Instances",
    ResourceKind.SECURITY_GROUP: "Open Security Groups",
    ResourceKind.BUCKET: "Public S3 Buckets",
    ResourceKind.POD: "Pods",
    ResourceKind.DEPLOYMENT: "Deployments",
    ResourceKind.NODE: "Nodes",
    ResourceKind.DISRUPTION_BUDGET: "PodDisruptionBudgets",
    ResourceKind.CERTIFICATE: "TLS Certificates",
    ResourceKind.EVENT: "Warning Events",
}

# Kinds reported by ``aws audit``
WASTE_KINDS = (
    ResourceKind.VOLUME,
    ResourceKind.INSTANCE,
    ResourceKind.SNAPSHOT,
    ResourceKind.ELASTIC_IP,
    ResourceKind.DATABASE,
)

# Kinds reported by ``aws security``
SECURITY_KINDS = (
    ResourceKind.BUCKET,
    ResourceKind.SECURITY_GROUP,
)


class Severity(Enum):
    """Security finding severity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"

    @property
    def rank(self) -> int:
        """Sort key; higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 3,
    Severity.HIGH: 2,
    Severity.MEDIUM: 1,
}


class CertificateStatus(Enum):
    """Expiry band of a TLS certificate."""

    EXPIRED = "expired"
    CRITICAL = "critical"
    EXPIRING_SOON = "expiring-soon"
    VALID = "valid"


class DisruptionBudgetStatus(Enum):
    """Health of a PodDisruptionBudget."""

    HEALTHY = "healthy"
    AT_RISK = "at-risk"
    CRITICAL = "critical"
    NO_PODS = "no-pods"


class PodStatus(Enum):
    """Health of a pod."""

    HEALTHY = "healthy"
    NOT_READY = "not-ready"
    PENDING = "pending"
    FAILED = "failed"
    UNKNOWN = "unknown"


class DeploymentStatus(Enum):
    """Rollout health of a deployment."""

    AVAILABLE = "available"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    SCALED_TO_ZERO = "scaled-to-zero"


class NodeStatus(Enum):
    """Node readiness taken from the ``Ready`` condition."""

    READY = "ready"
    NOT_READY = "not-ready"
    UNKNOWN = "unknown"


# Labels that represent a problem, per enum
UNHEALTHY_LABELS = frozenset(
    {
        CertificateStatus.EXPIRED,
        CertificateStatus.CRITICAL,
        CertificateStatus.EXPIRING_SOON,
        DisruptionBudgetStatus.AT_RISK,
        DisruptionBudgetStatus.CRITICAL,
        DisruptionBudgetStatus.NO_PODS,
        PodStatus.NOT_READY,
        PodStatus.PENDING,
        PodStatus.FAILED,
        PodStatus.UNKNOWN,
        DeploymentStatus.DEGRADED,
        DeploymentStatus.UNAVAILABLE,
        NodeStatus.NOT_READY,
        NodeStatus.UNKNOWN,
    }
)


# =============================================================================
# Derivation Rules
# =============================================================================


def port_severity(port: int) -> Severity:
    """
    Get the severity of a risky port exposed to the internet.

    Remote-access ports (SSH, RDP) and database ports are critical,
    anything else that was flagged is high.
    """
    if port in (22, 3389):
        return Severity.CRITICAL
    if port in (3306, 5432, 27017):
        return Severity.CRITICAL
    return Severity.HIGH


def certificate_status(days_remaining: int) -> CertificateStatus:
    """
    Determine a certificate's status from whole days remaining.

    Each band includes its lower bound, so exactly 7 days is
    expiring-soon and exactly 30 days is valid.

    Parameters
    ----------
    days_remaining : int
        Days until not-after, truncated toward zero. Negative when expired.

    Returns
    -------
    CertificateStatus
    """
    if days_remaining < 0:
        return CertificateStatus.EXPIRED
    if days_remaining < CERT_CRITICAL_DAYS:
        return CertificateStatus.CRITICAL
    if days_remaining < CERT_EXPIRING_DAYS:
        return CertificateStatus.EXPIRING_SOON
    return CertificateStatus.VALID


def disruption_budget_status(
    expected_pods: int,
    current_healthy: int,
    desired_healthy: int,
    disruptions_allowed: int,
) -> Tuple[DisruptionBudgetStatus, str]:
    """
    Determine a PodDisruptionBudget's status and a human-readable reason.

    Parameters
    ----------
    expected_pods : int
        Pods selected by the budget.
    current_healthy : int
        Currently healthy pods.
    desired_healthy : int
        Minimum healthy pods the budget requires.
    disruptions_allowed : int
        Voluntary evictions currently permitted.

    Returns
    -------
    tuple of (DisruptionBudgetStatus, str)

    Example
    -------
    >>> disruption_budget_status(3, 3, 2, 1)
    (<DisruptionBudgetStatus.HEALTHY: 'healthy'>, '1 disruption(s) allowed')
    """
    if expected_pods == 0 or current_healthy == 0:
        return DisruptionBudgetStatus.NO_PODS, "No matching pods found"

    if disruptions_allowed == 0:
        if current_healthy < desired_healthy:
            return (
                DisruptionBudgetStatus.CRITICAL,
                "Zero disruptions allowed and unhealthy pods",
            )
        return DisruptionBudgetStatus.AT_RISK, "Zero disruptions allowed"

    if current_healthy < desired_healthy:
        return (
            DisruptionBudgetStatus.AT_RISK,
            f"Unhealthy pods: {current_healthy}/{desired_healthy}",
        )

    return (
        DisruptionBudgetStatus.HEALTHY,
        f"{disruptions_allowed} disruption(s) allowed",
    )


def pod_status(phase: str, ready_containers: int, total_containers: int) -> PodStatus:
    """Derive pod health from its phase and container readiness."""
    if phase == "Succeeded":
        return PodStatus.HEALTHY
    if phase == "Running":
        if ready_containers >= total_containers:
            return PodStatus.HEALTHY
        return PodStatus.NOT_READY
    if phase == "Pending":
        return PodStatus.PENDING
    if phase == "Failed":
        return PodStatus.FAILED
    return PodStatus.UNKNOWN


def deployment_status(desired: int, ready: int) -> DeploymentStatus:
    """Derive deployment health from desired and ready replica counts."""
    if desired == 0:
        return DeploymentStatus.SCALED_TO_ZERO
    if ready >= desired:
        return DeploymentStatus.AVAILABLE
    if ready == 0:
        return DeploymentStatus.UNAVAILABLE
    return DeploymentStatus.DEGRADED


def node_status(ready_condition: Optional[str]) -> NodeStatus:
    """
    Derive node status from the ``Ready`` condition status string.

    ``None`` means the node reported no ``Ready`` condition at all.
    """
    if ready_condition is None:
        return NodeStatus.UNKNOWN
    if ready_condition == "True":
        return NodeStatus.READY
    return NodeStatus.NOT_READY


def has_metric_data(average: Optional[float]) -> bool:
    """Return True when a utilization average is real data, not the no-data marker."""
    return average is not None and average >= 0


def is_underutilized(average: Optional[float], threshold: float) -> bool:
    """
    Check a utilization average against a threshold.

    Missing data is never evidence of waste: ``None`` and negative
    sentinels always return False.
    """
    return has_metric_data(average) and average < threshold
