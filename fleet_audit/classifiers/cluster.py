"""
Cluster Classifiers
===================

Health and expiry rules for Kubernetes objects.

Functions
---------
parse_certificate
    Decode a PEM certificate into the fields the reports need.
days_remaining
    Whole days until a not-after date, truncated toward zero.
classify_certificate
    Certificate finding with its expiry band.
classify_disruption_budget
    PodDisruptionBudget finding with status and reason.
classify_pod, classify_deployment, classify_node
    One health finding per object.
classify_event
    Recent Warning events.
node_roles
    Role names from node labels.

Example
-------
>>> record = DisruptionBudgetRecord("web", "shop", expected_pods=3,
...     current_healthy=3, desired_healthy=2, disruptions_allowed=1)
>>> classify_disruption_budget(record).message
'1 disruption(s) allowed'
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import NameOID

from fleet_audit.core.exceptions import RecordParseError
from fleet_audit.core.findings import (
    CertificateFinding,
    DeploymentFinding,
    DisruptionBudgetFinding,
    EventFinding,
    NodeFinding,
    PodFinding,
)
from fleet_audit.core.records import (
    CertificateRecord,
    DeploymentRecord,
    DisruptionBudgetRecord,
    EventRecord,
    NodeRecord,
    PodRecord,
)
from fleet_audit.core.taxonomy import (
    ResourceKind,
    certificate_status,
    deployment_status,
    disruption_budget_status,
    node_status,
    pod_status,
)

# Warning events older than this are not reported
EVENT_WINDOW = timedelta(hours=1)
WARNING_EVENT_TYPE = "Warning"

NO_ROLE = "<none>"
_ROLE_LABELS = {
    "node-role.kubernetes.io/master": "control-plane",
    "node-role.kubernetes.io/control-plane": "control-plane",
    "node-role.kubernetes.io/worker": "worker",
}


def object_id(namespace: str, name: str) -> str:
    return f"{namespace}/{name}" if namespace else name


# =============================================================================
# Certificates
# =============================================================================


@dataclass(frozen=True)
class ParsedCertificate:
    """Fields extracted from an X.509 certificate."""

    common_name: str
    issuer: str
    dns_names: Tuple[str, ...]
    not_after: datetime


def _common_name(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return ""
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")


def parse_certificate(pem_data: bytes) -> ParsedCertificate:
    """
    Parse the first certificate in a PEM bundle.

    DNS names come from the subjectAltName extension; when there are none
    the subject CN is used instead.

    Raises
    ------
    RecordParseError
        If the data holds no decodable certificate.
    """
    try:
        cert = x509.load_pem_x509_certificate(pem_data)
    except ValueError as e:
        raise RecordParseError(
            f"failed to parse certificate: {e}", resource_type="certificate"
        )

    common_name = _common_name(cert.subject)
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        dns_names = tuple(san.value.get_values_for_type(x509.DNSName))
    except x509.ExtensionNotFound:
        dns_names = ()
    if not dns_names and common_name:
        dns_names = (common_name,)

    return ParsedCertificate(
        common_name=common_name,
        issuer=_common_name(cert.issuer),
        dns_names=dns_names,
        not_after=cert.not_valid_after_utc,
    )


def days_remaining(not_after: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until ``not_after``; negative once expired."""
    now = now or datetime.now(timezone.utc)
    return int((not_after - now).total_seconds() / 86400)


def classify_certificate(
    record: CertificateRecord,
    now: Optional[datetime] = None,
) -> CertificateFinding:
    """
    Build the finding for one TLS secret.

    Raises
    ------
    RecordParseError
        If the secret has no ``tls.crt`` or it cannot be parsed.
    """
    resource_id = object_id(record.namespace, record.secret_name)
    if record.pem_data is None:
        raise RecordParseError(
            "secret has no tls.crt",
            resource_type=ResourceKind.CERTIFICATE.value,
            unit=record.namespace,
            details={"resource_id": resource_id},
        )
    try:
        parsed = parse_certificate(record.pem_data)
    except RecordParseError as e:
        raise RecordParseError(
            e.message,
            resource_type=ResourceKind.CERTIFICATE.value,
            unit=record.namespace,
            details={"resource_id": resource_id},
        )

    days = days_remaining(parsed.not_after, now)
    return CertificateFinding(
        resource_id=resource_id,
        unit=record.namespace,
        monthly_cost=None,
        label=certificate_status(days),
        secret_name=record.secret_name,
        common_name=parsed.common_name,
        dns_names=parsed.dns_names,
        issuer=parsed.issuer,
        not_after=parsed.not_after,
        days_remaining=days,
    )


# =============================================================================
# Workloads
# =============================================================================


def _spec_value(value: Optional[str]) -> str:
    return value if value is not None else "-"


def classify_disruption_budget(record: DisruptionBudgetRecord) -> DisruptionBudgetFinding:
    status, message = disruption_budget_status(
        record.expected_pods,
        record.current_healthy,
        record.desired_healthy,
        record.disruptions_allowed,
    )
    return DisruptionBudgetFinding(
        resource_id=object_id(record.namespace, record.name),
        unit=record.namespace,
        monthly_cost=None,
        label=status,
        name=record.name,
        min_available=_spec_value(record.min_available),
        max_unavailable=_spec_value(record.max_unavailable),
        expected_pods=record.expected_pods,
        current_healthy=record.current_healthy,
        desired_healthy=record.desired_healthy,
        disruptions_allowed=record.disruptions_allowed,
        message=message,
    )


def classify_pod(record: PodRecord) -> PodFinding:
    return PodFinding(
        resource_id=object_id(record.namespace, record.name),
        unit=record.namespace,
        monthly_cost=None,
        label=pod_status(record.phase, record.ready_containers, record.total_containers),
        name=record.name,
        phase=record.phase,
        ready_containers=record.ready_containers,
        total_containers=record.total_containers,
        restarts=record.restarts,
        node_name=record.node_name,
    )


def classify_deployment(record: DeploymentRecord) -> DeploymentFinding:
    return DeploymentFinding(
        resource_id=object_id(record.namespace, record.name),
        unit=record.namespace,
        monthly_cost=None,
        label=deployment_status(record.desired_replicas, record.ready_replicas),
        name=record.name,
        desired_replicas=record.desired_replicas,
        ready_replicas=record.ready_replicas,
        updated_replicas=record.updated_replicas,
        available_replicas=record.available_replicas,
    )


def node_roles(labels: Optional[Mapping[str, str]]) -> Tuple[str, ...]:
    """Roles from ``node-role.kubernetes.io/*`` labels, or ``<none>``."""
    roles = sorted({_ROLE_LABELS[key] for key in (labels or {}) if key in _ROLE_LABELS})
    return tuple(roles) or (NO_ROLE,)


def classify_node(record: NodeRecord, unit: str = "cluster") -> NodeFinding:
    return NodeFinding(
        resource_id=record.name,
        unit=unit,
        monthly_cost=None,
        label=node_status(record.ready_condition),
        roles=record.roles or (NO_ROLE,),
        kubelet_version=record.kubelet_version,
        cpu_capacity=record.cpu_capacity,
        memory_capacity=record.memory_capacity,
        pod_capacity=record.pod_capacity,
    )


def classify_event(
    record: EventRecord,
    now: Optional[datetime] = None,
    window: timedelta = EVENT_WINDOW,
) -> Optional[EventFinding]:
    """Keep Warning events last seen within ``window`` of ``now``."""
    if record.event_type != WARNING_EVENT_TYPE or record.last_seen is None:
        return None
    now = now or datetime.now(timezone.utc)
    if record.last_seen <= now - window:
        return None
    return EventFinding(
        resource_id=object_id(record.namespace, record.name),
        unit=record.namespace,
        monthly_cost=None,
        label=None,
        object_kind=record.kind,
        object_name=record.name,
        reason=record.reason,
        message=record.message,
        count=record.count,
        last_seen=record.last_seen,
    )
