"""
Resource Records
================

Immutable snapshots of provider-reported facts, one type per classifier
domain. Record sources build them once per scan; classifiers only read them.

Records hold plain values (str, int, float, datetime, tuples) so they can be
built in tests without any SDK objects.

Classes
-------
VolumeRecord, InstanceRecord, SnapshotRecord, ElasticIPRecord, DatabaseRecord
    Waste audit inputs.
IngressRule, SecurityGroupRecord, PublicAccessBlock, BucketRecord
    Security audit inputs.
PodRecord, DeploymentRecord, NodeRecord, DisruptionBudgetRecord,
CertificateRecord, EventRecord
    Cluster check inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

# Marker for "the metric source returned no datapoints"
NO_METRIC_DATA = -1.0


# =============================================================================
# Waste Audit Records
# =============================================================================


@dataclass(frozen=True)
class VolumeRecord:
    """
    A block volume.

    Parameters
    ----------
    volume_id : str
        Volume identifier (e.g., 'vol-0abc').
    size_gb : int
        Provisioned size in GiB.
    volume_type : str
        Volume type (gp2, gp3, io1, io2, st1, sc1, standard).
    state : str
        Attachment state; 'available' means not attached.
    availability_zone : str
        Zone the volume lives in.
    create_time : datetime, optional
        Creation timestamp (timezone-aware).
    """

    volume_id: str
    size_gb: int
    volume_type: str
    state: str
    availability_zone: str = ""
    create_time: Optional[datetime] = None


@dataclass(frozen=True)
class InstanceRecord:
    """
    A compute instance with its trailing CPU average.

    ``avg_cpu`` is None (or negative) when the metric source had no data.
    """

    instance_id: str
    instance_type: str
    state: str
    avg_cpu: Optional[float] = None
    launch_time: Optional[datetime] = None
    name: str = ""


@dataclass(frozen=True)
class SnapshotRecord:
    """A volume snapshot owned by the account."""

    snapshot_id: str
    volume_id: str
    size_gb: int
    start_time: Optional[datetime] = None
    description: str = ""


@dataclass(frozen=True)
class ElasticIPRecord:
    """A floating IP; ``association_id`` is empty or None when unused."""

    allocation_id: str
    public_ip: str
    association_id: Optional[str] = None
    domain: str = "vpc"


@dataclass(frozen=True)
class DatabaseRecord:
    """A managed database instance with its trailing CPU average."""

    instance_id: str
    instance_class: str
    engine: str
    avg_cpu: Optional[float] = None
    status: str = "available"


# =============================================================================
# Security Audit Records
# =============================================================================


@dataclass(frozen=True)
class IngressRule:
    """
    One ingress permission of a security group.

    Parameters
    ----------
    protocol : str
        IP protocol ('tcp', 'udp', '6', '17', ...) or '-1' for all traffic.
    from_port : int
        First port of the range (0 when the rule has no port range).
    to_port : int
        Last port of the range (0 when the rule has no port range).
    ipv4_ranges : tuple of str
        IPv4 CIDR sources, in provider order.
    ipv6_ranges : tuple of str
        IPv6 CIDR sources, in provider order.
    """

    protocol: str
    from_port: int = 0
    to_port: int = 0
    ipv4_ranges: Tuple[str, ...] = ()
    ipv6_ranges: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SecurityGroupRecord:
    """A network security group and its ingress rules."""

    group_id: str
    group_name: str
    vpc_id: str = ""
    ingress_rules: Tuple[IngressRule, ...] = ()


@dataclass(frozen=True)
class PublicAccessBlock:
    """The four independent public-access-block flags of a bucket."""

    block_public_acls: bool = False
    ignore_public_acls: bool = False
    block_public_policy: bool = False
    restrict_public_buckets: bool = False

    @property
    def fully_blocked(self) -> bool:
        return (
            self.block_public_acls
            and self.ignore_public_acls
            and self.block_public_policy
            and self.restrict_public_buckets
        )


@dataclass(frozen=True)
class BucketRecord:
    """
    An object storage bucket.

    Parameters
    ----------
    name : str
        Bucket name.
    region : str
        Bucket region.
    public_access_block : PublicAccessBlock, optional
        None when the configuration could not be retrieved.
    acl_grantee_uris : tuple of str, optional
        Group grantee URIs from the ACL. Only fetched when
        ``public_access_block`` is None; None when not fetched or when the
        ACL itself could not be read.
    """

    name: str
    region: str = ""
    public_access_block: Optional[PublicAccessBlock] = None
    acl_grantee_uris: Optional[Tuple[str, ...]] = None


# =============================================================================
# Cluster Records
# =============================================================================


@dataclass(frozen=True)
class PodRecord:
    """A pod with aggregated container readiness and restarts."""

    name: str
    namespace: str
    phase: str
    ready_containers: int = 0
    total_containers: int = 0
    restarts: int = 0
    node_name: str = ""
    created: Optional[datetime] = None


@dataclass(frozen=True)
class DeploymentRecord:
    """A deployment and its replica counters."""

    name: str
    namespace: str
    desired_replicas: int = 1
    ready_replicas: int = 0
    updated_replicas: int = 0
    available_replicas: int = 0
    created: Optional[datetime] = None


@dataclass(frozen=True)
class NodeRecord:
    """
    A cluster node.

    ``ready_condition`` is the status string of the ``Ready`` condition
    ('True', 'False', 'Unknown') or None when the node reports none.
    """

    name: str
    ready_condition: Optional[str] = None
    roles: Tuple[str, ...] = ()
    kubelet_version: str = ""
    cpu_capacity: str = ""
    memory_capacity: str = ""
    pod_capacity: str = ""
    created: Optional[datetime] = None


@dataclass(frozen=True)
class DisruptionBudgetRecord:
    """A PodDisruptionBudget spec and status counters."""

    name: str
    namespace: str
    expected_pods: int = 0
    current_healthy: int = 0
    desired_healthy: int = 0
    disruptions_allowed: int = 0
    min_available: Optional[str] = None
    max_unavailable: Optional[str] = None


@dataclass(frozen=True)
class CertificateRecord:
    """
    Raw certificate bytes from a ``kubernetes.io/tls`` secret.

    ``pem_data`` is None when the secret has no ``tls.crt`` key.
    """

    secret_name: str
    namespace: str
    pem_data: Optional[bytes] = field(default=None, repr=False)


@dataclass(frozen=True)
class EventRecord:
    """A cluster event."""

    namespace: str
    kind: str
    name: str
    reason: str
    message: str
    event_type: str = "Normal"
    count: int = 1
    last_seen: Optional[datetime] = None
