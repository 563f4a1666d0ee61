"""
Cluster Scanner Module
======================

Scans Kubernetes state one namespace at a time: pod, deployment and
disruption-budget health, TLS certificate expiry and recent Warning events.
Nodes are cluster-scoped and are scanned by :class:`NodeScanner` as a
separate unit.

Classes
-------
ClusterScanner
    Namespaced checks for one namespace.
NodeScanner
    Node readiness for the whole cluster.

Functions
---------
cluster_scanner_factory
    Build the per-unit scanner factory used by :class:`UnitRunner`.

Example
-------
>>> kube = KubeClient(context="prod")
>>> config = AuditConfig(enabled_checks=frozenset({ResourceKind.CERTIFICATE}))
>>> result = ClusterScanner(kube, "ingress", config=config).scan()
>>> result.status_counts[ResourceKind.CERTIFICATE]
{'valid': 3, 'expiring-soon': 1}

Notes
-----
A TLS secret whose ``tls.crt`` is missing or unparseable is skipped and
recorded; it never aborts the namespace.
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from fleet_audit.classifiers.cluster import (
    classify_certificate,
    classify_deployment,
    classify_disruption_budget,
    classify_event,
    classify_node,
    classify_pod,
    node_roles,
    object_id,
)
from fleet_audit.core.base_scanner import BaseScanner, Check
from fleet_audit.core.config import AuditConfig
from fleet_audit.core.exceptions import RecordParseError
from fleet_audit.core.findings import Finding
from fleet_audit.core.records import (
    CertificateRecord,
    DeploymentRecord,
    DisruptionBudgetRecord,
    EventRecord,
    NodeRecord,
    PodRecord,
)
from fleet_audit.core.taxonomy import ResourceKind
from fleet_audit.scanners.common import kube_fetch

# Module logger
logger = logging.getLogger(__name__)

TLS_SECRET_TYPE = "kubernetes.io/tls"
TLS_CERT_KEY = "tls.crt"

# Unit name for cluster-scoped objects; never a valid namespace name
CLUSTER_UNIT = "(cluster)"

# Page size for list calls
PAGE_LIMIT = 500


def _list_all(list_call: Callable[..., Any], timeout: int, **kwargs) -> List[Any]:
    """Follow ``continue`` tokens until every item has been listed."""
    items: List[Any] = []
    token = None
    while True:
        if token:
            kwargs["_continue"] = token
        response = list_call(limit=PAGE_LIMIT, _request_timeout=timeout, **kwargs)
        items.extend(response.items or [])
        token = response.metadata._continue if response.metadata else None
        if not token:
            return items


class _KubeScanner(BaseScanner):
    """Shared wiring for scanners backed by a :class:`KubeClient`."""

    SCAN_TYPE = "cluster"

    def __init__(
        self,
        kube_client,
        unit: str,
        config: Optional[AuditConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        now: Optional[datetime] = None,
    ) -> None:
        super().__init__(unit, config=config, cancel_event=cancel_event)
        self.kube_client = kube_client
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    @property
    def timeout(self) -> int:
        return self.kube_client.timeout


class ClusterScanner(_KubeScanner):
    """
    Scanner for the namespaced objects of one namespace.

    Parameters
    ----------
    kube_client : KubeClient
        API access for the cluster.
    namespace : str
        Namespace to scan; also the scan unit.
    config : AuditConfig, optional
        Enabled checks and the certificate expiry window.
    cancel_event : threading.Event, optional
        Shared cancellation flag.
    now : datetime, optional
        Reference time for certificate and event windows.
    """

    def __init__(
        self,
        kube_client,
        namespace: str,
        config: Optional[AuditConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        now: Optional[datetime] = None,
    ) -> None:
        super().__init__(
            kube_client, namespace, config=config, cancel_event=cancel_event, now=now
        )
        self.namespace = namespace

    def get_checks(self) -> Sequence[Check]:
        return [
            (ResourceKind.POD, self.check_pods),
            (ResourceKind.DEPLOYMENT, self.check_deployments),
            (ResourceKind.DISRUPTION_BUDGET, self.check_disruption_budgets),
            (ResourceKind.CERTIFICATE, self.check_certificates),
            (ResourceKind.EVENT, self.check_events),
        ]

    # =========================================================================
    # Checks
    # =========================================================================

    def check_pods(self) -> List[Finding]:
        records = self.fetch_pods()
        self.record_scanned(ResourceKind.POD, len(records))
        return self._classify_all(ResourceKind.POD, records, classify_pod)

    def check_deployments(self) -> List[Finding]:
        records = self.fetch_deployments()
        self.record_scanned(ResourceKind.DEPLOYMENT, len(records))
        return self._classify_all(ResourceKind.DEPLOYMENT, records, classify_deployment)

    def check_disruption_budgets(self) -> List[Finding]:
        records = self.fetch_disruption_budgets()
        self.record_scanned(ResourceKind.DISRUPTION_BUDGET, len(records))
        return self._classify_all(
            ResourceKind.DISRUPTION_BUDGET, records, classify_disruption_budget
        )

    def check_certificates(self) -> List[Finding]:
        """
        Classify every TLS secret and list those inside the expiry window.

        Status counts include certificates outside the window.
        """
        records = self.fetch_certificates()
        self.record_scanned(ResourceKind.CERTIFICATE, len(records))
        expiry_days = self.config.thresholds.certificate_expiry_days
        now = self.now

        findings: List[Finding] = []
        for record in records:
            self.checkpoint()
            try:
                finding = classify_certificate(record, now=now)
            except RecordParseError as e:
                self.skip(
                    ResourceKind.CERTIFICATE,
                    object_id(record.namespace, record.secret_name),
                    e.message,
                )
                continue
            self.count_status(ResourceKind.CERTIFICATE, finding.label)
            if finding.days_remaining <= expiry_days:
                findings.append(finding)
        return findings

    def check_events(self) -> List[Finding]:
        records = self.fetch_events()
        self.record_scanned(ResourceKind.EVENT, len(records))
        now = self.now
        return [
            finding
            for finding in (classify_event(r, now=now) for r in records)
            if finding is not None
        ]

    def _classify_all(self, kind: ResourceKind, records, classifier) -> List[Finding]:
        findings: List[Finding] = []
        for record in records:
            finding = classifier(record)
            self.count_status(kind, finding.label)
            findings.append(finding)
        return findings

    # =========================================================================
    # Record Sources
    # =========================================================================

    def fetch_pods(self) -> Tuple[PodRecord, ...]:
        with kube_fetch(ResourceKind.POD, self.unit, "list pods"):
            pods = _list_all(
                self.kube_client.core_v1.list_namespaced_pod,
                self.timeout,
                namespace=self.namespace,
            )
        return tuple(self._pod_record(pod) for pod in pods)

    @staticmethod
    def _pod_record(pod) -> PodRecord:
        statuses = (pod.status.container_statuses if pod.status else None) or []
        return PodRecord(
            name=pod.metadata.name,
            namespace=pod.metadata.namespace,
            phase=(pod.status.phase if pod.status else None) or "Unknown",
            ready_containers=sum(1 for cs in statuses if cs.ready),
            total_containers=len(statuses),
            restarts=sum(cs.restart_count or 0 for cs in statuses),
            node_name=(pod.spec.node_name if pod.spec else None) or "",
            created=pod.metadata.creation_timestamp,
        )

    def fetch_deployments(self) -> Tuple[DeploymentRecord, ...]:
        with kube_fetch(ResourceKind.DEPLOYMENT, self.unit, "list deployments"):
            deployments = _list_all(
                self.kube_client.apps_v1.list_namespaced_deployment,
                self.timeout,
                namespace=self.namespace,
            )
        records = []
        for deployment in deployments:
            replicas = deployment.spec.replicas if deployment.spec else None
            status = deployment.status
            records.append(
                DeploymentRecord(
                    name=deployment.metadata.name,
                    namespace=deployment.metadata.namespace,
                    desired_replicas=1 if replicas is None else replicas,
                    ready_replicas=(status.ready_replicas if status else None) or 0,
                    updated_replicas=(status.updated_replicas if status else None) or 0,
                    available_replicas=(status.available_replicas if status else None) or 0,
                    created=deployment.metadata.creation_timestamp,
                )
            )
        return tuple(records)

    def fetch_disruption_budgets(self) -> Tuple[DisruptionBudgetRecord, ...]:
        with kube_fetch(
            ResourceKind.DISRUPTION_BUDGET, self.unit, "list pod disruption budgets"
        ):
            budgets = _list_all(
                self.kube_client.policy_v1.list_namespaced_pod_disruption_budget,
                self.timeout,
                namespace=self.namespace,
            )
        records = []
        for pdb in budgets:
            spec = pdb.spec
            status = pdb.status
            min_available = spec.min_available if spec else None
            max_unavailable = spec.max_unavailable if spec else None
            records.append(
                DisruptionBudgetRecord(
                    name=pdb.metadata.name,
                    namespace=pdb.metadata.namespace,
                    expected_pods=(status.expected_pods if status else None) or 0,
                    current_healthy=(status.current_healthy if status else None) or 0,
                    desired_healthy=(status.desired_healthy if status else None) or 0,
                    disruptions_allowed=(status.disruptions_allowed if status else None) or 0,
                    min_available=None if min_available is None else str(min_available),
                    max_unavailable=None if max_unavailable is None else str(max_unavailable),
                )
            )
        return tuple(records)

    def fetch_certificates(self) -> Tuple[CertificateRecord, ...]:
        """
        Fetch the ``tls.crt`` bytes of every TLS secret in the namespace.

        A secret whose ``tls.crt`` is not valid base64 is skipped here; a
        missing key yields a record without PEM data.
        """
        with kube_fetch(ResourceKind.CERTIFICATE, self.unit, "list secrets"):
            secrets = _list_all(
                self.kube_client.core_v1.list_namespaced_secret,
                self.timeout,
                namespace=self.namespace,
                field_selector=f"type={TLS_SECRET_TYPE}",
            )

        records = []
        for secret in secrets:
            if secret.type != TLS_SECRET_TYPE:
                continue
            name = secret.metadata.name
            encoded = (secret.data or {}).get(TLS_CERT_KEY)
            pem_data = None
            if encoded is not None:
                try:
                    pem_data = base64.b64decode(encoded, validate=True)
                except binascii.Error as e:
                    self.skip(
                        ResourceKind.CERTIFICATE,
                        object_id(self.namespace, name),
                        f"failed to decode {TLS_CERT_KEY}: {e}",
                    )
                    continue
            records.append(
                CertificateRecord(
                    secret_name=name,
                    namespace=secret.metadata.namespace or self.namespace,
                    pem_data=pem_data,
                )
            )
        logger.debug(f"Found {len(records)} TLS secrets in {self.unit}")
        return tuple(records)

    def fetch_events(self) -> Tuple[EventRecord, ...]:
        with kube_fetch(ResourceKind.EVENT, self.unit, "list events"):
            events = _list_all(
                self.kube_client.core_v1.list_namespaced_event,
                self.timeout,
                namespace=self.namespace,
            )
        records = []
        for event in events:
            involved = event.involved_object
            records.append(
                EventRecord(
                    namespace=event.metadata.namespace or self.namespace,
                    kind=(involved.kind if involved else None) or "",
                    name=(involved.name if involved else None) or "",
                    reason=event.reason or "",
                    message=event.message or "",
                    event_type=event.type or "Normal",
                    count=event.count or 1,
                    last_seen=event.last_timestamp or event.event_time,
                )
            )
        return tuple(records)

    def __repr__(self) -> str:
        return f"ClusterScanner(namespace='{self.namespace}')"


class NodeScanner(_KubeScanner):
    """Scanner for node readiness; its unit is the whole cluster."""

    def __init__(
        self,
        kube_client,
        config: Optional[AuditConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        super().__init__(kube_client, CLUSTER_UNIT, config=config, cancel_event=cancel_event)

    def get_checks(self) -> Sequence[Check]:
        return [(ResourceKind.NODE, self.check_nodes)]

    def check_nodes(self) -> List[Finding]:
        records = self.fetch_nodes()
        self.record_scanned(ResourceKind.NODE, len(records))
        findings: List[Finding] = []
        for record in records:
            finding = classify_node(record, unit=self.unit)
            self.count_status(ResourceKind.NODE, finding.label)
            findings.append(finding)
        return findings

    def fetch_nodes(self) -> Tuple[NodeRecord, ...]:
        with kube_fetch(ResourceKind.NODE, self.unit, "list nodes"):
            nodes = _list_all(self.kube_client.core_v1.list_node, self.timeout)
        records = []
        for node in nodes:
            status = node.status
            ready = None
            for condition in (status.conditions if status else None) or []:
                if condition.type == "Ready":
                    ready = condition.status
                    break
            capacity = (status.capacity if status else None) or {}
            node_info = status.node_info if status else None
            records.append(
                NodeRecord(
                    name=node.metadata.name,
                    ready_condition=ready,
                    roles=node_roles(node.metadata.labels),
                    kubelet_version=node_info.kubelet_version if node_info else "",
                    cpu_capacity=capacity.get("cpu", ""),
                    memory_capacity=capacity.get("memory", ""),
                    pod_capacity=capacity.get("pods", ""),
                    created=node.metadata.creation_timestamp,
                )
            )
        return tuple(records)

    def __repr__(self) -> str:
        return "NodeScanner()"


def cluster_scanner_factory(
    kube_client,
    config: Optional[AuditConfig] = None,
) -> Callable[[str, threading.Event], BaseScanner]:
    """
    Build a factory for :meth:`UnitRunner.run`.

    The factory returns a :class:`NodeScanner` for :data:`CLUSTER_UNIT` and
    a :class:`ClusterScanner` for any namespace.
    """

    def factory(unit: str, cancel_event: threading.Event) -> BaseScanner:
        if unit == CLUSTER_UNIT:
            return NodeScanner(kube_client, config=config, cancel_event=cancel_event)
        return ClusterScanner(kube_client, unit, config=config, cancel_event=cancel_event)

    return factory
