"""
Classifiers
===========

Pure decision rules: each takes one immutable record (plus thresholds and
prices) and returns a finding or nothing. No classifier performs I/O.

Modules
-------
compute
    Waste rules for volumes, instances, snapshots, floating IPs, databases.
security
    Open security group rules and public buckets.
cluster
    Certificates, disruption budgets, pods, deployments, nodes, events.
"""

from fleet_audit.classifiers.cluster import (
    classify_certificate,
    classify_deployment,
    classify_disruption_budget,
    classify_event,
    classify_node,
    classify_pod,
    parse_certificate,
)
from fleet_audit.classifiers.compute import (
    classify_database,
    classify_elastic_ip,
    classify_instance,
    classify_snapshot,
    classify_volume,
)
from fleet_audit.classifiers.security import (
    classify_bucket,
    classify_security_group,
    evaluate_ingress_rule,
    is_port_in_range,
    is_public_cidr,
    normalize_protocol,
)

__all__ = [
    "classify_volume",
    "classify_instance",
    "classify_snapshot",
    "classify_elastic_ip",
    "classify_database",
    "classify_security_group",
    "evaluate_ingress_rule",
    "classify_bucket",
    "is_public_cidr",
    "is_port_in_range",
    "normalize_protocol",
    "parse_certificate",
    "classify_certificate",
    "classify_disruption_budget",
    "classify_pod",
    "classify_deployment",
    "classify_node",
    "classify_event",
]
