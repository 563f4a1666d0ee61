"""
Scanners
========

Record sources and the unit scanners built on them.

Modules
-------
waste_scanner
    Unattached volumes, idle instances, orphaned snapshots, unused Elastic
    IPs and idle databases in one region.
security_scanner
    Public S3 buckets and open security groups in one region.
cluster_scanner
    Pod, deployment, disruption budget, certificate, event and node checks.
cost_scanner
    Cost Explorer spend breakdown.
"""

from fleet_audit.scanners.cluster_scanner import (
    CLUSTER_UNIT,
    ClusterScanner,
    NodeScanner,
    cluster_scanner_factory,
)
from fleet_audit.scanners.cost_scanner import CostAnalyzer
from fleet_audit.scanners.security_scanner import SecurityScanner
from fleet_audit.scanners.waste_scanner import CloudWatchMetricSource, WasteScanner

__all__ = [
    "WasteScanner",
    "CloudWatchMetricSource",
    "SecurityScanner",
    "ClusterScanner",
    "NodeScanner",
    "cluster_scanner_factory",
    "CLUSTER_UNIT",
    "CostAnalyzer",
]
