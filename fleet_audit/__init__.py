"""
Fleet Audit: Cloud Waste, Exposure and Cluster Health Auditing
==============================================================

Scans AWS accounts and Kubernetes clusters, classifies every resource
against waste, security and health rules, and aggregates the findings into
one cost-savings and posture report.

Modules
-------
core
    Taxonomy, pricing, records, findings, aggregation and scan plumbing
classifiers
    Pure classification rules
scanners
    Record sources and unit scanners
reporters
    Output formatters (CLI, CSV, JSON)
notifiers
    Slack alerts

Example
-------
>>> from fleet_audit import AuditConfig, RegionManager, WasteScanner
>>>
>>> manager = RegionManager(profile="production")
>>> result = manager.scan_regions(WasteScanner, regions=["us-east-1"], config=AuditConfig())
>>> print(f"${result.total_potential_savings:.2f}/month recoverable")

Notes
-----
Requires AWS credentials configured via:
- Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
- AWS credentials file (~/.aws/credentials)
- IAM role (when running on AWS infrastructure)

Kubernetes commands use ``$KUBECONFIG`` / ``~/.kube/config`` and fall back
to the in-cluster service account.
"""

__version__ = "0.1.0"
__author__ = "Fleet Audit Team"
__license__ = "MIT"

# Public API
from fleet_audit.core.aggregator import AggregateResult, CostBreakdown, ResultAggregator
from fleet_audit.core.aws_client import AWSClient
from fleet_audit.core.base_scanner import BaseScanner, ScanUnitResult
from fleet_audit.core.config import AuditConfig, Thresholds
from fleet_audit.core.exceptions import FleetAuditError
from fleet_audit.core.kube_client import KubeClient
from fleet_audit.core.region_manager import RegionManager, UnitRunner
from fleet_audit.scanners import (
    ClusterScanner,
    CostAnalyzer,
    NodeScanner,
    SecurityScanner,
    WasteScanner,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core classes
    "AWSClient",
    "KubeClient",
    "AuditConfig",
    "Thresholds",
    "BaseScanner",
    "ScanUnitResult",
    "RegionManager",
    "UnitRunner",
    "ResultAggregator",
    "AggregateResult",
    "CostBreakdown",
    "FleetAuditError",
    # Scanners
    "WasteScanner",
    "SecurityScanner",
    "ClusterScanner",
    "NodeScanner",
    "CostAnalyzer",
]
