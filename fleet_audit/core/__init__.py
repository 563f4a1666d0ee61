"""
Core Components
===============

The classification and aggregation engine plus the scan plumbing around it:

- :mod:`taxonomy` - severity and status enums and their derivation rules
- :mod:`pricing` - monthly cost estimates
- :mod:`records` / :mod:`findings` - immutable inputs and outputs
- :class:`BaseScanner`, :class:`UnitRunner`, :class:`RegionManager` - scanning
- :class:`ResultAggregator` - cross-unit aggregation
- :class:`AWSClient`, :class:`KubeClient` - provider access
- Exception hierarchy for error handling

Example
-------
>>> from fleet_audit.core import AuditConfig, RegionManager
>>> from fleet_audit.scanners import WasteScanner
>>>
>>> manager = RegionManager(profile="production", max_workers=10)
>>> result = manager.scan_regions(WasteScanner, config=AuditConfig())

See Also
--------
fleet_audit.classifiers : Pure classification rules.
fleet_audit.scanners : Record sources and unit scanners.
fleet_audit.reporters : Output formatters.
"""

from fleet_audit.core.aggregator import (
    AggregateResult,
    CostBreakdown,
    CostItem,
    DailyCost,
    ResultAggregator,
    UnitFailure,
    merge_results,
)
from fleet_audit.core.aws_client import AWSClient
from fleet_audit.core.base_scanner import BaseScanner, ScanUnitResult, SkippedRecord
from fleet_audit.core.config import AuditConfig, Thresholds
from fleet_audit.core.exceptions import (
    AWSClientError,
    ConfigurationError,
    CredentialsError,
    FleetAuditError,
    KubernetesClientError,
    NotificationError,
    RecordParseError,
    RegionError,
    ResourceFetchError,
    ScanCancelledError,
    ScannerError,
    ServiceError,
)
from fleet_audit.core.kube_client import KubeClient
from fleet_audit.core.pricing import PriceTable
from fleet_audit.core.region_manager import RegionManager, UnitRunner
from fleet_audit.core.taxonomy import ResourceKind, Severity

__all__ = [
    # Clients
    "AWSClient",
    "KubeClient",
    # Configuration
    "AuditConfig",
    "Thresholds",
    "PriceTable",
    # Taxonomy
    "ResourceKind",
    "Severity",
    # Scanning
    "BaseScanner",
    "ScanUnitResult",
    "SkippedRecord",
    "UnitRunner",
    "RegionManager",
    # Aggregation
    "ResultAggregator",
    "AggregateResult",
    "UnitFailure",
    "merge_results",
    "CostBreakdown",
    "CostItem",
    "DailyCost",
    # Exceptions - Base
    "FleetAuditError",
    # Exceptions - Clients
    "AWSClientError",
    "CredentialsError",
    "RegionError",
    "ServiceError",
    "KubernetesClientError",
    # Exceptions - Scanner
    "ScannerError",
    "ResourceFetchError",
    "ScanCancelledError",
    "RecordParseError",
    # Exceptions - Other
    "ConfigurationError",
    "NotificationError",
]
