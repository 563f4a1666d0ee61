"""
Waste Scanner Module
====================

Finds resources that cost money without doing useful work in one region.

Detection Logic
---------------
1. **Unattached EBS volumes** - volumes in the ``available`` state
2. **Underutilized EC2 instances** - running, 7-day average CPU below 5%
3. **Orphaned snapshots** - own snapshots whose source volume is gone
4. **Unused Elastic IPs** - addresses with no association
5. **Underutilized RDS instances** - 7-day average CPU below 10%

CPU averages come from a metric source: any callable
``(namespace, dimension, identifier) -> float or None``. The default one
queries CloudWatch ``GetMetricStatistics`` with hourly ``Average`` samples
and returns the mean of the datapoints, or None when there are none.

Classes
-------
CloudWatchMetricSource
    Default metric source backed by CloudWatch.
WasteScanner
    Scanner for the waste checks above.

Example
-------
>>> from fleet_audit.core import AWSClient
>>> from fleet_audit.scanners import WasteScanner
>>>
>>> scanner = WasteScanner(AWSClient(region="us-east-1"))
>>> result = scanner.scan()
>>> print(f"${result.total_cost:.2f}/month")
"""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from fleet_audit.classifiers.compute import (
    classify_database,
    classify_elastic_ip,
    classify_instance,
    classify_snapshot,
    classify_volume,
)
from fleet_audit.core.base_scanner import BaseScanner, Check
from fleet_audit.core.config import AuditConfig
from fleet_audit.core.findings import Finding
from fleet_audit.core.records import (
    DatabaseRecord,
    ElasticIPRecord,
    InstanceRecord,
    SnapshotRecord,
    VolumeRecord,
)
from fleet_audit.core.taxonomy import ResourceKind
from fleet_audit.scanners.common import aws_fetch

# Module logger
logger = logging.getLogger(__name__)

MetricSource = Callable[[str, str, str], Optional[float]]

EC2_NAMESPACE = ("AWS/EC2", "InstanceId")
RDS_NAMESPACE = ("AWS/RDS", "DBInstanceIdentifier")
CPU_METRIC = "CPUUtilization"


class CloudWatchMetricSource:
    """
    Trailing CPU average from CloudWatch.

    Parameters
    ----------
    cloudwatch_client : CloudWatch.Client
        Boto3 CloudWatch client for the unit's region.
    lookback_days : int, default=7
        Width of the window ending now.
    period_seconds : int, default=3600
        Datapoint period.
    metric_name : str, default="CPUUtilization"
        Metric to average.

    Raises
    ------
    botocore.exceptions.ClientError
        Propagated to the caller, which decides how fatal it is.
    """

    def __init__(
        self,
        cloudwatch_client: Any,
        lookback_days: int = 7,
        period_seconds: int = 3600,
        metric_name: str = CPU_METRIC,
    ) -> None:
        self.cloudwatch_client = cloudwatch_client
        self.lookback_days = lookback_days
        self.period_seconds = period_seconds
        self.metric_name = metric_name

    def __call__(self, namespace: str, dimension: str, identifier: str) -> Optional[float]:
        end_time = datetime.now(timezone.utc)
        start_time = end_time - timedelta(days=self.lookback_days)

        response = self.cloudwatch_client.get_metric_statistics(
            Namespace=namespace,
            MetricName=self.metric_name,
            Dimensions=[{"Name": dimension, "Value": identifier}],
            StartTime=start_time,
            EndTime=end_time,
            Period=self.period_seconds,
            Statistics=["Average"],
        )

        datapoints = response.get("Datapoints", [])
        if not datapoints:
            logger.debug(f"No {self.metric_name} datapoints for {identifier}")
            return None
        return math.fsum(dp["Average"] for dp in datapoints) / len(datapoints)

    def __repr__(self) -> str:
        return (
            f"CloudWatchMetricSource(lookback_days={self.lookback_days}, "
            f"period_seconds={self.period_seconds})"
        )


def _name_tag(tags: Optional[List[Dict[str, str]]]) -> str:
    for tag in tags or []:
        if tag.get("Key") == "Name":
            return tag.get("Value", "")
    return ""


class WasteScanner(BaseScanner):
    """
    Scanner for cost waste in one AWS region.

    Parameters
    ----------
    aws_client : AWSClient
        Client bound to the region to scan.
    config : AuditConfig, optional
        Enabled checks, thresholds and prices.
    cancel_event : threading.Event, optional
        Shared cancellation flag.
    metric_source : callable, optional
        ``(namespace, dimension, identifier) -> float or None``. Defaults to
        a :class:`CloudWatchMetricSource` built from the thresholds.

    Examples
    --------
    >>> scanner = WasteScanner(client, metric_source=lambda ns, dim, ident: 2.5)
    >>> result = scanner.scan()
    >>> result.findings_of(ResourceKind.INSTANCE)
    """

    SCAN_TYPE = "waste"

    def __init__(
        self,
        aws_client,
        config: Optional[AuditConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        metric_source: Optional[MetricSource] = None,
    ) -> None:
        super().__init__(aws_client.region, config=config, cancel_event=cancel_event)
        self.aws_client = aws_client
        self.region = aws_client.region

        self._ec2_client = None
        self._rds_client = None
        self._metric_source = metric_source

    # =========================================================================
    # Service Client Properties (Lazy Loading)
    # =========================================================================

    @property
    def ec2_client(self):
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    @property
    def rds_client(self):
        if self._rds_client is None:
            self._rds_client = self.aws_client.get_rds_client()
        return self._rds_client

    @property
    def metric_source(self) -> MetricSource:
        if self._metric_source is None:
            thresholds = self.config.thresholds
            self._metric_source = CloudWatchMetricSource(
                self.aws_client.get_cloudwatch_client(),
                lookback_days=thresholds.metric_lookback_days,
                period_seconds=thresholds.metric_period_seconds,
            )
        return self._metric_source

    # =========================================================================
    # BaseScanner Implementation
    # =========================================================================

    def get_checks(self) -> Sequence[Check]:
        return [
            (ResourceKind.VOLUME, self.check_volumes),
            (ResourceKind.INSTANCE, self.check_instances),
            (ResourceKind.SNAPSHOT, self.check_snapshots),
            (ResourceKind.ELASTIC_IP, self.check_elastic_ips),
            (ResourceKind.DATABASE, self.check_databases),
        ]

    def check_volumes(self) -> List[Finding]:
        records = self.fetch_volumes()
        self.record_scanned(ResourceKind.VOLUME, len(records))
        prices = self.config.prices
        return [
            finding
            for finding in (classify_volume(r, self.unit, prices) for r in records)
            if finding is not None
        ]

    def check_instances(self) -> List[Finding]:
        records = self.fetch_instances()
        self.record_scanned(ResourceKind.INSTANCE, len(records))
        prices = self.config.prices
        threshold = self.config.thresholds.instance_cpu_percent
        return [
            finding
            for finding in (
                classify_instance(r, self.unit, prices, cpu_threshold=threshold)
                for r in records
            )
            if finding is not None
        ]

    def check_snapshots(self) -> List[Finding]:
        # Both lists come from the same pass so the comparison is consistent
        snapshots = self.fetch_snapshots()
        live_volume_ids = {v.volume_id for v in self.fetch_volumes()}
        self.record_scanned(ResourceKind.SNAPSHOT, len(snapshots))
        prices = self.config.prices
        return [
            finding
            for finding in (
                classify_snapshot(s, live_volume_ids, self.unit, prices)
                for s in snapshots
            )
            if finding is not None
        ]

    def check_elastic_ips(self) -> List[Finding]:
        records = self.fetch_elastic_ips()
        self.record_scanned(ResourceKind.ELASTIC_IP, len(records))
        prices = self.config.prices
        return [
            finding
            for finding in (classify_elastic_ip(r, self.unit, prices) for r in records)
            if finding is not None
        ]

    def check_databases(self) -> List[Finding]:
        records = self.fetch_databases()
        self.record_scanned(ResourceKind.DATABASE, len(records))
        prices = self.config.prices
        threshold = self.config.thresholds.database_cpu_percent
        return [
            finding
            for finding in (
                classify_database(r, self.unit, prices, cpu_threshold=threshold)
                for r in records
            )
            if finding is not None
        ]

    # =========================================================================
    # Record Sources
    # =========================================================================

    def fetch_volumes(self) -> Tuple[VolumeRecord, ...]:
        """
        Fetch every EBS volume in the region, attached or not.

        Raises
        ------
        ResourceFetchError
            If DescribeVolumes fails.
        """
        records: List[VolumeRecord] = []
        with aws_fetch(ResourceKind.VOLUME, self.unit, "describe volumes"):
            paginator = self.ec2_client.get_paginator("describe_volumes")
            for page in paginator.paginate():
                for volume in page.get("Volumes", []):
                    records.append(
                        VolumeRecord(
                            volume_id=volume["VolumeId"],
                            size_gb=volume.get("Size", 0),
                            volume_type=volume.get("VolumeType", ""),
                            state=volume.get("State", ""),
                            availability_zone=volume.get("AvailabilityZone", ""),
                            create_time=volume.get("CreateTime"),
                        )
                    )
        logger.debug(f"Found {len(records)} volumes in {self.unit}")
        return tuple(records)

    def fetch_instances(self) -> Tuple[InstanceRecord, ...]:
        """Fetch running instances with their trailing CPU average."""
        records: List[InstanceRecord] = []
        with aws_fetch(ResourceKind.INSTANCE, self.unit, "describe instances"):
            paginator = self.ec2_client.get_paginator("describe_instances")
            instances = [
                instance
                for page in paginator.paginate(
                    Filters=[{"Name": "instance-state-name", "Values": ["running"]}]
                )
                for reservation in page.get("Reservations", [])
                for instance in reservation.get("Instances", [])
            ]

        namespace, dimension = EC2_NAMESPACE
        for instance in instances:
            self.checkpoint()
            instance_id = instance["InstanceId"]
            with aws_fetch(
                ResourceKind.INSTANCE, self.unit, f"get CPU metrics for {instance_id}"
            ):
                avg_cpu = self.metric_source(namespace, dimension, instance_id)
            records.append(
                InstanceRecord(
                    instance_id=instance_id,
                    instance_type=instance.get("InstanceType", ""),
                    state=instance.get("State", {}).get("Name", ""),
                    avg_cpu=avg_cpu,
                    launch_time=instance.get("LaunchTime"),
                    name=_name_tag(instance.get("Tags")),
                )
            )
        return tuple(records)

    def fetch_snapshots(self) -> Tuple[SnapshotRecord, ...]:
        """Fetch snapshots owned by this account."""
        records: List[SnapshotRecord] = []
        with aws_fetch(ResourceKind.SNAPSHOT, self.unit, "describe snapshots"):
            paginator = self.ec2_client.get_paginator("describe_snapshots")
            for page in paginator.paginate(OwnerIds=["self"]):
                for snapshot in page.get("Snapshots", []):
                    records.append(
                        SnapshotRecord(
                            snapshot_id=snapshot["SnapshotId"],
                            volume_id=snapshot.get("VolumeId", ""),
                            size_gb=snapshot.get("VolumeSize", 0),
                            start_time=snapshot.get("StartTime"),
                            description=snapshot.get("Description", ""),
                        )
                    )
        return tuple(records)

    def fetch_elastic_ips(self) -> Tuple[ElasticIPRecord, ...]:
        with aws_fetch(ResourceKind.ELASTIC_IP, self.unit, "describe addresses"):
            response = self.ec2_client.describe_addresses()
        return tuple(
            ElasticIPRecord(
                allocation_id=address.get("AllocationId", address.get("PublicIp", "")),
                public_ip=address.get("PublicIp", ""),
                association_id=address.get("AssociationId"),
                domain=address.get("Domain", "vpc"),
            )
            for address in response.get("Addresses", [])
        )

    def fetch_databases(self) -> Tuple[DatabaseRecord, ...]:
        """Fetch RDS instances with their trailing CPU average."""
        with aws_fetch(ResourceKind.DATABASE, self.unit, "describe DB instances"):
            paginator = self.rds_client.get_paginator("describe_db_instances")
            databases = [
                db
                for page in paginator.paginate()
                for db in page.get("DBInstances", [])
            ]

        records: List[DatabaseRecord] = []
        namespace, dimension = RDS_NAMESPACE
        for db in databases:
            self.checkpoint()
            db_id = db["DBInstanceIdentifier"]
            with aws_fetch(
                ResourceKind.DATABASE, self.unit, f"get CPU metrics for {db_id}"
            ):
                avg_cpu = self.metric_source(namespace, dimension, db_id)
            records.append(
                DatabaseRecord(
                    instance_id=db_id,
                    instance_class=db.get("DBInstanceClass", ""),
                    engine=db.get("Engine", ""),
                    avg_cpu=avg_cpu,
                    status=db.get("DBInstanceStatus", ""),
                )
            )
        return tuple(records)

    def __repr__(self) -> str:
        return f"WasteScanner(region='{self.region}')"
