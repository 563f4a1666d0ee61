"""
Tests for the waste scanner.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError

from fleet_audit.core.config import AuditConfig
from fleet_audit.core.exceptions import ResourceFetchError
from fleet_audit.core.taxonomy import ResourceKind
from fleet_audit.scanners.waste_scanner import CloudWatchMetricSource, WasteScanner

AMI_ID = "ami-12c6146b"


def only(*kinds):
    return AuditConfig(enabled_checks=frozenset(kinds))


def cpu_source(values):
    """Metric source returning fixed averages by identifier."""

    def source(namespace, dimension, identifier):
        return values.get(identifier)

    return source


def throttled(*args, **kwargs):
    raise ClientError(
        {"Error": {"Code": "Throttling", "Message": "Rate exceeded"}},
        "GetMetricStatistics",
    )


@pytest.fixture
def instance_ids(ec2_client):
    response = ec2_client.run_instances(
        ImageId=AMI_ID, MinCount=2, MaxCount=2, InstanceType="t3.micro"
    )
    return [i["InstanceId"] for i in response["Instances"]]


class TestVolumes:
    """Tests for the unattached volume check."""

    def test_unattached_volume(self, aws_client, ec2_client, instance_ids):
        """Test that only available volumes are reported."""
        free = ec2_client.create_volume(AvailabilityZone="us-east-1a", Size=100, VolumeType="gp2")
        used = ec2_client.create_volume(AvailabilityZone="us-east-1a", Size=50, VolumeType="gp3")
        ec2_client.attach_volume(
            VolumeId=used["VolumeId"], InstanceId=instance_ids[0], Device="/dev/sdf"
        )

        result = WasteScanner(aws_client, config=only(ResourceKind.VOLUME)).scan()
        volumes = result.findings_of(ResourceKind.VOLUME)

        assert [v.resource_id for v in volumes] == [free["VolumeId"]]
        assert volumes[0].monthly_cost == pytest.approx(10.0)
        assert volumes[0].unit == "us-east-1"
        assert result.scanned[ResourceKind.VOLUME] == len(ec2_client.describe_volumes()["Volumes"])

    def test_describe_failure_is_fatal(self, aws_client):
        """Test that a failed DescribeVolumes fails the unit."""
        scanner = WasteScanner(aws_client, config=only(ResourceKind.VOLUME))
        scanner._ec2_client = MagicMock()
        scanner._ec2_client.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "UnauthorizedOperation", "Message": "denied"}},
            "DescribeVolumes",
        )

        with pytest.raises(ResourceFetchError) as exc_info:
            scanner.scan()
        assert exc_info.value.unit == "us-east-1"
        assert exc_info.value.details["error_code"] == "UnauthorizedOperation"


class TestSnapshots:
    """Tests for the orphaned snapshot check."""

    def test_orphaned_snapshot(self, aws_client, ec2_client):
        """Test that a snapshot of a deleted volume is reported."""
        live = ec2_client.create_volume(AvailabilityZone="us-east-1a", Size=10)
        gone = ec2_client.create_volume(AvailabilityZone="us-east-1a", Size=20)
        kept = ec2_client.create_snapshot(VolumeId=live["VolumeId"])
        orphan = ec2_client.create_snapshot(VolumeId=gone["VolumeId"])
        ec2_client.delete_volume(VolumeId=gone["VolumeId"])

        result = WasteScanner(aws_client, config=only(ResourceKind.SNAPSHOT)).scan()
        snapshot_ids = {s.resource_id for s in result.findings_of(ResourceKind.SNAPSHOT)}

        assert orphan["SnapshotId"] in snapshot_ids
        assert kept["SnapshotId"] not in snapshot_ids


class TestElasticIPs:
    """Tests for the unused Elastic IP check."""

    def test_unassociated_address(self, aws_client, ec2_client, instance_ids):
        """Test that only unassociated addresses are reported."""
        free = ec2_client.allocate_address(Domain="vpc")
        used = ec2_client.allocate_address(Domain="vpc")
        ec2_client.associate_address(AllocationId=used["AllocationId"], InstanceId=instance_ids[0])

        result = WasteScanner(aws_client, config=only(ResourceKind.ELASTIC_IP)).scan()
        addresses = result.findings_of(ResourceKind.ELASTIC_IP)

        assert [a.resource_id for a in addresses] == [free["AllocationId"]]
        assert addresses[0].public_ip == free["PublicIp"]
        assert result.scanned[ResourceKind.ELASTIC_IP] == 2


class TestInstances:
    """Tests for the underutilized instance check."""

    def test_low_cpu(self, aws_client, instance_ids):
        """Test that idle instances are reported and busy ones are not."""
        idle, busy = instance_ids
        scanner = WasteScanner(
            aws_client,
            config=only(ResourceKind.INSTANCE),
            metric_source=cpu_source({idle: 1.5, busy: 60.0}),
        )
        findings = scanner.scan().findings_of(ResourceKind.INSTANCE)

        assert [f.resource_id for f in findings] == [idle]
        assert findings[0].instance_type == "t3.micro"
        assert findings[0].monthly_cost == pytest.approx(9.0)

    def test_no_metric_data(self, aws_client, instance_ids):
        """Test that instances without datapoints are never reported."""
        scanner = WasteScanner(
            aws_client, config=only(ResourceKind.INSTANCE), metric_source=cpu_source({})
        )
        assert scanner.scan().findings == ()

    def test_metric_failure_is_fatal(self, aws_client, instance_ids):
        """Test that a failing metric source fails the unit."""
        scanner = WasteScanner(
            aws_client, config=only(ResourceKind.INSTANCE), metric_source=throttled
        )
        with pytest.raises(ResourceFetchError):
            scanner.scan()


class TestDatabases:
    """Tests for the underutilized database check."""

    def test_low_cpu_database(self, aws_client, rds_client):
        """Test that an idle database is reported."""
        for name in ("idle-db", "busy-db"):
            rds_client.create_db_instance(
                DBInstanceIdentifier=name,
                DBInstanceClass="db.t3.small",
                Engine="postgres",
                MasterUsername="admin",
                MasterUserPassword="password123",
                AllocatedStorage=20,
            )
        scanner = WasteScanner(
            aws_client,
            config=only(ResourceKind.DATABASE),
            metric_source=cpu_source({"idle-db": 2.0, "busy-db": 45.0}),
        )
        findings = scanner.scan().findings_of(ResourceKind.DATABASE)

        assert [f.resource_id for f in findings] == ["idle-db"]
        assert findings[0].engine == "postgres"
        assert findings[0].monthly_cost == pytest.approx(30.0)


class TestWasteScanner:
    """Tests for WasteScanner class."""

    def test_disabled_checks_do_not_run(self, aws_client, ec2_client):
        """Test that only enabled kinds are scanned."""
        ec2_client.allocate_address(Domain="vpc")
        ec2_client.create_volume(AvailabilityZone="us-east-1a", Size=10)

        result = WasteScanner(aws_client, config=only(ResourceKind.VOLUME)).scan()

        assert {f.kind for f in result.findings} == {ResourceKind.VOLUME}
        assert ResourceKind.ELASTIC_IP not in result.scanned

    def test_scan_type(self, aws_client):
        """Test the scanner family name."""
        scanner = WasteScanner(aws_client)
        assert scanner.get_scan_type() == "waste"
        assert scanner.unit == "us-east-1"


class TestCloudWatchMetricSource:
    """Tests for CloudWatchMetricSource class."""

    def test_average(self, mock_aws_environment):
        """Test the average over returned datapoints."""
        cloudwatch = boto3.client("cloudwatch", region_name="us-east-1")
        timestamp = datetime.now(timezone.utc) - timedelta(hours=2)
        cloudwatch.put_metric_data(
            Namespace="AWS/EC2",
            MetricData=[
                {
                    "MetricName": "CPUUtilization",
                    "Dimensions": [{"Name": "InstanceId", "Value": "i-123"}],
                    "Timestamp": timestamp,
                    "Value": 3.0,
                }
            ],
        )
        source = CloudWatchMetricSource(cloudwatch)

        assert source("AWS/EC2", "InstanceId", "i-123") == pytest.approx(3.0)
        assert source("AWS/EC2", "InstanceId", "i-none") is None
