"""
Security Scanner Module
=======================

Finds internet-facing exposure in one region: S3 buckets that allow public
access, and security groups with risky ports open to ``0.0.0.0/0`` or
``::/0``.

Buckets are listed account-wide and only those located in the scanned
region are evaluated, so scanning several regions never reports a bucket
twice.

Classes
-------
SecurityScanner
    Scanner for bucket and security group exposure.

Example
-------
>>> scanner = SecurityScanner(AWSClient(region="eu-west-1"),
...                           config=AuditConfig(enabled_checks=frozenset(SECURITY_KINDS)))
>>> result = scanner.scan()
>>> for finding in result.findings:
...     print(finding.label.value, finding.details())
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from fleet_audit.classifiers.security import classify_bucket, classify_security_group
from fleet_audit.core.base_scanner import BaseScanner, Check
from fleet_audit.core.config import AuditConfig
from fleet_audit.core.findings import Finding
from fleet_audit.core.records import (
    BucketRecord,
    IngressRule,
    PublicAccessBlock,
    SecurityGroupRecord,
)
from fleet_audit.core.taxonomy import ResourceKind
from fleet_audit.scanners.common import aws_fetch, error_code

# Module logger
logger = logging.getLogger(__name__)

# GetBucketLocation returns an empty constraint for us-east-1, "EU" for the
# legacy eu-west-1 location
_LEGACY_LOCATIONS = {"": "us-east-1", "EU": "eu-west-1"}


def bucket_region(location_constraint: Optional[str]) -> str:
    location = location_constraint or ""
    return _LEGACY_LOCATIONS.get(location, location)


class SecurityScanner(BaseScanner):
    """
    Scanner for public buckets and open security groups.

    Parameters
    ----------
    aws_client : AWSClient
        Client bound to the region to scan.
    config : AuditConfig, optional
        Enabled checks and risky ports.
    cancel_event : threading.Event, optional
        Shared cancellation flag.
    """

    SCAN_TYPE = "security"

    def __init__(
        self,
        aws_client,
        config: Optional[AuditConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        super().__init__(aws_client.region, config=config, cancel_event=cancel_event)
        self.aws_client = aws_client
        self.region = aws_client.region

        self._ec2_client = None
        self._s3_client = None

    @property
    def ec2_client(self):
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = self.aws_client.get_s3_client()
        return self._s3_client

    # =========================================================================
    # BaseScanner Implementation
    # =========================================================================

    def get_checks(self) -> Sequence[Check]:
        return [
            (ResourceKind.BUCKET, self.check_buckets),
            (ResourceKind.SECURITY_GROUP, self.check_security_groups),
        ]

    def check_buckets(self) -> List[Finding]:
        records = self.fetch_buckets()
        self.record_scanned(ResourceKind.BUCKET, len(records))
        return [
            finding
            for finding in (classify_bucket(b, self.unit) for b in records)
            if finding is not None
        ]

    def check_security_groups(self) -> List[Finding]:
        records = self.fetch_security_groups()
        self.record_scanned(ResourceKind.SECURITY_GROUP, len(records))
        risky_ports = self.config.thresholds.risky_ports
        findings: List[Finding] = []
        for group in records:
            findings.extend(classify_security_group(group, self.unit, risky_ports))
        return findings

    # =========================================================================
    # Record Sources
    # =========================================================================

    def fetch_security_groups(self) -> Tuple[SecurityGroupRecord, ...]:
        """
        Fetch security groups with their ingress rules.

        Raises
        ------
        ResourceFetchError
            If DescribeSecurityGroups fails.
        """
        records: List[SecurityGroupRecord] = []
        with aws_fetch(ResourceKind.SECURITY_GROUP, self.unit, "describe security groups"):
            paginator = self.ec2_client.get_paginator("describe_security_groups")
            for page in paginator.paginate():
                for sg in page.get("SecurityGroups", []):
                    records.append(
                        SecurityGroupRecord(
                            group_id=sg["GroupId"],
                            group_name=sg.get("GroupName", ""),
                            vpc_id=sg.get("VpcId", ""),
                            ingress_rules=tuple(
                                self._ingress_rule(p) for p in sg.get("IpPermissions", [])
                            ),
                        )
                    )
        logger.debug(f"Found {len(records)} security groups in {self.unit}")
        return tuple(records)

    @staticmethod
    def _ingress_rule(permission: dict) -> IngressRule:
        return IngressRule(
            protocol=str(permission.get("IpProtocol", "")),
            from_port=permission.get("FromPort", 0),
            to_port=permission.get("ToPort", 0),
            ipv4_ranges=tuple(
                r["CidrIp"] for r in permission.get("IpRanges", []) if "CidrIp" in r
            ),
            ipv6_ranges=tuple(
                r["CidrIpv6"]
                for r in permission.get("Ipv6Ranges", [])
                if "CidrIpv6" in r
            ),
        )

    def fetch_buckets(self) -> Tuple[BucketRecord, ...]:
        """
        Fetch the buckets located in this region.

        ListBuckets failing is fatal for the unit. A bucket whose location
        cannot be read is skipped and recorded.
        """
        with aws_fetch(ResourceKind.BUCKET, self.unit, "list buckets"):
            response = self.s3_client.list_buckets()

        records: List[BucketRecord] = []
        for bucket in response.get("Buckets", []):
            self.checkpoint()
            name = bucket["Name"]
            try:
                location = self.s3_client.get_bucket_location(Bucket=name)
            except (ClientError, BotoCoreError) as e:
                self.skip(ResourceKind.BUCKET, name, f"location unavailable ({error_code(e)})")
                continue

            region = bucket_region(location.get("LocationConstraint"))
            if region != self.unit:
                continue

            public_access_block = self._public_access_block(name)
            acl_uris = None
            if public_access_block is None:
                acl_uris = self._acl_grantee_uris(name)

            records.append(
                BucketRecord(
                    name=name,
                    region=region,
                    public_access_block=public_access_block,
                    acl_grantee_uris=acl_uris,
                )
            )
        return tuple(records)

    def _public_access_block(self, bucket: str) -> Optional[PublicAccessBlock]:
        """The bucket's public-access-block flags, or None if not retrievable."""
        try:
            response = self.s3_client.get_public_access_block(Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            logger.debug(f"No public access block for {bucket}: {error_code(e)}")
            return None
        config = response.get("PublicAccessBlockConfiguration", {})
        return PublicAccessBlock(
            block_public_acls=config.get("BlockPublicAcls", False),
            ignore_public_acls=config.get("IgnorePublicAcls", False),
            block_public_policy=config.get("BlockPublicPolicy", False),
            restrict_public_buckets=config.get("RestrictPublicBuckets", False),
        )

    def _acl_grantee_uris(self, bucket: str) -> Optional[Tuple[str, ...]]:
        try:
            response = self.s3_client.get_bucket_acl(Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            logger.debug(f"Cannot read ACL of {bucket}: {error_code(e)}")
            return None
        return tuple(
            grant["Grantee"]["URI"]
            for grant in response.get("Grants", [])
            if "URI" in grant.get("Grantee", {})
        )

    def __repr__(self) -> str:
        return f"SecurityScanner(region='{self.region}')"
