"""
Security Rule Evaluator
=======================

Decides which ingress rules expose risky ports to the internet and which
buckets allow public access.

Rules
-----
- A source range is public when it is exactly ``0.0.0.0/0`` or ``::/0``.
- A rule with protocol ``-1`` (all traffic) exposes every risky port; the
  finding protocol is ``ALL``.
- Otherwise a risky port is exposed when ``from_port <= port <= to_port``.
  A ``0-0`` range matches nothing.
- One finding per (public range, risky port). IPv4 ranges come before IPv6,
  and ports follow the risky-port table order.
- A bucket is public when its public-access-block configuration has any flag
  disabled ("Public Access Block Disabled"), or, when that configuration is
  unavailable, when its ACL grants AllUsers or AuthenticatedUsers
  ("Public ACL").

Example
-------
>>> rule = IngressRule(protocol="-1", ipv4_ranges=("0.0.0.0/0",))
>>> group = SecurityGroupRecord("sg-1", "wide-open", ingress_rules=(rule,))
>>> len(classify_security_group(group, unit="us-east-1"))
5
"""

from __future__ import annotations

from typing import List, Mapping, Optional

from fleet_audit.core.config import RISKY_PORTS
from fleet_audit.core.findings import OpenSecurityGroupFinding, PublicBucketFinding
from fleet_audit.core.records import BucketRecord, IngressRule, SecurityGroupRecord
from fleet_audit.core.taxonomy import Severity, port_severity

PUBLIC_CIDRS = frozenset({"0.0.0.0/0", "::/0"})
ALL_TRAFFIC_PROTOCOL = "-1"

ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
AUTHENTICATED_USERS_URI = "http://acs.amazonaws.com/groups/global/AuthenticatedUsers"
PUBLIC_GRANTEE_URIS = frozenset({ALL_USERS_URI, AUTHENTICATED_USERS_URI})

REASON_BLOCK_DISABLED = "Public Access Block Disabled"
REASON_PUBLIC_ACL = "Public ACL"

_PROTOCOL_NAMES = {
    "6": "TCP",
    "tcp": "TCP",
    "17": "UDP",
    "udp": "UDP",
    "-1": "ALL",
}


def is_public_cidr(cidr: str) -> bool:
    return cidr in PUBLIC_CIDRS


def is_port_in_range(port: int, from_port: int, to_port: int) -> bool:
    """Inclusive range check; a ``0-0`` range never matches."""
    if from_port == 0 and to_port == 0:
        return False
    return from_port <= port <= to_port


def normalize_protocol(protocol: str) -> str:
    """Map protocol numbers and names to TCP/UDP/ALL; others pass through."""
    return _PROTOCOL_NAMES.get(protocol.lower(), protocol)


def evaluate_ingress_rule(
    group: SecurityGroupRecord,
    rule: IngressRule,
    unit: str,
    risky_ports: Mapping[int, str] = RISKY_PORTS,
) -> List[OpenSecurityGroupFinding]:
    """
    Expand one ingress rule into findings.

    Parameters
    ----------
    group : SecurityGroupRecord
        Group the rule belongs to.
    rule : IngressRule
        The rule to evaluate.
    unit : str
        Region of the group.
    risky_ports : mapping of int to str
        Ports to report, with their service names.

    Returns
    -------
    list of OpenSecurityGroupFinding
        One per (public range, exposed risky port).
    """
    findings: List[OpenSecurityGroupFinding] = []
    all_traffic = rule.protocol == ALL_TRAFFIC_PROTOCOL

    for cidr in (*rule.ipv4_ranges, *rule.ipv6_ranges):
        if not is_public_cidr(cidr):
            continue
        for port, name in risky_ports.items():
            if not all_traffic and not is_port_in_range(
                port, rule.from_port, rule.to_port
            ):
                continue
            findings.append(
                OpenSecurityGroupFinding(
                    resource_id=group.group_id,
                    unit=unit,
                    monthly_cost=None,
                    label=port_severity(port),
                    group_name=group.group_name,
                    port=port,
                    port_name=name,
                    protocol="ALL" if all_traffic else normalize_protocol(rule.protocol),
                    cidr=cidr,
                )
            )
    return findings


def classify_security_group(
    group: SecurityGroupRecord,
    unit: str,
    risky_ports: Mapping[int, str] = RISKY_PORTS,
) -> List[OpenSecurityGroupFinding]:
    """All findings for a group, rule by rule in provider order."""
    findings: List[OpenSecurityGroupFinding] = []
    for rule in group.ingress_rules:
        findings.extend(evaluate_ingress_rule(group, rule, unit, risky_ports))
    return findings


def public_bucket_reason(bucket: BucketRecord) -> Optional[str]:
    """
    Return why a bucket is public, or None.

    The ACL is only consulted when the public-access-block configuration
    could not be retrieved, so the two reasons never both apply.
    """
    if bucket.public_access_block is not None:
        if bucket.public_access_block.fully_blocked:
            return None
        return REASON_BLOCK_DISABLED

    for uri in bucket.acl_grantee_uris or ():
        if uri in PUBLIC_GRANTEE_URIS:
            return REASON_PUBLIC_ACL
    return None


def classify_bucket(bucket: BucketRecord, unit: str) -> Optional[PublicBucketFinding]:
    reason = public_bucket_reason(bucket)
    if reason is None:
        return None
    return PublicBucketFinding(
        resource_id=bucket.name,
        unit=unit,
        monthly_cost=None,
        label=Severity.CRITICAL,
        reason=reason,
    )
