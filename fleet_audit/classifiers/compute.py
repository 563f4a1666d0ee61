"""
Compute Waste Classifiers
=========================

Pure functions that decide whether one compute or storage record is waste
and, if so, build the finding with its monthly cost estimate.

Every function returns ``None`` when the record is not waste. None of them
perform I/O; the snapshot classifier receives the live volume ids fetched
in the same unit pass.

Functions
---------
classify_volume
    Unattached block volumes.
classify_instance
    Running instances under the CPU threshold.
classify_snapshot
    Snapshots whose source volume no longer exists.
classify_elastic_ip
    Floating IPs with no association.
classify_database
    Managed databases under the CPU threshold.

Example
-------
>>> record = VolumeRecord("vol-1", 100, "gp3", "available")
>>> finding = classify_volume(record, unit="us-east-1")
>>> finding.monthly_cost
8.0
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AbstractSet, Optional

from fleet_audit.core.findings import (
    OrphanedSnapshotFinding,
    UnattachedVolumeFinding,
    UnderutilizedDatabaseFinding,
    UnderutilizedInstanceFinding,
    UnusedElasticIPFinding,
)
from fleet_audit.core.pricing import PriceTable
from fleet_audit.core.records import (
    DatabaseRecord,
    ElasticIPRecord,
    InstanceRecord,
    SnapshotRecord,
    VolumeRecord,
)
from fleet_audit.core.taxonomy import (
    DATABASE_CPU_THRESHOLD,
    INSTANCE_CPU_THRESHOLD,
    is_underutilized,
)

UNATTACHED_VOLUME_STATE = "available"
RUNNING_STATE = "running"

_DEFAULT_PRICES = PriceTable()


def age_in_days(created: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days since ``created``; None when the timestamp is unknown."""
    if created is None:
        return None
    now = now or datetime.now(timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return max((now - created).days, 0)


def classify_volume(
    record: VolumeRecord,
    unit: str,
    prices: Optional[PriceTable] = None,
    now: Optional[datetime] = None,
) -> Optional[UnattachedVolumeFinding]:
    """
    Flag a volume that is not attached to anything.

    Cost is size times the per-GB rate of the volume type; unknown types
    use the default rate.
    """
    if record.state != UNATTACHED_VOLUME_STATE:
        return None
    prices = prices or _DEFAULT_PRICES
    return UnattachedVolumeFinding(
        resource_id=record.volume_id,
        unit=unit,
        monthly_cost=prices.volume_monthly_cost(record.size_gb, record.volume_type),
        label=None,
        size_gb=record.size_gb,
        volume_type=record.volume_type,
        availability_zone=record.availability_zone,
        age_days=age_in_days(record.create_time, now),
    )


def classify_instance(
    record: InstanceRecord,
    unit: str,
    prices: Optional[PriceTable] = None,
    cpu_threshold: float = INSTANCE_CPU_THRESHOLD,
) -> Optional[UnderutilizedInstanceFinding]:
    """
    Flag a running instance whose average CPU is below ``cpu_threshold``.

    Instances in any other state are ignored, and so are instances with no
    metric data. An unknown instance type still produces a finding, priced
    at the table default.
    """
    if record.state != RUNNING_STATE:
        return None
    if not is_underutilized(record.avg_cpu, cpu_threshold):
        return None
    prices = prices or _DEFAULT_PRICES
    return UnderutilizedInstanceFinding(
        resource_id=record.instance_id,
        unit=unit,
        monthly_cost=prices.instance_monthly_cost(record.instance_type),
        label=None,
        instance_type=record.instance_type,
        avg_cpu=record.avg_cpu,
        name=record.name,
    )


def classify_snapshot(
    record: SnapshotRecord,
    live_volume_ids: AbstractSet[str],
    unit: str,
    prices: Optional[PriceTable] = None,
    now: Optional[datetime] = None,
) -> Optional[OrphanedSnapshotFinding]:
    """
    Flag a snapshot whose source volume is not in ``live_volume_ids``.

    ``live_volume_ids`` must come from the same unit pass as the snapshot
    list, or a volume created in between would be missed.
    """
    if record.volume_id in live_volume_ids:
        return None
    prices = prices or _DEFAULT_PRICES
    return OrphanedSnapshotFinding(
        resource_id=record.snapshot_id,
        unit=unit,
        monthly_cost=prices.snapshot_monthly_cost(record.size_gb),
        label=None,
        volume_id=record.volume_id,
        size_gb=record.size_gb,
        age_days=age_in_days(record.start_time, now),
    )


def classify_elastic_ip(
    record: ElasticIPRecord,
    unit: str,
    prices: Optional[PriceTable] = None,
) -> Optional[UnusedElasticIPFinding]:
    """Flag a floating IP with no association id (missing or empty)."""
    if record.association_id:
        return None
    prices = prices or _DEFAULT_PRICES
    return UnusedElasticIPFinding(
        resource_id=record.allocation_id,
        unit=unit,
        monthly_cost=prices.elastic_ip_monthly_cost(),
        label=None,
        public_ip=record.public_ip,
    )


def classify_database(
    record: DatabaseRecord,
    unit: str,
    prices: Optional[PriceTable] = None,
    cpu_threshold: float = DATABASE_CPU_THRESHOLD,
) -> Optional[UnderutilizedDatabaseFinding]:
    """Flag a database whose average CPU is below ``cpu_threshold``."""
    if not is_underutilized(record.avg_cpu, cpu_threshold):
        return None
    prices = prices or _DEFAULT_PRICES
    return UnderutilizedDatabaseFinding(
        resource_id=record.instance_id,
        unit=unit,
        monthly_cost=prices.database_monthly_cost(record.instance_class),
        label=None,
        instance_class=record.instance_class,
        engine=record.engine,
        avg_cpu=record.avg_cpu,
    )
