"""
Cross-Unit Aggregator
=====================

Merges per-unit scan results into one immutable report object, and models
the cost breakdown produced by the cost analyzer.

Accumulation is associative and commutative: units are keyed and ordered by
name, and totals use :func:`math.fsum`, so the order in which worker threads
finish never changes the output.

Classes
-------
UnitFailure
    A scan unit whose record or metric source failed.
AggregateResult
    Read-only union of unit results with totals and counts.
ResultAggregator
    Builder: create, populate with ``add``/``add_failure``, then ``freeze``.
CostItem, DailyCost, CostBreakdown
    Ranked spend per dimension key with daily trend and top-N reduction.

Example
-------
>>> aggregator = ResultAggregator("waste")
>>> aggregator.add(scanner_east.scan())
>>> aggregator.add_failure("eu-west-1", ResourceFetchError("AccessDenied"))
>>> result = aggregator.freeze()
>>> print(f"${result.total_potential_savings:.2f}/month")
>>> result.failed_units
['eu-west-1']
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from fleet_audit.core.base_scanner import ScanUnitResult, SkippedRecord
from fleet_audit.core.findings import Finding
from fleet_audit.core.taxonomy import ResourceKind, Severity

# Module logger
logger = logging.getLogger(__name__)

OTHER_KEY = "Other"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UnitFailure:
    """A unit that could not be scanned."""

    unit: str
    error: str
    error_type: str = "Exception"

    def to_dict(self) -> Dict[str, Any]:
        return {"unit": self.unit, "error": self.error, "error_type": self.error_type}


@dataclass(frozen=True)
class AggregateResult:
    """
    Aggregated results from scanning several units.

    Parameters
    ----------
    scan_type : str
        Scanner family the units were scanned with.
    results_by_unit : mapping of str to ScanUnitResult
        Successful units, in unit-name order.
    failures : tuple of UnitFailure
        Failed units, in unit-name order.
    scan_time : datetime, optional
        When the result was frozen.

    Examples
    --------
    >>> result.findings_of(ResourceKind.INSTANCE)
    >>> result.count_by_severity()
    {<Severity.CRITICAL: 'critical'>: 3, <Severity.HIGH: 'high'>: 0, ...}
    """

    scan_type: str
    results_by_unit: Mapping[str, ScanUnitResult]
    failures: Tuple[UnitFailure, ...] = ()
    scan_time: datetime = field(default_factory=_utcnow)

    # =========================================================================
    # Units
    # =========================================================================

    @property
    def units(self) -> List[str]:
        """Every unit that was attempted, successful or not, sorted."""
        return sorted(set(self.results_by_unit) | {f.unit for f in self.failures})

    @property
    def successful_units(self) -> List[str]:
        return list(self.results_by_unit)

    @property
    def failed_units(self) -> List[str]:
        return [f.unit for f in self.failures]

    @property
    def has_errors(self) -> bool:
        return len(self.failures) > 0

    @property
    def all_failed(self) -> bool:
        """True when units were attempted and none succeeded."""
        return bool(self.failures) and not self.results_by_unit

    # =========================================================================
    # Findings and counts
    # =========================================================================

    @property
    def findings(self) -> Tuple[Finding, ...]:
        """All findings, unit by unit in name order."""
        return tuple(
            finding
            for result in self.results_by_unit.values()
            for finding in result.findings
        )

    @property
    def skipped(self) -> Tuple[SkippedRecord, ...]:
        return tuple(
            skipped
            for result in self.results_by_unit.values()
            for skipped in result.skipped
        )

    def findings_of(self, kind: ResourceKind) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.kind is kind)

    @property
    def kinds(self) -> List[ResourceKind]:
        """Kinds any successful unit examined, in taxonomy order."""
        seen = set()
        for result in self.results_by_unit.values():
            seen.update(result.scanned)
            seen.update(result.status_counts)
        return [kind for kind in ResourceKind if kind in seen]

    def scanned_count(self, kind: ResourceKind) -> int:
        return sum(r.scanned.get(kind, 0) for r in self.results_by_unit.values())

    @property
    def total_potential_savings(self) -> float:
        """Exact sum of every non-null finding cost."""
        return math.fsum(
            f.monthly_cost for f in self.findings if f.monthly_cost is not None
        )

    def cost_of(self, kind: ResourceKind) -> float:
        return math.fsum(
            f.monthly_cost
            for f in self.findings_of(kind)
            if f.monthly_cost is not None
        )

    def label_counts(self, kind: Optional[ResourceKind] = None) -> Dict[str, int]:
        """
        Count findings per label value.

        Parameters
        ----------
        kind : ResourceKind, optional
            Restrict the count to one kind. Labels from different enums can
            share a value ('critical'), so mixed counts are only meaningful
            within one kind.

        Returns
        -------
        dict
            Label value to count. Unlabelled findings are not counted.
        """
        findings = self.findings if kind is None else self.findings_of(kind)
        counts = Counter(f.label.value for f in findings if f.label is not None)
        return dict(counts)

    def status_counts(self, kind: ResourceKind) -> Dict[str, int]:
        """
        Label counts over every classified object of ``kind``.

        Unlike :meth:`label_counts` this includes objects that were counted
        by a scanner but not listed as findings.
        """
        counts: Counter = Counter()
        for result in self.results_by_unit.values():
            counts.update(result.status_counts.get(kind, {}))
        return dict(counts)

    def count_by_severity(self) -> Dict[Severity, int]:
        """Count security findings per severity; every level is present."""
        counts = {severity: 0 for severity in Severity}
        for finding in self.findings:
            if isinstance(finding.label, Severity):
                counts[finding.label] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation suitable for JSON serialization.
        """
        by_kind: Dict[str, Any] = {}
        for finding in self.findings:
            entry = by_kind.setdefault(
                finding.kind.value, {"count": 0, "monthly_cost": 0.0, "items": []}
            )
            entry["count"] += 1
            entry["items"].append(finding.to_dict())
        for kind_value, entry in by_kind.items():
            entry["monthly_cost"] = round(self.cost_of(ResourceKind(kind_value)), 2)

        kinds = self.kinds
        data: Dict[str, Any] = {
            "scan_type": self.scan_type,
            "units_scanned": self.units,
            "successful_units": self.successful_units,
            "total_findings": len(self.findings),
            "total_potential_savings": round(self.total_potential_savings, 2),
            "findings": by_kind,
            "scanned": {kind.value: self.scanned_count(kind) for kind in kinds},
            "label_counts": {
                kind_value: self.label_counts(ResourceKind(kind_value))
                for kind_value in by_kind
            },
            "status_counts": {
                kind.value: self.status_counts(kind)
                for kind in kinds
                if self.status_counts(kind)
            },
            "skipped": [s.to_dict() for s in self.skipped],
            "errors": [f.to_dict() for f in self.failures],
            "scan_time": self.scan_time.isoformat(),
        }
        if self.scan_type == "security":
            data["count_by_severity"] = {
                s.value: n for s, n in self.count_by_severity().items()
            }
        return data

    def __repr__(self) -> str:
        return (
            f"AggregateResult(scan_type='{self.scan_type}', "
            f"units={len(self.units)}, "
            f"findings={len(self.findings)}, "
            f"failed={len(self.failures)})"
        )


class ResultAggregator:
    """
    Accumulates unit results, then freezes them into an AggregateResult.

    Parameters
    ----------
    scan_type : str
        Scanner family being aggregated.

    Notes
    -----
    Not thread-safe. The runner merges results on a single thread after
    all futures complete.
    """

    def __init__(self, scan_type: str) -> None:
        self.scan_type = scan_type
        self._results: Dict[str, ScanUnitResult] = {}
        self._failures: Dict[str, UnitFailure] = {}
        self._frozen: Optional[AggregateResult] = None

    def _check_open(self, unit: str) -> None:
        if self._frozen is not None:
            raise RuntimeError("Cannot add to a frozen aggregator")
        if unit in self._results or unit in self._failures:
            raise ValueError(f"Unit already aggregated: {unit}")

    def add(self, result: ScanUnitResult) -> None:
        self._check_open(result.unit)
        self._results[result.unit] = result

    def add_failure(self, unit: str, error: BaseException) -> None:
        self._check_open(unit)
        message = getattr(error, "message", None) or str(error)
        self._failures[unit] = UnitFailure(
            unit=unit, error=message, error_type=type(error).__name__
        )

    def freeze(self) -> AggregateResult:
        """Build the immutable result; later calls return the same object."""
        if self._frozen is None:
            ordered = {unit: self._results[unit] for unit in sorted(self._results)}
            self._frozen = AggregateResult(
                scan_type=self.scan_type,
                results_by_unit=MappingProxyType(ordered),
                failures=tuple(self._failures[u] for u in sorted(self._failures)),
            )
            logger.debug(f"Aggregated {self._frozen!r}")
        return self._frozen

    def __repr__(self) -> str:
        return (
            f"ResultAggregator(scan_type='{self.scan_type}', "
            f"results={len(self._results)}, failures={len(self._failures)})"
        )


def merge_results(
    scan_type: str,
    results: Sequence[ScanUnitResult],
    failures: Optional[Mapping[str, BaseException]] = None,
) -> AggregateResult:
    """Aggregate an already-collected set of unit results in one call."""
    aggregator = ResultAggregator(scan_type)
    for result in results:
        aggregator.add(result)
    for unit, error in (failures or {}).items():
        aggregator.add_failure(unit, error)
    return aggregator.freeze()


# =============================================================================
# Cost Breakdown
# =============================================================================


@dataclass(frozen=True)
class CostItem:
    """Spend for one dimension key (service, region or instance type)."""

    key: str
    amount: float
    percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "amount": round(self.amount, 2),
            "percentage": round(self.percentage, 2),
        }


@dataclass(frozen=True)
class DailyCost:
    """Total spend for one day."""

    date: str
    amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "amount": round(self.amount, 2)}


def _percentage(amount: float, total: float) -> float:
    if total == 0:
        return 0.0
    return amount / total * 100


@dataclass(frozen=True)
class CostBreakdown:
    """
    Ranked spend over a date range.

    Use :meth:`from_amounts` to build one; items are sorted by descending
    amount and carry their share of the total.

    Example
    -------
    >>> breakdown = CostBreakdown.from_amounts(
    ...     "SERVICE", {"EC2": 50, "S3": 30, "RDS": 20, "KMS": 10, "SNS": 5}
    ... )
    >>> [i.key for i in breakdown.limit_to_top_n(3).items]
    ['EC2', 'S3', 'RDS', 'Other']
    """

    group_by: str
    items: Tuple[CostItem, ...]
    total: float
    currency: str = "USD"
    start_date: str = ""
    end_date: str = ""
    daily: Tuple[DailyCost, ...] = ()

    @classmethod
    def from_amounts(
        cls,
        group_by: str,
        amounts: Mapping[str, float],
        daily: Optional[Mapping[str, float]] = None,
        currency: str = "USD",
        start_date: str = "",
        end_date: str = "",
    ) -> CostBreakdown:
        total = math.fsum(amounts.values())
        ranked = sorted(amounts.items(), key=lambda kv: (-kv[1], kv[0]))
        items = tuple(
            CostItem(key=key, amount=amount, percentage=_percentage(amount, total))
            for key, amount in ranked
        )
        trend = tuple(
            DailyCost(date=day, amount=amount)
            for day, amount in sorted((daily or {}).items())
        )
        return cls(
            group_by=group_by,
            items=items,
            total=total,
            currency=currency,
            start_date=start_date,
            end_date=end_date,
            daily=trend,
        )

    def limit_to_top_n(self, n: int) -> CostBreakdown:
        """
        Keep the first ``n`` items and fold the rest into "Other".

        The "Other" item is appended only when the folded sum is strictly
        positive. With ``n`` at or above the item count, nothing changes.

        Raises
        ------
        ValueError
            If ``n`` is negative.
        """
        if n < 0:
            raise ValueError(f"n must not be negative, got {n}")
        if len(self.items) <= n:
            return self

        kept = list(self.items[:n])
        other = math.fsum(item.amount for item in self.items[n:])
        if other > 0:
            kept.append(
                CostItem(
                    key=OTHER_KEY,
                    amount=other,
                    percentage=_percentage(other, self.total),
                )
            )
        return replace(self, items=tuple(kept))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group_by": self.group_by,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "currency": self.currency,
            "total": round(self.total, 2),
            "items": [item.to_dict() for item in self.items],
            "daily": [day.to_dict() for day in self.daily],
        }

    def __repr__(self) -> str:
        return (
            f"CostBreakdown(group_by='{self.group_by}', "
            f"items={len(self.items)}, total={self.total:.2f})"
        )
