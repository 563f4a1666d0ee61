"""
Base Scanner Module
===================

Provides the abstract base class for all scanners in Fleet Audit.

A scanner processes exactly one scan unit (a cloud region or a cluster
namespace). It fetches records through its record sources, runs the
classifier of every enabled check over them and returns one
:class:`ScanUnitResult`.

Classes
-------
SkippedRecord
    A record that could not be classified, with the reason.
ScanUnitResult
    Findings, scan counts and skipped records for one unit.
BaseScanner
    Abstract base class for unit scanners.

Example
-------
>>> from fleet_audit.core.base_scanner import BaseScanner
>>>
>>> class MyScanner(BaseScanner):
...     SCAN_TYPE = "custom"
...
...     def get_checks(self):
...         return [(ResourceKind.VOLUME, self.check_volumes)]
...
...     def check_volumes(self):
...         records = self.fetch_volumes()
...         self.record_scanned(ResourceKind.VOLUME, len(records))
...         return [f for f in map(classify_volume, records) if f]

Notes
-----
A :class:`~fleet_audit.core.exceptions.ResourceFetchError` raised by a check
is fatal for the unit and propagates out of :meth:`BaseScanner.scan`.
Per-record problems are recorded with :meth:`BaseScanner.skip` instead.

See Also
--------
WasteScanner : Concrete implementation for cost waste.
UnitRunner : Runs one scanner per unit in parallel.
"""

from __future__ import annotations

import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from fleet_audit.core.config import AuditConfig
from fleet_audit.core.exceptions import ScanCancelledError
from fleet_audit.core.findings import Finding
from fleet_audit.core.taxonomy import ResourceKind

# Module logger
logger = logging.getLogger(__name__)

# A check: the kind it reports on, and a callable returning its findings
Check = Tuple[ResourceKind, Callable[[], List[Finding]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SkippedRecord:
    """
    A record that was skipped instead of classified.

    Parameters
    ----------
    kind : ResourceKind
        Kind of the record.
    resource_id : str
        Identifier of the record.
    reason : str
        Why it was skipped (e.g., a PEM decode error).
    unit : str
        Scan unit the record belongs to.
    """

    kind: ResourceKind
    resource_id: str
    reason: str
    unit: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "resource_id": self.resource_id,
            "reason": self.reason,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class ScanUnitResult:
    """
    Results of scanning one unit.

    Parameters
    ----------
    unit : str
        Region or namespace that was scanned.
    scan_type : str
        Scanner family ('waste', 'security', 'cluster').
    findings : tuple of Finding
        Findings in check order, source order within a check.
    scanned : mapping of ResourceKind to int
        Number of records examined per kind.
    skipped : tuple of SkippedRecord
        Records that could not be classified.
    status_counts : mapping of ResourceKind to mapping of str to int
        Label counts over every classified object, including objects that
        were not listed as findings (e.g. certificates outside the window).
    scan_time : datetime, optional
        When the scan finished (defaults to now, UTC).

    Examples
    --------
    >>> result = scanner.scan()
    >>> result.findings_of(ResourceKind.VOLUME)
    >>> print(f"${result.total_cost:.2f}/month in {result.unit}")
    """

    unit: str
    scan_type: str
    findings: Tuple[Finding, ...] = ()
    scanned: Mapping[ResourceKind, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    skipped: Tuple[SkippedRecord, ...] = ()
    status_counts: Mapping[ResourceKind, Mapping[str, int]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    scan_time: datetime = field(default_factory=_utcnow)

    def findings_of(self, kind: ResourceKind) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.kind is kind)

    @property
    def total_cost(self) -> float:
        """Sum of the non-null monthly costs of this unit's findings."""
        return math.fsum(
            f.monthly_cost for f in self.findings if f.monthly_cost is not None
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the unit result to a dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation suitable for JSON serialization.
        """
        return {
            "unit": self.unit,
            "scan_type": self.scan_type,
            "findings": [f.to_dict() for f in self.findings],
            "scanned": {k.value: n for k, n in self.scanned.items()},
            "skipped": [s.to_dict() for s in self.skipped],
            "status_counts": {
                k.value: dict(counts) for k, counts in self.status_counts.items()
            },
            "scan_time": self.scan_time.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"ScanUnitResult(unit='{self.unit}', "
            f"scan_type='{self.scan_type}', "
            f"findings={len(self.findings)}, "
            f"skipped={len(self.skipped)})"
        )


class BaseScanner(ABC):
    """
    Abstract base class for all unit scanners.

    Parameters
    ----------
    unit : str
        The region or namespace this scanner covers.
    config : AuditConfig, optional
        Enabled checks, thresholds and prices. Defaults to ``AuditConfig()``.
    cancel_event : threading.Event, optional
        Shared cancellation flag; checked between checks and records.

    Attributes
    ----------
    unit : str
        The scan unit.
    config : AuditConfig
        Run options.

    Methods
    -------
    scan()
        Run every enabled check and return a ScanUnitResult.
    get_scan_type()
        Return the scanner family name.
    get_checks()
        Return the (kind, callable) pairs this scanner supports (abstract).
    """

    # Scanner family, set by subclasses
    SCAN_TYPE: str = ""

    def __init__(
        self,
        unit: str,
        config: Optional[AuditConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.unit = unit
        self.config = config or AuditConfig()
        self.cancel_event = cancel_event
        self._scanned: Dict[ResourceKind, int] = {}
        self._skipped: List[SkippedRecord] = []
        self._status_counts: Dict[ResourceKind, Dict[str, int]] = {}
        logger.debug(f"Initialized {self.__class__.__name__} for {unit}")

    def get_scan_type(self) -> str:
        """
        Get the scanner family name.

        Returns
        -------
        str
            Lowercase identifier, e.g. 'waste'.
        """
        return self.SCAN_TYPE

    @abstractmethod
    def get_checks(self) -> Sequence[Check]:
        """
        Get the checks this scanner knows how to run.

        Returns
        -------
        list of (ResourceKind, callable)
            Checks in report order. Only those whose kind is enabled in the
            config are executed.
        """

    # =========================================================================
    # Helpers for subclasses
    # =========================================================================

    def checkpoint(self) -> None:
        """
        Stop if the run was cancelled.

        Raises
        ------
        ScanCancelledError
            If the shared cancel event is set.
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ScanCancelledError(
                "Scan cancelled",
                resource_type=self.get_scan_type(),
                unit=self.unit,
            )

    def record_scanned(self, kind: ResourceKind, count: int) -> None:
        self._scanned[kind] = self._scanned.get(kind, 0) + count

    def count_status(self, kind: ResourceKind, label: Enum) -> None:
        counts = self._status_counts.setdefault(kind, {})
        counts[label.value] = counts.get(label.value, 0) + 1

    def skip(self, kind: ResourceKind, resource_id: str, reason: str) -> None:
        """Record a per-record problem and keep going."""
        logger.warning(f"Skipping {kind.value} {resource_id} in {self.unit}: {reason}")
        self._skipped.append(
            SkippedRecord(kind=kind, resource_id=resource_id, reason=reason, unit=self.unit)
        )

    # =========================================================================
    # Scan
    # =========================================================================

    def scan(self) -> ScanUnitResult:
        """
        Run every enabled check against this unit.

        Returns
        -------
        ScanUnitResult
            Findings from all enabled checks, in check order.

        Raises
        ------
        ResourceFetchError
            If a record or metric source fails; fatal for the unit.
        ScanCancelledError
            If the run was cancelled while this unit was in flight.
        """
        logger.info(f"Starting {self.get_scan_type()} scan of {self.unit}")
        self._scanned = {}
        self._skipped = []
        self._status_counts = {}
        findings: List[Finding] = []

        for kind, check in self.get_checks():
            if not self.config.is_enabled(kind):
                continue
            self.checkpoint()
            found = check()
            logger.debug(f"{kind.value}: {len(found)} finding(s) in {self.unit}")
            findings.extend(found)

        result = ScanUnitResult(
            unit=self.unit,
            scan_type=self.get_scan_type(),
            findings=tuple(findings),
            scanned=MappingProxyType(dict(self._scanned)),
            skipped=tuple(self._skipped),
            status_counts=MappingProxyType(
                {k: MappingProxyType(dict(v)) for k, v in self._status_counts.items()}
            ),
        )

        logger.info(
            f"Scan complete: {len(result.findings)} finding(s), "
            f"{len(result.skipped)} skipped in {self.unit}"
        )
        return result

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"unit='{self.unit}', "
            f"scan_type='{self.get_scan_type()}')"
        )
