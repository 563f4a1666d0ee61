"""
Region Manager Module
=====================

Runs one scanner per scan unit in parallel and merges the unit results.

- Dynamic discovery of available AWS regions
- Bounded parallel execution with a thread pool
- Cooperative cancellation on Ctrl-C or on the first failure (fail-fast)
- Deterministic aggregation through :class:`ResultAggregator`

Classes
-------
UnitRunner
    Generic runner over any list of units (regions or namespaces).
RegionManager
    UnitRunner that creates one AWSClient per region.

Example
-------
>>> from fleet_audit.core.region_manager import RegionManager
>>> from fleet_audit.scanners import WasteScanner
>>>
>>> manager = RegionManager(profile="production", max_workers=4)
>>> result = manager.scan_regions(WasteScanner, regions=["us-east-1", "eu-west-1"])
>>> print(f"${result.total_potential_savings:.2f}/month")

Notes
-----
Each unit gets its own scanner and its own client. Results are merged on
the calling thread, so the aggregator is never shared between workers.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

from botocore.exceptions import BotoCoreError, ClientError

from fleet_audit.core.aggregator import AggregateResult, ResultAggregator
from fleet_audit.core.aws_client import AWSClient
from fleet_audit.core.base_scanner import BaseScanner, ScanUnitResult
from fleet_audit.core.config import AuditConfig
from fleet_audit.core.exceptions import (
    AWSClientError,
    FleetAuditError,
    ScanCancelledError,
)

# Module logger
logger = logging.getLogger(__name__)

# Builds the scanner for one unit, given the shared cancel event
ScannerFactory = Callable[[str, threading.Event], BaseScanner]
ProgressCallback = Callable[[str, str], None]
UnitOutcome = Tuple[str, Optional[ScanUnitResult], Optional[Exception]]


class UnitRunner:
    """
    Executes one scanner per unit in a bounded thread pool.

    Parameters
    ----------
    max_workers : int, default=10
        Maximum number of units scanned at the same time.
    fail_fast : bool, default=False
        Cancel the remaining units after the first unit failure.

    Attributes
    ----------
    cancel_event : threading.Event
        Set when the run is cancelled; scanners check it at checkpoints.

    Examples
    --------
    >>> runner = UnitRunner(max_workers=4)
    >>> result = runner.run(
    ...     ["default", "payments"],
    ...     lambda ns, cancel: ClusterScanner(kube, ns, cancel_event=cancel),
    ...     scan_type="cluster",
    ... )

    With progress tracking:

    >>> def on_progress(unit, status):
    ...     print(f"{unit}: {status}")
    >>> runner.run(units, factory, "waste", progress_callback=on_progress)
    """

    def __init__(self, max_workers: int = 10, fail_fast: bool = False) -> None:
        self.max_workers = max_workers
        self.fail_fast = fail_fast
        self.cancel_event = threading.Event()

        logger.debug(
            f"Initialized {self.__class__.__name__} with max_workers={max_workers}, "
            f"fail_fast={fail_fast}"
        )

    def cancel(self) -> None:
        """Ask in-flight scanners to stop at their next checkpoint."""
        if not self.cancel_event.is_set():
            logger.warning("Cancelling remaining scan units")
        self.cancel_event.set()

    def _scan_unit(
        self,
        unit: str,
        factory: ScannerFactory,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UnitOutcome:
        """
        Scan a single unit (runs on a worker thread).

        Returns
        -------
        tuple
            (unit, ScanUnitResult or None, error or None)
        """
        try:
            if self.cancel_event.is_set():
                raise ScanCancelledError("Scan cancelled", unit=unit)

            if progress_callback:
                progress_callback(unit, "scanning")

            scanner = factory(unit, self.cancel_event)
            result = scanner.scan()

            if progress_callback:
                progress_callback(unit, "complete")

            logger.debug(f"Completed scan of {unit}")
            return (unit, result, None)

        except FleetAuditError as e:
            logger.error(f"Error scanning {unit}: {e.message}")
            if progress_callback:
                progress_callback(unit, "error")
            return (unit, None, e)

        except Exception as e:
            logger.exception(f"Unexpected error scanning {unit}")
            if progress_callback:
                progress_callback(unit, "error")
            return (unit, None, e)

    def run(
        self,
        units: Sequence[str],
        factory: ScannerFactory,
        scan_type: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> AggregateResult:
        """
        Scan every unit and aggregate the results.

        Parameters
        ----------
        units : sequence of str
            Units to scan. Duplicates are scanned once.
        factory : callable
            ``factory(unit, cancel_event)`` returning the unit's scanner.
        scan_type : str
            Scanner family, recorded on the result.
        progress_callback : callable, optional
            Called with (unit, status); status is one of 'scanning',
            'complete', 'error'.

        Returns
        -------
        AggregateResult
            Successful units plus one failure entry per failed or
            cancelled unit.

        Raises
        ------
        KeyboardInterrupt
            Re-raised after pending units are cancelled.
        """
        unique_units = list(dict.fromkeys(units))
        logger.info(f"Starting {scan_type} scan across {len(unique_units)} unit(s)")

        aggregator = ResultAggregator(scan_type)
        if not unique_units:
            return aggregator.freeze()

        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.max_workers, len(unique_units)))
        )
        futures: Dict[Future, str] = {}
        try:
            futures = {
                executor.submit(
                    self._scan_unit, unit, factory, progress_callback
                ): unit
                for unit in unique_units
            }

            for future in as_completed(futures):
                unit = futures[future]
                if future.cancelled():
                    aggregator.add_failure(
                        unit, ScanCancelledError("Scan cancelled", unit=unit)
                    )
                    continue

                unit, result, error = future.result()
                if error is not None:
                    aggregator.add_failure(unit, error)
                    if self.fail_fast and not isinstance(error, ScanCancelledError):
                        self._cancel_pending(futures)
                elif result is not None:
                    aggregator.add(result)

        except KeyboardInterrupt:
            self._cancel_pending(futures)
            raise
        finally:
            executor.shutdown(wait=True)

        aggregate = aggregator.freeze()
        logger.info(
            f"{scan_type.capitalize()} scan complete: {len(aggregate.findings)} "
            f"finding(s) across {len(aggregate.successful_units)} unit(s), "
            f"{len(aggregate.failures)} failed"
        )
        return aggregate

    def _cancel_pending(self, futures: Dict[Future, str]) -> None:
        self.cancel()
        for future in futures:
            future.cancel()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(max_workers={self.max_workers}, "
            f"fail_fast={self.fail_fast})"
        )


class RegionManager(UnitRunner):
    """
    Runs AWS scanners across regions.

    Parameters
    ----------
    profile : str, optional
        AWS profile name from ~/.aws/credentials.
    max_workers : int, default=10
        Maximum number of parallel region scans.
    max_retries : int, default=3
        Maximum retries for failed API calls.
    timeout : int, default=30
        Request timeout in seconds.
    fail_fast : bool, default=False
        Cancel remaining regions after the first failure.

    Examples
    --------
    >>> manager = RegionManager(profile="production")
    >>> regions = manager.get_all_regions()
    >>> result = manager.scan_regions(SecurityScanner, regions=regions)
    >>> result.count_by_severity()
    """

    def __init__(
        self,
        profile: Optional[str] = None,
        max_workers: int = 10,
        max_retries: int = 3,
        timeout: int = 30,
        fail_fast: bool = False,
    ) -> None:
        super().__init__(max_workers=max_workers, fail_fast=fail_fast)
        self.profile = profile
        self.max_retries = max_retries
        self.timeout = timeout

        # Base client for fetching the region list (us-east-1 is always available)
        self._base_client = AWSClient(
            region="us-east-1",
            profile=profile,
            max_retries=max_retries,
            timeout=timeout,
        )

    def get_all_regions(self) -> List[str]:
        """
        Fetch all regions enabled for the account.

        Returns
        -------
        list of str
            Sorted region names.

        Raises
        ------
        AWSClientError
            If unable to fetch the region list.
        """
        try:
            ec2 = self._base_client.get_ec2_client()
            response = ec2.describe_regions(AllRegions=False)
        except (ClientError, BotoCoreError) as e:
            logger.exception("Failed to fetch AWS regions")
            raise AWSClientError(f"Failed to fetch AWS regions: {e}", service="ec2")

        regions = sorted(r["RegionName"] for r in response["Regions"])
        logger.info(f"Discovered {len(regions)} available AWS regions")
        return regions

    def get_client_for_region(self, region: str) -> AWSClient:
        return self._base_client.with_region(region)

    def scan_regions(
        self,
        scanner_class: Type[BaseScanner],
        regions: Optional[Sequence[str]] = None,
        config: Optional[AuditConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> AggregateResult:
        """
        Scan regions in parallel with one scanner per region.

        Parameters
        ----------
        scanner_class : type
            Scanner class taking ``(aws_client, config=, cancel_event=)``.
        regions : sequence of str, optional
            Regions to scan. If None, scans all available regions.
        config : AuditConfig, optional
            Run options shared by every scanner.
        progress_callback : callable, optional
            Function called with (region, status).
        """
        if regions is None:
            regions = self.get_all_regions()
        run_config = config or AuditConfig()

        def factory(region: str, cancel_event: threading.Event) -> BaseScanner:
            return scanner_class(
                self.get_client_for_region(region),
                config=run_config,
                cancel_event=cancel_event,
            )

        return self.run(
            regions,
            factory,
            scan_type=scanner_class.SCAN_TYPE,
            progress_callback=progress_callback,
        )

    def __repr__(self) -> str:
        return (
            f"RegionManager(profile={self.profile!r}, "
            f"max_workers={self.max_workers})"
        )
