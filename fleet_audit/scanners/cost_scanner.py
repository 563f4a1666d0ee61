"""
Cost Analysis Module
====================

Reads actual spend from AWS Cost Explorer and turns it into a ranked
:class:`~fleet_audit.core.aggregator.CostBreakdown`.

Classes
-------
CostAnalyzer
    Queries ``GetCostAndUsage`` for a trailing window of days.

Example
-------
>>> analyzer = CostAnalyzer(AWSClient())
>>> breakdown = analyzer.get_cost_breakdown(days=30, group_by="SERVICE")
>>> for item in breakdown.limit_to_top_n(5).items:
...     print(f"{item.key}: ${item.amount:.2f} ({item.percentage:.1f}%)")
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from fleet_audit.core.aggregator import CostBreakdown
from fleet_audit.core.exceptions import ConfigurationError, ServiceError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_DAYS = 7
DEFAULT_GROUP_BY = "SERVICE"
DEFAULT_TOP_N = 10
COST_METRIC = "UnblendedCost"
DATE_FORMAT = "%Y-%m-%d"


class CostAnalyzer:
    """
    Cost Explorer client wrapper.

    Parameters
    ----------
    aws_client : AWSClient
        Client used to reach Cost Explorer (always served from us-east-1).
    """

    def __init__(self, aws_client) -> None:
        self.aws_client = aws_client
        self._ce_client = None

    @property
    def ce_client(self):
        if self._ce_client is None:
            self._ce_client = self.aws_client.get_ce_client()
        return self._ce_client

    def get_cost_breakdown(
        self,
        days: int = DEFAULT_DAYS,
        group_by: str = DEFAULT_GROUP_BY,
        end_date: Optional[date] = None,
    ) -> CostBreakdown:
        """
        Fetch daily unblended cost grouped by one dimension.

        Parameters
        ----------
        days : int, default=7
            Width of the window ending at ``end_date`` (exclusive).
        group_by : str, default='SERVICE'
            Cost Explorer dimension key (SERVICE, REGION, INSTANCE_TYPE).
        end_date : date, optional
            Defaults to today.

        Returns
        -------
        CostBreakdown
            Items ranked by spend plus a per-day total trend.

        Raises
        ------
        ConfigurationError
            If ``days`` is not positive.
        ServiceError
            If the Cost Explorer call fails.
        """
        if days < 1:
            raise ConfigurationError(f"days must be at least 1, got {days}")

        end = end_date or date.today()
        start = end - timedelta(days=days)
        start_str = start.strftime(DATE_FORMAT)
        end_str = end.strftime(DATE_FORMAT)

        logger.info(f"Fetching cost by {group_by} from {start_str} to {end_str}")

        amounts: Dict[str, float] = {}
        daily: Dict[str, float] = {}
        currency = "USD"

        request = {
            "TimePeriod": {"Start": start_str, "End": end_str},
            "Granularity": "DAILY",
            "Metrics": [COST_METRIC],
            "GroupBy": [{"Type": "DIMENSION", "Key": group_by}],
        }

        while True:
            try:
                response = self.ce_client.get_cost_and_usage(**request)
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                logger.error(f"Cost Explorer request failed: {error_code}")
                raise ServiceError(
                    f"Failed to get cost data: {e}",
                    service="ce",
                    details={"error_code": error_code},
                )
            except BotoCoreError as e:
                logger.error(f"Cost Explorer request failed: {e}")
                raise ServiceError(f"Failed to get cost data: {e}", service="ce")

            for period in response.get("ResultsByTime", []):
                day = period.get("TimePeriod", {}).get("Start", "")
                day_total = 0.0
                for group in period.get("Groups", []):
                    keys = group.get("Keys") or []
                    metric = group.get("Metrics", {}).get(COST_METRIC)
                    if not keys or metric is None:
                        continue
                    amount = float(metric.get("Amount", 0))
                    amounts[keys[0]] = amounts.get(keys[0], 0.0) + amount
                    day_total += amount
                    currency = metric.get("Unit") or currency
                if day:
                    daily[day] = daily.get(day, 0.0) + day_total

            token = response.get("NextPageToken")
            if not token:
                break
            request["NextPageToken"] = token

        breakdown = CostBreakdown.from_amounts(
            group_by,
            amounts,
            daily=daily,
            currency=currency,
            start_date=start_str,
            end_date=end_str,
        )
        logger.info(
            f"Cost breakdown: {len(breakdown.items)} item(s), "
            f"total {breakdown.total:.2f} {currency}"
        )
        return breakdown

    def __repr__(self) -> str:
        return f"CostAnalyzer(client={self.aws_client!r})"
