"""
Cost Estimator Module
=====================

Static monthly USD estimates for the resources the waste classifiers flag.

Estimates are deterministic lookups, not Pricing API calls: the same input
always yields the same number. Every lookup has a default, so an unknown
volume type, instance type or database class still produces an estimate.

Classes
-------
PriceTable
    Immutable set of rate tables with per-field overrides.

Example
-------
>>> prices = PriceTable()
>>> prices.volume_monthly_cost(100, "gp3")
8.0
>>> prices.instance_monthly_cost("x9.huge")
100.0
>>> custom = prices.with_overrides(volume_rates={"gp3": 0.09})
>>> custom.volume_monthly_cost(100, "gp3")
9.0
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping

# USD per GB-month, by EBS volume type
DEFAULT_VOLUME_RATES: Mapping[str, float] = MappingProxyType(
    {
        "io1": 0.125,
        "io2": 0.125,
        "gp2": 0.10,
        "gp3": 0.08,
        "st1": 0.045,
        "sc1": 0.015,
    }
)

# USD per month, by EC2 instance type
DEFAULT_INSTANCE_PRICES: Mapping[str, float] = MappingProxyType(
    {
        "t2.micro": 10.00,
        "t2.small": 20.00,
        "t2.medium": 40.00,
        "t3.micro": 9.00,
        "t3.small": 18.00,
        "t3.medium": 36.00,
        "m5.large": 88.00,
        "m5.xlarge": 176.00,
    }
)

# USD per month, by RDS instance class
DEFAULT_DATABASE_PRICES: Mapping[str, float] = MappingProxyType(
    {
        "db.t3.micro": 15.00,
        "db.t3.small": 30.00,
        "db.m5.large": 145.00,
    }
)


def _frozen(mapping: Mapping[str, float]) -> Mapping[str, float]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class PriceTable:
    """
    Rate tables used to estimate monthly cost.

    Parameters
    ----------
    volume_rates : mapping of str to float
        Per-GB-month rate by volume type.
    default_volume_rate : float, default=0.10
        Rate for volume types missing from ``volume_rates``.
    snapshot_rate : float, default=0.05
        Flat per-GB-month snapshot rate.
    elastic_ip_rate : float, default=3.60
        Monthly charge for one unassociated Elastic IP.
    instance_prices : mapping of str to float
        Monthly price by instance type.
    default_instance_price : float, default=100.0
        Estimate for instance types missing from ``instance_prices``.
    database_prices : mapping of str to float
        Monthly price by database instance class.
    default_database_price : float, default=100.0
        Estimate for database classes missing from ``database_prices``.

    Notes
    -----
    Actual costs vary by region, engine and usage. These numbers are meant
    to rank savings opportunities, not to reproduce a bill.
    """

    volume_rates: Mapping[str, float] = field(
        default_factory=lambda: DEFAULT_VOLUME_RATES
    )
    default_volume_rate: float = 0.10
    snapshot_rate: float = 0.05
    elastic_ip_rate: float = 3.60
    instance_prices: Mapping[str, float] = field(
        default_factory=lambda: DEFAULT_INSTANCE_PRICES
    )
    default_instance_price: float = 100.00
    database_prices: Mapping[str, float] = field(
        default_factory=lambda: DEFAULT_DATABASE_PRICES
    )
    default_database_price: float = 100.00

    def with_overrides(self, **overrides: Any) -> PriceTable:
        """
        Return a copy with some fields replaced.

        Mapping fields are merged into the existing table rather than
        replacing it, so overriding one volume type keeps the others.

        Example
        -------
        >>> PriceTable().with_overrides(
        ...     instance_prices={"c6i.large": 62.0},
        ...     default_instance_price=120.0,
        ... )
        """
        changes = {}
        for name, value in overrides.items():
            current = getattr(self, name)
            if isinstance(current, Mapping):
                merged = dict(current)
                merged.update(value)
                changes[name] = _frozen(merged)
            else:
                changes[name] = value
        return replace(self, **changes)

    def volume_monthly_cost(self, size_gb: int, volume_type: str) -> float:
        """Monthly cost of a volume: size times the per-GB rate for its type."""
        rate = self.volume_rates.get(volume_type, self.default_volume_rate)
        return float(size_gb) * rate

    def snapshot_monthly_cost(self, size_gb: int) -> float:
        """Monthly cost of a snapshot at the flat per-GB rate."""
        return float(size_gb) * self.snapshot_rate

    def elastic_ip_monthly_cost(self) -> float:
        """Monthly cost of one unassociated Elastic IP."""
        return self.elastic_ip_rate

    def instance_monthly_cost(self, instance_type: str) -> float:
        """Monthly cost of an instance type, or the default estimate."""
        return self.instance_prices.get(instance_type, self.default_instance_price)

    def database_monthly_cost(self, instance_class: str) -> float:
        """Monthly cost of a database class, or the default estimate."""
        return self.database_prices.get(instance_class, self.default_database_price)

    def is_known_instance_type(self, instance_type: str) -> bool:
        return instance_type in self.instance_prices

    def is_known_database_class(self, instance_class: str) -> bool:
        return instance_class in self.database_prices
