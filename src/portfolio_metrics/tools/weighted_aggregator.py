"""
Metrics Tool: Weighted Aggregator
Weighted average over partially-known values.

Entries whose value is absent are excluded from BOTH the numerator and
the denominator; they are never counted as zero. The denominator is the
weight mass that actually carries a value (the "coverage"), so if only
60% of an allocation has a known risk, the weighted sum is divided by
0.60 and the result stays a true average over the informative lines.

When the coverage is zero the caller-supplied default is returned, so a
report always contains usable scalars.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class WeightedAverage:
    """Result of one weighted aggregation."""

    value: Optional[float]
    coverage: float
    weighted_sum: float
    count: int

    @property
    def has_data(self) -> bool:
        return self.count > 0 and self.coverage > 0


def weighted_average(
    pairs: Iterable[tuple[float, Optional[float]]],
    default: Optional[float] = None,
) -> WeightedAverage:
    """
    Compute sum(w * v) / sum(w) over pairs where v is present.

    Pairs with a non-positive weight contribute nothing.
    """
    weighted_sum = 0.0
    coverage = 0.0
    count = 0
    for weight, value in pairs:
        if value is None or weight <= 0:
            continue
        weighted_sum += weight * value
        coverage += weight
        count += 1

    if coverage <= 0:
        return WeightedAverage(value=default, coverage=0.0, weighted_sum=0.0, count=0)
    return WeightedAverage(
        value=weighted_sum / coverage,
        coverage=coverage,
        weighted_sum=weighted_sum,
        count=count,
    )


def aggregate(
    items: Iterable[T],
    extractor: Callable[[T], Optional[float]],
    weight: Callable[[T], float],
    default: Optional[float] = None,
) -> WeightedAverage:
    """
    Weighted average of extractor(item) weighted by weight(item).

    Example:
        aggregate(lines, lambda l: l.risk, lambda l: l.weight, default=7)
    """
    return weighted_average(((weight(item), extractor(item)) for item in items), default)
