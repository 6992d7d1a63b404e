"""
Metrics Tool: Portfolio Metrics Calculator
Aggregate product-level risk, horizon and costs into one report.

Per allocation line:
  1. category = line override, else product category, else "other"
  2. entry/exit/ongoing/transaction/performance costs via normalize_cost
  3. risk via normalize_risk
  4. horizon via normalize_horizon
  5. percentage added into the asset-class distribution

Each metric is then aggregated with the weighted aggregator, each with
its own coverage, and the TER is derived:

    TER = (entry + exit) / holding_period + ongoing + transaction

where holding_period is the aggregated horizon, or the default holding
period when no line has one. The performance fee is reported but is not
part of the TER.

Never raises on product data. Unknown product ids are skipped and
logged; an allocation that resolves to nothing yields the all-defaults
report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Union

from portfolio_metrics.config.constants import (
    DEFAULT_COST,
    DEFAULT_HOLDING_PERIOD_YEARS,
    DEFAULT_RISK,
    FALLBACK_CATEGORY,
    PERCENTAGE_SCALE,
)
from portfolio_metrics.schemas.metrics_output import (
    CostCalculationEntry,
    HorizonCalculationEntry,
    MetricsReport,
    ProductDetail,
    RiskCalculationEntry,
)
from portfolio_metrics.schemas.product import AllocationLine, ProductRecord
from portfolio_metrics.tools.allocation_normalizer import normalize_allocation
from portfolio_metrics.tools.cost_normalizer import normalize_cost
from portfolio_metrics.tools.horizon_normalizer import normalize_horizon
from portfolio_metrics.tools.risk_normalizer import normalize_risk
from portfolio_metrics.tools.weighted_aggregator import aggregate

logger = logging.getLogger(__name__)

ProductSource = Union[Mapping[int, ProductRecord], Iterable[ProductRecord]]


# ---------------------------------------------------------------------------
# Line Resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolvedLine:
    """An allocation line joined with its product, fields normalized."""

    product_id: int
    name: str
    category: str
    percentage: float
    weight: float
    risk: Optional[float]
    horizon: Optional[float]
    entry_cost: Optional[float]
    exit_cost: Optional[float]
    ongoing_cost: Optional[float]
    transaction_cost: Optional[float]
    performance_fee: Optional[float]


def resolve_category(line: AllocationLine, product: ProductRecord) -> str:
    return line.category or product.category or FALLBACK_CATEGORY


def resolve_line(line: AllocationLine, product: ProductRecord) -> ResolvedLine:
    return ResolvedLine(
        product_id=product.id,
        name=product.name,
        category=resolve_category(line, product),
        percentage=line.percentage,
        weight=line.percentage / PERCENTAGE_SCALE,
        risk=normalize_risk(product.sri_risk),
        horizon=normalize_horizon(product.recommended_holding_period),
        entry_cost=normalize_cost(product.entry_cost),
        exit_cost=normalize_cost(product.exit_cost),
        ongoing_cost=normalize_cost(product.ongoing_cost),
        transaction_cost=normalize_cost(product.transaction_cost),
        performance_fee=normalize_cost(product.performance_fee),
    )


def index_products(products: ProductSource) -> dict[int, ProductRecord]:
    """Build a {product_id: ProductRecord} lookup. Later duplicates win."""
    if isinstance(products, Mapping):
        return dict(products)
    return {p.id: p for p in products}


def resolve_lines(
    allocation: List[AllocationLine],
    products: ProductSource,
) -> List[ResolvedLine]:
    """Join allocation lines with products, skipping unknown product ids."""
    catalog = index_products(products)
    resolved: List[ResolvedLine] = []
    for line in allocation:
        product = catalog.get(line.product_id)
        if product is None:
            logger.warning(f"Product {line.product_id} not found; skipping allocation line")
            continue
        resolved.append(resolve_line(line, product))
    return resolved


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------

def compute_total_expense_ratio(
    entry_cost: float,
    exit_cost: float,
    ongoing_cost: float,
    transaction_cost: float,
    holding_period_years: Optional[float] = None,
) -> float:
    """
    Annualized TER: one-off costs amortized over the holding period plus
    recurring costs. A missing or non-positive period uses the default.
    """
    period = holding_period_years
    if period is None or period <= 0:
        period = DEFAULT_HOLDING_PERIOD_YEARS
    return (entry_cost + exit_cost) / period + ongoing_cost + transaction_cost


def compute_asset_class_distribution(lines: Iterable[ResolvedLine]) -> dict[str, float]:
    """Sum percentages per category (insertion order preserved)."""
    distribution: dict[str, float] = {}
    for line in lines:
        distribution[line.category] = distribution.get(line.category, 0.0) + line.percentage
    return distribution


def _weight(line: ResolvedLine) -> float:
    return line.weight


def _contribution(weight: float, value: Optional[float]) -> Optional[float]:
    return None if value is None else weight * value


# ---------------------------------------------------------------------------
# Trace Building
# ---------------------------------------------------------------------------

def _build_traces(lines: List[ResolvedLine]) -> dict:
    return {
        "product_details": [
            ProductDetail(
                product_id=l.product_id,
                name=l.name,
                category=l.category,
                percentage=l.percentage,
                risk=l.risk,
                horizon=l.horizon,
                entry_cost=l.entry_cost,
                exit_cost=l.exit_cost,
                ongoing_cost=l.ongoing_cost,
                transaction_cost=l.transaction_cost,
                performance_fee=l.performance_fee,
            )
            for l in lines
        ],
        "risk_calculation": [
            RiskCalculationEntry(
                product_id=l.product_id, name=l.name, weight=l.weight,
                risk=l.risk, contribution=_contribution(l.weight, l.risk),
            )
            for l in lines
        ],
        "horizon_calculation": [
            HorizonCalculationEntry(
                product_id=l.product_id, name=l.name, weight=l.weight,
                horizon=l.horizon, contribution=_contribution(l.weight, l.horizon),
            )
            for l in lines
        ],
        "cost_calculation": [
            CostCalculationEntry(
                product_id=l.product_id, name=l.name, weight=l.weight,
                entry=l.entry_cost, exit=l.exit_cost, ongoing=l.ongoing_cost,
                transaction=l.transaction_cost, performance=l.performance_fee,
            )
            for l in lines
        ],
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def calculate_portfolio_metrics(
    allocation: List[AllocationLine],
    products: ProductSource,
) -> MetricsReport:
    """
    Compute the MetricsReport for an allocation against product records.

    Args:
        allocation: Allocation lines; rescaled to 100% first if needed.
        products: ProductRecords, as an iterable or a {id: record} mapping.

    Returns:
        MetricsReport. All-defaults report when nothing resolves.
    """
    if not allocation:
        logger.info("Empty allocation; returning default metrics")
        return MetricsReport()

    lines = resolve_lines(normalize_allocation(allocation), products)
    if not lines:
        logger.warning(
            f"None of the {len(allocation)} allocation lines matched a product; "
            f"returning default metrics"
        )
        return MetricsReport()

    risk = aggregate(lines, lambda l: l.risk, _weight, default=float(DEFAULT_RISK))
    horizon = aggregate(lines, lambda l: l.horizon, _weight)
    entry = aggregate(lines, lambda l: l.entry_cost, _weight, default=DEFAULT_COST)
    exit_ = aggregate(lines, lambda l: l.exit_cost, _weight, default=DEFAULT_COST)
    ongoing = aggregate(lines, lambda l: l.ongoing_cost, _weight, default=DEFAULT_COST)
    transaction = aggregate(lines, lambda l: l.transaction_cost, _weight, default=DEFAULT_COST)
    performance = aggregate(lines, lambda l: l.performance_fee, _weight, default=DEFAULT_COST)

    ter = compute_total_expense_ratio(
        entry.value, exit_.value, ongoing.value, transaction.value, horizon.value,
    )

    report = MetricsReport(
        average_risk=risk.value,
        average_investment_horizon=horizon.value,
        asset_class_distribution=compute_asset_class_distribution(lines),
        total_expense_ratio=ter,
        entry_cost=entry.value,
        exit_cost=exit_.value,
        ongoing_cost=ongoing.value,
        transaction_cost=transaction.value,
        performance_fee=performance.value,
        **_build_traces(lines),
    )

    logger.info(
        f"Metrics: {len(lines)}/{len(allocation)} lines resolved, "
        f"risk={report.average_risk:.2f} (coverage {risk.coverage:.2f}), "
        f"horizon={report.average_investment_horizon} (coverage {horizon.coverage:.2f}), TER={ter:.4%}"
    )
    return report
