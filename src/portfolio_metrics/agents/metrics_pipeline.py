"""
Metrics Pipeline
Lookup -> normalize allocation -> calculate -> (optional) persist.

Wires the pure metrics tools to their collaborators: a product lookup
(the sqlite store, or an in-memory catalog) and, when a portfolio name
is given, the model portfolio store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from portfolio_metrics.exceptions import ConfigurationError
from portfolio_metrics.schemas.metrics_output import MetricsReport
from portfolio_metrics.schemas.model_portfolio import ModelPortfolio
from portfolio_metrics.schemas.product import AllocationLine, ProductRecord
from portfolio_metrics.tools.allocation_normalizer import normalize_allocation, parse_allocation
from portfolio_metrics.tools.metrics_calculator import calculate_portfolio_metrics
from portfolio_metrics.tools.portfolio_store import ModelPortfolioStore

logger = logging.getLogger(__name__)

ProductLookup = Callable[[List[int]], Iterable[ProductRecord]]


@dataclass
class MetricsRun:
    """Outcome of one pipeline run."""

    report: MetricsReport
    allocation: List[AllocationLine]
    portfolio: Optional[ModelPortfolio] = None

    @property
    def saved(self) -> bool:
        return self.portfolio is not None


# ---------------------------------------------------------------------------
# Deterministic Pipeline
# ---------------------------------------------------------------------------

def run_metrics_pipeline(
    allocation: Iterable[Any],
    lookup: ProductLookup,
    store: Optional[ModelPortfolioStore] = None,
    portfolio_name: Optional[str] = None,
    created_by: Optional[int] = None,
    description: str = "",
    client_profile: str = "",
    construction_logic: Optional[str] = None,
) -> MetricsRun:
    """
    Compute portfolio metrics and optionally save a model portfolio.

    Args:
        allocation: AllocationLines or wire dicts ({"productId", "percentage", "category"?}).
        lookup: Batch product lookup, e.g. ModelPortfolioStore.get_products.
        store: Store used for saving; required when portfolio_name is set.
        portfolio_name: Save under this name when given.
        created_by: Owning user id, required for saving.

    Returns:
        MetricsRun with the report and the rescaled allocation restricted
        to lines whose product exists.

    Raises:
        AllocationValidationError: malformed allocation payload.
        ConfigurationError: save requested without a store or owner.
        PersistenceError: the save failed; nothing was written.
    """
    lines = parse_allocation(allocation)
    logger.info(f"Running metrics pipeline on {len(lines)} allocation lines ...")

    if portfolio_name is not None and (store is None or created_by is None):
        raise ConfigurationError("Saving a model portfolio requires a store and created_by")

    products = list(lookup([line.product_id for line in lines]))
    report = calculate_portfolio_metrics(lines, products)

    known_ids = {p.id for p in products}
    normalized = [
        line for line in normalize_allocation(lines)
        if line.product_id in known_ids
    ]

    portfolio = None
    if portfolio_name is not None:
        portfolio = store.save_model_portfolio(
            name=portfolio_name,
            report=report,
            allocation=normalized,
            created_by=created_by,
            description=description,
            client_profile=client_profile,
            construction_logic=construction_logic,
        )

    logger.info(
        f"Metrics pipeline complete: {len(normalized)} lines, "
        f"avg risk {report.average_risk:.2f}, TER {report.total_expense_ratio:.4%}"
        + (f", saved as portfolio {portfolio.id}" if portfolio else "")
    )
    return MetricsRun(report=report, allocation=normalized, portfolio=portfolio)
