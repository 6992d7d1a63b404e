"""
Portfolio Generation Pipeline
LLM proposal -> metrics pipeline -> optional save.

The proposer picks products and weights; every reported metric comes
from the deterministic calculator, never from the model's own claims.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from portfolio_metrics.agents.metrics_pipeline import MetricsRun, run_metrics_pipeline
from portfolio_metrics.config.constants import PROPOSER_MODEL
from portfolio_metrics.schemas.product import ProductRecord
from portfolio_metrics.schemas.proposal import AllocationProposal
from portfolio_metrics.tools.allocation_proposer import propose_allocation_llm
from portfolio_metrics.tools.portfolio_store import ModelPortfolioStore
from portfolio_metrics.tools.product_reader import catalog_lookup

logger = logging.getLogger(__name__)


@dataclass
class GenerationRun:
    proposal: AllocationProposal
    run: MetricsRun


def run_generation_pipeline(
    products: list[ProductRecord],
    description: str,
    client_profile: str,
    risk_level: str = "balanced",
    investment_horizon: str = "medium_term",
    objectives: Optional[list[str]] = None,
    store: Optional[ModelPortfolioStore] = None,
    created_by: Optional[int] = None,
    save: bool = False,
    model: str = PROPOSER_MODEL,
    client: Any = None,
) -> GenerationRun:
    """
    Generate a model portfolio for a client brief.

    Raises:
        EnvConfigError / ProposalError: from the proposer.
        PersistenceError: save requested and failed.
    """
    logger.info(
        f"Generating {risk_level}/{investment_horizon} portfolio "
        f"from {len(products)} products ..."
    )
    proposal = propose_allocation_llm(
        products,
        description=description,
        client_profile=client_profile,
        risk_level=risk_level,
        investment_horizon=investment_horizon,
        objectives=objectives,
        model=model,
        client=client,
    )

    if save and store is not None:
        # allocation rows reference stored products
        store.upsert_products(products)

    run = run_metrics_pipeline(
        proposal.allocation,
        catalog_lookup(products),
        store=store,
        portfolio_name=proposal.name if save else None,
        created_by=created_by,
        description=proposal.description,
        client_profile=proposal.client_profile,
        construction_logic=proposal.generation_logic,
    )
    return GenerationRun(proposal=proposal, run=run)
