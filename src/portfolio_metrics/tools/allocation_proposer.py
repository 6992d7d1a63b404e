"""
Metrics Tool: Allocation Proposer
LLM-backed candidate allocation for a client brief.

The model only picks products and weights out of the catalog it is
shown. Its reply is parsed defensively: unknown product ids and invalid
percentages are dropped, then the Allocation Normalizer rescales what
is left. Averages the model may claim are ignored.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

import anthropic

from portfolio_metrics.config.constants import (
    PROPOSER_MAX_TOKENS,
    PROPOSER_MODEL,
    PROPOSER_TIMEOUT_SECONDS,
)
from portfolio_metrics.exceptions import EnvConfigError, ProposalError
from portfolio_metrics.schemas.product import AllocationLine, ProductRecord
from portfolio_metrics.schemas.proposal import AllocationProposal
from portfolio_metrics.tools.allocation_normalizer import PRODUCT_ID_KEYS, normalize_allocation

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

RISK_LEVEL_DESCRIPTIONS: dict[str, str] = {
    "conservative": "Low risk, focus on capital preservation with limited growth",
    "moderate": "Moderate risk, balance between growth and preservation",
    "balanced": "Medium risk, equilibrium between growth and safety",
    "growth": "Medium-high risk, focus on growth with acceptable volatility",
    "aggressive": "High risk, maximum growth with high volatility",
}

INVESTMENT_HORIZON_DESCRIPTIONS: dict[str, str] = {
    "short_term": "Short term (1-3 years)",
    "medium_term": "Medium term (3-7 years)",
    "long_term": "Long term (7+ years)",
}

OBJECTIVE_DESCRIPTIONS: dict[str, str] = {
    "growth": "Capital growth",
    "income": "Income generation",
    "preservation": "Capital preservation",
    "tax_efficiency": "Tax efficiency",
    "liquidity": "Liquidity",
    "sustainability": "Sustainable/ESG investing",
}

_SYSTEM_PROMPT = (
    "You are an experienced financial advisor who builds diversified model "
    "portfolios. Use ONLY the products you are given. Keep the portfolio "
    "consistent with the requested risk level, horizon and objectives. "
    "Reply with a single JSON object and nothing else."
)

_PROPOSAL_PROMPT_TEMPLATE = """\
# Portfolio Request

## Portfolio Description
{description}

## Client Profile
{client_profile}

## Investment Parameters
- Risk level: {risk_level}
- Investment horizon: {investment_horizon}
- Objectives: {objectives}

## Available Products
{product_list}

## Instructions
Build a diversified portfolio using ONLY the products listed above.
- Assign a percentage to each selected product
- Percentages must sum to 100
- Explain the construction logic

## Response Format
Return a JSON object with:
- name: a short portfolio name
- description: portfolio description
- clientProfile: the client profile this portfolio suits
- allocation: array of {{"productId": <id from the list>, "percentage": <number>, "category": <category>}}
- generationLogic: explanation of the construction logic
"""


def _format_products(products: list[ProductRecord]) -> str:
    rows = [
        {
            "id": p.id,
            "isin": p.isin,
            "name": p.name,
            "category": p.category,
            "sri_risk": p.sri_risk,
            "recommended_holding_period": p.recommended_holding_period,
            "entry_cost": p.entry_cost,
            "exit_cost": p.exit_cost,
            "ongoing_cost": p.ongoing_cost,
            "transaction_cost": p.transaction_cost,
        }
        for p in products
    ]
    return json.dumps(rows, indent=2, default=str)


def build_proposal_prompt(
    products: list[ProductRecord],
    description: str,
    client_profile: str,
    risk_level: str = "balanced",
    investment_horizon: str = "medium_term",
    objectives: Optional[list[str]] = None,
) -> str:
    """Render the user prompt; unknown levels/objectives are passed through verbatim."""
    objectives = objectives or ["growth"]
    return _PROPOSAL_PROMPT_TEMPLATE.format(
        description=description or "(none)",
        client_profile=client_profile or "(none)",
        risk_level=RISK_LEVEL_DESCRIPTIONS.get(risk_level, risk_level),
        investment_horizon=INVESTMENT_HORIZON_DESCRIPTIONS.get(investment_horizon, investment_horizon),
        objectives=", ".join(OBJECTIVE_DESCRIPTIONS.get(o, o) for o in objectives),
        product_list=_format_products(products),
    )


# ---------------------------------------------------------------------------
# LLM Call
# ---------------------------------------------------------------------------

def _make_client() -> anthropic.Anthropic:
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise EnvConfigError("ANTHROPIC_API_KEY is not set; cannot propose an allocation")
    return anthropic.Anthropic(api_key=api_key, timeout=PROPOSER_TIMEOUT_SECONDS)


def propose_allocation_llm(
    products: list[ProductRecord],
    description: str,
    client_profile: str,
    risk_level: str = "balanced",
    investment_horizon: str = "medium_term",
    objectives: Optional[list[str]] = None,
    model: str = PROPOSER_MODEL,
    client: Any = None,
) -> AllocationProposal:
    """
    Ask the LLM for a candidate allocation over the given products.

    Args:
        products: Catalog the model may choose from.
        description: Free-text portfolio brief.
        client_profile: Free-text client description.
        risk_level: conservative | moderate | balanced | growth | aggressive
        investment_horizon: short_term | medium_term | long_term
        objectives: e.g. ["growth", "income"]
        model: Anthropic model ID.
        client: Anthropic client (injected in tests).

    Returns:
        AllocationProposal whose allocation sums to 100.

    Raises:
        EnvConfigError: no client given and ANTHROPIC_API_KEY is not set.
        ProposalError: no products, API failure, or no usable allocation.
    """
    if not products:
        raise ProposalError("No products available for the portfolio")

    if client is None:
        client = _make_client()

    prompt = build_proposal_prompt(
        products, description, client_profile, risk_level, investment_horizon, objectives,
    )

    try:
        response = client.messages.create(
            model=model,
            max_tokens=PROPOSER_MAX_TOKENS,
            system=_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIError as e:
        raise ProposalError(f"Allocation proposal request failed: {e}") from e

    text = response.content[0].text if response.content else ""
    data = _parse_proposal_response(text)
    allocation = _parse_allocation_response(data.get("allocation"), {p.id for p in products})
    if not allocation:
        raise ProposalError("LLM proposal contained no usable allocation lines")

    allocation = normalize_allocation(allocation)
    logger.info(
        f"LLM proposed {len(allocation)} allocation lines "
        f"over {len(products)} available products"
    )

    return AllocationProposal(
        name=str(data.get("name") or f"Portfolio {risk_level} - {investment_horizon}"),
        description=str(data.get("description") or description),
        client_profile=str(data.get("clientProfile") or client_profile),
        risk_level=risk_level,
        investment_horizon=investment_horizon,
        generation_logic=str(data.get("generationLogic") or "Automatically generated portfolio"),
        allocation=allocation,
    )


# ---------------------------------------------------------------------------
# Response Parsing
# ---------------------------------------------------------------------------

def _parse_proposal_response(text: str) -> dict:
    """Extract the JSON object from the LLM reply."""
    text = text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise ProposalError("LLM proposal response did not contain a JSON object")

    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ProposalError(f"Failed to parse LLM proposal JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProposalError("LLM proposal JSON is not an object")
    return data


def _parse_allocation_response(items: Any, valid_ids: set[int]) -> list[AllocationLine]:
    """Keep allocation items that reference a known product with a usable percentage."""
    if not isinstance(items, list):
        logger.warning("LLM proposal allocation is not an array")
        return []

    lines: list[AllocationLine] = []
    seen: set[int] = set()
    for item in items:
        if not isinstance(item, dict):
            continue

        raw_id = next((item[k] for k in PRODUCT_ID_KEYS if item.get(k) is not None), None)
        try:
            product_id = int(raw_id)
            percentage = float(item.get("percentage"))
        except (ValueError, TypeError):
            logger.debug(f"Dropping malformed allocation item {item!r}")
            continue

        if product_id not in valid_ids:
            logger.warning(f"LLM proposed unknown product {product_id}; dropped")
            continue
        if product_id in seen:
            logger.warning(f"LLM proposed product {product_id} twice; keeping the first")
            continue
        if not 0 < percentage <= 100:
            logger.warning(f"LLM proposed percentage {percentage} for product {product_id}; dropped")
            continue

        category = item.get("category")
        lines.append(AllocationLine(
            product_id=product_id,
            percentage=percentage,
            category=category if isinstance(category, str) else None,
        ))
        seen.add(product_id)

    return lines
