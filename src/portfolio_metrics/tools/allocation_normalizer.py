"""
Metrics Tool: Allocation Normalizer
Validate and rescale allocation percentages so they sum to 100.

Allocations from upstream (LLM proposals, hand-edited forms) rarely sum
to exactly 100. Within ALLOCATION_SUM_TOLERANCE they are left alone;
beyond it every line becomes percentage * 100 / total. Input lines are
never mutated, a new list is returned.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List

from pydantic import ValidationError as PydanticValidationError

from portfolio_metrics.config.constants import (
    ALLOCATION_SUM_TARGET,
    ALLOCATION_SUM_TOLERANCE,
)
from portfolio_metrics.exceptions import AllocationValidationError
from portfolio_metrics.schemas.product import AllocationLine, allocation_total

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire Parsing
# ---------------------------------------------------------------------------

# Accepted spellings of the product reference in allocation payloads
PRODUCT_ID_KEYS: tuple[str, ...] = ("productId", "product_id", "isinId")


def parse_allocation(items: Iterable[Any]) -> List[AllocationLine]:
    """
    Build AllocationLines from a wire payload.

    Items may already be AllocationLines or dicts of the form
    {"productId": 3, "percentage": 40, "category": "bonds"}.

    Raises:
        AllocationValidationError: an item has no product id or an
            invalid percentage. This is a caller contract violation.
    """
    lines: List[AllocationLine] = []
    for i, item in enumerate(items):
        if isinstance(item, AllocationLine):
            lines.append(item)
            continue
        if not isinstance(item, dict):
            raise AllocationValidationError(f"Allocation item {i} is not an object: {item!r}")

        product_id = next((item[k] for k in PRODUCT_ID_KEYS if item.get(k) is not None), None)
        if product_id is None:
            raise AllocationValidationError(f"Allocation item {i} has no productId")
        try:
            lines.append(AllocationLine(
                product_id=product_id,
                percentage=item.get("percentage"),
                category=item.get("category"),
            ))
        except PydanticValidationError as e:
            raise AllocationValidationError(f"Allocation item {i} is invalid: {e}") from e
    return lines


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def needs_rescale(
    lines: List[AllocationLine],
    tolerance: float = ALLOCATION_SUM_TOLERANCE,
) -> bool:
    """True when the allocation total deviates from 100 by more than tolerance."""
    return abs(allocation_total(lines) - ALLOCATION_SUM_TARGET) > tolerance


def normalize_allocation(
    lines: List[AllocationLine],
    tolerance: float = ALLOCATION_SUM_TOLERANCE,
) -> List[AllocationLine]:
    """
    Return a working copy of the allocation whose percentages sum to 100.

    Relative proportions between lines are preserved. An allocation whose
    total is zero cannot be rescaled and is returned unchanged.
    """
    total = allocation_total(lines)
    if not needs_rescale(lines, tolerance):
        return list(lines)

    if total <= 0:
        logger.warning("Allocation percentages sum to 0; cannot rescale")
        return list(lines)

    logger.info(
        f"Allocation sums to {total:.4f}%, rescaling {len(lines)} lines to "
        f"{ALLOCATION_SUM_TARGET:.0f}%"
    )
    return [
        line.model_copy(update={"percentage": line.percentage * ALLOCATION_SUM_TARGET / total})
        for line in lines
    ]
