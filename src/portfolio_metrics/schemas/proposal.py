"""
Allocation proposal returned by the LLM proposer.

The proposer only suggests WHICH products and what weights; every metric
in the final report is recomputed by the metrics calculator.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from portfolio_metrics.schemas.product import AllocationLine, allocation_total


class AllocationProposal(BaseModel):
    """Candidate portfolio proposed by the LLM, already normalized to 100%."""

    name: str = Field(..., min_length=1)
    description: str = ""
    client_profile: str = ""
    risk_level: str = "balanced"
    investment_horizon: str = "medium_term"
    generation_logic: str = ""
    allocation: List[AllocationLine] = Field(default_factory=list)

    @property
    def total_percentage(self) -> float:
        return allocation_total(self.allocation)
