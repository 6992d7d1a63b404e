"""
Model Portfolio: Persistence Schema

A ModelPortfolio is the stored form of a MetricsReport plus its
allocation: one header row with the denormalized scalar metrics and
N allocation rows. It is created once per save and never mutated in
place; recomputation produces a new portfolio.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class PersistedAllocation(BaseModel):
    """One stored allocation row (portfolioId -> productId -> percentage)."""

    id: int
    portfolio_id: int
    product_id: int
    percentage: float = Field(..., ge=0, le=100)


class ModelPortfolio(BaseModel):
    """A saved model portfolio with its allocation rows."""

    id: int
    created_by: int
    name: str = Field(..., min_length=1)
    description: str = ""
    client_profile: str = ""
    risk_level: int = Field(..., ge=1, le=7)
    construction_logic: Optional[str] = None
    entry_cost: float = 0.0
    exit_cost: float = 0.0
    ongoing_cost: float = 0.0
    transaction_cost: float = 0.0
    performance_fee: float = 0.0
    total_annual_cost: float = 0.0
    average_risk: float
    average_time_horizon: Optional[float] = None
    asset_class_distribution: Dict[str, float] = Field(default_factory=dict)
    created_at: str
    allocations: List[PersistedAllocation] = Field(default_factory=list)

    @property
    def allocation_total(self) -> float:
        return sum(a.percentage for a in self.allocations)
