"""
Portfolio Metrics: Output Schema

Output contract of the Portfolio Metrics Calculator. Field names are
snake_case in Python and camelCase on the wire (averageRisk,
totalExpenseRatio, ...). The per-line trace lists let a reviewer
reconstruct every scalar from the allocation lines that produced it.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from portfolio_metrics.config.constants import DEFAULT_RISK


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Trace Models
# ---------------------------------------------------------------------------

class ProductDetail(_CamelModel):
    """Normalized view of one resolved allocation line."""

    product_id: int
    name: str
    category: str
    percentage: float
    risk: Optional[float] = None
    horizon: Optional[float] = None
    entry_cost: Optional[float] = None
    exit_cost: Optional[float] = None
    ongoing_cost: Optional[float] = None
    transaction_cost: Optional[float] = None
    performance_fee: Optional[float] = None


class RiskCalculationEntry(_CamelModel):
    product_id: int
    name: str
    weight: float
    risk: Optional[float] = None
    contribution: Optional[float] = None


class HorizonCalculationEntry(_CamelModel):
    product_id: int
    name: str
    weight: float
    horizon: Optional[float] = None
    contribution: Optional[float] = None


class CostCalculationEntry(_CamelModel):
    product_id: int
    name: str
    weight: float
    entry: Optional[float] = None
    exit: Optional[float] = None
    ongoing: Optional[float] = None
    transaction: Optional[float] = None
    performance: Optional[float] = None


# ---------------------------------------------------------------------------
# Top-Level Output
# ---------------------------------------------------------------------------

class MetricsReport(_CamelModel):
    """
    Computed portfolio metrics. Ephemeral and immutable.

    average_investment_horizon is None when no line has horizon data;
    the TER then amortizes over the default holding period instead.
    All cost figures are fractions (0.015 == 1.5%).
    """

    average_risk: float = Field(float(DEFAULT_RISK))
    average_investment_horizon: Optional[float] = None
    asset_class_distribution: Dict[str, float] = Field(default_factory=dict)
    total_expense_ratio: float = 0.0
    entry_cost: float = 0.0
    exit_cost: float = 0.0
    ongoing_cost: float = 0.0
    transaction_cost: float = 0.0
    performance_fee: float = 0.0
    product_details: List[ProductDetail] = Field(default_factory=list)
    risk_calculation: List[RiskCalculationEntry] = Field(default_factory=list)
    horizon_calculation: List[HorizonCalculationEntry] = Field(default_factory=list)
    cost_calculation: List[CostCalculationEntry] = Field(default_factory=list)

    def to_output(self) -> dict:
        """Wire representation with camelCase keys."""
        return self.model_dump(by_alias=True)

    @property
    def covered_percentage(self) -> float:
        """Percentage of the allocation that resolved to a known product."""
        return sum(d.percentage for d in self.product_details)
