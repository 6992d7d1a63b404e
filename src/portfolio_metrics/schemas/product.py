"""
Product & Allocation: Input Schemas

ProductRecord is one financial instrument as stored by the product
database. Its SRI, holding period and cost fields are kept in their raw,
heterogeneous form (numbers, "2.00", "2,00%", "3-5 years" ...); the
normalizer tools turn them into canonical values at calculation time.

AllocationLine pairs a product id with a percentage weight.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portfolio_metrics.config.constants import ASSET_CATEGORIES


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RAW_COST_FIELDS: tuple[str, ...] = (
    "entry_cost",
    "exit_cost",
    "ongoing_cost",
    "transaction_cost",
    "performance_fee",
)


def _clean_category(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip().lower().replace(" ", "_")
    return s or None


# ---------------------------------------------------------------------------
# Product
# ---------------------------------------------------------------------------

class ProductRecord(BaseModel):
    """One financial instrument. Read-only for the metrics engine."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1)
    name: str = Field("")
    isin: Optional[str] = None
    category: Optional[str] = Field(
        None, description=f"Asset category, normally one of {ASSET_CATEGORIES}"
    )
    sri_risk: Any = Field(None, description="Synthetic Risk Indicator 1-7, raw")
    recommended_holding_period: Any = Field(None, description="Raw holding period")
    entry_cost: Any = None
    exit_cost: Any = None
    ongoing_cost: Any = None
    transaction_cost: Any = None
    performance_fee: Any = None

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> Optional[str]:
        return _clean_category(v)

    @property
    def is_known_category(self) -> bool:
        return self.category in ASSET_CATEGORIES


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------

class AllocationLine(BaseModel):
    """
    One (product, percentage) pair within a portfolio allocation.

    Accepts both the wire form ({"productId": 3, "percentage": 40})
    and the python form (product_id=3, percentage=40).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: int = Field(..., alias="productId", ge=1)
    percentage: float = Field(..., ge=0, le=100)
    category: Optional[str] = Field(None, description="Category override")

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> Optional[str]:
        return _clean_category(v)


def allocation_total(lines: List[AllocationLine]) -> float:
    """Sum of percentages across an allocation."""
    return sum(line.percentage for line in lines)
