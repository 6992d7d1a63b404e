"""
Shared test fixtures for portfolio metrics tests.
Provides sample product records, allocations and catalog file writers.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from portfolio_metrics.schemas.product import AllocationLine, ProductRecord

FIXTURES_DIR = Path(__file__).parent


_CATALOG_COLUMN_MAP = {
    "id": "Product ID",
    "name": "Name",
    "isin": "ISIN",
    "category": "Category",
    "sri_risk": "SRI",
    "recommended_holding_period": "Recommended Holding Period",
    "entry_cost": "Entry Cost",
    "exit_cost": "Exit Cost",
    "ongoing_cost": "Ongoing Charges",
    "transaction_cost": "Transaction Cost",
    "performance_fee": "Performance Fee",
}


def create_mock_catalog_csv(filepath: str, products: list[dict]) -> None:
    """Create a mock product catalog CSV with KID-style headers."""
    df = pd.DataFrame(products)
    df = df.rename(columns={k: v for k, v in _CATALOG_COLUMN_MAP.items() if k in df.columns})
    df.to_csv(filepath, index=False)


def create_mock_catalog_xlsx(filepath: str, products: list[dict]) -> None:
    """Create a mock product catalog XLSX with KID-style headers."""
    df = pd.DataFrame(products)
    df = df.rename(columns={k: v for k, v in _CATALOG_COLUMN_MAP.items() if k in df.columns})
    df.to_excel(filepath, index=False, engine="openpyxl")


# Heterogeneous raw fields, as they arrive from KID extraction
SAMPLE_PRODUCTS = [
    {
        "id": 1, "name": "Global Bond Fund", "isin": "LU0000000001", "category": "bonds",
        "sri_risk": 3, "recommended_holding_period": "5",
        "entry_cost": "1.00%", "exit_cost": "0.50%", "ongoing_cost": "0.50%",
        "transaction_cost": "0.10", "performance_fee": None,
    },
    {
        "id": 2, "name": "World Equity ETF", "isin": "IE0000000002", "category": "equity",
        "sri_risk": "5", "recommended_holding_period": None,
        "entry_cost": None, "exit_cost": None, "ongoing_cost": "1.00%",
        "transaction_cost": None, "performance_fee": "0,20%",
    },
    {
        "id": 3, "name": "Euro Money Market", "isin": "FR0000000003", "category": "cash",
        "sri_risk": 1, "recommended_holding_period": "18 months",
        "entry_cost": 0, "exit_cost": 0, "ongoing_cost": 0.15,
        "transaction_cost": "0.01%", "performance_fee": None,
    },
    {
        "id": 4, "name": "Corporate Bond Fund", "isin": "LU0000000004", "category": "Bonds",
        "sri_risk": 2, "recommended_holding_period": "3-5 anni",
        "entry_cost": "2,00%", "exit_cost": "n/a", "ongoing_cost": "0,80%",
        "transaction_cost": "0.05%", "performance_fee": None,
    },
    {
        "id": 5, "name": "Thematic Growth Fund", "isin": "LU0000000005", "category": None,
        "sri_risk": "not available", "recommended_holding_period": "long term",
        "entry_cost": "3%", "exit_cost": None, "ongoing_cost": "1.80%",
        "transaction_cost": "0.30%", "performance_fee": "10%",
    },
]


def make_products(ids: list[int] | None = None) -> list[ProductRecord]:
    """ProductRecords for SAMPLE_PRODUCTS, optionally restricted to ids."""
    return [
        ProductRecord(**p)
        for p in SAMPLE_PRODUCTS
        if ids is None or p["id"] in ids
    ]


def make_allocation(pairs: list[tuple[int, float]], category: str | None = None) -> list[AllocationLine]:
    """Allocation lines from (product_id, percentage) pairs."""
    return [AllocationLine(product_id=pid, percentage=pct, category=category) for pid, pct in pairs]


# Worked example: 60 + 45 = 105, rescaled to 57.142857 / 42.857143
SCENARIO_PRODUCTS = [
    ProductRecord(id=1, name="Product 1", sri_risk=3, ongoing_cost="0.50%", recommended_holding_period="5"),
    ProductRecord(id=2, name="Product 2", sri_risk=5, ongoing_cost="1.00%"),
]

SCENARIO_ALLOCATION = [
    {"productId": 1, "percentage": 60},
    {"productId": 2, "percentage": 45},
]
