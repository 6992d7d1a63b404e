"""
Metrics Tool: Product Catalog Reader
Read product records (KID-derived cost sheets) from CSV or Excel.

Catalog exports have inconsistent headers and cell types. Cells are
passed through raw; the normalizer tools decide what they mean at
calculation time. Rows without a usable id are reported as
ProcessingErrors instead of aborting the load.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from portfolio_metrics.exceptions import (
    CatalogReadError,
    ErrorSeverity,
    ProcessingError,
    row_error_from_exception,
)
from portfolio_metrics.schemas.product import ProductRecord

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES: tuple[str, ...] = (".csv", ".xlsx", ".xls")

# Common column name mappings; catalog exports have inconsistent headers
COLUMN_ALIASES: dict[str, list[str]] = {
    "id": ["id", "product_id", "productId", "Product ID", "ID"],
    "name": ["name", "Name", "product_name", "Product Name", "Nome"],
    "isin": ["isin", "ISIN"],
    "category": ["category", "Category", "asset_class", "Asset Class", "Categoria"],
    "sri_risk": ["sri_risk", "sri", "SRI", "Risk", "risk_indicator", "IndicatoreRischio"],
    "recommended_holding_period": [
        "recommended_holding_period", "holding_period", "Holding Period",
        "Recommended Holding Period", "horizon", "PeriodoDetenzioneRaccomandato",
    ],
    "entry_cost": ["entry_cost", "Entry Cost", "entry_fee", "Entry Fee", "CostiIngresso"],
    "exit_cost": ["exit_cost", "Exit Cost", "exit_fee", "Exit Fee", "CostiUscita"],
    "ongoing_cost": [
        "ongoing_cost", "Ongoing Cost", "ongoing_charge", "Ongoing Charges",
        "TER", "CostiCorrenti",
    ],
    "transaction_cost": ["transaction_cost", "Transaction Cost", "Transaction Costs", "CostiTransazione"],
    "performance_fee": ["performance_fee", "Performance Fee", "CommissioniPerformance"],
}


def _find_column(df: pd.DataFrame, target: str) -> Optional[str]:
    """Find a column in the DataFrame matching known aliases."""
    aliases = COLUMN_ALIASES.get(target, [target])
    for alias in aliases:
        if alias in df.columns:
            return alias
        # Case-insensitive fallback
        for col in df.columns:
            if str(col).strip().lower() == alias.lower():
                return col
    return None


def _cell(val: Any) -> Any:
    """Raw cell value with blanks and NaN mapped to None, numpy scalars unwrapped."""
    if val is None:
        return None
    if hasattr(val, "item") and not isinstance(val, (str, bytes)):
        val = val.item()
    if isinstance(val, float) and pd.isna(val):
        return None
    if isinstance(val, str):
        s = val.strip()
        return s or None
    return val


def _read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype=object)
    if suffix in (".xlsx", ".xls"):
        return pd.read_excel(path, dtype=object, engine="openpyxl" if suffix == ".xlsx" else None)
    raise CatalogReadError(f"Unsupported catalog format: {path.name}")


def read_product_catalog(file_path: str) -> tuple[list[ProductRecord], list[ProcessingError]]:
    """
    Read a product catalog file.

    Returns:
        (products, errors). errors holds one ProcessingError per row that
        could not become a ProductRecord.

    Raises:
        CatalogReadError: the file is missing, unreadable or has no id column.
    """
    path = Path(file_path)
    if not path.exists():
        raise CatalogReadError(f"Catalog file not found: {file_path}")

    try:
        df = _read_frame(path)
    except CatalogReadError:
        raise
    except Exception as e:
        raise CatalogReadError(f"Unable to read {path.name}: {e}") from e

    columns = {field: _find_column(df, field) for field in COLUMN_ALIASES}
    if columns["id"] is None:
        raise CatalogReadError(f"No product id column in {path.name}; columns={list(df.columns)}")

    products: list[ProductRecord] = []
    errors: list[ProcessingError] = []

    for row_num, (_, row) in enumerate(df.iterrows(), start=2):
        raw = {
            field: _cell(row[col])
            for field, col in columns.items()
            if col is not None
        }
        if raw.get("id") is None:
            errors.append(ProcessingError(
                file_name=path.name,
                error_type="MISSING_ID",
                message=f"Row {row_num} has no product id",
                severity=ErrorSeverity.INFO,
                row=row_num,
            ))
            continue

        if not isinstance(raw["id"], int):
            try:
                raw["id"] = int(float(raw["id"]))
            except (ValueError, OverflowError):
                errors.append(ProcessingError(
                    file_name=path.name,
                    error_type="INVALID_ID",
                    message=f"Row {row_num} has a non-integer product id: {raw['id']!r}",
                    severity=ErrorSeverity.WARNING,
                    row=row_num,
                ))
                continue
        if raw.get("name") is None:
            raw["name"] = ""
        try:
            products.append(ProductRecord(**raw))
        except PydanticValidationError as e:
            errors.append(row_error_from_exception(
                e, path.name, "ROW_VALIDATION_ERROR", row=row_num,
            ))

    logger.info(
        f"Read {len(products)} products from {path.name}"
        + (f" ({len(errors)} rows skipped)" if errors else "")
    )
    return products, errors


def catalog_lookup(products: list[ProductRecord]):
    """
    Wrap an in-memory catalog as a product lookup callable.

    The callable takes a list of product ids and returns the matching
    records; missing ids are simply absent from the result.
    """
    by_id = {p.id: p for p in products}

    def lookup(product_ids: list[int]) -> list[ProductRecord]:
        return [by_id[i] for i in product_ids if i in by_id]

    return lookup
