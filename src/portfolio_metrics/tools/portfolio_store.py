"""
SQLite-backed store for products and model portfolios.

Acts as the database collaborator of the metrics engine:
- product lookup: get_products(ids) -> ProductRecords (missing ids tolerated)
- persistence: save_model_portfolio writes one header row and N
  allocation rows inside a single transaction

Raw product fields are stored without a declared type so numbers stay
numbers and strings ("2.00%", "3-5 years") stay strings. Portfolio
metrics and percentages are stored as decimal strings.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from portfolio_metrics.config.constants import DEFAULT_DB_PATH
from portfolio_metrics.exceptions import PersistenceError, PortfolioNotFoundError
from portfolio_metrics.schemas.metrics_output import MetricsReport
from portfolio_metrics.schemas.model_portfolio import ModelPortfolio, PersistedAllocation
from portfolio_metrics.schemas.product import AllocationLine, ProductRecord
from portfolio_metrics.tools.risk_normalizer import risk_class

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

_PRODUCT_COLUMNS: tuple[str, ...] = (
    "id", "name", "isin", "category", "sri_risk", "recommended_holding_period",
    "entry_cost", "exit_cost", "ongoing_cost", "transaction_cost", "performance_fee",
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS portfolio_products (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    isin TEXT,
    category TEXT,
    sri_risk,
    recommended_holding_period,
    entry_cost,
    exit_cost,
    ongoing_cost,
    transaction_cost,
    performance_fee
);

CREATE TABLE IF NOT EXISTS model_portfolios (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_by INTEGER NOT NULL,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    client_profile TEXT NOT NULL DEFAULT '',
    risk_level INTEGER NOT NULL,
    construction_logic TEXT,
    entry_cost TEXT NOT NULL,
    exit_cost TEXT NOT NULL,
    ongoing_cost TEXT NOT NULL,
    transaction_cost TEXT NOT NULL,
    performance_fee TEXT NOT NULL,
    total_annual_cost TEXT NOT NULL,
    average_risk TEXT NOT NULL,
    average_time_horizon TEXT,
    asset_class_distribution TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS portfolio_allocations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    portfolio_id INTEGER NOT NULL REFERENCES model_portfolios(id) ON DELETE CASCADE,
    product_id INTEGER NOT NULL REFERENCES portfolio_products(id),
    percentage TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_allocations_portfolio
ON portfolio_allocations(portfolio_id);

CREATE INDEX IF NOT EXISTS idx_portfolios_created_by
ON model_portfolios(created_by, created_at);
"""


def format_decimal(value: float, places: int = 8) -> str:
    """Format a number as a plain decimal string ("57.142857", "0.005", "100")."""
    text = f"{value:.{places}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _parse_decimal(text: Optional[str]) -> Optional[float]:
    return None if text is None else float(text)


class ModelPortfolioStore:
    """SQLite store for portfolio products, model portfolios and allocations."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        """
        Args:
            db_path: SQLite file path, or ":memory:" for a private in-memory db
        """
        self.db_path = str(db_path)
        if self.db_path != IN_MEMORY:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database connection and schema exist."""
        if self._conn is not None:
            return self._conn

        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "ModelPortfolioStore":
        self._ensure_connected()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    #  Products
    # ------------------------------------------------------------------ #

    def upsert_products(self, products: Iterable[ProductRecord]) -> int:
        """Insert or replace product rows. Returns the number written."""
        conn = self._ensure_connected()
        rows = [
            tuple(getattr(p, col) for col in _PRODUCT_COLUMNS)
            for p in products
        ]
        placeholders = ",".join("?" * len(_PRODUCT_COLUMNS))
        try:
            with conn:
                conn.executemany(
                    f"""
                    INSERT INTO portfolio_products ({",".join(_PRODUCT_COLUMNS)})
                    VALUES ({placeholders})
                    ON CONFLICT(id) DO UPDATE SET
                    {",".join(f"{c}=excluded.{c}" for c in _PRODUCT_COLUMNS[1:])}
                    """,
                    rows,
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to store {len(rows)} products: {e}") from e
        return len(rows)

    def get_products(self, product_ids: Iterable[int]) -> list[ProductRecord]:
        """Batch lookup of products. Unknown ids are silently absent."""
        ids = sorted(set(product_ids))
        if not ids:
            return []

        conn = self._ensure_connected()
        placeholders = ",".join("?" * len(ids))
        cursor = conn.execute(
            f"""
            SELECT {",".join(_PRODUCT_COLUMNS)}
            FROM portfolio_products
            WHERE id IN ({placeholders})
            """,
            ids,
        )
        return [ProductRecord(**dict(row)) for row in cursor]

    # ------------------------------------------------------------------ #
    #  Model portfolios
    # ------------------------------------------------------------------ #

    def save_model_portfolio(
        self,
        name: str,
        report: MetricsReport,
        allocation: list[AllocationLine],
        created_by: int,
        description: str = "",
        client_profile: str = "",
        construction_logic: Optional[str] = None,
    ) -> ModelPortfolio:
        """
        Persist a report and its allocation as a new model portfolio.

        Header and allocation rows are written in one transaction; on any
        database error nothing is kept and PersistenceError propagates.
        """
        conn = self._ensure_connected()
        created_at = datetime.now(timezone.utc).isoformat()
        horizon = report.average_investment_horizon

        try:
            with conn:
                cursor = conn.execute(
                    """
                    INSERT INTO model_portfolios
                    (created_by, name, description, client_profile, risk_level,
                     construction_logic, entry_cost, exit_cost, ongoing_cost,
                     transaction_cost, performance_fee, total_annual_cost,
                     average_risk, average_time_horizon, asset_class_distribution,
                     created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        created_by,
                        name,
                        description,
                        client_profile,
                        risk_class(report.average_risk),
                        construction_logic,
                        format_decimal(report.entry_cost),
                        format_decimal(report.exit_cost),
                        format_decimal(report.ongoing_cost),
                        format_decimal(report.transaction_cost),
                        format_decimal(report.performance_fee),
                        format_decimal(report.total_expense_ratio),
                        format_decimal(report.average_risk),
                        None if horizon is None else format_decimal(horizon),
                        json.dumps(report.asset_class_distribution),
                        created_at,
                    ),
                )
                portfolio_id = cursor.lastrowid
                conn.executemany(
                    """
                    INSERT INTO portfolio_allocations (portfolio_id, product_id, percentage)
                    VALUES (?, ?, ?)
                    """,
                    [
                        (portfolio_id, line.product_id, format_decimal(line.percentage, places=6))
                        for line in allocation
                    ],
                )
        except sqlite3.Error as e:
            logger.error(f"Saving model portfolio '{name}' failed, rolled back: {e}")
            raise PersistenceError(f"Failed to save model portfolio '{name}': {e}") from e

        logger.info(
            f"Saved model portfolio {portfolio_id} '{name}' with {len(allocation)} allocations"
        )
        return self.get_model_portfolio(portfolio_id)

    def get_model_portfolio(
        self,
        portfolio_id: int,
        created_by: Optional[int] = None,
    ) -> ModelPortfolio:
        """
        Load a model portfolio with its allocations.

        Raises:
            PortfolioNotFoundError: no such id, or owned by another user
        """
        conn = self._ensure_connected()
        query = "SELECT * FROM model_portfolios WHERE id = ?"
        params: list = [portfolio_id]
        if created_by is not None:
            query += " AND created_by = ?"
            params.append(created_by)

        row = conn.execute(query, params).fetchone()
        if row is None:
            raise PortfolioNotFoundError(f"Model portfolio {portfolio_id} not found")
        return self._row_to_portfolio(row)

    def list_model_portfolios(self, created_by: int) -> list[ModelPortfolio]:
        """All portfolios of one user, newest first."""
        conn = self._ensure_connected()
        rows = conn.execute(
            """
            SELECT * FROM model_portfolios
            WHERE created_by = ?
            ORDER BY created_at DESC, id DESC
            """,
            (created_by,),
        ).fetchall()
        return [self._row_to_portfolio(row) for row in rows]

    def delete_model_portfolio(self, portfolio_id: int, created_by: int) -> bool:
        """Delete a portfolio (allocations cascade). True if a row was removed."""
        conn = self._ensure_connected()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM model_portfolios WHERE id = ? AND created_by = ?",
                    (portfolio_id, created_by),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete model portfolio {portfolio_id}: {e}") from e
        return cursor.rowcount > 0

    def _row_to_portfolio(self, row: sqlite3.Row) -> ModelPortfolio:
        conn = self._ensure_connected()
        allocation_rows = conn.execute(
            """
            SELECT id, portfolio_id, product_id, percentage
            FROM portfolio_allocations
            WHERE portfolio_id = ?
            ORDER BY id
            """,
            (row["id"],),
        ).fetchall()

        return ModelPortfolio(
            id=row["id"],
            created_by=row["created_by"],
            name=row["name"],
            description=row["description"],
            client_profile=row["client_profile"],
            risk_level=row["risk_level"],
            construction_logic=row["construction_logic"],
            entry_cost=float(row["entry_cost"]),
            exit_cost=float(row["exit_cost"]),
            ongoing_cost=float(row["ongoing_cost"]),
            transaction_cost=float(row["transaction_cost"]),
            performance_fee=float(row["performance_fee"]),
            total_annual_cost=float(row["total_annual_cost"]),
            average_risk=float(row["average_risk"]),
            average_time_horizon=_parse_decimal(row["average_time_horizon"]),
            asset_class_distribution=json.loads(row["asset_class_distribution"]),
            created_at=row["created_at"],
            allocations=[
                PersistedAllocation(
                    id=a["id"],
                    portfolio_id=a["portfolio_id"],
                    product_id=a["product_id"],
                    percentage=float(a["percentage"]),
                )
                for a in allocation_rows
            ],
        )
