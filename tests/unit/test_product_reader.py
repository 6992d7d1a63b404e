"""
Product Catalog Reader: Unit Tests
Tests for read_product_catalog() with CSV/XLSX files and catalog_lookup().
"""

from __future__ import annotations

import pytest

from portfolio_metrics.exceptions import CatalogReadError, ErrorSeverity
from portfolio_metrics.tools.product_reader import (
    _find_column,
    catalog_lookup,
    read_product_catalog,
)
from tests.fixtures.conftest import (
    SAMPLE_PRODUCTS,
    create_mock_catalog_csv,
    create_mock_catalog_xlsx,
    make_products,
)


class TestReadCsv:

    @pytest.mark.integration
    def test_reads_all_rows(self, tmp_path):
        """Every sample product is loaded."""
        path = tmp_path / "catalog.csv"
        create_mock_catalog_csv(str(path), SAMPLE_PRODUCTS)
        products, errors = read_product_catalog(str(path))
        assert [p.id for p in products] == [1, 2, 3, 4, 5]
        assert errors == []

    @pytest.mark.integration
    def test_raw_strings_preserved(self, tmp_path):
        """Cost strings keep their original form."""
        path = tmp_path / "catalog.csv"
        create_mock_catalog_csv(str(path), SAMPLE_PRODUCTS)
        products, _ = read_product_catalog(str(path))
        by_id = {p.id: p for p in products}
        assert by_id[1].entry_cost == "1.00%"
        assert by_id[4].ongoing_cost == "0,80%"
        assert by_id[3].recommended_holding_period == "18 months"

    @pytest.mark.integration
    def test_blank_cells_are_none(self, tmp_path):
        """Empty cells become None."""
        path = tmp_path / "catalog.csv"
        create_mock_catalog_csv(str(path), SAMPLE_PRODUCTS)
        products, _ = read_product_catalog(str(path))
        by_id = {p.id: p for p in products}
        assert by_id[2].recommended_holding_period is None
        assert by_id[5].category is None

    @pytest.mark.integration
    def test_row_without_id_reported(self, tmp_path):
        """Rows with no id become ProcessingErrors."""
        path = tmp_path / "catalog.csv"
        rows = SAMPLE_PRODUCTS[:2] + [{"id": None, "name": "Orphan"}]
        create_mock_catalog_csv(str(path), rows)
        products, errors = read_product_catalog(str(path))
        assert len(products) == 2
        assert len(errors) == 1
        assert errors[0].error_type == "MISSING_ID"

    @pytest.mark.integration
    @pytest.mark.parametrize("bad_id", ["X1", "inf", "1e400"])
    def test_invalid_id_reported(self, tmp_path, bad_id):
        """Ids that are not integers are reported per row; other rows still load."""
        path = tmp_path / "catalog.csv"
        path.write_text(f"id,name\n1,A\n{bad_id},B\n3,C\n")
        products, errors = read_product_catalog(str(path))
        assert [p.id for p in products] == [1, 3]
        assert len(errors) == 1
        assert errors[0].error_type == "INVALID_ID"
        assert errors[0].severity == ErrorSeverity.WARNING
        assert errors[0].row == 3

    @pytest.mark.integration
    def test_row_validation_error(self, tmp_path):
        """Rows that fail model validation are reported with their row number."""
        path = tmp_path / "catalog.csv"
        path.write_text("id,name\n-4,Negative\n1,A\n")
        products, errors = read_product_catalog(str(path))
        assert [p.id for p in products] == [1]
        assert errors[0].error_type == "ROW_VALIDATION_ERROR"
        assert errors[0].row == 2
        assert "\n" not in errors[0].message


class TestReadXlsx:

    @pytest.mark.integration
    def test_reads_xlsx(self, tmp_path):
        """XLSX catalogs are read via openpyxl."""
        path = tmp_path / "catalog.xlsx"
        create_mock_catalog_xlsx(str(path), SAMPLE_PRODUCTS)
        products, errors = read_product_catalog(str(path))
        assert len(products) == 5
        assert products[3].category == "bonds"


class TestReadErrors:

    @pytest.mark.integration
    def test_missing_file(self, tmp_path):
        """Missing file raises CatalogReadError."""
        with pytest.raises(CatalogReadError):
            read_product_catalog(str(tmp_path / "nope.csv"))

    @pytest.mark.integration
    def test_unsupported_format(self, tmp_path):
        """Unsupported suffix raises CatalogReadError."""
        path = tmp_path / "catalog.pdf"
        path.write_bytes(b"%PDF")
        with pytest.raises(CatalogReadError):
            read_product_catalog(str(path))

    @pytest.mark.integration
    def test_no_id_column(self, tmp_path):
        """A catalog without any id column is rejected."""
        path = tmp_path / "catalog.csv"
        path.write_text("Name,SRI\nFund,3\n")
        with pytest.raises(CatalogReadError):
            read_product_catalog(str(path))


class TestHelpers:

    @pytest.mark.schema
    def test_find_column_case_insensitive(self):
        """Aliases match regardless of case."""
        import pandas as pd
        df = pd.DataFrame(columns=["product id", "ONGOING CHARGES"])
        assert _find_column(df, "id") == "product id"
        assert _find_column(df, "ongoing_cost") == "ONGOING CHARGES"

    @pytest.mark.schema
    def test_catalog_lookup(self):
        """Lookup returns known products only."""
        lookup = catalog_lookup(make_products())
        assert [p.id for p in lookup([2, 42, 1])] == [2, 1]
