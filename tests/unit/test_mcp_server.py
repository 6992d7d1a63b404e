"""
MCP Server: Unit Tests
Tests for tool definitions and _dispatch() routing against a temp store.
"""

from __future__ import annotations

import math

import pytest

from portfolio_metrics.mcp.server import TOOLS, _dispatch, create_server
from portfolio_metrics.tools.portfolio_store import ModelPortfolioStore
from tests.fixtures.conftest import SCENARIO_ALLOCATION, SAMPLE_PRODUCTS, make_products


@pytest.fixture
def store(tmp_path):
    s = ModelPortfolioStore(tmp_path / "mcp.db")
    s.upsert_products(make_products())
    yield s
    s.close()


class TestToolDefinitions:

    @pytest.mark.schema
    def test_five_tools(self):
        """All 5 tools are declared."""
        assert {t["name"] for t in TOOLS} == {
            "calculate_portfolio_metrics",
            "save_model_portfolio",
            "get_model_portfolio",
            "list_model_portfolios",
            "delete_model_portfolio",
        }

    @pytest.mark.schema
    def test_schemas_are_objects(self):
        """Every input schema is a JSON object schema."""
        for tool in TOOLS:
            assert tool["inputSchema"]["type"] == "object"
            assert tool["description"]

    @pytest.mark.schema
    def test_create_server(self, tmp_path):
        """Server can be constructed."""
        assert create_server(str(tmp_path / "srv.db")) is not None


class TestDispatch:

    @pytest.mark.integration
    def test_calculate_from_store(self, store):
        """Metrics computed against stored products, camelCase keys."""
        result = _dispatch(
            "calculate_portfolio_metrics",
            {"allocation": [{"productId": 1, "percentage": 100}]},
            store,
        )
        assert result["averageRisk"] == 3.0
        assert result["averageInvestmentHorizon"] == 5.0

    @pytest.mark.integration
    def test_calculate_inline_products(self, store):
        """Inline products override the store."""
        result = _dispatch(
            "calculate_portfolio_metrics",
            {
                "allocation": SCENARIO_ALLOCATION,
                "products": [
                    {"id": 1, "sri_risk": 3, "ongoing_cost": "0.50%", "recommended_holding_period": "5"},
                    {"id": 2, "sri_risk": 5, "ongoing_cost": "1.00%"},
                ],
            },
            store,
        )
        assert round(result["averageRisk"], 3) == 3.857
        assert math.isclose(result["totalExpenseRatio"], result["ongoingCost"])

    @pytest.mark.integration
    def test_save_get_list_delete(self, store):
        """Full portfolio lifecycle through the tools."""
        saved = _dispatch(
            "save_model_portfolio",
            {"name": "Tool Portfolio", "created_by": 5,
             "allocation": [{"productId": 1, "percentage": 50}, {"productId": 2, "percentage": 50}]},
            store,
        )
        pid = saved["portfolio"]["id"]
        assert saved["metrics"]["averageRisk"] == 4.0

        fetched = _dispatch("get_model_portfolio", {"portfolio_id": pid}, store)
        assert fetched["name"] == "Tool Portfolio"
        assert len(fetched["allocations"]) == 2

        listed = _dispatch("list_model_portfolios", {"created_by": 5}, store)
        assert [p["id"] for p in listed] == [pid]

        deleted = _dispatch("delete_model_portfolio", {"portfolio_id": pid, "created_by": 5}, store)
        assert deleted == {"deleted": True, "portfolio_id": pid}
        assert _dispatch("list_model_portfolios", {"created_by": 5}, store) == []

    @pytest.mark.integration
    def test_unknown_tool(self, store):
        """Unknown tool names return an error payload."""
        assert "error" in _dispatch("nope", {}, store)

    @pytest.mark.schema
    def test_sample_products_cover_categories(self):
        """Fixture sanity: sample catalog has uncategorized products."""
        assert any(p["category"] is None for p in SAMPLE_PRODUCTS)
