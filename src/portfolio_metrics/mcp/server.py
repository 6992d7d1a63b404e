"""
Portfolio Metrics: MCP Server
Exposes 5 tools via stdio transport.

Tools:
1. calculate_portfolio_metrics: metrics report for an allocation
2. save_model_portfolio: calculate and persist a model portfolio
3. get_model_portfolio: one saved portfolio with its allocations
4. list_model_portfolios: portfolios owned by a user
5. delete_model_portfolio: delete a portfolio (allocations cascade)

Run: python -m portfolio_metrics.mcp.server
"""

from __future__ import annotations

import json
import logging
import os
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from portfolio_metrics.agents.metrics_pipeline import run_metrics_pipeline
from portfolio_metrics.config.constants import DEFAULT_DB_PATH
from portfolio_metrics.exceptions import PortfolioMetricsError
from portfolio_metrics.schemas.product import ProductRecord
from portfolio_metrics.tools.portfolio_store import ModelPortfolioStore
from portfolio_metrics.tools.product_reader import catalog_lookup

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool Definitions
# ---------------------------------------------------------------------------

_ALLOCATION_SCHEMA = {
    "type": "array",
    "description": "Allocation lines: [{productId, percentage, category?}]",
    "items": {
        "type": "object",
        "properties": {
            "productId": {"type": "integer"},
            "percentage": {"type": "number"},
            "category": {"type": "string"},
        },
        "required": ["productId", "percentage"],
    },
}

TOOLS = [
    {
        "name": "calculate_portfolio_metrics",
        "description": (
            "Compute weighted average risk (SRI), investment horizon, "
            "asset-class distribution and annualized costs (TER) for an "
            "allocation. Products are looked up in the store unless given inline."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "allocation": _ALLOCATION_SCHEMA,
                "products": {
                    "type": "array",
                    "description": "Optional: inline product records (id, sri_risk, costs ...)",
                    "items": {"type": "object"},
                },
            },
            "required": ["allocation"],
        },
    },
    {
        "name": "save_model_portfolio",
        "description": (
            "Calculate metrics for an allocation and persist it as a model "
            "portfolio. Header and allocations are saved atomically."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Portfolio name"},
                "created_by": {"type": "integer", "description": "Owner user id"},
                "allocation": _ALLOCATION_SCHEMA,
                "description": {"type": "string"},
                "client_profile": {"type": "string"},
                "construction_logic": {"type": "string"},
            },
            "required": ["name", "created_by", "allocation"],
        },
    },
    {
        "name": "get_model_portfolio",
        "description": "Get one saved model portfolio with its allocations.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "portfolio_id": {"type": "integer"},
                "created_by": {
                    "type": "integer",
                    "description": "Optional: restrict to this owner",
                },
            },
            "required": ["portfolio_id"],
        },
    },
    {
        "name": "list_model_portfolios",
        "description": "List model portfolios owned by a user, newest first.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "created_by": {"type": "integer", "description": "Owner user id"},
            },
            "required": ["created_by"],
        },
    },
    {
        "name": "delete_model_portfolio",
        "description": "Delete a model portfolio and its allocations.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "portfolio_id": {"type": "integer"},
                "created_by": {"type": "integer", "description": "Owner user id"},
            },
            "required": ["portfolio_id", "created_by"],
        },
    },
]


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

def create_server(db_path: str = DEFAULT_DB_PATH) -> Server:
    """Create and configure the MCP server with all 5 tools."""
    server = Server("portfolio-metrics")
    store = ModelPortfolioStore(db_path)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [Tool(**t) for t in TOOLS]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        try:
            result = _dispatch(name, arguments, store)
            text = json.dumps(result, default=str, indent=2)
        except (PortfolioMetricsError, KeyError, ValueError) as e:
            logger.warning(f"Tool {name} failed: {e}")
            text = json.dumps({"error": str(e)})

        return [TextContent(type="text", text=text)]

    return server


def _dispatch(name: str, args: dict, store: ModelPortfolioStore) -> dict | list:
    """Route tool calls to the pipeline or the store."""
    if name == "calculate_portfolio_metrics":
        if args.get("products"):
            lookup = catalog_lookup([ProductRecord(**p) for p in args["products"]])
        else:
            lookup = store.get_products
        run = run_metrics_pipeline(args["allocation"], lookup)
        return run.report.to_output()
    elif name == "save_model_portfolio":
        run = run_metrics_pipeline(
            args["allocation"],
            store.get_products,
            store=store,
            portfolio_name=args["name"],
            created_by=args["created_by"],
            description=args.get("description", ""),
            client_profile=args.get("client_profile", ""),
            construction_logic=args.get("construction_logic"),
        )
        return {
            "portfolio": run.portfolio.model_dump(),
            "metrics": run.report.to_output(),
        }
    elif name == "get_model_portfolio":
        return store.get_model_portfolio(
            args["portfolio_id"], created_by=args.get("created_by"),
        ).model_dump()
    elif name == "list_model_portfolios":
        return [p.model_dump() for p in store.list_model_portfolios(args["created_by"])]
    elif name == "delete_model_portfolio":
        deleted = store.delete_model_portfolio(args["portfolio_id"], args["created_by"])
        return {"deleted": deleted, "portfolio_id": args["portfolio_id"]}
    else:
        return {"error": f"Unknown tool: {name}"}


# ---------------------------------------------------------------------------
# Entry Point
# ---------------------------------------------------------------------------

async def main():
    """Run the MCP server with stdio transport."""
    server = create_server(os.environ.get("PORTFOLIO_DB_PATH", DEFAULT_DB_PATH))
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    import asyncio

    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    asyncio.run(main())
