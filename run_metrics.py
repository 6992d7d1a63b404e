"""Calculate portfolio metrics for an allocation and write output to JSON + Excel.

Usage:
    python run_metrics.py allocation.json --catalog products.csv
    python run_metrics.py allocation.json                       # products from the sqlite store
    python run_metrics.py allocation.json --catalog products.xlsx --save "Balanced 60/40" --user 1
"""

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv
load_dotenv()

import pandas as pd
from openpyxl.styles import Font, PatternFill

from portfolio_metrics.agents.metrics_pipeline import MetricsRun, run_metrics_pipeline
from portfolio_metrics.config.constants import DEFAULT_DB_PATH
from portfolio_metrics.exceptions import PortfolioMetricsError
from portfolio_metrics.tools.portfolio_store import ModelPortfolioStore
from portfolio_metrics.tools.product_reader import catalog_lookup, read_product_catalog

_HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
_WHITE_FONT = Font(color="FFFFFF", bold=True)


# ---------------------------------------------------------------------------
# CLI Argument Parsing
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Portfolio Metrics: weighted risk, horizon, distribution and TER",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  python run_metrics.py alloc.json --catalog products.csv      metrics from a catalog file
  python run_metrics.py alloc.json                              products from PORTFOLIO_DB_PATH
  python run_metrics.py alloc.json --catalog p.xlsx --save X --user 1   also save a model portfolio
""",
    )
    parser.add_argument(
        "allocation",
        help='JSON file: [{"productId": 1, "percentage": 60}, ...]',
    )
    parser.add_argument(
        "--catalog", default=None,
        help="Product catalog (.csv/.xlsx). Loaded into the store when saving.",
    )
    parser.add_argument(
        "--db", default=os.environ.get("PORTFOLIO_DB_PATH", DEFAULT_DB_PATH),
        help=f"SQLite database (default: $PORTFOLIO_DB_PATH or {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "--output", default="output",
        help="Output directory (default: output)",
    )
    parser.add_argument(
        "--save", metavar="NAME", default=None,
        help="Save the result as a model portfolio with this name",
    )
    parser.add_argument(
        "--user", type=int, default=None,
        help="Owner user id (required with --save)",
    )
    parser.add_argument(
        "--description", default="",
        help="Portfolio description (with --save)",
    )

    args = parser.parse_args()
    if args.save and args.user is None:
        parser.error("--save requires --user")
    return args


# ---------------------------------------------------------------------------
# Output Writers
# ---------------------------------------------------------------------------

def _write_json(run: MetricsRun, out_path: Path) -> Path:
    filepath = out_path / f"portfolio_metrics_{date.today().isoformat()}.json"
    payload = run.report.to_output()
    if run.portfolio is not None:
        payload["portfolio"] = run.portfolio.model_dump()
    filepath.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    return filepath


def _fmt_pct(value):
    return None if value is None else round(value * 100, 4)


def _write_excel(run: MetricsRun, out_path: Path) -> Path:
    """Write report to Summary / Products / Calculations sheets."""
    report = run.report
    filepath = out_path / f"portfolio_metrics_{date.today().isoformat()}.xlsx"

    # --- Summary ---
    summary_rows = [
        {"Field": "Average Risk (SRI)", "Value": round(report.average_risk, 4)},
        {"Field": "Average Investment Horizon (yrs)", "Value": report.average_investment_horizon},
        {"Field": "Total Expense Ratio %", "Value": _fmt_pct(report.total_expense_ratio)},
        {"Field": "Entry Cost %", "Value": _fmt_pct(report.entry_cost)},
        {"Field": "Exit Cost %", "Value": _fmt_pct(report.exit_cost)},
        {"Field": "Ongoing Cost %", "Value": _fmt_pct(report.ongoing_cost)},
        {"Field": "Transaction Cost %", "Value": _fmt_pct(report.transaction_cost)},
        {"Field": "Performance Fee %", "Value": _fmt_pct(report.performance_fee)},
    ]
    for category, pct in report.asset_class_distribution.items():
        summary_rows.append({"Field": f"Allocation: {category}", "Value": round(pct, 4)})
    if run.portfolio is not None:
        summary_rows.append({"Field": "Saved Portfolio ID", "Value": run.portfolio.id})
        summary_rows.append({"Field": "Risk Level", "Value": run.portfolio.risk_level})
    df_summary = pd.DataFrame(summary_rows)

    # --- Products ---
    df_products = pd.DataFrame([
        {
            "Product ID": d.product_id,
            "Name": d.name,
            "Category": d.category,
            "Percentage": round(d.percentage, 4),
            "SRI": d.risk,
            "Horizon (yrs)": d.horizon,
            "Entry %": _fmt_pct(d.entry_cost),
            "Exit %": _fmt_pct(d.exit_cost),
            "Ongoing %": _fmt_pct(d.ongoing_cost),
            "Transaction %": _fmt_pct(d.transaction_cost),
            "Performance %": _fmt_pct(d.performance_fee),
        }
        for d in report.product_details
    ])

    # --- Calculations ---
    risk_by_id = {r.product_id: r for r in report.risk_calculation}
    horizon_by_id = {h.product_id: h for h in report.horizon_calculation}
    df_calc = pd.DataFrame([
        {
            "Product ID": c.product_id,
            "Name": c.name,
            "Weight": round(c.weight, 6),
            "Risk Contribution": risk_by_id[c.product_id].contribution,
            "Horizon Contribution": horizon_by_id[c.product_id].contribution,
            "Entry": c.entry,
            "Exit": c.exit,
            "Ongoing": c.ongoing,
            "Transaction": c.transaction,
            "Performance": c.performance,
        }
        for c in report.cost_calculation
    ])

    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        df_summary.to_excel(writer, sheet_name="Summary", index=False)
        df_products.to_excel(writer, sheet_name="Products", index=False)
        df_calc.to_excel(writer, sheet_name="Calculations", index=False)

        for ws in writer.book.worksheets:
            for cell in ws[1]:
                cell.fill = _HEADER_FILL
                cell.font = _WHITE_FONT

    return filepath


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(args: argparse.Namespace) -> int:
    out_path = Path(args.output)
    out_path.mkdir(exist_ok=True)

    allocation = json.loads(Path(args.allocation).read_text(encoding="utf-8"))
    if isinstance(allocation, dict):
        allocation = allocation.get("allocation", [])

    with ModelPortfolioStore(args.db) as store:
        if args.catalog:
            products, errors = read_product_catalog(args.catalog)
            for err in errors:
                print(f"  [catalog] {err.error_type}: {err.message}")
            print(f"Loaded {len(products)} products from {args.catalog}")
            if args.save:
                store.upsert_products(products)
            lookup = catalog_lookup(products)
        else:
            lookup = store.get_products

        run = run_metrics_pipeline(
            allocation,
            lookup,
            store=store,
            portfolio_name=args.save,
            created_by=args.user,
            description=args.description,
        )

    report = run.report
    print(f"Average risk:      {report.average_risk:.2f}")
    print(f"Average horizon:   {report.average_investment_horizon}")
    print(f"Total expense ratio: {report.total_expense_ratio:.4%}")
    print(f"Distribution:      {report.asset_class_distribution}")
    if run.portfolio is not None:
        print(f"Saved model portfolio {run.portfolio.id} '{run.portfolio.name}'")

    print(f"Saved: {_write_json(run, out_path)}")
    print(f"Saved: {_write_excel(run, out_path)}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    cli_args = parse_args()
    try:
        sys.exit(main(cli_args))
    except PortfolioMetricsError as e:
        print(f"Error [{e.error_code}]: {e}", file=sys.stderr)
        sys.exit(1)
