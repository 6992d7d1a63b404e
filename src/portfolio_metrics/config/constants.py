"""
Centralized business-policy defaults for the Portfolio Metrics engine.

These values are asserted by the advisory business rules, not derived.
Downstream consumers (saved model portfolios, reports) depend on the
exact figures, so they are kept verbatim rather than tuned.
"""

# ============================================================================
# AGGREGATION FALLBACKS
# ============================================================================
# Used when no allocation line carries a usable value for a metric.

DEFAULT_RISK = 7
"""Weighted risk reported when no product in the allocation has an SRI"""

DEFAULT_HOLDING_PERIOD_YEARS = 10
"""Holding period used to amortize entry/exit costs when no horizon is known"""

DEFAULT_COST = 0.0
"""Weighted cost component reported when no product carries that cost"""

# ============================================================================
# QUALITATIVE HORIZON BUCKETS
# ============================================================================
# Free-text holding periods ("short term", "long term") map to these years.

SHORT_TERM_YEARS = 2
"""Years assigned to a holding period described as 'short'"""

MEDIUM_TERM_YEARS = 5
"""Years assigned to a holding period described as 'medium'"""

LONG_TERM_YEARS = 10
"""Years assigned to a holding period described as 'long'"""

MONTHS_PER_YEAR = 12

# Unit tokens recognised after a number, English and Italian.
YEAR_UNIT_TOKENS: tuple[str, ...] = ("year", "yr", "anno", "anni")
MONTH_UNIT_TOKENS: tuple[str, ...] = ("month", "mo", "mese", "mesi")

# ============================================================================
# ALLOCATION
# ============================================================================

ALLOCATION_SUM_TARGET = 100.0
"""Percentages of a portfolio allocation must sum to this value"""

ALLOCATION_SUM_TOLERANCE = 0.1
"""Allowed deviation from the target before the allocation is rescaled"""

PERCENTAGE_SCALE = 100.0
"""Divisor turning percentage points into fractions (2.0 -> 0.02)"""

# ============================================================================
# PRODUCT CLASSIFICATION
# ============================================================================

ASSET_CATEGORIES: tuple[str, ...] = (
    "equity",
    "bonds",
    "cash",
    "real_estate",
    "commodities",
    "private_equity",
    "venture_capital",
    "cryptocurrencies",
    "other",
)

FALLBACK_CATEGORY = "other"
"""Category used when neither the allocation line nor the product has one"""

SRI_RANGE: tuple[int, int] = (1, 7)
"""Valid range of the Synthetic Risk Indicator"""

# ============================================================================
# LLM ALLOCATION PROPOSER
# ============================================================================

PROPOSER_MODEL = "claude-haiku-4-5-20251001"
PROPOSER_MAX_TOKENS = 3000
PROPOSER_TIMEOUT_SECONDS = 60.0

# ============================================================================
# PERSISTENCE
# ============================================================================

DEFAULT_DB_PATH = "data/portfolio.db"
"""SQLite file used when PORTFOLIO_DB_PATH is not set"""
