"""
Metrics Tool: Horizon Normalizer
Parse recommended holding periods into years.

Holding periods come from product documents as free text. Parsing
order, first match wins:
  1. numeric type                   -> years as given
  2. integer string  ("5")          -> int years
  3. decimal string  ("2.5", "2,5") -> float years
  4. number + year unit ("3-5 years", "5 anni")   -> that number
  5. number + month unit ("18 months", "6 mesi")  -> number / 12
  6. contains "short"  -> SHORT_TERM_YEARS
  7. contains "medium" -> MEDIUM_TERM_YEARS
  8. contains "long"   -> LONG_TERM_YEARS
  9. otherwise None (absent, excluded from aggregation)
"""

from __future__ import annotations

import logging
import math
import re
from decimal import Decimal
from typing import Any, Optional

from portfolio_metrics.config.constants import (
    LONG_TERM_YEARS,
    MEDIUM_TERM_YEARS,
    MONTH_UNIT_TOKENS,
    MONTHS_PER_YEAR,
    SHORT_TERM_YEARS,
    YEAR_UNIT_TOKENS,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_INTEGER_PATTERN = re.compile(r"^\d+$")
_DECIMAL_PATTERN = re.compile(r"^\d*[.,]\d+$")

_NUMBER = r"(\d+(?:[.,]\d+)?)"
_YEAR_PATTERN = re.compile(
    _NUMBER + r"[\s-]*(?:" + "|".join(YEAR_UNIT_TOKENS) + r")",
    re.IGNORECASE,
)
_MONTH_PATTERN = re.compile(
    _NUMBER + r"[\s-]*(?:" + "|".join(MONTH_UNIT_TOKENS) + r")",
    re.IGNORECASE,
)

# Qualitative buckets, checked in this order. Italian synonyms included.
QUALITATIVE_BUCKETS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("short", "breve"), SHORT_TERM_YEARS),
    (("medium", "medio"), MEDIUM_TERM_YEARS),
    (("long", "lungo"), LONG_TERM_YEARS),
)


def _to_float(text: str) -> float:
    return float(text.replace(",", "."))


def _positive(value: float) -> Optional[float]:
    if not math.isfinite(value) or value <= 0:
        return None
    return value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_horizon(raw: Any) -> Optional[float]:
    """
    Convert a raw holding-period field to years, or None if absent.

    Zero or negative periods are treated as absent: they cannot be used
    to amortize one-off costs.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float, Decimal)):
        return _positive(float(raw))

    if not isinstance(raw, str):
        return None

    text = raw.strip().lower()
    if not text:
        return None

    if _INTEGER_PATTERN.match(text):
        return _positive(float(int(text)))

    if _DECIMAL_PATTERN.match(text):
        return _positive(_to_float(text))

    m = _YEAR_PATTERN.search(text)
    if m:
        return _positive(_to_float(m.group(1)))

    m = _MONTH_PATTERN.search(text)
    if m:
        return _positive(_to_float(m.group(1)) / MONTHS_PER_YEAR)

    for tokens, years in QUALITATIVE_BUCKETS:
        if any(token in text for token in tokens):
            return float(years)

    logger.debug(f"Holding period {raw!r} not recognised; treated as absent")
    return None
