"""
Metrics Tool: Cost Normalizer
Turn heterogeneous product cost fields into canonical fractions.

Cost fields arrive as numbers (2.0), numeric strings ("2.00", "2,00")
or percentage strings ("2.00%", " 2 % "). All of them are percentage
points: every parsable value is divided by 100, with or without a "%"
marker, so 2.0, "2.00" and "2.00%" all become 0.02.

Unparsable input never raises. It degrades to None ("absent"), which
the weighted aggregator excludes from both numerator and denominator.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Any, Optional

from portfolio_metrics.config.constants import PERCENTAGE_SCALE

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Numeric Parsing
# ---------------------------------------------------------------------------

def _clean_numeric_text(text: str, allow_percent: bool) -> str:
    s = text.strip()
    if allow_percent and s.endswith("%"):
        s = s[:-1].strip()
    if "," in s:
        # the rightmost of "," and "." is the decimal mark:
        # "0,50" and "1.000,50" use a decimal comma, "1,000.50" a thousands comma
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    return s


def parse_numeric(raw: Any, allow_percent: bool = True) -> Optional[float]:
    """
    Parse a number, numeric string or percentage string into a finite float.

    Returns None for None, booleans, empty strings, text that is not a
    number, NaN and infinities. The "%" marker is stripped but the value
    is NOT rescaled here.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
    elif isinstance(raw, str):
        cleaned = _clean_numeric_text(raw, allow_percent)
        if not cleaned:
            return None
        try:
            value = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(value):
        return None
    return value


# ---------------------------------------------------------------------------
# Cost Normalization
# ---------------------------------------------------------------------------

def normalize_cost(raw: Any) -> Optional[float]:
    """
    Normalize one raw cost field to a fraction.

    Examples:
        normalize_cost("2.00%") -> 0.02
        normalize_cost("2.00")  -> 0.02
        normalize_cost(0.45)    -> 0.0045
        normalize_cost("n/a")   -> None
    """
    value = parse_numeric(raw, allow_percent=True)
    if value is None:
        if raw not in (None, ""):
            logger.debug(f"Unparsable cost value {raw!r} treated as absent")
        return None
    return value / PERCENTAGE_SCALE


def normalize_costs(raw_fields: dict[str, Any]) -> dict[str, Optional[float]]:
    """Normalize every cost field in a {field_name: raw_value} mapping."""
    return {name: normalize_cost(value) for name, value in raw_fields.items()}
