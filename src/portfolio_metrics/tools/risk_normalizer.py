"""
Metrics Tool: Risk Normalizer
SRI (Synthetic Risk Indicator) parsing and classification.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

from portfolio_metrics.config.constants import SRI_RANGE
from portfolio_metrics.tools.cost_normalizer import parse_numeric

logger = logging.getLogger(__name__)


def normalize_risk(raw: Any) -> Optional[float]:
    """
    Return the product's SRI as a float, or None if absent.

    SRI is stored as a number or a numeric string. Values that are not
    finite, or that fall outside the 1-7 scale, are treated as absent.
    """
    value = parse_numeric(raw, allow_percent=False)
    if value is None:
        return None
    lo, hi = SRI_RANGE
    if not lo <= value <= hi:
        logger.debug(f"SRI {raw!r} outside {SRI_RANGE}; treated as absent")
        return None
    return value


def risk_class(average_risk: float) -> int:
    """
    Round a weighted average SRI to the nearest class on the 1-7 scale.
    Halves round up (3.5 -> 4).
    """
    lo, hi = SRI_RANGE
    if not math.isfinite(average_risk):
        return hi
    return max(lo, min(hi, int(math.floor(average_risk + 0.5))))
