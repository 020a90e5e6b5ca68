from __future__ import annotations

import math
from typing import Optional

NOT_AVAILABLE = "N/A"


def truncate_value(value, decimals: int = 2) -> Optional[float]:
    """
    Cut a metric to `decimals` places toward zero, so a report never rounds a
    loss or a drawdown up. None and NaN become None; infinities pass through.
    """
    if value is None:
        return None
    numeric = float(value)
    if math.isnan(numeric):
        return None
    if math.isinf(numeric):
        return numeric
    factor = 10 ** decimals
    return math.trunc(numeric * factor) / factor


def _render(value, decimals: int, template: str) -> str:
    truncated = truncate_value(value, decimals)
    if truncated is None:
        return NOT_AVAILABLE
    return template.format(truncated, decimals=decimals)


def format_currency(value, decimals: int = 2) -> str:
    return _render(value, decimals, "${0:,.{decimals}f}")


def format_pct_points(value, decimals: int = 2) -> str:
    """Format a value already expressed in percent, e.g. 12.5 -> '12.50%'."""
    return _render(value, decimals, "{0:.{decimals}f}%")


def format_ratio(value, decimals: int = 2) -> str:
    return _render(value, decimals, "{0:.{decimals}f}")
