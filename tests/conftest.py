# tests/conftest.py
from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import pytest

START = date(2024, 1, 1)


def day(offset: int) -> str:
    return (START + timedelta(days=offset)).isoformat()


def make_series(prices: Sequence[Optional[float]], offset: int = 0) -> List[dict]:
    """Daily points starting at START + offset; None entries are skipped (gaps)."""
    return [
        {"date": day(offset + i), "price": price}
        for i, price in enumerate(prices)
        if price is not None
    ]


def make_request(
    allocations: Dict[str, float],
    days: int,
    mode: str = "none",
    **rebalance,
) -> dict:
    return {
        "assets": [{"id": asset_id, "allocation": w} for asset_id, w in allocations.items()],
        "startDate": day(0),
        "endDate": day(days - 1),
        "rebalance": {"mode": mode, **rebalance},
        "initialCapital": 100,
    }


@pytest.fixture
def messy_prices() -> Dict[str, List[dict]]:
    """
    Three assets over ten days:
    - alpha trades every day except two gap days
    - beta starts trading on day 2
    - gamma trades every day
    """
    alpha = [1.0, 1.1, 1.2, 1.15, None, None, 1.3, 1.4, 1.35, 1.5]
    beta = [10.0, 12.0, 11.0, 13.0, 15.0, 14.0, 16.0, 18.0]
    gamma = [5.0, 5.0, 5.5, 5.2, 5.1, 4.8, 4.9, 5.3, 5.6, 6.0]
    return {
        "alpha": make_series(alpha),
        "beta": make_series(beta, offset=2),
        "gamma": make_series(gamma),
    }
