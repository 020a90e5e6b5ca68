# backtesting/metrics.py
import math
from datetime import date
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .models import BacktestMetrics
from .timeline import is_valid_price

TRADING_DAYS_PER_YEAR = 252
CALENDAR_DAYS_PER_YEAR = 365


def _population_stats(returns: pd.Series):
    if returns.empty:
        return 0.0, 0.0
    return float(returns.mean()), float(returns.std(ddof=0))


def annualized_volatility(returns: pd.Series) -> float:
    """Population standard deviation of daily returns scaled by sqrt(252)."""
    _, std = _population_stats(returns)
    return std * np.sqrt(TRADING_DAYS_PER_YEAR)


def years_between(start: str, end: str) -> float:
    days = (date.fromisoformat(end) - date.fromisoformat(start)).days
    years = max(1 / CALENDAR_DAYS_PER_YEAR, days / CALENDAR_DAYS_PER_YEAR)
    if not math.isfinite(years):
        raise ValueError(f"Backtest failed: non-finite year count between {start} and {end}.")
    return years


def max_drawdown(values: pd.Series) -> float:
    """Most negative decline from the running peak, as a fraction (<= 0)."""
    if values.empty:
        return 0.0
    drawdowns = values / values.cummax() - 1
    return min(0.0, float(drawdowns.min()))


def compute_metrics(
    values: Sequence[float],
    dates: Sequence[str],
    initial_capital: float,
    risk_free_rate_pct: float = 0.0,
) -> BacktestMetrics:
    """
    Compute summary statistics from a daily portfolio value series.

    Parameters
    ----------
    values : sequence of float
        Portfolio value per timeline day.
    dates : sequence of str
        ISO dates aligned with `values`.
    initial_capital : float
        Requested starting capital, echoed in the result.
    risk_free_rate_pct : float
        Annual risk-free rate in percent (e.g. 4 for 4%).

    Returns
    -------
    BacktestMetrics
        Return, CAGR, volatility, Sharpe, drawdown and best/worst day, all in percent.
    """
    curve = pd.Series(list(values), dtype=float)
    initial_value = float(curve.iloc[0])
    final_value = float(curve.iloc[-1])
    growth = final_value / initial_value if initial_value > 0 else 1.0

    years = years_between(dates[0], dates[-1])
    with np.errstate(over="ignore"):
        cagr = float(np.power(growth, 1 / years)) - 1

    returns = (curve / curve.shift(1) - 1).iloc[1:]
    mean, std = _population_stats(returns)
    volatility = std * np.sqrt(TRADING_DAYS_PER_YEAR)
    rf_daily = risk_free_rate_pct / 100 / TRADING_DAYS_PER_YEAR
    sharpe = (
        float((mean - rf_daily) / std * np.sqrt(TRADING_DAYS_PER_YEAR)) if std > 0 else None
    )

    best_day = float(returns.max()) if not returns.empty else 0.0
    worst_day = float(returns.min()) if not returns.empty else 0.0

    return BacktestMetrics(
        start_date=dates[0],
        end_date=dates[-1],
        trading_days=len(curve),
        initial_capital=initial_capital,
        final_value=final_value,
        cumulative_return_pct=(growth - 1) * 100,
        cagr_pct=cagr * 100,
        volatility_pct=float(volatility) * 100,
        sharpe=sharpe,
        max_drawdown_pct=max_drawdown(curve) * 100,
        best_day_pct=best_day * 100,
        worst_day_pct=worst_day * 100,
    )


def asset_volatility(prices: List[Optional[float]]) -> float:
    """
    Annualized volatility of one asset in percent.

    Only consecutive days where both prices are valid contribute a return.
    """
    returns = [
        curr / prev - 1
        for prev, curr in zip(prices, prices[1:])
        if is_valid_price(prev) and is_valid_price(curr)
    ]
    return annualized_volatility(pd.Series(returns, dtype=float)) * 100


def risk_reward(cagr_pct: float, volatility_pct: float) -> Optional[float]:
    if volatility_pct > 0:
        return cagr_pct / volatility_pct
    return None
