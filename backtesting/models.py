# backtesting/models.py
"""
Request and result structures for the portfolio backtest engine.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

DEFAULT_INITIAL_CAPITAL = 100.0
DEFAULT_RISK_FREE_RATE_PCT = 0.0
DEFAULT_PERIOD_DAYS = 30
DEFAULT_THRESHOLD_PCT = 5.0
REBALANCE_MODES = ("none", "periodic", "threshold")


def _parse_iso_date(value: Any, field_name: str) -> str:
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValueError(f"Backtest failed: '{field_name}' must be an ISO date string.")
    try:
        return date.fromisoformat(value[:10]).isoformat()
    except ValueError as exc:
        raise ValueError(
            f"Backtest failed: '{field_name}' is not a valid ISO date ({value!r})."
        ) from exc


def _as_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Backtest failed: '{field_name}' must be numeric.")
    numeric = float(value)
    if not math.isfinite(numeric):
        raise ValueError(f"Backtest failed: '{field_name}' must be finite.")
    return numeric


@dataclass(frozen=True)
class AssetAllocation:
    """Target share of initial capital for one asset."""

    id: str
    target_weight: float


@dataclass(frozen=True)
class PricePoint:
    date: str
    price: float

    @classmethod
    def coerce(cls, raw: Any) -> "PricePoint":
        """
        Accept a PricePoint, a {'date', 'price'} mapping or a (date, price) pair.

        A null price becomes NaN and is treated downstream as a gap in the series.
        """
        if isinstance(raw, PricePoint):
            return raw
        if isinstance(raw, Mapping):
            day, price = raw.get("date"), raw.get("price")
        else:
            try:
                day, price = raw
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Backtest failed: unrecognised price point {raw!r}.") from exc
        if price is None:
            return cls(date=_parse_iso_date(day, "date"), price=math.nan)
        try:
            numeric = float(price)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Backtest failed: price {price!r} on {day} is not numeric.") from exc
        return cls(date=_parse_iso_date(day, "date"), price=numeric)


@dataclass(frozen=True)
class RebalanceConfig:
    mode: str = "none"
    period_days: int = DEFAULT_PERIOD_DAYS
    threshold_pct: float = DEFAULT_THRESHOLD_PCT


@dataclass(frozen=True)
class BacktestRequest:
    """
    Parsed backtest request.

    Allocations are expected, not required, to sum to 1; drift is reported by
    the integrity report rather than rejected here.
    """

    assets: Tuple[AssetAllocation, ...]
    start_date: str
    end_date: str
    rebalance: RebalanceConfig = field(default_factory=RebalanceConfig)
    initial_capital: float = DEFAULT_INITIAL_CAPITAL
    risk_free_rate_pct: float = DEFAULT_RISK_FREE_RATE_PCT

    def __post_init__(self):
        if not self.assets:
            raise ValueError("Backtest failed: at least one asset is required.")
        ids = [asset.id for asset in self.assets]
        if len(set(ids)) != len(ids):
            raise ValueError("Backtest failed: duplicate asset ids in request.")
        if self.end_date < self.start_date:
            raise ValueError("Backtest failed: end date occurs before start date.")
        if self.initial_capital <= 0:
            raise ValueError("Backtest failed: initial capital must be positive.")

    @property
    def asset_ids(self) -> List[str]:
        return [asset.id for asset in self.assets]

    @property
    def target_weights(self) -> Dict[str, float]:
        return {asset.id: asset.target_weight for asset in self.assets}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BacktestRequest":
        """
        Build a request from the camelCase wire payload.

        Raises ValueError when the payload does not match the request contract.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("Backtest failed: request must be a JSON object.")

        raw_assets = payload.get("assets")
        if not isinstance(raw_assets, Sequence) or isinstance(raw_assets, str) or not raw_assets:
            raise ValueError("Backtest failed: 'assets' must be a non-empty list.")

        assets: List[AssetAllocation] = []
        for entry in raw_assets:
            if not isinstance(entry, Mapping) or not isinstance(entry.get("id"), str) or not entry["id"]:
                raise ValueError("Backtest failed: every asset needs a string 'id'.")
            weight = _as_number(entry.get("allocation"), f"allocation[{entry['id']}]")
            if not 0.0 <= weight <= 1.0:
                raise ValueError(
                    f"Backtest failed: allocation for {entry['id']} must lie in [0, 1]."
                )
            assets.append(AssetAllocation(id=entry["id"], target_weight=weight))

        rebalance_raw = payload.get("rebalance") or {"mode": "none"}
        if not isinstance(rebalance_raw, Mapping):
            raise ValueError("Backtest failed: 'rebalance' must be an object.")
        mode = rebalance_raw.get("mode", "none")
        if mode not in REBALANCE_MODES:
            raise ValueError(
                f"Backtest failed: unknown rebalance mode {mode!r}; expected one of {REBALANCE_MODES}."
            )
        period_days = rebalance_raw.get("periodDays")
        if period_days is None:
            period_days = DEFAULT_PERIOD_DAYS
        elif isinstance(period_days, bool) or not isinstance(period_days, int) or period_days < 1:
            raise ValueError("Backtest failed: 'periodDays' must be a positive integer.")
        threshold_pct = rebalance_raw.get("thresholdPct")
        if threshold_pct is None:
            threshold_pct = DEFAULT_THRESHOLD_PCT
        else:
            threshold_pct = _as_number(threshold_pct, "thresholdPct")
            if threshold_pct <= 0:
                raise ValueError("Backtest failed: 'thresholdPct' must be positive.")

        initial_capital = payload.get("initialCapital")
        initial_capital = (
            DEFAULT_INITIAL_CAPITAL
            if initial_capital is None
            else _as_number(initial_capital, "initialCapital")
        )
        risk_free = payload.get("riskFreeRatePct")
        risk_free = (
            DEFAULT_RISK_FREE_RATE_PCT if risk_free is None else _as_number(risk_free, "riskFreeRatePct")
        )

        return cls(
            assets=tuple(assets),
            start_date=_parse_iso_date(payload.get("startDate"), "startDate"),
            end_date=_parse_iso_date(payload.get("endDate"), "endDate"),
            rebalance=RebalanceConfig(
                mode=mode, period_days=period_days, threshold_pct=float(threshold_pct)
            ),
            initial_capital=initial_capital,
            risk_free_rate_pct=risk_free,
        )


@dataclass(frozen=True)
class BacktestMetrics:
    start_date: str
    end_date: str
    trading_days: int
    initial_capital: float
    final_value: float
    cumulative_return_pct: float
    cagr_pct: float
    volatility_pct: float
    sharpe: Optional[float]
    max_drawdown_pct: float
    best_day_pct: float
    worst_day_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startDate": self.start_date,
            "endDate": self.end_date,
            "tradingDays": self.trading_days,
            "initialCapital": self.initial_capital,
            "finalValue": self.final_value,
            "cumulativeReturnPct": self.cumulative_return_pct,
            "cagrPct": self.cagr_pct,
            "volatilityPct": self.volatility_pct,
            "sharpe": self.sharpe,
            "maxDrawdownPct": self.max_drawdown_pct,
            "bestDayPct": self.best_day_pct,
            "worstDayPct": self.worst_day_pct,
        }


@dataclass(frozen=True)
class IntegrityReport:
    score: int
    issues: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "issues": list(self.issues)}


@dataclass(frozen=True)
class BacktestResult:
    """Complete output of one simulation run."""

    timeline: List[str]
    portfolio_values: List[float]
    per_asset_values: Dict[str, List[float]]
    per_asset_prices: Dict[str, List[float]]
    per_asset_weights: Dict[str, List[float]]
    rebalance_dates: List[str]
    metrics: BacktestMetrics
    per_asset_volatility_pct: Dict[str, float]
    risk_reward: Optional[float]
    integrity: IntegrityReport

    def to_dict(self) -> Dict[str, Any]:
        return {
            "series": {
                "timeline": list(self.timeline),
                "portfolio": [
                    {"date": day, "value": value}
                    for day, value in zip(self.timeline, self.portfolio_values)
                ],
                "perAssetValues": {k: list(v) for k, v in self.per_asset_values.items()},
                "perAssetPrices": {k: list(v) for k, v in self.per_asset_prices.items()},
                "perAssetWeights": {k: list(v) for k, v in self.per_asset_weights.items()},
                "rebalanceDates": list(self.rebalance_dates),
            },
            "metrics": self.metrics.to_dict(),
            "risk": {
                "perAssetVolatilityPct": dict(self.per_asset_volatility_pct),
                "riskReward": self.risk_reward,
            },
            "integrity": self.integrity.to_dict(),
        }
