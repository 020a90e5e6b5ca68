"""
rebalance/policy.py
-------------------
Rebalancing policies evaluated once per simulated day.

Both the threshold trigger and the reallocation value the book from unit
holdings only. Cash still waiting for an asset's first price is invisible to
them and stays parked until that asset trades.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from backtesting.allocation import SimulationState
from backtesting.models import RebalanceConfig
from backtesting.timeline import is_valid_price

logger = logging.getLogger(__name__)

Prices = Mapping[str, List[Optional[float]]]


class RebalancePolicy:
    """Base policy: never rebalances."""

    mode = "none"

    def should_rebalance(
        self,
        index: int,
        state: SimulationState,
        prices: Prices,
        target_weights: Mapping[str, float],
    ) -> bool:
        return False


@dataclass(frozen=True)
class NoRebalance(RebalancePolicy):
    mode = "none"


@dataclass(frozen=True)
class PeriodicRebalance(RebalancePolicy):
    period_days: int
    mode = "periodic"

    def __post_init__(self):
        if self.period_days < 1:
            raise ValueError("Rebalance period must be at least one day.")

    def should_rebalance(self, index, state, prices, target_weights) -> bool:
        return index > 0 and index % self.period_days == 0


@dataclass(frozen=True)
class ThresholdRebalance(RebalancePolicy):
    threshold_pct: float
    mode = "threshold"

    def __post_init__(self):
        if self.threshold_pct <= 0:
            raise ValueError("Rebalance threshold must be positive.")

    def should_rebalance(self, index, state, prices, target_weights) -> bool:
        current_value = state.holdings_value(index, prices)
        threshold = self.threshold_pct / 100.0
        for asset_id in state.units:
            value = state.invested_value(asset_id, prices[asset_id][index])
            weight = value / current_value if current_value > 0 else 0.0
            if abs(weight - target_weights.get(asset_id, 0.0)) > threshold:
                return True
        return False


def rebalance_holdings(
    index: int,
    state: SimulationState,
    prices: Prices,
    target_weights: Mapping[str, float],
) -> None:
    """
    Reset unit holdings to target weights at day `index` prices.

    Assets without a valid price that day end at zero units.
    """
    total = state.holdings_value(index, prices)
    for asset_id in state.units:
        price = prices[asset_id][index]
        if is_valid_price(price):
            state.units[asset_id] = total * target_weights.get(asset_id, 0.0) / price
        else:
            if state.units[asset_id] > 0:
                logger.debug("Dropping %s from rebalance: no valid price at index %d", asset_id, index)
            state.units[asset_id] = 0.0


PolicyFactory = Callable[[RebalanceConfig], RebalancePolicy]

POLICY_REGISTRY: Dict[str, PolicyFactory] = {
    "none": lambda config: NoRebalance(),
    "periodic": lambda config: PeriodicRebalance(period_days=config.period_days),
    "threshold": lambda config: ThresholdRebalance(threshold_pct=config.threshold_pct),
}


def resolve_policy(config: RebalanceConfig) -> RebalancePolicy:
    try:
        factory = POLICY_REGISTRY[config.mode]
    except KeyError as exc:
        raise ValueError(
            f"Rebalance mode '{config.mode}' is not supported. "
            f"Available modes: {', '.join(POLICY_REGISTRY)}"
        ) from exc
    return factory(config)
