# backtesting/allocation.py
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .models import AssetAllocation
from .timeline import is_valid_price

logger = logging.getLogger(__name__)


class SimulationState:
    """
    Unit holdings and un-invested cash for one simulation run.

    Capital earmarked for an asset without a usable price sits in
    `pending_cash` at face value until the first day that asset trades.
    """

    def __init__(self, asset_ids: Sequence[str]):
        self.units: Dict[str, float] = {asset_id: 0.0 for asset_id in asset_ids}
        self.pending_cash: Dict[str, float] = {asset_id: 0.0 for asset_id in asset_ids}

    # --------------------------------------------------------
    # Pending cash
    # --------------------------------------------------------
    def convert_pending(self, index: int, prices: Mapping[str, List[Optional[float]]]) -> List[str]:
        """
        Turn pending cash into units for every asset priced on day `index`.
        Returns the ids that were converted.
        """
        converted = []
        for asset_id, cash in self.pending_cash.items():
            if cash <= 0:
                continue
            price = prices[asset_id][index]
            if not is_valid_price(price):
                continue
            self.units[asset_id] = cash / price
            self.pending_cash[asset_id] = 0.0
            converted.append(asset_id)
        return converted

    # --------------------------------------------------------
    # Valuation
    # --------------------------------------------------------
    def invested_value(self, asset_id: str, price: Optional[float]) -> float:
        if not is_valid_price(price):
            return 0.0
        return self.units[asset_id] * price

    def holdings_value(self, index: int, prices: Mapping[str, List[Optional[float]]]) -> float:
        """Value of unit holdings only; pending cash is excluded."""
        return sum(
            self.invested_value(asset_id, prices[asset_id][index]) for asset_id in self.units
        )

    def total_pending(self) -> float:
        return sum(self.pending_cash.values())


def first_valid_index(prices: Sequence[Optional[float]]) -> Optional[int]:
    for idx, price in enumerate(prices):
        if is_valid_price(price):
            return idx
    return None


def initialize_allocation(
    allocations: Sequence[AssetAllocation],
    prices: Mapping[str, List[Optional[float]]],
    initial_capital: float,
) -> SimulationState:
    """
    Convert each asset's share of capital into units at the day-zero price,
    or park it as pending cash when the asset has no valid price yet.
    """
    state = SimulationState([a.id for a in allocations])
    for allocation in allocations:
        target_cash = initial_capital * allocation.target_weight
        series = prices[allocation.id]
        start_idx = first_valid_index(series)
        if start_idx == 0:
            state.units[allocation.id] = target_cash / series[0]
        else:
            state.pending_cash[allocation.id] += target_cash
            logger.debug(
                "Deferring %.4f for %s: first valid price at index %s",
                target_cash,
                allocation.id,
                start_idx,
            )
    return state
