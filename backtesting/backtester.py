# backtesting/backtester.py
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from rebalance.policy import rebalance_holdings, resolve_policy

from .allocation import SimulationState, initialize_allocation
from .integrity import IntegrityAuditor
from .metrics import asset_volatility, compute_metrics, risk_reward
from .models import BacktestMetrics, BacktestRequest, BacktestResult
from .timeline import align_timeline, interpolate_series, is_valid_price

logger = logging.getLogger(__name__)


def _empty_result(request: BacktestRequest, auditor: IntegrityAuditor) -> BacktestResult:
    capital = request.initial_capital
    metrics = BacktestMetrics(
        start_date=request.start_date,
        end_date=request.end_date,
        trading_days=0,
        initial_capital=capital,
        final_value=capital,
        cumulative_return_pct=0.0,
        cagr_pct=0.0,
        volatility_pct=0.0,
        sharpe=None,
        max_drawdown_pct=0.0,
        best_day_pct=0.0,
        worst_day_pct=0.0,
    )
    ids = request.asset_ids
    return BacktestResult(
        timeline=[],
        portfolio_values=[],
        per_asset_values={a: [] for a in ids},
        per_asset_prices={a: [] for a in ids},
        per_asset_weights={a: [] for a in ids},
        rebalance_dates=[],
        metrics=metrics,
        per_asset_volatility_pct={a: 0.0 for a in ids},
        risk_reward=None,
        integrity=auditor.report(),
    )


def _record_day(
    index: int,
    state: SimulationState,
    prices: Mapping[str, List[Optional[float]]],
    values_out: Dict[str, List[float]],
    prices_out: Dict[str, List[float]],
    weights_out: Dict[str, List[float]],
) -> float:
    """
    Append day `index` to the per-asset output arrays and return the day value.

    Pending cash is carried at face value inside its asset's value so the
    per-asset breakdown reconciles with the portfolio total.
    """
    asset_values = {}
    for asset_id in state.units:
        price = prices[asset_id][index]
        asset_values[asset_id] = state.invested_value(asset_id, price) + state.pending_cash[asset_id]
        prices_out[asset_id].append(price if is_valid_price(price) else 0.0)

    day_value = state.holdings_value(index, prices) + state.total_pending()
    for asset_id, value in asset_values.items():
        values_out[asset_id].append(value)
        weights_out[asset_id].append(value / day_value if day_value > 0 else 0.0)
    return day_value


def run_backtest(
    request: BacktestRequest | Mapping[str, Any],
    price_series: Mapping[str, Sequence],
) -> BacktestResult:
    """
    Simulate a fixed-weight portfolio over the request window.

    Parameters
    ----------
    request : BacktestRequest or dict
        Parsed request, or the camelCase wire payload.
    price_series : dict[str, list]
        Mapping of asset id to its (date, price) observations. Series need not
        be sorted, contiguous or free of duplicate dates. Every series adds
        its dates to the timeline, even for assets the request does not hold.

    Returns
    -------
    BacktestResult
        Daily portfolio curve, per-asset breakdown, summary metrics and the
        integrity report.
    """
    if not isinstance(request, BacktestRequest):
        request = BacktestRequest.from_dict(request)

    policy = resolve_policy(request.rebalance)
    asset_ids = request.asset_ids
    requested_series = {a: price_series.get(a) or [] for a in asset_ids}

    timeline = align_timeline(price_series, request.start_date, request.end_date)
    interpolated = {a: interpolate_series(requested_series[a], timeline) for a in asset_ids}

    if not timeline:
        logger.warning(
            "No price data between %s and %s for %s",
            request.start_date,
            request.end_date,
            ", ".join(asset_ids),
        )
        auditor = IntegrityAuditor.for_empty_timeline()
        auditor.record_allocations(request.target_weights)
        for asset_id, series in interpolated.items():
            auditor.record_series(asset_id, series)
        return _empty_result(request, auditor)

    auditor = IntegrityAuditor()
    auditor.record_allocations(request.target_weights)
    for asset_id, series in interpolated.items():
        auditor.record_series(asset_id, series)

    prices = {a: interpolated[a].prices for a in asset_ids}
    targets = request.target_weights
    state = initialize_allocation(request.assets, prices, request.initial_capital)

    portfolio_values: List[float] = []
    values_out: Dict[str, List[float]] = {a: [] for a in asset_ids}
    prices_out: Dict[str, List[float]] = {a: [] for a in asset_ids}
    weights_out: Dict[str, List[float]] = {a: [] for a in asset_ids}
    rebalance_dates: List[str] = []

    for idx, day in enumerate(timeline):
        for asset_id in state.convert_pending(idx, prices):
            logger.debug("Deployed pending cash into %s on %s", asset_id, day)

        if policy.should_rebalance(idx, state, prices, targets):
            rebalance_holdings(idx, state, prices, targets)
            rebalance_dates.append(day)
            logger.debug("Rebalanced (%s) on %s", policy.mode, day)

        portfolio_values.append(
            _record_day(idx, state, prices, values_out, prices_out, weights_out)
        )

    metrics = compute_metrics(
        portfolio_values, timeline, request.initial_capital, request.risk_free_rate_pct
    )
    per_asset_vol = {a: asset_volatility(prices[a]) for a in asset_ids}

    auditor.check_weight_sums(timeline, weights_out)
    auditor.check_positive_prices(prices_out)
    auditor.check_reconciliation(timeline, portfolio_values, values_out)
    integrity = auditor.report()

    logger.info(
        "Backtest %s..%s: %d days, %d rebalances, final value %.4f, integrity %d",
        timeline[0],
        timeline[-1],
        len(timeline),
        len(rebalance_dates),
        metrics.final_value,
        integrity.score,
    )

    return BacktestResult(
        timeline=timeline,
        portfolio_values=portfolio_values,
        per_asset_values=values_out,
        per_asset_prices=prices_out,
        per_asset_weights=weights_out,
        rebalance_dates=rebalance_dates,
        metrics=metrics,
        per_asset_volatility_pct=per_asset_vol,
        risk_reward=risk_reward(metrics.cagr_pct, metrics.volatility_pct),
        integrity=integrity,
    )
