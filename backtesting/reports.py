# backtesting/reports.py
from utils.formatting import format_currency, format_pct_points, format_ratio

from .models import BacktestResult


def generate_backtest_report(result: BacktestResult) -> str:
    """
    Render a plain-text summary of metrics, per-asset risk and integrity.
    """
    m = result.metrics
    rows = [
        ("Period", f"{m.start_date} -> {m.end_date}"),
        ("Trading Days", str(m.trading_days)),
        ("Initial Capital", format_currency(m.initial_capital)),
        ("Final Value", format_currency(m.final_value)),
        ("Cumulative Return", format_pct_points(m.cumulative_return_pct)),
        ("CAGR", format_pct_points(m.cagr_pct)),
        ("Volatility (Ann.)", format_pct_points(m.volatility_pct)),
        ("Sharpe Ratio", format_ratio(m.sharpe)),
        ("Max Drawdown", format_pct_points(m.max_drawdown_pct)),
        ("Best Day", format_pct_points(m.best_day_pct)),
        ("Worst Day", format_pct_points(m.worst_day_pct)),
        ("Risk / Reward", format_ratio(result.risk_reward)),
    ]
    lines = ["=== Backtest Performance Summary ===", ""]
    lines.extend(f"{label:25s}: {value}" for label, value in rows)

    if result.per_asset_volatility_pct:
        lines.extend(["", "--- Asset Volatility (Ann.) ---"])
        for asset_id, vol in result.per_asset_volatility_pct.items():
            lines.append(f"{asset_id:25s}: {format_pct_points(vol)}")

    if result.rebalance_dates:
        lines.extend(["", f"Rebalances: {len(result.rebalance_dates)}"])

    lines.extend(["", f"Integrity Score: {result.integrity.score}/100"])
    lines.extend(f"  - {issue}" for issue in result.integrity.issues)
    return "\n".join(lines)
