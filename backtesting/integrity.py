# backtesting/integrity.py
from __future__ import annotations

from typing import List, Mapping, Sequence

from .models import IntegrityReport
from .timeline import InterpolatedSeries

ISSUE_PENALTY = 10
EMPTY_TIMELINE_PENALTY = 15
WEIGHT_SUM_TOLERANCE = 1e-3
RECONCILIATION_TOLERANCE = 1e-6
NO_DATA_ISSUE = "No price data available for any asset"


class IntegrityAuditor:
    """
    Collects data-quality and invariant issues while a simulation runs.

    Issues are plain strings; each one costs a fixed number of score points.
    """

    def __init__(self, penalty: int = ISSUE_PENALTY):
        self.penalty = penalty
        self.issues: List[str] = []

    @classmethod
    def for_empty_timeline(cls) -> "IntegrityAuditor":
        """
        Auditor for a run with no timeline, seeded with the synthetic no-data issue.

        Every issue recorded afterwards also costs EMPTY_TIMELINE_PENALTY points,
        including the per-asset "No price data for <id>" issues. A two-asset
        request with no data therefore scores 100 - 3 * 15 = 55.
        """
        auditor = cls(penalty=EMPTY_TIMELINE_PENALTY)
        auditor.issues.append(NO_DATA_ISSUE)
        return auditor

    def record_allocations(self, target_weights: Mapping[str, float]) -> None:
        total = sum(target_weights.values())
        if abs(total - 1) > WEIGHT_SUM_TOLERANCE:
            self.issues.append(f"Target allocations sum to {total:.4f}, not 1")

    def record_series(self, asset_id: str, series: InterpolatedSeries) -> None:
        if not series.has_data:
            self.issues.append(f"No price data for {asset_id}")
        elif series.forward_filled:
            self.issues.append(f"{series.forward_filled} price points forward-filled for {asset_id}")

    def check_weight_sums(
        self, timeline: Sequence[str], weights: Mapping[str, Sequence[float]]
    ) -> None:
        for i, day in enumerate(timeline):
            total = sum(series[i] for series in weights.values())
            if abs(total - 1) > WEIGHT_SUM_TOLERANCE:
                self.issues.append(f"Weights not summing to 1 at {day}: {total:.4f}")
                return

    def check_positive_prices(self, prices: Mapping[str, Sequence[float]]) -> None:
        for asset_id, series in prices.items():
            if any(not p > 0 for p in series):
                self.issues.append(f"Non-positive prices detected for {asset_id}")

    def check_reconciliation(
        self,
        timeline: Sequence[str],
        portfolio_values: Sequence[float],
        per_asset_values: Mapping[str, Sequence[float]],
    ) -> None:
        for i, day in enumerate(timeline):
            total = sum(series[i] for series in per_asset_values.values())
            expected = portfolio_values[i]
            tolerance = max(RECONCILIATION_TOLERANCE * abs(expected), RECONCILIATION_TOLERANCE)
            if abs(total - expected) > tolerance:
                self.issues.append(f"Portfolio value mismatch at {day}")
                return

    @property
    def score(self) -> int:
        return max(0, 100 - self.penalty * len(self.issues))

    def report(self) -> IntegrityReport:
        return IntegrityReport(score=self.score, issues=tuple(self.issues))
