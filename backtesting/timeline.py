# backtesting/timeline.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .models import PricePoint


@dataclass(frozen=True)
class InterpolatedSeries:
    """
    One asset's prices projected onto the master timeline.

    `prices[i]` is None until the asset's first observation.
    """

    prices: List[Optional[float]]
    has_data: bool
    forward_filled: int
    unknown: int


def is_valid_price(price: Optional[float]) -> bool:
    return price is not None and price > 0


def _to_frame(points: Iterable) -> pd.DataFrame:
    coerced = [PricePoint.coerce(p) for p in points]
    return pd.DataFrame(
        {"Date": [p.date for p in coerced], "Price": [p.price for p in coerced]},
        columns=["Date", "Price"],
    )


def align_timeline(
    price_series: Mapping[str, Sequence],
    start_date: str | None = None,
    end_date: str | None = None,
) -> List[str]:
    """
    Merge the dates of every series into one sorted, de-duplicated timeline.

    ISO date strings sort chronologically, so no datetime parsing is needed.
    The optional window is inclusive on both ends.
    """
    frames = [_to_frame(points or []) for points in price_series.values()]
    frames = [f for f in frames if not f.empty]
    if not frames:
        return []

    dates = pd.Index(pd.concat(frames, ignore_index=True)["Date"]).unique().sort_values()
    if start_date is not None:
        dates = dates[dates >= start_date]
    if end_date is not None:
        dates = dates[dates <= end_date]
    return dates.tolist()


def interpolate_series(points: Sequence, timeline: Sequence[str]) -> InterpolatedSeries:
    """
    Forward-fill an asset's sparse series onto `timeline`.

    Later duplicates of the same date override earlier ones. Null or NaN
    prices are gaps and get forward-filled like missing dates. Slots before the
    first observation stay unknown (None) rather than being back-filled.
    """
    frame = _to_frame(points)
    observed = frame.drop_duplicates(subset="Date", keep="last").set_index("Date")["Price"]
    observed = observed.dropna()
    if observed.empty:
        return InterpolatedSeries(
            prices=[None] * len(timeline),
            has_data=False,
            forward_filled=0,
            unknown=len(timeline),
        )

    index = pd.Index(list(timeline), dtype=object)
    # Observations that fall between (or before) timeline dates still seed the fill.
    aligned = observed.reindex(observed.index.union(index)).sort_index().ffill().reindex(index)

    hit = index.isin(observed.index)
    missing = aligned.isna().to_numpy()
    forward_filled = int((~hit & ~missing).sum())
    prices = [None if pd.isna(p) else float(p) for p in aligned.to_numpy()]
    return InterpolatedSeries(
        prices=prices,
        has_data=True,
        forward_filled=forward_filled,
        unknown=int(missing.sum()),
    )
