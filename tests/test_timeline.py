"""
Tests for timeline alignment and forward-fill interpolation.
"""

from backtesting.timeline import align_timeline, interpolate_series, is_valid_price
from conftest import day, make_series


class TestAlignTimeline:
    def test_disjoint_series_union_is_sorted(self):
        series_a = make_series([1.0, 1.0, 1.0])  # days 0-2
        series_b = make_series([2.0, 2.0], offset=5)  # days 5-6
        timeline = align_timeline({"b": series_b, "a": series_a})

        assert len(timeline) == len(series_a) + len(series_b)
        assert timeline == sorted(timeline)

    def test_overlapping_dates_are_deduplicated(self):
        timeline = align_timeline(
            {"a": make_series([1.0, 1.0, 1.0]), "b": make_series([2.0, 2.0], offset=1)}
        )
        assert timeline == [day(0), day(1), day(2)]

    def test_unsorted_input_is_sorted(self):
        points = [{"date": day(3), "price": 1.0}, {"date": day(1), "price": 1.0}]
        assert align_timeline({"a": points}) == [day(1), day(3)]

    def test_window_is_inclusive(self):
        timeline = align_timeline({"a": make_series([1.0] * 6)}, day(1), day(4))
        assert timeline == [day(1), day(2), day(3), day(4)]

    def test_all_empty_gives_empty_timeline(self):
        assert align_timeline({"a": [], "b": []}) == []
        assert align_timeline({}) == []

    def test_accepts_date_price_pairs(self):
        assert align_timeline({"a": [(day(2), 1.0), (day(0), 2.0)]}) == [day(0), day(2)]


class TestInterpolateSeries:
    def test_forward_fill_and_leading_unknown(self):
        timeline = [day(i) for i in range(6)]
        points = make_series([None, 10.0, None, None, 12.0, None])

        result = interpolate_series(points, timeline)

        assert result.prices == [None, 10.0, 10.0, 10.0, 12.0, 12.0]
        assert result.has_data
        assert result.forward_filled == 3
        assert result.unknown == 1

    def test_duplicate_dates_last_value_wins(self):
        timeline = [day(0), day(1)]
        points = [
            {"date": day(0), "price": 1.0},
            {"date": day(1), "price": 2.0},
            {"date": day(0), "price": 3.0},
        ]
        result = interpolate_series(points, timeline)
        assert result.prices == [3.0, 2.0]
        assert result.forward_filled == 0

    def test_empty_series_is_all_unknown(self):
        timeline = [day(0), day(1), day(2)]
        result = interpolate_series([], timeline)

        assert result.prices == [None, None, None]
        assert not result.has_data
        assert result.unknown == 3

    def test_null_and_nan_prices_are_gaps(self):
        timeline = [day(0), day(1), day(2), day(3)]
        points = [
            {"date": day(0), "price": 5.0},
            {"date": day(1), "price": None},
            {"date": day(2), "price": float("nan")},
            {"date": day(3), "price": 6.0},
        ]

        result = interpolate_series(points, timeline)

        assert result.prices == [5.0, 5.0, 5.0, 6.0]
        assert result.forward_filled == 2
        assert align_timeline({"a": points}) == timeline

    def test_only_null_prices_has_no_data(self):
        result = interpolate_series([{"date": day(0), "price": None}], [day(0)])
        assert result.prices == [None]
        assert not result.has_data

    def test_observation_before_window_seeds_fill(self):
        points = make_series([7.0])  # day 0 only
        result = interpolate_series(points, [day(2), day(3)])
        assert result.prices == [7.0, 7.0]
        assert result.forward_filled == 2

    def test_forward_fill_is_idempotent(self, messy_prices):
        timeline = align_timeline(messy_prices)
        first = interpolate_series(messy_prices["beta"], timeline)

        resampled = [
            {"date": d, "price": p} for d, p in zip(timeline, first.prices) if p is not None
        ]
        second = interpolate_series(resampled, timeline)

        assert second.prices == first.prices

    def test_unknown_is_not_zero(self):
        result = interpolate_series(make_series([None, 5.0]), [day(0), day(1)])
        assert result.prices[0] is None
        assert not is_valid_price(result.prices[0])
        assert is_valid_price(result.prices[1])
