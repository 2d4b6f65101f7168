"""Tests for splitting sessions at rate period boundaries."""

from datetime import date, datetime

from wattshare.analysis.splitting import split_session, split_span
from wattshare.models import RateBand, RateSchedule

from conftest import SUMMER_WEEKDAY, WINTER_WEEKDAY


def assert_contiguous(intervals, start, end):
    assert intervals[0].start == start
    assert intervals[-1].end == end
    for previous, current in zip(intervals, intervals[1:]):
        assert previous.end == current.start


def test_session_within_one_period(schedule):
    [interval] = split_session(SUMMER_WEEKDAY, "16:00", "21:00", schedule)
    assert interval.period_id == "onPeak"
    assert interval.duration_hours == 5


def test_session_across_peak_boundary(schedule):
    intervals = split_session(SUMMER_WEEKDAY, "20:00", "22:00", schedule)
    assert [i.period_id for i in intervals] == ["onPeak", "offPeak"]
    assert intervals[0].end == datetime(2024, 7, 10, 21, 0)
    assert_contiguous(intervals, datetime(2024, 7, 10, 20, 0), datetime(2024, 7, 10, 22, 0))


def test_midnight_crossing_splits_per_day(schedule):
    """23:00-01:00 gives one interval on each calendar day."""
    intervals = split_session(SUMMER_WEEKDAY, "23:00", "01:00", schedule)
    assert len(intervals) == 2
    assert intervals[0].end == datetime(2024, 7, 11, 0, 0)
    assert intervals[1].start.date() == date(2024, 7, 11)
    assert all(i.duration_hours == 1 for i in intervals)


def test_each_day_uses_its_own_day_type(schedule):
    """Friday evening into Saturday switches from weekday to weekend rates."""
    # 2024-07-12 is a Friday
    intervals = split_session(date(2024, 7, 12), "16:00", "18:00", schedule, end_date=date(2024, 7, 13))
    periods = [(i.start.date(), i.period_id) for i in intervals]
    assert periods == [
        (date(2024, 7, 12), "onPeak"),
        (date(2024, 7, 12), "offPeak"),
        (date(2024, 7, 13), "offPeak"),
        (date(2024, 7, 13), "midPeak"),
    ]


def test_season_changes_at_month_boundary(schedule):
    """May 31 is winter and June 1 is summer."""
    intervals = split_session(date(2024, 5, 31), "23:00", "01:00", schedule)
    assert [i.price_per_kwh for i in intervals] == [0.24, 0.25]


def test_multi_day_span(schedule):
    """Spans longer than 24 hours iterate across days."""
    start = datetime(2024, 1, 15, 12, 0)
    end = datetime(2024, 1, 17, 12, 0)
    intervals = split_span(start, end, schedule)
    assert_contiguous(intervals, start, end)
    assert sum(i.duration_hours for i in intervals) == 48
    assert len({i.start.date() for i in intervals}) == 3


def test_equal_prices_stay_separate_periods(schedule):
    """Winter offPeak and superOffPeak share a price but are reported apart."""
    intervals = split_session(WINTER_WEEKDAY, "06:00", "10:00", schedule)
    assert [i.period_id for i in intervals] == ["offPeak", "superOffPeak"]


def test_empty_session_yields_no_intervals(schedule):
    assert split_session(SUMMER_WEEKDAY, "10:00", "10:00", schedule) == []
    assert split_span(datetime(2024, 7, 10, 12), datetime(2024, 7, 10, 11), schedule) == []


def test_seconds_precision(schedule):
    intervals = split_session(SUMMER_WEEKDAY, "15:59:30", "16:00:30", schedule)
    assert [i.period_id for i in intervals] == ["offPeak", "onPeak"]
    assert all(abs(i.duration_hours - 30 / 3600) < 1e-12 for i in intervals)


def test_adjacent_bands_of_one_period_merge():
    schedule = RateSchedule(
        name="SPLIT",
        valid_from=datetime(2024, 1, 1),
        valid_to=None,
        seasons={"all": list(range(1, 13))},
        bands=[
            RateBand("offPeak", "all", "00:00", "08:00", 0.2),
            RateBand("offPeak", "all", "08:00", "16:00", 0.2),
            RateBand("onPeak", "all", "16:00", "00:00", 0.5),
        ],
    )
    intervals = split_session(WINTER_WEEKDAY, "06:00", "17:00", schedule)
    assert [(i.period_id, i.duration_hours) for i in intervals] == [("offPeak", 10), ("onPeak", 1)]
