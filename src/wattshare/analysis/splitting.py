"""Split usage sessions at rate period boundaries."""

from datetime import date, datetime, time

from ..models import RateSchedule, SubInterval
from ..tariffs import next_boundary, rate_at
from ..validation import session_bounds


def split_span(start: datetime, end: datetime, schedule: RateSchedule) -> list[SubInterval]:
    """Partition [start, end) into intervals that each sit in one rate period.

    Intervals never cross midnight, so every calendar day is classified with
    its own season and day type. Adjacent slices of the same period on the
    same day are merged. An empty or negative span yields no intervals.
    """
    intervals: list[SubInterval] = []
    cursor = start

    while cursor < end:
        rate = rate_at(cursor, schedule)
        sub_end = min(next_boundary(cursor, schedule), end)

        previous = intervals[-1] if intervals else None
        if (
            previous is not None
            and previous.period_id == rate.period_id
            and previous.price_per_kwh == rate.price_per_kwh
            and previous.start.date() == cursor.date()
        ):
            intervals[-1] = SubInterval(
                start=previous.start,
                end=sub_end,
                period_id=previous.period_id,
                price_per_kwh=previous.price_per_kwh,
            )
        else:
            intervals.append(
                SubInterval(
                    start=cursor,
                    end=sub_end,
                    period_id=rate.period_id,
                    price_per_kwh=rate.price_per_kwh,
                )
            )
        cursor = sub_end

    return intervals


def split_session(
    usage_date: date,
    start_time: str | time,
    end_time: str | time,
    schedule: RateSchedule,
    end_date: date | None = None,
) -> list[SubInterval]:
    """Split a session given as a date and clock times.

    An end time before the start time means the session crossed midnight.
    Identical start and end times give an empty list.
    """
    start, end = session_bounds(usage_date, start_time, end_time, end_date)
    return split_span(start, end, schedule)
