"""Post-hoc projection of stored series onto a calendar-day window."""
from datetime import date, datetime, time
from typing import Iterable, Union

from devstats.application.aggregation import count_languages
from devstats.domain.models import CommitSeries, LanguageHistogram, Repository

DateLike = Union[date, datetime]


def _local_day(value: DateLike) -> date:
    if isinstance(value, datetime):
        # aware bounds are moved to local time before taking the day
        return value.astimezone().date() if value.tzinfo is not None else value.date()
    return value


def _day_bounds(start: DateLike, end: DateLike):
    """Local-time window from start 00:00:00.000 to end 23:59:59.999."""
    start_day = _local_day(start)
    end_day = _local_day(end)
    lower = datetime.combine(start_day, time.min).astimezone()
    upper = datetime.combine(end_day, time(23, 59, 59, 999000)).astimezone()
    return lower, upper


def filter_series_by_date(series: CommitSeries, start: DateLike, end: DateLike) -> CommitSeries:
    """
    Keeps the points of a commit series whose date falls inside [start, end].

    Both ends are inclusive whole days. A window with start after end is
    treated as empty, never reversed.
    """
    lower, upper = _day_bounds(start, end)
    if lower > upper:
        return CommitSeries()

    dates = []
    values = []
    for day, value in zip(series.dates, series.values):
        if lower.date() <= day <= upper.date():
            dates.append(day)
            values.append(value)
    return CommitSeries(dates=dates, values=values)


def filter_languages_by_date(
    repositories: Iterable[Repository], start: DateLike, end: DateLike
) -> LanguageHistogram:
    """
    Recounts the language histogram over repositories last updated inside
    [start, end]. This filters on a repository attribute, not on event dates.
    """
    lower, upper = _day_bounds(start, end)
    if lower > upper:
        return LanguageHistogram()

    in_window = [repo for repo in repositories if lower <= repo.updated_at.astimezone() <= upper]
    counts = count_languages(in_window)
    return LanguageHistogram(labels=list(counts), data=list(counts.values()))
