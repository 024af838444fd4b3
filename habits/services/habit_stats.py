import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from django.utils import timezone

from habits.domain import CompletionRecord, Stats

COMPLETION_RATE_WINDOW_DAYS = 30


@dataclass(frozen=True)
class DayProgress:
    date: date
    completed: bool


def completed_dates(habit_id: Any, completions: Iterable[CompletionRecord]) -> Set[date]:
    return {c.date for c in completions if c.habit_id == habit_id and c.completed}


def completed_dates_by_habit(completions: Iterable[CompletionRecord]) -> Dict[Any, Set[date]]:
    """
    One pass over the log, grouping completed dates per habit.
    Callers scoring many habits use this instead of filtering per habit.
    """
    by_habit: Dict[Any, Set[date]] = defaultdict(set)
    for c in completions:
        if c.completed:
            by_habit[c.habit_id].add(c.date)
    return by_habit


def current_streak(dates: Set[date], today: date) -> int:
    # Today must be done; a habit last completed yesterday has no running streak.
    streak = 0
    day = today
    while day in dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def longest_streak(dates: Iterable[date]) -> int:
    """
    Max consecutive-day run across all completed dates.
    """
    ordered = sorted(set(dates))
    if not ordered:
        return 0

    best = 1
    cur = 1
    for prev, nxt in zip(ordered, ordered[1:]):
        if nxt == prev + timedelta(days=1):
            cur += 1
            if cur > best:
                best = cur
        else:
            cur = 1
    return best


def completion_rate(dates: Iterable[date], today: date) -> int:
    """
    Percentage of the trailing 30 days (today included) with a completion.

    The denominator is always 30, even for habits younger than that, so a
    5-day-old habit done every day reports 17.
    """
    start = today - timedelta(days=COMPLETION_RATE_WINDOW_DAYS - 1)
    recent = sum(1 for d in dates if start <= d <= today)
    return math.floor(recent * 100 / COMPLETION_RATE_WINDOW_DAYS + 0.5)


def compute_stats(
        habit_id: Any,
        completions: Iterable[CompletionRecord],
        *,
        today: Optional[date] = None,
) -> Stats:
    today = today or timezone.localdate()
    dates = completed_dates(habit_id, completions)
    if not dates:
        return Stats()

    return Stats(
        total_completions=len(dates),
        current_streak=current_streak(dates, today),
        longest_streak=longest_streak(dates),
        completion_rate=completion_rate(dates, today),
    )


def weekly_progress(
        habit_id: Any,
        completions: Iterable[CompletionRecord],
        *,
        today: Optional[date] = None,
) -> List[DayProgress]:
    """Monday..Sunday of the week containing today."""
    today = today or timezone.localdate()
    dates = completed_dates(habit_id, completions)
    week_start = today - timedelta(days=today.weekday())
    days = [week_start + timedelta(days=i) for i in range(7)]
    return [DayProgress(date=d, completed=d in dates) for d in days]


def monthly_progress(
        habit_id: Any,
        completions: Iterable[CompletionRecord],
        *,
        today: Optional[date] = None,
) -> List[DayProgress]:
    today = today or timezone.localdate()
    dates = completed_dates(habit_id, completions)
    days = [today - timedelta(days=i) for i in range(COMPLETION_RATE_WINDOW_DAYS - 1, -1, -1)]
    return [DayProgress(date=d, completed=d in dates) for d in days]
