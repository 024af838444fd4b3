"""
Day-by-day aggregates behind the activity heatmap and the trend chart.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from django.utils import timezone

from habits.domain import CategoryRecord, CompletionRecord, HabitRecord

HEATMAP_DAYS = 364  # 52 weeks
TREND_WINDOWS = (7, 14, 30, 90)

GROUP_BY_HABITS = "habits"
GROUP_BY_CATEGORIES = "categories"

UNCATEGORIZED_KEY = "uncategorized"
UNCATEGORIZED_LABEL = "Uncategorized"

HABIT_COLORS = [
    "#3b82f6",  # blue
    "#8b5cf6",  # purple
    "#ec4899",  # pink
    "#f59e0b",  # amber
    "#10b981",  # emerald
    "#ef4444",  # red
    "#06b6d4",  # cyan
    "#6366f1",  # indigo
]

# hex alpha appended to a line colour for the area fill (80 = 50%)
AREA_FILL_OPACITY = "80"


@dataclass(frozen=True)
class HeatmapDay:
    date: date
    completed_count: int
    eligible_count: int


@dataclass(frozen=True)
class TrendSeries:
    key: str
    label: str
    values: Tuple[int, ...]
    color: str
    fill_color: str


@dataclass(frozen=True)
class TrendChart:
    dates: Tuple[date, ...] = ()
    series: Tuple[TrendSeries, ...] = ()


def habit_color(index: int) -> str:
    return HABIT_COLORS[index % len(HABIT_COLORS)]


def habit_color_pair(index: int) -> Tuple[str, str]:
    color = habit_color(index)
    return color, f"{color}{AREA_FILL_OPACITY}"


def date_window(today: date, days: int) -> List[date]:
    """The ``days`` calendar days ending today, oldest first."""
    return [today - timedelta(days=i) for i in range(days - 1, -1, -1)]


def _done_pairs(completions: Iterable[CompletionRecord]) -> Set[Tuple[Any, date]]:
    return {(c.habit_id, c.date) for c in completions if c.completed}


def build_heatmap(
        habits: Sequence[HabitRecord],
        completions: Iterable[CompletionRecord],
        *,
        today: Optional[date] = None,
        days: int = HEATMAP_DAYS,
) -> List[HeatmapDay]:
    """
    Per-day completed/eligible counts for the last ``days`` days.
    A habit is eligible from its creation day onwards; archived habits never are.
    """
    if not 1 <= days <= HEATMAP_DAYS:
        raise ValueError(f"days must be between 1 and {HEATMAP_DAYS}, got {days}")

    active = [h for h in habits if not h.archived]
    if not active:
        return []

    today = today or timezone.localdate()
    done = _done_pairs(completions)
    created = [(h.id, h.created_on) for h in active]

    out = []
    for day in date_window(today, days):
        eligible = [habit_id for habit_id, created_on in created if created_on <= day]
        completed = sum(1 for habit_id in eligible if (habit_id, day) in done)
        out.append(HeatmapDay(date=day, completed_count=completed, eligible_count=len(eligible)))
    return out


def heatmap_weeks(days: Sequence[HeatmapDay]) -> List[List[HeatmapDay]]:
    """
    Split a heatmap into Sunday-to-Saturday weeks. The first week is short
    unless the sequence happens to start on a Sunday.
    """
    weeks: List[List[HeatmapDay]] = []
    current: List[HeatmapDay] = []
    for day in days:
        # date.weekday(): Monday is 0, Sunday is 6
        if day.date.weekday() == 6 and current:
            weeks.append(current)
            current = []
        current.append(day)
    if current:
        weeks.append(current)
    return weeks


def heatmap_intensity(day: HeatmapDay) -> int:
    """0 (nothing) to 4 (over three quarters of eligible habits done)."""
    if day.eligible_count == 0 or day.completed_count == 0:
        return 0
    percentage = day.completed_count / day.eligible_count * 100
    if percentage <= 25:
        return 1
    if percentage <= 50:
        return 2
    if percentage <= 75:
        return 3
    return 4


def _habit_series(active, dates, done) -> List[TrendSeries]:
    series = []
    for index, habit in enumerate(active):
        created_on = habit.created_on
        values = tuple(
            1 if day >= created_on and (habit.id, day) in done else 0
            for day in dates
        )
        color, fill = habit_color_pair(index)
        series.append(TrendSeries(key=str(habit.id), label=habit.name, values=values, color=color, fill_color=fill))
    return series


def _category_series(active, dates, done, categories) -> List[TrendSeries]:
    names = {c.id: c.name for c in categories}

    groups: Dict[str, List[HabitRecord]] = {}
    labels: Dict[str, str] = {}
    for habit in active:
        # dangling ids (category deleted, habit kept the reference) land with the uncategorized ones
        if habit.category_id is not None and habit.category_id in names:
            key = str(habit.category_id)
            labels[key] = names[habit.category_id]
        else:
            key = UNCATEGORIZED_KEY
            labels[key] = UNCATEGORIZED_LABEL
        groups.setdefault(key, []).append(habit)

    ordered_keys = sorted(groups, key=lambda k: (labels[k], k))

    series = []
    for index, key in enumerate(ordered_keys):
        members = [(h.id, h.created_on) for h in groups[key]]
        values = tuple(
            sum(1 for habit_id, created_on in members if day >= created_on and (habit_id, day) in done)
            for day in dates
        )
        color, fill = habit_color_pair(index)
        series.append(TrendSeries(key=key, label=labels[key], values=values, color=color, fill_color=fill))
    return series


def build_trend(
        habits: Sequence[HabitRecord],
        completions: Iterable[CompletionRecord],
        window_days: int,
        group_by: str = GROUP_BY_HABITS,
        *,
        categories: Iterable[CategoryRecord] = (),
        today: Optional[date] = None,
) -> TrendChart:
    if window_days not in TREND_WINDOWS:
        raise ValueError(f"window_days must be one of {TREND_WINDOWS}, got {window_days}")
    if group_by not in (GROUP_BY_HABITS, GROUP_BY_CATEGORIES):
        raise ValueError(f"Unknown group_by: {group_by!r}")

    active = [h for h in habits if not h.archived]
    if not active:
        return TrendChart()

    today = today or timezone.localdate()
    dates = date_window(today, window_days)
    done = _done_pairs(completions)

    if group_by == GROUP_BY_HABITS:
        series = _habit_series(active, dates, done)
    else:
        series = _category_series(active, dates, done, categories)

    return TrendChart(dates=tuple(dates), series=tuple(series))
