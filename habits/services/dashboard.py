"""
Picks the handful of habits shown as today's focus.

Pinned habits that are still open today come first, in their stored order.
Remaining slots go to the open habits with the best score:

    priority_weight * 100 + current_streak * 10

so an important habit with no streak still competes with a lower-priority
one the user is about to break.
"""
from datetime import date
from typing import Any, Iterable, List, Optional, Sequence, Set

from django.utils import timezone

from habits.domain import CompletionRecord, HabitRecord, Priority
from habits.services.habit_stats import completed_dates_by_habit, current_streak

DASHBOARD_SIZE = 3

PRIORITY_WEIGHTS = {
    Priority.HIGH.value: 3,
    Priority.MEDIUM.value: 2,
    Priority.LOW.value: 1,
}


def priority_weight(priority: Optional[str]) -> int:
    medium = PRIORITY_WEIGHTS[Priority.MEDIUM.value]
    if not priority:
        return medium
    return PRIORITY_WEIGHTS.get(str(priority), medium)


def dashboard_score(habit: HabitRecord, dates: Set[date], today: date) -> int:
    return priority_weight(habit.priority) * 100 + current_streak(dates, today) * 10


def _id_sort_key(habit_id: Any):
    # numeric ids (db pks, or their string form) order numerically, anything else as text
    text = str(habit_id)
    if text.isdigit():
        return 0, int(text), ""
    return 1, 0, text


def _completed_today(completions: Iterable[CompletionRecord], today: date) -> Set[Any]:
    return {c.habit_id for c in completions if c.date == today and c.completed}


def pinned_habits(
        habits: Sequence[HabitRecord],
        completions: Iterable[CompletionRecord],
        *,
        today: Optional[date] = None,
        limit: int = DASHBOARD_SIZE,
) -> List[HabitRecord]:
    today = today or timezone.localdate()
    done = _completed_today(completions, today)
    return [h for h in habits if not h.archived and h.pinned and h.id not in done][:limit]


def auto_pick_habits(
        habits: Sequence[HabitRecord],
        completions: Iterable[CompletionRecord],
        *,
        today: Optional[date] = None,
        limit: int = DASHBOARD_SIZE,
        exclude: Iterable[Any] = (),
) -> List[HabitRecord]:
    """
    Open habits ranked by score, highest first. Equal scores fall back to
    ascending habit id so the pick doesn't depend on fetch order.
    """
    today = today or timezone.localdate()
    completions = list(completions)
    done = _completed_today(completions, today)
    skip = set(exclude)

    candidates = [h for h in habits if not h.archived and h.id not in done and h.id not in skip]
    if not candidates or limit <= 0:
        return []

    by_habit = completed_dates_by_habit(completions)
    scored = [(dashboard_score(h, by_habit.get(h.id, set()), today), h) for h in candidates]
    scored.sort(key=lambda pair: (-pair[0], _id_sort_key(pair[1].id)))
    return [h for _, h in scored[:limit]]


def select_dashboard_habits(
        habits: Sequence[HabitRecord],
        completions: Iterable[CompletionRecord],
        *,
        today: Optional[date] = None,
        limit: int = DASHBOARD_SIZE,
) -> List[HabitRecord]:
    today = today or timezone.localdate()
    completions = list(completions)

    pinned = pinned_habits(habits, completions, today=today, limit=limit)
    if len(pinned) >= limit:
        return pinned

    extra = auto_pick_habits(
        habits,
        completions,
        today=today,
        limit=limit - len(pinned),
        exclude=[h.id for h in pinned],
    )
    return (pinned + extra)[:limit]


def sort_habits_with_pinned_first(habits: Iterable[HabitRecord]) -> List[HabitRecord]:
    """Pinned habits first; each group keeps a stable sort on ``order`` (missing counts as 0)."""
    habits = list(habits)
    pinned = sorted((h for h in habits if h.pinned), key=lambda h: h.order or 0)
    unpinned = sorted((h for h in habits if not h.pinned), key=lambda h: h.order or 0)
    return pinned + unpinned
