"""
In-memory state container for one user's habits.

``HabitStore`` pulls the full habit/completion/category collections from its
storage provider once and derives everything else from that snapshot.

Mutations are two-phase: the change is applied to the local snapshot first,
then committed through the provider. If the commit fails the snapshot taken
before the local change is restored and the error re-raised.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from django.utils import timezone

from habits.domain import (
    CategoryRecord,
    CompletionRecord,
    HabitDraft,
    HabitNotFound,
    HabitRecord,
    HabitUpdate,
    Stats,
    validate_draft,
    validate_update,
)
from habits.providers.base import StorageProvider
from habits.services import aggregation, dashboard, habit_stats

logger = logging.getLogger(__name__)


class HabitStore:
    def __init__(self, provider: StorageProvider):
        self.provider = provider
        self._habits: List[HabitRecord] = []
        self._completions: List[CompletionRecord] = []
        self._categories: List[CategoryRecord] = []
        self.loaded = False
        self._version = 0
        self._cache: Dict[Tuple, Any] = {}

    # ---- loading

    def load(self) -> "HabitStore":
        if not self.loaded:
            self.refresh()
        return self

    def refresh(self) -> "HabitStore":
        self._set_state(
            self.provider.get_habits(),
            self.provider.get_completions(),
            self.provider.get_categories(),
        )
        self.loaded = True
        logger.debug(
            "Loaded %d habits, %d completions, %d categories",
            len(self._habits), len(self._completions), len(self._categories),
        )
        return self

    def _set_state(self, habits, completions, categories) -> None:
        self._habits = list(habits)
        self._completions = list(completions)
        self._categories = list(categories)
        self._version += 1
        self._cache.clear()

    def _snapshot(self):
        return list(self._habits), list(self._completions), list(self._categories)

    # ---- reads

    @property
    def habits(self) -> List[HabitRecord]:
        return dashboard.sort_habits_with_pinned_first(self._habits)

    @property
    def completions(self) -> List[CompletionRecord]:
        return list(self._completions)

    @property
    def categories(self) -> List[CategoryRecord]:
        return list(self._categories)

    def active_habits(self) -> List[HabitRecord]:
        return [h for h in self.habits if not h.archived]

    def get_habit(self, habit_id: Any) -> HabitRecord:
        for habit in self._habits:
            if str(habit.id) == str(habit_id):
                return habit
        raise HabitNotFound(f"Habit {habit_id} not found")

    def category_name(self, category_id: Any) -> str:
        for category in self._categories:
            if category_id is not None and category.id == category_id:
                return category.name
        return aggregation.UNCATEGORIZED_LABEL

    def completion_map(self, day: date) -> Dict[str, bool]:
        """habit id (as str) -> completed flag for ``day``; habits without a record are absent."""
        return self._memo(
            ("completion_map", day),
            lambda: {str(c.habit_id): c.completed for c in self._completions if c.date == day},
        )

    def is_completed(self, habit_id: Any, day: Optional[date] = None) -> bool:
        day = day or timezone.localdate()
        return self.completion_map(day).get(str(habit_id), False)

    # ---- derived, memoized per state version and day

    def _memo(self, key: Tuple, compute: Callable[[], Any]) -> Any:
        key = (self._version,) + key
        if key not in self._cache:
            self._cache[key] = compute()
        return self._cache[key]

    def stats(self, habit_id: Any, *, today: Optional[date] = None) -> Stats:
        today = today or timezone.localdate()
        if self._has_habit(habit_id):
            habit_id = self.get_habit(habit_id).id
        return self._memo(
            ("stats", habit_id, today),
            lambda: habit_stats.compute_stats(habit_id, self._completions, today=today),
        )

    def dashboard(self, *, today: Optional[date] = None) -> List[HabitRecord]:
        today = today or timezone.localdate()
        return self._memo(
            ("dashboard", today),
            lambda: dashboard.select_dashboard_habits(self.habits, self._completions, today=today),
        )

    def heatmap(self, *, today: Optional[date] = None, days: int = aggregation.HEATMAP_DAYS):
        today = today or timezone.localdate()
        return self._memo(
            ("heatmap", today, days),
            lambda: aggregation.build_heatmap(self.habits, self._completions, today=today, days=days),
        )

    def trend(self, window_days: int, group_by: str = aggregation.GROUP_BY_HABITS, *, today: Optional[date] = None):
        today = today or timezone.localdate()
        return self._memo(
            ("trend", window_days, group_by, today),
            lambda: aggregation.build_trend(
                self.habits,
                self._completions,
                window_days,
                group_by,
                categories=self._categories,
                today=today,
            ),
        )

    # ---- mutations

    def _transition(self, action: str, apply_local: Callable[[], None], commit: Callable[[], Any]) -> Any:
        """Apply locally, commit remotely, restore the previous snapshot if the commit fails."""
        before = self._snapshot()
        apply_local()
        self._version += 1
        self._cache.clear()
        try:
            return commit()
        except Exception:
            logger.exception("Failed to %s; rolling back local state", action)
            self._set_state(*before)
            raise

    def add_habit(self, draft: HabitDraft) -> HabitRecord:
        validate_draft(draft)
        # the provider assigns id and created_at, so there is nothing to show before the commit
        habit = self._transition("add habit", lambda: None, lambda: self.provider.add_habit(draft))
        self._habits.append(habit)
        self._version += 1
        self._cache.clear()
        return habit

    def update_habit(self, habit_id: Any, update: HabitUpdate) -> HabitRecord:
        validate_update(update)
        current = self.get_habit(habit_id)

        def apply_local():
            self._replace_habit(update.apply(current))

        self._transition("update habit", apply_local, lambda: self.provider.update_habit(current.id, update))
        # re-read so provider-side normalisation (new subtask ids, id types) is reflected
        self._habits = self.provider.get_habits()
        self._version += 1
        self._cache.clear()
        return self.get_habit(current.id)

    def _replace_habit(self, habit: HabitRecord) -> None:
        self._habits = [habit if h.id == habit.id else h for h in self._habits]

    def delete_habit(self, habit_id: Any) -> None:
        current = self.get_habit(habit_id)

        def apply_local():
            self._habits = [h for h in self._habits if h.id != current.id]
            self._completions = [c for c in self._completions if c.habit_id != current.id]

        self._transition("delete habit", apply_local, lambda: self.provider.delete_habit(current.id))

    def toggle_completion(self, habit_id: Any, day: Optional[date] = None) -> CompletionRecord:
        current = self.get_habit(habit_id)
        day = day or timezone.localdate()

        def apply_local():
            for i, c in enumerate(self._completions):
                if c.habit_id == current.id and c.date == day:
                    self._completions[i] = replace(c, completed=not c.completed)
                    return
            self._completions.append(CompletionRecord(habit_id=current.id, date=day, completed=True))

        return self._transition(
            "toggle completion",
            apply_local,
            lambda: self.provider.toggle_completion(current.id, day),
        )

    def toggle_subtask(self, habit_id: Any, subtask_id: Any) -> HabitRecord:
        current = self.get_habit(habit_id)
        if not any(str(s.id) == str(subtask_id) for s in current.subtasks):
            raise HabitNotFound(f"Subtask {subtask_id} not found on habit {habit_id}")
        subtask = next(s for s in current.subtasks if str(s.id) == str(subtask_id))

        def apply_local():
            subtasks = tuple(
                replace(s, completed=not s.completed) if s.id == subtask.id else s
                for s in current.subtasks
            )
            self._replace_habit(replace(current, subtasks=subtasks))

        self._transition(
            "toggle subtask",
            apply_local,
            lambda: self.provider.toggle_subtask(current.id, subtask.id),
        )
        return self.get_habit(current.id)

    def toggle_pin(self, habit_id: Any) -> HabitRecord:
        current = self.get_habit(habit_id)
        return self.update_habit(current.id, HabitUpdate(pinned=not current.pinned))

    def toggle_archive(self, habit_id: Any) -> HabitRecord:
        current = self.get_habit(habit_id)
        return self.update_habit(current.id, HabitUpdate(archived=not current.archived))

    def reorder_habits(self, habit_ids: Sequence[Any]) -> None:
        ids = [self.get_habit(habit_id).id for habit_id in habit_ids if self._has_habit(habit_id)]
        positions = {habit_id: position for position, habit_id in enumerate(ids)}

        def apply_local():
            self._habits = [
                replace(h, order=positions[h.id]) if h.id in positions else h
                for h in self._habits
            ]

        self._transition("reorder habits", apply_local, lambda: self.provider.reorder_habits(ids))

    def _has_habit(self, habit_id: Any) -> bool:
        return any(str(h.id) == str(habit_id) for h in self._habits)

    def add_category(self, name: str, color: str = "") -> CategoryRecord:
        category = self._transition("add category", lambda: None, lambda: self.provider.add_category(name, color))
        if category not in self._categories:
            self._categories.append(category)
            self._cache.clear()
        return category
