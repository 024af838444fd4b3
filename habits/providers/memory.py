import itertools
import logging
from dataclasses import replace
from datetime import date
from typing import Any, Iterable, List, Optional, Sequence

from django.utils import timezone

from habits.domain import (
    CategoryRecord,
    CompletionRecord,
    HabitDraft,
    HabitNotFound,
    HabitRecord,
    HabitUpdate,
    SubtaskRecord,
    validate_draft,
    validate_update,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_NAMES = ("Health", "Productivity", "Personal", "Learning")


class InMemoryStorageProvider:
    """
    Keeps everything in process memory. Used for local-only sessions and in tests.

    Passing ``categories=None`` seeds the default category set.
    """

    def __init__(
            self,
            habits: Iterable[HabitRecord] = (),
            completions: Iterable[CompletionRecord] = (),
            categories: Optional[Iterable[CategoryRecord]] = None,
    ):
        self._habits: List[HabitRecord] = list(habits)
        self._completions: List[CompletionRecord] = list(completions)
        if categories is None:
            categories = [CategoryRecord(id=str(i), name=name) for i, name in enumerate(DEFAULT_CATEGORY_NAMES, 1)]
        self._categories: List[CategoryRecord] = list(categories)
        self._ids = itertools.count(1)

    def _next_id(self, taken: Iterable[Any]) -> str:
        taken = {str(t) for t in taken}
        while True:
            candidate = str(next(self._ids))
            if candidate not in taken:
                return candidate

    def _index(self, habit_id: Any) -> int:
        for i, habit in enumerate(self._habits):
            if habit.id == habit_id:
                return i
        raise HabitNotFound(f"Habit {habit_id} not found")

    # ---- reads

    def get_habits(self) -> List[HabitRecord]:
        return sorted(self._habits, key=lambda h: (h.order is not None, h.order or 0, h.created_at))

    def get_completions(self) -> List[CompletionRecord]:
        return list(self._completions)

    def get_categories(self) -> List[CategoryRecord]:
        return sorted(self._categories, key=lambda c: c.name)

    # ---- writes

    def add_habit(self, draft: HabitDraft) -> HabitRecord:
        validate_draft(draft)
        subtask_ids = [self._next_id(self._all_subtask_ids()) for _ in draft.subtasks]
        habit = HabitRecord(
            id=self._next_id(h.id for h in self._habits),
            name=draft.name.strip(),
            description=draft.description or "",
            category_id=draft.category_id,
            frequency=draft.frequency,
            priority=draft.priority,
            time_estimate=draft.time_estimate or None,
            subtasks=tuple(SubtaskRecord(id=sid, name=name) for sid, name in zip(subtask_ids, draft.subtasks)),
            created_at=timezone.now(),
            pinned=draft.pinned,
            order=draft.order,
        )
        self._habits.append(habit)
        logger.debug("Created in-memory habit %s (%s)", habit.id, habit.name)
        return habit

    def _all_subtask_ids(self):
        return [s.id for h in self._habits for s in h.subtasks]

    def update_habit(self, habit_id: Any, update: HabitUpdate) -> None:
        validate_update(update)
        i = self._index(habit_id)
        habit = update.apply(self._habits[i])
        if any(s.id is None for s in habit.subtasks):
            subtasks = []
            for s in habit.subtasks:
                if s.id is None:
                    s = replace(s, id=self._next_id(self._all_subtask_ids() + [x.id for x in subtasks]))
                subtasks.append(s)
            habit = replace(habit, subtasks=tuple(subtasks))
        self._habits[i] = habit

    def delete_habit(self, habit_id: Any) -> None:
        i = self._index(habit_id)
        del self._habits[i]
        self._completions = [c for c in self._completions if c.habit_id != habit_id]

    def toggle_completion(self, habit_id: Any, day: date) -> CompletionRecord:
        self._index(habit_id)
        for i, c in enumerate(self._completions):
            if c.habit_id == habit_id and c.date == day:
                flipped = replace(c, completed=not c.completed)
                self._completions[i] = flipped
                return flipped
        record = CompletionRecord(habit_id=habit_id, date=day, completed=True)
        self._completions.append(record)
        return record

    def toggle_subtask(self, habit_id: Any, subtask_id: Any) -> None:
        i = self._index(habit_id)
        habit = self._habits[i]
        if not any(s.id == subtask_id for s in habit.subtasks):
            raise HabitNotFound(f"Subtask {subtask_id} not found on habit {habit_id}")
        subtasks = tuple(
            replace(s, completed=not s.completed) if s.id == subtask_id else s
            for s in habit.subtasks
        )
        self._habits[i] = replace(habit, subtasks=subtasks)

    def reorder_habits(self, habit_ids: Sequence[Any]) -> None:
        positions = {habit_id: position for position, habit_id in enumerate(habit_ids)}
        self._habits = [
            replace(h, order=positions[h.id]) if h.id in positions and h.order != positions[h.id] else h
            for h in self._habits
        ]

    def add_category(self, name: str, color: str = "") -> CategoryRecord:
        name = name.strip()
        for category in self._categories:
            if category.name == name:
                return category
        category = CategoryRecord(id=self._next_id(c.id for c in self._categories), name=name, color=color)
        self._categories.append(category)
        return category
