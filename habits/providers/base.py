"""Storage provider protocol the habit store is built on."""

from __future__ import annotations

from datetime import date
from typing import Any, List, Protocol, Sequence

from habits.domain import (
    CategoryRecord,
    CompletionRecord,
    HabitDraft,
    HabitRecord,
    HabitUpdate,
)


class StorageProvider(Protocol):
    """Bulk reads plus the handful of writes the app performs.

    Implementations are passed to ``HabitStore`` explicitly; there is no
    module-level default provider.
    """

    def get_habits(self) -> List[HabitRecord]:
        """All habits, archived ones included, in stored order."""
        ...

    def get_completions(self) -> List[CompletionRecord]:
        """Every completion record for the provider's habits."""
        ...

    def get_categories(self) -> List[CategoryRecord]:
        ...

    def add_habit(self, draft: HabitDraft) -> HabitRecord:
        """Create a habit; the provider assigns id and created_at."""
        ...

    def update_habit(self, habit_id: Any, update: HabitUpdate) -> None:
        """Apply only the fields set on ``update``."""
        ...

    def delete_habit(self, habit_id: Any) -> None:
        """Delete a habit together with its completions and subtasks."""
        ...

    def toggle_completion(self, habit_id: Any, day: date) -> CompletionRecord:
        """Create a completed record on first toggle, flip it afterwards."""
        ...

    def toggle_subtask(self, habit_id: Any, subtask_id: Any) -> None:
        ...

    def reorder_habits(self, habit_ids: Sequence[Any]) -> None:
        """Set each habit's order to its position in ``habit_ids``."""
        ...

    def add_category(self, name: str, color: str = "") -> CategoryRecord:
        """Create a category, or return the existing one with that name."""
        ...
